"""Result envelope returned by every pipeline operation."""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""
    VALIDATION = "validation"  # Bad extension, empty/oversized file, malformed specification
    EXTERNAL_TOOL = "external_tool"  # Toolchain exited non-zero with diagnostics
    INFRASTRUCTURE = "infrastructure"  # Environment fault: node down, artifact missing, bad config
    CANCELLED = "cancelled"  # Caller cancelled the operation

    @property
    def status(self) -> str:
        """Transport-level class for this kind of failure."""
        if self in (ErrorKind.VALIDATION, ErrorKind.EXTERNAL_TOOL):
            return "bad_request"
        if self is ErrorKind.INFRASTRUCTURE:
            return "internal_error"
        return "cancelled"


class PipelineError(BaseModel):
    """A typed failure carried by a Result."""
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind = Field(..., description="Failure category")
    message: str = Field(..., description="Caller-facing message")


class ResultError(RuntimeError):
    """Raised by Result.unwrap() on a failed result."""

    def __init__(self, error: PipelineError):
        super().__init__(f"{error.kind.value}: {error.message}")
        self.error = error


class Result(BaseModel, Generic[T]):
    """Either a success value or a PipelineError, never both."""
    model_config = ConfigDict(frozen=True)

    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @model_validator(mode="after")
    def _one_side_only(self):
        if self.value is not None and self.error is not None:
            raise ValueError("Result cannot carry both a value and an error")
        return self

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error=PipelineError(kind=kind, message=message))

    @property
    def is_success(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise ResultError."""
        if self.error is not None:
            raise ResultError(self.error)
        return self.value
