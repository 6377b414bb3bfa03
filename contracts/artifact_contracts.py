"""Artifact contracts: uploads coming in, generated/compiled/deployed outputs going out."""

import shutil
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

TEXT_PLAIN = "text/plain"
APPLICATION_ZIP = "application/zip"
APPLICATION_WASM = "application/wasm"
APPLICATION_JSON = "application/json"
OCTET_STREAM = "application/octet-stream"


class UploadedFile(BaseModel):
    """A file handle supplied by the request layer.

    Either backed by bytes already in memory or by a spooled file on disk.
    `size` is known up front so limits can be checked before any read.
    """
    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Client-supplied file name")
    size: int = Field(..., ge=0, description="Payload size in bytes")
    content_type: Optional[str] = Field(None, description="Declared media type, if any")
    path: Optional[Path] = Field(None, description="On-disk payload")
    data: Optional[bytes] = Field(None, repr=False, description="In-memory payload")

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, content_type: Optional[str] = None) -> "UploadedFile":
        return cls(filename=filename, size=len(data), content_type=content_type, data=data)

    @classmethod
    def from_path(
        cls,
        path: Path,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> "UploadedFile":
        path = Path(path)
        return cls(
            filename=filename or path.name,
            size=path.stat().st_size,
            content_type=content_type,
            path=path,
        )

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot ('' when absent)."""
        return Path(self.filename.strip()).suffix.lower()

    @property
    def stem(self) -> str:
        return Path(self.filename.strip()).stem

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is not None:
            return self.path.read_bytes()
        return b""

    def save_to(self, destination: Path) -> Path:
        """Copy the payload to destination and return it."""
        destination = Path(destination)
        if self.path is not None and self.data is None:
            shutil.copyfile(self.path, destination)
        else:
            destination.write_bytes(self.read_bytes())
        return destination


class GeneratedArtifact(BaseModel):
    """Rendered source file or packaged project archive."""
    model_config = ConfigDict(frozen=True)

    content: bytes = Field(..., repr=False)
    filename: str
    content_type: str = Field(..., description="text/plain or application/zip")


class CompiledArtifact(BaseModel):
    """Compiled bytecode plus optional companion schema/ABI."""
    model_config = ConfigDict(frozen=True)

    bytecode: bytes = Field(..., repr=False)
    bytecode_filename: str
    content_type: str = Field(default=OCTET_STREAM)
    schema_data: Optional[bytes] = Field(None, repr=False, description="ABI, IDL or package definition")
    schema_filename: Optional[str] = None
    schema_content_type: Optional[str] = None

    @property
    def has_schema(self) -> bool:
        return bool(self.schema_data)


class DeploymentResult(BaseModel):
    """Outcome of a deployment; terminal once built."""
    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="Contract, program or package address")
    success: bool = Field(..., description="On-chain / toolchain success flag")
    transaction_id: str = Field(default="", description="Empty when the toolchain reports none")
