"""External process execution contracts."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessExecutionResult(BaseModel):
    """Captured outcome of one external command."""
    model_config = ConfigDict(frozen=True)

    command: str = Field(..., description="Executable that was run")
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    success: bool = Field(..., description="Exit code zero and no launch/timeout failure")
    duration_seconds: float = Field(default=0.0, ge=0.0)
    pid: Optional[int] = None
    timed_out: bool = False
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def error_message(self) -> str:
        """Short description of the failure, '' on success."""
        if self.success:
            return ""
        parts: List[str] = []
        if self.exit_code != 0:
            parts.append(f"Exit code: {self.exit_code}")
        if self.stderr.strip():
            parts.append(self.stderr.strip())
        return " - ".join(parts) if parts else "Unknown error"

    def combined_output(self) -> str:
        parts = [p.strip() for p in (self.stdout, self.stderr) if p.strip()]
        return "\n".join(parts)

    def __str__(self) -> str:
        status = "Success" if self.success else "Failed"
        pid = f", PID: {self.pid}" if self.pid is not None else ""
        return (
            f"ProcessExecutionResult: {status} "
            f"(ExitCode: {self.exit_code}, Duration: {self.duration_seconds * 1000:.0f}ms{pid})"
        )
