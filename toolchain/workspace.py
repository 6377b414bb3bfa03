"""Per-request scratch directories."""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class Workspace:
    """A uniquely named temporary directory owned by one operation.

    Use as a context manager; the directory is removed on every exit path,
    including exceptions and task cancellation. Removal never raises.

        with Workspace(settings.get_workspace_root()) as ws:
            source = ws.path / "contract.sol"
    """

    def __init__(self, root: Path, prefix: str = ""):
        self.root = Path(root)
        self.prefix = prefix
        self.path: Optional[Path] = None

    def __enter__(self) -> "Workspace":
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / f"{self.prefix}{uuid.uuid4().hex}"
        path.mkdir(exist_ok=False)
        self.path = path
        logger.debug("Created workspace %s", path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.path is None:
            return
        shutil.rmtree(self.path, ignore_errors=True)
        if self.path.exists():
            logger.warning("Workspace %s could not be fully removed", self.path)
        else:
            logger.debug("Removed workspace %s", self.path)

    def subdir(self, *parts: str) -> Path:
        """Create (if needed) and return a directory inside the workspace."""
        if self.path is None:
            raise RuntimeError("Workspace is not active")
        target = self.path.joinpath(*parts)
        target.mkdir(parents=True, exist_ok=True)
        return target
