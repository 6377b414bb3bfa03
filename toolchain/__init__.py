"""Native toolchain plumbing: subprocesses, workspaces, archives."""

from .process_runner import ProcessRunner, ProcessLaunchError, spawn_detached
from .workspace import Workspace
from .archives import ArchiveError, safe_extract_zip, zip_directory
from .threads import run_blocking

__all__ = [
    "ProcessRunner",
    "ProcessLaunchError",
    "spawn_detached",
    "Workspace",
    "ArchiveError",
    "safe_extract_zip",
    "zip_directory",
    "run_blocking",
]
