"""Async execution of native toolchain commands.

Every child is started in its own session so that a timeout or a cancelled
request can take down the whole process tree (anchor and scrypto both fork
cargo/rustc underneath).
"""

import asyncio
import logging
import os
import signal
import subprocess
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from contracts import ProcessExecutionResult

logger = logging.getLogger(__name__)

_LAUNCH_ERRORS = (FileNotFoundError, PermissionError, NotADirectoryError)


class ProcessLaunchError(RuntimeError):
    """The command could not be started at all (missing binary, no permission)."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"Failed to launch '{command}': {reason}")
        self.command = command
        self.reason = reason


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """Runs external commands and captures their output.

    A failing child never raises: non-zero exits and timeouts come back as
    ProcessExecutionResult(success=False). Only a launch failure raises
    (ProcessLaunchError) and task cancellation propagates after the child
    tree has been killed.
    """

    def __init__(self, default_timeout: float = 900.0):
        self.default_timeout = default_timeout

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        work_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessExecutionResult:
        """Run command with args in work_dir, waiting at most timeout seconds.

        Args:
            command: Executable name or path
            args: Command arguments
            work_dir: Working directory (defaults to the current one)
            timeout: Seconds before the process tree is killed
            env: Extra environment variables layered over os.environ

        Returns:
            ProcessExecutionResult with captured stdout/stderr

        Raises:
            ProcessLaunchError: If the process cannot be started
            asyncio.CancelledError: If the calling task is cancelled
        """
        if timeout is None:
            timeout = self.default_timeout
        argv: List[str] = [command, *args]
        child_env = {**os.environ, **env} if env else None

        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(work_dir) if work_dir else None,
                env=child_env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except _LAUNCH_ERRORS as exc:
            raise ProcessLaunchError(command, str(exc)) from exc

        logger.debug("Started %s (pid=%s, cwd=%s)", " ".join(argv), process.pid, work_dir)

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill_tree(process)
            elapsed = time.monotonic() - start
            logger.warning("%s timed out after %.0fs (pid=%s)", command, timeout, process.pid)
            return ProcessExecutionResult(
                command=command,
                exit_code=process.returncode if process.returncode is not None else -1,
                stderr=f"Process timed out after {timeout:g} seconds",
                success=False,
                duration_seconds=elapsed,
                pid=process.pid,
                timed_out=True,
                started_at=started_at,
            )
        except asyncio.CancelledError:
            logger.info("Cancelling %s (pid=%s)", command, process.pid)
            await _kill_tree(process)
            raise

        result = ProcessExecutionResult(
            command=command,
            exit_code=process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            success=process.returncode == 0,
            duration_seconds=time.monotonic() - start,
            pid=process.pid,
            started_at=started_at,
        )
        logger.debug("%s", result)
        return result


async def _kill_tree(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the child's process group and reap the child."""
    if process.returncode is None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            # Exited between the check and the signal
            pass
    await process.wait()


def spawn_detached(command: str, args: Sequence[str] = ()) -> subprocess.Popen:
    """Start a long-lived background process (local chain node).

    The child gets its own session and no pipes, so it outlives the request
    that started it.

    Raises:
        ProcessLaunchError: If the process cannot be started
    """
    try:
        process = subprocess.Popen(
            [command, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except _LAUNCH_ERRORS as exc:
        raise ProcessLaunchError(command, str(exc)) from exc
    logger.info("Spawned %s in background (pid=%s)", command, process.pid)
    return process
