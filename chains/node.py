"""Node reachability checks and on-demand local node startup."""

import asyncio
import logging
import subprocess
from typing import Awaitable, Callable, Sequence, Tuple
from urllib.parse import urlparse

from contracts import ErrorKind, Result
from toolchain import ProcessLaunchError, spawn_detached

from . import messages

logger = logging.getLogger(__name__)

_LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1", "0.0.0.0"}


def parse_endpoint(rpc_url: str, default_port: int) -> Tuple[str, int]:
    """Host and port of an RPC URL; port falls back to default_port."""
    parsed = urlparse(rpc_url)
    return parsed.hostname or "127.0.0.1", parsed.port or default_port


def is_loopback(host: str) -> bool:
    return host.lower() in _LOOPBACK_HOSTS


async def is_port_open(host: str, port: int, timeout: float = 3.0) -> bool:
    """TCP connect probe; True when something accepts on host:port."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as exc:
        logger.debug("Probe connection to %s:%s closed with %s", host, port, exc)
    return True


class LocalNodeSupervisor:
    """Starts a local node when the configured endpoint is down.

    Start-if-not-running is best effort: two concurrent deploys may both try
    to start a node; the loser fails to bind and the re-probe still succeeds.
    """

    def __init__(
        self,
        probe: Callable[[str, int, float], Awaitable[bool]] = is_port_open,
        spawn: Callable[[str, Sequence[str]], subprocess.Popen] = spawn_detached,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.probe = probe
        self.spawn = spawn
        self.sleep = sleep

    async def ensure_running(
        self,
        chain_label: str,
        host: str,
        port: int,
        command: str,
        args: Sequence[str] = (),
        settle_seconds: float = 1.0,
        probe_timeout: float = 3.0,
        allow_start: bool = True,
    ) -> Result[bool]:
        """Make sure host:port accepts connections.

        Returns Result.ok(True) when the node was already up, Result.ok(False)
        when it had to be started, or an INFRASTRUCTURE failure.
        """
        if await self.probe(host, port, probe_timeout):
            return Result.ok(True)

        not_running = messages.NODE_NOT_RUNNING.format(chain=chain_label, host=host, port=port)
        if not allow_start or not is_loopback(host):
            return Result.fail(ErrorKind.INFRASTRUCTURE, not_running)

        logger.info("%s node at %s:%s is down; starting %s", chain_label, host, port, command)
        try:
            process = self.spawn(command, list(args))
        except ProcessLaunchError as exc:
            logger.error("Could not start %s node: %s", chain_label, exc)
            return Result.fail(
                ErrorKind.INFRASTRUCTURE,
                messages.FAILED_TO_START_NODE.format(chain=chain_label, detail=exc.reason),
            )
        logger.debug("Started %s node (pid=%s)", chain_label, process.pid)

        await self.sleep(settle_seconds)
        if await self.probe(host, port, probe_timeout):
            return Result.ok(False)
        return Result.fail(ErrorKind.INFRASTRUCTURE, not_running)
