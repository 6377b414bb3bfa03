"""Shared fixtures: isolated settings, a shared renderer and a scripted process runner."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from config import EthereumSettings, RadixSettings, Settings, SolanaSettings, ToolchainSettings
from contracts import ProcessExecutionResult
from templating import TemplateRenderer

TEST_PRIVATE_KEY = "0x" + "4f" * 32
TEST_PUBKEY = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def process_result(
    command: str = "tool",
    exit_code: int = 0,
    stdout: str = "",
    stderr: str = "",
    timed_out: bool = False,
) -> ProcessExecutionResult:
    return ProcessExecutionResult(
        command=command,
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        success=exit_code == 0 and not timed_out,
        timed_out=timed_out,
    )


@dataclass
class RecordedCall:
    command: str
    args: List[str]
    work_dir: Optional[Path]
    timeout: Optional[float]
    env: Optional[Dict[str, str]]


Handler = Callable[[RecordedCall], ProcessExecutionResult]


class FakeRunner:
    """Stands in for ProcessRunner; records calls and replays scripted results.

    A handler registered for a command may create files in the call's
    work_dir before returning, the way the real toolchain would.
    """

    def __init__(self):
        self.calls: List[RecordedCall] = []
        self.handlers: Dict[str, Handler] = {}

    def on(self, command: str, handler: Handler) -> "FakeRunner":
        self.handlers[command] = handler
        return self

    def on_result(self, command: str, **kwargs) -> "FakeRunner":
        return self.on(command, lambda call: process_result(command=command, **kwargs))

    async def run(self, command, args=(), work_dir=None, timeout=None, env=None) -> ProcessExecutionResult:
        call = RecordedCall(command, list(args), Path(work_dir) if work_dir else None, timeout, env)
        self.calls.append(call)
        handler = self.handlers.get(command)
        if handler is None:
            return process_result(command=command)
        return handler(call)

    def commands(self) -> List[str]:
        return [call.command for call in self.calls]


@pytest.fixture
def workspace_root(tmp_path) -> Path:
    return tmp_path / "workspaces"


@pytest.fixture
def test_settings(tmp_path, workspace_root) -> Settings:
    """Settings with valid chain configuration and an isolated workspace root."""
    return Settings(
        workspace_root=str(workspace_root),
        toolchain=ToolchainSettings(),
        ethereum=EthereumSettings(private_key=TEST_PRIVATE_KEY, node_settle_seconds=0),
        solana=SolanaSettings(
            pubkey=TEST_PUBKEY,
            keypair_path=str(tmp_path / "wallet" / "id.json"),
            node_settle_seconds=0,
        ),
        radix=RadixSettings(),
    )


@pytest.fixture
def renderer(test_settings) -> TemplateRenderer:
    return TemplateRenderer(test_settings.get_templates_path())


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def leftover_workspaces(root: Path) -> List[Path]:
    """Workspaces still on disk under root (should be none after any operation)."""
    return list(root.iterdir()) if root.exists() else []
