"""Tests for ProcessRunner and detached spawning, using real /bin/sh children."""

import asyncio
import os
import time

import pytest

from toolchain import ProcessLaunchError, ProcessRunner, spawn_detached


def _pid_alive(pid: int) -> bool:
    """Running and not a zombie (orphans may sit unreaped in containers)."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return False
    return state != "Z"


async def _wait_for_file(path, timeout: float = 5.0):
    deadline = time.monotonic() + timeout
    while not path.exists() or not path.read_text().strip():
        if time.monotonic() > deadline:
            raise AssertionError(f"{path} was never written")
        await asyncio.sleep(0.05)


class TestProcessRunner:
    """Test command execution, timeouts and cancellation."""

    @pytest.mark.asyncio
    async def test_success_captures_stdout(self, tmp_path):
        result = await ProcessRunner().run("sh", ["-c", "echo hello"], work_dir=tmp_path)
        assert result.success
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"
        assert result.stderr == ""
        assert not result.timed_out
        assert result.pid is not None

    @pytest.mark.asyncio
    async def test_non_zero_exit_captures_stderr(self, tmp_path):
        result = await ProcessRunner().run("sh", ["-c", "echo broken >&2; exit 3"], work_dir=tmp_path)
        assert not result.success
        assert result.exit_code == 3
        assert result.stderr.strip() == "broken"

    @pytest.mark.asyncio
    async def test_runs_in_work_dir(self, tmp_path):
        result = await ProcessRunner().run("sh", ["-c", "pwd"], work_dir=tmp_path)
        assert os.path.realpath(result.stdout.strip()) == os.path.realpath(tmp_path)

    @pytest.mark.asyncio
    async def test_env_layered_over_environment(self, tmp_path):
        result = await ProcessRunner().run(
            "sh", ["-c", 'echo "$SCGEN_TEST_VALUE:$PATH"'], work_dir=tmp_path, env={"SCGEN_TEST_VALUE": "42"}
        )
        value, path = result.stdout.strip().split(":", 1)
        assert value == "42"
        assert path

    @pytest.mark.asyncio
    async def test_timeout_kills_and_reports(self, tmp_path):
        start = time.monotonic()
        result = await ProcessRunner().run("sh", ["-c", "sleep 30"], work_dir=tmp_path, timeout=0.3)
        assert time.monotonic() - start < 10
        assert result.timed_out
        assert not result.success
        assert "timed out" in result.stderr

    @pytest.mark.asyncio
    async def test_default_timeout_applies_when_unset(self, tmp_path):
        result = await ProcessRunner(default_timeout=0.3).run("sh", ["-c", "sleep 30"], work_dir=tmp_path)
        assert result.timed_out

    @pytest.mark.asyncio
    async def test_explicit_zero_timeout_is_honoured(self, tmp_path):
        start = time.monotonic()
        result = await ProcessRunner(default_timeout=900).run("sh", ["-c", "sleep 30"], work_dir=tmp_path, timeout=0)
        assert time.monotonic() - start < 10
        assert result.timed_out

    @pytest.mark.asyncio
    async def test_missing_binary_raises_launch_error(self, tmp_path):
        with pytest.raises(ProcessLaunchError) as exc_info:
            await ProcessRunner().run("scgen-no-such-binary", [], work_dir=tmp_path)
        assert exc_info.value.command == "scgen-no-such-binary"

    @pytest.mark.asyncio
    async def test_cancellation_kills_process_group(self, tmp_path):
        pid_file = tmp_path / "child.pid"
        script = f"sleep 30 & echo $! > {pid_file}; wait"
        task = asyncio.create_task(ProcessRunner().run("sh", ["-c", script], work_dir=tmp_path))
        await _wait_for_file(pid_file)
        grandchild = int(pid_file.read_text().strip())

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # The sleep belongs to the shell's process group and dies with it
        deadline = time.monotonic() + 5
        while _pid_alive(grandchild) and time.monotonic() < deadline:
            await asyncio.sleep(0.05)
        assert not _pid_alive(grandchild)


class TestSpawnDetached:
    """Test background process spawning."""

    def test_spawns_and_returns_popen(self):
        process = spawn_detached("sh", ["-c", "exit 0"])
        assert process.wait(timeout=5) == 0

    def test_missing_binary_raises(self):
        with pytest.raises(ProcessLaunchError):
            spawn_detached("scgen-no-such-binary")
