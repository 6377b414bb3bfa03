"""Shared pieces of the per-chain Generate/Compile/Deploy components."""

import asyncio
import functools
import html
import json
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar

from config import Settings, settings as default_settings
from contracts import (
    APPLICATION_JSON,
    ChainTarget,
    CompiledArtifact,
    DeploymentResult,
    ErrorKind,
    GeneratedArtifact,
    ProcessExecutionResult,
    Result,
    UploadedFile,
)
from templating import TemplateRenderer
from toolchain import ArchiveError, ProcessLaunchError, ProcessRunner, Workspace, run_blocking

from . import messages
from .artifacts import ArtifactDiscoveryError
from .node import LocalNodeSupervisor

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Result)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def sanitize_project_name(name: Optional[str], prefix: str, default: str) -> str:
    """Turn a declared contract name into a safe project slug.

    "My Vault!" -> "my_vault_"; "1st" -> "<prefix>1st"; "" -> default
    """
    safe = _UNSAFE_NAME_CHARS.sub("_", (name or "").strip())
    safe = _REPEATED_UNDERSCORES.sub("_", safe.lower())
    if not safe.strip("_-"):
        return default
    if safe[0].isdigit():
        safe = prefix + safe
    return safe


def is_json_upload(upload: UploadedFile) -> bool:
    if upload.extension == ".json":
        return True
    return (upload.content_type or "").split(";")[0].strip().lower() == APPLICATION_JSON


def validate_upload(
    upload: Optional[UploadedFile],
    extensions: Iterable[str],
    max_bytes: int,
    invalid_message: str,
    empty_message: str = messages.EMPTY_FILE,
) -> Optional[str]:
    """Return a validation message for the upload, or None when it is acceptable.

    Checks run on metadata only; the payload is never read here.
    """
    if upload is None or not upload.filename.strip():
        return invalid_message
    if upload.extension not in {e.lower() for e in extensions}:
        return invalid_message
    if upload.size == 0:
        return empty_message
    if upload.size > max_bytes:
        return messages.FILE_TOO_LARGE.format(limit_mb=max_bytes // (1024 * 1024))
    return None


def validate_specification_upload(upload: Optional[UploadedFile], max_bytes: int) -> Optional[str]:
    if upload is None or not is_json_upload(upload):
        return messages.INVALID_JSON_FILE
    if upload.size == 0:
        return messages.EMPTY_JSON
    if upload.size > max_bytes:
        return messages.FILE_TOO_LARGE.format(limit_mb=max_bytes // (1024 * 1024))
    return None


async def parse_specification(upload: UploadedFile) -> Result[Dict[str, Any]]:
    """Read, HTML-decode and parse an uploaded JSON specification."""
    raw = await run_blocking(upload.read_bytes)
    text = html.unescape(raw.decode("utf-8-sig", errors="replace"))
    if not text.strip():
        return Result.fail(ErrorKind.VALIDATION, messages.EMPTY_JSON)
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        return Result.fail(ErrorKind.VALIDATION, messages.INVALID_JSON_CONTENT.format(detail=exc))
    if not isinstance(document, dict):
        return Result.fail(ErrorKind.VALIDATION, messages.JSON_NOT_OBJECT)
    return Result.ok(document)


def tool_failure(
    result: ProcessExecutionResult,
    timeout_message: str,
    silent_failure_message: str,
) -> Result:
    """Map a failed ProcessExecutionResult onto the error taxonomy.

    Timeout and silent non-zero exits are environment faults; a non-zero exit
    with stderr is the caller's problem and carries the tool's text verbatim.
    """
    if result.timed_out:
        return Result.fail(ErrorKind.INFRASTRUCTURE, timeout_message)
    if result.stderr.strip():
        return Result.fail(ErrorKind.EXTERNAL_TOOL, result.stderr.strip())
    if result.stdout.strip():
        return Result.fail(ErrorKind.EXTERNAL_TOOL, result.stdout.strip())
    return Result.fail(ErrorKind.INFRASTRUCTURE, silent_failure_message)


def _log_outcome(op_id: str, name: str, result: Result, elapsed_ms: float) -> None:
    if result.is_success:
        logger.info("[%s] %s completed in %.0fms", op_id, name, elapsed_ms)
        return
    kind = result.error.kind
    if kind is ErrorKind.INFRASTRUCTURE:
        logger.error("[%s] %s failed (%s) in %.0fms: %s", op_id, name, kind.value, elapsed_ms, result.error.message)
    else:
        logger.warning("[%s] %s failed (%s) in %.0fms: %s", op_id, name, kind.value, elapsed_ms, result.error.message)


def guarded(operation: str):
    """Wrap a public chain operation so that nothing escapes as an exception.

    Assigns a short operation id, logs start/finish, converts task
    cancellation into a CANCELLED result and unexpected exceptions into a
    generic INFRASTRUCTURE result (traceback logged, not returned).
    """

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(self: "ChainComponent", *args, **kwargs) -> R:
            op_id = uuid.uuid4().hex[:12]
            name = f"{self.chain.value}.{operation}"
            logger.info("[%s] %s started", op_id, name)
            start = time.monotonic()
            try:
                result = await func(self, *args, **kwargs)
            except asyncio.CancelledError:
                logger.warning("[%s] %s cancelled", op_id, name)
                result = Result.fail(ErrorKind.CANCELLED, messages.OPERATION_CANCELLED.format(operation=name))
            except ProcessLaunchError as exc:
                logger.error("[%s] %s could not launch %s: %s", op_id, name, exc.command, exc.reason)
                result = Result.fail(
                    ErrorKind.INFRASTRUCTURE,
                    messages.FAILED_TO_START_PROCESS.format(command=exc.command),
                )
            except ArchiveError as exc:
                result = Result.fail(ErrorKind.VALIDATION, messages.INVALID_ARCHIVE.format(detail=exc))
            except ArtifactDiscoveryError as exc:
                result = Result.fail(ErrorKind.INFRASTRUCTURE, str(exc))
            except Exception:
                logger.exception("[%s] %s failed unexpectedly", op_id, name)
                result = Result.fail(
                    ErrorKind.INFRASTRUCTURE,
                    messages.INTERNAL_ERROR.format(operation=name, op_id=op_id),
                )
            _log_outcome(op_id, name, result, (time.monotonic() - start) * 1000)
            return result

        return wrapper

    return decorator


class ChainComponent:
    """Settings, runner and renderer shared by every chain component."""

    chain: ChainTarget

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[ProcessRunner] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.settings = settings or default_settings
        self.runner = runner or ProcessRunner(default_timeout=self.settings.toolchain.default_timeout)
        self._renderer = renderer

    @property
    def renderer(self) -> TemplateRenderer:
        if self._renderer is None:
            self._renderer = TemplateRenderer(self.settings.get_templates_path())
        return self._renderer

    def workspace(self) -> Workspace:
        """A fresh, uniquely named workspace for one operation."""
        return Workspace(self.settings.get_workspace_root(), prefix=f"{self.chain.value}-")


class ContractGenerator(ChainComponent, ABC):
    """Specification JSON -> source file or project archive."""

    @abstractmethod
    async def generate(self, specification: UploadedFile) -> Result[GeneratedArtifact]:
        pass


class ContractCompiler(ChainComponent, ABC):
    """Source file or project archive -> bytecode plus schema."""

    @abstractmethod
    async def compile(self, source: UploadedFile) -> Result[CompiledArtifact]:
        pass


class ContractDeployer(ChainComponent, ABC):
    """Bytecode (plus companion schema/ABI/keypair) -> deployed address."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[ProcessRunner] = None,
        renderer: Optional[TemplateRenderer] = None,
        supervisor: Optional[LocalNodeSupervisor] = None,
    ):
        super().__init__(settings, runner, renderer)
        self.supervisor = supervisor or LocalNodeSupervisor()

    @abstractmethod
    async def deploy(
        self,
        bytecode: UploadedFile,
        schema: Optional[UploadedFile] = None,
    ) -> Result[DeploymentResult]:
        pass
