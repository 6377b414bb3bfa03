"""EVM chain: Solidity generation, solc compilation, web3 deployment."""

import json
import logging
import re
import uuid
from pathlib import PurePath
from typing import Any, List, Optional

from config import Settings
from contracts import (
    ChainTarget,
    CompiledArtifact,
    DeploymentResult,
    ErrorKind,
    GeneratedArtifact,
    OCTET_STREAM,
    Result,
    TEXT_PLAIN,
    UploadedFile,
)
from templating import TemplateRenderer
from toolchain import ProcessRunner, run_blocking

from . import messages
from .artifacts import find_evm_outputs
from .base import (
    ContractCompiler,
    ContractDeployer,
    ContractGenerator,
    guarded,
    parse_specification,
    tool_failure,
    validate_specification_upload,
    validate_upload,
)
from .ethereum_client import DeployReceipt, EthereumClientFactory, create_ethereum_client
from .node import LocalNodeSupervisor, parse_endpoint

logger = logging.getLogger(__name__)

SOLIDITY_EXTENSION = ".sol"
DEFAULT_CONTRACT_NAME = "Contract"
DEFAULT_RPC_PORT = 8545
_HEX_BODY = re.compile(r"^[0-9a-fA-F]+$")
_SOLIDITY_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def contract_name(name: Any) -> str:
    """Declared name without a '.sol' suffix; DEFAULT_CONTRACT_NAME when blank."""
    text = str(name or "").strip()
    if text.lower().endswith(SOLIDITY_EXTENSION):
        text = text[:-len(SOLIDITY_EXTENSION)]
    return text or DEFAULT_CONTRACT_NAME


def is_solidity_identifier(name: str) -> bool:
    return bool(_SOLIDITY_IDENTIFIER.match(name))


def contract_filename(name: Any) -> str:
    """Declared contract name -> 'Name.sol' (extension added once)."""
    base = PurePath(str(name or "").strip()).name or DEFAULT_CONTRACT_NAME
    if not base.lower().endswith(SOLIDITY_EXTENSION):
        base += SOLIDITY_EXTENSION
    return base


class EthereumContractGenerator(ContractGenerator):
    chain = ChainTarget.ETHEREUM

    @guarded("generate")
    async def generate(self, specification: UploadedFile) -> Result[GeneratedArtifact]:
        problem = validate_specification_upload(specification, self.settings.max_upload_bytes)
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        parsed = await parse_specification(specification)
        if not parsed.is_success:
            return parsed

        # The declared contract and the file name must agree
        name = contract_name(parsed.value.get("name"))
        if not is_solidity_identifier(name):
            return Result.fail(ErrorKind.VALIDATION, messages.INVALID_CONTRACT_NAME.format(name=name))
        document = {**parsed.value, "name": name}

        rendered = self.renderer.render(self.chain, document)
        if not rendered.is_success:
            return rendered

        return Result.ok(GeneratedArtifact(
            content=rendered.value.encode("utf-8"),
            filename=contract_filename(name),
            content_type=TEXT_PLAIN,
        ))


class EthereumContractCompiler(ContractCompiler):
    chain = ChainTarget.ETHEREUM

    @guarded("compile")
    async def compile(self, source: UploadedFile) -> Result[CompiledArtifact]:
        problem = validate_upload(
            source, [SOLIDITY_EXTENSION], self.settings.max_upload_bytes, messages.INVALID_SOLIDITY_FILE
        )
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        toolchain = self.settings.toolchain
        with self.workspace() as ws:
            # Random staging name; the uploaded name never reaches the filesystem
            staged = ws.path / f"contract_{uuid.uuid4().hex[:8]}{SOLIDITY_EXTENSION}"
            await run_blocking(source.save_to, staged)
            out_dir = ws.subdir("out")

            result = await self.runner.run(
                toolchain.solc,
                ["--abi", "--bin", "--optimize", "-o", str(out_dir), staged.name],
                work_dir=ws.path,
                timeout=toolchain.solc_timeout,
            )
            if not result.success:
                return tool_failure(
                    result,
                    messages.COMPILER_TIMED_OUT.format(timeout=toolchain.solc_timeout),
                    messages.COMPILER_FAILED.format(exit_code=result.exit_code),
                )

            bin_path, abi_path = find_evm_outputs(out_dir, source.stem)
            if bin_path is None:
                return Result.fail(ErrorKind.INFRASTRUCTURE, messages.NOT_FOUND_BIN)
            if abi_path is None or abi_path.stat().st_size == 0:
                return Result.fail(ErrorKind.INFRASTRUCTURE, messages.NOT_FOUND_ABI)

            logger.debug("solc produced %s for %s", bin_path.name, source.filename)
            return Result.ok(CompiledArtifact(
                bytecode=bin_path.read_bytes(),
                bytecode_filename=f"{source.stem}.bin",
                content_type=OCTET_STREAM,
                schema_data=abi_path.read_bytes(),
                schema_filename=f"{source.stem}.abi",
                schema_content_type=OCTET_STREAM,
            ))


class EthereumContractDeployer(ContractDeployer):
    """Deploys solc output through a web3 client.

    The ABI travels as the schema companion of the bytecode.
    """

    chain = ChainTarget.ETHEREUM

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[ProcessRunner] = None,
        renderer: Optional[TemplateRenderer] = None,
        supervisor: Optional[LocalNodeSupervisor] = None,
        client_factory: EthereumClientFactory = create_ethereum_client,
    ):
        super().__init__(settings, runner, renderer, supervisor)
        self.client_factory = client_factory

    def _validate_files(self, bytecode: UploadedFile, abi: Optional[UploadedFile]) -> Optional[str]:
        limit = self.settings.max_upload_bytes
        if abi is None:
            return messages.REQUIRED_ABI
        problem = validate_upload(abi, [".abi"], limit, messages.INVALID_ABI_FILE, messages.EMPTY_ABI)
        if problem:
            return problem
        return validate_upload(
            bytecode,
            [".bin"],
            limit,
            messages.INVALID_BYTECODE_FILE.format(extension=".bin"),
            messages.EMPTY_BYTECODE,
        )

    @guarded("deploy")
    async def deploy(
        self,
        bytecode: UploadedFile,
        schema: Optional[UploadedFile] = None,
    ) -> Result[DeploymentResult]:
        problem = self._validate_files(bytecode, schema)
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        ethereum = self.settings.ethereum
        config_error = ethereum.validation_error()
        if config_error:
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.INVALID_CONFIGURATION.format(detail=config_error))

        abi = _load_abi(await run_blocking(schema.read_bytes))
        if abi is None:
            return Result.fail(ErrorKind.VALIDATION, messages.INVALID_ABI_FILE)
        code = _normalize_bytecode(await run_blocking(bytecode.read_bytes))
        if code is None:
            return Result.fail(ErrorKind.VALIDATION, messages.INVALID_BYTECODE_FILE.format(extension=".bin"))

        host, port = parse_endpoint(ethereum.rpc_url, DEFAULT_RPC_PORT)
        node_args = ["--deterministic", "--port", str(port)]
        node = await self.supervisor.ensure_running(
            "Ethereum",
            host,
            port,
            self.settings.toolchain.ganache,
            node_args,
            settle_seconds=ethereum.node_settle_seconds,
            probe_timeout=ethereum.probe_timeout,
            allow_start=ethereum.start_local_node,
        )
        if not node.is_success:
            return node

        try:
            receipt = await run_blocking(self._submit, abi, code)
        except Exception as exc:
            logger.exception("Ethereum deployment to %s failed", ethereum.rpc_url)
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.CHAIN_CLIENT_ERROR.format(detail=exc))

        success = receipt.status == 1
        if success:
            logger.info("Contract deployed at %s (tx %s)", receipt.contract_address, receipt.transaction_hash)
        else:
            logger.warning(messages.CONTRACT_DEPLOY_REVERTED.format(tx=receipt.transaction_hash))
        return Result.ok(DeploymentResult(
            address=receipt.contract_address or "",
            success=success,
            transaction_id=receipt.transaction_hash,
        ))

    def _submit(self, abi: List[Any], code: str) -> DeployReceipt:
        ethereum = self.settings.ethereum
        client = self.client_factory(ethereum)
        return client.deploy_contract(
            abi=abi,
            bytecode=code,
            gas_limit=ethereum.gas_limit,
            receipt_timeout=ethereum.receipt_timeout,
        )


def _load_abi(raw: bytes) -> Optional[List[Any]]:
    try:
        abi = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return abi if isinstance(abi, list) else None


def _normalize_bytecode(raw: bytes) -> Optional[str]:
    """solc writes bare hex; web3 wants it 0x-prefixed."""
    try:
        text = raw.decode("ascii").strip()
    except UnicodeDecodeError:
        return None
    body = text[2:] if text.lower().startswith("0x") else text
    if not body or not _HEX_BODY.match(body):
        return None
    return "0x" + body
