"""Tests for the EVM Generate/Compile/Deploy components."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from chains import EthereumContractCompiler, EthereumContractDeployer, EthereumContractGenerator
from chains import messages
from chains.ethereum import contract_filename
from chains.ethereum_client import DeployReceipt
from chains.node import LocalNodeSupervisor
from config import EthereumSettings
from contracts import ErrorKind, UploadedFile
from toolchain import ProcessLaunchError

from conftest import TEST_PRIVATE_KEY, leftover_workspaces, process_result

ESCROW_SPEC = {
    "name": "Escrow",
    "stateVariables": [{"name": "seller", "type": "address", "visibility": "public"}],
    "functions": [{"name": "release", "visibility": "external", "body": ["selfdestruct(payable(seller));"]}],
}
ESCROW_ABI = [{"type": "function", "name": "release", "inputs": [], "outputs": []}]
CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TX_HASH = "0x" + "ab" * 32


def _json_upload(document, filename="escrow.json") -> UploadedFile:
    return UploadedFile.from_bytes(filename, json.dumps(document).encode())


def _solc_writes(*contracts):
    """Fake solc that writes <name>.bin/.abi for each contract into the -o directory."""

    def handler(call):
        out_dir = Path(call.args[call.args.index("-o") + 1])
        for name, code in contracts:
            (out_dir / f"{name}.bin").write_text(code)
            (out_dir / f"{name}.abi").write_text(json.dumps(ESCROW_ABI))
        return process_result(command=call.command)

    return handler


def _supervisor(node_up: bool = True, spawn=None) -> LocalNodeSupervisor:
    return LocalNodeSupervisor(
        probe=AsyncMock(return_value=node_up),
        spawn=spawn or MagicMock(),
        sleep=AsyncMock(),
    )


def _client_factory(status: int = 1) -> MagicMock:
    client = MagicMock()
    client.deploy_contract.return_value = DeployReceipt(
        transaction_hash=TX_HASH, contract_address=CONTRACT_ADDRESS, status=status
    )
    return MagicMock(return_value=client)


class TestContractFilename:
    """Test the generated file name."""

    def test_extension_added_once(self):
        assert contract_filename("Escrow") == "Escrow.sol"
        assert contract_filename("Escrow.sol") == "Escrow.sol"

    def test_missing_name(self):
        assert contract_filename(None) == "Contract.sol"

    def test_path_components_dropped(self):
        assert contract_filename("../../etc/Escrow") == "Escrow.sol"


class TestEthereumGenerator:
    """Test Solidity generation."""

    @pytest.mark.asyncio
    async def test_escrow_generates_named_source(self, test_settings, renderer):
        generator = EthereumContractGenerator(test_settings, renderer=renderer)
        result = await generator.generate(_json_upload(ESCROW_SPEC))

        assert result.is_success
        artifact = result.value
        assert artifact.filename == "Escrow.sol"
        assert artifact.content_type == "text/plain"
        assert "contract Escrow {" in artifact.content.decode()

    @pytest.mark.asyncio
    async def test_html_encoded_specification(self, test_settings, renderer):
        raw = b"{&quot;name&quot;: &quot;Escrow&quot;}"
        generator = EthereumContractGenerator(test_settings, renderer=renderer)
        result = await generator.generate(UploadedFile.from_bytes("escrow.json", raw))
        assert result.is_success
        assert result.value.filename == "Escrow.sol"

    @pytest.mark.asyncio
    async def test_content_type_accepts_json_without_extension(self, test_settings, renderer):
        upload = UploadedFile.from_bytes("spec", b'{"name": "Escrow"}', content_type="application/json; charset=utf-8")
        result = await EthereumContractGenerator(test_settings, renderer=renderer).generate(upload)
        assert result.is_success

    @pytest.mark.asyncio
    @pytest.mark.parametrize("upload,message", [
        (UploadedFile.from_bytes("escrow.txt", b"{}"), messages.INVALID_JSON_FILE),
        (UploadedFile.from_bytes("escrow.json", b""), messages.EMPTY_JSON),
        (UploadedFile.from_bytes("escrow.json", b"   "), messages.EMPTY_JSON),
        (UploadedFile.from_bytes("escrow.json", b"[1, 2]"), messages.JSON_NOT_OBJECT),
    ])
    async def test_rejected_specifications(self, test_settings, renderer, upload, message):
        result = await EthereumContractGenerator(test_settings, renderer=renderer).generate(upload)
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message == message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document,filename", [
        ({}, "Contract.sol"),
        ({"name": "  "}, "Contract.sol"),
        ({"name": "Token.sol"}, "Token.sol"),
    ])
    async def test_declaration_matches_filename(self, test_settings, renderer, document, filename):
        result = await EthereumContractGenerator(test_settings, renderer=renderer).generate(_json_upload(document))

        assert result.is_success
        assert result.value.filename == filename
        assert f"contract {filename[:-4]} {{" in result.value.content.decode()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["My Escrow", "1stEscrow", "../../etc/Escrow", "Escrow-V2"])
    async def test_invalid_contract_name(self, test_settings, renderer, name):
        result = await EthereumContractGenerator(test_settings, renderer=renderer).generate(
            _json_upload({"name": name})
        )
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message == messages.INVALID_CONTRACT_NAME.format(name=name)

    @pytest.mark.asyncio
    async def test_malformed_json(self, test_settings, renderer):
        result = await EthereumContractGenerator(test_settings, renderer=renderer).generate(
            UploadedFile.from_bytes("escrow.json", b'{"name": ')
        )
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message.startswith("The specification is not valid JSON")

    @pytest.mark.asyncio
    async def test_oversized_specification(self, test_settings, renderer):
        small = test_settings.model_copy(update={"max_upload_bytes": 8})
        result = await EthereumContractGenerator(small, renderer=renderer).generate(_json_upload(ESCROW_SPEC))
        assert result.error.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(self, test_settings):
        broken = MagicMock()
        broken.render.side_effect = RuntimeError("disk on fire")
        result = await EthereumContractGenerator(test_settings, renderer=broken).generate(_json_upload(ESCROW_SPEC))
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert "disk on fire" not in result.error.message
        assert "op=" in result.error.message


class TestEthereumCompiler:
    """Test solc compilation."""

    @pytest.mark.asyncio
    async def test_non_solidity_rejected_before_compiler(self, test_settings, fake_runner):
        compiler = EthereumContractCompiler(test_settings, runner=fake_runner)
        result = await compiler.compile(UploadedFile.from_bytes("Escrow.txt", b"contract Escrow {}"))

        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message == messages.INVALID_SOLIDITY_FILE
        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_empty_source_rejected(self, test_settings, fake_runner):
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("Escrow.sol", b"")
        )
        assert result.error.message == messages.EMPTY_FILE
        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_successful_compile(self, test_settings, fake_runner, workspace_root):
        fake_runner.on("solc", _solc_writes(("Escrow", "6080604052")))
        compiler = EthereumContractCompiler(test_settings, runner=fake_runner)
        result = await compiler.compile(UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {}"))

        assert result.is_success
        artifact = result.value
        assert artifact.bytecode == b"6080604052"
        assert artifact.bytecode_filename == "Escrow.bin"
        assert artifact.schema_filename == "Escrow.abi"
        assert json.loads(artifact.schema_data) == ESCROW_ABI

        call = fake_runner.calls[0]
        assert call.args[:3] == ["--abi", "--bin", "--optimize"]
        assert call.args[-1].startswith("contract_")
        assert call.timeout == test_settings.toolchain.solc_timeout
        assert leftover_workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_prefers_contract_matching_upload_name(self, test_settings, fake_runner):
        fake_runner.on("solc", _solc_writes(("SafeMath", "60806040aaaaaaaaaaaa"), ("Escrow", "6080")))
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {}")
        )
        assert result.value.bytecode == b"6080"

    @pytest.mark.asyncio
    async def test_falls_back_to_largest_bytecode(self, test_settings, fake_runner):
        fake_runner.on("solc", _solc_writes(("Lib", "60"), ("Main", "6080604052")))
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("upload.sol", b"contract Main {}")
        )
        assert result.value.bytecode == b"6080604052"
        assert result.value.bytecode_filename == "upload.bin"

    @pytest.mark.asyncio
    async def test_compiler_diagnostic_returned_verbatim(self, test_settings, fake_runner, workspace_root):
        diagnostic = "ParserError: Expected ';' but got '}'\n --> contract.sol:3:1:"
        fake_runner.on_result("solc", exit_code=1, stderr=diagnostic + "\n")
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {")
        )

        assert result.error.kind == ErrorKind.EXTERNAL_TOOL
        assert result.error.kind.status == "bad_request"
        assert diagnostic in result.error.message
        assert leftover_workspaces(workspace_root) == []

    @pytest.mark.asyncio
    async def test_silent_failure_is_infrastructure(self, test_settings, fake_runner):
        fake_runner.on_result("solc", exit_code=137)
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {}")
        )
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert result.error.message == messages.COMPILER_FAILED.format(exit_code=137)

    @pytest.mark.asyncio
    async def test_timeout_is_infrastructure(self, test_settings, fake_runner):
        fake_runner.on_result("solc", exit_code=-1, timed_out=True, stderr="Process timed out after 120 seconds")
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {}")
        )
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert result.error.message == messages.COMPILER_TIMED_OUT.format(timeout=120.0)

    @pytest.mark.asyncio
    async def test_missing_outputs(self, test_settings, fake_runner):
        result = await EthereumContractCompiler(test_settings, runner=fake_runner).compile(
            UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {}")
        )
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert result.error.message == messages.NOT_FOUND_BIN

    @pytest.mark.asyncio
    async def test_missing_compiler_binary(self, test_settings):
        class MissingRunner:
            async def run(self, command, *args, **kwargs):
                raise ProcessLaunchError(command, "No such file or directory")

        result = await EthereumContractCompiler(test_settings, runner=MissingRunner()).compile(
            UploadedFile.from_bytes("Escrow.sol", b"contract Escrow {}")
        )
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert result.error.message == messages.FAILED_TO_START_PROCESS.format(command="solc")


class TestEthereumDeployer:
    """Test web3 deployment."""

    def _bytecode(self, code=b"6080604052"):
        return UploadedFile.from_bytes("Escrow.bin", code)

    def _abi(self, abi=None):
        return UploadedFile.from_bytes("Escrow.abi", json.dumps(ESCROW_ABI if abi is None else abi).encode())

    @pytest.mark.asyncio
    async def test_successful_deploy(self, test_settings, workspace_root):
        factory = _client_factory()
        deployer = EthereumContractDeployer(test_settings, supervisor=_supervisor(), client_factory=factory)
        result = await deployer.deploy(self._bytecode(), self._abi())

        assert result.is_success
        assert result.value.address == CONTRACT_ADDRESS
        assert result.value.success
        assert result.value.transaction_id == TX_HASH

        client = factory.return_value
        kwargs = client.deploy_contract.call_args.kwargs
        assert kwargs["bytecode"] == "0x6080604052"
        assert kwargs["abi"] == ESCROW_ABI
        assert kwargs["gas_limit"] == test_settings.ethereum.gas_limit

    @pytest.mark.asyncio
    async def test_reverted_deploy_reports_failure_flag(self, test_settings):
        deployer = EthereumContractDeployer(
            test_settings, supervisor=_supervisor(), client_factory=_client_factory(status=0)
        )
        result = await deployer.deploy(self._bytecode(), self._abi())
        assert result.is_success
        assert result.value.success is False

    @pytest.mark.asyncio
    async def test_abi_required(self, test_settings):
        factory = _client_factory()
        deployer = EthereumContractDeployer(test_settings, supervisor=_supervisor(), client_factory=factory)
        result = await deployer.deploy(self._bytecode(), None)
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message == messages.REQUIRED_ABI
        factory.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bytecode,abi,message", [
        (UploadedFile.from_bytes("Escrow.wasm", b"60"), None, messages.INVALID_BYTECODE_FILE.format(extension=".bin")),
        (UploadedFile.from_bytes("Escrow.bin", b""), None, messages.EMPTY_BYTECODE),
        (UploadedFile.from_bytes("Escrow.bin", b"60"), UploadedFile.from_bytes("Escrow.json", b"[]"),
         messages.INVALID_ABI_FILE),
        (UploadedFile.from_bytes("Escrow.bin", b"60"), UploadedFile.from_bytes("Escrow.abi", b""),
         messages.EMPTY_ABI),
        (UploadedFile.from_bytes("Escrow.bin", b"not hex"), None, messages.INVALID_BYTECODE_FILE.format(extension=".bin")),
        (UploadedFile.from_bytes("Escrow.bin", b"60"), UploadedFile.from_bytes("Escrow.abi", b'{"a": 1}'),
         messages.INVALID_ABI_FILE),
    ])
    async def test_invalid_files(self, test_settings, bytecode, abi, message):
        abi = abi or self._abi()
        factory = _client_factory()
        deployer = EthereumContractDeployer(test_settings, supervisor=_supervisor(), client_factory=factory)
        result = await deployer.deploy(bytecode, abi)
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.message == message
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_configuration(self, test_settings):
        settings = test_settings.model_copy(update={"ethereum": EthereumSettings(private_key="not-a-key")})
        supervisor = _supervisor()
        deployer = EthereumContractDeployer(settings, supervisor=supervisor, client_factory=_client_factory())
        result = await deployer.deploy(self._bytecode(), self._abi())
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert result.error.message.startswith("Chain configuration is invalid")
        supervisor.probe.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreachable_node_and_failed_start(self, test_settings):
        spawn = MagicMock(side_effect=ProcessLaunchError("ganache", "No such file or directory"))
        factory = _client_factory()
        deployer = EthereumContractDeployer(
            test_settings, supervisor=_supervisor(node_up=False, spawn=spawn), client_factory=factory
        )
        result = await deployer.deploy(self._bytecode(), self._abi())

        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert result.error.message == messages.FAILED_TO_START_NODE.format(
            chain="Ethereum", detail="No such file or directory"
        )
        spawn.assert_called_once_with("ganache", ["--deterministic", "--port", "8545"])
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_remote_node_is_never_started(self, test_settings):
        settings = test_settings.model_copy(update={
            "ethereum": EthereumSettings(rpc_url="http://10.1.2.3:8545", private_key=TEST_PRIVATE_KEY),
        })
        spawn = MagicMock()
        factory = _client_factory()
        deployer = EthereumContractDeployer(
            settings, supervisor=_supervisor(node_up=False, spawn=spawn), client_factory=factory
        )
        result = await deployer.deploy(self._bytecode(), self._abi())

        assert result.error.message == messages.NODE_NOT_RUNNING.format(
            chain="Ethereum", host="10.1.2.3", port=8545
        )
        spawn.assert_not_called()
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_error_is_infrastructure(self, test_settings):
        factory = _client_factory()
        factory.return_value.deploy_contract.side_effect = ConnectionError("connection refused")
        deployer = EthereumContractDeployer(test_settings, supervisor=_supervisor(), client_factory=factory)
        result = await deployer.deploy(self._bytecode(), self._abi())
        assert result.error.kind == ErrorKind.INFRASTRUCTURE
        assert "connection refused" in result.error.message

    @pytest.mark.asyncio
    async def test_prefixed_bytecode_kept(self, test_settings):
        factory = _client_factory()
        deployer = EthereumContractDeployer(test_settings, supervisor=_supervisor(), client_factory=factory)
        await deployer.deploy(self._bytecode(b"0x6080\n"), self._abi())
        assert factory.return_value.deploy_contract.call_args.kwargs["bytecode"] == "0x6080"
