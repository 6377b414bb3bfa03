"""Solana chain: Anchor workspace generation, anchor build, solana program deploy."""

import logging
import re
import shutil
from pathlib import Path
from typing import Dict, Optional

from contracts import (
    APPLICATION_JSON,
    APPLICATION_ZIP,
    ChainTarget,
    CompiledArtifact,
    DeploymentResult,
    ErrorKind,
    GeneratedArtifact,
    OCTET_STREAM,
    Result,
    UploadedFile,
)
from toolchain import run_blocking, safe_extract_zip, zip_directory

from . import messages
from .artifacts import find_companion_schema, find_files, find_primary_module
from .base import (
    ContractCompiler,
    ContractDeployer,
    ContractGenerator,
    guarded,
    parse_specification,
    sanitize_project_name,
    tool_failure,
    validate_specification_upload,
    validate_upload,
)
from .node import parse_endpoint

logger = logging.getLogger(__name__)

NAME_PREFIX = "anchor_"
DEFAULT_NAME = "anchor_contract"
SCAFFOLD_PROGRAM = "anchor_program"
DEFAULT_RPC_PORT = 8899
DEFAULT_WALLET = "~/.config/solana/id.json"

_CARGO_NAME = re.compile(r'^(\s*name\s*=\s*)".*?"', re.MULTILINE)
_LOCALNET_SECTION = re.compile(r"^\[programs\.localnet\][^\[]*", re.MULTILINE)
_PROGRAM_ID = re.compile(r"Program I[dD]:\s+([1-9A-HJ-NP-Za-km-z]+)")
_SIGNATURE = re.compile(r"Signature:\s+([1-9A-HJ-NP-Za-km-z]+)")


def rewrite_cargo_names(text: str, crate_name: str) -> str:
    return _CARGO_NAME.sub(lambda m: f'{m.group(1)}"{crate_name}"', text)


def update_anchor_toml(text: str, crate_name: str, program_id: str) -> str:
    """Point [programs.localnet] at the generated program and pin the provider."""
    section = f'[programs.localnet]\n{crate_name} = "{program_id}"\n\n'
    if _LOCALNET_SECTION.search(text):
        text = _LOCALNET_SECTION.sub(lambda _: section, text, count=1)
    else:
        text = section + text

    if re.search(r"^\[provider\]", text, re.MULTILINE):
        text = re.sub(r"^cluster\s*=.*$", 'cluster = "localnet"', text, flags=re.MULTILINE)
        text = re.sub(r"^wallet\s*=.*$", f'wallet = "{DEFAULT_WALLET}"', text, flags=re.MULTILINE)
    else:
        text = text.rstrip("\n") + f'\n\n[provider]\ncluster = "localnet"\nwallet = "{DEFAULT_WALLET}"\n'
    return text


def find_sccache() -> Optional[str]:
    found = shutil.which("sccache")
    if found:
        return found
    cargo_bin = Path.home() / ".cargo" / "bin" / "sccache"
    return str(cargo_bin) if cargo_bin.is_file() else None


def build_environment() -> Dict[str, str]:
    """sccache when available (it does not work with incremental builds)."""
    sccache = find_sccache()
    if sccache:
        logger.info("Using sccache for anchor build: %s", sccache)
        return {"RUSTC_WRAPPER": sccache}
    return {"CARGO_INCREMENTAL": "1"}


def parse_deploy_output(output: str) -> Dict[str, str]:
    parsed = {}
    program = _PROGRAM_ID.search(output)
    if program:
        parsed["program_id"] = program.group(1)
    signature = _SIGNATURE.search(output)
    if signature:
        parsed["signature"] = signature.group(1)
    return parsed


class SolanaContractGenerator(ContractGenerator):
    chain = ChainTarget.SOLANA

    @guarded("generate")
    async def generate(self, specification: UploadedFile) -> Result[GeneratedArtifact]:
        problem = validate_specification_upload(specification, self.settings.max_upload_bytes)
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        parsed = await parse_specification(specification)
        if not parsed.is_success:
            return parsed
        document = parsed.value

        slug = sanitize_project_name(
            document.get("name") or document.get("programName"), NAME_PREFIX, DEFAULT_NAME
        )
        crate_name = slug.replace("-", "_")
        program_id = str(document.get("programId") or self.settings.solana.default_program_id)

        rendered = self.renderer.render(self.chain, {**document, "programName": crate_name, "programId": program_id})
        if not rendered.is_success:
            return rendered

        scaffold = self.settings.get_scaffolds_path() / "anchor"
        if not (scaffold / "Anchor.toml").is_file():
            logger.error("Anchor scaffold missing at %s", scaffold)
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.ANCHOR_PROJECT_NOT_FOUND)

        with self.workspace() as ws:
            project = ws.path / slug
            await run_blocking(
                self._build_project, scaffold, project, slug, crate_name, program_id, rendered.value
            )
            archive = await run_blocking(zip_directory, project)

        return Result.ok(GeneratedArtifact(content=archive, filename=f"{slug}.zip", content_type=APPLICATION_ZIP))

    @staticmethod
    def _build_project(
        scaffold: Path,
        project: Path,
        slug: str,
        crate_name: str,
        program_id: str,
        source: str,
    ) -> None:
        shutil.copytree(scaffold, project)

        programs = project / "programs"
        program_dir = programs / slug
        if slug != SCAFFOLD_PROGRAM and (programs / SCAFFOLD_PROGRAM).is_dir():
            (programs / SCAFFOLD_PROGRAM).rename(program_dir)
        (program_dir / "src").mkdir(parents=True, exist_ok=True)
        (program_dir / "src" / "lib.rs").write_text(source, encoding="utf-8")

        cargo = program_dir / "Cargo.toml"
        if cargo.is_file():
            cargo.write_text(rewrite_cargo_names(cargo.read_text(encoding="utf-8"), crate_name), encoding="utf-8")

        anchor_toml = project / "Anchor.toml"
        anchor_toml.write_text(
            update_anchor_toml(anchor_toml.read_text(encoding="utf-8"), crate_name, program_id),
            encoding="utf-8",
        )


class SolanaContractCompiler(ContractCompiler):
    """Builds an uploaded Anchor workspace archive with `anchor build`."""

    chain = ChainTarget.SOLANA

    @guarded("compile")
    async def compile(self, source: UploadedFile) -> Result[CompiledArtifact]:
        problem = validate_upload(source, [".zip"], self.settings.max_upload_bytes, messages.INVALID_ZIP_FILE)
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        toolchain = self.settings.toolchain
        with self.workspace() as ws:
            archive = await run_blocking(source.save_to, ws.path / "upload.zip")
            await run_blocking(safe_extract_zip, archive, ws.subdir("project"))
            archive.unlink()

            manifests = find_files(ws.path / "project", "Anchor.toml")
            if not manifests:
                return Result.fail(ErrorKind.VALIDATION, messages.ANCHOR_PROJECT_NOT_FOUND)
            project = min(manifests, key=lambda p: len(p.parts)).parent

            result = await self.runner.run(
                toolchain.anchor,
                ["build"],
                work_dir=project,
                timeout=toolchain.anchor_timeout,
                env=build_environment(),
            )
            if not result.success:
                return tool_failure(
                    result,
                    messages.COMPILER_TIMED_OUT.format(timeout=toolchain.anchor_timeout),
                    messages.COMPILER_FAILED.format(exit_code=result.exit_code),
                )

            program = find_primary_module(project / "target" / "deploy", ".so")
            if program is None:
                return Result.fail(ErrorKind.INFRASTRUCTURE, messages.NOT_FOUND_SO)
            idl = find_companion_schema(
                program.stem,
                project / "target" / "idl",
                extensions=(".json",),
                patterns=("*.json",),
            )
            if idl is None:
                logger.warning("No IDL produced for %s", program.name)

            return Result.ok(CompiledArtifact(
                bytecode=program.read_bytes(),
                bytecode_filename=program.name,
                content_type=OCTET_STREAM,
                schema_data=idl.read_bytes() if idl else None,
                schema_filename=idl.name if idl else None,
                schema_content_type=APPLICATION_JSON if idl else None,
            ))


class SolanaContractDeployer(ContractDeployer):
    """Deploys a compiled program (.so) with the solana CLI.

    The optional companion upload is the payer wallet keypair (.json);
    without it the configured keypair is used, created on first use.
    """

    chain = ChainTarget.SOLANA

    @guarded("deploy")
    async def deploy(
        self,
        bytecode: UploadedFile,
        schema: Optional[UploadedFile] = None,
    ) -> Result[DeploymentResult]:
        limit = self.settings.max_upload_bytes
        problem = validate_upload(
            bytecode,
            [".so"],
            limit,
            messages.INVALID_BYTECODE_FILE.format(extension=".so"),
            messages.EMPTY_BYTECODE,
        )
        if not problem and schema is not None:
            problem = validate_upload(
                schema, [".json"], limit, messages.INVALID_KEYPAIR_FILE, messages.EMPTY_KEYPAIR
            )
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        solana = self.settings.solana
        config_error = solana.validation_error()
        if config_error:
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.INVALID_CONFIGURATION.format(detail=config_error))

        toolchain = self.settings.toolchain
        with self.workspace() as ws:
            program = await run_blocking(bytecode.save_to, ws.path / f"{bytecode.stem or 'program'}.so")

            if schema is not None:
                payer = await run_blocking(schema.save_to, ws.path / "wallet-keypair.json")
                logger.info("Using caller-supplied wallet keypair")
            else:
                payer = solana.get_keypair_path()
                if not payer.is_file():
                    created = await self._create_keypair(payer, ws.path)
                    if not created.is_success:
                        return created

            host, port = parse_endpoint(solana.rpc_url, DEFAULT_RPC_PORT)
            ledger = self.settings.get_workspace_root() / "solana-test-ledger"
            node = await self.supervisor.ensure_running(
                "Solana",
                host,
                port,
                toolchain.solana_test_validator,
                ["--rpc-port", str(port), "--ledger", str(ledger), "--quiet"],
                settle_seconds=solana.node_settle_seconds,
                probe_timeout=solana.probe_timeout,
                allow_start=solana.use_local_validator,
            )
            if not node.is_success:
                return node

            program_keypair = ws.path / "program-keypair.json"
            created = await self._create_keypair(program_keypair, ws.path)
            if not created.is_success:
                return created

            result = await self.runner.run(
                toolchain.solana,
                [
                    "program", "deploy", str(program),
                    "--url", solana.rpc_url,
                    "--keypair", str(payer),
                    "--program-id", str(program_keypair),
                ],
                work_dir=ws.path,
                timeout=toolchain.deploy_timeout,
            )
            if not result.success:
                return tool_failure(
                    result,
                    messages.DEPLOY_TIMED_OUT.format(timeout=toolchain.deploy_timeout),
                    messages.DEPLOY_FAILED.format(detail=f"exit code {result.exit_code}"),
                )

            parsed = parse_deploy_output(result.stdout)
            if "program_id" not in parsed:
                logger.error("solana program deploy output had no Program Id: %s", result.combined_output())
                return Result.fail(ErrorKind.INFRASTRUCTURE, messages.ADDRESS_NOT_FOUND)

            return Result.ok(DeploymentResult(
                address=parsed["program_id"],
                success=True,
                transaction_id=parsed.get("signature", ""),
            ))

    async def _create_keypair(self, path: Path, work_dir: Path) -> Result[Path]:
        toolchain = self.settings.toolchain
        path.parent.mkdir(parents=True, exist_ok=True)
        result = await self.runner.run(
            toolchain.solana_keygen,
            ["new", "-o", str(path), "--no-bip39-passphrase", "--force"],
            work_dir=work_dir,
            timeout=toolchain.keygen_timeout,
        )
        if not result.success:
            return Result.fail(
                ErrorKind.INFRASTRUCTURE,
                messages.KEYGEN_FAILED.format(detail=result.error_message()),
            )
        return Result.ok(path)
