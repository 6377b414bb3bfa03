"""Radix chain: Scrypto package generation, scrypto build, resim publish."""

import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from contracts import (
    APPLICATION_WASM,
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
from templating import merge_template_data
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

logger = logging.getLogger(__name__)

NAME_PREFIX = "scrypto_"
DEFAULT_NAME = "scrypto_contract"
PACKAGE_MARKER = "Success! New Package: "

_CARGO_NAME = re.compile(r'^(\s*name\s*=\s*)".*?"', re.MULTILINE)
_SCRYPTO_DEPENDENCY = re.compile(r"^scrypto\s*=\s*\{.*?\}", re.MULTILINE | re.DOTALL)
_TRANSACTION_ID = re.compile(r"Transaction ID:\s*(\S+)")


def rewrite_package_manifest(text: str, package_name: str, scrypto_version: str) -> str:
    """Rename the package and pin the scrypto dependency to a released version."""
    text = _CARGO_NAME.sub(lambda m: f'{m.group(1)}"{package_name}"', text)
    return _SCRYPTO_DEPENDENCY.sub(f'scrypto = {{ version = "{scrypto_version}" }}', text)


def extract_package_address(output: str) -> Optional[str]:
    """Address following the resim publish success marker, if any."""
    index = output.find(PACKAGE_MARKER)
    if index == -1:
        return None
    tokens = output[index + len(PACKAGE_MARKER):].split()
    return tokens[0] if tokens else None


class RadixContractGenerator(ContractGenerator):
    chain = ChainTarget.RADIX

    @guarded("generate")
    async def generate(self, specification: UploadedFile) -> Result[GeneratedArtifact]:
        problem = validate_specification_upload(specification, self.settings.max_upload_bytes)
        if problem:
            return Result.fail(ErrorKind.VALIDATION, problem)

        parsed = await parse_specification(specification)
        if not parsed.is_success:
            return parsed
        document = parsed.value

        rendered = self.renderer.render(self.chain, document)
        if not rendered.is_success:
            return rendered

        name = merge_template_data(document).get("name")
        package_name = sanitize_project_name(str(name) if name is not None else None, NAME_PREFIX, DEFAULT_NAME)

        scaffold = self.settings.get_scaffolds_path() / "scrypto"
        if not (scaffold / "Cargo.toml").is_file():
            logger.error("Scrypto scaffold missing at %s", scaffold)
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.SCRYPTO_PROJECT_NOT_FOUND)

        with self.workspace() as ws:
            project = ws.path / package_name
            await run_blocking(self._build_project, scaffold, project, package_name, rendered.value)
            archive = await run_blocking(zip_directory, project)

        return Result.ok(GeneratedArtifact(
            content=archive,
            filename=f"{package_name}.zip",
            content_type=APPLICATION_ZIP,
        ))

    def _build_project(self, scaffold: Path, project: Path, package_name: str, source: str) -> None:
        shutil.copytree(scaffold, project)
        src = project / "src"
        src.mkdir(exist_ok=True)
        (src / "lib.rs").write_text(source, encoding="utf-8")

        cargo = project / "Cargo.toml"
        cargo.write_text(
            rewrite_package_manifest(
                cargo.read_text(encoding="utf-8"), package_name, self.settings.radix.scrypto_version
            ),
            encoding="utf-8",
        )


class RadixContractCompiler(ContractCompiler):
    chain = ChainTarget.RADIX

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

            manifests = find_files(ws.path / "project", "Cargo.toml")
            if not manifests:
                return Result.fail(ErrorKind.VALIDATION, messages.SCRYPTO_PROJECT_NOT_FOUND)
            project = min(manifests, key=lambda p: len(p.parts)).parent

            result = await self.runner.run(
                toolchain.scrypto,
                ["build"],
                work_dir=project,
                timeout=toolchain.scrypto_timeout,
            )
            if not result.success:
                return tool_failure(
                    result,
                    messages.COMPILER_TIMED_OUT.format(timeout=toolchain.scrypto_timeout),
                    messages.COMPILER_FAILED.format(exit_code=result.exit_code),
                )

            wasm = find_primary_module(project / "target", ".wasm")
            if wasm is None:
                return Result.fail(ErrorKind.INFRASTRUCTURE, messages.WASM_FILE_NOT_FOUND)
            schema = find_companion_schema(wasm.stem, wasm.parent, exclude=[wasm])
            if schema is None:
                logger.warning("No package definition found next to %s", wasm.name)

            return Result.ok(CompiledArtifact(
                bytecode=wasm.read_bytes(),
                bytecode_filename=wasm.name,
                content_type=APPLICATION_WASM,
                schema_data=schema.read_bytes() if schema else None,
                schema_filename=schema.name if schema else None,
                schema_content_type=OCTET_STREAM if schema else None,
            ))


class RadixContractDeployer(ContractDeployer):
    """Publishes a Scrypto package to the local resim simulator.

    The package definition (.rpd) is required as the schema companion.
    """

    chain = ChainTarget.RADIX

    def _validate_files(self, wasm: UploadedFile, schema: Optional[UploadedFile]) -> Optional[str]:
        limit = self.settings.max_upload_bytes
        if schema is None:
            return messages.REQUIRED_SCHEMA
        problem = validate_upload(schema, [".rpd"], limit, messages.INVALID_SCHEMA_FILE, messages.EMPTY_SCHEMA)
        if problem:
            return problem
        return validate_upload(
            wasm,
            [".wasm"],
            limit,
            messages.INVALID_BYTECODE_FILE.format(extension=".wasm"),
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

        radix = self.settings.radix
        config_error = radix.validation_error()
        if config_error:
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.INVALID_CONFIGURATION.format(detail=config_error))

        toolchain = self.settings.toolchain
        with self.workspace() as ws:
            # resim looks for the .rpd beside the .wasm under the same stem
            stem = bytecode.stem or "package"
            wasm = await run_blocking(bytecode.save_to, ws.path / f"{stem}.wasm")
            await run_blocking(schema.save_to, ws.path / f"{stem}.rpd")

            account = await self._ensure_account(ws.path)
            if not account.is_success:
                return account

            result = await self.runner.run(
                toolchain.resim,
                ["publish", str(wasm)],
                work_dir=ws.path,
                timeout=toolchain.deploy_timeout,
            )
            if not result.success:
                return tool_failure(
                    result,
                    messages.DEPLOY_TIMED_OUT.format(timeout=toolchain.deploy_timeout),
                    messages.DEPLOY_FAILED.format(detail=f"exit code {result.exit_code}"),
                )

            address = extract_package_address(result.stdout)
            if not address:
                logger.error("resim publish output had no package marker: %s", result.combined_output())
                return Result.fail(ErrorKind.INFRASTRUCTURE, messages.ADDRESS_NOT_FOUND)

            transaction = _TRANSACTION_ID.search(result.stdout)
            logger.info("Published package %s (profile=%s)", address, radix.profile)
            return Result.ok(DeploymentResult(
                address=address,
                success=True,
                transaction_id=transaction.group(1) if transaction else "",
            ))

    async def _ensure_account(self, work_dir: Path) -> Result[bool]:
        """Make sure resim has a default account, creating one when allowed."""
        radix = self.settings.radix
        toolchain = self.settings.toolchain
        show_args = ["show"] + ([radix.account_address] if radix.account_address else [])
        shown = await self.runner.run(
            toolchain.resim, show_args, work_dir=work_dir, timeout=toolchain.keygen_timeout
        )
        if shown.success:
            return Result.ok(True)

        if not radix.auto_fund_account:
            return Result.fail(ErrorKind.INFRASTRUCTURE, messages.NO_ACCOUNT)

        logger.info("No resim account for profile %s; creating one", radix.profile)
        created = await self.runner.run(
            toolchain.resim, ["new-account"], work_dir=work_dir, timeout=toolchain.keygen_timeout
        )
        if not created.success:
            return Result.fail(
                ErrorKind.INFRASTRUCTURE,
                messages.ACCOUNT_SETUP_FAILED.format(detail=created.error_message()),
            )
        return Result.ok(False)
