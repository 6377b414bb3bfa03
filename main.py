#!/usr/bin/env python3
"""scgen CLI - generate, compile and deploy smart contracts across chains.

Usage:
    # Render a Solidity contract from a JSON specification
    python main.py generate ethereum ./escrow.json -o ./out

    # Compile an Anchor workspace archive
    python main.py compile solana ./token_vesting.zip -o ./out

    # Publish a Scrypto package to resim
    python main.py deploy radix ./out/my_vault.wasm --schema ./out/my_vault.rpd

    # Which native toolchains are installed?
    python main.py toolchains
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from chains import ContractServiceFactory, list_toolchains
from config import settings
from contracts import CHAIN_ALIASES, Result, UnsupportedChainError, UploadedFile

console = Console()

CHAIN_CHOICE = click.Choice(sorted(CHAIN_ALIASES.keys()), case_sensitive=False)


def configure_logging(level: str) -> None:
    """Route stdlib logging through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _print_failure(result: Result) -> None:
    error = result.error
    console.print(f"[red]Error ({error.kind.value}, {error.kind.status}):[/red] {error.message}")


def _write(output_dir: Path, filename: str, content: bytes) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    path.write_bytes(content)
    return path


def _factory(chain: str) -> ContractServiceFactory:
    factory = ContractServiceFactory()
    try:
        # Resolve early so an unsupported selector fails before any I/O
        factory.get_generator(chain)
    except UnsupportedChainError as exc:
        raise click.BadParameter(str(exc), param_hint="CHAIN") from exc
    return factory


@click.group()
@click.option(
    "--log-level", "-l",
    default=None,
    help=f"Log level (default: {settings.log_level})"
)
def cli(log_level: Optional[str]):
    """Generate, compile and deploy smart contracts."""
    configure_logging(log_level or settings.log_level)


@cli.command()
@click.argument("chain", type=CHAIN_CHOICE)
@click.argument("specification", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output", "-o", "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("./outputs"),
    show_default=True,
    help="Directory the generated source/archive is written to"
)
def generate(chain: str, specification: Path, output_dir: Path):
    """Render SPECIFICATION (JSON) into contract source for CHAIN."""
    factory = _factory(chain)
    result = asyncio.run(factory.get_generator(chain).generate(UploadedFile.from_path(specification)))
    if not result.is_success:
        _print_failure(result)
        sys.exit(1)

    artifact = result.value
    path = _write(output_dir, artifact.filename, artifact.content)
    console.print(f"[green]Generated:[/green] {path} ({artifact.content_type}, {len(artifact.content):,} bytes)")


@cli.command(name="compile")
@click.argument("chain", type=CHAIN_CHOICE)
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output", "-o", "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("./outputs"),
    show_default=True,
    help="Directory the compiled bytecode and schema are written to"
)
def compile_command(chain: str, source: Path, output_dir: Path):
    """Compile SOURCE (.sol or project .zip) with CHAIN's native toolchain."""
    factory = _factory(chain)
    result = asyncio.run(factory.get_compiler(chain).compile(UploadedFile.from_path(source)))
    if not result.is_success:
        _print_failure(result)
        sys.exit(1)

    artifact = result.value
    path = _write(output_dir, artifact.bytecode_filename, artifact.bytecode)
    console.print(f"[green]Bytecode:[/green] {path} ({artifact.content_type}, {len(artifact.bytecode):,} bytes)")
    if artifact.has_schema:
        schema_path = _write(output_dir, artifact.schema_filename, artifact.schema_data)
        console.print(f"[green]Schema:[/green]   {schema_path}")
    else:
        console.print("[dim]No companion schema produced[/dim]")


@cli.command()
@click.argument("chain", type=CHAIN_CHOICE)
@click.argument("bytecode", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--schema", "-s",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Companion file: .abi (ethereum), keypair .json (solana), .rpd (radix)"
)
def deploy(chain: str, bytecode: Path, schema: Optional[Path]):
    """Deploy compiled BYTECODE to CHAIN."""
    factory = _factory(chain)
    companion = UploadedFile.from_path(schema) if schema else None
    result = asyncio.run(factory.get_deployer(chain).deploy(UploadedFile.from_path(bytecode), companion))
    if not result.is_success:
        _print_failure(result)
        sys.exit(1)

    deployment = result.value
    status = "[green]success[/green]" if deployment.success else "[red]reverted[/red]"
    console.print(f"[bold]Status:[/bold]      {status}")
    console.print(f"[bold]Address:[/bold]     {deployment.address}")
    console.print(f"[bold]Transaction:[/bold] {deployment.transaction_id or '-'}")
    if not deployment.success:
        sys.exit(1)


@cli.command()
def toolchains():
    """Show which native toolchain binaries are on PATH."""
    table = Table(title="Toolchains")
    table.add_column("Binary")
    table.add_column("Status")
    table.add_column("Path", style="dim")
    for binary, path in list_toolchains().items():
        status = "[green]found[/green]" if path else "[red]missing[/red]"
        table.add_row(binary, status, path or "")
    console.print(table)


if __name__ == "__main__":
    cli()
