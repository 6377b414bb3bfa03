"""Configuration settings for the smart-contract pipeline."""

# Load .env into os.environ so toolchain overrides (e.g. SCGEN_ETHEREUM__PRIVATE_KEY) work
from dotenv import load_dotenv

load_dotenv()

import re
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).resolve().parent
_HEX_KEY = re.compile(r"^0x[0-9a-fA-F]{64}$")
_BASE58_KEY = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
_PROFILE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


class ToolchainSettings(BaseModel):
    """Native toolchain binaries and their timeouts (seconds)."""

    solc: str = "solc"
    anchor: str = "anchor"
    scrypto: str = "scrypto"
    resim: str = "resim"
    solana: str = "solana"
    solana_keygen: str = "solana-keygen"
    ganache: str = "ganache"
    solana_test_validator: str = "solana-test-validator"

    solc_timeout: float = Field(default=120.0, gt=0)
    anchor_timeout: float = Field(default=900.0, gt=0)
    scrypto_timeout: float = Field(default=300.0, gt=0)
    deploy_timeout: float = Field(default=300.0, gt=0)
    keygen_timeout: float = Field(default=60.0, gt=0)
    default_timeout: float = Field(default=900.0, gt=0)


class EthereumSettings(BaseModel):
    """EVM chain settings (env: SCGEN_ETHEREUM__<KEY>)."""

    rpc_url: str = Field(default="http://127.0.0.1:8545", description="JSON-RPC endpoint")
    private_key: str = Field(default="", description="Deployer private key, 0x-prefixed hex")
    gas_limit: int = Field(default=3_000_000, description="Gas ceiling for the deploy transaction")
    receipt_timeout: float = Field(default=120.0, description="Seconds to wait for the deploy receipt")
    start_local_node: bool = Field(default=True, description="Start ganache when the RPC port is closed")
    node_settle_seconds: float = Field(default=1.0, ge=0.0)
    probe_timeout: float = Field(default=3.0, gt=0.0)

    def validation_error(self) -> Optional[str]:
        """Return a message describing the first invalid field, or None."""
        if not self.rpc_url.strip():
            return "Ethereum RPC URL is required"
        if not self.private_key.strip():
            return "Ethereum private key is required"
        if not _is_http_url(self.rpc_url):
            return "Ethereum RPC URL must be an absolute http(s) URL"
        if not _HEX_KEY.match(self.private_key):
            return "Ethereum private key must be 0x followed by 64 hex characters"
        if self.gas_limit < 21000:
            return "Ethereum gas limit must be at least 21000"
        return None


class SolanaSettings(BaseModel):
    """Anchor/Solana chain settings (env: SCGEN_SOLANA__<KEY>)."""

    rpc_url: str = Field(default="http://127.0.0.1:8899", description="Cluster RPC endpoint")
    pubkey: str = Field(default="", description="Deployer public key (base58)")
    keypair_path: str = Field(
        default="~/.config/solana/id.json",
        description="Payer keypair used when the caller does not upload one",
    )
    use_local_validator: bool = Field(default=True, description="Start solana-test-validator when needed")
    node_settle_seconds: float = Field(default=6.0, ge=0.0)
    probe_timeout: float = Field(default=3.0, gt=0.0)
    default_program_id: str = Field(default="Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS")

    def validation_error(self) -> Optional[str]:
        if not self.rpc_url.strip():
            return "Solana RPC URL is required"
        if not self.pubkey.strip():
            return "Solana public key is required"
        if not _is_http_url(self.rpc_url):
            return "Solana RPC URL must be an absolute http(s) URL"
        if not _BASE58_KEY.match(self.pubkey):
            return "Solana public key must be a base58 string"
        return None

    def get_keypair_path(self) -> Path:
        return Path(self.keypair_path).expanduser()


class RadixSettings(BaseModel):
    """Radix/Scrypto settings (env: SCGEN_RADIX__<KEY>)."""

    use_resim: bool = Field(default=True, description="Deploy against the local resim simulator")
    profile: str = Field(default="default", description="Simulator account profile name")
    account_address: str = Field(default="", description="Existing simulator account to deploy from")
    auto_fund_account: bool = Field(
        default=True,
        description="Create (and fund) a simulator account when none exists",
    )
    scrypto_version: str = Field(default="1.3.0", description="Pinned scrypto crate version")

    def validation_error(self) -> Optional[str]:
        if not self.use_resim:
            return "Radix deployment requires the local simulator (use_resim)"
        if not _PROFILE_NAME.match(self.profile or ""):
            return "Radix profile name must be a non-empty slug"
        return None


class Settings(BaseSettings):
    """Global settings for the pipeline.

    Settings can be overridden via environment variables with SCGEN_ prefix.
    Nested sections use a double underscore.
    Example: SCGEN_ETHEREUM__RPC_URL=http://localhost:7545
    """

    # Paths
    templates_dir: str = Field(
        default=str(_PACKAGE_ROOT / "templating" / "templates"),
        description="Directory holding the per-chain source templates",
    )
    scaffolds_dir: str = Field(
        default=str(_PACKAGE_ROOT / "templating" / "scaffolds"),
        description="Directory holding the pre-baked project scaffolds",
    )
    workspace_root: str = Field(
        default=str(Path(tempfile.gettempdir()) / "scgen-workspaces"),
        description="Parent directory for per-request workspaces",
    )

    # Upload limits
    max_upload_bytes: int = Field(
        default=100 * 1024 * 1024,
        gt=0,
        description="Largest accepted upload (100 MiB)",
    )

    log_level: str = Field(default="INFO", description="Root log level used by the CLI")

    toolchain: ToolchainSettings = Field(default_factory=ToolchainSettings)
    ethereum: EthereumSettings = Field(default_factory=EthereumSettings)
    solana: SolanaSettings = Field(default_factory=SolanaSettings)
    radix: RadixSettings = Field(default_factory=RadixSettings)

    model_config = {
        "env_prefix": "SCGEN_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    def get_templates_path(self) -> Path:
        """Get templates path as Path object."""
        return Path(self.templates_dir)

    def get_scaffolds_path(self) -> Path:
        """Get scaffolds path as Path object."""
        return Path(self.scaffolds_dir)

    def get_workspace_root(self) -> Path:
        """Get workspace root as Path object."""
        return Path(self.workspace_root)


# Create singleton instance
settings = Settings()
