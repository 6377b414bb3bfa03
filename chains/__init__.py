"""Per-chain Generate/Compile/Deploy components and the factory that selects them."""

from .base import (
    ContractGenerator,
    ContractCompiler,
    ContractDeployer,
    sanitize_project_name,
)
from .ethereum import EthereumContractGenerator, EthereumContractCompiler, EthereumContractDeployer
from .solana import SolanaContractGenerator, SolanaContractCompiler, SolanaContractDeployer
from .radix import RadixContractGenerator, RadixContractCompiler, RadixContractDeployer
from .factory import ContractServiceFactory, CHAIN_SERVICES, list_toolchains

__all__ = [
    # Base
    "ContractGenerator",
    "ContractCompiler",
    "ContractDeployer",
    "sanitize_project_name",
    # Ethereum
    "EthereumContractGenerator",
    "EthereumContractCompiler",
    "EthereumContractDeployer",
    # Solana
    "SolanaContractGenerator",
    "SolanaContractCompiler",
    "SolanaContractDeployer",
    # Radix
    "RadixContractGenerator",
    "RadixContractCompiler",
    "RadixContractDeployer",
    # Factory
    "ContractServiceFactory",
    "CHAIN_SERVICES",
    "list_toolchains",
]
