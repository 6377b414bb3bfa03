"""Factory resolving a chain selector to its Generate/Compile/Deploy components."""

import shutil
from typing import Dict, NamedTuple, Optional, Tuple, Type, Union

from config import Settings, settings as default_settings
from contracts import ChainTarget, resolve_chain
from templating import TemplateRenderer
from toolchain import ProcessRunner

from .base import ChainComponent, ContractCompiler, ContractDeployer, ContractGenerator
from .ethereum import EthereumContractCompiler, EthereumContractDeployer, EthereumContractGenerator
from .ethereum_client import EthereumClientFactory, create_ethereum_client
from .node import LocalNodeSupervisor
from .radix import RadixContractCompiler, RadixContractDeployer, RadixContractGenerator
from .solana import SolanaContractCompiler, SolanaContractDeployer, SolanaContractGenerator


class ChainServices(NamedTuple):
    generator: Type[ContractGenerator]
    compiler: Type[ContractCompiler]
    deployer: Type[ContractDeployer]


# Registry of supported chains
CHAIN_SERVICES: Dict[ChainTarget, ChainServices] = {
    ChainTarget.ETHEREUM: ChainServices(
        EthereumContractGenerator, EthereumContractCompiler, EthereumContractDeployer
    ),
    ChainTarget.SOLANA: ChainServices(
        SolanaContractGenerator, SolanaContractCompiler, SolanaContractDeployer
    ),
    ChainTarget.RADIX: ChainServices(
        RadixContractGenerator, RadixContractCompiler, RadixContractDeployer
    ),
}


class ContractServiceFactory:
    """Hands out chain components that share settings, runner and renderer.

    Components are created on first request and reused afterwards; they keep
    no per-request state.

    Examples:
        factory = ContractServiceFactory()
        result = await factory.get_compiler("solidity").compile(upload)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[ProcessRunner] = None,
        renderer: Optional[TemplateRenderer] = None,
        supervisor: Optional[LocalNodeSupervisor] = None,
        ethereum_client_factory: EthereumClientFactory = create_ethereum_client,
    ):
        self.settings = settings or default_settings
        self.runner = runner or ProcessRunner(default_timeout=self.settings.toolchain.default_timeout)
        self.renderer = renderer or TemplateRenderer(self.settings.get_templates_path())
        self.supervisor = supervisor or LocalNodeSupervisor()
        self.ethereum_client_factory = ethereum_client_factory
        self._instances: Dict[Tuple[str, ChainTarget], ChainComponent] = {}

    def get_generator(self, chain: Union[ChainTarget, str]) -> ContractGenerator:
        return self._get("generator", chain)

    def get_compiler(self, chain: Union[ChainTarget, str]) -> ContractCompiler:
        return self._get("compiler", chain)

    def get_deployer(self, chain: Union[ChainTarget, str]) -> ContractDeployer:
        return self._get("deployer", chain)

    def _get(self, role: str, chain: Union[ChainTarget, str]) -> ChainComponent:
        """Resolve the selector (raising UnsupportedChainError) and build once."""
        target = resolve_chain(chain)
        key = (role, target)
        if key not in self._instances:
            component_cls = getattr(CHAIN_SERVICES[target], role)
            self._instances[key] = self._create(component_cls)
        return self._instances[key]

    def _create(self, component_cls: Type[ChainComponent]) -> ChainComponent:
        kwargs = {"settings": self.settings, "runner": self.runner, "renderer": self.renderer}
        if issubclass(component_cls, ContractDeployer):
            kwargs["supervisor"] = self.supervisor
        if issubclass(component_cls, EthereumContractDeployer):
            kwargs["client_factory"] = self.ethereum_client_factory
        return component_cls(**kwargs)


def list_toolchains(settings: Optional[Settings] = None) -> Dict[str, Optional[str]]:
    """Map each configured toolchain binary to its resolved path (None if missing)."""
    toolchain = (settings or default_settings).toolchain
    binaries = [
        toolchain.solc,
        toolchain.ganache,
        toolchain.anchor,
        toolchain.solana,
        toolchain.solana_keygen,
        toolchain.solana_test_validator,
        toolchain.scrypto,
        toolchain.resim,
    ]
    return {binary: shutil.which(binary) for binary in binaries}
