"""Chain selector contracts."""

from enum import Enum
from typing import Dict, Union


class ChainTarget(str, Enum):
    """Blockchain ecosystem handled by a request."""
    ETHEREUM = "ethereum"  # EVM, Solidity sources
    SOLANA = "solana"  # Anchor workspace, Rust sources
    RADIX = "radix"  # Scrypto package, Rust sources


class UnsupportedChainError(ValueError):
    """Raised when a selector does not name a supported chain."""


# Selector aliases accepted from callers
CHAIN_ALIASES: Dict[str, ChainTarget] = {
    "ethereum": ChainTarget.ETHEREUM,
    "evm": ChainTarget.ETHEREUM,
    "solidity": ChainTarget.ETHEREUM,
    "solana": ChainTarget.SOLANA,
    "rust": ChainTarget.SOLANA,
    "anchor": ChainTarget.SOLANA,
    "radix": ChainTarget.RADIX,
    "scrypto": ChainTarget.RADIX,
}


def resolve_chain(selector: Union[ChainTarget, str]) -> ChainTarget:
    """Resolve a chain selector or alias to a ChainTarget.

    Raises:
        UnsupportedChainError: If the selector is not recognised
    """
    if isinstance(selector, ChainTarget):
        return selector
    key = str(selector or "").strip().lower()
    if key not in CHAIN_ALIASES:
        raise UnsupportedChainError(
            f"Chain '{selector}' is not supported. "
            f"Available: {sorted(CHAIN_ALIASES.keys())}"
        )
    return CHAIN_ALIASES[key]
