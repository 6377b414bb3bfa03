"""Template filters and tests shared by the chain templates."""

import re
from typing import Any, Callable, Dict

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_WORD_SPLIT = re.compile(r"[_\- ]+")

# Anchor/Solana primitive aliases
_RUST_TYPES = {
    "string": "String",
    "int": "i64",
    "uint": "u64",
    "bool": "bool",
    "pubkey": "Pubkey",
    "bytes": "Vec<u8>",
    "float": "f64",
}

_ANCHOR_ACCOUNT_TYPES = {
    "token": "Account<'info, TokenAccount>",
    "mint": "Account<'info, Mint>",
    "system": "Program<'info, System>",
    "associated_token": "Program<'info, AssociatedToken>",
    "signer": "Signer<'info>",
}

# Solidity primitive aliases
_SOLIDITY_TYPES = {
    "string": "string",
    "int": "int256",
    "uint": "uint256",
    "bool": "bool",
    "boolean": "bool",
    "address": "address",
    "bytes": "bytes",
}

_SCRYPTO_TYPES = {
    "string": "String",
    "str": "&str",
    "int": "i64",
    "i32": "i32",
    "i64": "i64",
    "uint": "u64",
    "u32": "u32",
    "u64": "u64",
    "u128": "u128",
    "bool": "bool",
    "boolean": "bool",
    "decimal": "Decimal",
    "precisedecimal": "PreciseDecimal",
    "bytes": "Vec<u8>",
    "float": "Decimal",
    "f32": "f32",
    "f64": "f64",
    "address": "ComponentAddress",
    "componentaddress": "ComponentAddress",
    "globaladdress": "GlobalAddress",
    "resource": "ResourceAddress",
    "resourceaddress": "ResourceAddress",
    "bucket": "Bucket",
    "vault": "Vault",
    "proof": "Proof",
    "keyvaluestore": "KeyValueStore",
    "owned": "Owned",
    "global": "Global",
    "fungibleresource": "FungibleResource",
    "nonfungibleresource": "NonFungibleResource",
    "nonfungiblelocalid": "NonFungibleLocalId",
    "accessrule": "AccessRule",
    "role": "Role",
    "badge": "Badge",
}

_SCRYPTO_DEFAULTS = {
    "string": "String::new()",
    "str": '""',
    "i32": "0i32",
    "i64": "0i64",
    "u32": "0u32",
    "u64": "0u64",
    "u128": "0u128",
    "bool": "false",
    "decimal": "Decimal::zero()",
    "precisedecimal": "PreciseDecimal::zero()",
    "bytes": "Vec::new()",
    "vault": "Vault::new(XRD)",
    "keyvaluestore": "KeyValueStore::new()",
    "globaladdress": "GlobalAddress::default()",
    "nonfungiblelocalid": "NonFungibleLocalId::integer(0)",
}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def snake_case(value: Any) -> str:
    """ListNft -> list_nft"""
    return _CAMEL_BOUNDARY.sub(r"\1_\2", _text(value)).lower()


def pascal_case(value: Any) -> str:
    """list_nft / list-nft / list nft -> ListNft"""
    words = [w for w in _WORD_SPLIT.split(_text(value).strip()) if w]
    return "".join(w[0].upper() + w[1:].lower() for w in words)


def camel_case(value: Any) -> str:
    words = [w for w in _WORD_SPLIT.split(_text(value).strip()) if w]
    if not words:
        return ""
    return words[0].lower() + "".join(w[0].upper() + w[1:].lower() for w in words[1:])


def rust_type(value: Any) -> str:
    text = _text(value)
    return _RUST_TYPES.get(text, text)


def anchor_account_type(value: Any) -> str:
    text = _text(value)
    return _ANCHOR_ACCOUNT_TYPES.get(text, text)


def solidity_type(value: Any) -> str:
    text = _text(value)
    return _SOLIDITY_TYPES.get(text.lower(), text)


def scrypto_type(value: Any) -> str:
    if value is None:
        return "String"
    text = _text(value)
    return _SCRYPTO_TYPES.get(text.lower(), pascal_case(text) or text)


def default_value(value: Any) -> str:
    """Rust expression initialising a Scrypto field of the given type."""
    text = _text(value)
    default = _SCRYPTO_DEFAULTS.get(text.lower())
    if default is not None:
        return default
    return f"{pascal_case(text) or text}::default()"


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def is_empty(value: Any) -> bool:
    return not has_value(value)


FILTERS: Dict[str, Callable[..., Any]] = {
    "snake_case": snake_case,
    "pascal_case": pascal_case,
    "camel_case": camel_case,
    "rust_type": rust_type,
    "anchor_account_type": anchor_account_type,
    "solidity_type": solidity_type,
    "scrypto_type": scrypto_type,
    "default_value": default_value,
}

TESTS: Dict[str, Callable[..., bool]] = {
    "has_value": has_value,
    "empty_value": is_empty,
}
