"""Per-chain template bindings: which template, which defaults, which model transform."""

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from contracts import ChainTarget

SCRYPTO_SBOR = "ScryptoSbor"
_DERIVE_SECTIONS = ("structs", "enums", "events")
_IDENT_WORD = re.compile(r"[A-Za-z0-9]+")

DEFAULT_PROGRAM_ID = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"


def _identity(model: Dict[str, Any]) -> Dict[str, Any]:
    return model


@dataclass(frozen=True)
class ChainTemplate:
    """Binds a chain to its template file and data-model transform."""
    chain: ChainTarget
    template_name: str
    defaults: Dict[str, Any] = field(default_factory=dict)
    prepare: Callable[[Dict[str, Any]], Dict[str, Any]] = _identity

    def build_model(self, specification: Dict[str, Any]) -> Dict[str, Any]:
        """Run the chain transform, then fill in defaults for missing keys."""
        model = self.prepare(copy.deepcopy(specification))
        for key, value in self.defaults.items():
            if model.get(key) is None:
                model[key] = copy.deepcopy(value)
        return model


def merge_template_data(specification: Dict[str, Any]) -> Dict[str, Any]:
    """Lift keys from a nested `templateData` object to the top level.

    Keys already present at the top level are kept.
    """
    merged = {k: v for k, v in specification.items() if k != "templateData"}
    template_data = specification.get("templateData")
    if isinstance(template_data, dict):
        for key, value in template_data.items():
            if merged.get(key) is None:
                merged[key] = value
    return merged


def add_default_derive(model: Dict[str, Any]) -> Dict[str, Any]:
    """Append ScryptoSbor to every declared derive list that lacks it."""
    for section in _DERIVE_SECTIONS:
        items = model.get(section)
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, dict) and isinstance(item.get("derive"), list):
                if SCRYPTO_SBOR not in [str(d) for d in item["derive"]]:
                    item["derive"].append(SCRYPTO_SBOR)
    return model


def _prepare_ethereum(model: Dict[str, Any]) -> Dict[str, Any]:
    name = str(model.get("name") or "").strip()
    if name.lower().endswith(".sol"):
        name = name[:-4]
    if name:
        model["name"] = name
    else:
        model.pop("name", None)
    return model


def _prepare_solana(model: Dict[str, Any]) -> Dict[str, Any]:
    if not model.get("programName") and model.get("name"):
        model["programName"] = model["name"]
    return model


def blueprint_name(raw: Any) -> str:
    """'my vault!' -> 'MyVault'; keeps inner capitals ('MyVault' stays)."""
    words = _IDENT_WORD.findall(str(raw or ""))
    name = "".join(w[0].upper() + w[1:] for w in words)
    if not name:
        return "Blueprint"
    if name[0].isdigit():
        return f"Blueprint{name}"
    return name


def _prepare_radix(model: Dict[str, Any]) -> Dict[str, Any]:
    model = add_default_derive(merge_template_data(model))
    model["blueprintName"] = blueprint_name(model.get("blueprintName") or model.get("name"))
    return model


CHAIN_TEMPLATES: Dict[ChainTarget, ChainTemplate] = {
    ChainTarget.ETHEREUM: ChainTemplate(
        chain=ChainTarget.ETHEREUM,
        template_name="solidity.sol.j2",
        defaults={
            "name": "Contract",
            "license": "MIT",
            "pragma": "^0.8.20",
            "imports": [],
            "stateVariables": [],
            "events": [],
            "errors": [],
            "modifiers": [],
            "functions": [],
        },
        prepare=_prepare_ethereum,
    ),
    ChainTarget.SOLANA: ChainTemplate(
        chain=ChainTarget.SOLANA,
        template_name="anchor_program.rs.j2",
        defaults={
            "imports": ["anchor_lang::prelude::*"],
            "programId": DEFAULT_PROGRAM_ID,
            "instructions": [],
            "accounts": [],
            "states": [],
            "errors": [],
        },
        prepare=_prepare_solana,
    ),
    ChainTarget.RADIX: ChainTemplate(
        chain=ChainTarget.RADIX,
        template_name="scrypto_blueprint.rs.j2",
        defaults={
            "imports": ["scrypto::prelude::*"],
            "structs": [],
            "enums": [],
            "events": [],
            "state": [],
            "functions": [],
            "methods": [],
        },
        prepare=_prepare_radix,
    ),
}
