"""Locating compiled outputs inside a workspace after a successful build."""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from . import messages

PRIMARY_EXCLUDED_SUFFIX = "_with_schema"
SCHEMA_EXTENSIONS: Tuple[str, ...] = (".rpd", ".schema", ".json")
SCHEMA_PATTERNS: Tuple[str, ...] = ("*.rpd", "*.schema", "*schema*.json")


class ArtifactDiscoveryError(RuntimeError):
    """Compiled outputs exist but cannot be picked unambiguously."""


def find_files(root: Path, pattern: str) -> List[Path]:
    """Files under root matching pattern, in a stable order."""
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob(pattern) if p.is_file())


def find_evm_outputs(output_dir: Path, preferred_stem: str) -> Tuple[Optional[Path], Optional[Path]]:
    """Pick the (.bin, .abi) pair solc wrote for the requested contract.

    The .bin whose stem matches preferred_stem wins; otherwise the largest
    non-empty .bin (ties broken by name). The .abi must share its stem.
    """
    bins = [p for p in find_files(output_dir, "*.bin") if p.stat().st_size > 0]
    if not bins:
        return None, None
    chosen = next((p for p in bins if p.stem == preferred_stem), None)
    if chosen is None:
        chosen = max(bins, key=lambda p: (p.stat().st_size, p.name))
    abi = chosen.with_suffix(".abi")
    return chosen, abi if abi.is_file() else None


def find_primary_module(
    root: Path,
    extension: str,
    skip_dirs: Iterable[str] = ("deps", "build", "incremental"),
) -> Optional[Path]:
    """First compiled module by path order, skipping *_with_schema variants.

    Cargo intermediates (deps/, build/) are ignored.
    """
    skip = set(skip_dirs)
    modules = [
        p for p in find_files(root, f"*{extension}")
        if p.stat().st_size > 0 and not skip.intersection(p.relative_to(root).parts[:-1])
    ]
    primary = [p for p in modules if not p.stem.endswith(PRIMARY_EXCLUDED_SUFFIX)]
    candidates = primary or modules
    return candidates[0] if candidates else None


def find_companion_schema(
    stem: str,
    search_dir: Path,
    extensions: Sequence[str] = SCHEMA_EXTENSIONS,
    patterns: Iterable[str] = SCHEMA_PATTERNS,
    exclude: Iterable[Path] = (),
) -> Optional[Path]:
    """Find the schema belonging to a compiled module.

    An exact stem match (in extension order) wins. Otherwise a search of
    search_dir (not its subdirectories) must turn up exactly one candidate.

    Raises:
        ArtifactDiscoveryError: More than one fallback candidate
    """
    for extension in extensions:
        candidate = search_dir / f"{stem}{extension}"
        if candidate.is_file():
            return candidate

    excluded = {p.resolve() for p in exclude}
    found = []
    for pattern in patterns:
        matches = sorted(p for p in search_dir.glob(pattern) if p.is_file()) if search_dir.is_dir() else []
        for path in matches:
            if path.resolve() not in excluded and path not in found:
                found.append(path)

    if len(found) > 1:
        names = ", ".join(p.name for p in found)
        raise ArtifactDiscoveryError(messages.AMBIGUOUS_SCHEMA.format(candidates=names))
    return found[0] if found else None
