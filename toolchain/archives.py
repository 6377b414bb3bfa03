"""Zip helpers for packaged projects."""

import io
import zipfile
from pathlib import Path
from typing import List

# Fixed timestamp so identical trees zip to identical bytes
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_SKIP_DIRS = {"target", ".git", "node_modules", ".anchor"}


class ArchiveError(ValueError):
    """The archive is corrupt or tries to write outside the destination."""


def safe_extract_zip(archive: Path, destination: Path) -> List[Path]:
    """Extract archive into destination, rejecting path traversal.

    Returns:
        Extracted file paths

    Raises:
        ArchiveError: Bad zip file or an entry escaping destination
    """
    destination = Path(destination).resolve()
    extracted: List[Path] = []
    try:
        with zipfile.ZipFile(archive) as zf:
            members = zf.infolist()
            for member in members:
                target = (destination / member.filename).resolve()
                if target != destination and destination not in target.parents:
                    raise ArchiveError(f"Archive entry escapes the workspace: {member.filename}")
            for member in members:
                zf.extract(member, destination)
                if not member.is_dir():
                    extracted.append(destination / member.filename)
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Invalid zip archive: {exc}") from exc
    return extracted


def zip_directory(source: Path) -> bytes:
    """Zip the tree under source (relative paths, sorted, fixed timestamps)."""
    source = Path(source)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(source.rglob("*")):
            relative = path.relative_to(source)
            if any(part in _SKIP_DIRS for part in relative.parts):
                continue
            if not path.is_file():
                continue
            info = zipfile.ZipInfo(relative.as_posix(), date_time=_ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            zf.writestr(info, path.read_bytes())
    return buffer.getvalue()
