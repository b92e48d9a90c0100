"""Deterministic content hashing and copying of source trees."""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path

VCS_METADATA = frozenset({".git"})

_CHUNK = 1 << 16


def hash_tree(root: str | Path) -> str:
    """Return a sha256 over paths, entry kinds, exec bits, and contents below ``root``.

    Version-control metadata is skipped at every level so a checkout and its
    exported copy hash identically.
    """
    base = Path(root)
    digest = hashlib.sha256()
    for path in _walk(base):
        rel = path.relative_to(base).as_posix()
        if path.is_symlink():
            digest.update(f"symlink\0{rel}\0{os.readlink(path)}\0".encode())
        elif path.is_dir():
            digest.update(f"dir\0{rel}\0".encode())
        else:
            executable = bool(path.stat().st_mode & 0o111)
            digest.update(f"file\0{rel}\0{int(executable)}\0".encode())
            digest.update(_file_digest(path).encode("ascii"))
            digest.update(b"\0")
    return digest.hexdigest()


def copy_tree(source: Path, dest: Path) -> None:
    """Copy ``source`` into ``dest`` without version-control metadata."""
    shutil.copytree(
        source,
        dest,
        symlinks=True,
        ignore=shutil.ignore_patterns(*VCS_METADATA),
        dirs_exist_ok=True,
    )


def _walk(base: Path) -> list[Path]:
    entries: list[Path] = []
    for child in sorted(base.iterdir(), key=lambda item: item.name):
        if child.name in VCS_METADATA:
            continue
        entries.append(child)
        if child.is_dir() and not child.is_symlink():
            entries.extend(_walk(child))
    return entries


def _file_digest(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
