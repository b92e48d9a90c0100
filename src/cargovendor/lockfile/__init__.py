"""Cargo.lock model, parsing, and merge APIs."""

from .io import (
    discover_lockfiles,
    load_lockset,
    merge_locksets,
    parse_cargo_lock,
    read_cargo_lock,
)
from .model import LockSet, PackageRecord

__all__ = [
    "LockSet",
    "PackageRecord",
    "discover_lockfiles",
    "load_lockset",
    "merge_locksets",
    "parse_cargo_lock",
    "read_cargo_lock",
]
