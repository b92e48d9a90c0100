"""Cargo.lock discovery, parsing, and merging."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from cargovendor.config import VendorSettings
from cargovendor.errors import MalformedLockFileError
from cargovendor.lockfile.model import LockSet, PackageRecord

LOCKFILE_NAME = "Cargo.lock"

logger = logging.getLogger(__name__)


def parse_cargo_lock(raw: str, *, path: str | Path | None = None) -> LockSet:
    context = {"path": str(path)} if path is not None else {}
    try:
        payload = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise MalformedLockFileError(
            "Invalid Cargo.lock TOML.", hint=str(exc), context=context
        ) from exc

    packages_raw = payload.get("package", [])
    if not isinstance(packages_raw, list):
        raise MalformedLockFileError("Invalid Cargo.lock `package` value.", context=context)
    metadata_raw = payload.get("metadata", {})
    if not isinstance(metadata_raw, dict):
        raise MalformedLockFileError("Invalid Cargo.lock `metadata` value.", context=context)

    packages = tuple(_parse_package(item, context=context) for item in packages_raw)
    metadata: dict[str, str] = {}
    for key, value in metadata_raw.items():
        if not isinstance(value, str):
            raise MalformedLockFileError(
                "Invalid Cargo.lock metadata entry.",
                context={**context, "key": key},
            )
        metadata[key] = value
    return LockSet(packages=packages, metadata=metadata)


def read_cargo_lock(path: str | Path) -> LockSet:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MalformedLockFileError(
            "Cargo.lock does not exist.",
            hint="Run `cargo generate-lockfile` in the project first.",
            context={"path": str(lock_path)},
        ) from exc
    return parse_cargo_lock(raw, path=lock_path)


def discover_lockfiles(settings: VendorSettings) -> list[Path]:
    """Return the root lock file (if present) followed by one per additional source."""
    found: list[Path] = []
    if settings.lockfile_path.is_file():
        found.append(settings.lockfile_path)
    extra_root = settings.additional_sources_dir
    if extra_root is not None and extra_root.is_dir():
        for child in sorted(extra_root.iterdir(), key=lambda item: item.name):
            candidate = child / LOCKFILE_NAME
            if child.is_dir() and candidate.is_file():
                found.append(candidate)
    return found


def merge_locksets(locksets: Iterable[LockSet]) -> LockSet:
    by_id: dict[str, PackageRecord] = {}
    metadata: dict[str, str] = {}
    for lockset in locksets:
        for package in lockset.packages:
            by_id[package.package_id] = package
        metadata.update(lockset.metadata)
    return LockSet(packages=tuple(by_id.values()), metadata=metadata)


def load_lockset(settings: VendorSettings) -> LockSet:
    paths = discover_lockfiles(settings)
    if not paths:
        raise MalformedLockFileError(
            "No Cargo.lock found.",
            hint="Check the project root and cargo_toml settings.",
            context={"path": str(settings.lockfile_path)},
        )
    for path in paths:
        logger.debug("reading lock file %s", path)
    return merge_locksets(read_cargo_lock(path) for path in paths)


def _parse_package(item: Any, *, context: dict[str, str]) -> PackageRecord:
    if not isinstance(item, dict):
        raise MalformedLockFileError("Invalid package entry in Cargo.lock.", context=context)
    return PackageRecord(
        name=_required_str(item, "name", context=context),
        version=_required_str(item, "version", context=context),
        source=_optional_str(item, "source", context=context),
        checksum=_optional_str(item, "checksum", context=context),
    )


def _required_str(payload: dict[str, Any], key: str, *, context: dict[str, str]) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedLockFileError(f"Invalid Cargo.lock package `{key}` value.", context=context)
    return value


def _optional_str(payload: dict[str, Any], key: str, *, context: dict[str, str]) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedLockFileError(f"Invalid Cargo.lock package `{key}` value.", context=context)
    return value
