"""Content hash resolution for vendored packages.

Registry packages take their hash from Cargo.lock: the package's own
``checksum`` field first, then the legacy ``[metadata]`` table. Git packages
take theirs from ``cargovendor-hashes.json`` caches first, then from an
overlay of freshly computed tree hashes. Fresh computation needs network
access and recursive submodule support from the host's git; without them an
uncached git package stays unresolved.

The generator's ``crate-hashes.json`` holds Nix NAR hashes for git packages
and is never read or written here.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from cargovendor.config import Capabilities, VendorSettings
from cargovendor.errors import MissingHashError, ValidationError
from cargovendor.fetch.git import fetch_git
from cargovendor.lockfile.model import LockSet, PackageRecord
from cargovendor.observability import StructuredLogger
from cargovendor.sources import ClassifiedPackage, GitSource

Prefetcher = Callable[[GitSource], str]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HashStore:
    hashes: dict[str, str] = field(default_factory=dict)
    paths: tuple[Path, ...] = ()

    @classmethod
    def load(cls, paths: Iterable[str | Path]) -> HashStore:
        merged: dict[str, str] = {}
        loaded: list[Path] = []
        for raw_path in paths:
            path = Path(raw_path)
            if not path.is_file():
                continue
            merged.update(_read_hash_file(path))
            loaded.append(path)
        return cls(hashes=merged, paths=tuple(loaded))

    def get(self, package_id: str) -> str | None:
        return self.hashes.get(package_id)


def discover_hash_caches(settings: VendorSettings, lockfiles: Iterable[Path]) -> list[Path]:
    """Caches next to each lock file, then explicitly configured ones."""
    candidates = [path.parent / settings.project_hash_cache_path.name for path in lockfiles]
    candidates.extend(settings.hash_cache_paths)
    ordered: list[Path] = []
    for candidate in candidates:
        if candidate not in ordered:
            ordered.append(candidate)
    return ordered


def registry_hash(package: PackageRecord, lockset: LockSet) -> str:
    if package.checksum:
        return package.checksum
    legacy = lockset.legacy_checksum(package)
    if legacy:
        return legacy
    raise MissingHashError(
        f"Checksum for {package.package_id} not found in Cargo.lock.",
        package_id=package.package_id,
        hint="Regenerate Cargo.lock with cargo so every registry package carries a checksum.",
    )


def git_hash(
    package: PackageRecord,
    store: HashStore,
    overlay: Mapping[str, str],
    *,
    hash_cache_path: Path,
) -> str:
    stored = store.get(package.package_id)
    if stored:
        return stored
    computed = overlay.get(package.package_id)
    if computed:
        return computed
    raise MissingHashError(
        f"Checksum for {package.package_id} not found in {hash_cache_path.name}.",
        package_id=package.package_id,
        hint=f'Add "{package.package_id}": "<sha256>" to {hash_cache_path} and re-run.',
    )


def git_prefetcher(settings: VendorSettings) -> Prefetcher:
    def prefetch(source: GitSource) -> str:
        checkout = fetch_git(
            source.url,
            rev=source.rev,
            tree_hash=None,
            cache_dir=settings.resolved_cache_dir / "git",
            submodules=True,
            settings=settings,
        )
        return checkout.tree_hash

    return prefetch


def compute_git_hashes(
    packages: Iterable[ClassifiedPackage],
    store: HashStore,
    *,
    settings: VendorSettings,
    capabilities: Capabilities,
    prefetch: Prefetcher | None = None,
    events: StructuredLogger | None = None,
) -> dict[str, str]:
    """Hash git packages missing from ``store``; returns the new overlay entries."""
    missing = [
        item
        for item in packages
        if isinstance(item.provenance, GitSource) and store.get(item.package_id) is None
    ]
    if not missing:
        return {}
    if not settings.compute_missing_hashes:
        return {}
    if settings.network_mode == "offline":
        logger.warning("offline; %d git package(s) stay unhashed", len(missing))
        return {}
    if not capabilities.git_submodules:
        logger.warning(
            "git lacks recursive submodule clone support; %d git package(s) stay unhashed",
            len(missing),
        )
        return {}

    prefetch = prefetch or git_prefetcher(settings)
    by_revision: dict[tuple[str, str], str] = {}
    overlay: dict[str, str] = {}
    for item in missing:
        source = item.provenance
        key = (source.url, source.rev)
        if key not in by_revision:
            by_revision[key] = prefetch(source)
            if events is not None:
                events.log(
                    operation="vendor",
                    stage="hashes",
                    package=item.package_id,
                    message="computed tree hash",
                    extra={"url": source.url, "rev": source.rev},
                )
        overlay[item.package_id] = by_revision[key]
    return overlay


def resolve_hashes(
    packages: Iterable[ClassifiedPackage],
    lockset: LockSet,
    store: HashStore,
    overlay: Mapping[str, str],
    *,
    hash_cache_path: Path,
) -> dict[str, str]:
    resolved: dict[str, str] = {}
    for item in packages:
        if item.provenance.kind == "crates-io":
            resolved[item.package_id] = registry_hash(item.package, lockset)
        elif item.provenance.kind == "git":
            resolved[item.package_id] = git_hash(
                item.package, store, overlay, hash_cache_path=hash_cache_path
            )
        else:
            raise ValidationError(
                "Local packages do not carry hashes.",
                context={"package": item.package_id},
            )
    return resolved


def write_hash_overlay(overlay: Mapping[str, str], path: str | Path) -> Path:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(dict(sorted(overlay.items())), indent=2) + "\n",
        encoding="utf-8",
    )
    return output_path


def merge_hash_cache(path: str | Path, overlay: Mapping[str, str]) -> Path:
    """Fold ``overlay`` into the persistent cache at ``path``."""
    cache_path = Path(path)
    existing = _read_hash_file(cache_path) if cache_path.is_file() else {}
    existing.update(overlay)
    return write_hash_overlay(existing, cache_path)


def _read_hash_file(path: Path) -> dict[str, str]:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "Hash cache is not valid JSON.",
            hint=str(exc),
            context={"path": str(path)},
        ) from exc
    if not isinstance(parsed, dict):
        raise ValidationError(
            "Hash cache must be a JSON object.",
            context={"path": str(path)},
        )
    for key, value in parsed.items():
        if not isinstance(value, str):
            raise ValidationError(
                "Hash cache values must be strings.",
                context={"path": str(path), "package": key},
            )
    return dict(parsed)
