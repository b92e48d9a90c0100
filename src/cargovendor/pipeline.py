"""End-to-end vendoring: lock files in, vendor farm and Cargo config out."""

from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path

from cargovendor.cargo_config import render_cargo_config, write_cargo_config
from cargovendor.config import Capabilities, VendorSettings, detect_capabilities
from cargovendor.fetchers import FetchedPackage, Fetcher, fetcher_for, make_fetchers
from cargovendor.hashes import (
    HashStore,
    Prefetcher,
    compute_git_hashes,
    discover_hash_caches,
    resolve_hashes,
    write_hash_overlay,
)
from cargovendor.lockfile.io import discover_lockfiles, load_lockset
from cargovendor.lockfile.model import LockSet
from cargovendor.observability import StructuredLogger
from cargovendor.sources import ClassifiedPackage, SourceKind, classify_all
from cargovendor.vendor import assign_basenames, build_vendor_farm, remove_vendor_farm


@dataclass(frozen=True, slots=True)
class ResolvedLock:
    lockset: LockSet
    packages: tuple[ClassifiedPackage, ...]
    store: HashStore
    overlay: dict[str, str]
    hashes: dict[str, str]


@dataclass(slots=True)
class VendorResult:
    lockset: LockSet
    fetched: list[FetchedPackage]
    vendor_dir: Path
    cargo_config_path: Path
    cargo_config: str
    hash_overlay: dict[str, str] = field(default_factory=dict)
    hash_overlay_path: Path | None = None


def resolve(
    settings: VendorSettings,
    *,
    capabilities: Capabilities,
    prefetch: Prefetcher | None = None,
    events: StructuredLogger | None = None,
) -> ResolvedLock:
    """Load, classify, and hash every vendorable package."""
    events = events or StructuredLogger()
    lockfiles = discover_lockfiles(settings)
    lockset = load_lockset(settings)
    packages = classify_all(lockset.vendorable())
    events.log(
        operation="vendor",
        stage="lockfile",
        message=f"loaded {len(packages)} vendorable package(s)",
        extra={"lockfiles": [str(path) for path in lockfiles]},
    )

    store = HashStore.load(discover_hash_caches(settings, lockfiles))
    overlay = compute_git_hashes(
        packages,
        store,
        settings=settings,
        capabilities=capabilities,
        prefetch=prefetch,
        events=events,
    )
    hashes = resolve_hashes(
        packages,
        lockset,
        store,
        overlay,
        hash_cache_path=settings.project_hash_cache_path,
    )
    return ResolvedLock(
        lockset=lockset,
        packages=packages,
        store=store,
        overlay=overlay,
        hashes=hashes,
    )


def fetch_all(
    packages: tuple[ClassifiedPackage, ...],
    hashes: Mapping[str, str],
    *,
    settings: VendorSettings,
    fetchers: Mapping[SourceKind, Fetcher],
    events: StructuredLogger | None = None,
) -> list[FetchedPackage]:
    """Fetch packages concurrently; the first failure cancels the rest and propagates."""
    basenames = assign_basenames(packages)
    settings.sources_dir.mkdir(parents=True, exist_ok=True)
    workers = max(1, min(settings.max_workers, len(packages) or 1))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(
                fetcher_for(item, fetchers).fetch,
                item,
                sha256=hashes[item.package_id],
                dest=settings.sources_dir / basenames[item.package_id],
            ): item
            for item in packages
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        for future in done:
            error = future.exception()
            if error is not None:
                if events is not None:
                    events.log(
                        operation="vendor",
                        stage="fetch",
                        package=futures[future].package_id,
                        message=str(error).splitlines()[0],
                        level="error",
                    )
                raise error

    fetched = [future.result() for future in futures]
    if events is not None:
        for entry in fetched:
            events.log(operation="vendor", stage="fetch", package=entry.package_id, message="fetched")
    return fetched


def vendor(
    settings: VendorSettings,
    *,
    capabilities: Capabilities | None = None,
    fetchers: Mapping[SourceKind, Fetcher] | None = None,
    prefetch: Prefetcher | None = None,
    events: StructuredLogger | None = None,
) -> VendorResult:
    events = events or StructuredLogger()
    capabilities = capabilities if capabilities is not None else detect_capabilities()
    clear_vendor_output(settings)
    resolved = resolve(settings, capabilities=capabilities, prefetch=prefetch, events=events)

    fetched = fetch_all(
        resolved.packages,
        resolved.hashes,
        settings=settings,
        fetchers=fetchers if fetchers is not None else make_fetchers(settings, capabilities),
        events=events,
    )
    vendor_dir = build_vendor_farm(fetched, settings.vendor_dir)
    events.log(
        operation="vendor",
        stage="farm",
        message=f"linked {len(fetched)} package(s)",
        extra={"path": str(vendor_dir)},
    )

    config_text = render_cargo_config(
        resolved.packages,
        vendor_dir.resolve(),
        default_branch=settings.default_branch,
    )
    config_path = write_cargo_config(config_text, settings.cargo_config_path)
    overlay_path = (
        write_hash_overlay(resolved.overlay, settings.hash_overlay_path) if resolved.overlay else None
    )
    events.log(
        operation="vendor",
        stage="config",
        message="wrote cargo config",
        extra={"path": str(config_path), "new_hashes": len(resolved.overlay)},
    )
    return VendorResult(
        lockset=resolved.lockset,
        fetched=fetched,
        vendor_dir=vendor_dir,
        cargo_config_path=config_path,
        cargo_config=config_text,
        hash_overlay=resolved.overlay,
        hash_overlay_path=overlay_path,
    )


def clear_vendor_output(settings: VendorSettings) -> None:
    """Drop the farm, config and overlay of an earlier run before vendoring again."""
    remove_vendor_farm(settings.vendor_dir)
    settings.cargo_config_path.unlink(missing_ok=True)
    settings.hash_overlay_path.unlink(missing_ok=True)


def render_config_only(settings: VendorSettings) -> str:
    """Render the Cargo config for ``settings`` without fetching anything."""
    lockset = load_lockset(settings)
    packages = classify_all(lockset.vendorable())
    return render_cargo_config(
        packages,
        settings.vendor_dir.resolve(),
        default_branch=settings.default_branch,
    )
