"""Per-provenance fetchers that produce Cargo directory-source entries."""

from __future__ import annotations

import copy
import json
import logging
import shutil
import tarfile
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from cargovendor.config import Capabilities, VendorSettings
from cargovendor.errors import FetchError, ValidationError
from cargovendor.fetch.git import fetch_git
from cargovendor.fetch.http import fetch_url
from cargovendor.fetch.tree import VCS_METADATA, copy_tree
from cargovendor.lockfile.model import PackageRecord
from cargovendor.sources import ClassifiedPackage, GitSource, SourceKind

CHECKSUM_FILE = ".cargo-checksum.json"
ARCHIVE_SUFFIXES = (".crate", ".tar.gz")

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchedPackage:
    package_id: str
    kind: SourceKind
    basename: str
    path: Path
    hash: str


class Fetcher(Protocol):
    def fetch(self, item: ClassifiedPackage, *, sha256: str, dest: Path) -> FetchedPackage:
        """Fetch, verify, and unpack ``item`` into ``dest``."""


def artifact_name(package: PackageRecord) -> str:
    return f"{package.name}-{package.version}.crate"


def package_basename(package: PackageRecord) -> str:
    name = artifact_name(package)
    for suffix in ARCHIVE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


@dataclass(slots=True)
class RegistryFetcher:
    settings: VendorSettings

    def download_url(self, package: PackageRecord) -> str:
        base = self.settings.registry_download_url.rstrip("/")
        return f"{base}/{package.name}/{artifact_name(package)}"

    def fetch(self, item: ClassifiedPackage, *, sha256: str, dest: Path) -> FetchedPackage:
        archive = fetch_url(
            self.download_url(item.package),
            sha256=sha256,
            cache_dir=self.settings.resolved_cache_dir / "crates",
            settings=self.settings,
        )
        _reset_dir(dest)
        _unpack_crate(archive, dest)
        _write_checksum_marker(dest, sha256)
        return FetchedPackage(
            package_id=item.package_id,
            kind=item.provenance.kind,
            basename=dest.name,
            path=dest,
            hash=sha256,
        )


@dataclass(slots=True)
class GitFetcher:
    settings: VendorSettings
    capabilities: Capabilities

    def fetch(self, item: ClassifiedPackage, *, sha256: str, dest: Path) -> FetchedPackage:
        source = item.provenance
        if not isinstance(source, GitSource):
            raise ValidationError("GitFetcher requires a git source.", context={"package": item.package_id})
        checkout = fetch_git(
            source.url,
            rev=source.rev,
            tree_hash=sha256,
            cache_dir=self.settings.resolved_cache_dir / "git",
            submodules=self.capabilities.git_submodules,
            settings=self.settings,
        )
        _reset_dir(dest)
        copy_tree(locate_crate_dir(checkout.path, item.package.name), dest)
        _write_checksum_marker(dest, None)
        return FetchedPackage(
            package_id=item.package_id,
            kind=source.kind,
            basename=dest.name,
            path=dest,
            hash=sha256,
        )


def make_fetchers(settings: VendorSettings, capabilities: Capabilities) -> dict[SourceKind, Fetcher]:
    return {
        "crates-io": RegistryFetcher(settings),
        "git": GitFetcher(settings, capabilities),
    }


def fetcher_for(item: ClassifiedPackage, fetchers: Mapping[SourceKind, Fetcher]) -> Fetcher:
    fetcher = fetchers.get(item.provenance.kind)
    if fetcher is None:
        raise ValidationError(
            "No fetcher for package source kind.",
            hint="Local workspace packages are never vendored.",
            context={"package": item.package_id, "kind": item.provenance.kind},
        )
    return fetcher


def locate_crate_dir(root: Path, crate_name: str) -> Path:
    """Find the directory whose Cargo.toml declares ``crate_name``.

    Workspace repositories hold several crates; the repository root is
    used when no manifest names the crate.
    """
    manifests = sorted(
        (path for path in root.rglob("Cargo.toml") if not _in_ignored_dir(path, root)),
        key=lambda path: (len(path.relative_to(root).parts), path.as_posix()),
    )
    for manifest in manifests:
        try:
            payload = tomllib.loads(manifest.read_text(encoding="utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError):
            logger.debug("skipping unreadable manifest %s", manifest)
            continue
        package = payload.get("package")
        if isinstance(package, dict) and package.get("name") == crate_name:
            return manifest.parent
    return root


def _in_ignored_dir(path: Path, root: Path) -> bool:
    parts = path.relative_to(root).parts[:-1]
    return any(part in VCS_METADATA or part == "target" for part in parts)


def _reset_dir(dest: Path) -> None:
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.exists():
        shutil.rmtree(dest)
    dest.mkdir(parents=True)


def _unpack_crate(archive: Path, dest: Path) -> None:
    """Extract ``archive`` into ``dest`` dropping its single top-level directory."""
    try:
        with tarfile.open(archive, "r:gz") as tar:
            members: list[tarfile.TarInfo] = []
            for member in tar.getmembers():
                _, sep, rest = member.name.removeprefix("./").partition("/")
                if not sep or not rest:
                    continue
                stripped = copy.copy(member)
                stripped.name = rest
                if member.islnk():
                    stripped.linkname = member.linkname.partition("/")[2]
                members.append(stripped)
            tar.extractall(path=dest, members=members, filter="data")
    except (OSError, tarfile.TarError) as exc:
        raise FetchError(
            "Unable to unpack crate archive.",
            hint="Clear the fetch cache and re-run.",
            context={"operation": "unpack", "archive": str(archive), "error": str(exc)},
        ) from exc


def _write_checksum_marker(dest: Path, sha256: str | None) -> None:
    marker = {"package": sha256, "files": {}}
    (dest / CHECKSUM_FILE).write_text(json.dumps(marker, separators=(",", ":")), encoding="utf-8")
