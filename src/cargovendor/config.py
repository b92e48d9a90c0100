"""Vendoring settings, network policy, and host capability detection."""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from cargovendor.errors import PolicyError

NetworkMode = Literal["online", "offline"]

DEFAULT_REGISTRY_DOWNLOAD_URL = "https://static.crates.io/crates"
DEFAULT_BRANCH = "master"
# Tree hashes computed by fetch.tree.hash_tree. Kept apart from the generator's
# crate-hashes.json, whose git entries are Nix NAR hashes.
HASH_CACHE_FILENAME = "cargovendor-hashes.json"
GENERATOR_HASHES_FILENAME = "crate-hashes.json"

# `git clone --recurse-submodules` first shipped with git 2.13.
SUBMODULE_CLONE_MIN_GIT = (2, 13)

_GIT_VERSION_PATTERN = re.compile(r"git version (\d+)\.(\d+)")


@dataclass(frozen=True, slots=True)
class VendorSettings:
    project_root: Path
    output_dir: Path
    cargo_toml: str = "Cargo.toml"
    additional_sources_dir: Path | None = None
    cache_dir: Path | None = None
    hash_cache_paths: tuple[Path, ...] = ()
    registry_download_url: str = DEFAULT_REGISTRY_DOWNLOAD_URL
    default_branch: str = DEFAULT_BRANCH
    max_workers: int = 8
    network_mode: NetworkMode = "online"
    compute_missing_hashes: bool = True

    @property
    def cargo_toml_path(self) -> Path:
        return self.project_root / self.cargo_toml

    @property
    def lockfile_path(self) -> Path:
        return self.cargo_toml_path.parent / "Cargo.lock"

    @property
    def project_hash_cache_path(self) -> Path:
        return self.lockfile_path.parent / HASH_CACHE_FILENAME

    @property
    def project_generator_hashes_path(self) -> Path:
        return self.lockfile_path.parent / GENERATOR_HASHES_FILENAME

    @property
    def resolved_cache_dir(self) -> Path:
        return self.cache_dir if self.cache_dir is not None else self.output_dir / "cache"

    @property
    def vendor_dir(self) -> Path:
        return self.output_dir / "vendor"

    @property
    def sources_dir(self) -> Path:
        return self.output_dir / "sources"

    @property
    def cargo_home(self) -> Path:
        return self.output_dir / "cargo"

    @property
    def cargo_config_path(self) -> Path:
        return self.cargo_home / "config.toml"

    @property
    def hash_overlay_path(self) -> Path:
        return self.output_dir / HASH_CACHE_FILENAME


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Host fetch capabilities, resolved once per invocation."""

    git_submodules: bool = False
    git_version: tuple[int, ...] = field(default_factory=tuple)


def detect_capabilities(git: str = "git") -> Capabilities:
    if shutil.which(git) is None:
        return Capabilities()
    completed = subprocess.run(
        [git, "--version"],
        check=False,
        text=True,
        capture_output=True,
    )
    match = _GIT_VERSION_PATTERN.search(completed.stdout)
    if completed.returncode != 0 or match is None:
        return Capabilities()
    version = (int(match.group(1)), int(match.group(2)))
    return Capabilities(
        git_submodules=version >= SUBMODULE_CLONE_MIN_GIT,
        git_version=version,
    )


def ensure_network_allowed(*, settings: VendorSettings | None, operation: str) -> None:
    if settings is not None and settings.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by settings.",
            hint="Populate the fetch cache first or switch network_mode to 'online'.",
            context={"operation": operation},
        )
