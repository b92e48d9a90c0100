"""Offline vendoring of Cargo.lock dependencies."""

from .cargo_config import render_cargo_config
from .config import Capabilities, VendorSettings, detect_capabilities
from .errors import (
    CargoVendorError,
    FetchError,
    GeneratorError,
    IntegrityError,
    MalformedLockFileError,
    MissingHashError,
    PolicyError,
    UnknownSourceTypeError,
    ValidationError,
)
from .lockfile import LockSet, PackageRecord, load_lockset, merge_locksets
from .pipeline import VendorResult, render_config_only, vendor
from .sources import GitSource, LocalSource, RegistrySource, classify, parse_git_source

__all__ = [
    "Capabilities",
    "CargoVendorError",
    "FetchError",
    "GeneratorError",
    "GitSource",
    "IntegrityError",
    "LocalSource",
    "LockSet",
    "MalformedLockFileError",
    "MissingHashError",
    "PackageRecord",
    "PolicyError",
    "RegistrySource",
    "UnknownSourceTypeError",
    "ValidationError",
    "VendorResult",
    "VendorSettings",
    "classify",
    "detect_capabilities",
    "load_lockset",
    "merge_locksets",
    "parse_git_source",
    "render_cargo_config",
    "render_config_only",
    "vendor",
]
