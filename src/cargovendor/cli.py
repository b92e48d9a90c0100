"""Command line interface.

Usage:
    cargovendor vendor --project-root . --output build/vendor
    cargovendor config --project-root . --output build/vendor
    cargovendor prefetch --project-root .
    cargovendor generate --project-root . --output build/vendor
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from cargovendor.config import (
    DEFAULT_BRANCH,
    DEFAULT_REGISTRY_DOWNLOAD_URL,
    VendorSettings,
    detect_capabilities,
)
from cargovendor.errors import CargoVendorError, GeneratorError
from cargovendor.generator import run_generator
from cargovendor.hashes import merge_hash_cache
from cargovendor.observability import StructuredLogger
from cargovendor.pipeline import render_config_only, resolve, vendor

EXIT_FAILURE = 1
EXIT_GENERATOR_FAILURE = 3


def cmd_vendor(args: argparse.Namespace, settings: VendorSettings, events: StructuredLogger) -> None:
    result = vendor(settings, events=events)
    print(f"Vendored {len(result.fetched)} package(s) into {result.vendor_dir}")
    print(f"Cargo config: {result.cargo_config_path}")
    if result.hash_overlay_path is not None:
        print(f"New git hashes: {result.hash_overlay_path}")


def cmd_config(args: argparse.Namespace, settings: VendorSettings, events: StructuredLogger) -> None:
    sys.stdout.write(render_config_only(settings))


def cmd_prefetch(args: argparse.Namespace, settings: VendorSettings, events: StructuredLogger) -> None:
    resolved = resolve(settings, capabilities=detect_capabilities(), events=events)
    if not resolved.overlay:
        print("All git packages already have hashes.")
        return
    path = merge_hash_cache(settings.project_hash_cache_path, resolved.overlay)
    print(f"Added {len(resolved.overlay)} hash(es) to {path}")


def cmd_generate(args: argparse.Namespace, settings: VendorSettings, events: StructuredLogger) -> None:
    result = vendor(settings, events=events)
    run = run_generator(
        settings=settings,
        config_text=result.cargo_config,
        output_path=args.generator_output,
        command=tuple(args.generator),
        extra_args=tuple(args.generator_arg),
    )
    print(f"Generated {run.output_path}")


COMMANDS = {
    "vendor": cmd_vendor,
    "config": cmd_config,
    "prefetch": cmd_prefetch,
    "generate": cmd_generate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cargovendor",
        description="Vendor Cargo.lock dependencies for offline, reproducible builds",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project-root", type=Path, default=Path("."), help="Crate/workspace root")
    common.add_argument("--cargo-toml", default="Cargo.toml", help="Manifest path relative to the root")
    common.add_argument(
        "--additional-sources",
        type=Path,
        default=None,
        help="Directory whose subdirectories each carry an extra Cargo.lock",
    )
    common.add_argument("--output", type=Path, default=Path("cargo-vendor"), help="Output directory")
    common.add_argument("--cache-dir", type=Path, default=None, help="Fetch cache directory")
    common.add_argument(
        "--hash-cache",
        type=Path,
        action="append",
        default=[],
        help="Extra cargovendor-hashes.json file (repeatable, later files win)",
    )
    common.add_argument("--registry-url", default=DEFAULT_REGISTRY_DOWNLOAD_URL, help="Crate download root")
    common.add_argument("--default-branch", default=DEFAULT_BRANCH, help="Branch pinned for short git revisions")
    common.add_argument("--jobs", type=int, default=8, help="Concurrent fetches")
    common.add_argument("--offline", action="store_true", help="Only use cached downloads")
    common.add_argument("--no-compute-hashes", action="store_true", help="Never hash uncached git sources")
    common.add_argument("--log-file", type=Path, default=None, help="Write JSON-lines events here")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("vendor", parents=[common], help="Fetch sources, build the vendor farm and config")
    sub.add_parser("config", parents=[common], help="Print the Cargo source-replacement config")
    sub.add_parser("prefetch", parents=[common], help="Hash uncached git sources into cargovendor-hashes.json")
    generate_p = sub.add_parser("generate", parents=[common], help="Vendor, then run the generator")
    generate_p.add_argument("--generator", nargs="+", default=["crate2nix", "generate"])
    generate_p.add_argument("--generator-arg", action="append", default=[])
    generate_p.add_argument("--generator-output", type=Path, default=None)
    return parser


def settings_from_args(args: argparse.Namespace) -> VendorSettings:
    return VendorSettings(
        project_root=args.project_root,
        output_dir=args.output,
        cargo_toml=args.cargo_toml,
        additional_sources_dir=args.additional_sources,
        cache_dir=args.cache_dir,
        hash_cache_paths=tuple(args.hash_cache),
        registry_download_url=args.registry_url,
        default_branch=args.default_branch,
        max_workers=args.jobs,
        network_mode="offline" if args.offline else "online",
        compute_missing_hashes=not args.no_compute_hashes,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    events = StructuredLogger()
    try:
        COMMANDS[args.command](args, settings_from_args(args), events)
    except GeneratorError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return EXIT_GENERATOR_FAILURE
    except CargoVendorError as exc:
        print(f"error[{exc.code}]: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        if args.log_file is not None:
            events.to_json_lines(args.log_file)
    return 0
