"""Cargo source-replacement configuration rendering."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

from cargovendor.config import DEFAULT_BRANCH
from cargovendor.sources import ClassifiedPackage, GitSource, is_full_commit

VENDORED_SOURCES = "vendored-sources"


def render_cargo_config(
    packages: Iterable[ClassifiedPackage],
    vendor_dir: str | Path,
    *,
    default_branch: str = DEFAULT_BRANCH,
) -> str:
    lines = [
        "[source.crates-io]",
        f"replace-with = {_quote(VENDORED_SOURCES)}",
    ]
    for source in unique_git_sources(packages):
        lines.append("")
        lines.append(f"[source.{_quote(source.url)}]")
        lines.append(f"git = {_quote(source.url)}")
        lines.append(f"rev = {_quote(source.rev)}")
        if not is_full_commit(source.rev):
            lines.append(f"branch = {_quote(source.branch or default_branch)}")
        lines.append(f"replace-with = {_quote(VENDORED_SOURCES)}")
    lines.append("")
    lines.append(f"[source.{VENDORED_SOURCES}]")
    lines.append(f"directory = {_quote(str(vendor_dir))}")
    return "\n".join(lines) + "\n"


def unique_git_sources(packages: Iterable[ClassifiedPackage]) -> list[GitSource]:
    """Git sources in first-seen order, one per url."""
    seen: dict[str, GitSource] = {}
    for item in packages:
        source = item.provenance
        if isinstance(source, GitSource) and source.url not in seen:
            seen[source.url] = source
    return list(seen.values())


def write_cargo_config(text: str, path: str | Path) -> Path:
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(text, encoding="utf-8")
    return config_path


def _quote(value: str) -> str:
    # JSON string escapes are valid TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)
