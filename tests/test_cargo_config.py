import tomllib
from pathlib import Path

from cargovendor.cargo_config import render_cargo_config, unique_git_sources, write_cargo_config
from cargovendor.lockfile import PackageRecord
from cargovendor.sources import CRATES_IO_SOURCE, classify_all

COMMIT = "0123456789abcdef0123456789abcdef01234567"

PACKAGES = classify_all(
    (
        PackageRecord(name="foo", version="1.2.3", source=CRATES_IO_SOURCE, checksum="aa"),
        PackageRecord(name="bar", version="0.1.0", source="git+https://host/bar?rev=shortsha"),
        PackageRecord(name="bar-derive", version="0.1.0", source="git+https://host/bar?rev=shortsha"),
        PackageRecord(name="baz", version="2.0.0", source=f"git+https://host/baz?branch=dev#{COMMIT}"),
        PackageRecord(name="qux", version="0.0.1", source="git+https://host/qux?tag=v1"),
    )
)


def test_render_cargo_config_layout() -> None:
    text = render_cargo_config(PACKAGES, Path("/vendor"))

    assert text == (
        "[source.crates-io]\n"
        'replace-with = "vendored-sources"\n'
        "\n"
        '[source."https://host/bar"]\n'
        'git = "https://host/bar"\n'
        'rev = "shortsha"\n'
        'branch = "master"\n'
        'replace-with = "vendored-sources"\n'
        "\n"
        '[source."https://host/baz"]\n'
        'git = "https://host/baz"\n'
        f'rev = "{COMMIT}"\n'
        'replace-with = "vendored-sources"\n'
        "\n"
        '[source."https://host/qux"]\n'
        'git = "https://host/qux"\n'
        'rev = "v1"\n'
        'branch = "master"\n'
        'replace-with = "vendored-sources"\n'
        "\n"
        "[source.vendored-sources]\n"
        'directory = "/vendor"\n'
    )


def test_render_cargo_config_is_valid_toml() -> None:
    parsed = tomllib.loads(render_cargo_config(PACKAGES, Path("/vendor"), default_branch="main"))

    assert parsed["source"]["crates-io"] == {"replace-with": "vendored-sources"}
    assert parsed["source"]["https://host/bar"]["branch"] == "main"
    assert parsed["source"]["vendored-sources"] == {"directory": "/vendor"}


def test_render_cargo_config_is_deterministic() -> None:
    first = render_cargo_config(PACKAGES, Path("/vendor"))
    second = render_cargo_config(PACKAGES, Path("/vendor"))

    assert first.encode("utf-8") == second.encode("utf-8")


def test_full_commit_revisions_never_get_branch_pin() -> None:
    packages = classify_all(
        (PackageRecord(name="baz", version="2.0.0", source=f"git+https://host/baz#{COMMIT}"),)
    )

    assert "branch" not in render_cargo_config(packages, Path("/vendor"))


def test_unique_git_sources_keeps_first_seen_order() -> None:
    assert [source.url for source in unique_git_sources(PACKAGES)] == [
        "https://host/bar",
        "https://host/baz",
        "https://host/qux",
    ]


def test_registry_only_lock_has_no_git_blocks(tmp_path: Path) -> None:
    packages = classify_all(
        (PackageRecord(name="foo", version="1.2.3", source=CRATES_IO_SOURCE, checksum="aa"),)
    )

    path = write_cargo_config(render_cargo_config(packages, "/vendor"), tmp_path / "cargo" / "config.toml")

    assert path.read_text(encoding="utf-8").count("[source.") == 2
