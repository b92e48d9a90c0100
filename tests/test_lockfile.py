from dataclasses import replace
from pathlib import Path

import pytest
from conftest import write_lock

from cargovendor.config import VendorSettings
from cargovendor.errors import MalformedLockFileError
from cargovendor.lockfile import (
    LockSet,
    PackageRecord,
    discover_lockfiles,
    load_lockset,
    merge_locksets,
    parse_cargo_lock,
    read_cargo_lock,
)

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


def test_parse_cargo_lock_reads_packages_and_metadata() -> None:
    lockset = parse_cargo_lock(
        """
version = 3

[[package]]
name = "app"
version = "0.1.0"

[[package]]
name = "foo"
version = "1.2.3"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "abc"

[metadata]
"checksum bar 0.1.0 (registry+https://github.com/rust-lang/crates.io-index)" = "def"
"""
    )

    assert lockset.packages == (
        PackageRecord(name="app", version="0.1.0"),
        PackageRecord(name="foo", version="1.2.3", source=CRATES_IO, checksum="abc"),
    )
    assert lockset.metadata == {f"checksum bar 0.1.0 ({CRATES_IO})": "def"}


def test_parse_cargo_lock_rejects_invalid_toml() -> None:
    with pytest.raises(MalformedLockFileError) as excinfo:
        parse_cargo_lock("[[package]\nname = ", path="broken/Cargo.lock")

    assert excinfo.value.code == "E_MALFORMED_LOCKFILE"
    assert "broken/Cargo.lock" in str(excinfo.value)


def test_parse_cargo_lock_rejects_package_without_version() -> None:
    with pytest.raises(MalformedLockFileError):
        parse_cargo_lock('[[package]]\nname = "foo"\n')


def test_read_cargo_lock_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(MalformedLockFileError) as excinfo:
        read_cargo_lock(tmp_path / "Cargo.lock")

    assert "does not exist" in str(excinfo.value)


def test_identity_key_includes_source() -> None:
    record = PackageRecord(name="foo", version="1.2.3", source=CRATES_IO)

    assert record.package_id == f"foo 1.2.3 ({CRATES_IO})"
    assert PackageRecord(name="app", version="0.1.0").package_id == "app 0.1.0 (None)"


def test_merge_collapses_duplicate_identities_keeping_last_record() -> None:
    first = LockSet(
        packages=(
            PackageRecord(name="foo", version="1.0.0", source=CRATES_IO, checksum="old"),
            PackageRecord(name="bar", version="2.0.0", source=CRATES_IO, checksum="b"),
        ),
        metadata={"k": "first", "only-first": "1"},
    )
    second = LockSet(
        packages=(PackageRecord(name="foo", version="1.0.0", source=CRATES_IO, checksum="new"),),
        metadata={"k": "second"},
    )

    merged = merge_locksets([first, second])

    assert [package.name for package in merged.packages] == ["foo", "bar"]
    assert merged.packages[0].checksum == "new"
    assert merged.metadata == {"k": "second", "only-first": "1"}


def test_merge_with_itself_is_idempotent() -> None:
    lockset = LockSet(
        packages=(
            PackageRecord(name="foo", version="1.0.0", source=CRATES_IO, checksum="a"),
            PackageRecord(name="app", version="0.1.0"),
        ),
        metadata={"k": "v"},
    )

    assert merge_locksets([lockset, lockset]) == merge_locksets([lockset])
    assert merge_locksets([lockset]) == lockset


def test_vendorable_drops_local_members() -> None:
    lockset = LockSet(
        packages=(
            PackageRecord(name="app", version="0.1.0"),
            PackageRecord(name="foo", version="1.0.0", source=CRATES_IO),
        )
    )

    assert [package.name for package in lockset.vendorable()] == ["foo"]


def test_legacy_checksum_ignores_none_placeholder() -> None:
    foo = PackageRecord(name="foo", version="1.0.0", source=CRATES_IO)
    bar = PackageRecord(name="bar", version="1.0.0", source="git+https://h/bar#abc")
    lockset = LockSet(
        packages=(foo, bar),
        metadata={
            f"checksum {foo.package_id}": "feed",
            f"checksum {bar.package_id}": "<none>",
        },
    )

    assert lockset.legacy_checksum(foo) == "feed"
    assert lockset.legacy_checksum(bar) is None


def test_discover_lockfiles_includes_additional_sources_in_name_order(
    settings: VendorSettings,
) -> None:
    write_lock(settings.lockfile_path)
    extra = settings.project_root.parent / "extra"
    write_lock(extra / "zeta" / "Cargo.lock")
    write_lock(extra / "alpha" / "Cargo.lock")
    (extra / "no-lock").mkdir()
    configured = replace(settings, additional_sources_dir=extra)

    assert discover_lockfiles(configured) == [
        settings.lockfile_path,
        extra / "alpha" / "Cargo.lock",
        extra / "zeta" / "Cargo.lock",
    ]


def test_load_lockset_merges_root_and_additional_sources(settings: VendorSettings) -> None:
    write_lock(
        settings.lockfile_path,
        {"name": "app", "version": "0.1.0"},
        {"name": "foo", "version": "1.0.0", "source": CRATES_IO, "checksum": "a"},
    )
    extra = settings.project_root.parent / "extra"
    write_lock(
        extra / "tool" / "Cargo.lock",
        {"name": "foo", "version": "1.0.0", "source": CRATES_IO, "checksum": "a"},
        {"name": "baz", "version": "3.0.0", "source": CRATES_IO, "checksum": "c"},
    )

    lockset = load_lockset(replace(settings, additional_sources_dir=extra))

    assert [package.name for package in lockset.packages] == ["app", "foo", "baz"]


def test_load_lockset_fails_without_any_lockfile(settings: VendorSettings) -> None:
    with pytest.raises(MalformedLockFileError):
        load_lockset(settings)
