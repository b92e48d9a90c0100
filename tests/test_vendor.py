from pathlib import Path

import pytest

from cargovendor.errors import ValidationError
from cargovendor.fetchers import FetchedPackage
from cargovendor.lockfile import PackageRecord
from cargovendor.sources import CRATES_IO_SOURCE, classify_all
from cargovendor.vendor import assign_basenames, build_vendor_farm


def test_assign_basenames_is_unique_per_identity() -> None:
    packages = classify_all(
        (
            PackageRecord(name="foo", version="1.0.0", source=CRATES_IO_SOURCE),
            PackageRecord(name="foo", version="2.0.0", source=CRATES_IO_SOURCE),
        )
    )

    assert list(assign_basenames(packages).values()) == ["foo-1.0.0", "foo-2.0.0"]


def test_assign_basenames_rejects_collisions_across_sources() -> None:
    packages = classify_all(
        (
            PackageRecord(name="foo", version="1.0.0", source=CRATES_IO_SOURCE),
            PackageRecord(name="foo", version="1.0.0", source="git+https://host/foo#abc"),
        )
    )

    with pytest.raises(ValidationError) as excinfo:
        assign_basenames(packages)

    assert excinfo.value.context["basename"] == "foo-1.0.0"


def test_build_vendor_farm_links_every_package(tmp_path: Path) -> None:
    fetched = [_fetched(tmp_path, "foo-1.2.3"), _fetched(tmp_path, "bar-0.1.0")]

    farm = build_vendor_farm(fetched, tmp_path / "vendor")

    assert sorted(entry.name for entry in farm.iterdir()) == ["bar-0.1.0", "foo-1.2.3"]
    assert (farm / "foo-1.2.3").resolve() == (tmp_path / "sources" / "foo-1.2.3").resolve()
    assert (farm / "bar-0.1.0" / "Cargo.toml").is_file()


def test_build_vendor_farm_replaces_previous_farm(tmp_path: Path) -> None:
    build_vendor_farm([_fetched(tmp_path, "old-1.0.0")], tmp_path / "vendor")

    farm = build_vendor_farm([_fetched(tmp_path, "new-1.0.0")], tmp_path / "vendor")

    assert [entry.name for entry in farm.iterdir()] == ["new-1.0.0"]
    assert (tmp_path / "sources" / "old-1.0.0").is_dir()


def test_build_vendor_farm_leaves_nothing_behind_on_duplicate(tmp_path: Path) -> None:
    entry = _fetched(tmp_path, "foo-1.2.3")

    with pytest.raises(ValidationError):
        build_vendor_farm([entry, entry], tmp_path / "vendor")

    assert not (tmp_path / "vendor").exists()
    assert sorted(path.name for path in tmp_path.iterdir()) == ["sources"]


def _fetched(root: Path, basename: str) -> FetchedPackage:
    path = root / "sources" / basename
    path.mkdir(parents=True)
    (path / "Cargo.toml").write_text("[package]\n", encoding="utf-8")
    return FetchedPackage(
        package_id=f"{basename} ({CRATES_IO_SOURCE})",
        kind="crates-io",
        basename=basename,
        path=path,
        hash="0" * 64,
    )
