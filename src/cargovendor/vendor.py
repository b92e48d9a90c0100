"""Vendor farm assembly."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from cargovendor.errors import ValidationError
from cargovendor.fetchers import FetchedPackage, package_basename
from cargovendor.sources import ClassifiedPackage


def assign_basenames(packages: Iterable[ClassifiedPackage]) -> dict[str, str]:
    """Map each package identity to its vendor directory name."""
    owners: dict[str, str] = {}
    assigned: dict[str, str] = {}
    for item in packages:
        basename = package_basename(item.package)
        owner = owners.setdefault(basename, item.package_id)
        if owner != item.package_id:
            raise ValidationError(
                "Two packages map to the same vendor directory name.",
                hint="Vendor directories are named `<name>-<version>`; remove one of the sources.",
                context={"basename": basename, "first": owner, "second": item.package_id},
            )
        assigned[item.package_id] = basename
    return assigned


def build_vendor_farm(fetched: Iterable[FetchedPackage], dest: str | Path) -> Path:
    """Link every fetched package into ``dest``, replacing any previous farm.

    The farm is staged next to ``dest`` and renamed into place, so ``dest``
    either holds the complete farm or is left untouched.
    """
    farm = Path(dest)
    farm.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{farm.name}-", dir=str(farm.parent)))
    try:
        staging.chmod(0o755)
        for entry in sorted(fetched, key=lambda item: item.basename):
            link = staging / entry.basename
            if link.is_symlink():
                raise ValidationError(
                    "Duplicate vendor farm entry.",
                    context={"basename": entry.basename, "package": entry.package_id},
                )
            link.symlink_to(entry.path.resolve(), target_is_directory=True)
        remove_vendor_farm(farm)
        staging.rename(farm)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    return farm


def remove_vendor_farm(dest: str | Path) -> None:
    farm = Path(dest)
    if farm.is_symlink() or farm.is_file():
        farm.unlink()
    elif farm.exists():
        shutil.rmtree(farm)
