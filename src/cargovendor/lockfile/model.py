"""Lock file typed model."""

from __future__ import annotations

from dataclasses import dataclass, field

LEGACY_CHECKSUM_PREFIX = "checksum "
LEGACY_NO_CHECKSUM = "<none>"


@dataclass(frozen=True, slots=True)
class PackageRecord:
    name: str
    version: str
    source: str | None = None
    checksum: str | None = None

    @property
    def package_id(self) -> str:
        return f"{self.name} {self.version} ({self.source})"

    @property
    def is_local(self) -> bool:
        return self.source is None


@dataclass(frozen=True, slots=True)
class LockSet:
    packages: tuple[PackageRecord, ...] = ()
    metadata: dict[str, str] = field(default_factory=dict)

    def vendorable(self) -> tuple[PackageRecord, ...]:
        """Packages that come from outside the workspace."""
        return tuple(package for package in self.packages if not package.is_local)

    def legacy_checksum(self, package: PackageRecord) -> str | None:
        value = self.metadata.get(f"{LEGACY_CHECKSUM_PREFIX}{package.package_id}")
        if not value or value == LEGACY_NO_CHECKSUM:
            return None
        return value
