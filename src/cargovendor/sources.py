"""Package provenance classification and git source parsing.

A git source string follows the grammar::

    source   := "git+" url ("?" query)* ("#" fragment)?
    query    := pair ("&" pair)*
    pair     := key "=" value

The string (minus ``git+``) is split on ``#`` first and each piece on ``?``
second. The URL is the first resulting segment. The revision comes from the
*last* segment: the value of its ``rev=`` pair when it has one, else the value
of its last ``key=value`` pair, else the bare segment.
A source carrying several ``?``-delimited parameters therefore yields only
the final one as its revision. A ``branch=`` pair anywhere in the string is
kept as the source's branch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Literal

from cargovendor.errors import UnknownSourceTypeError
from cargovendor.lockfile.model import PackageRecord

SourceKind = Literal["crates-io", "git", "local"]

CRATES_IO_SOURCE = "registry+https://github.com/rust-lang/crates.io-index"
GIT_PREFIX = "git+"
BRANCH_KEY = "branch"
REV_KEY = "rev"

COMMIT_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")


@dataclass(frozen=True, slots=True)
class RegistrySource:
    kind: ClassVar[SourceKind] = "crates-io"


@dataclass(frozen=True, slots=True)
class GitSource:
    kind: ClassVar[SourceKind] = "git"

    url: str
    rev: str
    branch: str | None = None


@dataclass(frozen=True, slots=True)
class LocalSource:
    kind: ClassVar[SourceKind] = "local"


Provenance = RegistrySource | GitSource | LocalSource


@dataclass(frozen=True, slots=True)
class ClassifiedPackage:
    package: PackageRecord
    provenance: Provenance

    @property
    def package_id(self) -> str:
        return self.package.package_id


def classify_all(packages: tuple[PackageRecord, ...]) -> tuple[ClassifiedPackage, ...]:
    """Classify every package, dropping local workspace members."""
    classified = (ClassifiedPackage(package, classify(package)) for package in packages)
    return tuple(item for item in classified if item.provenance.kind != "local")


def classify(package: PackageRecord) -> Provenance:
    source = package.source
    if source is None:
        return LocalSource()
    if source == CRATES_IO_SOURCE:
        return RegistrySource()
    if source.startswith(GIT_PREFIX):
        return parse_git_source(source)
    raise UnknownSourceTypeError(
        f"Unknown source type: {source}",
        hint="Only crates.io registry and git sources can be vendored.",
        context={"package": package.package_id},
    )


def parse_git_source(source: str) -> GitSource:
    if not source.startswith(GIT_PREFIX):
        raise UnknownSourceTypeError(
            f"Not a git source: {source}",
            hint=f"Git sources start with `{GIT_PREFIX}`.",
        )
    body = source[len(GIT_PREFIX) :]
    segments = [part for piece in body.split("#") for part in piece.split("?")]
    url = segments[0]
    if not url or len(segments) < 2:
        raise UnknownSourceTypeError(
            f"Git source does not pin a url and revision: {source}",
            hint="Cargo.lock git sources look like `git+<url>?rev=<rev>#<commit>`.",
            context={"source": source},
        )
    rev = _segment_value(segments[-1])
    if not rev:
        raise UnknownSourceTypeError(
            f"Git source has an empty revision: {source}",
            context={"source": source},
        )
    return GitSource(url=url, rev=rev, branch=_find_branch(segments[1:]))


def is_full_commit(rev: str) -> bool:
    return COMMIT_PATTERN.fullmatch(rev) is not None


def _segment_value(segment: str) -> str:
    pairs = [pair.partition("=") for pair in segment.split("&")]
    for key, sep, value in pairs:
        if sep and key == REV_KEY:
            return value
    _, sep, value = pairs[-1]
    return value if sep else segment


def _find_branch(segments: list[str]) -> str | None:
    branch: str | None = None
    for segment in segments:
        for pair in segment.split("&"):
            key, sep, value = pair.partition("=")
            if sep and key == BRANCH_KEY and value:
                branch = value
    return branch
