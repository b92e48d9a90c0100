"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import io
import subprocess
import tarfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from cargovendor.config import VendorSettings


@dataclass(frozen=True, slots=True)
class GitRepo:
    path: Path
    commit: str

    @property
    def url(self) -> str:
        return self.path.as_uri()

    @property
    def short_commit(self) -> str:
        return self.commit[:7]


@pytest.fixture
def settings(tmp_path: Path) -> VendorSettings:
    root = tmp_path / "project"
    root.mkdir()
    return VendorSettings(
        project_root=root,
        output_dir=tmp_path / "out",
        registry_download_url=(tmp_path / "registry").as_uri(),
    )


@pytest.fixture
def publish_crate(tmp_path: Path) -> Callable[..., str]:
    """Write a `.crate` archive into the file:// registry and return its sha256."""

    def publish(name: str, version: str, files: dict[str, str] | None = None) -> str:
        files = files or {
            "Cargo.toml": f'[package]\nname = "{name}"\nversion = "{version}"\n',
            "src/lib.rs": "pub fn answer() -> u32 { 42 }\n",
        }
        crate_dir = tmp_path / "registry" / name
        crate_dir.mkdir(parents=True, exist_ok=True)
        archive = crate_dir / f"{name}-{version}.crate"
        with tarfile.open(archive, "w:gz") as tar:
            for rel, content in sorted(files.items()):
                payload = content.encode("utf-8")
                info = tarfile.TarInfo(f"{name}-{version}/{rel}")
                info.size = len(payload)
                tar.addfile(info, io.BytesIO(payload))
        return hashlib.sha256(archive.read_bytes()).hexdigest()

    return publish


@pytest.fixture
def make_git_repo(tmp_path: Path) -> Callable[..., GitRepo]:
    def make(name: str, version: str = "0.1.0") -> GitRepo:
        path = tmp_path / "repos" / name
        path.mkdir(parents=True)
        run_git(["init", "--quiet"], cwd=path)
        run_git(["checkout", "--quiet", "-b", "main"], cwd=path)
        run_git(["config", "user.email", "vendor@example.com"], cwd=path)
        run_git(["config", "user.name", "Vendor Test"], cwd=path)
        (path / "Cargo.toml").write_text(
            f'[package]\nname = "{name}"\nversion = "{version}"\n',
            encoding="utf-8",
        )
        (path / "src").mkdir()
        (path / "src" / "lib.rs").write_text("pub fn hello() {}\n", encoding="utf-8")
        run_git(["add", "."], cwd=path)
        run_git(["commit", "--quiet", "-m", "initial"], cwd=path)
        return GitRepo(path=path, commit=run_git(["rev-parse", "HEAD"], cwd=path))

    return make


def write_lock(path: Path, *packages: dict[str, str], metadata: dict[str, str] | None = None) -> Path:
    lines = ["version = 3", ""]
    for package in packages:
        lines.append("[[package]]")
        for key, value in package.items():
            lines.append(f'{key} = "{value}"')
        lines.append("")
    if metadata:
        lines.append("[metadata]")
        for key, value in metadata.items():
            lines.append(f'"{key}" = "{value}"')
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def run_git(argv: list[str], *, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *argv],
        cwd=cwd,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise RuntimeError(f"git {' '.join(argv)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()
