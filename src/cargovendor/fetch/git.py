"""Git fetch with revision resolution, tree verification, and cache support."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from cargovendor.config import VendorSettings, ensure_network_allowed
from cargovendor.errors import FetchError, IntegrityError, ValidationError
from cargovendor.fetch.tree import hash_tree
from cargovendor.sources import is_full_commit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GitCheckout:
    path: Path
    commit: str
    tree_hash: str


def fetch_git(
    url: str,
    *,
    rev: str,
    tree_hash: str | None,
    cache_dir: str | Path,
    submodules: bool = False,
    settings: VendorSettings | None = None,
) -> GitCheckout:
    """Fetch a git revision, verify its tree hash, and cache by commit/tree identity."""
    if not rev:
        raise ValidationError("fetch_git() requires a revision.", context={"url": url})
    cache_root = Path(cache_dir)
    cache_root.mkdir(parents=True, exist_ok=True)

    if tree_hash and is_full_commit(rev):
        cached = cache_root / f"{rev.lower()}-{tree_hash}"
        if cached.exists():
            _verify_cached_checkout(checkout_path=cached, tree_hash=tree_hash)
            return GitCheckout(path=cached, commit=rev.lower(), tree_hash=tree_hash)

    ensure_network_allowed(settings=settings, operation="fetch_git")
    logger.debug("cloning %s at %s", url, rev)
    temp_root = Path(tempfile.mkdtemp(prefix="cargovendor-git-", dir=str(cache_root)))
    try:
        checkout = temp_root / "checkout"
        _run_git(["clone", "--quiet", url, str(checkout)])
        commit = _resolve_commit(checkout=checkout, url=url, rev=rev)
        _run_git(["checkout", "--quiet", "--detach", commit], cwd=checkout)
        if submodules:
            _run_git(["submodule", "update", "--init", "--recursive", "--quiet"], cwd=checkout)

        actual_tree = hash_tree(checkout)
        if tree_hash and actual_tree != tree_hash:
            raise IntegrityError(
                "Git tree hash mismatch.",
                hint="Update the entry for this revision in the hash cache.",
                context={
                    "operation": "fetch_git",
                    "url": url,
                    "rev": rev,
                    "commit": commit,
                    "expected": tree_hash,
                    "actual": actual_tree,
                },
            )
        final_checkout_path = cache_root / f"{commit}-{actual_tree}"
        if final_checkout_path.exists():
            _verify_cached_checkout(checkout_path=final_checkout_path, tree_hash=actual_tree)
        else:
            try:
                checkout.rename(final_checkout_path)
            except OSError:
                # Another fetch of the same revision finished first.
                if not final_checkout_path.exists():
                    raise
                _verify_cached_checkout(checkout_path=final_checkout_path, tree_hash=actual_tree)
    finally:
        if temp_root.exists():
            shutil.rmtree(temp_root, ignore_errors=True)

    return GitCheckout(path=final_checkout_path, commit=commit, tree_hash=actual_tree)


def _resolve_commit(*, checkout: Path, url: str, rev: str) -> str:
    for candidate in (rev, f"origin/{rev}"):
        completed = _git(["rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"], checkout)
        if completed.returncode == 0 and completed.stdout.strip():
            return completed.stdout.strip()
    raise FetchError(
        "Unable to resolve git revision.",
        hint="Ensure the repository and revision recorded in Cargo.lock are reachable.",
        context={"operation": "fetch_git", "url": url, "rev": rev},
    )


def _verify_cached_checkout(*, checkout_path: Path, tree_hash: str) -> None:
    cached_tree = hash_tree(checkout_path)
    if cached_tree != tree_hash:
        raise IntegrityError(
            "Cached git checkout does not match expected tree hash.",
            hint="Delete the cache entry and refetch.",
            context={
                "operation": "fetch_git",
                "path": str(checkout_path),
                "expected": tree_hash,
                "actual": cached_tree,
            },
        )


def _run_git(argv: list[str], cwd: Path | None = None) -> str:
    completed = _git(argv, cwd)
    if completed.returncode != 0:
        raise FetchError(
            "Git command failed.",
            hint="Inspect the repository url, revision, and git installation.",
            context={
                "operation": "fetch_git",
                "argv": " ".join(["git", *argv]),
                "stderr": completed.stderr.strip(),
            },
        )
    return completed.stdout.strip()


def _git(argv: list[str], cwd: Path | None) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", *argv],
            cwd=cwd,
            check=False,
            text=True,
            capture_output=True,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except FileNotFoundError as exc:
        raise FetchError(
            "git is not installed.",
            hint="Install git to vendor git dependencies.",
            context={"operation": "fetch_git"},
        ) from exc
