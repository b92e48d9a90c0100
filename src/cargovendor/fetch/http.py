"""Integrity-enforced HTTP/file fetch implementation."""

from __future__ import annotations

import hashlib
import logging
import os
import uuid
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen

from cargovendor.config import VendorSettings, ensure_network_allowed
from cargovendor.errors import FetchError, IntegrityError, ValidationError

logger = logging.getLogger(__name__)


def fetch_url(
    url: str,
    *,
    sha256: str,
    cache_dir: str | Path,
    settings: VendorSettings | None = None,
) -> Path:
    """Fetch content and return a content-addressed cached path."""
    if not sha256:
        raise ValidationError("fetch_url() requires a sha256 value.", context={"url": url})
    cache_path = Path(cache_dir)
    cache_path.mkdir(parents=True, exist_ok=True)
    artifact_path = cache_path / sha256

    if artifact_path.exists():
        _assert_hash_matches(artifact_path, expected_sha256=sha256)
        return artifact_path

    ensure_network_allowed(settings=settings, operation="fetch_url")
    logger.debug("downloading %s", url)
    try:
        with urlopen(url) as response:  # noqa: S310 - integrity check is mandatory below
            payload = response.read()
    except (URLError, OSError) as exc:
        raise FetchError(
            "Download failed.",
            hint="Check network access and re-run; fetches are never retried automatically.",
            context={"operation": "fetch_url", "url": url, "error": str(exc)},
        ) from exc

    actual_sha256 = hashlib.sha256(payload).hexdigest()
    if actual_sha256 != sha256:
        raise IntegrityError(
            "Fetched content hash mismatch.",
            hint="Verify the checksum recorded in Cargo.lock against the registry.",
            context={
                "operation": "fetch_url",
                "url": url,
                "expected": sha256,
                "actual": actual_sha256,
            },
        )

    # Unique temp name: concurrent fetches of one artifact must not share it.
    temp_path = cache_path / f".{sha256}.{uuid.uuid4().hex}.tmp"
    temp_path.write_bytes(payload)
    os.replace(temp_path, artifact_path)
    return artifact_path


def _assert_hash_matches(path: Path, *, expected_sha256: str) -> None:
    actual_sha256 = hashlib.sha256(path.read_bytes()).hexdigest()
    if actual_sha256 != expected_sha256:
        raise IntegrityError(
            "Cached artifact hash mismatch.",
            hint="Clear the fetch cache and refetch with trusted inputs.",
            context={
                "operation": "fetch_url",
                "path": str(path),
                "expected": expected_sha256,
                "actual": actual_sha256,
            },
        )
