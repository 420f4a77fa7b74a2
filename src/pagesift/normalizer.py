"""URL canonicalisation for cache keys and duplicate detection.

Pure functions with no I/O. ``normalize_url`` never raises: anything it
cannot parse comes back unchanged so a single odd URL cannot fail a batch.
"""

from __future__ import annotations

import hashlib
from urllib.parse import unquote, urlsplit, urlunsplit

TRACKING_PARAMS: frozenset[str] = frozenset(
    {"ref", "source", "fbclid", "gclid", "mc_cid", "mc_eid"}
)
TRACKING_PREFIXES: tuple[str, ...] = ("utm_",)


def _is_tracking_param(segment: str) -> bool:
    key = unquote(segment.split("=", 1)[0]).lower()
    return key in TRACKING_PARAMS or key.startswith(TRACKING_PREFIXES)


def normalize_url(url: str) -> str:
    """Return the canonical form of ``url``.

    Steps:
      1. Lowercase scheme and host
      2. Drop tracking query parameters (``utm_*``, ``ref``, ``source``, ...)
      3. Drop the fragment
      4. Strip trailing slashes from the path; the root stays ``/``

    Remaining query parameters keep their original order and encoding, which
    keeps the function idempotent.
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url

    if not parts.scheme or not parts.netloc:
        return url

    path = parts.path.rstrip("/") or "/"
    segments = [s for s in parts.query.split("&") if s and not _is_tracking_param(s)]

    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, "&".join(segments), "")
    )


def url_hash(url: str) -> str:
    """SHA-256 of the normalized URL, used as the cache row key."""
    return hashlib.sha256(normalize_url(url).encode()).hexdigest()


def content_hash(body: bytes) -> str:
    """SHA-256 over a page's raw bytes."""
    return hashlib.sha256(body).hexdigest()


def url_path(url: str) -> str:
    """Lowercased path of ``url``; empty string when it cannot be parsed."""
    try:
        return urlsplit(url).path.lower()
    except ValueError:
        return ""
