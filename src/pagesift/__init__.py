"""PageSift: tier-aware site analysis with change-detection caching."""

from __future__ import annotations

import warnings
from importlib import metadata

DISTRIBUTION = "pagesift"
UNKNOWN_VERSION = "0.0.0+unknown"


def _resolve_version(distribution: str = DISTRIBUTION) -> str:
    """Installed version of ``distribution``, or a placeholder when running from a checkout."""
    try:
        return metadata.version(distribution)
    except metadata.PackageNotFoundError:
        warnings.warn(
            f"No installed metadata for {distribution!r}; reporting version {UNKNOWN_VERSION!r}.",
            RuntimeWarning,
            stacklevel=2,
        )
        return UNKNOWN_VERSION


__version__ = _resolve_version()

__all__ = ["__version__"]
