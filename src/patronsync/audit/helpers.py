"""Helper utilities for the event log.

For timestamp and hashing utilities, see patronsync.utils.
"""

import importlib.metadata
import secrets
from datetime import UTC, datetime

__all__ = ["generate_run_id", "get_package_version", "row_id"]


def generate_run_id() -> str:
    """Generate unique run identifier.

    Returns
    -------
    str
        Run ID in format: ISO8601_timestamp__random_suffix.
    """
    timestamp = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    suffix = secrets.token_hex(4)
    return f"{timestamp}__{suffix}"


def get_package_version() -> str:
    """Get patronsync package version, or "unknown" when not installed."""
    try:
        return importlib.metadata.version("patronsync")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def row_id(lineno: int, external_id: str | None = None) -> str:
    """Identifier of one data row in log events."""
    if external_id:
        return f"{external_id}@{lineno}"
    return f"line:{lineno}"
