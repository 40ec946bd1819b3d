"""Timestamp utilities for patronsync."""

from datetime import UTC, date, datetime

__all__ = ["get_iso_timestamp", "local_today", "report_timestamp"]


def get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO8601 format with microseconds.

    Returns
    -------
    str
        ISO8601 timestamp with microseconds (e.g., "2026-02-03T12:34:56.123456Z").
    """
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def local_today() -> date:
    """Current local calendar date, the reference for ages and checksum dates."""
    return datetime.now().date()


def report_timestamp(moment: datetime | None = None) -> str:
    """Format a local time for report headers and audit file names.

    Parameters
    ----------
    moment : datetime | None, optional
        Time to format; defaults to now.

    Returns
    -------
    str
        Timestamp such as ``2026-02-03_12-34-56``.
    """
    return (moment or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
