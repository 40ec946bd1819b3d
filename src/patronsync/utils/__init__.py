"""Common utility functions for patronsync.

This module consolidates shared hashing and timestamp helpers.
"""

from patronsync.utils.hashing import (
    calculate_file_sha256,
    calculate_string_sha256,
    canonical_json,
    format_sha256,
)
from patronsync.utils.timestamps import get_iso_timestamp, local_today, report_timestamp

__all__ = [
    "get_iso_timestamp",
    "local_today",
    "report_timestamp",
    "calculate_file_sha256",
    "calculate_string_sha256",
    "canonical_json",
    "format_sha256",
]
