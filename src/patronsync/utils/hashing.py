"""Hashing utilities for patronsync.

This module provides the content digest used by the checksum gate and the
file digest recorded for each ingested data file.
"""

import hashlib
import json
from pathlib import Path
from typing import Any

__all__ = [
    "format_sha256",
    "calculate_file_sha256",
    "calculate_string_sha256",
    "canonical_json",
]


def format_sha256(hex_digest: str) -> str:
    """Format SHA256 hash with standard prefix.

    Parameters
    ----------
    hex_digest : str
        Raw hexadecimal digest.

    Returns
    -------
    str
        Formatted hash with "sha256:" prefix.
    """
    return f"sha256:{hex_digest}"


def canonical_json(data: Any) -> str:
    """Serialize ``data`` with sorted keys and no insignificant whitespace.

    Equal mappings always serialize to the same string regardless of key
    insertion order.
    """
    return json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def calculate_file_sha256(path: Path) -> str:
    """Calculate SHA256 hash of file contents from file path.

    Parameters
    ----------
    path : Path
        Path to file.

    Returns
    -------
    str
        SHA256 hash with "sha256:" prefix.

    Raises
    ------
    FileNotFoundError
        If file does not exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256_hash = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256_hash.update(chunk)

    return format_sha256(sha256_hash.hexdigest())


def calculate_string_sha256(text: str) -> str:
    """Calculate SHA256 hash of string.

    Parameters
    ----------
    text : str
        Input text.

    Returns
    -------
    str
        SHA256 hash with "sha256:" prefix.
    """
    sha256_hash = hashlib.sha256(text.encode("utf-8"))
    return format_sha256(sha256_hash.hexdigest())
