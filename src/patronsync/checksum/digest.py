"""Content digest of a validated student record."""

from patronsync.models import StudentRecord
from patronsync.utils import calculate_string_sha256, canonical_json

__all__ = ["compute_digest", "student_key"]


def compute_digest(record: StudentRecord) -> str:
    """Digest the normalized field map of ``record``.

    Keys are sorted before hashing, so equal content always yields an
    equal digest.

    Parameters
    ----------
    record : StudentRecord
        Validated record.

    Returns
    -------
    str
        SHA256 digest with "sha256:" prefix.
    """
    return calculate_string_sha256(canonical_json(record.to_dict()))


def student_key(namespace: str, client_id: str, student_id: str) -> str:
    """Checksum table key of one student."""
    return f"{namespace}{client_id}{student_id}"
