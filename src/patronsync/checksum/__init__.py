"""Checksum gate: remembers a digest per student between runs.

Main Components
---------------
- ChecksumStore: SQLAlchemy-backed digest store
- compute_digest: stable digest of a StudentRecord
"""

from patronsync.checksum.digest import compute_digest, student_key
from patronsync.checksum.models import Base, ChecksumRecord, ChecksumStatus
from patronsync.checksum.store import ChecksumStore

__all__ = [
    "Base",
    "ChecksumRecord",
    "ChecksumStatus",
    "ChecksumStore",
    "compute_digest",
    "student_key",
]
