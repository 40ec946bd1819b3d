"""Shared data types for patronsync.

Domain-specific types live closer to their consumers:
- Directory response types → patronsync.directory.models
- Match outcome types → patronsync.matching.models
"""

from patronsync.models.records import (
    ALTERNATE_SCHEMA,
    DISTRICT_SCHEMA,
    SCHEMAS,
    StudentRecord,
)

__all__ = [
    "ALTERNATE_SCHEMA",
    "DISTRICT_SCHEMA",
    "SCHEMAS",
    "StudentRecord",
]
