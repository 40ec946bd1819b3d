"""Create and overlay payload construction."""

from patronsync.builder.payload import (
    PATRON_RESOURCE,
    BuildMode,
    RecordBuilder,
    existing_value,
    strip_diacritics,
)

__all__ = ["PATRON_RESOURCE", "BuildMode", "RecordBuilder", "existing_value", "strip_diacritics"]
