"""Structured event log for patronsync runs.

Main Components
---------------
- AuditLogger: JSONL event logger
- generate_run_id: unique run identifier
"""

from patronsync.audit.helpers import generate_run_id, get_package_version, row_id
from patronsync.audit.logger import AuditLogger
from patronsync.audit.models import LogEvent

__all__ = [
    "AuditLogger",
    "LogEvent",
    "generate_run_id",
    "get_package_version",
    "row_id",
]
