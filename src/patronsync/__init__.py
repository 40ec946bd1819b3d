"""Student record ingest into a library patron directory.

This package provides:
- Data models (patronsync.models): validated student records
- Validation (patronsync.validate): field rules and transforms
- Checksums (patronsync.checksum): skip unchanged students
- Directory (patronsync.directory): patron web-service client
- Matching (patronsync.matching): ordered match strategies
- Builder (patronsync.builder): create and overlay payloads
- Engine (patronsync.engine): configuration and ingest runs
- Report (patronsync.report): audit CSV, text report and mail
- Audit (patronsync.audit): structured event log
- CLI (patronsync.cli): command-line interface
"""

__version__ = "0.1.0"

from patronsync.engine import IngestResult, load_config, run_ingest
from patronsync.errors import PatronSyncError, SetupError
from patronsync.models import StudentRecord

__all__ = [
    "__version__",
    "IngestResult",
    "PatronSyncError",
    "SetupError",
    "StudentRecord",
    "load_config",
    "run_ingest",
]
