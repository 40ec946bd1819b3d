"""Ingest orchestration engine.

This package provides the main entry point for ingesting one district
data file, including configuration and result types.
"""

from patronsync.engine.config import (
    ClientConfig,
    ClientDefaults,
    DatabaseConfig,
    DirectoryConfig,
    FieldSpec,
    IngestConfig,
    SmtpConfig,
    load_config,
    parse_config,
)
from patronsync.engine.results import IngestResult, RunCounters
from patronsync.engine.runner import IngestRun, check_schema, read_data_file, run_ingest

__all__ = [
    "ClientConfig",
    "ClientDefaults",
    "DatabaseConfig",
    "DirectoryConfig",
    "FieldSpec",
    "IngestConfig",
    "SmtpConfig",
    "load_config",
    "parse_config",
    "IngestResult",
    "RunCounters",
    "IngestRun",
    "check_schema",
    "read_data_file",
    "run_ingest",
]
