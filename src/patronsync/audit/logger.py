"""Structured audit logger for JSONL event logging.

Provides append-only structured event logging to JSONL files with
a persistent file handle. Every row-level problem of an ingest run is
written here, attributed to the row and to the field or match strategy
that produced it.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from patronsync.audit.helpers import get_package_version
from patronsync.audit.models import LogEvent
from patronsync.utils import get_iso_timestamp

__all__ = ["AuditLogger"]

_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


class AuditLogger:
    """JSONL audit logger with persistent file handle.

    Writes structured log events to a JSONL file (one JSON object per line).
    Events are append-only and flushed after each write for durability.

    Attributes
    ----------
    run_id : str
        Unique run identifier.
    log_path : Path
        Path to JSONL log file.
    current_stage : str | None
        Current stage name for context.
    min_level : str
        Events below this level are dropped.
    """

    def __init__(self, run_id: str, log_path: Path, min_level: str = "INFO") -> None:
        """Initialize audit logger and open file handle.

        Parameters
        ----------
        run_id : str
            Unique run identifier.
        log_path : Path
            Path to JSONL log file.
        min_level : str, optional
            Lowest level written ("DEBUG" in verbose runs).
        """
        self.run_id = run_id
        self.log_path = log_path
        self.current_stage: str | None = None
        self.min_level = min_level

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.log_path.open("a", encoding="utf-8")

    def __enter__(self) -> "AuditLogger":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close file."""
        self.close()

    def close(self) -> None:
        """Flush and close the log file handle."""
        if not self._file.closed:
            self._file.flush()
            self._file.close()

    def set_stage(self, stage: str | None) -> None:
        """Set current stage context.

        Parameters
        ----------
        stage : str | None
            Stage name or None to clear.
        """
        self.current_stage = stage

    def event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        level: str = "INFO",
        stage: str | None = None,
        rid: str | None = None,
    ) -> None:
        """Write structured event to log.

        Parameters
        ----------
        event_type : str
            Event type identifier (e.g., "row_invalid").
        data : dict[str, Any] | None, optional
            Event-specific data payload.
        level : str, optional
            Log level ("DEBUG", "INFO", "WARN", "ERROR").
        stage : str | None, optional
            Stage identifier, uses current_stage if not provided.
        rid : str | None, optional
            Row identifier if event is row-specific.
        """
        if _LEVELS.index(level) < _LEVELS.index(self.min_level):
            return

        log_event = LogEvent(
            ts=get_iso_timestamp(),
            run_id=self.run_id,
            level=level,
            event=event_type,
            data=data or {},
            stage=self.current_stage if stage is None else stage,
            rid=rid,
        )
        self._write_event(log_event)

    def _write_event(self, event: LogEvent) -> None:
        json.dump(asdict(event), self._file, ensure_ascii=False, separators=(",", ":"), default=str)
        self._file.write("\n")
        self._file.flush()

    def run_started(
        self,
        data_file: str,
        client: str,
        sha256: str | None = None,
        parameters: dict[str, Any] | None = None,
    ) -> None:
        """Log run_started event.

        Parameters
        ----------
        data_file : str
            Path of the ingested CSV file.
        client : str
            Client label (namespace + id).
        sha256 : str | None, optional
            Digest of the data file as read.
        parameters : dict[str, Any] | None, optional
            Non-secret configuration snapshot.
        """
        self.event(
            "run_started",
            data={
                "data_file": data_file,
                "client": client,
                "sha256": sha256,
                "version": get_package_version(),
                "parameters": parameters or {},
            },
        )

    def run_finished(
        self,
        status: str,
        duration_seconds: float,
        counters: dict[str, int] | None = None,
    ) -> None:
        """Log run_finished event.

        Parameters
        ----------
        status : str
            Run status ("success", "failed").
        duration_seconds : float
            Total execution time in seconds.
        counters : dict[str, int] | None, optional
            Final run counters.
        """
        data: dict[str, Any] = {"status": status, "duration_seconds": duration_seconds}
        if counters:
            data["counters"] = counters
        self.event("run_finished", data=data)

    def row_invalid(self, rid: str, field: str, value: str) -> None:
        """Log one field that failed validation; the row is skipped."""
        self.event("row_invalid", data={"field": field, "value": value}, level="WARN", rid=rid)

    def strategy_failed(self, strategy: str, message: str, rid: str | None = None) -> None:
        """Log a match search that failed; the strategy counts as "nothing found"."""
        self.event(
            "strategy_failed",
            data={"strategy": strategy, "message": message},
            level="ERROR",
            stage="match",
            rid=rid,
        )

    def row_outcome(
        self,
        rid: str,
        action: str,
        reason: str | None = None,
        key: str | None = None,
    ) -> None:
        """Log the terminal outcome of one row.

        Parameters
        ----------
        rid : str
            Row identifier.
        action : str
            "Checksum", "Update", "Create" or "Ambiguous".
        reason : str | None, optional
            Match reason for updates and ambiguous rows.
        key : str | None, optional
            Remote record key written.
        """
        data: dict[str, Any] = {"action": action}
        if reason:
            data["reason"] = reason
        if key:
            data["key"] = key
        level = "DEBUG" if action == "Checksum" else "INFO"
        self.event("row_outcome", data=data, level=level, rid=rid)

    def write_failed(self, rid: str, operation: str, attempt: int, message: str) -> None:
        """Log one failed create/update attempt."""
        self.event(
            "write_failed",
            data={"operation": operation, "attempt": attempt, "message": message},
            level="ERROR",
            stage="write",
            rid=rid,
        )

    def error(
        self,
        exception_class: str,
        message: str,
        stage: str | None = None,
        rid: str | None = None,
        traceback: str | None = None,
    ) -> None:
        """Log error event.

        Parameters
        ----------
        exception_class : str
            Exception class name.
        message : str
            Error message.
        stage : str | None, optional
            Stage where error occurred.
        rid : str | None, optional
            Row identifier if error is row-specific.
        traceback : str | None, optional
            Stack trace (only in verbose mode).
        """
        data: dict[str, Any] = {
            "exception_class": exception_class,
            "message": message,
        }
        if traceback is not None:
            data["traceback"] = traceback
        self.event("error", data=data, stage=stage, rid=rid, level="ERROR")
