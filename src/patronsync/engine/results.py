"""Run counters and result of one ingest run."""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from patronsync.matching.models import MatchOutcome, MatchReason, OutcomeKind

__all__ = ["RunCounters", "IngestResult"]


@dataclass
class RunCounters:
    """Aggregate counters folded from row outcomes.

    Attributes
    ----------
    rows : int
        Data rows read.
    updates, creates, ambiguous : int
        Rows per match outcome that completed.
    failed : int
        Rows skipped after a remote or payload failure.
    invalid : int
        Rows skipped by field validation.
    checksum : int
        Rows skipped as unchanged.
    matches : Counter[str]
        Completed updates per match reason.
    """

    rows: int = 0
    updates: int = 0
    creates: int = 0
    ambiguous: int = 0
    failed: int = 0
    invalid: int = 0
    checksum: int = 0
    matches: Counter[str] = field(default_factory=Counter)

    def record(self, outcome: MatchOutcome) -> None:
        """Fold one completed outcome into the counters."""
        if outcome.kind is OutcomeKind.UPDATE:
            self.updates += 1
            if outcome.reason is not None:
                self.matches[str(outcome.reason)] += 1
        elif outcome.kind is OutcomeKind.CREATE:
            self.creates += 1
        else:
            self.ambiguous += 1

    def statistics_line(self) -> str:
        return (
            f"Statistics: {self.updates} updates, {self.creates} creates, "
            f"{self.ambiguous} ambiguous"
        )

    def matches_line(self) -> str:
        parts = [f"{self.checksum} Checksum"]
        parts.extend(f"{self.matches[str(reason)]} {reason}" for reason in MatchReason)
        return "Matches: " + ", ".join(parts)

    def skipped_line(self) -> str:
        return f"Skipped: {self.invalid} invalid, {self.failed} failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": self.rows,
            "updates": self.updates,
            "creates": self.creates,
            "ambiguous": self.ambiguous,
            "failed": self.failed,
            "invalid": self.invalid,
            "checksum": self.checksum,
            "matches": {str(reason): self.matches[str(reason)] for reason in MatchReason},
        }


@dataclass
class IngestResult:
    """Outcome of a completed ingest run.

    Attributes
    ----------
    run_id : str
        Unique run identifier.
    client : str
        Client label (namespace + id).
    data_file : Path
        Ingested file.
    counters : RunCounters
        Final counters.
    audit_csv : Path
        Per-row audit CSV.
    report_path : Path
        Rendered text report.
    event_log : Path
        JSONL event log.
    mail_sent : bool
        Whether the report mail was delivered.
    data_file_deleted : bool
        Whether the data file was removed after the run.
    """

    run_id: str
    client: str
    data_file: Path
    counters: RunCounters
    audit_csv: Path
    report_path: Path
    event_log: Path
    mail_sent: bool = False
    data_file_deleted: bool = False
