"""Per-row audit CSV written alongside every run.

One line per terminal row outcome. The file is attached to the report
mail and is what operators sort through to resolve ambiguous matches.
"""

import csv
from pathlib import Path
from typing import Any

from patronsync.directory.models import MatchCandidate
from patronsync.models import DISTRICT_SCHEMA, StudentRecord

__all__ = ["AUDIT_HEADER", "AuditCsvWriter"]

AUDIT_HEADER: tuple[str, ...] = ("action", "match", *DISTRICT_SCHEMA)


class AuditCsvWriter:
    """Append audit lines to a CSV file.

    Parameters
    ----------
    path : Path
        Output file; the header is written when the file is created.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.lines_written = 0
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.writer(self._file, quoting=csv.QUOTE_ALL)
        self._writer.writerow(AUDIT_HEADER)

    def __enter__(self) -> "AuditCsvWriter":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def write_outcome(self, action: str, match: str, record: StudentRecord) -> None:
        """Write the outcome line of one row.

        Parameters
        ----------
        action : str
            ``OK``, ``Update``, ``Create`` or ``Ambiguous``.
        match : str
            Match reason (``Checksum`` for unchanged rows, empty for creates).
        record : StudentRecord
            The validated record.
        """
        self._writer.writerow([action, match, *record.audit_values()])
        self._file.flush()
        self.lines_written += 1

    def write_candidate(self, record: StudentRecord, candidate: MatchCandidate, match: str) -> None:
        """Write one candidate of an ambiguous match.

        The id column carries the student id and the remote key so the
        candidates of one student sort together.
        """
        self._writer.writerow(
            ["Ambiguous", match, f"{record.student_id}, {candidate.key}", *candidate.display_name()]
        )
        self._file.flush()
        self.lines_written += 1
