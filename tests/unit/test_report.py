"""Tests for the audit CSV, run report, counters and report mail."""

import csv
from pathlib import Path
from typing import Any

import pytest
from conftest import candidate

from patronsync.engine import RunCounters
from patronsync.matching import MatchOutcome, MatchReason
from patronsync.report import AUDIT_HEADER, AuditCsvWriter, Mailer, RunReport


class FakeSMTP:
    """Context-manager stand-in for ``smtplib.SMTP``."""

    instances: list["FakeSMTP"] = []

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self.messages: list[Any] = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *args: Any) -> None:
        return None

    def send_message(self, message: Any) -> None:
        self.messages.append(message)


@pytest.fixture(autouse=True)
def _reset_smtp() -> None:
    FakeSMTP.instances.clear()


def _read_csv(path: Path) -> list[list[str]]:
    with path.open(encoding="utf-8", newline="") as f:
        return list(csv.reader(f))


@pytest.mark.unit
def test_audit_csv_lines(tmp_path: Path, make_student) -> None:
    """Test outcome and candidate lines follow the header layout."""
    path = tmp_path / "out" / "pps01_run.csv"
    record = make_student(email="ana@gmail.com")

    with AuditCsvWriter(path) as writer:
        writer.write_outcome("OK", "Checksum", record)
        writer.write_candidate(record, candidate("402", middleName="M"), "DOB and Street")
        writer.write_outcome("Ambiguous", "DOB and Street", record)

    rows = _read_csv(path)
    assert rows[0] == list(AUDIT_HEADER)
    assert rows[1] == [
        "OK",
        "Checksum",
        "123456",
        "Ana",
        "",
        "Lopez",
        "123 Main St # 4",
        "Portland",
        "OR",
        "97214",
        "2010-02-14",
        "ana@gmail.com",
    ]
    assert rows[2] == ["Ambiguous", "DOB and Street", "123456, 402", "Ana", "M", "Lopez"]
    assert rows[3][:2] == ["Ambiguous", "DOB and Street"]
    assert writer.lines_written == 3
    assert path.read_text(encoding="utf-8").startswith('"action","match","student_id"')


@pytest.mark.unit
def test_run_report_render() -> None:
    report = RunReport(title="Ingest Report Test (pps01)")
    report.info("Login successful")
    report.error("Invalid data in line 3, zipcode: 9721")

    text = report.render()

    assert report.error_count == 1
    assert text.splitlines() == [
        "Ingest Report Test (pps01)",
        "=" * 26,
        "",
        "INFO  Login successful",
        "ERROR Invalid data in line 3, zipcode: 9721",
    ]


@pytest.mark.unit
def test_counters_lines() -> None:
    """Test update reasons are tallied and rendered in strategy order."""
    counters = RunCounters(checksum=4, invalid=1)
    counters.record(MatchOutcome.update(candidate("1"), MatchReason.ID))
    counters.record(MatchOutcome.update(candidate("2"), MatchReason.ID))
    counters.record(MatchOutcome.update(candidate("3"), MatchReason.ALT_ID))
    counters.record(MatchOutcome.create())
    counters.record(
        MatchOutcome.ambiguous([candidate("4"), candidate("5")], MatchReason.DOB_STREET)
    )

    assert counters.statistics_line() == "Statistics: 3 updates, 1 creates, 1 ambiguous"
    assert counters.matches_line() == (
        "Matches: 4 Checksum, 1 Alt ID, 0 Email, 2 ID, 0 DOB and Street"
    )
    assert counters.skipped_line() == "Skipped: 1 invalid, 0 failed"
    assert counters.to_dict()["matches"]["ID"] == 2


@pytest.mark.unit
def test_mailer_sends_with_attachments(tmp_path: Path) -> None:
    """Test the report and audit CSV are attached to one message."""
    audit = tmp_path / "pps01.csv"
    audit.write_text('"action"\n', encoding="utf-8")
    report = tmp_path / "pps01.log"
    report.write_text("report\n", encoding="utf-8")
    mailer = Mailer("smtp.example.org", 2525, "noreply@example.org", smtp_factory=FakeSMTP)

    mailer.send(["admin@example.org", "district@example.org"], "Ingest", "body", [audit, report])

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.example.org", 2525)
    message = smtp.messages[0]
    assert message["To"] == "admin@example.org, district@example.org"
    assert message["From"] == "noreply@example.org"
    names = [part.get_filename() for part in message.iter_attachments()]
    assert names == ["pps01.csv", "pps01.log"]


@pytest.mark.unit
def test_mailer_without_recipients_does_nothing() -> None:
    mailer = Mailer("localhost", 25, "noreply@example.org", smtp_factory=FakeSMTP)

    mailer.send([], "Ingest", "body")

    assert FakeSMTP.instances == []
