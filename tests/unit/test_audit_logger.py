"""Tests for the JSONL event log."""

import json
from pathlib import Path

import pytest

from patronsync.audit import AuditLogger, generate_run_id, row_id


def _events(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.mark.unit
def test_events_are_appended_as_jsonl(tmp_path: Path) -> None:
    """Test each event is one JSON object with run and stage context."""
    path = tmp_path / "log" / "patronsync.jsonl"

    with AuditLogger("run-1", path) as logger:
        logger.run_started("students.csv", "pps01", parameters={"rows": 2})
        logger.set_stage("rows")
        logger.row_invalid("line:3", "zipcode", "9721")
        logger.write_failed("01123456@4", "create", 1, "500: Internal error")
        logger.run_finished("success", 1.5, {"rows": 2})

    events = _events(path)
    assert [e["event"] for e in events] == [
        "run_started",
        "row_invalid",
        "write_failed",
        "run_finished",
    ]
    assert all(e["run_id"] == "run-1" for e in events)
    assert events[0]["stage"] is None
    assert events[1]["stage"] == "rows"
    assert events[1]["level"] == "WARN"
    assert events[1]["data"] == {"field": "zipcode", "value": "9721"}
    assert events[2]["stage"] == "write"
    assert events[3]["data"]["counters"] == {"rows": 2}


@pytest.mark.unit
def test_level_filter(tmp_path: Path) -> None:
    """Test checksum outcomes are only logged in verbose (DEBUG) runs."""
    quiet = tmp_path / "quiet.jsonl"
    verbose = tmp_path / "verbose.jsonl"

    with AuditLogger("run-1", quiet) as logger:
        logger.row_outcome("01123456@2", "Checksum")
        logger.row_outcome("01123457@3", "Update", reason="ID", key="301")
    with AuditLogger("run-2", verbose, min_level="DEBUG") as logger:
        logger.row_outcome("01123456@2", "Checksum")

    assert [e["data"]["action"] for e in _events(quiet)] == ["Update"]
    assert _events(quiet)[0]["data"] == {"action": "Update", "reason": "ID", "key": "301"}
    assert _events(verbose)[0]["level"] == "DEBUG"


@pytest.mark.unit
def test_log_is_appended_across_runs(tmp_path: Path) -> None:
    path = tmp_path / "patronsync.jsonl"

    for run in ("run-1", "run-2"):
        with AuditLogger(run, path) as logger:
            logger.error("DirectoryError", "503: down", stage="rows")

    assert [e["run_id"] for e in _events(path)] == ["run-1", "run-2"]


@pytest.mark.unit
def test_helpers() -> None:
    assert row_id(7) == "line:7"
    assert row_id(7, "01123456") == "01123456@7"
    assert generate_run_id() != generate_run_id()
