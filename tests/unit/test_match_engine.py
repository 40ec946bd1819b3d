"""Tests for the ordered match strategies."""

import json
from pathlib import Path

import pytest
from conftest import FakeDirectory, candidate

from patronsync.audit import AuditLogger
from patronsync.engine import ClientConfig
from patronsync.errors import MatchUnavailableError
from patronsync.matching import (
    MatchEngine,
    MatchReason,
    OutcomeKind,
    create_strategies,
    intersect_on_key,
    search_street,
)

EXTERNAL_ID = "01123456"
DOB = "20100214"
STREET = "123 Main St 4"


@pytest.fixture
def engine(fake_directory: FakeDirectory) -> MatchEngine:
    return MatchEngine(fake_directory)


@pytest.mark.unit
def test_alt_id_short_circuits(engine, fake_directory, client: ClientConfig, make_student) -> None:
    """Test a unique Alt ID hit is decisive and no other search runs."""
    fake_directory.add("ALT_ID", EXTERNAL_ID, candidate("301", barcode="21168012345678"))
    fake_directory.add("ID", EXTERNAL_ID, candidate("999"))

    outcome = engine.resolve(make_student(email="ana@gmail.com"), client, "tok")

    assert outcome.kind is OutcomeKind.UPDATE
    assert outcome.reason is MatchReason.ALT_ID
    assert outcome.key == "301"
    assert outcome.candidate is not None
    assert outcome.candidate.barcode == "21168012345678"
    assert fake_directory.searched_indexes == ["ALT_ID"]
    index, value, options = fake_directory.searches[0]
    assert value == EXTERNAL_ID
    assert options.result_cap == 1
    assert "barcode" in options.fields_to_return


@pytest.mark.unit
def test_email_skipped_without_address(engine, fake_directory, client, make_student) -> None:
    """Test records without an e-mail go straight from Alt ID to ID."""
    fake_directory.add("ID", EXTERNAL_ID, candidate("123456"))

    outcome = engine.resolve(make_student(email=None), client, "tok")

    assert outcome.reason is MatchReason.ID
    assert outcome.key == "123456"
    assert fake_directory.searched_indexes == ["ALT_ID", "ID"]


@pytest.mark.unit
def test_shared_email_falls_through(engine, fake_directory, client, make_student) -> None:
    """Test an e-mail used by two patrons does not match either of them."""
    fake_directory.add("EMAIL", "ana@gmail.com", candidate("301"), candidate("302"))
    fake_directory.add("ID", EXTERNAL_ID, candidate("123456"))

    outcome = engine.resolve(make_student(email="ana@gmail.com"), client, "tok")

    assert outcome.reason is MatchReason.ID
    assert outcome.key == "123456"
    assert fake_directory.searched_indexes == ["ALT_ID", "EMAIL", "ID"]
    assert fake_directory.searches[1][2].result_cap == 2


@pytest.mark.unit
def test_unique_email_matches(engine, fake_directory, client, make_student) -> None:
    fake_directory.add("EMAIL", "ana@gmail.com", candidate("301"))

    outcome = engine.resolve(make_student(email="ana@gmail.com"), client, "tok")

    assert outcome.reason is MatchReason.EMAIL
    assert outcome.key == "301"


@pytest.mark.unit
def test_truncated_page_is_not_unique(engine, fake_directory, client, make_student) -> None:
    """Test one returned row out of several reported totals is not a match."""
    fake_directory.add("ALT_ID", EXTERNAL_ID, candidate("301"), total=3)

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.CREATE
    assert fake_directory.searched_indexes == ["ALT_ID", "ID", "BIRTHDATE"]


@pytest.mark.unit
def test_keyless_hit_is_not_unique(engine, fake_directory, client, make_student) -> None:
    fake_directory.add("ALT_ID", EXTERNAL_ID, candidate(None))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.CREATE


@pytest.mark.unit
def test_dob_street_single_match(engine, fake_directory, client, make_student) -> None:
    fake_directory.add("BIRTHDATE", DOB, candidate("401"), candidate("402"))
    fake_directory.add("STREET", STREET, candidate("402"), candidate("403"))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.UPDATE
    assert outcome.reason is MatchReason.DOB_STREET
    assert outcome.key == "402"


@pytest.mark.unit
def test_dob_street_intersection_is_ambiguous(engine, fake_directory, client, make_student) -> None:
    """Test {A, B, C} and {B, C, D} yield the ambiguous pair {B, C}."""
    fake_directory.add("BIRTHDATE", DOB, candidate("A1"), candidate("B2"), candidate("C3"))
    fake_directory.add("STREET", STREET, candidate("B2"), candidate("C3"), candidate("D4"))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.AMBIGUOUS
    assert outcome.reason is MatchReason.DOB_STREET
    assert [c.key for c in outcome.candidates] == ["B2", "C3"]
    assert outcome.key is None


@pytest.mark.unit
def test_three_candidates_are_ambiguous(engine, fake_directory, client, make_student) -> None:
    keys = ("11", "12", "13")
    fake_directory.add("BIRTHDATE", DOB, *(candidate(k) for k in keys))
    fake_directory.add("STREET", STREET, *(candidate(k) for k in keys))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.AMBIGUOUS
    assert len(outcome.candidates) == 3
    assert fake_directory.created == []
    assert fake_directory.updated == []


@pytest.mark.unit
def test_no_dob_hits_skips_street(engine, fake_directory, client, make_student) -> None:
    """Test an empty birth-date search ends matching with Create."""
    fake_directory.add("STREET", STREET, candidate("402"))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.CREATE
    assert "STREET" not in fake_directory.searched_indexes


@pytest.mark.unit
def test_disjoint_dob_street_creates(engine, fake_directory, client, make_student) -> None:
    fake_directory.add("BIRTHDATE", DOB, candidate("401"))
    fake_directory.add("STREET", STREET, candidate("402"))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.CREATE


@pytest.mark.unit
def test_search_street_drops_unit_marker(make_student) -> None:
    """Test the search key drops '#' while the record keeps it."""
    record = make_student()

    assert search_street(record.address) == STREET
    assert record.address == "123 Main St # 4"


@pytest.mark.unit
def test_failed_strategy_counts_as_nothing_found(
    fake_directory, client, make_student, tmp_path: Path
) -> None:
    """Test a failing search is logged and the next strategy runs."""
    fake_directory.failing_indexes = {"ALT_ID"}
    fake_directory.add("ID", EXTERNAL_ID, candidate("123456"))
    log_path = tmp_path / "events.jsonl"

    with AuditLogger("run-1", log_path) as logger:
        engine = MatchEngine(fake_directory, logger=logger)
        outcome = engine.resolve(make_student(), client, "tok", rid="01123456@2")

    assert outcome.reason is MatchReason.ID
    assert [e.strategy for e in outcome.errors] == ["alt_id"]
    assert "503" in outcome.errors[0].message
    events = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert events[0]["event"] == "strategy_failed"
    assert events[0]["rid"] == "01123456@2"
    assert events[0]["data"]["strategy"] == "alt_id"


@pytest.mark.unit
def test_partial_failures_still_create(engine, fake_directory, client, make_student) -> None:
    fake_directory.failing_indexes = {"ALT_ID", "ID"}

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.kind is OutcomeKind.CREATE
    assert [e.strategy for e in outcome.errors] == ["alt_id", "id"]


@pytest.mark.unit
def test_all_strategies_failing_raises(engine, fake_directory, client, make_student) -> None:
    """Test a directory outage never turns into a create."""
    fake_directory.failing_indexes = {"ALT_ID", "EMAIL", "ID", "BIRTHDATE", "STREET"}

    with pytest.raises(MatchUnavailableError) as exc_info:
        engine.resolve(make_student(email="ana@gmail.com"), client, "tok")

    assert len(exc_info.value.errors) == 4
    assert fake_directory.created == []


@pytest.mark.unit
def test_intersect_on_key_dedupes() -> None:
    left = [candidate("1"), candidate(None), candidate("2"), candidate("1")]
    right = [candidate("2"), candidate("1"), candidate(None)]

    assert [c.key for c in intersect_on_key(left, right)] == ["1", "2"]


@pytest.mark.unit
def test_create_strategies_rejects_unknown_name() -> None:
    with pytest.raises(ValueError, match="soundex"):
        create_strategies(["alt_id", "soundex"])


@pytest.mark.unit
def test_custom_strategy_order(fake_directory, client, make_student) -> None:
    """Test the engine follows the configured strategy order."""
    fake_directory.add("ALT_ID", EXTERNAL_ID, candidate("301"))
    fake_directory.add("ID", EXTERNAL_ID, candidate("302"))
    engine = MatchEngine(fake_directory, strategies=create_strategies(["id", "alt_id"]))

    outcome = engine.resolve(make_student(), client, "tok")

    assert outcome.key == "302"
    assert fake_directory.searched_indexes == ["ID"]
