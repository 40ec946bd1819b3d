"""Tests for the checksum gate store."""

from dataclasses import replace
from datetime import date, timedelta

import pytest

from patronsync.checksum import ChecksumStatus, ChecksumStore, compute_digest, student_key
from patronsync.errors import SetupError


@pytest.fixture
def store():
    """In-memory checksum store with its table created."""
    checksum_store = ChecksumStore.from_url("sqlite://")
    checksum_store.create_schema()
    yield checksum_store
    checksum_store.close()


@pytest.mark.unit
def test_digest_is_stable(make_student) -> None:
    """Test equal content hashes equally and any change alters the digest."""
    record = make_student()

    assert compute_digest(record) == compute_digest(make_student())
    assert compute_digest(record).startswith("sha256:")
    assert compute_digest(record) != compute_digest(replace(record, zipcode="97212"))


@pytest.mark.unit
def test_student_key() -> None:
    assert student_key("pps", "01", "123456") == "pps01123456"


@pytest.mark.unit
def test_check_and_update_lifecycle(store: ChecksumStore, today: date) -> None:
    """Test new, unchanged and changed digests."""
    assert store.check_and_update("pps01123", "sha256:a", today) is ChecksumStatus.CHANGED
    assert store.check_and_update("pps01123", "sha256:a", today) is ChecksumStatus.UNCHANGED

    later = today + timedelta(days=3)
    assert store.check_and_update("pps01123", "sha256:b", later) is ChecksumStatus.CHANGED
    row = store.get("pps01123")
    assert row is not None
    assert row.digest == "sha256:b"
    assert row.date_added == later


@pytest.mark.unit
def test_unchanged_keeps_date(store: ChecksumStore, today: date) -> None:
    store.check_and_update("k", "sha256:a", today)
    store.check_and_update("k", "sha256:a", today + timedelta(days=10))

    row = store.get("k")
    assert row is not None
    assert row.date_added == today


@pytest.mark.unit
def test_delete(store: ChecksumStore, today: date) -> None:
    store.put("k", "sha256:a", today)

    assert store.delete("k") is True
    assert store.delete("k") is False
    assert store.get("k") is None


@pytest.mark.unit
def test_expire_and_date_counts(store: ChecksumStore, today: date) -> None:
    """Test rows strictly older than the cutoff are removed."""
    store.put("old", "sha256:1", today - timedelta(days=91))
    store.put("edge", "sha256:2", today - timedelta(days=90))
    store.put("new1", "sha256:3", today)
    store.put("new2", "sha256:4", today)

    assert store.date_counts() == [
        (today - timedelta(days=91), 1),
        (today - timedelta(days=90), 1),
        (today, 2),
    ]
    assert store.expire(90, today) == 1
    assert store.count() == 3
    assert store.get("old") is None


@pytest.mark.unit
def test_bad_url_is_setup_error() -> None:
    with pytest.raises(SetupError):
        ChecksumStore.from_url("not a url")
