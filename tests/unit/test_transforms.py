"""Tests for the field transform registry."""

import re
from dataclasses import replace
from datetime import date

import pytest

from patronsync.engine import ClientConfig
from patronsync.errors import ConfigError
from patronsync.models import StudentRecord
from patronsync.validate import TransformContext, age_in_years, resolve_transform


def _context(client: ClientConfig, record: StudentRecord, **kwargs: object) -> TransformContext:
    values: dict[str, object] = {"mode": "create", "today": date(2026, 3, 15)}
    values.update(kwargs)
    return TransformContext(client=client, record=record, **values)  # type: ignore[arg-type]


@pytest.mark.unit
@pytest.mark.parametrize(
    ("dob", "today", "expected"),
    [
        (date(2013, 3, 15), date(2026, 3, 15), 13),
        (date(2013, 3, 16), date(2026, 3, 15), 12),
        (date(2013, 3, 14), date(2026, 3, 15), 13),
        (date(2012, 2, 29), date(2025, 2, 28), 13),
        (date(2012, 2, 29), date(2025, 2, 27), 12),
        (date(2012, 2, 29), date(2024, 2, 28), 11),
        (date(2012, 2, 29), date(2024, 2, 29), 12),
    ],
)
def test_age_in_years(dob: date, today: date, expected: int) -> None:
    """Test whole-year ages, with Feb-29 birthdays reached on Feb-28."""
    assert age_in_years(dob, today) == expected


@pytest.mark.unit
def test_profile_boundary_is_inclusive(client: ClientConfig, make_student) -> None:
    """Test a student turning the adult age today gets the adult profile."""
    profile = resolve_transform("profile_by_age")
    adult = make_student(dob=date(2013, 3, 15))
    youth = make_student(dob=date(2013, 3, 16))

    assert profile("ADULT", _context(client, adult)) == "ADULT"
    assert profile("ADULT", _context(client, youth)) == "YOUTH"


@pytest.mark.unit
def test_keep_barcode_prefers_library_barcode(client: ClientConfig, make_student) -> None:
    """Test an existing 14-digit barcode is kept, anything else is replaced."""
    keep = resolve_transform("keep_barcode")
    record = make_student()

    assert keep(None, _context(client, record, existing_value="21168012345678")) == "21168012345678"
    assert keep(None, _context(client, record.with_barcode("21168087654321"))) == "21168087654321"
    assert keep(None, _context(client, record, existing_value="01123456")) == "01123456"
    assert keep(None, _context(client, record, existing_value="ABC")) == "01123456"


@pytest.mark.unit
def test_alternate_id_and_dates(client: ClientConfig, make_student) -> None:
    record = make_student()
    context = _context(client, record)

    assert resolve_transform("alternate_id")(None, context) == "01123456"
    assert resolve_transform("pin")(None, context) == "02142010"
    assert resolve_transform("birth_date")(None, context) == "2010-02-14"
    assert resolve_transform("city_state")(None, context) == "Portland, OR"


@pytest.mark.unit
def test_preserve_district_email(client: ClientConfig, make_student) -> None:
    """Test a district address on the remote record survives a personal one."""
    preserve = resolve_transform("preserve_district_email")
    record = make_student(email="ana@gmail.com")
    district = "ana.lopez@student.example.org"

    assert preserve("ana@gmail.com", _context(client, record, existing_value=district)) == district
    personal = _context(client, record, existing_value="old@gmail.com")
    assert preserve("ana@gmail.com", personal) == "ana@gmail.com"
    replaced = _context(client, record, existing_value=district)
    assert preserve("new@student.example.org", replaced) == "new@student.example.org"


@pytest.mark.unit
def test_preserve_district_email_without_patterns(client: ClientConfig, make_student) -> None:
    bare = replace(client, email_domains=())
    preserve = resolve_transform("preserve_district_email")
    context = _context(bare, make_student(), existing_value="ana.lopez@student.example.org")

    assert preserve("ana@gmail.com", context) == "ana@gmail.com"
    assert client.email_domains[0].flags & re.IGNORECASE


@pytest.mark.unit
def test_resolve_transform_unknown_name() -> None:
    """Test an unknown transform name fails at resolution time."""
    with pytest.raises(ConfigError, match="Unknown transform"):
        resolve_transform("shout")
    assert resolve_transform(None)("x", None) == "x"  # type: ignore[arg-type]
