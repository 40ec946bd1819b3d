"""Student record data models for patronsync.

This module defines the validated representation of one CSV row and the
column layouts accepted from districts. All downstream modules (checksum
gate, match engine, payload builder) consume records in this format.
"""

from dataclasses import dataclass, fields, replace
from datetime import date
from typing import Any

# Column order of the district export (also the audit CSV column order)
DISTRICT_SCHEMA: tuple[str, ...] = (
    "student_id",
    "first_name",
    "middle_name",
    "last_name",
    "address",
    "city",
    "state",
    "zipcode",
    "dob",
    "email",
)

# Alternate export layout: names first, then the student id
ALTERNATE_SCHEMA: tuple[str, ...] = (
    "first_name",
    "middle_name",
    "last_name",
    "student_id",
    "address",
    "city",
    "state",
    "zipcode",
    "dob",
    "email",
)

SCHEMAS: dict[str, tuple[str, ...]] = {
    "district": DISTRICT_SCHEMA,
    "alternate": ALTERNATE_SCHEMA,
}


@dataclass(frozen=True)
class StudentRecord:
    """One validated student row.

    Optional values are ``None`` when absent; no sentinel strings are used.

    Attributes
    ----------
    student_id : str
        District-scoped external student identifier.
    first_name : str
        Given name.
    middle_name : str | None
        Middle name, if supplied.
    last_name : str
        Family name.
    address : str
        Street line.
    city : str
        City.
    state : str
        Two-letter state code.
    zipcode : str
        Postal code (``#####`` or ``#####-####``).
    dob : date
        Date of birth.
    email : str | None
        E-mail address, if supplied and valid.
    barcode : str | None
        Barcode of the matched remote patron, once known.
    """

    student_id: str
    first_name: str
    middle_name: str | None
    last_name: str
    address: str
    city: str
    state: str
    zipcode: str
    dob: date
    email: str | None = None
    barcode: str | None = None

    def external_id(self, client_id: str) -> str:
        """Return the client-prefixed student identifier.

        Parameters
        ----------
        client_id : str
            Two-character client identifier.

        Returns
        -------
        str
            ``client_id + student_id``.
        """
        return f"{client_id}{self.student_id}"

    def with_barcode(self, barcode: str | None) -> "StudentRecord":
        """Return a copy carrying the remote barcode."""
        if barcode is None:
            return self
        return replace(self, barcode=barcode)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary.

        Returns
        -------
        dict[str, Any]
            Field map with the date of birth as ISO ``YYYY-MM-DD``.
        """
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, date):
                value = value.isoformat()
            data[f.name] = value
        return data

    def audit_values(self) -> list[str]:
        """Return the normalized field list in district column order.

        Absent optional values are rendered as empty strings.
        """
        data = self.to_dict()
        return ["" if data[name] is None else str(data[name]) for name in DISTRICT_SCHEMA]
