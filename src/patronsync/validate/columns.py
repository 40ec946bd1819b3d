"""Per-column validators for incoming CSV values.

Each validator takes the raw string from the CSV and returns the
normalized value, ``None`` for an absent optional value, or ``INVALID``.
"""

import re
from collections.abc import Callable
from typing import Any

from patronsync.validate.rules import INVALID, is_valid_email, parse_us_date

__all__ = [
    "ColumnValidator",
    "COLUMN_VALIDATORS",
    "format_street",
    "format_city",
    "format_state",
]

ColumnValidator = Callable[[str], Any]

_WS_RE = re.compile(r"\s+")
_STUDENT_ID_RE = re.compile(r"^\d{1,12}$")
_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
_STATE_RE = re.compile(r"^[A-Z]{2}$")


def _collapse(value: str) -> str:
    return _WS_RE.sub(" ", value).strip()


def format_street(value: str) -> str:
    """Tidy a street line: drop periods and commas, space ``#`` markers.

    Words are title-cased unless they look like an acronym (two or more
    capitals and longer than four characters).
    """
    text = re.sub(r"[.,]", "", _collapse(value))
    text = re.sub(r"\s*#\s*", " # ", text).strip()
    words = []
    for word in text.split():
        if not re.search(r"[A-Z]{2,}", word) or len(word) <= 4:
            word = word.lower().capitalize()
        words.append(word)
    return " ".join(words)


def format_city(value: str) -> str:
    """Keep letters, hyphens and apostrophes; title-case each word."""
    text = re.sub(r"[^A-Za-z\-' ]", "", _collapse(value))
    return " ".join(word.lower().capitalize() for word in text.split())


def format_state(value: str) -> str:
    """Upper-case a state code, dropping anything that is not a letter."""
    return re.sub(r"[^A-Z]", "", value.upper())


def _student_id(value: str) -> Any:
    text = value.strip()
    return text if _STUDENT_ID_RE.match(text) else INVALID


def _required(max_len: int) -> ColumnValidator:
    def _validate(value: str) -> Any:
        text = _collapse(value)
        return text[:max_len] if text else INVALID

    return _validate


def _optional(max_len: int) -> ColumnValidator:
    def _validate(value: str) -> Any:
        text = _collapse(value)
        return text[:max_len] if text else None

    return _validate


def _address(value: str) -> Any:
    text = format_street(value)
    return text if text else INVALID


def _city(value: str) -> Any:
    text = format_city(value)
    return text if text else INVALID


def _state(value: str) -> Any:
    text = format_state(value)
    return text if _STATE_RE.match(text) else INVALID


def _zipcode(value: str) -> Any:
    text = value.strip()
    return text if _ZIP_RE.match(text) else INVALID


def _dob(value: str) -> Any:
    parsed = parse_us_date(value)
    return parsed if parsed is not None else INVALID


def _email(value: str) -> Any:
    # Optional column: an unusable address is dropped, not rejected
    text = value.strip()
    return text if is_valid_email(text) else None


COLUMN_VALIDATORS: dict[str, ColumnValidator] = {
    "student_id": _student_id,
    "first_name": _required(20),
    "middle_name": _optional(20),
    "last_name": _required(60),
    "address": _address,
    "city": _city,
    "state": _state,
    "zipcode": _zipcode,
    "dob": _dob,
    "email": _email,
}
