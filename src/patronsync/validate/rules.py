"""Syntactic validation rules.

A rule is a string ``type[:param]``:

==========  =====================================================
``b``       value must be blank
``d:FMT``   date in the given format (see ``DATE_FORMATS``)
``i:N``     integer of at most N digits
``n:W.F``   number with at most W whole and F fractional digits
``s:N``     string of at most N characters (blank allowed)
``r:X,Y``   integer in the inclusive range [X, Y]
``v:A|B``   one of the listed values
``e``       e-mail address
``z``       US postal code (``#####`` or ``#####-####``)
==========  =====================================================
"""

import re
from datetime import date

from patronsync.errors import ConfigError

__all__ = [
    "INVALID",
    "RULE_TYPES",
    "DATE_FORMATS",
    "check_rule",
    "parse_rule",
    "parse_date",
    "parse_us_date",
    "is_valid_email",
]


class _Invalid:
    """Marker returned by validators for values that fail their rule."""

    _instance: "_Invalid | None" = None

    def __new__(cls) -> "_Invalid":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "INVALID"


INVALID = _Invalid()

RULE_TYPES = frozenset("bdinsrvez")

_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+'\-]+@[A-Za-z0-9\-]+(\.[A-Za-z0-9\-]+)*\.[A-Za-z]{2,}$")
_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
_INT_RE = re.compile(r"^-?\d+$")
_NUMBER_RE = re.compile(r"^(-?\d+)(?:\.(\d+))?$")

# format -> (regex, group order as (year, month, day))
DATE_FORMATS: dict[str, tuple[re.Pattern[str], tuple[int, int, int]]] = {
    "YYYY-MM-DD HH:MM": (re.compile(r"^(\d{4})[/\-](\d{2})[/\-](\d{2})\s\d{2}:\d{2}$"), (1, 2, 3)),
    "YYYY-MM-DD": (re.compile(r"^(\d{4})[/\-](\d{2})[/\-](\d{2})(?:\s\d{2}:\d{2})?$"), (1, 2, 3)),
    "MM/DD/YYYY": (re.compile(r"^(\d{2})[/\-](\d{2})[/\-](\d{4})$"), (3, 1, 2)),
    "YYYYMMDDHHMMSS": (re.compile(r"^(\d{4})(\d{2})(\d{2})\d{6}$"), (1, 2, 3)),
    "YYYYMMDD": (re.compile(r"^(\d{4})(\d{2})(\d{2})$"), (1, 2, 3)),
}

_US_DATE_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")


def _canonical_format(fmt: str) -> str:
    """Fold separator variants (``/`` or ``-``) onto the registered key."""
    norm = fmt.strip().upper()
    if re.fullmatch(r"YYYY[/\-]?MM[/\-]?DD\sHH:MM", norm):
        return "YYYY-MM-DD HH:MM"
    if re.fullmatch(r"YYYY[/\-]MM[/\-]DD", norm):
        return "YYYY-MM-DD"
    if re.fullmatch(r"MM[/\-]DD[/\-]YYYY", norm):
        return "MM/DD/YYYY"
    return norm


def _make_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: str, fmt: str) -> date | None:
    """Parse a date string in the given format.

    Parameters
    ----------
    value : str
        Input date string.
    fmt : str
        One of ``DATE_FORMATS`` (``/`` and ``-`` separators are equivalent).

    Returns
    -------
    date | None
        Parsed calendar date, or None if the value does not match or is not
        a real calendar date.

    Raises
    ------
    ConfigError
        If the format is not supported.
    """
    key = _canonical_format(fmt)
    if key not in DATE_FORMATS:
        raise ConfigError(f"Unsupported date format: {fmt!r}")

    pattern, order = DATE_FORMATS[key]
    match = pattern.match(value.strip())
    if not match:
        return None
    year, month, day = (int(match.group(i)) for i in order)
    return _make_date(year, month, day)


def parse_us_date(value: str) -> date | None:
    """Parse ``M/D/YYYY`` with an optional trailing time part.

    District exports write dates of birth either as ``MM/DD/YYYY`` or as
    ``M/D/YYYY HH:MM:SS AM``; the time part is ignored.
    """
    text = value.strip()
    if not text:
        return None
    head = text.split()[0]
    match = _US_DATE_RE.match(head)
    if match:
        return _make_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))
    return parse_date(head, "YYYY-MM-DD") if re.match(r"^\d{4}", head) else None


def is_valid_email(value: str | None) -> bool:
    """Return True if value looks like a deliverable e-mail address."""
    return bool(value) and bool(_EMAIL_RE.match(value.strip()))  # type: ignore[union-attr]


def parse_rule(rule: str) -> tuple[str, str | None]:
    """Split a rule into its type code and parameter.

    Raises
    ------
    ConfigError
        If the rule is empty or its type is unknown.
    """
    if not rule:
        raise ConfigError("Empty validation rule")
    kind, _, param = rule.partition(":")
    if kind not in RULE_TYPES:
        raise ConfigError(f"Unsupported validation rule type: {kind!r} in {rule!r}")
    return kind, param or None


def check_rule(value: object, rule: str) -> bool:
    """Check a value against a validation rule.

    Parameters
    ----------
    value : object
        Value to check. ``None`` is treated as blank; dates are checked in
        their ISO form.
    rule : str
        Validation rule (see module docstring).

    Returns
    -------
    bool
        True if the value satisfies the rule.
    """
    kind, param = parse_rule(rule)
    text = None if value is None else (value.isoformat() if isinstance(value, date) else str(value))

    if kind == "b":
        return not text
    if kind == "s":
        return text is None or len(text) <= int(param or 0)
    if not text:
        return False

    if kind == "d":
        return isinstance(value, date) or parse_date(text, param or "YYYY-MM-DD") is not None
    if kind == "i":
        return bool(_INT_RE.match(text)) and len(text.lstrip("-")) <= int(param or 0)
    if kind == "n":
        whole_len, _, frac_len = (param or "0").partition(".")
        match = _NUMBER_RE.match(text)
        if not match:
            return False
        whole, frac = match.group(1).lstrip("-"), match.group(2) or ""
        return len(whole) <= int(whole_len or 0) and len(frac) <= int(frac_len or 0)
    if kind == "r":
        low, _, high = (param or "").partition(",")
        if not _INT_RE.match(text):
            return False
        number = int(text)
        if low and number < int(low):
            return False
        return not (high and number > int(high))
    if kind == "v":
        return text in (param or "").split("|")
    if kind == "e":
        return is_valid_email(text)
    # kind == "z"
    return bool(_ZIP_RE.match(text))
