"""Registry of field transforms used by the payload builder.

A transform receives the value computed so far for one payload field and
a ``TransformContext`` and returns the final value. Transforms are named
in the client field configuration and resolved once at load time, so an
unknown name is a configuration error rather than a runtime lookup miss.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

from patronsync.errors import ConfigError

if TYPE_CHECKING:
    from patronsync.engine.config import ClientConfig
    from patronsync.models import StudentRecord

__all__ = [
    "TransformContext",
    "Transform",
    "TRANSFORM_REGISTRY",
    "resolve_transform",
    "age_in_years",
]

BARCODE_RE = re.compile(r"^\d{14}$")


@dataclass(frozen=True)
class TransformContext:
    """Inputs available to a transform.

    Attributes
    ----------
    client : ClientConfig
        Configuration of the district being ingested.
    record : StudentRecord
        The validated student record.
    mode : str
        ``"create"`` or ``"overlay"``.
    today : date
        Reference date for age computations.
    existing_value : Any
        Current remote value of the field being built (overlay only).
    existing_fields : dict[str, Any]
        All returned fields of the existing remote record.
    """

    client: ClientConfig
    record: StudentRecord
    mode: str
    today: date
    existing_value: Any = None
    existing_fields: dict[str, Any] = field(default_factory=dict)


Transform = Callable[[Any, TransformContext], Any]


def age_in_years(dob: date, today: date) -> int:
    """Return age in whole years on ``today``.

    A Feb-29 birthday is compared as Feb-28 in non-leap years, so the
    birthday is reached on the exact anniversary date.

    Parameters
    ----------
    dob : date
        Date of birth.
    today : date
        Reference date.

    Returns
    -------
    int
        Completed years.
    """
    month, day = dob.month, dob.day
    if (month, day) == (2, 29) and not _is_leap(today.year):
        day = 28
    years = today.year - dob.year
    if (today.month, today.day) < (month, day):
        years -= 1
    return years


def _is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def _identity(value: Any, context: TransformContext) -> Any:
    return value


def _alternate_id(value: Any, context: TransformContext) -> Any:
    return context.record.external_id(context.client.id)


def _keep_barcode(value: Any, context: TransformContext) -> Any:
    """Keep an existing 14-digit library barcode, else use the student key."""
    for candidate in (context.existing_value, context.record.barcode):
        if candidate and BARCODE_RE.match(str(candidate)):
            return str(candidate)
    return context.record.external_id(context.client.id)


def _pin(value: Any, context: TransformContext) -> Any:
    return context.record.dob.strftime("%m%d%Y")


def _birth_date(value: Any, context: TransformContext) -> Any:
    return context.record.dob.isoformat()


def _city_state(value: Any, context: TransformContext) -> Any:
    record = context.record
    if not record.city and not record.state:
        return None
    return f"{record.city}, {record.state}"


def _profile_by_age(value: Any, context: TransformContext) -> Any:
    defaults = context.client.defaults_for(context.mode)
    if age_in_years(context.record.dob, context.today) >= context.client.adult_age:
        return value or defaults.user_profile
    return defaults.youth_profile or value


def _preserve_district_email(value: Any, context: TransformContext) -> Any:
    """Prefer an existing district e-mail over an incoming non-district one."""
    existing = context.existing_value
    if not existing or not context.client.email_domains:
        return value

    def is_district(address: Any) -> bool:
        return bool(address) and any(p.search(str(address)) for p in context.client.email_domains)

    if is_district(existing) and not is_district(value):
        return existing
    return value


TRANSFORM_REGISTRY: dict[str, Transform] = {
    "identity": _identity,
    "alternate_id": _alternate_id,
    "keep_barcode": _keep_barcode,
    "pin": _pin,
    "birth_date": _birth_date,
    "city_state": _city_state,
    "profile_by_age": _profile_by_age,
    "preserve_district_email": _preserve_district_email,
}


def resolve_transform(name: str | None) -> Transform:
    """Look up a transform by name.

    Parameters
    ----------
    name : str | None
        Registry key; None selects ``identity``.

    Returns
    -------
    Transform
        The transform function.

    Raises
    ------
    ConfigError
        If the name is not in the registry.
    """
    if name is None:
        return _identity
    fn = TRANSFORM_REGISTRY.get(name)
    if fn is None:
        valid = ", ".join(sorted(TRANSFORM_REGISTRY))
        raise ConfigError(f"Unknown transform: {name!r}. Valid transforms: {valid}")
    return fn
