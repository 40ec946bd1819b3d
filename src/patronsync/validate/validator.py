"""Field validator: turns one raw CSV row into a ``StudentRecord``."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from patronsync.models import DISTRICT_SCHEMA, StudentRecord
from patronsync.validate.columns import COLUMN_VALIDATORS, ColumnValidator
from patronsync.validate.rules import INVALID, check_rule

if TYPE_CHECKING:
    from patronsync.engine.config import ClientConfig

__all__ = ["FieldError", "RowValidation", "FieldValidator"]


@dataclass(frozen=True)
class FieldError:
    """One field that failed validation.

    Attributes
    ----------
    field : str
        Column name.
    value : str
        Raw value as read from the file.
    """

    field: str
    value: str


@dataclass
class RowValidation:
    """Outcome of validating one row.

    Attributes
    ----------
    record : StudentRecord | None
        The validated record, None if any required field was invalid.
    errors : list[FieldError]
        Fields that failed validation.
    """

    record: StudentRecord | None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None and not self.errors


class FieldValidator:
    """Validate and normalize incoming values for one client.

    Parameters
    ----------
    client : ClientConfig
        District configuration (private address, default state).
    columns : Mapping[str, ColumnValidator] | None, optional
        Column validators; defaults to ``COLUMN_VALIDATORS``.
    """

    def __init__(
        self,
        client: ClientConfig,
        columns: Mapping[str, ColumnValidator] | None = None,
    ) -> None:
        self.client = client
        self.columns = dict(COLUMN_VALIDATORS if columns is None else columns)

    def validate(self, field_name: str, raw_value: Any, rule: str | None = None) -> Any:
        """Validate a single value.

        Parameters
        ----------
        field_name : str
            Column name; selects the column validator, if any.
        raw_value : Any
            Raw input value.
        rule : str | None, optional
            Additional rule string checked after column normalization.

        Returns
        -------
        Any
            Normalized value, None for an absent optional value, or
            ``INVALID``.
        """
        value = raw_value
        validator = self.columns.get(field_name)
        if validator is not None:
            value = validator("" if raw_value is None else str(raw_value))
            if value is INVALID:
                return INVALID
        if rule is not None and value is not None and not check_rule(value, rule):
            return INVALID
        return value

    def prepare_row(self, row: Mapping[str, str | None]) -> dict[str, str]:
        """Apply client substitutions before validation.

        A row without street, city and postal code (a private address)
        receives the client's substitute address; a blank state receives
        the client's default state.
        """
        prepared = {key: (value or "").strip() for key, value in row.items()}
        private = self.client.private_address
        if private and not any(prepared.get(k) for k in ("address", "city", "zipcode")):
            for key, value in private.items():
                prepared[key] = value
        if not prepared.get("state") and self.client.default_state:
            prepared["state"] = self.client.default_state
        return prepared

    def validate_row(self, row: Mapping[str, str | None]) -> RowValidation:
        """Validate every column of a row.

        Parameters
        ----------
        row : Mapping[str, str | None]
            Column name to raw value, names already lower-cased.

        Returns
        -------
        RowValidation
            Validated record or the list of failing fields.
        """
        prepared = self.prepare_row(row)
        values: dict[str, Any] = {}
        errors: list[FieldError] = []

        for name in DISTRICT_SCHEMA:
            raw = prepared.get(name, "")
            value = self.validate(name, raw)
            if value is INVALID:
                errors.append(FieldError(field=name, value=raw))
            else:
                values[name] = value

        if errors:
            return RowValidation(record=None, errors=errors)
        return RowValidation(record=StudentRecord(**values))
