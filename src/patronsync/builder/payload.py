"""Payload builder for patron create and overlay calls.

Maps a validated ``StudentRecord`` and the client's field layout into the
JSON shape the directory service expects. Fields are processed in
lexicographic order of their names so the output, including the order of
the ``address1`` list, is reproducible.
"""

from __future__ import annotations

import unicodedata
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from patronsync.errors import PayloadError
from patronsync.models import StudentRecord
from patronsync.utils import local_today
from patronsync.validate.rules import check_rule
from patronsync.validate.transforms import TransformContext

if TYPE_CHECKING:
    from patronsync.engine.config import ClientConfig, FieldSpec

__all__ = ["BuildMode", "RecordBuilder", "PATRON_RESOURCE", "existing_value", "strip_diacritics"]

PATRON_RESOURCE = "/user/patron"
ADDRESS_CODE_RESOURCE = "/policy/patronAddress1"


class BuildMode(StrEnum):
    """Payload mode."""

    CREATE = "create"
    OVERLAY = "overlay"


def strip_diacritics(text: str) -> str:
    """Remove combining marks after NFKD decomposition (``José`` -> ``Jose``)."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return strip_diacritics(value)
    if isinstance(value, dict):
        return {k: _clean(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_clean(v) for v in value]
    return value


def existing_value(spec: FieldSpec, existing_fields: dict[str, Any]) -> Any:
    """Current remote value of one configured field.

    Parameters
    ----------
    spec : FieldSpec
        Field specification.
    existing_fields : dict[str, Any]
        Fields of the remote record as returned by the directory.

    Returns
    -------
    Any
        Scalar value, resource key or address data; None if absent.
    """
    if spec.type == "address":
        group = spec.name.split(".", 1)[0]
        for entry in existing_fields.get(group) or []:
            if not isinstance(entry, dict):
                continue
            fields = entry.get("fields") or {}
            code = fields.get("code") or {}
            if isinstance(code, dict) and code.get("key") == spec.code:
                return fields.get("data")
        return None

    value = existing_fields.get(spec.name)
    if spec.type == "resource" and isinstance(value, dict):
        return value.get("key")
    return value


class RecordBuilder:
    """Build create and overlay payloads from a client field layout."""

    def build(
        self,
        record: StudentRecord,
        client: ClientConfig,
        mode: BuildMode,
        existing_fields: dict[str, Any] | None = None,
        key: str | None = None,
        today: date | None = None,
    ) -> dict[str, Any]:
        """Produce the payload for one record.

        Parameters
        ----------
        record : StudentRecord
            Validated record, carrying the matched remote barcode if any.
        client : ClientConfig
            District configuration with the field layout.
        mode : BuildMode
            ``CREATE`` for a new patron, ``OVERLAY`` for an update.
        existing_fields : dict[str, Any] | None, optional
            Fields of the remote record being overlaid.
        key : str | None, optional
            Remote record key; required in overlay mode.
        today : date | None, optional
            Reference date for age-driven fields.

        Returns
        -------
        dict[str, Any]
            ``{"resource": "/user/patron", "fields": {...}}`` plus ``key``
            in overlay mode. Empty values are never emitted.

        Raises
        ------
        PayloadError
            If overlay mode has no key, or a defaulted, fixed or derived
            value fails its rule.
        """
        mode = BuildMode(mode)
        if mode is BuildMode.OVERLAY and not key:
            raise PayloadError("Overlay payload requires the remote record key")

        existing = existing_fields or {}
        today = today or local_today()
        fields: dict[str, Any] = {}

        for spec in sorted(client.fields, key=lambda s: s.name):
            if mode is BuildMode.OVERLAY and not spec.overlay:
                continue
            value = self._field_value(spec, record, client, mode, existing, today)
            if _is_empty(value):
                continue
            self._emit(fields, spec, value)

        payload: dict[str, Any] = {"resource": PATRON_RESOURCE, "fields": _clean(fields)}
        if mode is BuildMode.OVERLAY:
            payload["key"] = str(key)
        return payload

    def _field_value(
        self,
        spec: FieldSpec,
        record: StudentRecord,
        client: ClientConfig,
        mode: BuildMode,
        existing: dict[str, Any],
        today: date,
    ) -> Any:
        value = getattr(record, spec.source) if spec.source else None
        current = existing_value(spec, existing)
        substituted = False

        default = spec.default_for(mode)
        if default is not None:
            if mode is BuildMode.OVERLAY and _is_empty(current):
                value, substituted = default, True
            elif mode is BuildMode.CREATE and _is_empty(value):
                value, substituted = default, True

        fixed = spec.value_for(mode)
        if fixed is not None:
            value, substituted = fixed, True

        context = TransformContext(
            client=client,
            record=record,
            mode=mode,
            today=today,
            existing_value=current,
            existing_fields=existing,
        )
        value = spec.transform_fn(value, context)

        needs_check = spec.source is None or substituted
        if needs_check and spec.rule and not _is_empty(value) and not check_rule(value, spec.rule):
            raise PayloadError(
                f"Value {value!r} for {spec.name} fails rule {spec.rule}", field=spec.name
            )
        return value

    def _emit(self, fields: dict[str, Any], spec: FieldSpec, value: Any) -> None:
        if spec.type == "resource":
            fields[spec.name] = {"resource": spec.resource, "key": str(value)}
        elif spec.type == "address":
            group = spec.name.split(".", 1)[0]
            fields.setdefault(group, []).append(
                {
                    "resource": spec.resource or f"/user/patron/{group}",
                    "fields": {
                        "code": {"key": spec.code, "resource": ADDRESS_CODE_RESOURCE},
                        "data": str(value),
                    },
                }
            )
        else:
            fields[spec.name] = value.isoformat() if isinstance(value, date) else value
