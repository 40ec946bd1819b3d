"""Data models for patron directory responses."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MatchCandidate:
    """Reference to one remote patron record.

    Attributes
    ----------
    key : str | None
        Opaque record key assigned by the directory service.
    fields : dict[str, Any]
        Field subset returned by the search (barcode, names, ...).
    """

    key: str | None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def barcode(self) -> str | None:
        """Barcode of the remote record, if returned."""
        value = self.fields.get("barcode")
        return str(value) if value else None

    def display_name(self) -> list[str]:
        """Return first, middle (if any) and last name for reporting."""
        parts = [self.fields.get("firstName") or ""]
        if self.fields.get("middleName"):
            parts.append(self.fields["middleName"])
        parts.append(self.fields.get("lastName") or "")
        return [str(p) for p in parts]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchCandidate":
        """Build from one element of a search response ``result`` array."""
        key = data.get("key")
        fields = dict(data.get("fields") or {})
        return cls(key=str(key) if key not in (None, "") else None, fields=fields)


@dataclass(frozen=True)
class SearchResult:
    """Result set of one directory search.

    Attributes
    ----------
    total_results : int
        Total match count reported by the service. May exceed
        ``len(results)`` when the result cap truncated the page.
    results : list[MatchCandidate]
        Returned page of candidates.
    """

    total_results: int
    results: list[MatchCandidate] = field(default_factory=list)

    @property
    def unique(self) -> MatchCandidate | None:
        """Return the single candidate when exactly one record matched.

        Uniqueness is judged on ``total_results``, not on the page length,
        and the candidate must carry a usable key.
        """
        if self.total_results == 1 and self.results and self.results[0].key:
            return self.results[0]
        return None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "SearchResult":
        """Build from a decoded JSON search response."""
        results = [MatchCandidate.from_dict(item) for item in data.get("result") or []]
        total = data.get("totalResults")
        return cls(total_results=int(total) if total is not None else len(results), results=results)


@dataclass(frozen=True)
class SearchOptions:
    """Options for one directory search.

    Attributes
    ----------
    result_cap : int
        Maximum number of rows to return (``ct``).
    start_row : int
        1-based first row (``rw``).
    fields_to_return : tuple[str, ...]
        Field names to include in each result.
    """

    result_cap: int = 1
    start_row: int = 1
    fields_to_return: tuple[str, ...] = ()
