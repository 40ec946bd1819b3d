"""Match strategy plug-ins.

Each strategy runs one or two directory searches for a record and either
returns a decisive ``MatchOutcome`` or ``None`` to let the next strategy
run. Transport failures propagate as ``DirectoryError``; the engine
treats them as "nothing found" for that strategy.

Architecture
------------
* ``MatchStrategy``: structural protocol (one attribute + two methods).
* ``IndexStrategy``: a single-index search decided on a unique hit.
* ``DobStreetStrategy``: the compound birth-date and street search,
  intersected on remote key; always decisive.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from patronsync.directory.client import PatronDirectory
from patronsync.directory.models import MatchCandidate, SearchOptions
from patronsync.matching.models import MatchOutcome, MatchReason
from patronsync.models import StudentRecord

if TYPE_CHECKING:
    from patronsync.engine.config import ClientConfig

__all__ = [
    "MATCH_FIELDS",
    "MatchStrategy",
    "IndexStrategy",
    "EmailStrategy",
    "DobStreetStrategy",
    "intersect_on_key",
    "STRATEGY_REGISTRY",
    "DEFAULT_STRATEGIES",
    "create_strategies",
    "search_street",
]

# Fields every match search returns (reporting and barcode retention)
MATCH_FIELDS: tuple[str, ...] = ("barcode", "firstName", "middleName", "lastName")


@runtime_checkable
class MatchStrategy(Protocol):
    """Structural protocol every match strategy must satisfy.

    Attributes
    ----------
    name : str
        Stable identifier used in the event log.
    """

    name: str

    def applies(self, record: StudentRecord) -> bool:
        """Return False when the record lacks the data this strategy needs."""
        ...

    def evaluate(
        self,
        directory: PatronDirectory,
        token: str,
        record: StudentRecord,
        client: ClientConfig,
    ) -> MatchOutcome | None:
        """Run the searches and return a decisive outcome or None."""
        ...


def search_street(street: str) -> str:
    """Street value used as a search key: ``#`` unit markers removed."""
    return " ".join(street.replace("#", " ").split())


class IndexStrategy:
    """Search one index and match on a unique hit.

    Parameters
    ----------
    name : str
        Strategy identifier.
    reason : MatchReason
        Reason reported for a match.
    index : str
        Directory search index.
    value : Callable[[StudentRecord, ClientConfig], str | None]
        Search value for a record; None skips the strategy.
    result_cap : int, optional
        Rows requested. A cap of 2 lets a duplicated value be recognized
        as non-discriminating.
    fields : Sequence[str], optional
        Fields returned with each result.
    """

    def __init__(
        self,
        name: str,
        reason: MatchReason,
        index: str,
        value: Callable[[StudentRecord, ClientConfig], str | None],
        result_cap: int = 1,
        fields: Sequence[str] = MATCH_FIELDS,
    ) -> None:
        self.name = name
        self.reason = reason
        self.index = index
        self.value = value
        self.result_cap = result_cap
        self.fields = tuple(fields)

    def applies(self, record: StudentRecord) -> bool:
        return True

    def evaluate(
        self,
        directory: PatronDirectory,
        token: str,
        record: StudentRecord,
        client: ClientConfig,
    ) -> MatchOutcome | None:
        value = self.value(record, client)
        if not value:
            return None
        options = SearchOptions(result_cap=self.result_cap, fields_to_return=self.fields)
        result = directory.search(token, self.index, value, options)
        candidate = result.unique
        if candidate is None:
            return None
        return MatchOutcome.update(candidate, self.reason)


class EmailStrategy(IndexStrategy):
    """E-mail search; only attempted when the record has an address."""

    def applies(self, record: StudentRecord) -> bool:
        return bool(record.email)


class DobStreetStrategy:
    """Birth date and street searches intersected on remote key.

    The birth-date search runs first; when it reports no results the
    street search is skipped. Candidates keep the birth-date result order.

    Parameters
    ----------
    result_cap : int, optional
        Rows requested from each search.
    fields : Sequence[str], optional
        Fields returned with each result.
    """

    name = "dob_street"
    reason = MatchReason.DOB_STREET

    def __init__(self, result_cap: int = 1000, fields: Sequence[str] = MATCH_FIELDS) -> None:
        self.result_cap = result_cap
        self.fields = tuple(fields)

    def applies(self, record: StudentRecord) -> bool:
        return True

    def evaluate(
        self,
        directory: PatronDirectory,
        token: str,
        record: StudentRecord,
        client: ClientConfig,
    ) -> MatchOutcome | None:
        options = SearchOptions(result_cap=self.result_cap, fields_to_return=self.fields)

        by_dob = directory.search(token, "BIRTHDATE", record.dob.strftime("%Y%m%d"), options)
        if by_dob.total_results == 0 or not by_dob.results:
            return MatchOutcome.create()

        street = search_street(record.address)
        if not street:
            return MatchOutcome.create()
        by_street = directory.search(token, "STREET", street, options)

        candidates = intersect_on_key(by_dob.results, by_street.results)
        if not candidates:
            return MatchOutcome.create()
        if len(candidates) == 1:
            return MatchOutcome.update(candidates[0], self.reason)
        return MatchOutcome.ambiguous(candidates, self.reason)


def intersect_on_key(
    left: Sequence[MatchCandidate], right: Sequence[MatchCandidate]
) -> list[MatchCandidate]:
    """Candidates of ``left`` whose key also appears in ``right``.

    Keyless candidates are ignored and each key appears once, in ``left``
    order.
    """
    right_keys = {c.key for c in right if c.key}
    seen: set[str] = set()
    result: list[MatchCandidate] = []
    for candidate in left:
        if candidate.key and candidate.key in right_keys and candidate.key not in seen:
            seen.add(candidate.key)
            result.append(candidate)
    return result


def _external_id(record: StudentRecord, client: ClientConfig) -> str:
    return record.external_id(client.id)


def _email(record: StudentRecord, client: ClientConfig) -> str | None:
    return record.email


# name -> factory(result_cap, fields)
STRATEGY_REGISTRY: dict[str, Callable[[int, Sequence[str]], MatchStrategy]] = {
    "alt_id": lambda cap, fields: IndexStrategy(
        "alt_id", MatchReason.ALT_ID, "ALT_ID", _external_id, 1, fields
    ),
    "email": lambda cap, fields: EmailStrategy(
        "email", MatchReason.EMAIL, "EMAIL", _email, 2, fields
    ),
    "id": lambda cap, fields: IndexStrategy("id", MatchReason.ID, "ID", _external_id, 1, fields),
    "dob_street": lambda cap, fields: DobStreetStrategy(cap, fields),
}

DEFAULT_STRATEGIES: tuple[str, ...] = ("alt_id", "email", "id", "dob_street")


def create_strategies(
    names: Sequence[str] = DEFAULT_STRATEGIES,
    result_cap: int = 1000,
    fields: Sequence[str] = MATCH_FIELDS,
) -> list[MatchStrategy]:
    """Instantiate strategies in the given order.

    Parameters
    ----------
    names : Sequence[str], optional
        Keys in ``STRATEGY_REGISTRY``.
    result_cap : int, optional
        Rows requested by the birth-date and street searches.
    fields : Sequence[str], optional
        Fields returned with each search result.

    Returns
    -------
    list[MatchStrategy]
        Ready-to-use strategies.

    Raises
    ------
    ValueError
        If a name is not in the registry.
    """
    strategies: list[MatchStrategy] = []
    for name in names:
        factory = STRATEGY_REGISTRY.get(name)
        if factory is None:
            valid = ", ".join(sorted(STRATEGY_REGISTRY))
            raise ValueError(f"Unknown match strategy: {name!r}. Valid strategies: {valid}")
        strategies.append(factory(result_cap, fields))
    return strategies
