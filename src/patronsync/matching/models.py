"""Data models for match outcomes."""

from dataclasses import dataclass
from enum import StrEnum

from patronsync.directory.models import MatchCandidate

__all__ = ["MatchReason", "OutcomeKind", "MatchOutcome", "StrategyError"]


class MatchReason(StrEnum):
    """Evidence that identified the remote record.

    The values are the labels written to the audit CSV ``match`` column.
    """

    ALT_ID = "Alt ID"
    EMAIL = "Email"
    ID = "ID"
    DOB_STREET = "DOB and Street"


class OutcomeKind(StrEnum):
    """What the ingest run does with the record."""

    UPDATE = "Update"
    AMBIGUOUS = "Ambiguous"
    CREATE = "Create"


@dataclass(frozen=True)
class StrategyError:
    """A search that failed at transport level.

    Attributes
    ----------
    strategy : str
        Strategy name (``alt_id``, ``email``, ``id``, ``dob_street``).
    message : str
        Error text including the status code, if any.
    """

    strategy: str
    message: str


@dataclass(frozen=True)
class MatchOutcome:
    """Result of resolving one student against the directory.

    Attributes
    ----------
    kind : OutcomeKind
        Update, Ambiguous or Create.
    reason : MatchReason | None
        Strategy that produced an Update; also set for Ambiguous.
    candidate : MatchCandidate | None
        Target record of an Update.
    candidates : tuple[MatchCandidate, ...]
        Every candidate of an Ambiguous outcome.
    errors : tuple[StrategyError, ...]
        Strategies that failed while resolving.
    """

    kind: OutcomeKind
    reason: MatchReason | None = None
    candidate: MatchCandidate | None = None
    candidates: tuple[MatchCandidate, ...] = ()
    errors: tuple[StrategyError, ...] = ()

    @property
    def key(self) -> str | None:
        """Remote key of the Update target."""
        return self.candidate.key if self.candidate is not None else None

    @classmethod
    def update(cls, candidate: MatchCandidate, reason: MatchReason) -> "MatchOutcome":
        return cls(kind=OutcomeKind.UPDATE, reason=reason, candidate=candidate)

    @classmethod
    def ambiguous(cls, candidates: list[MatchCandidate], reason: MatchReason) -> "MatchOutcome":
        return cls(kind=OutcomeKind.AMBIGUOUS, reason=reason, candidates=tuple(candidates))

    @classmethod
    def create(cls) -> "MatchOutcome":
        return cls(kind=OutcomeKind.CREATE)
