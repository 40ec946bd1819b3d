"""Match engine: runs the ordered strategies for one record."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from patronsync.directory.client import PatronDirectory
from patronsync.errors import DirectoryError, MatchUnavailableError
from patronsync.matching.models import MatchOutcome, StrategyError
from patronsync.matching.strategies import MATCH_FIELDS, MatchStrategy, create_strategies
from patronsync.models import StudentRecord

if TYPE_CHECKING:
    from patronsync.audit.logger import AuditLogger
    from patronsync.engine.config import ClientConfig

__all__ = ["MatchEngine"]


class MatchEngine:
    """Classify a student as Update, Ambiguous or Create.

    The first strategy returning a decisive outcome wins. A strategy whose
    search fails is logged and treated as having found nothing. The engine
    keeps no counters; callers fold the returned outcome into their own.

    Parameters
    ----------
    directory : PatronDirectory
        Directory used for searches. Searches are never retried.
    strategies : Sequence[MatchStrategy] | None, optional
        Ordered strategies; defaults to Alt ID, Email, ID, DOB and Street.
    search_result_cap : int, optional
        Rows requested by the birth-date and street searches.
    extra_fields : Sequence[str], optional
        Additional remote fields to return with every search result
        (needed for overlay defaults).
    logger : AuditLogger | None, optional
        Event log receiving strategy failures.
    """

    def __init__(
        self,
        directory: PatronDirectory,
        strategies: Sequence[MatchStrategy] | None = None,
        search_result_cap: int = 1000,
        extra_fields: Sequence[str] = (),
        logger: AuditLogger | None = None,
    ) -> None:
        self.directory = directory
        fields = tuple(dict.fromkeys((*MATCH_FIELDS, *extra_fields)))
        self.strategies = list(strategies) if strategies is not None else create_strategies(
            result_cap=search_result_cap, fields=fields
        )
        self.logger = logger

    def resolve(
        self,
        record: StudentRecord,
        client: ClientConfig,
        token: str,
        rid: str | None = None,
    ) -> MatchOutcome:
        """Resolve one record.

        Parameters
        ----------
        record : StudentRecord
            Validated record.
        client : ClientConfig
            District configuration (client id prefix).
        token : str
            Session token.
        rid : str | None, optional
            Row identifier used in the event log.

        Returns
        -------
        MatchOutcome
            Decisive outcome, or Create when no strategy found evidence.
            Strategy failures are attached as ``errors``.

        Raises
        ------
        MatchUnavailableError
            If every attempted strategy failed; the record must be skipped
            rather than created.
        """
        errors: list[StrategyError] = []
        attempted = 0

        for strategy in self.strategies:
            if not strategy.applies(record):
                continue
            attempted += 1
            try:
                outcome = strategy.evaluate(self.directory, token, record, client)
            except DirectoryError as e:
                errors.append(StrategyError(strategy=strategy.name, message=str(e)))
                if self.logger is not None:
                    self.logger.strategy_failed(strategy.name, str(e), rid=rid)
                continue
            if outcome is not None:
                return replace(outcome, errors=tuple(errors))

        if attempted and len(errors) == attempted:
            raise MatchUnavailableError(
                f"All {attempted} match strategies failed for {record.external_id(client.id)}",
                errors=[f"{e.strategy}: {e.message}" for e in errors],
            )
        return replace(MatchOutcome.create(), errors=tuple(errors))
