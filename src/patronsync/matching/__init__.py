"""Record matching against the patron directory.

Main Components
---------------
- MatchEngine: ordered short-circuit strategy runner
- MatchOutcome: Update / Ambiguous / Create result
- STRATEGY_REGISTRY: Alt ID, Email, ID and DOB-and-Street strategies
"""

from patronsync.matching.engine import MatchEngine
from patronsync.matching.models import MatchOutcome, MatchReason, OutcomeKind, StrategyError
from patronsync.matching.strategies import (
    DEFAULT_STRATEGIES,
    MATCH_FIELDS,
    STRATEGY_REGISTRY,
    DobStreetStrategy,
    IndexStrategy,
    MatchStrategy,
    create_strategies,
    intersect_on_key,
    search_street,
)

__all__ = [
    "MatchEngine",
    "MatchOutcome",
    "MatchReason",
    "OutcomeKind",
    "StrategyError",
    "DEFAULT_STRATEGIES",
    "MATCH_FIELDS",
    "STRATEGY_REGISTRY",
    "DobStreetStrategy",
    "IndexStrategy",
    "MatchStrategy",
    "create_strategies",
    "intersect_on_key",
    "search_street",
]
