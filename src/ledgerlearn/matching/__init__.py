"""String normalization, similarity and fuzzy match strategies."""

from ledgerlearn.matching.similarity import (
    levenshtein,
    normalize,
    normalize_supplier_name,
    pattern_id,
    rolling_hash,
    similarity,
)
from ledgerlearn.matching.strategies import (
    DEFAULT_STRATEGY,
    BestScoreStrategy,
    FirstMatchStrategy,
    MatchStrategy,
)

__all__ = [
    "levenshtein",
    "normalize",
    "normalize_supplier_name",
    "pattern_id",
    "rolling_hash",
    "similarity",
    "DEFAULT_STRATEGY",
    "BestScoreStrategy",
    "FirstMatchStrategy",
    "MatchStrategy",
]
