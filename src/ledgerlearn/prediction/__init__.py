"""Account prediction from learned history, rules and the model."""

from ledgerlearn.prediction.engine import AccountPredictionEngine
from ledgerlearn.prediction.heuristics import AMOUNT_RULES, SEASONAL_RULES

__all__ = ["AccountPredictionEngine", "AMOUNT_RULES", "SEASONAL_RULES"]
