"""Account prediction engine.

Collects candidate accounts from every source in a fixed priority order,
ranks them by confidence and returns the best one with up to three
alternatives:

1. exact supplier profile        (stored confidence, supplier_history)
2. similar supplier profile      (0.75, similar_supplier)
3. learned transaction pattern   (success_rate * 0.9, ml_model)
4. amount bucket                 (0.6, amount_pattern)
5. seasonal keyword              (0.7, category_rules)
6. supplier category             (0.65, category_rules)
7. model suggestion, only when nothing above reached the AI threshold

Sorting is stable, so equal confidences keep the priority order.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from ..learning.categories import DEFAULT_ACCOUNT, CategoryClassifier, account_name
from ..matching.similarity import normalize_supplier_name
from ..schemas.learning import SupplierCategory
from ..schemas.prediction import (
    AccountPrediction,
    PredictionCandidate,
    PredictionSource,
    Transaction,
)
from .heuristics import NO_MATCH_REASONING, amount_candidate, reasoning_for, seasonal_candidate

if TYPE_CHECKING:
    from ..config import PredictionConfig
    from ..inference.service import InferenceService
    from ..learning.patterns import PatternStore
    from ..learning.supplier_profiles import SupplierProfileStore

logger = logging.getLogger(__name__)

SIMILAR_SUPPLIER_CONFIDENCE = 0.75
PATTERN_CONFIDENCE_FACTOR = 0.9
CATEGORY_CONFIDENCE = 0.65
NO_MATCH_CONFIDENCE = 0.3
# Confidence given to a model suggestion that carries none
AI_DEFAULT_CONFIDENCE = 0.5


class AccountPredictionEngine:
    """Predicts a GL account for a transaction.

    Args:
        suppliers: Supplier profile store
        patterns: Transaction pattern store
        classifier: Category classifier
        inference: Optional model client for the AI fallback
        config: Prediction thresholds (defaults when omitted)
    """

    def __init__(
        self,
        suppliers: SupplierProfileStore,
        patterns: PatternStore,
        classifier: CategoryClassifier | None = None,
        inference: InferenceService | None = None,
        config: PredictionConfig | None = None,
    ) -> None:
        self.suppliers = suppliers
        self.patterns = patterns
        self.classifier = classifier or CategoryClassifier()
        self.inference = inference

        self.ai_trigger_threshold = config.ai_trigger_threshold if config else 0.7
        self.ai_confidence_cap = config.ai_confidence_cap if config else 0.85
        self.max_alternatives = config.max_alternatives if config else 3

    def predict(self, company_id: str, transaction: Transaction) -> AccountPrediction:
        """Best account for a transaction, with ranked alternatives."""
        candidates = self.collect_candidates(company_id, transaction)

        if not candidates:
            logger.debug(f"No candidates for '{transaction.supplier}', using {DEFAULT_ACCOUNT}")
            return AccountPrediction(
                account=DEFAULT_ACCOUNT,
                account_name=account_name(DEFAULT_ACCOUNT),
                confidence=NO_MATCH_CONFIDENCE,
                source=PredictionSource.CATEGORY_RULES,
                reasoning=NO_MATCH_REASONING,
                alternatives=[],
            )

        ranked = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        best = ranked[0]
        logger.debug(
            f"Predicted {best.account} ({best.source.value}, {best.confidence:.2f}) "
            f"from {len(ranked)} candidate(s)"
        )
        return AccountPrediction(
            account=best.account,
            account_name=best.account_name,
            confidence=best.confidence,
            source=best.source,
            reasoning=best.reasoning or reasoning_for(best.source, transaction),
            alternatives=ranked[1 : 1 + self.max_alternatives],
        )

    def collect_candidates(
        self, company_id: str, transaction: Transaction
    ) -> list[PredictionCandidate]:
        """All candidates in priority order (unsorted)."""
        candidates: list[PredictionCandidate] = []
        normalized = normalize_supplier_name(transaction.supplier)

        # 1. Exact supplier
        exact = None
        try:
            exact = self.suppliers.get(company_id, normalized)
        except sqlite3.Error as e:
            logger.error(f"Supplier lookup failed for '{normalized}': {e}")
        if exact is not None:
            candidates.append(
                PredictionCandidate(
                    account=exact.default_account,
                    account_name=exact.default_account_name,
                    confidence=exact.learning_stats.confidence_score,
                    source=PredictionSource.SUPPLIER_HISTORY,
                )
            )

        # 2. Similar supplier
        similar = None
        try:
            similar = self.suppliers.find_similar(company_id, normalized)
        except sqlite3.Error as e:
            logger.error(f"Similar supplier lookup failed for '{normalized}': {e}")
        if (
            similar is not None
            and similar.normalized_name != normalized
            and (exact is None or similar.normalized_name != exact.normalized_name)
        ):
            candidates.append(
                PredictionCandidate(
                    account=similar.default_account,
                    account_name=similar.default_account_name,
                    confidence=SIMILAR_SUPPLIER_CONFIDENCE,
                    source=PredictionSource.SIMILAR_SUPPLIER,
                )
            )

        # 3. Learned pattern
        pattern = None
        try:
            pattern = self.patterns.match(company_id, transaction.description)
        except sqlite3.Error as e:
            logger.error(f"Pattern lookup failed: {e}")
        if pattern is not None:
            candidates.append(
                PredictionCandidate(
                    account=pattern.account,
                    account_name=pattern.account_name,
                    confidence=pattern.success_rate * PATTERN_CONFIDENCE_FACTOR,
                    source=PredictionSource.ML_MODEL,
                )
            )

        # 4. Amount bucket
        by_amount = amount_candidate(transaction.amount)
        if by_amount is not None:
            candidates.append(by_amount)

        # 5. Seasonal keyword
        by_season = seasonal_candidate(transaction)
        if by_season is not None:
            candidates.append(by_season)

        # 6. Category
        category = self.classifier.classify(transaction.supplier, transaction.description)
        if category != SupplierCategory.OTHER:
            defaults = self.classifier.defaults_for(category)
            candidates.append(
                PredictionCandidate(
                    account=defaults.account,
                    account_name=defaults.account_name,
                    confidence=CATEGORY_CONFIDENCE,
                    source=PredictionSource.CATEGORY_RULES,
                )
            )

        # 7. Model suggestion
        if all(c.confidence < self.ai_trigger_threshold for c in candidates):
            by_model = self._ai_candidate(transaction)
            if by_model is not None:
                candidates.append(by_model)

        return candidates

    def _ai_candidate(self, transaction: Transaction) -> PredictionCandidate | None:
        if self.inference is None or not self.inference.is_enabled:
            return None

        suggestion = self.inference.suggest_account(transaction)
        if suggestion is None:
            return None

        confidence = (
            AI_DEFAULT_CONFIDENCE if suggestion.confidence is None else suggestion.confidence
        )
        confidence = max(0.0, min(self.ai_confidence_cap, confidence))
        return PredictionCandidate(
            account=suggestion.account,
            account_name=suggestion.account_name,
            confidence=confidence,
            source=PredictionSource.AI_INFERENCE,
        )
