"""Transaction pattern learning.

A pattern remembers which account a (supplier, description) pair was booked
to and how often that booking was confirmed rather than corrected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..matching.similarity import normalize, pattern_id, similarity
from ..matching.strategies import DEFAULT_STRATEGY, MatchStrategy
from ..schemas.learning import TransactionPattern
from ..state_store.sqlite_store import ConcurrentUpdateError, utc_now

if TYPE_CHECKING:
    from ..schemas.prediction import Transaction
    from ..state_store import StateStore

logger = logging.getLogger(__name__)

# Only patterns at least this reliable are offered as matches
MIN_SUCCESS_RATE = 0.6
# Number of patterns scanned per match
MATCH_SCAN_LIMIT = 50
# Edit-distance similarity needed for a non-substring match
MIN_SIMILARITY = 0.7
MAX_WRITE_ATTEMPTS = 3


class PatternStore:
    """Learned transaction patterns, backed by the StateStore."""

    def __init__(self, store: StateStore, strategy: MatchStrategy | None = None):
        self.store = store
        self.strategy = strategy or DEFAULT_STRATEGY

    def match(self, company_id: str, description: str | None) -> TransactionPattern | None:
        """
        Find a reliable pattern for a transaction description.

        Scans the most used patterns with success_rate >= 0.6. A pattern
        matches when its text is a substring of the normalized description,
        or the other way round, or the two are at least 0.7 similar. Empty
        text never matches.
        """
        text = normalize(description)
        if not text:
            return None

        def accept(pattern: TransactionPattern) -> bool:
            if not pattern.pattern:
                return False
            if pattern.pattern in text or text in pattern.pattern:
                return True
            return similarity(text, pattern.pattern) >= MIN_SIMILARITY

        candidates = self.store.list_patterns(
            company_id, min_success_rate=MIN_SUCCESS_RATE, limit=MATCH_SCAN_LIMIT
        )
        return self.strategy.select(
            candidates, accept, score=lambda p: similarity(text, p.pattern)
        )

    def learn(
        self,
        company_id: str,
        transaction: Transaction,
        approved_account: str,
        approved_account_name: str,
        was_correction: bool = False,
    ) -> TransactionPattern:
        """
        Record an approved booking as a pattern.

        An existing pattern gets a running-average success rate (a correction
        counts as a miss), one more use and the approved account. A new pattern
        starts at success rate 1.0, or 0.5 when it was born from a correction.

        Raises:
            ConcurrentUpdateError: If every write attempt lost a race
        """
        key = pattern_id(transaction.supplier, transaction.description)
        text = normalize(transaction.description)

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            now = utc_now()
            existing = self.store.get_pattern(company_id, key)

            if existing is None:
                pattern = TransactionPattern(
                    pattern_id=key,
                    company_id=company_id,
                    pattern=text,
                    account=approved_account,
                    account_name=approved_account_name,
                    usage_count=1,
                    success_rate=0.5 if was_correction else 1.0,
                    last_used=now,
                    created_at=now,
                    version=1,
                )
                if self.store.insert_pattern(pattern):
                    logger.debug(f"New pattern {key} -> {approved_account}")
                    return pattern
            else:
                hit = 0.0 if was_correction else 1.0
                count = existing.usage_count
                pattern = TransactionPattern(
                    pattern_id=key,
                    company_id=company_id,
                    pattern_type=existing.pattern_type,
                    pattern=text or existing.pattern,
                    account=approved_account,
                    account_name=approved_account_name,
                    usage_count=count + 1,
                    success_rate=(existing.success_rate * count + hit) / (count + 1),
                    last_used=now,
                    created_at=existing.created_at,
                    version=existing.version + 1,
                )
                if self.store.update_pattern(pattern, expected_version=existing.version):
                    logger.debug(
                        f"Pattern {key} -> {approved_account} "
                        f"(uses {pattern.usage_count}, success {pattern.success_rate:.2f})"
                    )
                    return pattern

            logger.debug(f"Pattern {key} changed concurrently (attempt {attempt})")

        raise ConcurrentUpdateError(
            "transaction_patterns", f"{company_id}/{key}", MAX_WRITE_ATTEMPTS
        )

    def accuracy_stats(self, company_id: str) -> dict[str, Any]:
        """Prediction accuracy across all patterns of a company."""
        patterns = self.store.list_patterns(company_id)

        total = sum(p.usage_count for p in patterns)
        correct = sum(p.usage_count * p.success_rate for p in patterns)

        return {
            "total_predictions": total,
            "correct_predictions": round(correct),
            "accuracy": round(correct / total, 2) if total else 0.0,
            "top_patterns": [
                {
                    "pattern": p.pattern,
                    "account": p.account,
                    "usage_count": p.usage_count,
                    "success_rate": round(p.success_rate, 2),
                }
                for p in patterns[:10]
            ],
        }
