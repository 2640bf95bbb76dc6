"""Learning feedback loop.

Called once per human decision on a prediction. The decision is written to
the supplier profile, then to the transaction pattern, and, for corrections,
to the correction audit trail. Persistence errors propagate to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..matching.similarity import normalize_supplier_name
from ..schemas.learning import SupplierLearningProfile, TransactionPattern
from ..schemas.prediction import Transaction
from .patterns import PatternStore
from .supplier_profiles import SupplierProfileStore

logger = logging.getLogger(__name__)


@dataclass
class LearningOutcome:
    """What one approval changed."""

    profile: SupplierLearningProfile
    pattern: TransactionPattern
    correction_recorded: bool = False

    def to_dict(self) -> dict:
        return {
            "supplier": self.profile.normalized_name,
            "default_account": self.profile.default_account,
            "supplier_confidence": round(self.profile.learning_stats.confidence_score, 4),
            "pattern_id": self.pattern.pattern_id,
            "pattern_success_rate": round(self.pattern.success_rate, 4),
            "correction_recorded": self.correction_recorded,
        }


class LearningFeedbackLoop:
    """Feeds approvals and corrections back into the learning stores."""

    def __init__(self, suppliers: SupplierProfileStore, patterns: PatternStore):
        self.suppliers = suppliers
        self.patterns = patterns

    def on_approval(
        self,
        company_id: str,
        transaction: Transaction,
        approved_account: str,
        approved_account_name: str,
        was_correction: bool = False,
        *,
        original_account: str | None = None,
        vat_code: str | None = None,
        cost_center: str | None = None,
        correction_id: str | None = None,
    ) -> LearningOutcome:
        """
        Learn from an approved (or corrected) booking.

        Args:
            company_id: Company the transaction belongs to
            transaction: The booked transaction
            approved_account: Account the human approved
            approved_account_name: Name of that account
            was_correction: True if the human changed the predicted account
            original_account: The predicted account, for the audit trail
            correction_id: Idempotency key; a replayed correction is recorded once

        Raises:
            sqlite3.Error, ConcurrentUpdateError: On persistence failure
        """
        profile = self.suppliers.record(
            company_id,
            transaction.supplier,
            approved_account,
            approved_account_name,
            transaction.amount,
            vat_code=vat_code,
            cost_center=cost_center,
            was_correction=was_correction,
            date=transaction.date,
        )

        pattern = self.patterns.learn(
            company_id,
            transaction,
            approved_account,
            approved_account_name,
            was_correction=was_correction,
        )

        correction_recorded = False
        if was_correction:
            correction_recorded = self.suppliers.apply_correction(
                company_id,
                normalize_supplier_name(transaction.supplier),
                original_account,
                approved_account,
                approved_account_name,
                correction_id=correction_id,
            )
            if correction_recorded:
                profile = self.suppliers.get(company_id, profile.normalized_name) or profile

        logger.info(
            f"Learned {'correction' if was_correction else 'approval'} for "
            f"'{profile.normalized_name}' -> {approved_account}"
        )
        return LearningOutcome(
            profile=profile, pattern=pattern, correction_recorded=correction_recorded
        )
