"""Supplier profile learning.

One profile per (company, normalized supplier name). Every approved booking
increments the account history of the profile; the most used account becomes
the supplier's default. Corrections decay the profile confidence and are kept
as an audit trail.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..matching.similarity import normalize_supplier_name
from ..matching.strategies import DEFAULT_STRATEGY, MatchStrategy
from ..schemas.learning import (
    MAX_SUPPLIER_CONFIDENCE,
    AccountHistoryEntry,
    CorrectionRecord,
    LearningStats,
    SupplierCategory,
    SupplierLearningProfile,
    SupplierPatterns,
    TypicalAmount,
)
from ..state_store.sqlite_store import ConcurrentUpdateError, utc_now
from .categories import CategoryClassifier

if TYPE_CHECKING:
    from ..state_store import StateStore

logger = logging.getLogger(__name__)

# Confidence of a freshly created profile
INITIAL_CONFIDENCE = 0.5
# Confidence of a profile whose first booking was a correction
INITIAL_CONFIDENCE_CORRECTED = 0.3
# Confidence gained per confirmed prediction
CONFIDENCE_STEP = 0.02
# Factor applied to confidence on every recorded correction
CORRECTION_DECAY = 0.9
# Optimistic write attempts before giving up
MAX_WRITE_ATTEMPTS = 3


def _month_of(date: str | None) -> int | None:
    if not date or len(date) < 7:
        return None
    try:
        month = int(date[5:7])
    except ValueError:
        return None
    return month if 1 <= month <= 12 else None


def _recompute_typical_amount(history: list[AccountHistoryEntry]) -> TypicalAmount:
    averages = [entry.average_amount for entry in history if entry.count]
    if not averages:
        return TypicalAmount()
    return TypicalAmount(
        min=min(averages),
        max=max(averages),
        average=sum(averages) / len(averages),
    )


class SupplierProfileStore:
    """
    Learned supplier profiles, backed by the StateStore.

    Args:
        store: State store holding the supplier tables
        classifier: Category classifier for new profiles
        strategy: Match strategy for find_similar (first match by default)
    """

    def __init__(
        self,
        store: StateStore,
        classifier: CategoryClassifier | None = None,
        strategy: MatchStrategy | None = None,
    ):
        self.store = store
        self.classifier = classifier or CategoryClassifier()
        self.strategy = strategy or DEFAULT_STRATEGY

    # --- lookup ---

    def get(self, company_id: str, normalized_name: str) -> SupplierLearningProfile | None:
        """Profile by normalized name, following an alias to its primary profile."""
        if not normalized_name:
            return None

        row = self.store.get_supplier_profile_row(company_id, normalized_name)
        if row is None:
            primary = self.store.resolve_supplier_alias(company_id, normalized_name)
            if primary is None or primary == normalized_name:
                return None
            row = self.store.get_supplier_profile_row(company_id, primary)
            if row is None:
                return None

        data, version = row
        return SupplierLearningProfile.from_dict(data, version=version)

    def find_similar(self, company_id: str, normalized_name: str) -> SupplierLearningProfile | None:
        """
        Fuzzy supplier lookup.

        A profile matches when at least two query tokens (longer than 2 chars)
        match its name tokens, or exactly one long token (over 5 chars) does,
        or one of its aliases contains or is contained in the query. A token
        matches when either string contains the other.
        """
        if not normalized_name or not normalized_name.strip():
            return None

        query_tokens = [t for t in normalized_name.split() if len(t) > 2]

        def accept(profile: SupplierLearningProfile) -> bool:
            name_tokens = profile.normalized_name.split()
            matching = [
                qt for qt in query_tokens if any(qt in nt or nt in qt for nt in name_tokens)
            ]
            if len(matching) >= 2 or (len(matching) == 1 and len(matching[0]) > 5):
                return True
            return any(
                alias and (alias in normalized_name or normalized_name in alias)
                for alias in profile.aliases
            )

        profiles = (
            SupplierLearningProfile.from_dict(data, version=version)
            for data, version in self.store.list_supplier_profile_rows(company_id)
        )
        return self.strategy.select(profiles, accept)

    def list_profiles(
        self,
        company_id: str,
        category: SupplierCategory | None = None,
        min_transactions: int | None = None,
        sort_by: str = "transactions",
    ) -> list[SupplierLearningProfile]:
        """List profiles, by transaction count (default), last use or name."""
        rows = self.store.list_supplier_profile_rows(
            company_id,
            category=category.value if category else None,
            min_transactions=min_transactions,
            order_by=sort_by,
        )
        return [SupplierLearningProfile.from_dict(data, version=version) for data, version in rows]

    def list_corrections(
        self, company_id: str, normalized_name: str | None = None
    ) -> list[CorrectionRecord]:
        """Correction audit trail, oldest first."""
        return self.store.list_corrections(company_id, normalized_name)

    # --- writes ---

    def record(
        self,
        company_id: str,
        supplier_name: str,
        account: str,
        account_name: str,
        amount: float,
        *,
        vat_code: str | None = None,
        cost_center: str | None = None,
        org_number: str | None = None,
        was_correction: bool = False,
        date: str | None = None,
    ) -> SupplierLearningProfile:
        """
        Record one approved booking for a supplier.

        Creates the profile on first sight, otherwise updates its account
        history, defaults, statistics and typical amounts.

        Raises:
            ValueError: If the supplier name normalizes to nothing
            ConcurrentUpdateError: If every write attempt lost a race
        """
        normalized = normalize_supplier_name(supplier_name)
        if not normalized:
            raise ValueError(f"Supplier name '{supplier_name}' normalizes to an empty string")

        primary = self.store.resolve_supplier_alias(company_id, normalized)
        if primary and self.store.get_supplier_profile_row(company_id, normalized) is None:
            normalized = primary

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            row = self.store.get_supplier_profile_row(company_id, normalized)
            now = utc_now()

            if row is None:
                profile = self._new_profile(
                    company_id,
                    supplier_name,
                    normalized,
                    account,
                    account_name,
                    amount,
                    vat_code=vat_code,
                    cost_center=cost_center,
                    org_number=org_number,
                    was_correction=was_correction,
                    date=date,
                    now=now,
                )
                if self.store.insert_supplier_profile(company_id, normalized, profile.to_dict()):
                    profile.version = 1
                    logger.info(
                        f"New supplier profile '{normalized}' ({profile.category.value}) "
                        f"-> {account}"
                    )
                    return profile
            else:
                data, version = row
                profile = SupplierLearningProfile.from_dict(data, version=version)
                self._apply_booking(
                    profile,
                    account,
                    account_name,
                    amount,
                    vat_code=vat_code,
                    cost_center=cost_center,
                    org_number=org_number,
                    was_correction=was_correction,
                    date=date,
                    now=now,
                )
                if self.store.update_supplier_profile(
                    company_id, normalized, profile.to_dict(), expected_version=version
                ):
                    profile.version = version + 1
                    logger.debug(
                        f"Updated supplier profile '{normalized}': "
                        f"default {profile.default_account}, "
                        f"confidence {profile.learning_stats.confidence_score:.2f}"
                    )
                    return profile

            logger.debug(
                f"Supplier profile '{normalized}' changed concurrently (attempt {attempt})"
            )

        raise ConcurrentUpdateError(
            "supplier_profiles", f"{company_id}/{normalized}", MAX_WRITE_ATTEMPTS
        )

    def _new_profile(
        self,
        company_id: str,
        supplier_name: str,
        normalized: str,
        account: str,
        account_name: str,
        amount: float,
        *,
        vat_code: str | None,
        cost_center: str | None,
        org_number: str | None,
        was_correction: bool,
        date: str | None,
        now: str,
    ) -> SupplierLearningProfile:
        month = _month_of(date)
        return SupplierLearningProfile(
            company_id=company_id,
            supplier_name=supplier_name,
            normalized_name=normalized,
            org_number=org_number,
            category=self.classifier.classify(supplier_name),
            default_account=account,
            default_account_name=account_name,
            default_vat_code=vat_code or "25",
            default_cost_center=cost_center,
            account_history=[
                AccountHistoryEntry(
                    account=account,
                    account_name=account_name,
                    count=1,
                    total_amount=amount,
                    last_used=now,
                    vat_code=vat_code,
                    cost_center=cost_center,
                    was_correction=was_correction,
                )
            ],
            patterns=SupplierPatterns(
                typical_amount=TypicalAmount(min=amount, max=amount, average=amount),
                seasonal_months=[month] if month else [],
            ),
            learning_stats=LearningStats(
                total_transactions=1,
                correct_predictions=0 if was_correction else 1,
                corrections=0,
                confidence_score=(
                    INITIAL_CONFIDENCE_CORRECTED if was_correction else INITIAL_CONFIDENCE
                ),
            ),
            created_at=now,
            updated_at=now,
            last_transaction_at=now,
        )

    @staticmethod
    def _apply_booking(
        profile: SupplierLearningProfile,
        account: str,
        account_name: str,
        amount: float,
        *,
        vat_code: str | None,
        cost_center: str | None,
        org_number: str | None,
        was_correction: bool,
        date: str | None,
        now: str,
    ) -> None:
        entry = next((h for h in profile.account_history if h.account == account), None)
        if entry is not None:
            entry.count += 1
            entry.total_amount += amount
            entry.last_used = now
            entry.account_name = account_name or entry.account_name
            if vat_code:
                entry.vat_code = vat_code
            if cost_center:
                entry.cost_center = cost_center
        else:
            profile.account_history.append(
                AccountHistoryEntry(
                    account=account,
                    account_name=account_name,
                    count=1,
                    total_amount=amount,
                    last_used=now,
                    vat_code=vat_code,
                    cost_center=cost_center,
                    was_correction=was_correction,
                )
            )

        # Stable sort: ties keep the account seen first
        profile.account_history.sort(key=lambda h: h.count, reverse=True)
        top = profile.account_history[0]
        profile.default_account = top.account
        profile.default_account_name = top.account_name
        if top.vat_code:
            profile.default_vat_code = top.vat_code
        if top.cost_center:
            profile.default_cost_center = top.cost_center

        stats = profile.learning_stats
        stats.total_transactions += 1
        if not was_correction:
            stats.correct_predictions += 1
            stats.confidence_score = min(
                MAX_SUPPLIER_CONFIDENCE, stats.confidence_score + CONFIDENCE_STEP
            )

        profile.patterns.typical_amount = _recompute_typical_amount(profile.account_history)
        month = _month_of(date)
        if month and month not in profile.patterns.seasonal_months:
            profile.patterns.seasonal_months = sorted(profile.patterns.seasonal_months + [month])

        if org_number and not profile.org_number:
            profile.org_number = org_number
        profile.updated_at = now
        profile.last_transaction_at = now

    def apply_correction(
        self,
        company_id: str,
        normalized_name: str,
        original_account: str | None,
        corrected_account: str,
        corrected_account_name: str,
        correction_id: str | None = None,
    ) -> bool:
        """
        Record a correction and decay the supplier's confidence.

        The audit row and the profile change are written together. A
        correction_id that was already recorded changes nothing.

        Returns:
            True if the correction was newly recorded
        """
        target = normalized_name
        if self.store.get_supplier_profile_row(company_id, normalized_name) is None:
            target = (
                self.store.resolve_supplier_alias(company_id, normalized_name) or normalized_name
            )

        now = utc_now()

        def decay(data: dict[str, Any]) -> dict[str, Any]:
            stats = data.setdefault("learning_stats", {})
            confidence = stats.get("confidence_score", INITIAL_CONFIDENCE)
            stats["confidence_score"] = confidence * CORRECTION_DECAY
            stats["corrections"] = stats.get("corrections", 0) + 1
            stats["last_correction_at"] = now
            data["updated_at"] = now
            return data

        recorded = self.store.record_correction(
            company_id,
            target,
            original_account,
            corrected_account,
            corrected_account_name,
            correction_id=correction_id,
            on_recorded=decay,
        )
        if recorded:
            logger.info(
                f"Correction for '{target}': {original_account or '-'} -> {corrected_account}"
            )
        else:
            logger.info(f"Correction {correction_id} for '{target}' already recorded, skipping")
        return recorded

    def add_alias(self, company_id: str, primary_name: str, alias_name: str) -> bool:
        """
        Make alias_name resolve to the profile of primary_name.

        Both names are normalized. Returns False if the primary profile does
        not exist, the names are equal, or the alias is already known.
        """
        primary = normalize_supplier_name(primary_name)
        alias = normalize_supplier_name(alias_name)
        if not primary or not alias or primary == alias:
            return False

        profile = self.get(company_id, primary)
        if profile is None:
            logger.warning(f"Cannot add alias '{alias}': no supplier profile '{primary}'")
            return False

        added = self.store.add_supplier_alias(company_id, alias, profile.normalized_name)

        for _ in range(MAX_WRITE_ATTEMPTS):
            if alias in profile.aliases:
                return added
            profile.aliases.append(alias)
            profile.updated_at = utc_now()
            if self.store.update_supplier_profile(
                company_id,
                profile.normalized_name,
                profile.to_dict(),
                expected_version=profile.version,
            ):
                logger.info(f"Alias '{alias}' -> '{profile.normalized_name}'")
                return True
            profile = self.get(company_id, profile.normalized_name)
            if profile is None:
                return False

        raise ConcurrentUpdateError(
            "supplier_profiles", f"{company_id}/{primary}", MAX_WRITE_ATTEMPTS
        )

    # --- reporting ---

    def supplier_stats(self, company_id: str) -> dict[str, Any]:
        """Totals, top suppliers by volume, category breakdown and learning accuracy."""
        profiles = self.list_profiles(company_id)

        total_transactions = sum(p.learning_stats.total_transactions for p in profiles)
        correct = sum(p.learning_stats.correct_predictions for p in profiles)
        corrections = sum(p.learning_stats.corrections for p in profiles)

        categories: dict[str, int] = {}
        for profile in profiles:
            categories[profile.category.value] = categories.get(profile.category.value, 0) + 1

        top = sorted(
            profiles,
            key=lambda p: sum(h.total_amount for h in p.account_history),
            reverse=True,
        )[:10]

        return {
            "total_suppliers": len(profiles),
            "total_transactions": total_transactions,
            "total_corrections": corrections,
            "learning_accuracy": (
                round(correct / total_transactions, 2) if total_transactions else 0.0
            ),
            "top_suppliers": [
                {
                    "name": p.supplier_name,
                    "normalized_name": p.normalized_name,
                    "default_account": p.default_account,
                    "transactions": p.learning_stats.total_transactions,
                    "total_amount": sum(h.total_amount for h in p.account_history),
                }
                for p in top
            ],
            "categories": categories,
        }
