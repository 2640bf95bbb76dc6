"""Rule-based account candidates: amount buckets and seasonal keywords."""

from __future__ import annotations

from dataclasses import dataclass

from ..schemas.prediction import PredictionCandidate, PredictionSource, Transaction

AMOUNT_CONFIDENCE = 0.6
SEASONAL_CONFIDENCE = 0.7


@dataclass(frozen=True)
class AmountRule:
    """Amounts in [minimum, maximum) book to account."""

    minimum: float
    maximum: float
    account: str
    account_name: str

    def matches(self, amount: float) -> bool:
        return self.minimum <= amount < self.maximum


@dataclass(frozen=True)
class SeasonalRule:
    """Descriptions with one of keywords in one of months book to account."""

    months: tuple[int, ...]
    keywords: tuple[str, ...]
    account: str
    account_name: str

    def matches(self, month: int, description: str) -> bool:
        return month in self.months and any(k in description for k in self.keywords)


AMOUNT_RULES: tuple[AmountRule, ...] = (
    AmountRule(0, 500, "6991", "Småinköp"),
    AmountRule(50_000, float("inf"), "1220", "Inventarier (över 50 000)"),
)

SEASONAL_RULES: tuple[SeasonalRule, ...] = (
    SeasonalRule(
        (11, 12),
        ("julbord", "julfest", "julklapp", "holiday party", "christmas"),
        "6072",
        "Representation (jul)",
    ),
    SeasonalRule((4, 5), ("konferens", "kickoff"), "6071", "Representation (vår)"),
    SeasonalRule((8, 9), ("kickoff", "teambuilding"), "6071", "Representation (höst)"),
)

REASONING_TEMPLATES: dict[PredictionSource, str] = {
    PredictionSource.SUPPLIER_HISTORY: "Based on previous bookings for {supplier}",
    PredictionSource.SIMILAR_SUPPLIER: "Based on bookings for a similar supplier",
    PredictionSource.ML_MODEL: "Pattern match from similar transactions",
    PredictionSource.AMOUNT_PATTERN: "Amount-based rule",
    PredictionSource.CATEGORY_RULES: "Category match based on description",
    PredictionSource.AI_INFERENCE: "AI analysis of transaction data",
}

NO_MATCH_REASONING = "No match found, using default purchase account"


def amount_candidate(amount: float) -> PredictionCandidate | None:
    """First amount bucket containing amount."""
    for rule in AMOUNT_RULES:
        if rule.matches(amount):
            return PredictionCandidate(
                account=rule.account,
                account_name=rule.account_name,
                confidence=AMOUNT_CONFIDENCE,
                source=PredictionSource.AMOUNT_PATTERN,
            )
    return None


def seasonal_candidate(transaction: Transaction) -> PredictionCandidate | None:
    """First seasonal rule matching the transaction month and description."""
    month = transaction.month
    if month is None:
        return None
    description = (transaction.description or "").lower()
    for rule in SEASONAL_RULES:
        if rule.matches(month, description):
            return PredictionCandidate(
                account=rule.account,
                account_name=rule.account_name,
                confidence=SEASONAL_CONFIDENCE,
                source=PredictionSource.CATEGORY_RULES,
            )
    return None


def reasoning_for(source: PredictionSource, transaction: Transaction) -> str:
    return REASONING_TEMPLATES[source].format(supplier=transaction.supplier)
