"""
Transaction input and account prediction output.

AccountPrediction is ephemeral: it is shown to a human and never stored.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PredictionSource(str, Enum):
    """Where a predicted account came from."""

    SUPPLIER_HISTORY = "supplier_history"
    SIMILAR_SUPPLIER = "similar_supplier"
    ML_MODEL = "ml_model"  # learned transaction pattern
    AMOUNT_PATTERN = "amount_pattern"
    CATEGORY_RULES = "category_rules"
    AI_INFERENCE = "ai_inference"


@dataclass
class Transaction:
    """A transaction awaiting an account."""

    supplier: str
    description: str = ""
    amount: float = 0.0
    date: str | None = None  # ISO date, e.g. 2024-12-05
    line_items: list[Any] = field(default_factory=list)

    @property
    def month(self) -> int | None:
        """Month number (1-12) of the transaction date, if parseable."""
        if not self.date or len(self.date) < 7:
            return None
        try:
            month = int(self.date[5:7])
        except ValueError:
            return None
        return month if 1 <= month <= 12 else None

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            supplier=data.get("supplier", ""),
            description=data.get("description", ""),
            amount=float(data.get("amount", 0.0) or 0.0),
            date=data.get("date"),
            line_items=list(data.get("line_items", [])),
        )


@dataclass
class PredictionCandidate:
    """One candidate account considered by the prediction engine."""

    account: str
    account_name: str
    confidence: float
    source: PredictionSource
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "account_name": self.account_name,
            "confidence": round(self.confidence, 4),
            "source": self.source.value,
        }


@dataclass
class AccountPrediction:
    """Top candidate plus ranked alternatives."""

    account: str
    account_name: str
    confidence: float
    source: PredictionSource
    reasoning: str
    alternatives: list[PredictionCandidate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "account_name": self.account_name,
            "confidence": round(self.confidence, 4),
            "source": self.source.value,
            "reasoning": self.reasoning,
            "alternatives": [a.to_dict() for a in self.alternatives],
        }
