"""
Learning schemas (SSOT).

Supplier profiles, transaction patterns and correction audit records are the
only persisted learning state. Profiles are stored as JSON; the store owns the
version counter used for optimistic writes.
"""

from dataclasses import dataclass, field
from enum import Enum

# Confidence ceiling for learned supplier profiles
MAX_SUPPLIER_CONFIDENCE = 0.95


class SupplierCategory(str, Enum):
    """Spend category of a supplier."""

    OFFICE_SUPPLIES = "OFFICE_SUPPLIES"
    IT_SERVICES = "IT_SERVICES"
    PROFESSIONAL_SERVICES = "PROFESSIONAL_SERVICES"
    RENT_FACILITIES = "RENT_FACILITIES"
    UTILITIES = "UTILITIES"
    TELECOM = "TELECOM"
    TRAVEL = "TRAVEL"
    MARKETING = "MARKETING"
    INSURANCE = "INSURANCE"
    BANK_FINANCE = "BANK_FINANCE"
    PERSONNEL = "PERSONNEL"
    EQUIPMENT = "EQUIPMENT"
    RAW_MATERIALS = "RAW_MATERIALS"
    SUBSCRIPTIONS = "SUBSCRIPTIONS"
    OTHER = "OTHER"


@dataclass
class AccountHistoryEntry:
    """How often a supplier was booked against one account."""

    account: str
    account_name: str
    count: int = 0
    total_amount: float = 0.0
    last_used: str = ""
    vat_code: str | None = None
    cost_center: str | None = None
    was_correction: bool = False

    @property
    def average_amount(self) -> float:
        return self.total_amount / self.count if self.count else 0.0

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "account_name": self.account_name,
            "count": self.count,
            "total_amount": self.total_amount,
            "last_used": self.last_used,
            "vat_code": self.vat_code,
            "cost_center": self.cost_center,
            "was_correction": self.was_correction,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccountHistoryEntry":
        return cls(
            account=data["account"],
            account_name=data.get("account_name", ""),
            count=data.get("count", 0),
            total_amount=data.get("total_amount", 0.0),
            last_used=data.get("last_used", ""),
            vat_code=data.get("vat_code"),
            cost_center=data.get("cost_center"),
            was_correction=bool(data.get("was_correction", False)),
        )


@dataclass
class TypicalAmount:
    """Range of per-account average amounts."""

    min: float = 0.0
    max: float = 0.0
    average: float = 0.0


@dataclass
class SupplierPatterns:
    """Recurring traits of a supplier's invoices."""

    typical_amount: TypicalAmount = field(default_factory=TypicalAmount)
    typical_payment_terms: int = 30  # days
    invoice_frequency: str = "irregular"
    seasonal_months: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "typical_amount": {
                "min": self.typical_amount.min,
                "max": self.typical_amount.max,
                "average": self.typical_amount.average,
            },
            "typical_payment_terms": self.typical_payment_terms,
            "invoice_frequency": self.invoice_frequency,
            "seasonal_months": list(self.seasonal_months),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SupplierPatterns":
        amount = data.get("typical_amount") or {}
        return cls(
            typical_amount=TypicalAmount(
                min=amount.get("min", 0.0),
                max=amount.get("max", 0.0),
                average=amount.get("average", 0.0),
            ),
            typical_payment_terms=data.get("typical_payment_terms", 30),
            invoice_frequency=data.get("invoice_frequency", "irregular"),
            seasonal_months=list(data.get("seasonal_months", [])),
        )


@dataclass
class LearningStats:
    """Prediction track record of a supplier profile."""

    total_transactions: int = 0
    correct_predictions: int = 0
    corrections: int = 0
    confidence_score: float = 0.5
    last_correction_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "total_transactions": self.total_transactions,
            "correct_predictions": self.correct_predictions,
            "corrections": self.corrections,
            "confidence_score": self.confidence_score,
            "last_correction_at": self.last_correction_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LearningStats":
        return cls(
            total_transactions=data.get("total_transactions", 0),
            correct_predictions=data.get("correct_predictions", 0),
            corrections=data.get("corrections", 0),
            confidence_score=data.get("confidence_score", 0.5),
            last_correction_at=data.get("last_correction_at"),
        )


@dataclass
class SupplierLearningProfile:
    """
    Everything learned about one supplier for one company.

    Invariant: default_account is the account of the highest-count entry in
    account_history (history is kept sorted by count, descending).
    """

    company_id: str
    supplier_name: str
    normalized_name: str
    default_account: str
    default_account_name: str
    category: SupplierCategory = SupplierCategory.OTHER
    org_number: str | None = None
    aliases: list[str] = field(default_factory=list)
    default_vat_code: str = "25"
    default_cost_center: str | None = None
    account_history: list[AccountHistoryEntry] = field(default_factory=list)
    patterns: SupplierPatterns = field(default_factory=SupplierPatterns)
    learning_stats: LearningStats = field(default_factory=LearningStats)
    created_at: str = ""
    updated_at: str = ""
    last_transaction_at: str | None = None
    version: int = 0

    def to_dict(self) -> dict:
        """Serialize to dictionary (version is owned by the store row)."""
        return {
            "company_id": self.company_id,
            "supplier_name": self.supplier_name,
            "normalized_name": self.normalized_name,
            "org_number": self.org_number,
            "aliases": list(self.aliases),
            "category": self.category.value,
            "default_account": self.default_account,
            "default_account_name": self.default_account_name,
            "default_vat_code": self.default_vat_code,
            "default_cost_center": self.default_cost_center,
            "account_history": [h.to_dict() for h in self.account_history],
            "patterns": self.patterns.to_dict(),
            "learning_stats": self.learning_stats.to_dict(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_transaction_at": self.last_transaction_at,
        }

    @classmethod
    def from_dict(cls, data: dict, version: int = 0) -> "SupplierLearningProfile":
        """Deserialize from dictionary."""
        try:
            category = SupplierCategory(data.get("category", "OTHER"))
        except ValueError:
            category = SupplierCategory.OTHER

        return cls(
            company_id=data["company_id"],
            supplier_name=data["supplier_name"],
            normalized_name=data["normalized_name"],
            org_number=data.get("org_number"),
            aliases=list(data.get("aliases", [])),
            category=category,
            default_account=data["default_account"],
            default_account_name=data.get("default_account_name", ""),
            default_vat_code=data.get("default_vat_code", "25"),
            default_cost_center=data.get("default_cost_center"),
            account_history=[
                AccountHistoryEntry.from_dict(h) for h in data.get("account_history", [])
            ],
            patterns=SupplierPatterns.from_dict(data.get("patterns") or {}),
            learning_stats=LearningStats.from_dict(data.get("learning_stats") or {}),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            last_transaction_at=data.get("last_transaction_at"),
            version=version,
        )


@dataclass
class TransactionPattern:
    """A learned (supplier, description) -> account association."""

    pattern_id: str
    company_id: str
    pattern: str  # normalized description
    account: str
    account_name: str
    pattern_type: str = "combined"
    usage_count: int = 1
    success_rate: float = 1.0
    last_used: str = ""
    created_at: str = ""
    version: int = 0

    def to_dict(self) -> dict:
        return {
            "pattern_id": self.pattern_id,
            "company_id": self.company_id,
            "pattern_type": self.pattern_type,
            "pattern": self.pattern,
            "account": self.account,
            "account_name": self.account_name,
            "usage_count": self.usage_count,
            "success_rate": self.success_rate,
            "last_used": self.last_used,
            "created_at": self.created_at,
        }


@dataclass
class CorrectionRecord:
    """Audit row for a human correction of a predicted account."""

    id: int
    company_id: str
    normalized_name: str
    original_account: str | None
    corrected_account: str
    corrected_account_name: str
    timestamp: str
    correction_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "normalized_name": self.normalized_name,
            "original_account": self.original_account,
            "corrected_account": self.corrected_account,
            "corrected_account_name": self.corrected_account_name,
            "timestamp": self.timestamp,
            "correction_id": self.correction_id,
        }
