"""
SSOT (Single Source of Truth) schemas for ledgerlearn.

These canonical dataclasses are the ONLY models passed between modules.
"""

from .documents import (
    DocumentType,
    Job,
    JobStatus,
    MultiPageAnalysisResult,
    Page,
    SplitStrategy,
)
from .learning import (
    MAX_SUPPLIER_CONFIDENCE,
    AccountHistoryEntry,
    CorrectionRecord,
    LearningStats,
    SupplierCategory,
    SupplierLearningProfile,
    SupplierPatterns,
    TransactionPattern,
    TypicalAmount,
)
from .prediction import (
    AccountPrediction,
    PredictionCandidate,
    PredictionSource,
    Transaction,
)

__all__ = [
    # Documents
    "DocumentType",
    "Job",
    "JobStatus",
    "MultiPageAnalysisResult",
    "Page",
    "SplitStrategy",
    # Learning
    "MAX_SUPPLIER_CONFIDENCE",
    "AccountHistoryEntry",
    "CorrectionRecord",
    "LearningStats",
    "SupplierCategory",
    "SupplierLearningProfile",
    "SupplierPatterns",
    "TransactionPattern",
    "TypicalAmount",
    # Prediction
    "AccountPrediction",
    "PredictionCandidate",
    "PredictionSource",
    "Transaction",
]
