"""Supplier, pattern and category learning."""

from ledgerlearn.learning.categories import (
    BAS_ACCOUNTS,
    CATEGORY_DEFAULTS,
    CategoryClassifier,
    account_name,
)
from ledgerlearn.learning.feedback import LearningFeedbackLoop, LearningOutcome
from ledgerlearn.learning.patterns import PatternStore
from ledgerlearn.learning.supplier_profiles import SupplierProfileStore

__all__ = [
    "BAS_ACCOUNTS",
    "CATEGORY_DEFAULTS",
    "CategoryClassifier",
    "account_name",
    "LearningFeedbackLoop",
    "LearningOutcome",
    "PatternStore",
    "SupplierProfileStore",
]
