"""
Scanned document → Boundary detection → Account prediction → Human review → Learning

Splits multi-page PDF uploads into accounting jobs and predicts a general-ledger
account for every transaction, learning from approvals and corrections.
"""

__version__ = "0.1.0"
