"""
CLI runner module.

Provides commands:
- init: Write a default config file
- analyze: Split uploads into jobs
- predict: Predict an account for a transaction
- approve: Learn from an approved or corrected booking
- alias: Register an alternative supplier name
- suppliers: List learned suppliers and statistics
- status: Store and model status
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
