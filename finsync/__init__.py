"""
finsync - bank transaction sync and analytics.

Pulls transactions from bank APIs and CSV exports into one deduplicated,
categorized ledger and computes spending statistics over it.
"""
__version__ = "0.1.0"
