"""
Household ledger engine: transaction deduplication and rule-based splitting.

A pure, synchronous library that receives in-memory transactions and
household splitting rules and returns decisions (duplicate clusters,
resolution decisions, matched rules, bulk-application reports). Callers own
persistence and authorization.
"""

__version__ = "0.1.0"
