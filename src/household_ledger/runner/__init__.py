"""
CLI runner module.

Provides commands:
- dedupe: Cluster duplicate transactions and propose resolutions
- match: Select the splitting rule for each transaction
- validate-rule: Check rule configuration
- stats: Rule match statistics
- templates: List built-in rule templates
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
