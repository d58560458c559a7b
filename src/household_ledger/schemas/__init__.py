"""
Canonical schemas shared by the duplicate resolver and the rule engine.

These are the ONLY models passed across the engine boundary.
"""

from .duplicates import (
    ClusterConfidence,
    ClusterMember,
    DuplicateCluster,
    DuplicateDetectionResult,
    ResolutionDecision,
    ResolutionStrategy,
    compute_cluster_id,
)
from .splitting_rule import (
    BatchCategorizationResult,
    BulkApplicationResult,
    CategorizationResult,
    ConfidenceLevel,
    DraftRule,
    MatchResult,
    RuleApplication,
    RuleMatchStatistics,
    RuleType,
    RuleValidationResult,
    SplittingRule,
)
from .transaction import (
    UNCATEGORIZED,
    Transaction,
    currency_precision,
    parse_amount,
    parse_date,
    quantize_amount,
)

__all__ = [
    # Transaction
    "Transaction",
    "UNCATEGORIZED",
    "currency_precision",
    "quantize_amount",
    "parse_amount",
    "parse_date",
    # Duplicates
    "ClusterConfidence",
    "ClusterMember",
    "DuplicateCluster",
    "DuplicateDetectionResult",
    "ResolutionDecision",
    "ResolutionStrategy",
    "compute_cluster_id",
    # Splitting rules
    "RuleType",
    "SplittingRule",
    "DraftRule",
    "MatchResult",
    "RuleValidationResult",
    "RuleApplication",
    "BulkApplicationResult",
    "RuleMatchStatistics",
    "ConfidenceLevel",
    "CategorizationResult",
    "BatchCategorizationResult",
]
