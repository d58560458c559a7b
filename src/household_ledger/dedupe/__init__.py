"""Fingerprinting, duplicate detection and duplicate resolution."""

from .detector import DuplicateDetector, detect_duplicate, find_duplicates_in_batch
from .fingerprint import (
    generate_fingerprint,
    generate_fuzzy_fingerprint,
    normalize_merchant,
    simplify_merchant,
)
from .resolution import resolve_clusters, resolve_duplicates, strategy_for_cluster
from .similarity import SimilarityBreakdown, SimilarityScorer

__all__ = [
    "DuplicateDetector",
    "detect_duplicate",
    "find_duplicates_in_batch",
    "generate_fingerprint",
    "generate_fuzzy_fingerprint",
    "normalize_merchant",
    "simplify_merchant",
    "resolve_duplicates",
    "resolve_clusters",
    "strategy_for_cluster",
    "SimilarityScorer",
    "SimilarityBreakdown",
]
