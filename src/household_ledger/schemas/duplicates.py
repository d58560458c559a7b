"""
Duplicate detection and resolution schemas.

Clusters group two or more transactions judged to represent the same
real-world event. Resolution decisions partition a cluster's transaction ids
into keep/remove/flag sets.

Core Invariants:
- Member transaction ids are unique within a cluster
- Every transaction id in a cluster appears in exactly one decision set
- ``keep`` is empty only for the FLAG strategy
- Cluster ids are derived from the sorted member ids (order-independent)
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum

from .transaction import Transaction

CLUSTER_ID_LENGTH = 16


class ClusterConfidence(str, Enum):
    """How strongly the members of a cluster are believed to be duplicates."""

    HIGH = "high"  # Exact fingerprint agreement
    MEDIUM = "medium"  # Fuzzy agreement, every link above the duplicate threshold
    LOW = "low"  # Fuzzy agreement with at least one weak link


class ResolutionStrategy(str, Enum):
    """Policy applied to a cluster to decide which records survive."""

    KEEP_LATEST = "keep_latest"
    KEEP_OLDEST = "keep_oldest"
    MERGE = "merge"
    FLAG = "flag"


@dataclass(frozen=True)
class ClusterMember:
    """One transaction inside a duplicate cluster."""

    transaction_id: str
    fingerprint: str
    transaction: Transaction
    # Index of the transaction in the batch it was clustered from
    position: int | None = None


@dataclass
class DuplicateCluster:
    """A group of transactions judged to be the same event."""

    cluster_id: str
    members: list[ClusterMember]
    confidence: ClusterConfidence

    @property
    def transaction_ids(self) -> list[str]:
        return [m.transaction_id for m in self.members]

    def __len__(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "cluster_id": self.cluster_id,
            "confidence": self.confidence.value,
            "transactions": [
                {
                    "transaction_id": m.transaction_id,
                    "position": m.position,
                    "fingerprint": m.fingerprint,
                    "data": m.transaction.to_dict(),
                }
                for m in self.members
            ],
        }


def compute_cluster_id(transaction_ids: list[str]) -> str:
    """Derive a stable cluster id from member transaction ids."""
    canonical = "|".join(sorted(transaction_ids))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:CLUSTER_ID_LENGTH]


@dataclass
class DuplicateDetectionResult:
    """Outcome of checking one candidate against stored transactions."""

    is_duplicate: bool
    similarity_score: float
    duplicate_of: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_duplicate": self.is_duplicate,
            "duplicate_of": self.duplicate_of,
            "similarity_score": self.similarity_score,
            "reason": self.reason,
        }


@dataclass
class ResolutionDecision:
    """Partition of a cluster's transaction ids."""

    keep: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)
    flag: list[str] = field(default_factory=list)

    def all_ids(self) -> list[str]:
        return [*self.keep, *self.remove, *self.flag]

    def validate(self, cluster: DuplicateCluster) -> list[str]:
        """Check the decision covers the cluster exactly once per member.

        Returns:
            List of problems (empty if consistent).
        """
        errors: list[str] = []
        decided = self.all_ids()
        if len(decided) != len(set(decided)):
            errors.append("Transaction ids appear in more than one decision set")
        if sorted(decided) != sorted(cluster.transaction_ids):
            errors.append("Decision does not cover the cluster's transactions exactly")
        return errors

    def to_dict(self) -> dict:
        return {"keep": list(self.keep), "remove": list(self.remove), "flag": list(self.flag)}
