"""Duplicate detection for single candidates and whole sync batches.

Exact fingerprints are checked first: a provider re-delivering an identical
payload is by far the common case and needs no scoring. Only when that fails
is the weighted fuzzy pass run, bounded to transactions of the same account
and currency inside the date window.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from ..config import DedupeConfig
from ..schemas.duplicates import (
    ClusterConfidence,
    ClusterMember,
    DuplicateCluster,
    DuplicateDetectionResult,
    compute_cluster_id,
)
from ..schemas.transaction import Transaction
from .fingerprint import generate_fingerprint
from .similarity import SimilarityScorer

logger = logging.getLogger(__name__)

# Separator between an ambiguous id and its batch position
MEMBER_ID_SEPARATOR = "#"


def assign_member_ids(transactions: Sequence[Transaction]) -> list[str]:
    """
    Give every transaction in a batch a unique member id.

    Transactions keep their own ``transaction_id`` when it is present and
    unique in the batch. Missing or repeated ids (an identical payload
    delivered twice) become ``"<id>#<position>"`` so every member stays
    addressable in resolution decisions.
    """
    counts = Counter(tx.transaction_id for tx in transactions)
    member_ids = []
    for position, tx in enumerate(transactions):
        tx_id = tx.transaction_id
        if tx_id and counts[tx_id] == 1:
            member_ids.append(tx_id)
        else:
            member_ids.append(f"{tx_id or 'row'}{MEMBER_ID_SEPARATOR}{position}")
    if any(m != tx.transaction_id for m, tx in zip(member_ids, transactions)):
        logger.warning("Batch has missing or repeated transaction ids; using positional member ids")
    return member_ids


class _DisjointSet:
    """Union-find over positions, tracking the weakest link per component."""

    def __init__(self, size: int) -> None:
        self.parent = list(range(size))
        self.weakest: dict[int, float] = {}

    def find(self, item: int) -> int:
        while self.parent[item] != item:
            self.parent[item] = self.parent[self.parent[item]]
            item = self.parent[item]
        return item

    def union(self, first: int, second: int, score: float) -> bool:
        root_a, root_b = self.find(first), self.find(second)
        if root_a == root_b:
            return False
        root, child = min(root_a, root_b), max(root_a, root_b)
        self.parent[child] = root
        self.weakest[root] = min(
            score,
            self.weakest.get(root, score),
            self.weakest.pop(child, score),
        )
        return True


class DuplicateDetector:
    """Detects duplicate transactions and groups batches into clusters.

    The detector holds only immutable configuration and is safe to share
    between threads.
    """

    def __init__(self, config: DedupeConfig | None = None) -> None:
        self.config = config or DedupeConfig()
        self.scorer = SimilarityScorer(self.config)

    def is_comparable(self, first: Transaction, second: Transaction) -> bool:
        """Whether two transactions are eligible for fuzzy comparison."""
        return (
            first.account_id == second.account_id
            and first.currency.upper() == second.currency.upper()
            and self.scorer.within_window(first, second)
        )

    def detect_duplicate(
        self,
        candidate: Transaction,
        existing: Sequence[Transaction],
    ) -> DuplicateDetectionResult:
        """Check whether ``candidate`` duplicates one of ``existing``.

        Args:
            candidate: Incoming transaction.
            existing: Transactions already stored.

        Returns:
            DuplicateDetectionResult; ``similarity_score`` is 1.0 for exact
            matches and the best fuzzy score otherwise.
        """
        candidate_fp = generate_fingerprint(candidate)

        for tx in existing:
            if tx is candidate:
                continue
            if generate_fingerprint(tx) == candidate_fp:
                return DuplicateDetectionResult(
                    is_duplicate=True,
                    similarity_score=1.0,
                    duplicate_of=tx.transaction_id,
                    reason="Exact match on account, amount, date and merchant",
                )

        best_score = 0.0
        best: Transaction | None = None
        for tx in existing:
            if tx is candidate or not self.is_comparable(candidate, tx):
                continue
            score = self.scorer.similarity(candidate, tx)
            if score > best_score:
                best_score, best = score, tx

        if best is not None and best_score > self.config.similarity_threshold:
            logger.debug(
                "Fuzzy duplicate: %s ~ %s (score %.3f)",
                candidate.transaction_id,
                best.transaction_id,
                best_score,
            )
            return DuplicateDetectionResult(
                is_duplicate=True,
                similarity_score=best_score,
                duplicate_of=best.transaction_id,
                reason=(
                    f"Similarity {best_score:.2f} within "
                    f"{self.config.date_window_days}-day window"
                ),
            )

        return DuplicateDetectionResult(is_duplicate=False, similarity_score=best_score)

    def find_duplicates_in_batch(
        self,
        transactions: Sequence[Transaction],
    ) -> list[DuplicateCluster]:
        """Group a batch into duplicate clusters.

        Exact-fingerprint buckets of two or more become HIGH confidence
        clusters. Remaining singletons are compared pairwise inside the date
        window only; linked groups become MEDIUM (every link above the
        duplicate threshold) or LOW clusters.

        Returns:
            Clusters, HIGH first in order of first appearance, then fuzzy
            clusters by earliest member. Empty when nothing is duplicated.
        """
        fingerprints = [generate_fingerprint(tx) for tx in transactions]
        member_ids = assign_member_ids(transactions)

        buckets: dict[str, list[int]] = {}
        for idx, fp in enumerate(fingerprints):
            buckets.setdefault(fp, []).append(idx)

        clusters: list[DuplicateCluster] = []
        singletons: list[int] = []
        for positions in buckets.values():
            if len(positions) >= 2:
                clusters.append(
                    self._build_cluster(
                        positions, transactions, member_ids, fingerprints, ClusterConfidence.HIGH
                    )
                )
            else:
                singletons.append(positions[0])

        clusters.extend(self._fuzzy_clusters(singletons, transactions, member_ids, fingerprints))

        logger.debug(
            "Batch of %d transactions produced %d duplicate clusters",
            len(transactions),
            len(clusters),
        )
        return clusters

    def _fuzzy_clusters(
        self,
        positions: list[int],
        transactions: Sequence[Transaction],
        member_ids: list[str],
        fingerprints: list[str],
    ) -> list[DuplicateCluster]:
        ordered = sorted(positions, key=lambda p: (transactions[p].date, p))
        window = self.config.date_window_days

        # Candidate links, restricted to the date window by the sorted scan
        edges: list[tuple[float, int, int]] = []
        for i, pos_a in enumerate(ordered):
            tx_a = transactions[pos_a]
            for pos_b in ordered[i + 1 :]:
                tx_b = transactions[pos_b]
                if (tx_b.date - tx_a.date).days > window:
                    break
                if not self.is_comparable(tx_a, tx_b):
                    continue
                score = self.scorer.similarity(tx_a, tx_b)
                if score >= self.config.review_threshold:
                    edges.append((score, min(pos_a, pos_b), max(pos_a, pos_b)))

        if not edges:
            return []

        # Strongest links first, so each component's weakest link is its bottleneck
        edges.sort(key=lambda e: (-e[0], e[1], e[2]))
        components = _DisjointSet(len(transactions))
        for score, pos_a, pos_b in edges:
            components.union(pos_a, pos_b, score)

        groups: dict[int, list[int]] = {}
        for pos in positions:
            groups.setdefault(components.find(pos), []).append(pos)

        clusters = []
        for root, members in sorted(groups.items(), key=lambda item: min(item[1])):
            if len(members) < 2:
                continue
            weakest = components.weakest[root]
            confidence = (
                ClusterConfidence.MEDIUM
                if weakest > self.config.similarity_threshold
                else ClusterConfidence.LOW
            )
            clusters.append(
                self._build_cluster(
                    sorted(members), transactions, member_ids, fingerprints, confidence
                )
            )
        return clusters

    @staticmethod
    def _build_cluster(
        positions: list[int],
        transactions: Sequence[Transaction],
        member_ids: list[str],
        fingerprints: list[str],
        confidence: ClusterConfidence,
    ) -> DuplicateCluster:
        members = [
            ClusterMember(
                transaction_id=member_ids[p],
                fingerprint=fingerprints[p],
                transaction=transactions[p],
                position=p,
            )
            for p in positions
        ]
        cluster_id = compute_cluster_id([m.transaction_id for m in members])
        logger.debug(
            "Cluster %s (%s): %s",
            cluster_id,
            confidence.value,
            ", ".join(m.transaction_id for m in members),
        )
        return DuplicateCluster(cluster_id=cluster_id, members=members, confidence=confidence)


def detect_duplicate(
    candidate: Transaction,
    existing: Sequence[Transaction],
    config: DedupeConfig | None = None,
) -> DuplicateDetectionResult:
    """Module-level shortcut for :meth:`DuplicateDetector.detect_duplicate`."""
    return DuplicateDetector(config).detect_duplicate(candidate, existing)


def find_duplicates_in_batch(
    transactions: Sequence[Transaction],
    config: DedupeConfig | None = None,
) -> list[DuplicateCluster]:
    """Module-level shortcut for :meth:`DuplicateDetector.find_duplicates_in_batch`."""
    return DuplicateDetector(config).find_duplicates_in_batch(transactions)
