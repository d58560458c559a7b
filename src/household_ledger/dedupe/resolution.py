"""
Resolution strategies for duplicate clusters.

Core Invariants:
- Every member id lands in exactly one of keep / remove / flag
- ``keep`` holds exactly one id except for FLAG, where it is empty
- Ties are broken by the lexicographically smallest transaction id, so the
  same cluster always resolves the same way
- Members are picked by position, so member ids must be unique
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..schemas.duplicates import (
    ClusterConfidence,
    ClusterMember,
    DuplicateCluster,
    ResolutionDecision,
    ResolutionStrategy,
)
from ..schemas.transaction import Transaction

logger = logging.getLogger(__name__)

# Fields that count towards "how much do we know" in the merge strategy
_DETAIL_FIELDS = (
    "merchant_name",
    "category",
    "description",
    "external_id",
    "id",
)


def completeness_score(transaction: Transaction) -> int:
    """Count of merchant present, category assigned and description present."""
    return sum(
        (
            bool(transaction.merchant_name and transaction.merchant_name.strip()),
            transaction.is_categorized,
            bool(transaction.description and transaction.description.strip()),
        )
    )


def _populated_fields(transaction: Transaction) -> int:
    return sum(1 for name in _DETAIL_FIELDS if getattr(transaction, name))


def _pick_latest(members: list[ClusterMember]) -> int:
    # Latest date first; among equal dates the smallest id
    return min(
        range(len(members)),
        key=lambda i: (-members[i].transaction.date.toordinal(), members[i].transaction_id),
    )


def _pick_oldest(members: list[ClusterMember]) -> int:
    return min(
        range(len(members)),
        key=lambda i: (members[i].transaction.date, members[i].transaction_id),
    )


def _pick_most_complete(members: list[ClusterMember]) -> int:
    def detail(i: int) -> tuple[int, int]:
        tx = members[i].transaction
        return completeness_score(tx), _populated_fields(tx)

    best_key = max(detail(i) for i in range(len(members)))
    candidates = [i for i in range(len(members)) if detail(i) == best_key]
    if len(candidates) == 1:
        return candidates[0]
    return candidates[_pick_latest([members[i] for i in candidates])]


def resolve_duplicates(
    cluster: DuplicateCluster,
    strategy: ResolutionStrategy | str,
) -> ResolutionDecision:
    """
    Decide which members of a cluster survive.

    Args:
        cluster: Cluster with at least two members
        strategy: keep_latest, keep_oldest, merge or flag

    Returns:
        ResolutionDecision covering every member exactly once

    Raises:
        ValueError: If the strategy is unknown, the cluster has fewer
            than two members or its member ids are not unique
    """
    try:
        strategy = ResolutionStrategy(strategy)
    except ValueError as e:
        raise ValueError(f"Unknown resolution strategy: {strategy!r}") from e

    if len(cluster) < 2:
        raise ValueError(f"Cluster {cluster.cluster_id} has fewer than two members")

    ids = cluster.transaction_ids
    if len(set(ids)) != len(ids):
        raise ValueError(f"Cluster {cluster.cluster_id} has repeated member ids: {ids}")

    if strategy == ResolutionStrategy.FLAG:
        return ResolutionDecision(flag=list(ids))

    if strategy == ResolutionStrategy.KEEP_LATEST:
        keep = _pick_latest(cluster.members)
    elif strategy == ResolutionStrategy.KEEP_OLDEST:
        keep = _pick_oldest(cluster.members)
    else:
        keep = _pick_most_complete(cluster.members)

    decision = ResolutionDecision(
        keep=[ids[keep]],
        remove=[member_id for index, member_id in enumerate(ids) if index != keep],
    )
    logger.debug(
        "Resolved cluster %s with %s: keep %s, remove %s",
        cluster.cluster_id,
        strategy.value,
        ids[keep],
        decision.remove,
    )
    return decision


def strategy_for_cluster(
    cluster: DuplicateCluster,
    strategy: ResolutionStrategy | str,
) -> ResolutionStrategy:
    """Low confidence clusters always go to manual review."""
    if cluster.confidence == ClusterConfidence.LOW:
        return ResolutionStrategy.FLAG
    return ResolutionStrategy(strategy)


def resolve_clusters(
    clusters: Iterable[DuplicateCluster],
    strategy: ResolutionStrategy | str = ResolutionStrategy.KEEP_OLDEST,
) -> dict[str, ResolutionDecision]:
    """Resolve a batch of clusters, keyed by cluster id.

    Raises:
        ValueError: If the strategy is unknown or two clusters share an id
    """
    try:
        requested = ResolutionStrategy(strategy)
    except ValueError as e:
        raise ValueError(f"Unknown resolution strategy: {strategy!r}") from e

    decisions: dict[str, ResolutionDecision] = {}
    for cluster in clusters:
        if cluster.cluster_id in decisions:
            raise ValueError(f"Duplicate cluster id in batch: {cluster.cluster_id}")
        effective = strategy_for_cluster(cluster, requested)
        if effective != requested:
            logger.info(
                "Cluster %s has %s confidence; flagging for review instead of %s",
                cluster.cluster_id,
                cluster.confidence.value,
                requested.value,
            )
        decisions[cluster.cluster_id] = resolve_duplicates(cluster, effective)
    return decisions
