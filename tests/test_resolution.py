"""Tests for duplicate cluster resolution."""

from datetime import date

import pytest

from household_ledger.dedupe import resolve_clusters, resolve_duplicates, strategy_for_cluster
from household_ledger.dedupe.fingerprint import generate_fingerprint
from household_ledger.schemas import (
    UNCATEGORIZED,
    ClusterConfidence,
    ClusterMember,
    DuplicateCluster,
    ResolutionStrategy,
    compute_cluster_id,
)


def _cluster(transactions, confidence=ClusterConfidence.HIGH) -> DuplicateCluster:
    members = [
        ClusterMember(transaction_id=tx.transaction_id, fingerprint=generate_fingerprint(tx), transaction=tx)
        for tx in transactions
    ]
    return DuplicateCluster(
        cluster_id=compute_cluster_id([m.transaction_id for m in members]),
        members=members,
        confidence=confidence,
    )


@pytest.fixture
def dated_cluster(make_transaction) -> DuplicateCluster:
    return _cluster(
        [
            make_transaction(id="mid", date=date(2024, 11, 18)),
            make_transaction(id="old", date=date(2024, 11, 17)),
            make_transaction(id="new", date=date(2024, 11, 19)),
        ]
    )


class TestResolveDuplicates:
    """Tests for each resolution strategy."""

    def test_keep_latest(self, dated_cluster):
        decision = resolve_duplicates(dated_cluster, ResolutionStrategy.KEEP_LATEST)
        assert decision.keep == ["new"]
        assert sorted(decision.remove) == ["mid", "old"]
        assert decision.flag == []

    def test_keep_oldest(self, dated_cluster):
        decision = resolve_duplicates(dated_cluster, "keep_oldest")
        assert decision.keep == ["old"]
        assert sorted(decision.remove) == ["mid", "new"]

    def test_flag(self, dated_cluster):
        decision = resolve_duplicates(dated_cluster, ResolutionStrategy.FLAG)
        assert decision.keep == []
        assert decision.remove == []
        assert sorted(decision.flag) == ["mid", "new", "old"]

    def test_same_date_tie_break(self, make_transaction):
        """Equal dates keep the lexicographically smallest id."""
        cluster = _cluster([make_transaction(id="b"), make_transaction(id="a"), make_transaction(id="c")])

        assert resolve_duplicates(cluster, ResolutionStrategy.KEEP_LATEST).keep == ["a"]
        assert resolve_duplicates(cluster, ResolutionStrategy.KEEP_OLDEST).keep == ["a"]

    def test_merge_keeps_most_complete(self, make_transaction):
        cluster = _cluster(
            [
                make_transaction(id="bare", merchant_name=None, category=UNCATEGORIZED, description=None),
                make_transaction(id="full"),
                make_transaction(id="partial", description=None),
            ]
        )

        decision = resolve_duplicates(cluster, ResolutionStrategy.MERGE)

        assert decision.keep == ["full"]
        assert sorted(decision.remove) == ["bare", "partial"]

    def test_merge_breaks_completeness_tie_by_populated_fields(self, make_transaction):
        cluster = _cluster(
            [
                make_transaction(id="a", external_id=None),
                make_transaction(id="b", external_id="provider-9"),
            ]
        )

        assert resolve_duplicates(cluster, ResolutionStrategy.MERGE).keep == ["b"]

    def test_merge_falls_back_to_latest(self, make_transaction):
        cluster = _cluster(
            [
                make_transaction(id="a", date=date(2024, 11, 17)),
                make_transaction(id="b", date=date(2024, 11, 18)),
            ]
        )

        assert resolve_duplicates(cluster, ResolutionStrategy.MERGE).keep == ["b"]

    @pytest.mark.parametrize("strategy", list(ResolutionStrategy))
    def test_every_member_decided_exactly_once(self, dated_cluster, strategy):
        decision = resolve_duplicates(dated_cluster, strategy)

        assert decision.validate(dated_cluster) == []
        if strategy != ResolutionStrategy.FLAG:
            assert len(decision.keep) == 1

    def test_unknown_strategy(self, dated_cluster):
        with pytest.raises(ValueError, match="Unknown resolution strategy"):
            resolve_duplicates(dated_cluster, "keep_everything")

    def test_single_member_cluster_rejected(self, sample_transaction):
        with pytest.raises(ValueError):
            resolve_duplicates(_cluster([sample_transaction]), ResolutionStrategy.KEEP_LATEST)

    def test_repeated_member_ids_rejected(self, make_transaction):
        """Members sharing an id cannot be told apart in a decision."""
        cluster = _cluster([make_transaction(id="dup"), make_transaction(id="dup")])

        with pytest.raises(ValueError, match="repeated member ids"):
            resolve_duplicates(cluster, ResolutionStrategy.KEEP_LATEST)

    def test_keep_and_remove_follow_member_positions(self, make_transaction):
        cluster = _cluster(
            [
                make_transaction(id="late", date=date(2024, 11, 19)),
                make_transaction(id="early", date=date(2024, 11, 17)),
            ]
        )

        decision = resolve_duplicates(cluster, ResolutionStrategy.KEEP_OLDEST)

        assert decision.keep == ["early"]
        assert decision.remove == ["late"]


class TestResolveClusters:
    """Tests for batch resolution."""

    def test_low_confidence_is_flagged(self, dated_cluster):
        dated_cluster.confidence = ClusterConfidence.LOW
        assert strategy_for_cluster(dated_cluster, "keep_latest") == ResolutionStrategy.FLAG

    def test_decisions_keyed_by_cluster(self, make_transaction, dated_cluster):
        low = _cluster(
            [make_transaction(id="x"), make_transaction(id="y")],
            confidence=ClusterConfidence.LOW,
        )

        decisions = resolve_clusters([dated_cluster, low], ResolutionStrategy.KEEP_LATEST)

        assert decisions[dated_cluster.cluster_id].keep == ["new"]
        assert decisions[low.cluster_id].keep == []
        assert sorted(decisions[low.cluster_id].flag) == ["x", "y"]

    def test_unknown_strategy(self, dated_cluster):
        with pytest.raises(ValueError):
            resolve_clusters([dated_cluster], "newest")

    def test_empty(self):
        assert resolve_clusters([]) == {}

    def test_duplicate_cluster_id_rejected(self, dated_cluster):
        with pytest.raises(ValueError, match="Duplicate cluster id"):
            resolve_clusters([dated_cluster, dated_cluster], ResolutionStrategy.KEEP_LATEST)
