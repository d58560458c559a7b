"""Tests for splitting rule matching."""

import logging
from decimal import Decimal

import pytest

from household_ledger.rules import (
    find_all_matching_rules,
    find_matching_rule,
    get_rule_match_statistics,
    match_transaction,
    rule_matches,
    test_draft_rule as preview_draft_rule,
)
from household_ledger.schemas import UNCATEGORIZED, DraftRule, RuleType


class TestRuleMatches:
    """Tests for per-type matching."""

    def test_merchant_case_insensitive_search(self, make_rule, make_transaction):
        rule = make_rule(merchant_pattern="tesco")
        assert rule_matches(rule, make_transaction(merchant_name="TESCO EXTRA 1234"))

    def test_merchant_missing_on_transaction(self, make_rule, make_transaction):
        assert not rule_matches(make_rule(), make_transaction(merchant_name=None))

    def test_merchant_unsafe_pattern_is_non_match(self, make_rule, make_transaction, caplog):
        rule = make_rule(id="evil", merchant_pattern="(a+)+$")
        with caplog.at_level(logging.ERROR):
            assert not rule_matches(rule, make_transaction(merchant_name="a" * 40 + "!"))
        assert "evil" in caplog.text

    def test_merchant_overlong_pattern_is_non_match(self, make_rule, make_transaction):
        rule = make_rule(merchant_pattern="tesco" + "x" * 245)
        assert not rule_matches(rule, make_transaction())

    def test_merchant_invalid_syntax_is_non_match(self, make_rule, make_transaction):
        assert not rule_matches(make_rule(merchant_pattern="(tesco"), make_transaction())

    def test_category_case_insensitive_equality(self, make_rule, make_transaction):
        rule = make_rule(rule_type=RuleType.CATEGORY, merchant_pattern=None, category_match=" Groceries ")
        assert rule_matches(rule, make_transaction(category="GROCERIES"))
        assert not rule_matches(rule, make_transaction(category="groceries and more"))

    @pytest.mark.parametrize(
        "amount,expected",
        [
            ("-5.00", False),
            ("10.00", True),
            ("-50.00", True),
            ("100.00", True),
            ("100.01", False),
        ],
    )
    def test_amount_threshold_uses_absolute_amount(self, make_rule, make_transaction, amount, expected):
        rule = make_rule(
            rule_type=RuleType.AMOUNT_THRESHOLD,
            merchant_pattern=None,
            min_amount=Decimal("10"),
            max_amount=Decimal("100"),
        )
        assert rule_matches(rule, make_transaction(amount=Decimal(amount))) is expected

    def test_amount_threshold_open_upper_bound(self, make_rule, make_transaction):
        rule = make_rule(rule_type=RuleType.AMOUNT_THRESHOLD, merchant_pattern=None, min_amount=Decimal("100"))
        assert rule_matches(rule, make_transaction(amount=Decimal("-99999")))

    def test_default_matches_everything(self, make_rule, make_transaction):
        rule = make_rule(rule_type=RuleType.DEFAULT, merchant_pattern=None)
        assert rule_matches(rule, make_transaction(merchant_name=None, category=UNCATEGORIZED))

    def test_unknown_type_logs_warning(self, make_rule, make_transaction, caplog):
        rule = make_rule(id="odd", rule_type="percentage")
        with caplog.at_level(logging.WARNING):
            assert not rule_matches(rule, make_transaction())
        assert "odd" in caplog.text

    def test_non_text_merchant_pattern_is_non_match(self, make_rule, make_transaction):
        assert not rule_matches(make_rule(merchant_pattern=123), make_transaction(merchant_name="123"))

    def test_non_text_category_is_non_match(self, make_rule, make_transaction):
        rule = make_rule(rule_type=RuleType.CATEGORY, merchant_pattern=None, category_match=5)
        assert not rule_matches(rule, make_transaction(category="5"))


class TestFindMatchingRule:
    """Tests for priority ordering."""

    def test_lowest_priority_number_wins(self, sample_rules, make_transaction):
        tx = make_transaction(amount=Decimal("-150.00"))
        assert find_matching_rule(tx, sample_rules).id == "large"

    def test_falls_through_to_later_rules(self, sample_rules, make_transaction):
        tx = make_transaction(category="Fuel", merchant_name="Tesco Petrol")
        assert find_matching_rule(tx, sample_rules).id == "merchant"

    def test_default_catches_the_rest(self, sample_rules, make_transaction):
        tx = make_transaction(category="Fuel", merchant_name="Shell")
        assert find_matching_rule(tx, sample_rules).id == "default"

    def test_equal_priority_keeps_declaration_order(self, make_rule, make_transaction):
        rules = [
            make_rule(id="first", priority=10),
            make_rule(id="second", priority=10),
        ]
        assert find_matching_rule(make_transaction(), rules).id == "first"
        assert find_matching_rule(make_transaction(), list(reversed(rules))).id == "second"

    def test_inactive_rules_skipped(self, make_rule, make_transaction):
        rules = [
            make_rule(id="inactive", priority=1, is_active=False),
            make_rule(id="active", priority=50),
        ]
        assert find_matching_rule(make_transaction(), rules).id == "active"

    def test_no_match(self, make_rule, make_transaction):
        assert find_matching_rule(make_transaction(merchant_name="Shell"), [make_rule()]) is None

    def test_no_rules(self, sample_transaction):
        assert find_matching_rule(sample_transaction, []) is None

    def test_non_text_pattern_falls_through(self, make_rule, make_transaction):
        """A loosely typed rule never stops evaluation of the rules after it."""
        rules = [
            make_rule(id="bad", priority=1, merchant_pattern=123),
            make_rule(id="fallback", rule_type=RuleType.DEFAULT, merchant_pattern=None, priority=999),
        ]

        assert find_matching_rule(make_transaction(), rules).id == "fallback"

    def test_non_integer_priority_skipped(self, make_rule, make_transaction, caplog):
        rules = [make_rule(id="odd", priority="first"), make_rule(id="ok", priority=50)]

        with caplog.at_level(logging.ERROR, logger="household_ledger.rules.matching"):
            assert find_matching_rule(make_transaction(), rules).id == "ok"
        assert "odd" in caplog.text


class TestMatchTransaction:
    """Tests for match diagnostics."""

    def test_all_matches_ranked(self, sample_rules, make_transaction):
        tx = make_transaction(amount=Decimal("-150.00"))

        result = match_transaction(tx, sample_rules, include_all=True)

        assert result.rule.id == "large"
        assert [r.id for r in result.all_matches] == ["large", "category", "merchant", "default"]
        assert result.to_dict()["all_matches"][0]["rule_id"] == "large"

    def test_without_diagnostics(self, sample_rules, sample_transaction):
        result = match_transaction(sample_transaction, sample_rules)

        assert result.matched
        assert result.all_matches is None
        assert "all_matches" not in result.to_dict()

    def test_find_all_empty(self, make_rule, make_transaction):
        assert find_all_matching_rules(make_transaction(merchant_name="Shell"), [make_rule()]) == []


class TestDraftRules:
    """Tests for previewing unsaved rules."""

    def test_draft_defaults_to_merchant(self, sample_transaction):
        assert preview_draft_rule({"merchant_pattern": "^tes"}, sample_transaction)

    def test_draft_category(self, sample_transaction):
        draft = DraftRule(rule_type=RuleType.CATEGORY, category_match="groceries")
        assert preview_draft_rule(draft, sample_transaction)

    def test_draft_materializes_placeholder_rule(self):
        rule = DraftRule(merchant_pattern="x").to_rule()
        assert rule.id == "draft"
        assert rule.rule_type == RuleType.MERCHANT
        assert rule.priority == 100
        assert rule.is_active

    def test_unsafe_draft_never_raises(self, sample_transaction):
        assert preview_draft_rule({"merchant_pattern": "(a*)*b"}, sample_transaction) is False


class TestRuleMatchStatistics:
    """Tests for aggregate statistics."""

    def test_counts(self, make_rule, make_transaction):
        rules = [make_rule(id="tesco")]
        transactions = [
            make_transaction(id="1"),
            make_transaction(id="2", merchant_name="Tesco Metro"),
            make_transaction(id="3", merchant_name="Shell"),
        ]

        stats = get_rule_match_statistics(transactions, rules)

        assert stats.total == 3
        assert stats.matched == 2
        assert stats.unmatched == 1
        assert stats.matches_by_rule == {"tesco": 2}
        assert stats.to_dict()["matched_transactions"] == 2

    def test_empty(self):
        stats = get_rule_match_statistics([], [])
        assert (stats.total, stats.matched, stats.unmatched) == (0, 0, 0)
