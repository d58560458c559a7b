"""
Rule matching: decide which splitting rule applies to a transaction.

Rules are evaluated in ascending priority; among equal priorities the rule
declared first wins. Inactive rules are never evaluated. A rule whose
configuration is broken (unsafe pattern, unknown type) simply does not
match; the problem is logged, not raised.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..config import RuleEngineConfig
from ..schemas.splitting_rule import (
    DraftRule,
    MatchResult,
    RuleMatchStatistics,
    RuleType,
    SplittingRule,
)
from ..schemas.transaction import Transaction
from .regex_safety import safe_search

logger = logging.getLogger(__name__)


def _match_merchant(rule: SplittingRule, tx: Transaction, config: RuleEngineConfig) -> bool:
    if not rule.merchant_pattern or not tx.merchant_name:
        return False
    return safe_search(rule.merchant_pattern, tx.merchant_name, config, label=f"rule {rule.id}")


def _match_category(rule: SplittingRule, tx: Transaction, config: RuleEngineConfig) -> bool:
    if not isinstance(rule.category_match, str) or not rule.category_match or not tx.category:
        return False
    return rule.category_match.strip().casefold() == tx.category.strip().casefold()


def _match_amount(rule: SplittingRule, tx: Transaction, config: RuleEngineConfig) -> bool:
    amount = tx.absolute_amount
    if rule.min_amount is not None and amount < rule.min_amount:
        return False
    if rule.max_amount is not None and amount > rule.max_amount:
        return False
    return True


def _match_default(rule: SplittingRule, tx: Transaction, config: RuleEngineConfig) -> bool:
    return True


_MATCHERS = {
    RuleType.MERCHANT: _match_merchant,
    RuleType.CATEGORY: _match_category,
    RuleType.AMOUNT_THRESHOLD: _match_amount,
    RuleType.DEFAULT: _match_default,
}


def rule_matches(
    rule: SplittingRule,
    tx: Transaction,
    config: RuleEngineConfig | None = None,
) -> bool:
    """Whether a single rule matches a transaction, ignoring ``is_active``."""
    matcher = _MATCHERS.get(rule.rule_type) if isinstance(rule.rule_type, RuleType) else None
    if matcher is None:
        logger.warning("Rule %s has unknown rule type %r; skipping", rule.id, rule.type_name)
        return False
    return matcher(rule, tx, config or RuleEngineConfig())


def _ranked_active(rules: Sequence[SplittingRule]) -> list[SplittingRule]:
    ranked = []
    for index, rule in enumerate(rules):
        if not rule.is_active:
            continue
        if isinstance(rule.priority, bool) or not isinstance(rule.priority, int):
            logger.error("Rule %s has non-integer priority %r; skipping", rule.id, rule.priority)
            continue
        ranked.append((rule.priority, index, rule))
    ranked.sort(key=lambda item: (item[0], item[1]))
    return [rule for _, _, rule in ranked]


def find_matching_rule(
    tx: Transaction,
    rules: Sequence[SplittingRule],
    config: RuleEngineConfig | None = None,
) -> SplittingRule | None:
    """Return the highest-priority active rule matching ``tx``, or None."""
    for rule in _ranked_active(rules):
        if rule_matches(rule, tx, config):
            logger.debug(
                "Transaction %s matched rule %s (%s)",
                tx.transaction_id,
                rule.id,
                rule.rule_name,
            )
            return rule
    return None


def find_all_matching_rules(
    tx: Transaction,
    rules: Sequence[SplittingRule],
    config: RuleEngineConfig | None = None,
) -> list[SplittingRule]:
    """Every active rule matching ``tx``, in evaluation order."""
    return [rule for rule in _ranked_active(rules) if rule_matches(rule, tx, config)]


def match_transaction(
    tx: Transaction,
    rules: Sequence[SplittingRule],
    include_all: bool = False,
    config: RuleEngineConfig | None = None,
) -> MatchResult:
    """
    Match a transaction and optionally report every matching rule.

    With ``include_all`` the selected rule is the first entry of
    ``all_matches``.
    """
    if include_all:
        matches = find_all_matching_rules(tx, rules, config)
        return MatchResult(
            transaction_id=tx.transaction_id,
            rule=matches[0] if matches else None,
            all_matches=matches,
        )
    return MatchResult(
        transaction_id=tx.transaction_id,
        rule=find_matching_rule(tx, rules, config),
    )


def test_draft_rule(
    draft: DraftRule | dict[str, Any],
    tx: Transaction,
    config: RuleEngineConfig | None = None,
) -> bool:
    """Preview whether an unsaved rule would match a transaction."""
    if isinstance(draft, dict):
        draft = DraftRule.from_dict(draft)
    return rule_matches(draft.to_rule(), tx, config)


def get_rule_match_statistics(
    transactions: Sequence[Transaction],
    rules: Sequence[SplittingRule],
    config: RuleEngineConfig | None = None,
) -> RuleMatchStatistics:
    """Count how many transactions each rule would claim."""
    matches_by_rule: dict[str, int] = {}
    matched = 0
    for tx in transactions:
        rule = find_matching_rule(tx, rules, config)
        if rule is None:
            continue
        matched += 1
        matches_by_rule[rule.id] = matches_by_rule.get(rule.id, 0) + 1

    return RuleMatchStatistics(
        total=len(transactions),
        matched=matched,
        unmatched=len(transactions) - matched,
        matches_by_rule=matches_by_rule,
    )
