"""
Automatic categorization with confidence scoring.

Each transaction is given the rule that ``find_matching_rule`` selects, plus
a confidence score describing how specific that rule is:

- merchant: 100 when the pattern is a plain name equal to the merchant
  (case-insensitive), 85 for any other pattern match
- category: 95
- amount_threshold: 80
- default: 60
- anything else: 50

Transactions with no rule, or a score at or below 70, are left for review.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..config import RuleEngineConfig
from ..schemas.splitting_rule import (
    BatchCategorizationResult,
    CategorizationResult,
    ConfidenceLevel,
    RuleType,
    SplittingRule,
)
from ..schemas.transaction import Transaction
from .matching import find_matching_rule

logger = logging.getLogger(__name__)

MERCHANT_EXACT_CONFIDENCE = 100
MERCHANT_PATTERN_CONFIDENCE = 85
CATEGORY_CONFIDENCE = 95
AMOUNT_THRESHOLD_CONFIDENCE = 80
DEFAULT_RULE_CONFIDENCE = 60
UNKNOWN_RULE_CONFIDENCE = 50

HIGH_CONFIDENCE = 95
MEDIUM_CONFIDENCE = 70
LOW_CONFIDENCE = 50

# Scores at or below this still go to manual review
REVIEW_CONFIDENCE_CEILING = 70

# Patterns containing these are treated as wildcards, never exact names
_WILDCARDS = (".*", ".+")

_TYPE_CONFIDENCE = {
    RuleType.CATEGORY: CATEGORY_CONFIDENCE,
    RuleType.AMOUNT_THRESHOLD: AMOUNT_THRESHOLD_CONFIDENCE,
    RuleType.DEFAULT: DEFAULT_RULE_CONFIDENCE,
}


def _is_exact_merchant(tx: Transaction, pattern: str | None) -> bool:
    if not isinstance(pattern, str) or not pattern or not tx.merchant_name:
        return False
    if any(wildcard in pattern for wildcard in _WILDCARDS):
        return False
    return tx.merchant_name.casefold() == pattern.casefold()


def calculate_confidence_score(tx: Transaction, rule: SplittingRule) -> int:
    """Score in [0, 100] for how confidently ``rule`` categorizes ``tx``."""
    if rule.rule_type == RuleType.MERCHANT:
        if _is_exact_merchant(tx, rule.merchant_pattern):
            return MERCHANT_EXACT_CONFIDENCE
        return MERCHANT_PATTERN_CONFIDENCE
    if isinstance(rule.rule_type, RuleType):
        return _TYPE_CONFIDENCE[rule.rule_type]
    return UNKNOWN_RULE_CONFIDENCE


def get_confidence_level(score: int | None) -> ConfidenceLevel:
    """Display band for a score; None means the transaction was never scored."""
    if score is None:
        return ConfidenceLevel.NONE
    if score >= HIGH_CONFIDENCE:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_CONFIDENCE:
        return ConfidenceLevel.MEDIUM
    if score >= LOW_CONFIDENCE:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.NONE


def categorize_transaction(
    tx: Transaction,
    rules: Sequence[SplittingRule],
    config: RuleEngineConfig | None = None,
) -> CategorizationResult:
    """Pick the rule for one transaction and score the choice."""
    rule = find_matching_rule(tx, rules, config)
    if rule is None:
        return CategorizationResult(transaction_id=tx.transaction_id, rule_applied=False)

    score = calculate_confidence_score(tx, rule)
    shared = bool(rule.split_percentage)
    logger.debug(
        "Transaction %s categorized by rule %s (%s), confidence %d",
        tx.transaction_id,
        rule.id,
        rule.rule_name,
        score,
    )
    return CategorizationResult(
        transaction_id=tx.transaction_id,
        rule_applied=True,
        confidence_score=score,
        confidence_level=get_confidence_level(score),
        rule_id=rule.id,
        rule_name=rule.rule_name,
        is_shared_expense=shared,
        shared_with_household_id=rule.household_id if shared else None,
        split_percentage=dict(rule.split_percentage),
        needs_review=score <= REVIEW_CONFIDENCE_CEILING,
    )


def categorize_transactions(
    transactions: Sequence[Transaction],
    rules: Sequence[SplittingRule],
    config: RuleEngineConfig | None = None,
) -> BatchCategorizationResult:
    """
    Categorize a transaction set and summarize the outcome.

    Args:
        transactions: Transactions to categorize
        rules: Rule set, evaluated in priority order
        config: Rule engine settings

    Returns:
        BatchCategorizationResult with one result per transaction, in input
        order
    """
    results = [categorize_transaction(tx, rules, config) for tx in transactions]
    categorized = sum(1 for r in results if r.rule_applied)
    batch = BatchCategorizationResult(
        total=len(results),
        categorized=categorized,
        uncategorized=len(results) - categorized,
        results=results,
    )

    logger.info(
        "Categorized %d of %d transactions; %d need review",
        batch.categorized,
        batch.total,
        len(batch.needs_review),
    )
    return batch
