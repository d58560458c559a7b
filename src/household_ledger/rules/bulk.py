"""
Bulk application of a splitting rule to existing transactions.

Core Invariants:
- A failure persisting one transaction never aborts the batch
- ``split_amounts`` of every application sum exactly to its amount
  (the last member absorbs rounding)
- ``applied_count`` and ``total_amount`` only count persisted applications
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from decimal import ROUND_DOWN, Decimal

from ..config import RuleEngineConfig
from ..schemas.splitting_rule import BulkApplicationResult, RuleApplication, SplittingRule
from ..schemas.transaction import Transaction, currency_precision, quantize_amount
from .matching import rule_matches
from .validation import validate_rule_configuration

logger = logging.getLogger(__name__)

PersistCallback = Callable[[RuleApplication], None]


class RuleConfigurationError(Exception):
    """Raised when a rule cannot be applied at all."""

    def __init__(self, rule_id: str, errors: list[str]):
        self.rule_id = rule_id
        self.errors = errors
        super().__init__(f"Rule {rule_id} cannot be applied: {'; '.join(errors)}")


def allocate_split(
    amount: Decimal,
    split_percentage: dict[str, int],
    currency: str | None = None,
) -> dict[str, Decimal]:
    """
    Divide an amount between members by percentage.

    Each share is rounded down to the currency's minor unit; the last member
    absorbs the remainder so the shares sum exactly to ``amount``.
    """
    total = quantize_amount(amount, currency)
    if not split_percentage:
        return {}

    quantum = currency_precision(currency)
    shares: dict[str, Decimal] = {}
    for member_id, percent in split_percentage.items():
        shares[member_id] = (total * percent / 100).quantize(quantum, rounding=ROUND_DOWN)

    difference = total - sum(shares.values())
    if difference:
        last_member = next(reversed(shares))
        shares[last_member] += difference
        logger.debug("Applied rounding correction of %s to member %s", difference, last_member)

    return shares


def build_application(
    rule: SplittingRule,
    tx: Transaction,
    household_id: str | None = None,
) -> RuleApplication:
    """Share decision for one matching transaction."""
    amount = quantize_amount(tx.absolute_amount, tx.currency)
    return RuleApplication(
        transaction_id=tx.transaction_id,
        rule_id=rule.id,
        household_id=household_id or rule.household_id,
        amount=amount,
        split_percentage=dict(rule.split_percentage),
        split_amounts=allocate_split(amount, rule.split_percentage, tx.currency),
        is_shared=True,
    )


def apply_rule_to_transactions(
    rule: SplittingRule,
    transactions: Sequence[Transaction],
    persist: PersistCallback | None = None,
    household_id: str | None = None,
    config: RuleEngineConfig | None = None,
) -> BulkApplicationResult:
    """
    Apply one rule to every matching transaction.

    Args:
        rule: Active, valid rule to apply
        transactions: Candidate transactions
        persist: Called once per application; exceptions are recorded in
            ``errors`` and the batch continues
        household_id: Household to share with (defaults to the rule's)
        config: Rule engine settings

    Returns:
        BulkApplicationResult

    Raises:
        RuleConfigurationError: If the rule is inactive or invalid
    """
    if not rule.is_active:
        raise RuleConfigurationError(rule.id, ["Rule is not active"])

    validation = validate_rule_configuration(rule, config)
    if not validation.is_valid:
        raise RuleConfigurationError(rule.id, validation.errors)

    result = BulkApplicationResult(rule_id=rule.id)

    for tx in transactions:
        if not rule_matches(rule, tx, config):
            continue

        application = build_application(rule, tx, household_id)
        if persist is not None:
            try:
                persist(application)
            except Exception as e:
                logger.warning("Failed to apply rule %s to %s: %s", rule.id, tx.transaction_id, e)
                result.errors.append(
                    f"Failed to apply rule to transaction {tx.transaction_id}: {e}"
                )
                continue

        result.applications.append(application)
        result.applied_count += 1
        result.total_amount += application.amount

    logger.info(
        "Applied rule %s to %d transactions (total %s, %d errors)",
        rule.id,
        result.applied_count,
        result.total_amount,
        len(result.errors),
    )
    return result
