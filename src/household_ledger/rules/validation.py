"""
Static validation of splitting rule configuration.

Validation collects every problem rather than stopping at the first, so a
rule editor can show them all at once. Nothing here raises for bad rules.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..config import RuleEngineConfig
from ..schemas.splitting_rule import RuleType, RuleValidationResult, SplittingRule
from .regex_safety import RegexPolicyError, compile_pattern

MIN_PRIORITY = 1
MAX_PRIORITY = 1000
MAX_RULE_NAME_LENGTH = 100
TOTAL_PERCENT = 100


def validate_split_percentage(split_percentage: dict[str, Any] | None) -> list[str]:
    """
    Check a member -> percent mapping.

    Values must be integers in [0, 100], sum to exactly 100, and at least
    one member must carry a share.
    """
    if not split_percentage:
        return ["Split percentage must assign at least one member"]

    errors: list[str] = []
    total = 0
    all_integers = True
    for member_id, percent in split_percentage.items():
        if isinstance(percent, bool) or not isinstance(percent, int):
            errors.append(f"Split percentage for {member_id} must be an integer, got {percent!r}")
            all_integers = False
            continue
        if not 0 <= percent <= TOTAL_PERCENT:
            errors.append(f"Split percentage for {member_id} must be between 0 and 100, got {percent}")
        total += percent

    if all_integers:
        if total != TOTAL_PERCENT:
            errors.append(f"Split percentages must sum to 100%, got {total}%")
        if not any(p > 0 for p in split_percentage.values()):
            errors.append("At least one member must have a share greater than 0%")

    return errors


def _validate_amount_bounds(min_amount: Decimal | None, max_amount: Decimal | None) -> list[str]:
    errors: list[str] = []
    if min_amount is not None and min_amount < 0:
        errors.append("Minimum amount cannot be negative")
    if min_amount is not None and max_amount is not None and max_amount <= min_amount:
        errors.append("Maximum amount must be greater than minimum amount")
    return errors


def validate_rule_configuration(
    rule: SplittingRule,
    config: RuleEngineConfig | None = None,
) -> RuleValidationResult:
    """
    Validate a rule's type-specific fields, bounds and split.

    Returns:
        RuleValidationResult with every problem found
    """
    errors: list[str] = []

    if rule.rule_name is not None and not 1 <= len(rule.rule_name.strip()) <= MAX_RULE_NAME_LENGTH:
        errors.append(f"Rule name must be between 1 and {MAX_RULE_NAME_LENGTH} characters")

    if isinstance(rule.priority, bool) or not isinstance(rule.priority, int):
        errors.append(f"Priority must be an integer, got {rule.priority!r}")
    elif not MIN_PRIORITY <= rule.priority <= MAX_PRIORITY:
        errors.append(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")

    if rule.rule_type == RuleType.MERCHANT:
        if rule.merchant_pattern is not None and not isinstance(rule.merchant_pattern, str):
            errors.append(f"Merchant pattern must be text, got {rule.merchant_pattern!r}")
        elif not rule.merchant_pattern or not rule.merchant_pattern.strip():
            errors.append("Merchant pattern is required for merchant rules")
        else:
            try:
                compile_pattern(rule.merchant_pattern, config)
            except RegexPolicyError as e:
                errors.append(str(e))
    elif rule.rule_type == RuleType.CATEGORY:
        if rule.category_match is not None and not isinstance(rule.category_match, str):
            errors.append(f"Category must be text, got {rule.category_match!r}")
        elif not rule.category_match or not rule.category_match.strip():
            errors.append("Category is required for category rules")
    elif rule.rule_type == RuleType.AMOUNT_THRESHOLD:
        if rule.min_amount is None:
            errors.append("Minimum amount is required for amount threshold rules")
    elif rule.rule_type != RuleType.DEFAULT:
        errors.append(f"Unknown rule type: {rule.type_name!r}")

    errors.extend(_validate_amount_bounds(rule.min_amount, rule.max_amount))
    errors.extend(validate_split_percentage(rule.split_percentage))

    return RuleValidationResult(is_valid=not errors, errors=errors)
