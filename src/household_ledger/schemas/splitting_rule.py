"""
Splitting rule schemas.

A splitting rule classifies a transaction and divides it between household
members by percentage. Rules are created and edited outside the engine; the
engine only reads them.

Per-type requirements (enforced by ``rules.validation``):
- merchant: ``merchant_pattern`` (regex, case-insensitive)
- category: ``category_match`` (case-insensitive equality)
- amount_threshold: ``min_amount`` (``max_amount`` optional, must exceed min)
- default: nothing; matches every transaction
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from .transaction import parse_amount

DEFAULT_PRIORITY = 100

# Placeholders for transient rules built from drafts
DRAFT_RULE_ID = "draft"
DRAFT_HOUSEHOLD_ID = "draft"


class RuleType(str, Enum):
    """Matching strategy of a splitting rule."""

    MERCHANT = "merchant"
    CATEGORY = "category"
    AMOUNT_THRESHOLD = "amount_threshold"
    DEFAULT = "default"

    @classmethod
    def coerce(cls, value: RuleType | str | None) -> RuleType | str | None:
        """Return the enum member for known values, the raw value otherwise.

        Unknown types are kept as plain strings so the engine can report them
        instead of failing at load time.
        """
        if value is None or isinstance(value, RuleType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return value


def _optional_amount(value: Any) -> Decimal | None:
    return None if value is None else parse_amount(value)


def _optional_text(value: Any, name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"{name} must be text, got {type(value).__name__}")


def _optional_priority(value: Any) -> int | None:
    """Accept integers and integer strings such as ``"5"``."""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"priority must be an integer, got {value!r}")


@dataclass(frozen=True)
class SplittingRule:
    """A persisted household splitting rule."""

    id: str
    household_id: str
    rule_name: str
    rule_type: RuleType | str
    priority: int = DEFAULT_PRIORITY
    merchant_pattern: str | None = None
    category_match: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    split_percentage: dict[str, int] = field(default_factory=dict)
    is_active: bool = True
    created_by: str | None = None
    apply_to_existing_transactions: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SplittingRule:
        """Build a rule from a storage row or JSON object.

        Raises:
            ValueError: If an amount bound is not numeric, the priority is not
                an integer or a pattern field is not text
        """
        return cls(
            id=str(data.get("id", "")),
            household_id=str(data.get("household_id", "")),
            rule_name=str(data.get("rule_name", "")),
            rule_type=RuleType.coerce(data.get("rule_type")),
            priority=_optional_priority(data.get("priority", DEFAULT_PRIORITY)),
            merchant_pattern=_optional_text(data.get("merchant_pattern"), "merchant_pattern"),
            category_match=_optional_text(data.get("category_match"), "category_match"),
            min_amount=_optional_amount(data.get("min_amount")),
            max_amount=_optional_amount(data.get("max_amount")),
            split_percentage=dict(data.get("split_percentage") or {}),
            is_active=bool(data.get("is_active", True)),
            created_by=data.get("created_by"),
            apply_to_existing_transactions=bool(data.get("apply_to_existing_transactions", False)),
        )

    @property
    def type_name(self) -> str:
        if isinstance(self.rule_type, RuleType):
            return self.rule_type.value
        return str(self.rule_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "household_id": self.household_id,
            "rule_name": self.rule_name,
            "rule_type": self.type_name,
            "priority": self.priority,
            "merchant_pattern": self.merchant_pattern,
            "category_match": self.category_match,
            "min_amount": None if self.min_amount is None else str(self.min_amount),
            "max_amount": None if self.max_amount is None else str(self.max_amount),
            "split_percentage": dict(self.split_percentage),
            "is_active": self.is_active,
        }


@dataclass
class DraftRule:
    """Unsaved, partially specified rule used for previews and templates."""

    rule_type: RuleType | str | None = None
    rule_name: str | None = None
    priority: int | None = None
    merchant_pattern: str | None = None
    category_match: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    split_percentage: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DraftRule:
        return cls(
            rule_type=RuleType.coerce(data.get("rule_type")),
            rule_name=data.get("rule_name"),
            priority=_optional_priority(data.get("priority")),
            merchant_pattern=_optional_text(data.get("merchant_pattern"), "merchant_pattern"),
            category_match=_optional_text(data.get("category_match"), "category_match"),
            min_amount=_optional_amount(data.get("min_amount")),
            max_amount=_optional_amount(data.get("max_amount")),
            split_percentage=dict(data.get("split_percentage") or {}),
        )

    def to_rule(
        self,
        rule_id: str = DRAFT_RULE_ID,
        household_id: str = DRAFT_HOUSEHOLD_ID,
    ) -> SplittingRule:
        """Materialize a transient, active rule.

        A draft without a type is treated as a merchant rule, matching the
        rule editor's default.
        """
        return SplittingRule(
            id=rule_id,
            household_id=household_id,
            rule_name=self.rule_name or rule_id,
            rule_type=self.rule_type or RuleType.MERCHANT,
            priority=self.priority or DEFAULT_PRIORITY,
            merchant_pattern=self.merchant_pattern,
            category_match=self.category_match,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            split_percentage=dict(self.split_percentage),
            is_active=True,
        )


@dataclass
class MatchResult:
    """Rule selected for a transaction, with optional diagnostics."""

    transaction_id: str
    rule: SplittingRule | None
    all_matches: list[SplittingRule] | None = None

    @property
    def matched(self) -> bool:
        return self.rule is not None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "transaction_id": self.transaction_id,
            "rule_id": self.rule.id if self.rule else None,
            "rule_name": self.rule.rule_name if self.rule else None,
        }
        if self.all_matches is not None:
            result["all_matches"] = [
                {"rule_id": r.id, "rule_name": r.rule_name, "priority": r.priority}
                for r in self.all_matches
            ]
        return result


@dataclass
class RuleValidationResult:
    """Every configuration problem found in a rule."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


@dataclass
class RuleApplication:
    """Decision to share a transaction according to a rule.

    ``split_amounts`` always sums to ``amount`` exactly.
    """

    transaction_id: str
    rule_id: str
    household_id: str
    amount: Decimal
    split_percentage: dict[str, int]
    split_amounts: dict[str, Decimal]
    is_shared: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "splitting_rule_id": self.rule_id,
            "shared_with_household_id": self.household_id,
            "is_shared_expense": self.is_shared,
            "amount": str(self.amount),
            "split_percentage": dict(self.split_percentage),
            "split_amounts": {k: str(v) for k, v in self.split_amounts.items()},
        }


@dataclass
class BulkApplicationResult:
    """Report of applying one rule across a transaction set."""

    rule_id: str
    applied_count: int = 0
    total_amount: Decimal = Decimal("0")
    errors: list[str] = field(default_factory=list)
    applications: list[RuleApplication] = field(default_factory=list)

    @property
    def partial_success(self) -> bool:
        """Some transactions applied but some failed."""
        return self.applied_count > 0 and bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "affected_transaction_count": self.applied_count,
            "total_amount_affected": str(self.total_amount),
            "errors": list(self.errors),
        }


@dataclass
class RuleMatchStatistics:
    """Aggregate of rule matching over a transaction set."""

    total: int
    matched: int
    unmatched: int
    matches_by_rule: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_transactions": self.total,
            "matched_transactions": self.matched,
            "unmatched_transactions": self.unmatched,
            "matches_by_rule": dict(self.matches_by_rule),
        }


class ConfidenceLevel(str, Enum):
    """Display band of a categorization confidence score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


@dataclass
class CategorizationResult:
    """Outcome of running the rule set over one transaction.

    ``confidence_score`` is 0 when no rule matched. Shared-expense fields are
    only set when the applied rule assigns at least one member.
    """

    transaction_id: str
    rule_applied: bool
    confidence_score: int = 0
    confidence_level: ConfidenceLevel = ConfidenceLevel.NONE
    rule_id: str | None = None
    rule_name: str | None = None
    is_shared_expense: bool = False
    shared_with_household_id: str | None = None
    split_percentage: dict[str, int] | None = None
    needs_review: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "rule_applied": self.rule_applied,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "confidence_score": self.confidence_score,
            "confidence_level": self.confidence_level.value,
            "is_shared_expense": self.is_shared_expense,
            "shared_with_household_id": self.shared_with_household_id,
            "split_percentage": (
                None if self.split_percentage is None else dict(self.split_percentage)
            ),
            "needs_review": self.needs_review,
        }


@dataclass
class BatchCategorizationResult:
    """Summary of categorizing a transaction set."""

    total: int = 0
    categorized: int = 0
    uncategorized: int = 0
    results: list[CategorizationResult] = field(default_factory=list)

    @property
    def needs_review(self) -> list[CategorizationResult]:
        return [r for r in self.results if r.needs_review]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "categorized": self.categorized,
            "uncategorized": self.uncategorized,
            "needs_review": len(self.needs_review),
            "results": [r.to_dict() for r in self.results],
        }
