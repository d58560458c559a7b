"""
Built-in splitting rule templates for common household scenarios.

Templates carry everything but the member split, which depends on who is in
the household; ``create_rule_from_template`` fills it in and returns a
``DraftRule`` ready for validation and preview.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from ..schemas.splitting_rule import DraftRule, RuleType


@dataclass(frozen=True)
class RuleTemplate:
    """A predefined rule configuration."""

    id: str
    name: str
    description: str
    rule_type: RuleType
    rule_name: str
    priority: int
    category_match: str | None = None
    merchant_pattern: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    # Private templates assign 100% to the current user instead of splitting
    private: bool = False
    example_transactions: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "rule_type": self.rule_type.value,
            "default_config": {
                "rule_name": self.rule_name,
                "rule_type": self.rule_type.value,
                "priority": self.priority,
                "category_match": self.category_match,
                "merchant_pattern": self.merchant_pattern,
                "min_amount": None if self.min_amount is None else str(self.min_amount),
                "max_amount": None if self.max_amount is None else str(self.max_amount),
            },
            "private": self.private,
            "example_transactions": list(self.example_transactions),
        }


RULE_TEMPLATES: tuple[RuleTemplate, ...] = (
    RuleTemplate(
        id="groceries-5050",
        name="Split Groceries 50/50",
        description="Share all grocery expenses equally between two people",
        rule_type=RuleType.CATEGORY,
        rule_name="Groceries 50/50",
        category_match="groceries",
        priority=10,
        example_transactions=("Tesco", "Sainsbury's", "Waitrose", "Asda", "Morrisons"),
    ),
    RuleTemplate(
        id="utilities-custom",
        name="Split Utilities by Custom Ratio",
        description="Share utility bills with custom percentages per person",
        rule_type=RuleType.CATEGORY,
        rule_name="Utilities Split",
        category_match="utilities",
        priority=15,
        example_transactions=("Thames Water", "British Gas", "EDF Energy", "Council Tax"),
    ),
    RuleTemplate(
        id="large-purchases",
        name="Share Large Purchases (>£100)",
        description="Automatically share any transaction over £100",
        rule_type=RuleType.AMOUNT_THRESHOLD,
        rule_name="Large Purchases",
        min_amount=Decimal("100.00"),
        priority=5,
        example_transactions=("John Lewis £250", "Currys £180", "IKEA £150"),
    ),
    RuleTemplate(
        id="supermarket-merchant",
        name="Share All Supermarket Purchases",
        description="Match all major UK supermarkets automatically",
        rule_type=RuleType.MERCHANT,
        rule_name="Supermarkets",
        merchant_pattern="(Tesco|Sainsbury|Asda|Morrisons|Waitrose|Aldi|Lidl|Co-op).*",
        priority=20,
        example_transactions=("Tesco Extra", "Sainsbury's Local", "Aldi"),
    ),
    RuleTemplate(
        id="restaurants-dining",
        name="Split Restaurant & Dining",
        description="Share all restaurant and dining expenses",
        rule_type=RuleType.CATEGORY,
        rule_name="Restaurants & Dining",
        category_match="dining",
        priority=25,
        example_transactions=("Nando's", "Pizza Express", "Starbucks", "Deliveroo"),
    ),
    RuleTemplate(
        id="transport-shared",
        name="Share Transport Costs",
        description="Split all transport and travel expenses",
        rule_type=RuleType.CATEGORY,
        rule_name="Transport",
        category_match="transport",
        priority=30,
        example_transactions=("Uber", "TfL", "Trainline", "Shell Petrol"),
    ),
    RuleTemplate(
        id="entertainment-shared",
        name="Share Entertainment Costs",
        description="Split streaming services, cinema, and entertainment",
        rule_type=RuleType.CATEGORY,
        rule_name="Entertainment",
        category_match="entertainment",
        priority=35,
        example_transactions=("Netflix", "Spotify", "Odeon Cinema", "Amazon Prime"),
    ),
    RuleTemplate(
        id="household-supplies",
        name="Share Household Supplies",
        description="Split cleaning products, toiletries, and household items",
        rule_type=RuleType.CATEGORY,
        rule_name="Household Supplies",
        category_match="household",
        priority=40,
        example_transactions=("Boots", "Superdrug", "Wilko", "B&M"),
    ),
    RuleTemplate(
        id="small-purchases",
        name="Keep Small Purchases Private (<£10)",
        description="Don't share transactions under £10 to avoid micro-splitting",
        rule_type=RuleType.AMOUNT_THRESHOLD,
        rule_name="Small Purchases Private",
        min_amount=Decimal("0"),
        max_amount=Decimal("10.00"),
        priority=50,
        private=True,
        example_transactions=("Coffee £3.50", "Snack £5", "Magazine £4.99"),
    ),
    RuleTemplate(
        id="default-share-all",
        name="Share Everything (Default Rule)",
        description="Share all transactions that don't match other rules",
        rule_type=RuleType.DEFAULT,
        rule_name="Default - Share All",
        priority=999,
        example_transactions=("Any transaction not covered by other rules",),
    ),
    RuleTemplate(
        id="default-keep-private",
        name="Keep Everything Private (Default Rule)",
        description="Keep all transactions private unless matched by other rules",
        rule_type=RuleType.DEFAULT,
        rule_name="Default - Keep Private",
        priority=999,
        private=True,
        example_transactions=("Any transaction not covered by other rules",),
    ),
)


def get_template_by_id(template_id: str) -> RuleTemplate | None:
    for template in RULE_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def get_templates_by_type(rule_type: RuleType | str) -> list[RuleTemplate]:
    wanted = RuleType.coerce(rule_type)
    return [t for t in RULE_TEMPLATES if t.rule_type == wanted]


def populate_template_split(member_ids: list[str]) -> dict[str, int]:
    """
    Equal split across household members.

    Percentages are whole numbers; the first member takes the remainder so
    the split always sums to 100 (e.g. three members: 34/33/33).
    """
    if not member_ids:
        return {}
    base, remainder = divmod(100, len(member_ids))
    return {
        member_id: base + (remainder if index == 0 else 0)
        for index, member_id in enumerate(member_ids)
    }


def populate_template_private(user_id: str) -> dict[str, int]:
    return {user_id: 100}


def create_rule_from_template(
    template: RuleTemplate,
    member_ids: list[str],
    current_user_id: str,
    customizations: dict[str, Any] | None = None,
) -> DraftRule:
    """
    Build a draft rule from a template for a concrete household.

    Args:
        template: Template to start from
        member_ids: Household member ids, in display order
        current_user_id: Member who owns private templates
        customizations: Field overrides applied last (any ``DraftRule`` field)

    Raises:
        ValueError: If a customization names an unknown field
    """
    if template.private:
        split = populate_template_private(current_user_id)
    else:
        split = populate_template_split(member_ids)

    draft = DraftRule(
        rule_type=template.rule_type,
        rule_name=template.rule_name,
        priority=template.priority,
        merchant_pattern=template.merchant_pattern,
        category_match=template.category_match,
        min_amount=template.min_amount,
        max_amount=template.max_amount,
        split_percentage=split,
    )

    if customizations:
        try:
            draft = replace(draft, **customizations)
        except TypeError as e:
            raise ValueError(f"Invalid template customization: {e}") from e

    return draft
