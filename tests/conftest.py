"""Test fixtures and utilities."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.schemas import RuleType, SplittingRule, Transaction

ALICE = "member-alice"
BOB = "member-bob"
HOUSEHOLD = "household-1"


def build_transaction(**overrides) -> Transaction:
    """Transaction with sensible defaults; any field can be overridden."""
    values = {
        "id": "tx-1",
        "account_id": "acc-1",
        "external_id": "ext-1",
        "amount": Decimal("-25.50"),
        "merchant_name": "Tesco",
        "category": "groceries",
        "date": date(2024, 11, 18),
        "description": "Card payment",
        "currency": "GBP",
    }
    values.update(overrides)
    if isinstance(values["amount"], (str, int)):
        values["amount"] = Decimal(values["amount"])
    if isinstance(values["date"], str):
        values["date"] = date.fromisoformat(values["date"])
    return Transaction(**values)


def build_rule(**overrides) -> SplittingRule:
    """Active 50/50 merchant rule; any field can be overridden."""
    values = {
        "id": "rule-1",
        "household_id": HOUSEHOLD,
        "rule_name": "Supermarkets",
        "rule_type": RuleType.MERCHANT,
        "priority": 100,
        "merchant_pattern": "tesco",
        "split_percentage": {ALICE: 50, BOB: 50},
        "is_active": True,
    }
    values.update(overrides)
    return SplittingRule(**values)


@pytest.fixture
def make_transaction():
    """Factory fixture for transactions."""
    return build_transaction


@pytest.fixture
def make_rule():
    """Factory fixture for splitting rules."""
    return build_rule


@pytest.fixture
def sample_transaction() -> Transaction:
    """A typical supermarket card payment."""
    return build_transaction()


@pytest.fixture
def sample_rules() -> list[SplittingRule]:
    """A small household rule set covering every rule type."""
    return [
        build_rule(id="merchant", rule_name="Tesco", priority=20, merchant_pattern="tesco"),
        build_rule(
            id="category",
            rule_name="Groceries",
            rule_type=RuleType.CATEGORY,
            priority=10,
            merchant_pattern=None,
            category_match="Groceries",
        ),
        build_rule(
            id="large",
            rule_name="Large Purchases",
            rule_type=RuleType.AMOUNT_THRESHOLD,
            priority=5,
            merchant_pattern=None,
            min_amount=Decimal("100"),
        ),
        build_rule(
            id="default",
            rule_name="Default",
            rule_type=RuleType.DEFAULT,
            priority=999,
            merchant_pattern=None,
        ),
    ]


@pytest.fixture
def transaction_records() -> list[dict]:
    """Loosely typed records as a sync job would receive them."""
    return [
        {
            "id": "t1",
            "account_id": "acc-1",
            "external_id": "provider-001",
            "amount": "-25.50",
            "merchant_name": "Tesco",
            "category": "groceries",
            "date": "2024-11-18",
            "currency": "GBP",
        },
        {
            "id": "t2",
            "account_id": "acc-1",
            "external_id": "provider-002",
            "amount": "-25.50",
            "merchant_name": "TESCO",
            "category": "groceries",
            "date": "2024-11-18T09:30:00",
            "currency": "gbp",
        },
        {
            "id": "t3",
            "account_id": "acc-1",
            "external_id": "provider-003",
            "amount": -4.2,
            "merchant_name": "Pret A Manger",
            "category": None,
            "date": "2024-11-19",
        },
    ]
