"""
Sanity checks for transaction records before they reach the engine.

These catch provider data errors (absurd amounts, impossible dates); they do
not decide anything about duplicates or rules. Problems come back as lists
of messages so a sync job can log and skip a record instead of failing the
whole batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .schemas.transaction import Transaction, currency_precision

MAX_TRANSACTION_AMOUNT = Decimal("1000000")
MAX_YEARS_PAST = 10
MAX_YEARS_FUTURE = 1


@dataclass
class TransactionCheck:
    """Result of validating one transaction."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _shift_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year + years, day=28)


def validate_transaction_amount(
    amount: Decimal,
    currency: str | None = None,
) -> tuple[list[str], list[str]]:
    """
    Check an amount is finite, plausible and not over-precise.

    Returns:
        (errors, warnings)
    """
    if not amount.is_finite():
        return ["Amount must be a finite number"], []

    errors: list[str] = []
    warnings: list[str] = []

    if abs(amount) > MAX_TRANSACTION_AMOUNT:
        errors.append(f"Transaction amount exceeds reasonable limit ({MAX_TRANSACTION_AMOUNT:,})")

    if amount == 0:
        warnings.append("Zero amount transaction")
    elif amount % currency_precision(currency) != 0:
        places = -currency_precision(currency).as_tuple().exponent
        errors.append(f"Amount should not have more than {places} decimal places")

    return errors, warnings


def validate_transaction_date(value: date, today: date | None = None) -> list[str]:
    """Check a transaction date lies within 10 years past and 1 year future."""
    today = today or date.today()
    if value < _shift_years(today, -MAX_YEARS_PAST):
        return [f"Transaction date is more than {MAX_YEARS_PAST} years in the past"]
    if value > _shift_years(today, MAX_YEARS_FUTURE):
        return [f"Transaction date is more than {MAX_YEARS_FUTURE} year in the future"]
    return []


def validate_transaction(tx: Transaction, today: date | None = None) -> TransactionCheck:
    """Run every sanity check on a transaction."""
    errors, warnings = validate_transaction_amount(tx.amount, tx.currency)
    errors.extend(validate_transaction_date(tx.date, today))

    if not tx.account_id.strip():
        errors.append("Account id is required")
    if len(tx.currency) != 3 or not tx.currency.isalpha():
        errors.append(f"Currency must be an ISO 4217 code, got {tx.currency!r}")

    return TransactionCheck(valid=not errors, errors=errors, warnings=warnings)
