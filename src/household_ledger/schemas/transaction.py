"""
Transaction model shared by the duplicate resolver and the rule engine.

Transactions are immutable snapshots handed to the engine by the caller.
Amounts are signed Decimals; the sign is provider-specific and is ignored
wherever identity or thresholds are computed.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# Sentinel category for transactions nobody has classified yet
UNCATEGORIZED = "Uncategorized"

DEFAULT_CURRENCY = "GBP"

# ISO 4217 minor-unit exponents that differ from the usual 2
_CURRENCY_EXPONENTS: dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "ISK": 0,
    "HUF": 0,
    "CLP": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "JOD": 3,
    "TND": 3,
}


def currency_precision(currency: str | None) -> Decimal:
    """Return the quantum for a currency's minor unit (e.g. ``Decimal("0.01")``)."""
    exponent = _CURRENCY_EXPONENTS.get((currency or DEFAULT_CURRENCY).upper(), 2)
    return Decimal(1).scaleb(-exponent)


def quantize_amount(amount: Decimal, currency: str | None = None) -> Decimal:
    """Round an amount half-up to the currency's minor unit."""
    return amount.quantize(currency_precision(currency), rounding=ROUND_HALF_UP)


def parse_amount(value: Decimal | int | float | str) -> Decimal:
    """
    Parse an amount into a Decimal.

    Floats go through ``str`` to avoid binary artefacts; strings may use a
    comma as decimal separator.

    Raises:
        ValueError: If the value cannot be interpreted as a number
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"amount must be numeric, got: {value!r}")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        if isinstance(value, str):
            return Decimal(value.strip().replace(",", "."))
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def parse_date(value: date | datetime | str) -> date:
    """
    Parse a calendar date, dropping any time component.

    Raises:
        ValueError: If the value is not an ISO date or datetime
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ValueError(f"date must be in YYYY-MM-DD format, got: {value!r}") from e
    raise ValueError(f"date must be a date or ISO string, got: {type(value).__name__}")


@dataclass(frozen=True)
class Transaction:
    """A single bank transaction as seen by the engine."""

    account_id: str
    amount: Decimal
    date: date
    currency: str = DEFAULT_CURRENCY
    merchant_name: str | None = None
    category: str = UNCATEGORIZED
    description: str | None = None
    # Provider transaction id; never part of a fingerprint
    external_id: str | None = None
    # Storage id assigned by the caller, if any
    id: str | None = None

    @property
    def transaction_id(self) -> str:
        """Identifier reported in clusters and decisions."""
        return self.id or self.external_id or ""

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def is_categorized(self) -> bool:
        return bool(self.category) and self.category != UNCATEGORIZED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        """
        Build a Transaction from a loosely typed record (API row, JSON).

        Unknown keys are ignored. ``category`` of ``None`` maps to
        ``UNCATEGORIZED``.

        Raises:
            ValueError: If required fields are missing or unparseable
        """
        for required in ("account_id", "amount", "date"):
            if data.get(required) is None:
                raise ValueError(f"Transaction record is missing '{required}'")

        return cls(
            account_id=str(data["account_id"]),
            amount=parse_amount(data["amount"]),
            date=parse_date(data["date"]),
            currency=str(data.get("currency") or DEFAULT_CURRENCY).upper(),
            merchant_name=data.get("merchant_name"),
            category=data.get("category") or UNCATEGORIZED,
            description=data.get("description"),
            external_id=_optional_str(data.get("external_id")),
            id=_optional_str(data.get("id")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, date):
                value = value.isoformat()
            result[f.name] = value
        return result


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)
