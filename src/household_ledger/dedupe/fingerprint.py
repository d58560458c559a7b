"""
Transaction fingerprints (CRITICAL).

This module defines THE deterministic identity keys used for duplicate
grouping. It is the ONLY place fingerprints are computed.

Exact fingerprint = SHA256(account_id|abs(amount)|date|merchant|currency)
- amount: absolute value, quantized to the currency's minor unit
- merchant: case-folded, whitespace-collapsed ("unknown" when missing)

Fuzzy fingerprint = SHA256(account_id|round(abs(amount))|date|simplified merchant|currency)
- amount: rounded half-up to a whole currency unit
- merchant: corporate suffixes and punctuation removed

Excluded on purpose: external_id (re-deliveries get new provider ids) and
description (free text that providers rewrite between syncs).

Fingerprints must be:
- Deterministic: identical normalized inputs give identical output
- Sign invariant: t and its sign-flipped copy fingerprint identically
"""

import hashlib
import re
from decimal import ROUND_HALF_UP, Decimal

from ..schemas.transaction import Transaction, quantize_amount

# Placeholder used when a transaction carries no merchant name
UNKNOWN_MERCHANT = "unknown"

# Tokens dropped when simplifying merchant names for fuzzy matching
CORPORATE_SUFFIXES = frozenset({"plc", "ltd", "limited", "inc", "llc", "corp", "co", "store"})

FINGERPRINT_SEPARATOR = "|"

_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^\w\s]|_")


def normalize_merchant(name: str | None) -> str:
    """Case-fold and collapse whitespace in a merchant name."""
    if not name or not name.strip():
        return UNKNOWN_MERCHANT
    return _WHITESPACE_RE.sub(" ", name.casefold()).strip()


def simplify_merchant(name: str | None) -> str:
    """
    Reduce a merchant name to its distinctive core.

    Examples:
        >>> simplify_merchant("Tesco PLC")
        'tesco'
        >>> simplify_merchant("Sainsbury's Store")
        'sainsburys'

    A name made up only of suffix words is kept as-is (minus punctuation)
    rather than collapsing to an empty string.
    """
    if not name or not name.strip():
        return ""
    cleaned = _NON_ALNUM_RE.sub("", name.casefold())
    tokens = cleaned.split()
    kept = [t for t in tokens if t not in CORPORATE_SUFFIXES]
    return " ".join(kept or tokens)


def exact_amount_key(transaction: Transaction) -> str:
    """Absolute amount at the currency's minor-unit precision."""
    return f"{quantize_amount(transaction.absolute_amount, transaction.currency):f}"


def fuzzy_amount_key(transaction: Transaction) -> str:
    """Absolute amount rounded half-up to a whole currency unit."""
    rounded = transaction.absolute_amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{rounded:f}"


def _digest(parts: list[str]) -> str:
    canonical = FINGERPRINT_SEPARATOR.join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def generate_fingerprint(transaction: Transaction) -> str:
    """
    Compute the exact fingerprint of a transaction.

    Returns:
        64-character lowercase hex SHA256 hash
    """
    return _digest(
        [
            transaction.account_id.strip(),
            exact_amount_key(transaction),
            transaction.date.isoformat(),
            normalize_merchant(transaction.merchant_name),
            transaction.currency.upper(),
        ]
    )


def generate_fuzzy_fingerprint(transaction: Transaction) -> str:
    """
    Compute the fuzzy fingerprint of a transaction.

    Two transactions a few cents apart, or whose merchants differ only by a
    corporate suffix or punctuation, share this fingerprint.

    Returns:
        64-character lowercase hex SHA256 hash
    """
    return _digest(
        [
            transaction.account_id.strip(),
            fuzzy_amount_key(transaction),
            transaction.date.isoformat(),
            simplify_merchant(transaction.merchant_name),
            transaction.currency.upper(),
        ]
    )
