"""Weighted similarity scoring between two transactions.

Three signals contribute to the score, each in [0, 1]:
- Amount: 1.0 when both round to the same whole unit, then linear decay
  with the absolute difference
- Merchant: exact / simplified equality, partial credit above a Levenshtein
  floor, 0 otherwise
- Date: linear decay across the comparison window, 0 outside it
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from rapidfuzz.distance import Levenshtein

from ..config import DedupeConfig
from ..schemas.transaction import Transaction
from .fingerprint import fuzzy_amount_key, normalize_merchant, simplify_merchant

# Fraction of the mean amount over which the amount score decays to zero
AMOUNT_DECAY_RATIO = Decimal("0.10")
# The decay span never drops below one currency unit
MIN_AMOUNT_DECAY_SPAN = Decimal("1")

MERCHANT_EXACT_SCORE = 1.0
MERCHANT_SIMPLIFIED_SCORE = 0.9
# Partial (edit-distance) matches never outrank a simplified-name match
MERCHANT_PARTIAL_CAP = 0.85
# Neither side has a merchant: no evidence either way
MERCHANT_BOTH_MISSING_SCORE = 0.5
# Totals are rounded so float noise cannot push a score across a threshold
SCORE_DECIMALS = 6


@dataclass
class SignalScore:
    """Individual signal contribution to a similarity score."""

    signal: str
    score: float
    weight: float
    detail: str

    @property
    def weighted_score(self) -> float:
        return self.score * self.weight


@dataclass
class SimilarityBreakdown:
    """All signals for one pair of transactions."""

    signals: list[SignalScore] = field(default_factory=list)

    @property
    def total(self) -> float:
        return round(sum(s.weighted_score for s in self.signals), SCORE_DECIMALS)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "signals": [
                {
                    "signal": s.signal,
                    "score": s.score,
                    "weight": s.weight,
                    "weighted_score": s.weighted_score,
                    "detail": s.detail,
                }
                for s in self.signals
            ],
        }


class SimilarityScorer:
    """Scores how likely two transactions describe the same event."""

    def __init__(self, config: DedupeConfig | None = None) -> None:
        self.config = config or DedupeConfig()

    def score(self, first: Transaction, second: Transaction) -> SimilarityBreakdown:
        """Return the weighted signal breakdown for a pair."""
        return SimilarityBreakdown(
            signals=[
                self._score_amount(first, second),
                self._score_merchant(first, second),
                self._score_date(first, second),
            ]
        )

    def similarity(self, first: Transaction, second: Transaction) -> float:
        return self.score(first, second).total

    def within_window(self, first: Transaction, second: Transaction) -> bool:
        return abs((first.date - second.date).days) <= self.config.date_window_days

    def _score_amount(self, first: Transaction, second: Transaction) -> SignalScore:
        weight = self.config.weight_amount
        a, b = first.absolute_amount, second.absolute_amount

        if a == b:
            return SignalScore("amount", 1.0, weight, f"exact: {a}")
        if fuzzy_amount_key(first) == fuzzy_amount_key(second):
            return SignalScore("amount", 1.0, weight, f"rounded: {a} vs {b}")

        diff = abs(a - b)
        span = max((a + b) / 2 * AMOUNT_DECAY_RATIO, MIN_AMOUNT_DECAY_SPAN)
        score = max(0.0, 1.0 - float(diff / span))
        return SignalScore("amount", score, weight, f"diff {diff}: {a} vs {b}")

    def _score_merchant(self, first: Transaction, second: Transaction) -> SignalScore:
        weight = self.config.weight_merchant
        has_first = bool(first.merchant_name and first.merchant_name.strip())
        has_second = bool(second.merchant_name and second.merchant_name.strip())

        if not has_first and not has_second:
            return SignalScore("merchant", MERCHANT_BOTH_MISSING_SCORE, weight, "both missing")
        if not has_first or not has_second:
            return SignalScore("merchant", 0.0, weight, "missing")

        if normalize_merchant(first.merchant_name) == normalize_merchant(second.merchant_name):
            return SignalScore("merchant", MERCHANT_EXACT_SCORE, weight, "exact")

        simple_first = simplify_merchant(first.merchant_name)
        simple_second = simplify_merchant(second.merchant_name)
        if simple_first and simple_first == simple_second:
            return SignalScore("merchant", MERCHANT_SIMPLIFIED_SCORE, weight, "simplified")

        ratio = Levenshtein.normalized_similarity(simple_first, simple_second)
        if ratio >= self.config.merchant_similarity_floor:
            return SignalScore(
                "merchant", min(ratio, MERCHANT_PARTIAL_CAP), weight, f"partial: {ratio:.2f}"
            )

        return SignalScore("merchant", 0.0, weight, "no match")

    def _score_date(self, first: Transaction, second: Transaction) -> SignalScore:
        weight = self.config.weight_date
        window = self.config.date_window_days
        days = abs((first.date - second.date).days)

        if days == 0:
            return SignalScore("date", 1.0, weight, "same day")
        if days > window:
            return SignalScore("date", 0.0, weight, f"{days} days (outside window)")

        # Linear decay within the window
        score = 1.0 - days / (window + 1)
        return SignalScore("date", score, weight, f"{days} days")
