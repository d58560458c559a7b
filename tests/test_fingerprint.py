"""Tests for transaction fingerprints and merchant normalization."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.dedupe.fingerprint import (
    UNKNOWN_MERCHANT,
    exact_amount_key,
    fuzzy_amount_key,
    generate_fingerprint,
    generate_fuzzy_fingerprint,
    normalize_merchant,
    simplify_merchant,
)


class TestNormalizeMerchant:
    """Tests for merchant case-folding."""

    def test_case_and_whitespace(self):
        """Case and repeated whitespace do not matter."""
        assert normalize_merchant("  TESCO   Extra ") == "tesco extra"

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_missing_becomes_unknown(self, name):
        """Missing merchants map to the placeholder."""
        assert normalize_merchant(name) == UNKNOWN_MERCHANT


class TestSimplifyMerchant:
    """Tests for suffix and punctuation stripping."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Tesco PLC", "tesco"),
            ("Sainsbury's Store", "sainsburys"),
            ("ACME Ltd.", "acme"),
            ("Co-op", "coop"),
            ("Amazon.co.uk", "amazoncouk"),
        ],
    )
    def test_simplification(self, raw, expected):
        assert simplify_merchant(raw) == expected

    def test_name_of_only_suffixes_is_kept(self):
        """A merchant literally called 'The Store Co' keeps its words."""
        assert simplify_merchant("Store Co") == "store co"

    def test_missing(self):
        assert simplify_merchant(None) == ""


class TestAmountKeys:
    """Tests for amount normalization."""

    def test_exact_key_uses_minor_unit(self, make_transaction):
        assert exact_amount_key(make_transaction(amount=Decimal("-25.5"))) == "25.50"

    def test_exact_key_zero_decimal_currency(self, make_transaction):
        tx = make_transaction(amount=Decimal("1200"), currency="JPY")
        assert exact_amount_key(tx) == "1200"

    def test_fuzzy_key_rounds_half_up(self, make_transaction):
        assert fuzzy_amount_key(make_transaction(amount=Decimal("25.50"))) == "26"
        assert fuzzy_amount_key(make_transaction(amount=Decimal("-25.49"))) == "25"


class TestGenerateFingerprint:
    """Tests for the exact fingerprint."""

    def test_format(self, sample_transaction):
        """Fingerprint is a 64-character lowercase hex digest."""
        fp = generate_fingerprint(sample_transaction)
        assert len(fp) == 64
        assert fp == fp.lower()
        int(fp, 16)

    def test_deterministic(self, make_transaction):
        """Equal inputs produce equal fingerprints."""
        assert generate_fingerprint(make_transaction()) == generate_fingerprint(make_transaction())

    def test_sign_invariant(self, make_transaction):
        """A debit and its sign-flipped copy fingerprint identically."""
        debit = make_transaction(amount=Decimal("-42.10"))
        credit = make_transaction(amount=Decimal("42.10"))
        assert generate_fingerprint(debit) == generate_fingerprint(credit)

    def test_ignores_external_id_and_description(self, make_transaction):
        """Re-deliveries with new provider ids keep their fingerprint."""
        first = make_transaction(id="a", external_id="provider-1", description="Card payment")
        second = make_transaction(id="b", external_id="provider-2", description="POS TESCO 1234")
        assert generate_fingerprint(first) == generate_fingerprint(second)

    def test_merchant_case_insensitive(self, make_transaction):
        assert generate_fingerprint(make_transaction(merchant_name="TESCO")) == generate_fingerprint(
            make_transaction(merchant_name="tesco ")
        )

    def test_missing_merchant_equals_unknown_placeholder(self, make_transaction):
        """Missing and blank merchants share the placeholder."""
        assert generate_fingerprint(make_transaction(merchant_name=None)) == generate_fingerprint(
            make_transaction(merchant_name="  ")
        )

    @pytest.mark.parametrize(
        "field,value",
        [
            ("account_id", "acc-2"),
            ("amount", Decimal("-25.51")),
            ("date", date(2024, 11, 19)),
            ("merchant_name", "Sainsbury's"),
            ("currency", "EUR"),
        ],
    )
    def test_identity_fields_change_fingerprint(self, make_transaction, field, value):
        assert generate_fingerprint(make_transaction(**{field: value})) != generate_fingerprint(
            make_transaction()
        )


class TestGenerateFuzzyFingerprint:
    """Tests for the fuzzy fingerprint."""

    def test_tolerates_cents(self, make_transaction):
        first = make_transaction(amount=Decimal("-25.40"))
        second = make_transaction(amount=Decimal("-25.45"))
        assert generate_fuzzy_fingerprint(first) == generate_fuzzy_fingerprint(second)

    def test_tolerates_corporate_suffix(self, make_transaction):
        first = make_transaction(merchant_name="Tesco PLC")
        second = make_transaction(merchant_name="TESCO")
        assert generate_fuzzy_fingerprint(first) == generate_fuzzy_fingerprint(second)
        assert generate_fingerprint(first) != generate_fingerprint(second)

    def test_sign_invariant(self, make_transaction):
        assert generate_fuzzy_fingerprint(
            make_transaction(amount=Decimal("-9.99"))
        ) == generate_fuzzy_fingerprint(make_transaction(amount=Decimal("9.99")))
