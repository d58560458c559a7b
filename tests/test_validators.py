"""Tests for transaction sanity checks."""

from datetime import date
from decimal import Decimal

import pytest

from household_ledger.validators import (
    validate_transaction,
    validate_transaction_amount,
    validate_transaction_date,
)

TODAY = date(2024, 11, 18)


class TestValidateTransactionAmount:
    """Tests for amount checks."""

    @pytest.mark.parametrize("amount", ["25.50", "-1000000", "0.01", "999999.99"])
    def test_valid(self, amount):
        assert validate_transaction_amount(Decimal(amount)) == ([], [])

    def test_too_large(self):
        errors, _ = validate_transaction_amount(Decimal("1000000.01"))
        assert any("exceeds reasonable limit" in e for e in errors)

    def test_too_precise(self):
        errors, _ = validate_transaction_amount(Decimal("10.005"))
        assert errors == ["Amount should not have more than 2 decimal places"]

    def test_trailing_zeros_are_fine(self):
        assert validate_transaction_amount(Decimal("10.500")) == ([], [])

    def test_zero_is_warning(self):
        errors, warnings = validate_transaction_amount(Decimal("0"))
        assert errors == []
        assert warnings == ["Zero amount transaction"]

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity"])
    def test_not_finite(self, amount):
        errors, _ = validate_transaction_amount(Decimal(amount))
        assert errors == ["Amount must be a finite number"]

    def test_zero_decimal_currency(self):
        errors, _ = validate_transaction_amount(Decimal("100.50"), currency="JPY")
        assert errors == ["Amount should not have more than 0 decimal places"]


class TestValidateTransactionDate:
    """Tests for date range checks."""

    def test_recent(self):
        assert validate_transaction_date(date(2024, 1, 1), today=TODAY) == []

    def test_too_old(self):
        assert validate_transaction_date(date(2014, 11, 17), today=TODAY)

    def test_boundary_ten_years(self):
        assert validate_transaction_date(date(2014, 11, 18), today=TODAY) == []

    def test_too_far_in_future(self):
        assert validate_transaction_date(date(2025, 11, 19), today=TODAY)

    def test_leap_day(self):
        assert validate_transaction_date(date(2014, 3, 1), today=date(2024, 2, 29)) == []


class TestValidateTransaction:
    """Tests for the combined check."""

    def test_valid(self, make_transaction):
        check = validate_transaction(make_transaction(), today=TODAY)
        assert check.valid
        assert check.to_dict() == {"valid": True, "errors": [], "warnings": []}

    def test_collects_errors_and_warnings(self, make_transaction):
        check = validate_transaction(
            make_transaction(amount=Decimal("0"), date=date(1999, 1, 1), currency="POUNDS"),
            today=TODAY,
        )
        assert not check.valid
        assert len(check.errors) == 2
        assert check.warnings == ["Zero amount transaction"]
