"""Tests for late charges."""

from decimal import Decimal

import pytest

from rural_credit.debt import compute_late_charges
from rural_credit.exceptions import InvalidRateError, InvalidTermError


class TestLateCharges:
    """Tests for compute_late_charges."""

    def test_one_year_overdue(self) -> None:
        charges = compute_late_charges(Decimal("10000"), Decimal("1"), Decimal("2"), 365)

        assert charges.moratory_interest == Decimal("100.00")
        assert charges.penalty == Decimal("200.00")
        assert charges.total_due == Decimal("10300.00")

    def test_thirty_days(self) -> None:
        charges = compute_late_charges(Decimal("36500"), Decimal("1"), Decimal("0"), 30)
        assert charges.moratory_interest == Decimal("30.00")

    def test_not_overdue(self) -> None:
        charges = compute_late_charges(Decimal("10000"), Decimal("1"), Decimal("2"), 0)

        assert charges.moratory_interest == Decimal("0.00")
        assert charges.penalty == Decimal("0.00")
        assert charges.total_due == Decimal("10000.00")

    def test_negative_days_accrue_nothing(self) -> None:
        assert compute_late_charges(Decimal("10000"), Decimal("1"), Decimal("2"), -5).days_overdue == 0

    def test_negative_rate(self) -> None:
        with pytest.raises(InvalidRateError) as excinfo:
            compute_late_charges(Decimal("10000"), Decimal("-1"), Decimal("2"), 10)
        assert excinfo.value.field == "moratory_rate"

    def test_negative_balance(self) -> None:
        with pytest.raises(InvalidTermError):
            compute_late_charges(Decimal("-1"), Decimal("1"), Decimal("2"), 10)

    def test_days_must_be_integer(self) -> None:
        with pytest.raises(InvalidTermError):
            compute_late_charges(Decimal("100"), Decimal("1"), Decimal("2"), "10")
