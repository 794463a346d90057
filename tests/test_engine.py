"""Tests for the amortization schedule builder."""

from datetime import date
from decimal import Decimal

import pytest

from rural_credit.data_models import FinancingTerms
from rural_credit.engine import build_schedule, price_payment, summarize
from rural_credit.exceptions import InvalidRateError, InvalidTermError
from rural_credit.rates import annual_to_period


def _terms(**overrides) -> FinancingTerms:
    values = dict(
        principal=Decimal("100000"),
        annual_rate=Decimal("12"),
        term=12,
        system="price",
        granularity="monthly",
    )
    values.update(overrides)
    return FinancingTerms(**values)


class TestPricePayment:
    """Tests for the constant Price payment."""

    def test_one_percent_twelve_months(self) -> None:
        payment = price_payment(Decimal("100000"), Decimal("0.01"), 12)
        assert payment.quantize(Decimal("0.01")) == Decimal("8884.88")

    def test_zero_rate_splits_principal(self) -> None:
        assert price_payment(Decimal("1200"), Decimal("0"), 12) == Decimal("100")

    def test_non_positive_term_rejected(self) -> None:
        with pytest.raises(ValueError):
            price_payment(Decimal("1000"), Decimal("0.01"), 0)


class TestPriceSchedule:
    """Tests for Price schedules."""

    def test_first_line_scenario(self, price_terms: FinancingTerms) -> None:
        """First line of 100 000 at 12% a.a. over 12 months."""
        schedule = build_schedule(price_terms)
        first = schedule[0]

        assert first.interest == Decimal("1000.00")
        assert first.payment == Decimal("8884.88")
        assert first.amortization == Decimal("7884.88")

    def test_schedule_closes_at_zero(self, price_terms: FinancingTerms) -> None:
        schedule = build_schedule(price_terms)

        assert len(schedule) == 12
        assert schedule[-1].closing_balance == Decimal("0.00")

    def test_balances_chain(self, price_terms: FinancingTerms) -> None:
        lines = build_schedule(price_terms).lines
        for previous, current in zip(lines, lines[1:]):
            assert previous.closing_balance == current.opening_balance

    def test_amortization_adds_up_to_principal(self, price_terms: FinancingTerms) -> None:
        schedule = build_schedule(price_terms)
        assert abs(schedule.total_amortization - Decimal("100000")) <= Decimal("0.05")

    def test_zero_rate(self) -> None:
        schedule = build_schedule(_terms(principal=Decimal("1200"), annual_rate=Decimal("0")))

        assert all(line.interest == Decimal("0.00") for line in schedule)
        assert all(line.payment == Decimal("100.00") for line in schedule)
        assert schedule[-1].closing_balance == Decimal("0.00")

    def test_annual_granularity(self) -> None:
        schedule = build_schedule(_terms(term=5, granularity="annual"))

        assert schedule.period_rate == Decimal("0.12")
        assert schedule[0].interest == Decimal("12000.00")
        assert schedule[-1].closing_balance == Decimal("0.00")

    def test_effective_convention_uses_compound_rate(self) -> None:
        nominal = build_schedule(_terms())
        effective = build_schedule(_terms(rate_convention="effective"))

        assert effective.period_rate < nominal.period_rate
        assert effective[0].interest == Decimal("948.88")

    def test_default_convention_is_linear(self) -> None:
        terms = _terms()

        assert terms.rate_convention == "nominal"
        assert build_schedule(terms).period_rate == Decimal("0.01")
        assert build_schedule(_terms(rate_convention="effective")).period_rate == annual_to_period(Decimal("12"), 12)


class TestSacSchedule:
    """Tests for SAC schedules."""

    def test_scenario(self, sac_terms: FinancingTerms) -> None:
        schedule = build_schedule(sac_terms)

        assert schedule[0].amortization == Decimal("8333.33")
        assert schedule[0].payment == Decimal("9333.33")
        assert schedule[-1].payment == Decimal("8416.67")
        assert schedule[-1].closing_balance == Decimal("0.00")

    def test_payments_never_increase(self, sac_terms: FinancingTerms) -> None:
        payments = [line.payment for line in build_schedule(sac_terms)]
        assert all(a >= b for a, b in zip(payments, payments[1:]))

    def test_total_interest(self, sac_terms: FinancingTerms) -> None:
        assert build_schedule(sac_terms).total_interest == Decimal("6500.00")

    def test_sac_interest_not_above_price(self, price_terms: FinancingTerms, sac_terms: FinancingTerms) -> None:
        assert build_schedule(sac_terms).total_interest <= build_schedule(price_terms).total_interest

    @pytest.mark.parametrize("rate", ["0", "6", "12", "18", "35"])
    def test_sac_interest_not_above_price_across_rates(self, rate: str) -> None:
        sac = build_schedule(_terms(system="sac", annual_rate=Decimal(rate), term=36))
        price = build_schedule(_terms(system="price", annual_rate=Decimal(rate), term=36))
        assert sac.total_interest <= price.total_interest


class TestSafSchedule:
    """Tests for SAF schedules with grace periods."""

    def test_grace_lines_pay_interest_only(self) -> None:
        schedule = build_schedule(_terms(system="saf", grace_periods=3))

        for line in schedule.lines[:3]:
            assert line.amortization == Decimal("0.00")
            assert line.payment == line.interest == Decimal("1000.00")
            assert line.closing_balance == Decimal("100000.00")
        assert schedule[3].amortization > 0
        assert schedule[-1].closing_balance == Decimal("0.00")

    def test_without_grace_matches_price(self, price_terms: FinancingTerms) -> None:
        saf = build_schedule(_terms(system="saf"))
        price = build_schedule(price_terms)

        assert [line.payment for line in saf] == [line.payment for line in price]

    def test_grace_rejected_for_other_systems(self) -> None:
        with pytest.raises(InvalidTermError) as excinfo:
            _terms(system="price", grace_periods=2)
        assert excinfo.value.field == "grace_periods"


class TestScheduleViews:
    """Tests for the paid/remaining views."""

    def test_paid_view_ends_at_outstanding_balance(self) -> None:
        schedule = build_schedule(_terms(paid_periods=4), view="paid")

        assert len(schedule) == 4
        assert schedule[-1].closing_balance == schedule.outstanding_balance

    def test_remaining_view(self) -> None:
        full = build_schedule(_terms(paid_periods=4))
        remaining = build_schedule(_terms(paid_periods=4), view="remaining")

        assert len(remaining) == 8
        assert remaining[0].index == 5
        assert remaining[0].opening_balance == full.outstanding_balance

    def test_no_paid_periods(self, price_terms: FinancingTerms) -> None:
        schedule = build_schedule(price_terms, view="paid")

        assert len(schedule) == 0
        assert schedule.outstanding_balance == Decimal("100000.00")

    def test_unknown_view(self, price_terms: FinancingTerms) -> None:
        with pytest.raises(ValueError):
            build_schedule(price_terms, view="future")


class TestDueDatesAndPayments:
    """Tests for due dates and actual payments."""

    def test_monthly_due_dates(self) -> None:
        schedule = build_schedule(_terms(first_due_date=date(2024, 1, 31)))

        assert schedule[0].due_date == date(2024, 1, 31)
        assert schedule[1].due_date == date(2024, 2, 29)
        assert schedule[-1].due_date == date(2024, 12, 31)

    def test_annual_due_dates(self) -> None:
        schedule = build_schedule(_terms(term=3, granularity="annual", first_due_date=date(2024, 6, 1)))
        assert [line.due_date for line in schedule] == [date(2024, 6, 1), date(2025, 6, 1), date(2026, 6, 1)]

    def test_actual_payments(self) -> None:
        schedule = build_schedule(_terms(actual_payments=("9000", "8884.88")))

        assert schedule[0].amount_paid == Decimal("9000.00")
        assert schedule[0].paid_difference == Decimal("115.12")
        assert schedule[1].paid_difference == Decimal("0.00")
        assert schedule[2].amount_paid is None


class TestSummarize:
    """Tests for the summary dict."""

    def test_summary_values(self, price_terms: FinancingTerms) -> None:
        summary = summarize(build_schedule(price_terms))

        assert summary["principal_financed"] == Decimal("100000.00")
        assert summary["first_payment"] == Decimal("8884.88")
        assert summary["period_rate"] == Decimal("1.0000")
        assert summary["effective_annual_rate"] == Decimal("12.6825")
        assert summary["outstanding_balance"] == Decimal("100000.00")

    def test_paid_totals(self) -> None:
        summary = summarize(build_schedule(_terms(paid_periods=2)))

        assert summary["paid_periods"] == 2
        assert summary["total_paid"] == Decimal("17769.76")


class TestTermsValidation:
    """Tests for FinancingTerms validation."""

    def test_negative_rate(self) -> None:
        with pytest.raises(InvalidRateError) as excinfo:
            _terms(annual_rate=Decimal("-1"))
        assert excinfo.value.field == "annual_rate"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"principal": Decimal("0")}, "principal"),
            ({"term": 0}, "term"),
            ({"paid_periods": 13}, "paid_periods"),
            ({"paid_periods": -1}, "paid_periods"),
            ({"system": "german"}, "system"),
            ({"granularity": "weekly"}, "granularity"),
        ],
    )
    def test_invalid_terms(self, overrides: dict, field: str) -> None:
        with pytest.raises(InvalidTermError) as excinfo:
            _terms(**overrides)
        assert excinfo.value.field == field

    def test_numbers_are_coerced(self) -> None:
        terms = _terms(principal="1,000.50", annual_rate=12.5)

        assert terms.principal == Decimal("1000.50")
        assert terms.annual_rate == Decimal("12.5")
