"""Tests for the compliance analyzer."""

from decimal import Decimal

import pytest

from rural_credit.compliance import classify, evaluate, evaluate_charges
from rural_credit.data_models import FinancingTerms
from rural_credit.engine import build_schedule
from rural_credit.exceptions import InvalidRateError, InvalidTermError
from rural_credit.limits import ATTENTION_MARGIN_PP, REMUNERATIVE_CAP_AA

CAP = Decimal("12")


def _schedule(rate: str, system: str = "price", paid: int = 0):
    terms = FinancingTerms(
        principal=Decimal("100000"),
        annual_rate=Decimal(rate),
        term=12,
        system=system,
        granularity="monthly",
        paid_periods=paid,
    )
    return build_schedule(terms)


class TestVerdict:
    """Tests for the three-tier verdict."""

    def test_scenario_above_cap(self) -> None:
        verdict = evaluate(Decimal("18"), CAP, schedule=_schedule("18"))

        assert verdict.status == "nao_conforme"
        assert verdict.difference_pp == Decimal("6.00")
        assert verdict.total_excess > 0
        assert not verdict.is_compliant

    def test_at_cap_is_compliant(self) -> None:
        verdict = evaluate(Decimal("12"), CAP)

        assert verdict.status == "conforme"
        assert verdict.difference_pp == Decimal("0.00")
        assert verdict.is_compliant

    def test_below_cap_difference_is_negative(self) -> None:
        assert evaluate(Decimal("8.5"), CAP).difference_pp == Decimal("-3.50")

    @pytest.mark.parametrize(
        "rate,status",
        [
            ("12.01", "atencao"),
            ("12.50", "atencao"),
            ("12.51", "nao_conforme"),
        ],
    )
    def test_attention_margin(self, rate: str, status: str) -> None:
        assert evaluate(Decimal(rate), CAP).status == status

    def test_margin_override(self) -> None:
        assert evaluate(Decimal("12.3"), CAP, margin=Decimal("0")).status == "nao_conforme"
        assert evaluate(Decimal("13"), CAP, margin=Decimal("1")).status == "atencao"

    def test_default_margin(self) -> None:
        assert evaluate(Decimal("10"), CAP).margin_pp == ATTENTION_MARGIN_PP

    def test_status_monotonic_in_rate(self) -> None:
        rates = [Decimal(r) for r in ("0", "6", "11.99", "12", "12.2", "12.5", "13", "30")]
        severities = [evaluate(rate, CAP).severity for rate in rates]
        assert severities == sorted(severities)

    def test_classify(self) -> None:
        assert classify(Decimal("-1"), Decimal("0.5")) == "conforme"
        assert classify(Decimal("0.5"), Decimal("0.5")) == "atencao"
        assert classify(Decimal("0.6"), Decimal("0.5")) == "nao_conforme"

    def test_citations(self) -> None:
        verdict = evaluate(Decimal("18"), CAP, modality="pronaf_custeio")

        assert any("22.626/33" in citation for citation in verdict.citations)
        assert "MCR 7-6" in verdict.citations[0]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"contracted_rate": Decimal("-1"), "cap": CAP},
            {"contracted_rate": "abc", "cap": CAP},
            {"contracted_rate": Decimal("10"), "cap": CAP, "margin": Decimal("-0.1")},
            {"contracted_rate": Decimal("10"), "cap": CAP, "charge_kind": "taxa"},
            {"contracted_rate": Decimal("10"), "cap": CAP, "modality": "desconhecida"},
        ],
    )
    def test_invalid_input(self, kwargs: dict) -> None:
        with pytest.raises(InvalidRateError):
            evaluate(**kwargs)


class TestDualSchedule:
    """Tests for the legal schedule comparison."""

    def test_excess_never_negative(self) -> None:
        verdict = evaluate(Decimal("18"), CAP, schedule=_schedule("18"))
        assert all(line.excess >= 0 for line in verdict.lines)

    @pytest.mark.parametrize("system", ["price", "sac"])
    def test_no_excess_at_or_below_cap(self, system: str) -> None:
        for rate in ("6", "12"):
            verdict = evaluate(Decimal(rate), CAP, schedule=_schedule(rate, system))
            assert verdict.total_excess == Decimal("0")

    def test_clamped_lines_are_flagged(self) -> None:
        verdict = evaluate(Decimal("6"), CAP, schedule=_schedule("6"))

        assert all(line.excess_clamped for line in verdict.lines)
        assert all(line.excess == 0 for line in verdict.lines)

    def test_legal_fields_attached(self) -> None:
        verdict = evaluate(Decimal("18"), CAP, schedule=_schedule("18"))
        first = verdict.lines[0]

        assert first.legal_interest == Decimal("1000.00")
        assert first.legal_payment == Decimal("8884.88")
        assert first.excess == first.payment - first.legal_payment
        assert verdict.lines[-1].legal_closing_balance == Decimal("0.00")
        assert verdict.total_legal_interest < verdict.total_interest

    def test_paid_excess_covers_paid_lines_only(self) -> None:
        verdict = evaluate(Decimal("18"), CAP, schedule=_schedule("18", paid=3))
        expected = sum(line.excess for line in verdict.lines[:3])

        assert verdict.paid_excess == expected
        assert verdict.paid_excess < verdict.total_excess
        assert verdict.legal_outstanding_balance < verdict.outstanding_balance

    def test_without_schedule(self) -> None:
        verdict = evaluate(Decimal("18"), CAP)

        assert verdict.lines == ()
        assert verdict.total_excess is None


class TestPaidInstallments:
    """Tests for the excess on installments actually paid."""

    @staticmethod
    def _paid_schedule(*payments: str):
        terms = FinancingTerms(
            principal=Decimal("100000"),
            annual_rate=Decimal("12"),
            term=12,
            system="price",
            granularity="monthly",
            paid_periods=len(payments),
            actual_payments=payments,
        )
        return build_schedule(terms)

    def test_amount_paid_above_legal_payment(self) -> None:
        verdict = evaluate(Decimal("12"), CAP, schedule=self._paid_schedule("9500"))

        assert verdict.status == "conforme"
        assert verdict.total_excess == Decimal("0")
        assert verdict.paid_excess == Decimal("615.12")

    def test_amount_paid_below_legal_payment_adds_nothing(self) -> None:
        verdict = evaluate(Decimal("12"), CAP, schedule=self._paid_schedule("9500", "8000"))
        assert verdict.paid_excess == Decimal("615.12")

    def test_scheduled_payment_used_when_amount_unknown(self) -> None:
        verdict = evaluate(Decimal("18"), CAP, schedule=_schedule("18", paid=2))
        assert verdict.paid_excess == verdict.lines[0].excess + verdict.lines[1].excess

    def test_reported_balance_above_legal(self) -> None:
        verdict = evaluate(Decimal("12"), CAP, schedule=self._paid_schedule("9500"), reported_balance="95000")

        assert verdict.reported_balance == Decimal("95000.00")
        assert verdict.legal_outstanding_balance == Decimal("92115.12")
        assert verdict.balance_difference == Decimal("2884.88")

    def test_reported_balance_below_legal(self) -> None:
        verdict = evaluate(Decimal("12"), CAP, schedule=self._paid_schedule("9500"), reported_balance="90000")
        assert verdict.balance_difference == Decimal("0")

    def test_reported_balance_needs_schedule(self) -> None:
        with pytest.raises(InvalidTermError) as excinfo:
            evaluate(Decimal("12"), CAP, reported_balance="95000")
        assert excinfo.value.field == "reported_balance"

    def test_negative_reported_balance(self) -> None:
        with pytest.raises(InvalidTermError):
            evaluate(Decimal("12"), CAP, schedule=_schedule("12", paid=1), reported_balance="-1")


class TestEvaluateCharges:
    """Tests for the combined statutory check."""

    def test_all_within_caps(self) -> None:
        result = evaluate_charges(Decimal("12"), Decimal("1"), Decimal("2"))

        assert result.status == "conforme"
        assert result.remunerative.cap == REMUNERATIVE_CAP_AA

    def test_worst_status_wins(self) -> None:
        result = evaluate_charges(Decimal("12.2"), Decimal("1"), Decimal("10"))

        assert result.remunerative.status == "atencao"
        assert result.penalty.status == "nao_conforme"
        assert result.status == "nao_conforme"

    def test_moratory_cap_is_strict(self) -> None:
        assert evaluate_charges(Decimal("10"), Decimal("1.2"), Decimal("2")).moratory.status == "nao_conforme"

    def test_modality_cap(self) -> None:
        result = evaluate_charges(Decimal("7"), Decimal("1"), Decimal("2"), modality="pronaf_custeio")

        assert result.remunerative.cap == Decimal("5.0")
        assert result.remunerative.status == "nao_conforme"
