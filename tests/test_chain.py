"""Tests for the contract-chain analyzer."""

from decimal import Decimal
from typing import Optional

import pytest

from rural_credit.chain import analyze_chain
from rural_credit.data_models import ContractChainLink, FinancingTerms
from rural_credit.exceptions import InvalidChainError, InvalidRateError


def _terms(principal: str, rate: str = "12", term: int = 12) -> FinancingTerms:
    return FinancingTerms(
        principal=Decimal(principal),
        annual_rate=Decimal(rate),
        term=term,
        system="price",
        granularity="monthly",
    )


def _link(
    order: int,
    link_type: str,
    principal: str,
    prior: Optional[str] = None,
    charges: str = "0",
    rate: str = "12",
    **kwargs,
) -> ContractChainLink:
    return ContractChainLink(
        order=order,
        link_type=link_type,
        terms=_terms(principal, rate),
        prior_balance=Decimal(prior) if prior is not None else None,
        incorporated_charges=Decimal(charges),
        **kwargs,
    )


def _codes(alerts) -> set:
    return {alert.code for alert in alerts}


class TestChainValidation:
    """Tests for chain shape validation."""

    def test_empty_chain(self) -> None:
        with pytest.raises(InvalidChainError):
            analyze_chain([])

    def test_first_link_must_be_original(self) -> None:
        with pytest.raises(InvalidChainError) as excinfo:
            analyze_chain([_link(1, "aditivo", "100000", prior="100000")])
        assert excinfo.value.field == "link_type"

    def test_second_original_rejected(self) -> None:
        with pytest.raises(InvalidChainError):
            analyze_chain([_link(1, "original", "100000"), _link(2, "original", "50000")])

    def test_orders_must_be_contiguous(self) -> None:
        with pytest.raises(InvalidChainError) as excinfo:
            analyze_chain([_link(1, "original", "100000"), _link(3, "aditivo", "100000", prior="90000")])
        assert excinfo.value.constraint == "contiguous"

    def test_orders_must_follow_sequence(self) -> None:
        with pytest.raises(InvalidChainError):
            analyze_chain([_link(2, "aditivo", "100000", prior="90000"), _link(1, "original", "100000")])

    def test_prior_balance_required_after_original(self) -> None:
        with pytest.raises(InvalidChainError) as excinfo:
            _link(2, "refinanciamento", "120000")
        assert excinfo.value.field == "prior_balance"

    def test_negative_charges_rejected(self) -> None:
        with pytest.raises(InvalidChainError):
            _link(2, "novacao", "120000", prior="100000", charges="-1")

    def test_unknown_link_type(self) -> None:
        with pytest.raises(InvalidChainError):
            _link(2, "cessao", "120000", prior="100000")

    def test_negative_moratory_rate(self) -> None:
        with pytest.raises(InvalidRateError):
            _link(1, "original", "100000", moratory_rate=Decimal("-1"))


class TestChainFindings:
    """Tests for capitalization, growth and mata-mata detection."""

    def test_scenario_single_refinancing(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "refinanciamento", "120000", prior="100000", charges="20000"),
            ]
        )

        assert report.total_incorporated_charges == Decimal("20000.00")
        assert report.growth_percent == Decimal("20.00")
        assert report.principal_increase == Decimal("20000.00")
        assert report.capitalization_detected
        assert not report.mata_mata_detected
        assert not report.rate_above_legal_detected
        assert report.links[1].capitalization_detected
        assert "CAPITALIZACAO_INDEVIDA" in _codes(report.links[1].alerts)
        assert "TOTAL_ENCARGOS_CAPITALIZADOS" in _codes(report.alerts)

    def test_consecutive_refinancings_are_mata_mata(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "refinanciamento", "120000", prior="100000", charges="20000"),
                _link(3, "novacao", "150000", prior="130000", charges="20000"),
            ]
        )

        assert report.mata_mata_detected
        assert report.total_incorporated_charges == Decimal("40000.00")
        assert report.growth_percent == Decimal("50.00")
        assert "CADEIA_MATA_MATA" in _codes(report.alerts)

    def test_non_consecutive_refinancings_are_not_mata_mata(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "refinanciamento", "120000", prior="100000", charges="20000"),
                _link(3, "aditivo", "120000", prior="110000"),
                _link(4, "renegociacao", "140000", prior="120000", charges="20000"),
            ]
        )

        assert report.capitalization_detected
        assert not report.mata_mata_detected

    def test_aditivo_charges_do_not_count_as_capitalization(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "aditivo", "110000", prior="100000", charges="10000"),
            ]
        )

        assert not report.capitalization_detected
        assert report.total_incorporated_charges == Decimal("0.00")

    def test_rate_above_legal(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "renegociacao", "100000", prior="95000", rate="18"),
            ]
        )

        assert report.rate_above_legal_detected
        assert report.links[1].verdict.status == "nao_conforme"
        assert "TAXA_ACIMA_LEGAL" in _codes(report.links[1].alerts)

    def test_modality_cap_applies(self) -> None:
        report = analyze_chain([_link(1, "original", "100000", rate="7", modality="pronaf_custeio")])

        assert report.links[0].verdict.cap == Decimal("5.0")
        assert report.rate_above_legal_detected

    def test_principal_change_percent(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "aditivo", "90000", prior="95000"),
            ]
        )

        assert report.links[0].principal_change_percent is None
        assert report.links[1].principal_change_percent == Decimal("-10.00")
        assert report.growth_percent == Decimal("-10.00")

    def test_disproportionate_increase(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "aditivo", "130000", prior="100000"),
            ]
        )
        assert "AUMENTO_DESPROPORCIONAL" in _codes(report.links[1].alerts)

    def test_moratory_alert(self) -> None:
        report = analyze_chain([_link(1, "original", "100000", moratory_rate=Decimal("12"))])
        assert "MORA_ACIMA_LEGAL" in _codes(report.all_alerts)

    def test_single_original(self) -> None:
        report = analyze_chain([_link(1, "original", "100000")])

        assert report.growth_percent == Decimal("0.00")
        assert report.alerts == ()
        assert len(report.links[0].schedule) == 12


class TestRolloverClassification:
    """Tests for the per-link classification of refinancings and novations."""

    @staticmethod
    def _rollover(link_type: str, principal: str):
        return analyze_chain(
            [
                _link(1, "original", "100000", contract_number="CR-001"),
                _link(2, link_type, principal, prior="100000", contract_number="CR-002"),
            ]
        )

    def test_larger_principal_is_mata_mata(self) -> None:
        report = self._rollover("novacao", "110000")
        alert = next(a for a in report.links[1].alerts if a.code == "MATA_MATA")

        assert alert.severity == "critico"
        assert alert.affected_orders == (1, 2)
        assert "10.00% maior" in alert.description
        assert report.links[1].mata_mata_detected
        assert not report.links[0].mata_mata_detected
        assert not report.mata_mata_detected

    @pytest.mark.parametrize("principal", ["100000", "95000", "90000"])
    def test_kept_principal_is_suspected_mata_mata(self, principal: str) -> None:
        report = self._rollover("refinanciamento", principal)
        alert = next(a for a in report.links[1].alerts if a.code == "MATA_MATA")

        assert alert.severity == "critico"
        assert "Suspeita" in alert.title
        assert report.links[1].mata_mata_detected

    def test_discounted_rollover_is_informative(self) -> None:
        report = self._rollover("novacao", "89999.99")
        codes = _codes(report.links[1].alerts)

        assert "RENEGOCIACAO_COM_DESCONTO" in codes
        assert "MATA_MATA" not in codes
        assert report.links[1].alerts[-1].severity == "informativo"
        assert not report.links[1].mata_mata_detected

    @pytest.mark.parametrize("link_type", ["aditivo", "renegociacao"])
    def test_other_link_types_are_not_classified(self, link_type: str) -> None:
        report = self._rollover(link_type, "110000")
        codes = _codes(report.links[1].alerts)

        assert "MATA_MATA" not in codes
        assert "RENEGOCIACAO_COM_DESCONTO" not in codes

    def test_flag_follows_previous_link(self) -> None:
        report = analyze_chain(
            [
                _link(1, "original", "100000"),
                _link(2, "novacao", "70000", prior="100000"),
                _link(3, "refinanciamento", "75000", prior="68000"),
            ]
        )

        assert not report.links[1].mata_mata_detected
        assert report.links[2].mata_mata_detected
        assert next(a for a in report.links[2].alerts if a.code == "MATA_MATA").affected_orders == (2, 3)


class TestIncorporatedCharges:
    """Tests for the incorporated-charges requirement."""

    def test_required_after_original(self) -> None:
        with pytest.raises(InvalidChainError) as excinfo:
            ContractChainLink(order=2, link_type="novacao", terms=_terms("110000"), prior_balance=Decimal("100000"))
        assert excinfo.value.field == "incorporated_charges"
        assert excinfo.value.constraint == "required"

    def test_original_carries_none(self) -> None:
        link = ContractChainLink(order=1, link_type="original", terms=_terms("100000"))
        assert link.incorporated_charges == Decimal("0")

    def test_explicit_zero_is_accepted(self) -> None:
        link = _link(2, "aditivo", "100000", prior="100000", charges="0")
        assert link.incorporated_charges == Decimal("0")
