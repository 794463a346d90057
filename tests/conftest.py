"""Pytest configuration and fixtures."""

from decimal import Decimal

import pytest

from rural_credit.data_models import FinancingTerms


@pytest.fixture
def price_terms() -> FinancingTerms:
    """100 000 at 12% a.a. over 12 monthly Price installments."""
    return FinancingTerms(
        principal=Decimal("100000"),
        annual_rate=Decimal("12"),
        term=12,
        system="price",
        granularity="monthly",
    )


@pytest.fixture
def sac_terms(price_terms: FinancingTerms) -> FinancingTerms:
    """Same contract amortized by SAC."""
    return FinancingTerms(
        principal=price_terms.principal,
        annual_rate=price_terms.annual_rate,
        term=price_terms.term,
        system="sac",
        granularity="monthly",
    )


@pytest.fixture
def chain_payload() -> list:
    """An original contract followed by one refinancing that folded in 20 000 of charges."""
    return [
        {
            "order": 1,
            "link_type": "original",
            "contract_number": "CR-001",
            "principal": "100000",
            "annual_rate": "12",
            "term": 12,
            "system": "price",
        },
        {
            "order": 2,
            "link_type": "refinanciamento",
            "contract_number": "CR-002",
            "principal": "120000",
            "annual_rate": "12",
            "term": 24,
            "system": "price",
            "prior_balance": "100000",
            "incorporated_charges": "20000",
        },
    ]
