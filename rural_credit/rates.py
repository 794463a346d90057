"""Rate conversions shared by the schedule builder and the TCR calculator.

Period conversion follows compound-interest equivalence:

    i_period = (1 + r / 100) ** (1 / m) - 1

where ``r`` is the annual rate in percent and ``m`` the number of periods per
year. Contracts that state a nominal annual rate with periodic capitalization
carry their period rate explicitly (``r / 100 / m``); that is selected by the
``rate_convention`` of the terms, never used as a stand-in for the compound
equivalent.
"""

from __future__ import annotations

from decimal import Decimal

from .data_models import EFFECTIVE, PERIODS_PER_YEAR, FinancingTerms
from .exceptions import InvalidRateError
from .utils import HUNDRED, ONE, ZERO, as_decimal


def _validate(rate_annual_percent, periods_per_year) -> Decimal:
    try:
        rate = as_decimal(rate_annual_percent)
    except ValueError as exc:
        raise InvalidRateError(
            f"Annual rate must be numeric; got {rate_annual_percent!r}",
            field="rate_annual_percent",
            constraint="numeric",
        ) from exc
    if rate < 0:
        raise InvalidRateError(
            f"Annual rate cannot be negative; got {rate}",
            field="rate_annual_percent",
            constraint=">= 0",
        )
    if isinstance(periods_per_year, bool) or not isinstance(periods_per_year, int) or periods_per_year <= 0:
        raise InvalidRateError(
            f"Periods per year must be a positive integer; got {periods_per_year!r}",
            field="periods_per_year",
            constraint="> 0",
        )
    return rate


def annual_to_period(rate_annual_percent, periods_per_year: int) -> Decimal:
    """Return the period rate (as a fraction) equivalent to an annual rate.

    >>> annual_to_period(Decimal("12"), 1)
    Decimal('0.12')
    """
    rate = _validate(rate_annual_percent, periods_per_year)
    if rate == 0:
        return ZERO
    growth = ONE + rate / HUNDRED
    if periods_per_year == 1:
        return growth - ONE
    return growth ** (ONE / Decimal(periods_per_year)) - ONE


def nominal_to_period(rate_annual_percent, periods_per_year: int) -> Decimal:
    """Return the contract-stated period rate of a nominal annual rate."""
    rate = _validate(rate_annual_percent, periods_per_year)
    return rate / HUNDRED / Decimal(periods_per_year)


def period_to_annual(period_rate: Decimal, periods_per_year: int) -> Decimal:
    """Return the effective annual rate, in percent, of a period rate."""
    if period_rate <= -1:
        raise InvalidRateError(
            f"Period rate must be greater than -100%; got {period_rate}",
            field="period_rate",
            constraint="> -1",
        )
    _validate(ZERO, periods_per_year)
    return ((ONE + period_rate) ** periods_per_year - ONE) * HUNDRED


def periods_per_year(granularity: str) -> int:
    try:
        return PERIODS_PER_YEAR[granularity]
    except KeyError:
        raise InvalidRateError(
            f"Granularity must be 'monthly' or 'annual'; got {granularity!r}",
            field="granularity",
            constraint="choice",
        ) from None


def period_rate_for(terms: FinancingTerms) -> Decimal:
    """Return the period rate that applies to ``terms``."""
    if terms.rate_convention == EFFECTIVE:
        return annual_to_period(terms.annual_rate, terms.periods_per_year)
    return nominal_to_period(terms.annual_rate, terms.periods_per_year)
