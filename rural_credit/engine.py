"""Core calculation engine for rural credit amortization schedules.

This module builds installment schedules for the three systems used in rural
credit: Price (constant payment), SAC (constant amortization) and SAF (Price
with an optional interest-only grace period). Balances are carried at full
``Decimal`` precision and each currency value is rounded to cents only when
its line is emitted; the last line amortizes whatever balance remains so the
schedule closes at exactly zero.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from .data_models import SAC, SAF, FinancingTerms, InstallmentLine, Schedule
from .rates import period_rate_for, period_to_annual
from .utils import ONE, ZERO, add_months, to_money, to_rate

logger = logging.getLogger(__name__)

FULL = "full"
PAID = "paid"
REMAINING = "remaining"
VIEWS = (FULL, PAID, REMAINING)


def price_payment(principal: Decimal, period_rate: Decimal, term: int) -> Decimal:
    """Return the constant Price (French table) payment, unrounded.

    The formula is:

        payment = P * i / (1 - (1 + i) ** -n)

    where ``P`` is the principal, ``i`` the period rate and ``n`` the number of
    payments. When the rate is zero the payment is simply ``P / n``.
    """
    if term <= 0:
        raise ValueError("Term must be positive")
    if period_rate == 0:
        return principal / Decimal(term)
    return principal * period_rate / (ONE - (ONE + period_rate) ** -term)


# Each generator yields raw (opening, interest, amortization, payment) tuples at
# full precision; _emit_lines rounds them and closes the final balance.


def _price_rows(principal: Decimal, rate: Decimal, term: int) -> Iterator[Tuple[Decimal, ...]]:
    payment = price_payment(principal, rate, term)
    balance = principal
    for _ in range(term):
        interest = balance * rate
        amortization = payment - interest
        yield balance, interest, amortization, payment
        balance -= amortization


def _sac_rows(principal: Decimal, rate: Decimal, term: int) -> Iterator[Tuple[Decimal, ...]]:
    amortization = principal / Decimal(term)
    balance = principal
    for _ in range(term):
        interest = balance * rate
        yield balance, interest, amortization, amortization + interest
        balance -= amortization


def _saf_rows(principal: Decimal, rate: Decimal, term: int, grace: int) -> Iterator[Tuple[Decimal, ...]]:
    balance = principal
    for period in range(1, term + 1):
        interest = balance * rate
        if period <= grace:
            yield balance, interest, ZERO, interest
            continue
        # Re-amortize the post-grace balance over the periods still ahead.
        payment = price_payment(balance, rate, term - period + 1)
        amortization = payment - interest
        yield balance, interest, amortization, payment
        balance -= amortization


def _raw_rows(terms: FinancingTerms, rate: Decimal) -> Iterator[Tuple[Decimal, ...]]:
    if terms.system == SAC:
        return _sac_rows(terms.principal, rate, terms.term)
    if terms.system == SAF:
        return _saf_rows(terms.principal, rate, terms.term, terms.grace_periods)
    return _price_rows(terms.principal, rate, terms.term)


def _due_date(terms: FinancingTerms, index: int) -> Optional[date]:
    if terms.first_due_date is None:
        return None
    step = 12 // terms.periods_per_year
    return add_months(terms.first_due_date, (index - 1) * step)


def _emit_lines(terms: FinancingTerms, rate: Decimal) -> List[InstallmentLine]:
    lines: List[InstallmentLine] = []
    for index, (opening, interest, amortization, payment) in enumerate(_raw_rows(terms, rate), start=1):
        if index == terms.term:
            # Last line absorbs residual drift so the schedule closes at zero.
            amortization = opening
            payment = interest + opening
            closing = ZERO
        else:
            closing = opening - amortization

        amount_paid = None
        paid_difference = None
        if index <= len(terms.actual_payments):
            amount_paid = to_money(terms.actual_payments[index - 1])
            paid_difference = amount_paid - to_money(payment)

        lines.append(
            InstallmentLine(
                index=index,
                opening_balance=to_money(opening),
                interest=to_money(interest),
                amortization=to_money(amortization),
                payment=to_money(payment),
                closing_balance=to_money(closing),
                due_date=_due_date(terms, index),
                amount_paid=amount_paid,
                paid_difference=paid_difference,
            )
        )
    return lines


def build_schedule(terms: FinancingTerms, view: str = FULL) -> Schedule:
    """Build the amortization schedule for ``terms``.

    Parameters
    ----------
    terms: FinancingTerms
        Validated financing terms.
    view: str
        ``"full"`` returns every installment, ``"paid"`` only the first
        ``terms.paid_periods`` ones (its last closing balance is the
        outstanding balance) and ``"remaining"`` the ``term - paid_periods``
        installments still ahead.

    Returns
    -------
    Schedule
        The schedule lines together with the period rate and the outstanding
        balance after the paid installments.
    """
    if view not in VIEWS:
        raise ValueError(f"Schedule view must be one of {VIEWS}; got {view!r}")

    rate = period_rate_for(terms)
    lines = _emit_lines(terms, rate)
    paid = terms.paid_periods
    outstanding = lines[paid - 1].closing_balance if paid else to_money(terms.principal)

    if view == PAID:
        lines = lines[:paid]
    elif view == REMAINING:
        lines = lines[paid:]

    logger.debug(
        "Built %s schedule: principal=%s rate=%s%% term=%d period_rate=%s view=%s",
        terms.system,
        terms.principal,
        terms.annual_rate,
        terms.term,
        rate,
        view,
    )
    return Schedule(
        terms=terms,
        period_rate=rate,
        lines=tuple(lines),
        outstanding_balance=outstanding,
        view=view,
    )


def summarize(schedule: Schedule) -> Dict[str, object]:
    """Compute aggregate metrics for a schedule.

    Totals cover the lines of the schedule's view; the ``paid_*`` figures
    always refer to the installments already paid.
    """
    terms = schedule.terms
    paid_lines = schedule.paid_lines
    payments = [line.payment for line in schedule.lines]
    summary: Dict[str, object] = {
        "principal_financed": to_money(terms.principal),
        "annual_rate": to_rate(terms.annual_rate),
        "system": terms.system,
        "granularity": terms.granularity,
        "rate_convention": terms.rate_convention,
        "period_rate": to_rate(schedule.period_rate * 100),
        "effective_annual_rate": to_rate(period_to_annual(schedule.period_rate, terms.periods_per_year)),
        "term": terms.term,
        "installments": len(schedule),
        "total_interest": schedule.total_interest,
        "total_amortization": schedule.total_amortization,
        "total_payment": schedule.total_payment,
        "first_payment": schedule.first_payment,
        "max_payment": max(payments) if payments else ZERO,
        "paid_periods": terms.paid_periods,
        "total_paid": sum((line.payment for line in paid_lines), ZERO),
        "interest_paid": sum((line.interest for line in paid_lines), ZERO),
        "outstanding_balance": schedule.outstanding_balance,
    }
    if terms.actual_payments:
        summary["amount_actually_paid"] = sum(
            (line.amount_paid for line in schedule.lines if line.amount_paid is not None), ZERO
        )
    return summary
