"""Late charges on an overdue rural credit balance.

Moratory interest accrues linearly on a 365-day year; the contractual penalty
is a one-off percentage of the balance once any day is overdue.
"""

from __future__ import annotations

import logging

from .data_models import LateCharges
from .exceptions import InvalidRateError, InvalidTermError
from .utils import HUNDRED, ZERO, as_decimal, to_money

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


def compute_late_charges(balance, moratory_rate, penalty_rate, days_overdue: int) -> LateCharges:
    """Return the moratory interest, penalty and total due on ``balance``.

    Parameters
    ----------
    balance: Decimal
        Overdue balance in currency units.
    moratory_rate: Decimal
        Moratory interest in percent a.a.
    penalty_rate: Decimal
        Penalty in percent of the balance.
    days_overdue: int
        Calendar days past the due date. Zero or less means nothing accrues.
    """
    try:
        amount = as_decimal(balance)
    except ValueError as exc:
        raise InvalidTermError(f"Balance must be numeric; got {balance!r}", field="balance", constraint="numeric") from exc
    if amount < 0:
        raise InvalidTermError(f"Balance cannot be negative; got {amount}", field="balance", constraint=">= 0")

    rates = {}
    for name, value in (("moratory_rate", moratory_rate), ("penalty_rate", penalty_rate)):
        try:
            rate = as_decimal(value)
        except ValueError as exc:
            raise InvalidRateError(f"{name} must be numeric; got {value!r}", field=name, constraint="numeric") from exc
        if rate < 0:
            raise InvalidRateError(f"{name} cannot be negative; got {rate}", field=name, constraint=">= 0")
        rates[name] = rate

    if isinstance(days_overdue, bool) or not isinstance(days_overdue, int):
        raise InvalidTermError(
            f"Days overdue must be an integer; got {days_overdue!r}", field="days_overdue", constraint="integer"
        )

    days = max(days_overdue, 0)
    moratory = amount * rates["moratory_rate"] / HUNDRED / DAYS_PER_YEAR * days
    penalty = amount * rates["penalty_rate"] / HUNDRED if days > 0 else ZERO

    logger.debug("Late charges: balance=%s days=%d mora=%s penalty=%s", amount, days, moratory, penalty)
    return LateCharges(
        balance=to_money(amount),
        days_overdue=days,
        moratory_rate=rates["moratory_rate"],
        penalty_rate=rates["penalty_rate"],
        moratory_interest=to_money(moratory),
        penalty=to_money(penalty),
        total_due=to_money(amount + moratory + penalty),
    )
