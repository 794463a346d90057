"""Comparison of contracted rates against statutory caps.

A rate at or below its cap is ``conforme``. Above it, a rate within the
attention margin is ``atencao`` and anything further is ``nao_conforme``.
When a schedule is supplied the analyzer also rebuilds it at the cap (same
principal, term, system, granularity and grace) and attaches the per-line
legal figures together with the excess ``max(0, payment - legal_payment)``.
On installments already paid the excess is measured against the amount
effectively paid, when one is known.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional, Tuple

from .data_models import (
    ATENCAO,
    CONFORME,
    NAO_CONFORME,
    ChargeCompliance,
    ComplianceVerdict,
    InstallmentLine,
    Schedule,
)
from .engine import build_schedule
from .exceptions import InvalidRateError, InvalidTermError
from .limits import (
    ATTENTION_MARGIN_PP,
    CHARGE_KINDS,
    MORA,
    MORATORY_CAP_AA,
    MODALITY_LIMITS,
    MULTA,
    PENALTY_CAP,
    REMUNERATORIO,
    cap_for_modality,
    citations_for,
)
from .utils import ZERO, as_decimal, to_money, to_points

logger = logging.getLogger(__name__)


def _rate(value, name: str) -> Decimal:
    try:
        rate = as_decimal(value)
    except ValueError as exc:
        raise InvalidRateError(f"{name} must be numeric; got {value!r}", field=name, constraint="numeric") from exc
    if rate < 0:
        raise InvalidRateError(f"{name} cannot be negative; got {rate}", field=name, constraint=">= 0")
    return rate


def _check_modality(modality: Optional[str]) -> None:
    if modality is not None and modality not in MODALITY_LIMITS:
        raise InvalidRateError(f"Unknown credit modality {modality!r}", field="modality", constraint="choice")


def classify(difference: Decimal, margin: Decimal) -> str:
    """Map a signed difference to the cap (percentage points) to a status."""
    if difference <= 0:
        return CONFORME
    if difference <= margin:
        return ATENCAO
    return NAO_CONFORME


def _legal_lines(
    lines: Tuple[InstallmentLine, ...], legal: Tuple[InstallmentLine, ...]
) -> Tuple[InstallmentLine, ...]:
    annotated = []
    for line, legal_line in zip(lines, legal):
        raw = line.payment - legal_line.payment
        annotated.append(
            replace(
                line,
                legal_interest=legal_line.interest,
                legal_payment=legal_line.payment,
                legal_closing_balance=legal_line.closing_balance,
                excess=max(raw, ZERO),
                excess_clamped=raw < 0,
            )
        )
    return tuple(annotated)


def _paid_excess(line: InstallmentLine) -> Decimal:
    if line.amount_paid is None:
        return line.excess
    return max(line.amount_paid - line.legal_payment, ZERO)


def _balance(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        balance = as_decimal(value)
    except ValueError as exc:
        raise InvalidTermError(
            f"reported_balance must be numeric; got {value!r}", field="reported_balance", constraint="numeric"
        ) from exc
    if balance < 0:
        raise InvalidTermError(
            f"reported_balance cannot be negative; got {balance}", field="reported_balance", constraint=">= 0"
        )
    return to_money(balance)


def evaluate(
    contracted_rate,
    cap,
    schedule: Optional[Schedule] = None,
    margin=None,
    charge_kind: str = REMUNERATORIO,
    modality: Optional[str] = None,
    reported_balance=None,
) -> ComplianceVerdict:
    """Evaluate ``contracted_rate`` (percent) against ``cap`` (percent).

    Parameters
    ----------
    contracted_rate, cap: Decimal
        Rates in percent; both must be non-negative.
    schedule: Schedule, optional
        The contract's schedule. When given, the verdict carries the dual
        schedule comparison and the excess totals.
    margin: Decimal, optional
        Attention margin in percentage points; defaults to
        :data:`~rural_credit.limits.ATTENTION_MARGIN_PP`.
    charge_kind: str
        ``"remuneratorio"``, ``"mora"`` or ``"multa"``; selects the citations.
    modality: str, optional
        Credit modality whose MCR reference is cited alongside.
    reported_balance: Decimal, optional
        Outstanding balance claimed by the lender. Requires ``schedule``; the
        verdict then carries how far it exceeds the legal balance.
    """
    rate = _rate(contracted_rate, "contracted_rate")
    limit = _rate(cap, "cap")
    margin_pp = _rate(ATTENTION_MARGIN_PP if margin is None else margin, "margin")
    reported = _balance(reported_balance)
    _check_modality(modality)
    if charge_kind not in CHARGE_KINDS:
        raise InvalidRateError(
            f"Charge kind must be one of {CHARGE_KINDS}; got {charge_kind!r}",
            field="charge_kind",
            constraint="choice",
        )

    difference = rate - limit
    status = classify(difference, margin_pp)
    verdict = ComplianceVerdict(
        status=status,
        evaluated_rate=rate,
        cap=limit,
        difference_pp=to_points(difference),
        margin_pp=margin_pp,
        charge_kind=charge_kind,
        citations=citations_for(charge_kind, modality),
    )
    logger.debug("Compliance %s: rate=%s cap=%s diff=%s -> %s", charge_kind, rate, limit, difference, status)
    if schedule is None:
        if reported is not None:
            raise InvalidTermError(
                "A reported balance needs the contract schedule to compare with",
                field="reported_balance",
                constraint="requires schedule",
            )
        return verdict

    legal = build_schedule(schedule.terms.with_rate(limit), view=schedule.view)
    lines = _legal_lines(schedule.lines, legal.lines)
    paid = schedule.terms.paid_periods
    return replace(
        verdict,
        lines=lines,
        total_excess=sum((line.excess for line in lines), ZERO),
        paid_excess=sum((_paid_excess(line) for line in lines if line.index <= paid), ZERO),
        total_interest=schedule.total_interest,
        total_legal_interest=legal.total_interest,
        outstanding_balance=schedule.outstanding_balance,
        legal_outstanding_balance=legal.outstanding_balance,
        reported_balance=reported,
        balance_difference=None if reported is None else max(reported - legal.outstanding_balance, ZERO),
    )


def evaluate_charges(
    remunerative,
    moratory,
    penalty,
    margin=None,
    modality: Optional[str] = None,
) -> ChargeCompliance:
    """Check the remunerative, moratory and penalty rates of one contract.

    The remunerative rate is compared with the cap of ``modality`` (12 % a.a.
    when none is given) using the attention margin; the moratory (1 % a.a.)
    and penalty (2 %) caps are strict.
    """
    _check_modality(modality)
    cap = cap_for_modality(modality)
    return ChargeCompliance(
        remunerative=evaluate(remunerative, cap, margin=margin, charge_kind=REMUNERATORIO, modality=modality),
        moratory=evaluate(moratory, MORATORY_CAP_AA, margin=ZERO, charge_kind=MORA),
        penalty=evaluate(penalty, PENALTY_CAP, margin=ZERO, charge_kind=MULTA),
    )
