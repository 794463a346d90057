"""Total Real Cost (TCR) of rural credit operations.

Two regimes are supported:

* post-fixed (``pos``), indexed to IPCA::

      TCRpos = FAM * (1 + FP) * (1 + FA) - 1,   FAM = prod(1 + ipca / 100)

* pre-fixed (``pre``)::

      TCRpre = (1 + Jm / 100) * FII * (1 + FP) * (1 + FA) - 1

FP and FA are published by the CMN and FII/Jm by the Central Bank; the engine
takes them as opaque inputs and only checks their domain.
"""

from __future__ import annotations

import logging
import warnings
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .data_models import RateFactors, TCRResult
from .exceptions import EmptySeriesError, InvalidFactorError
from .utils import HUNDRED, ONE, ZERO, as_decimal, to_money, to_rate

logger = logging.getLogger(__name__)

POS = "pos"
PRE = "pre"
MODES = (POS, PRE)

# Program factors (FP) by equalized program rate, Res. CMN 5.153/2024.
PROGRAM_FACTORS: Dict[Decimal, Decimal] = {
    Decimal("2.5"): Decimal("-0.4788636"),
    Decimal("3.0"): Decimal("-0.4180941"),
    Decimal("5.0"): Decimal("-0.1750162"),
    Decimal("8.0"): Decimal("0.1896008"),
    Decimal("8.5"): Decimal("0.2503703"),
    Decimal("10.0"): Decimal("0.4326788"),
    Decimal("12.5"): Decimal("0.7365263"),
    Decimal("13.5"): Decimal("0.8580653"),
}


def _factor(value, name: str) -> Decimal:
    if value is None:
        raise InvalidFactorError(f"{name} is required", field=name, constraint="required")
    try:
        return as_decimal(value)
    except ValueError as exc:
        raise InvalidFactorError(f"{name} must be numeric; got {value!r}", field=name, constraint="numeric") from exc


def _growth_factor(value, name: str) -> Decimal:
    """Validate FP/FA, which enter the formulas as ``1 + value``."""
    factor = _factor(value, name)
    if factor <= -1:
        raise InvalidFactorError(f"{name} must be greater than -1; got {factor}", field=name, constraint="> -1")
    return factor


def _positive(value, name: str) -> Decimal:
    factor = _factor(value, name)
    if factor <= 0:
        raise InvalidFactorError(f"{name} must be positive; got {factor}", field=name, constraint="> 0")
    return factor


def program_factor(rate) -> Decimal:
    """Return the CMN program factor (FP) for an equalized program rate."""
    key = _factor(rate, "program_rate")
    for program_rate, fp in PROGRAM_FACTORS.items():
        if program_rate == key:
            return fp
    raise InvalidFactorError(
        f"No program factor published for {key}% a.a.; known rates: "
        + ", ".join(str(r) for r in PROGRAM_FACTORS),
        field="program_rate",
        constraint="choice",
    )


def compute_fam(ipca_monthly: Iterable) -> Decimal:
    """Monetary correction factor: the product of ``1 + v / 100`` over the series.

    An empty series gives ``1`` (no correction).
    """
    fam = ONE
    for value in ipca_monthly:
        variation = _factor(value, "ipca_monthly")
        if variation <= -100:
            raise InvalidFactorError(
                f"IPCA variation must be greater than -100%; got {variation}",
                field="ipca_monthly",
                constraint="> -100",
            )
        fam *= ONE + variation / HUNDRED
    return fam


def compute_fii(pre, jm) -> Decimal:
    """Implicit inflation factor ``(1 + pre / 100) / (1 + jm / 100)``."""
    pre_rate = _factor(pre, "pre")
    jm_rate = _positive(jm, "jm")
    if pre_rate <= -100:
        raise InvalidFactorError(f"pre must be greater than -100; got {pre_rate}", field="pre", constraint="> -100")
    return (ONE + pre_rate / HUNDRED) / (ONE + jm_rate / HUNDRED)


def compute_pos_fixado(principal, ipca_monthly: Iterable, fp, fa=ZERO) -> TCRResult:
    """Post-fixed TCR for ``principal`` over a series of monthly IPCA variations.

    Besides the raw rate over the whole series, the result carries the rate
    annualized over the series length (``(1 + tcr) ** (12 / months) - 1``) and
    the principal updated by the FAM. An empty series issues an
    :class:`~rural_credit.exceptions.EmptySeriesError` warning and proceeds
    with FAM = 1.
    """
    try:
        amount = as_decimal(principal)
    except ValueError as exc:
        raise InvalidFactorError(
            f"principal must be numeric; got {principal!r}", field="principal", constraint="numeric"
        ) from exc
    if amount < 0:
        raise InvalidFactorError(f"principal cannot be negative; got {amount}", field="principal", constraint=">= 0")
    fp_value = _growth_factor(fp, "fp")
    fa_value = _growth_factor(fa, "fa")

    series = list(ipca_monthly)
    if not series:
        warnings.warn(
            EmptySeriesError("Empty IPCA series: FAM taken as 1 (no monetary correction)", field="ipca_monthly"),
            stacklevel=2,
        )
    fam = compute_fam(series)
    tcr = fam * (ONE + fp_value) * (ONE + fa_value) - ONE
    months = max(len(series), 1)
    annualized = (ONE + tcr) ** (Decimal(12) / Decimal(months)) - ONE

    logger.debug("TCRpos: months=%d fam=%s fp=%s fa=%s tcr=%s", len(series), fam, fp_value, fa_value, tcr)
    return TCRResult(
        mode=POS,
        effective_rate=to_rate(tcr * HUNDRED),
        fp=fp_value,
        fa=fa_value,
        fam=fam,
        months=len(series),
        annualized_rate=to_rate(annualized * HUNDRED),
        accumulated_inflation=to_rate((fam - ONE) * HUNDRED),
        updated_balance=to_money(amount * fam),
    )


def compute_pre_fixado(jm, fii, fp, fa=ZERO) -> TCRResult:
    """Pre-fixed TCR. ``jm`` is in percent a.a.; the result is already annual."""
    jm_rate = _positive(jm, "jm")
    fii_value = _positive(fii, "fii")
    fp_value = _growth_factor(fp, "fp")
    fa_value = _growth_factor(fa, "fa")

    tcr = (ONE + jm_rate / HUNDRED) * fii_value * (ONE + fp_value) * (ONE + fa_value) - ONE

    logger.debug("TCRpre: jm=%s fii=%s fp=%s fa=%s tcr=%s", jm_rate, fii_value, fp_value, fa_value, tcr)
    return TCRResult(
        mode=PRE,
        effective_rate=to_rate(tcr * HUNDRED),
        fp=fp_value,
        fa=fa_value,
        fii=fii_value,
        jm=jm_rate,
        annualized_rate=to_rate(tcr * HUNDRED),
    )


def compute_tcr(mode: str, factors: RateFactors, principal: Optional[Decimal] = None) -> TCRResult:
    """Dispatch to the post-fixed or pre-fixed formula."""
    if mode == POS:
        return compute_pos_fixado(principal if principal is not None else ZERO, factors.ipca_monthly, factors.fp, factors.fa)
    if mode == PRE:
        return compute_pre_fixado(factors.jm, factors.fii, factors.fp, factors.fa)
    raise InvalidFactorError(f"TCR mode must be one of {MODES}; got {mode!r}", field="mode", constraint="choice")
