"""Data models for the rural credit engine.

This module defines the value objects exchanged with the engine: the financing
terms of one contract, the auxiliary TCR factors, schedule lines and whole
schedules, compliance verdicts and the contract-chain structures. All of them
are frozen dataclasses validated once at construction, so the numeric code
downstream never has to re-check its input.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional, Tuple, Type

from .exceptions import (
    InvalidChainError,
    InvalidFactorError,
    InvalidRateError,
    InvalidTermError,
    RuralCreditError,
)
from .limits import MODALITY_LIMITS
from .utils import ZERO, as_decimal

PRICE = "price"
SAC = "sac"
SAF = "saf"
SYSTEMS = (PRICE, SAC, SAF)

MONTHLY = "monthly"
ANNUAL = "annual"
PERIODS_PER_YEAR = {MONTHLY: 12, ANNUAL: 1}

NOMINAL = "nominal"
EFFECTIVE = "effective"
RATE_CONVENTIONS = (NOMINAL, EFFECTIVE)

ORIGINAL = "original"
ADITIVO = "aditivo"
REFINANCIAMENTO = "refinanciamento"
NOVACAO = "novacao"
RENEGOCIACAO = "renegociacao"
LINK_TYPES = (ORIGINAL, ADITIVO, REFINANCIAMENTO, NOVACAO, RENEGOCIACAO)
REFINANCING_TYPES = (REFINANCIAMENTO, NOVACAO, RENEGOCIACAO)
# Link types that pay off the previous contract with the new principal.
ROLLOVER_TYPES = (REFINANCIAMENTO, NOVACAO)

CONFORME = "conforme"
ATENCAO = "atencao"
NAO_CONFORME = "nao_conforme"
VERDICT_ORDER = (CONFORME, ATENCAO, NAO_CONFORME)


def _coerce(
    obj: object,
    name: str,
    error: Type[RuralCreditError],
    optional: bool = False,
) -> Optional[Decimal]:
    value = getattr(obj, name)
    if value is None:
        if optional:
            return None
        raise error(f"{name} is required", field=name, constraint="required")
    try:
        result = as_decimal(value)
    except ValueError as exc:
        raise error(f"{name} must be numeric; got {value!r}", field=name, constraint="numeric") from exc
    object.__setattr__(obj, name, result)
    return result


def _require_int(value: object, name: str, error: Type[RuralCreditError]) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise error(f"{name} must be an integer; got {value!r}", field=name, constraint="integer")
    return value


@dataclass(frozen=True)
class FinancingTerms:
    """Financing terms of a single contract.

    Attributes
    ----------
    principal: Decimal
        Financed amount in currency units. Must be positive.
    annual_rate: Decimal
        Contracted annual rate in percent (``Decimal("12")`` means 12 % a.a.).
    term: int
        Number of installments.
    system: str
        ``"price"``, ``"sac"`` or ``"saf"``.
    granularity: str
        ``"monthly"`` or ``"annual"`` installments.
    paid_periods: int
        How many installments were already paid (``0 <= paid_periods <= term``).
    rate_convention: str
        ``"nominal"`` (the default) splits the nominal annual rate linearly
        into the contract-stated period rate, so 12 % a.a. is 1 % a.m.
        ``"effective"`` uses the compound equivalent period rate
        ``(1 + r)**(1/m) - 1``. The default is not compound: a monthly
        contract reviewed under it charges more interest than the compound
        conversion would. Pass ``"effective"`` for compound monthly rates.
    grace_periods: int
        Interest-only periods before amortization starts (SAF only).
    first_due_date: date, optional
        Due date of the first installment. Later dates step by one month or
        one year depending on ``granularity``.
    actual_payments: tuple of Decimal
        Amounts effectively paid for the first installments, if known.
    """

    principal: Decimal
    annual_rate: Decimal
    term: int
    system: str
    granularity: str
    paid_periods: int = 0
    rate_convention: str = NOMINAL
    grace_periods: int = 0
    first_due_date: Optional[date] = None
    actual_payments: Tuple[Decimal, ...] = ()

    def __post_init__(self) -> None:
        principal = _coerce(self, "principal", InvalidTermError)
        if principal <= 0:
            raise InvalidTermError(
                f"Principal must be positive; got {principal}", field="principal", constraint="> 0"
            )
        rate = _coerce(self, "annual_rate", InvalidRateError)
        if rate < 0:
            raise InvalidRateError(
                f"Annual rate cannot be negative; got {rate}", field="annual_rate", constraint=">= 0"
            )
        if self.rate_convention not in RATE_CONVENTIONS:
            raise InvalidRateError(
                f"Rate convention must be one of {RATE_CONVENTIONS}; got {self.rate_convention!r}",
                field="rate_convention",
                constraint="choice",
            )

        term = _require_int(self.term, "term", InvalidTermError)
        if term <= 0:
            raise InvalidTermError(f"Term must be positive; got {term}", field="term", constraint="> 0")
        if self.system not in SYSTEMS:
            raise InvalidTermError(
                f"Amortization system must be one of {SYSTEMS}; got {self.system!r}",
                field="system",
                constraint="choice",
            )
        if self.granularity not in PERIODS_PER_YEAR:
            raise InvalidTermError(
                f"Granularity must be 'monthly' or 'annual'; got {self.granularity!r}",
                field="granularity",
                constraint="choice",
            )

        paid = _require_int(self.paid_periods, "paid_periods", InvalidTermError)
        if paid < 0 or paid > term:
            raise InvalidTermError(
                f"Paid periods must be between 0 and the term ({term}); got {paid}",
                field="paid_periods",
                constraint="0 <= paid_periods <= term",
            )

        grace = _require_int(self.grace_periods, "grace_periods", InvalidTermError)
        if grace < 0:
            raise InvalidTermError(
                f"Grace periods cannot be negative; got {grace}", field="grace_periods", constraint=">= 0"
            )
        if grace and self.system != SAF:
            raise InvalidTermError(
                "Grace periods are only supported by the SAF system",
                field="grace_periods",
                constraint="system == saf",
            )
        if grace >= term:
            raise InvalidTermError(
                f"Grace periods must be shorter than the term ({term}); got {grace}",
                field="grace_periods",
                constraint="grace_periods < term",
            )

        payments = []
        for value in self.actual_payments:
            try:
                amount = as_decimal(value)
            except ValueError as exc:
                raise InvalidTermError(
                    f"Paid amounts must be numeric; got {value!r}",
                    field="actual_payments",
                    constraint="numeric",
                ) from exc
            if amount < 0:
                raise InvalidTermError(
                    f"Paid amounts cannot be negative; got {amount}",
                    field="actual_payments",
                    constraint=">= 0",
                )
            payments.append(amount)
        if len(payments) > term:
            raise InvalidTermError(
                f"Got {len(payments)} paid amounts for a term of {term}",
                field="actual_payments",
                constraint="len <= term",
            )
        object.__setattr__(self, "actual_payments", tuple(payments))

    @property
    def periods_per_year(self) -> int:
        return PERIODS_PER_YEAR[self.granularity]

    def with_rate(self, annual_rate: Decimal) -> "FinancingTerms":
        """Return a copy of these terms at a different annual rate."""
        return replace(self, annual_rate=annual_rate)


@dataclass(frozen=True)
class RateFactors:
    """Externally sourced factors for the TCR formulas.

    ``ipca_monthly`` holds monthly IPCA variations in percent (post-fixed).
    ``jm`` (percent a.a.), ``fii``, ``fp`` and ``fa`` feed the pre-fixed
    formula; ``fp`` and ``fa`` also feed the post-fixed one. Which of them are
    required depends on the mode and is checked by the TCR operations.
    """

    ipca_monthly: Tuple[Decimal, ...] = ()
    jm: Optional[Decimal] = None
    fii: Optional[Decimal] = None
    fp: Optional[Decimal] = None
    fa: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in ("jm", "fii", "fp"):
            _coerce(self, name, InvalidFactorError, optional=True)
        _coerce(self, "fa", InvalidFactorError)
        series = []
        for value in self.ipca_monthly:
            try:
                series.append(as_decimal(value))
            except ValueError as exc:
                raise InvalidFactorError(
                    f"IPCA variations must be numeric; got {value!r}",
                    field="ipca_monthly",
                    constraint="numeric",
                ) from exc
        object.__setattr__(self, "ipca_monthly", tuple(series))


@dataclass(frozen=True)
class InstallmentLine:
    """One row of an amortization schedule.

    Currency values are rounded to cents. The ``legal_*`` fields, ``excess``
    and ``excess_clamped`` are only filled by the compliance analyzer; the
    ``amount_paid`` pair only when the terms carry actual payments.
    """

    index: int
    opening_balance: Decimal
    interest: Decimal
    amortization: Decimal
    payment: Decimal
    closing_balance: Decimal
    due_date: Optional[date] = None
    legal_interest: Optional[Decimal] = None
    legal_payment: Optional[Decimal] = None
    legal_closing_balance: Optional[Decimal] = None
    excess: Optional[Decimal] = None
    excess_clamped: bool = False
    amount_paid: Optional[Decimal] = None
    paid_difference: Optional[Decimal] = None


@dataclass(frozen=True)
class Schedule:
    """An amortization schedule: the terms it was built from plus its lines.

    Behaves as a read-only sequence of :class:`InstallmentLine`.
    ``outstanding_balance`` is the balance left after ``terms.paid_periods``
    installments, whatever ``view`` was requested.
    """

    terms: FinancingTerms
    period_rate: Decimal
    lines: Tuple[InstallmentLine, ...]
    outstanding_balance: Decimal
    view: str = "full"

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[InstallmentLine]:
        return iter(self.lines)

    def __getitem__(self, item):
        return self.lines[item]

    @property
    def total_interest(self) -> Decimal:
        return sum((line.interest for line in self.lines), ZERO)

    @property
    def total_payment(self) -> Decimal:
        return sum((line.payment for line in self.lines), ZERO)

    @property
    def total_amortization(self) -> Decimal:
        return sum((line.amortization for line in self.lines), ZERO)

    @property
    def first_payment(self) -> Decimal:
        return self.lines[0].payment if self.lines else ZERO

    @property
    def paid_lines(self) -> Tuple[InstallmentLine, ...]:
        return tuple(line for line in self.lines if line.index <= self.terms.paid_periods)

    @property
    def remaining_lines(self) -> Tuple[InstallmentLine, ...]:
        return tuple(line for line in self.lines if line.index > self.terms.paid_periods)


@dataclass(frozen=True)
class TCRResult:
    """Outcome of a TCR computation.

    ``effective_rate`` is the TCR in percent, straight from the formula of the
    selected mode. Post-fixed results also carry the FAM, the balance updated
    by it and the rate annualized over the length of the IPCA series.
    """

    mode: str
    effective_rate: Decimal
    fp: Decimal
    fa: Decimal
    fam: Optional[Decimal] = None
    fii: Optional[Decimal] = None
    jm: Optional[Decimal] = None
    months: Optional[int] = None
    annualized_rate: Optional[Decimal] = None
    accumulated_inflation: Optional[Decimal] = None
    updated_balance: Optional[Decimal] = None


@dataclass(frozen=True)
class LateCharges:
    """Moratory interest and contractual penalty accrued on an overdue balance."""

    balance: Decimal
    days_overdue: int
    moratory_rate: Decimal
    penalty_rate: Decimal
    moratory_interest: Decimal
    penalty: Decimal
    total_due: Decimal


@dataclass(frozen=True)
class ComplianceVerdict:
    """Result of comparing a contracted rate against a statutory cap.

    ``difference_pp`` is signed (positive means above the cap). The schedule
    fields stay ``None`` (and ``lines`` empty) when no schedule was supplied.
    ``paid_excess`` measures paid installments by the amount actually paid
    when known. ``balance_difference`` is how far the lender's reported
    balance exceeds the legal outstanding balance (never negative).
    """

    status: str
    evaluated_rate: Decimal
    cap: Decimal
    difference_pp: Decimal
    margin_pp: Decimal
    charge_kind: str
    citations: Tuple[str, ...]
    lines: Tuple[InstallmentLine, ...] = ()
    total_excess: Optional[Decimal] = None
    paid_excess: Optional[Decimal] = None
    total_interest: Optional[Decimal] = None
    total_legal_interest: Optional[Decimal] = None
    outstanding_balance: Optional[Decimal] = None
    legal_outstanding_balance: Optional[Decimal] = None
    reported_balance: Optional[Decimal] = None
    balance_difference: Optional[Decimal] = None

    @property
    def is_compliant(self) -> bool:
        return self.status == CONFORME

    @property
    def severity(self) -> int:
        return VERDICT_ORDER.index(self.status)


@dataclass(frozen=True)
class ChargeCompliance:
    """Verdicts for the remunerative, moratory and penalty caps of one contract."""

    remunerative: ComplianceVerdict
    moratory: ComplianceVerdict
    penalty: ComplianceVerdict

    @property
    def status(self) -> str:
        worst = max(
            (self.remunerative, self.moratory, self.penalty), key=lambda v: v.severity
        )
        return worst.status


@dataclass(frozen=True)
class ContractChainLink:
    """One contract in a chain of successive contracts with the same lender.

    Non-original links must state the outstanding balance of the prior
    contract at rollover (``prior_balance``) and how much of the new principal
    is interest or penalties carried over (``incorporated_charges``, zero when
    nothing was folded in). The original contract carries no charges.
    """

    order: int
    link_type: str
    terms: FinancingTerms
    prior_balance: Optional[Decimal] = None
    incorporated_charges: Optional[Decimal] = None
    contract_number: str = ""
    modality: Optional[str] = None
    moratory_rate: Optional[Decimal] = None

    def __post_init__(self) -> None:
        order = _require_int(self.order, "order", InvalidChainError)
        if order < 1:
            raise InvalidChainError(f"Order must start at 1; got {order}", field="order", constraint=">= 1")
        if self.link_type not in LINK_TYPES:
            raise InvalidChainError(
                f"Link type must be one of {LINK_TYPES}; got {self.link_type!r}",
                field="link_type",
                constraint="choice",
            )
        if not isinstance(self.terms, FinancingTerms):
            raise InvalidChainError("Each link needs FinancingTerms", field="terms", constraint="type")
        if self.modality is not None and self.modality not in MODALITY_LIMITS:
            raise InvalidChainError(
                f"Unknown credit modality {self.modality!r}", field="modality", constraint="choice"
            )
        if self.link_type == ORIGINAL and self.incorporated_charges is None:
            object.__setattr__(self, "incorporated_charges", ZERO)
        charges = _coerce(self, "incorporated_charges", InvalidChainError, optional=True)
        if charges is None:
            raise InvalidChainError(
                f"Link {order} ({self.link_type}) must state the charges incorporated into its principal",
                field="incorporated_charges",
                constraint="required",
            )
        if charges < 0:
            raise InvalidChainError(
                f"Incorporated charges cannot be negative; got {charges}",
                field="incorporated_charges",
                constraint=">= 0",
            )
        prior = _coerce(self, "prior_balance", InvalidChainError, optional=True)
        if self.link_type != ORIGINAL:
            if prior is None:
                raise InvalidChainError(
                    f"Link {order} ({self.link_type}) must state the prior outstanding balance",
                    field="prior_balance",
                    constraint="required",
                )
            if prior < 0:
                raise InvalidChainError(
                    f"Prior balance cannot be negative; got {prior}",
                    field="prior_balance",
                    constraint=">= 0",
                )
        mora = _coerce(self, "moratory_rate", InvalidRateError, optional=True)
        if mora is not None and mora < 0:
            raise InvalidRateError(
                f"Moratory rate cannot be negative; got {mora}", field="moratory_rate", constraint=">= 0"
            )

    @property
    def is_refinancing(self) -> bool:
        return self.link_type in REFINANCING_TYPES

    @property
    def is_rollover(self) -> bool:
        return self.link_type in ROLLOVER_TYPES


@dataclass(frozen=True)
class ChainAlert:
    severity: str  # "critico", "atencao" or "informativo"
    code: str
    title: str
    description: str
    citation: str
    affected_orders: Tuple[int, ...]


@dataclass(frozen=True)
class LinkAnalysis:
    link: ContractChainLink
    schedule: Schedule
    verdict: ComplianceVerdict
    capitalization_detected: bool
    principal_change_percent: Optional[Decimal]
    mata_mata_detected: bool = False  # rollover that did not reduce the debt
    alerts: Tuple[ChainAlert, ...] = ()


@dataclass(frozen=True)
class ChainReport:
    """Aggregate findings over an ordered chain of contracts."""

    links: Tuple[LinkAnalysis, ...]
    alerts: Tuple[ChainAlert, ...]
    original_principal: Decimal
    current_principal: Decimal
    principal_increase: Decimal
    growth_percent: Decimal
    total_incorporated_charges: Decimal
    capitalization_detected: bool
    mata_mata_detected: bool
    rate_above_legal_detected: bool

    @property
    def all_alerts(self) -> Tuple[ChainAlert, ...]:
        per_link = tuple(alert for analysis in self.links for alert in analysis.alerts)
        return self.alerts + per_link
