"""Command-line interface for the rural credit engine.

This module uses ``click`` to implement a multi-command interface. Users can
build amortization schedules, check a contract against the statutory caps,
compute the TCR, accrue late charges and analyze a chain of contracts read
from a JSON file. Results are printed to the terminal or exported to JSON/CSV.
"""

from __future__ import annotations

import csv
import functools
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

import click

from . import compliance as compliance_analyzer
from .chain import analyze_chain
from .config import EngineConfig
from .data_models import MONTHLY, NOMINAL, PERIODS_PER_YEAR, RATE_CONVENTIONS, SYSTEMS, FinancingTerms, RateFactors
from .debt import compute_late_charges
from .engine import FULL, VIEWS, build_schedule, summarize
from .exceptions import RuralCreditError
from .formatter import print_chain, print_late_charges, print_schedule, print_summary, print_tcr, print_verdict
from .limits import MODALITY_LIMITS, cap_for_modality
from .logging import setup_logging
from .serialization import chain_from_dicts, parse_due_date, to_jsonable, verdict_to_dict
from .tcr import MODES, compute_fii, compute_tcr, program_factor
from .utils import decimal_from_str

logger = logging.getLogger(__name__)


def parse_amount(value: str) -> Decimal:
    """Parse a currency amount with optional ``k``/``m`` suffixes.

    Accepts plain numbers ("500000") and shorthand such as "500k" meaning
    500 000. Returns a ``Decimal``.
    """
    text = value.strip().lower().replace(",", "")
    factor = Decimal("1")
    if text.endswith("k"):
        factor = Decimal("1000")
        text = text[:-1]
    elif text.endswith("m"):
        factor = Decimal("1000000")
        text = text[:-1]
    try:
        return decimal_from_str(text) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}") from None


def parse_percent(value: str) -> Decimal:
    """Parse a rate in percent ("12", "12.5" or "12%")."""
    text = value.strip()
    if text.endswith("%"):
        text = text[:-1]
    try:
        return decimal_from_str(text)
    except ValueError:
        raise click.BadParameter(f"Invalid percentage: {value}") from None


def parse_series(values: Tuple[str, ...]) -> Tuple[Decimal, ...]:
    """Flatten repeated and semicolon-separated values into a series."""
    series = []
    for item in values:
        for part in item.split(";"):
            if part.strip():
                series.append(parse_percent(part))
    return tuple(series)


def to_bad_parameter(exc: RuralCreditError) -> click.BadParameter:
    hint = f"--{exc.field.replace('_', '-')}" if exc.field else None
    return click.BadParameter(str(exc), param_hint=hint)


def terms_options(func: Callable) -> Callable:
    """Attach the options shared by every command that builds a schedule."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Financed amount (accepts 500k, 1.2m)"),
        click.option("--rate", "-r", "rate", required=True, help="Contracted annual rate (percent)"),
        click.option("--term", "-t", "term", required=True, type=int, help="Number of installments"),
        click.option("--system", "system", type=click.Choice(SYSTEMS), default="price", help="Amortization system"),
        click.option(
            "--granularity",
            "granularity",
            type=click.Choice(tuple(PERIODS_PER_YEAR)),
            default=MONTHLY,
            help="Installment periodicity",
        ),
        click.option(
            "--convention",
            "rate_convention",
            type=click.Choice(RATE_CONVENTIONS),
            default=NOMINAL,
            help="nominal: rate / periods; effective: compound equivalent period rate",
        ),
        click.option("--paid", "paid_periods", type=int, default=0, help="Installments already paid"),
        click.option("--grace", "grace_periods", type=int, default=0, help="Interest-only periods (SAF)"),
        click.option("--first-due", "first_due", help="First due date (YYYY-MM or YYYY-MM-DD)"),
        click.option("--paid-amount", "paid_amounts", multiple=True, help="Amount actually paid, once per installment"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_terms(
    principal: str,
    rate: str,
    term: int,
    system: str,
    granularity: str,
    rate_convention: str,
    paid_periods: int,
    grace_periods: int,
    first_due: Optional[str],
    paid_amounts: Tuple[str, ...],
) -> FinancingTerms:
    try:
        return FinancingTerms(
            principal=parse_amount(principal),
            annual_rate=parse_percent(rate),
            term=term,
            system=system,
            granularity=granularity,
            paid_periods=paid_periods,
            rate_convention=rate_convention,
            grace_periods=grace_periods,
            first_due_date=parse_due_date(first_due),
            actual_payments=tuple(parse_amount(a) for a in paid_amounts),
        )
    except RuralCreditError as exc:
        raise to_bad_parameter(exc) from exc


def with_terms(func: Callable) -> Callable:
    """Collapse the shared options into a ``terms`` argument."""

    @functools.wraps(func)
    def wrapper(principal, rate, term, system, granularity, rate_convention, paid_periods, grace_periods, first_due, paid_amounts, **kwargs):
        terms = build_terms(
            principal, rate, term, system, granularity, rate_convention, paid_periods, grace_periods, first_due, paid_amounts
        )
        return func(terms=terms, **kwargs)

    return terms_options(wrapper)


def write_json(path: Path, data: Any) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(to_jsonable(data), f, indent=2, ensure_ascii=False)


def export_to_csv(path: Path, lines) -> None:
    """Export schedule lines to a CSV file."""
    header = [
        "Period",
        "Due_Date",
        "Opening_Balance",
        "Interest",
        "Amortization",
        "Payment",
        "Closing_Balance",
        "Legal_Payment",
        "Excess",
    ]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for line in lines:
            writer.writerow(
                [
                    line.index,
                    line.due_date.isoformat() if line.due_date else "",
                    str(line.opening_balance),
                    str(line.interest),
                    str(line.amortization),
                    str(line.payment),
                    str(line.closing_balance),
                    "" if line.legal_payment is None else str(line.legal_payment),
                    "" if line.excess is None else str(line.excess),
                ]
            )


def export(path_str: str, data: Any, lines=None) -> None:
    path = Path(path_str)
    suffix = path.suffix.lower()
    if suffix == ".json":
        write_json(path, data)
    elif suffix == ".csv" and lines is not None:
        export_to_csv(path, lines)
    else:
        allowed = ".json or .csv" if lines is not None else ".json"
        raise click.BadParameter(f"Unsupported output format; use {allowed}", param_hint="--output")
    click.echo(f"Exported to {path}")


def print_limited(lines, max_rows: int, show_legal: bool = False) -> None:
    if len(lines) > max_rows:
        click.echo(f"Schedule has {len(lines)} rows; showing first {max_rows} rows.")
        lines = lines[:max_rows]
    print_schedule(lines, show_legal=show_legal)


@click.group()
@click.option("--log-level", "log_level", help="Override RURAL_CREDIT_LOG_LEVEL")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Rural credit review: schedules, statutory caps, TCR and contract chains."""
    try:
        config = EngineConfig.from_env()
        if log_level:
            config = EngineConfig(
                attention_margin_pp=config.attention_margin_pp,
                log_level=log_level,
                log_format=config.log_format,
                max_rows=config.max_rows,
            )
    except RuralCreditError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(config.log_level, config.log_format)
    ctx.obj = config


@cli.command()
@with_terms
@click.option("--view", "view", type=click.Choice(VIEWS), default=FULL, help="Which installments to list")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_obj
def schedule(config: EngineConfig, terms: FinancingTerms, view: str, output: Optional[str]) -> None:
    """Compute and print the amortization schedule."""
    result = build_schedule(terms, view=view)
    summary_data = summarize(result)
    if output:
        export(output, {"summary": summary_data, "schedule": result.lines}, lines=result.lines)
        return
    print_summary(summary_data)
    print_limited(result.lines, config.max_rows)


@cli.command()
@with_terms
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(terms: FinancingTerms, output: Optional[str]) -> None:
    """Compute and print only the summary metrics of a schedule."""
    summary_data = summarize(build_schedule(terms))
    if output:
        export(output, {"summary": summary_data})
    else:
        print_summary(summary_data)


@cli.command()
@with_terms
@click.option("--modality", "modality", type=click.Choice(sorted(MODALITY_LIMITS)), help="Credit modality (selects the cap)")
@click.option("--cap", "cap", help="Explicit cap in percent a.a. (overrides the modality)")
@click.option("--margin", "margin", help="Attention margin in percentage points")
@click.option("--mora", "mora", help="Contracted moratory rate (percent a.a.)")
@click.option("--multa", "multa", help="Contracted penalty (percent)")
@click.option("--reported-balance", "reported_balance", help="Outstanding balance claimed by the lender")
@click.option("--show-lines", "show_lines", is_flag=True, help="Print the dual schedule")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_obj
def compliance(
    config: EngineConfig,
    terms: FinancingTerms,
    modality: Optional[str],
    cap: Optional[str],
    margin: Optional[str],
    mora: Optional[str],
    multa: Optional[str],
    reported_balance: Optional[str],
    show_lines: bool,
    output: Optional[str],
) -> None:
    """Compare a contract against its statutory cap and quantify the excess."""
    cap_value = parse_percent(cap) if cap else cap_for_modality(modality)
    margin_value = parse_percent(margin) if margin else config.attention_margin_pp
    try:
        verdict = compliance_analyzer.evaluate(
            terms.annual_rate,
            cap_value,
            schedule=build_schedule(terms),
            margin=margin_value,
            modality=modality,
            reported_balance=parse_amount(reported_balance) if reported_balance else None,
        )
        charges = None
        if mora is not None or multa is not None:
            charges = compliance_analyzer.evaluate_charges(
                terms.annual_rate,
                parse_percent(mora) if mora else Decimal("0"),
                parse_percent(multa) if multa else Decimal("0"),
                margin=margin_value,
                modality=modality,
            )
    except RuralCreditError as exc:
        raise to_bad_parameter(exc) from exc

    if output:
        data = {"verdict": verdict_to_dict(verdict)}
        if charges is not None:
            data["charges"] = {"status": charges.status, "moratory": verdict_to_dict(charges.moratory), "penalty": verdict_to_dict(charges.penalty)}
        export(output, data, lines=verdict.lines)
        return
    print_verdict(verdict)
    if charges is not None:
        print_verdict(charges.moratory, title="Moratory interest")
        print_verdict(charges.penalty, title="Penalty")
        click.echo(f"Overall status: {charges.status}")
    if show_lines:
        print_limited(verdict.lines, config.max_rows, show_legal=True)


@cli.command()
@click.option("--mode", "mode", type=click.Choice(MODES), required=True, help="pos (IPCA-indexed) or pre (fixed)")
@click.option("--principal", "-p", "principal", help="Principal to update by the FAM (pos)")
@click.option("--ipca", "ipca", multiple=True, help="Monthly IPCA variation in percent; repeat or separate with ';'")
@click.option("--jm", "jm", help="Pre-fixed base rate Jm (percent a.a.)")
@click.option("--fii", "fii", help="Implicit inflation factor")
@click.option("--pre", "pre", help="Pre-fixed rate used to derive the FII with Jm")
@click.option("--fp", "fp", help="Program factor")
@click.option("--program-rate", "program_rate", help="Program rate whose published FP should be used")
@click.option("--fa", "fa", default="0", help="Adjustment factor")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def tcr(
    mode: str,
    principal: Optional[str],
    ipca: Tuple[str, ...],
    jm: Optional[str],
    fii: Optional[str],
    pre: Optional[str],
    fp: Optional[str],
    program_rate: Optional[str],
    fa: str,
    output: Optional[str],
) -> None:
    """Compute the Total Real Cost (TCR) of an operation."""
    try:
        fp_value = program_factor(parse_percent(program_rate)) if program_rate else fp
        fii_value = fii
        if fii_value is None and pre is not None and jm is not None:
            fii_value = compute_fii(parse_percent(pre), parse_percent(jm))
        factors = RateFactors(
            ipca_monthly=parse_series(ipca),
            jm=jm,
            fii=fii_value,
            fp=fp_value,
            fa=fa,
        )
        result = compute_tcr(mode, factors, principal=parse_amount(principal) if principal else None)
    except RuralCreditError as exc:
        raise to_bad_parameter(exc) from exc
    if output:
        export(output, result)
    else:
        print_tcr(result)


@cli.command("late-charges")
@click.option("--balance", "-b", "balance", required=True, help="Overdue balance")
@click.option("--mora", "mora", required=True, help="Moratory rate (percent a.a.)")
@click.option("--multa", "multa", default="0", help="Penalty (percent of the balance)")
@click.option("--days", "days", required=True, type=int, help="Days overdue")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def late_charges(balance: str, mora: str, multa: str, days: int, output: Optional[str]) -> None:
    """Accrue moratory interest and penalty on an overdue balance."""
    try:
        charges = compute_late_charges(parse_amount(balance), parse_percent(mora), parse_percent(multa), days)
    except RuralCreditError as exc:
        raise to_bad_parameter(exc) from exc
    if output:
        export(output, charges)
    else:
        print_late_charges(charges)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--margin", "margin", help="Attention margin in percentage points")
@click.option("--output", "output", type=str, help="Output file path (.json)")
@click.pass_obj
def chain(config: EngineConfig, path: Path, margin: Optional[str], output: Optional[str]) -> None:
    """Analyze a chain of contracts read from a JSON file.

    The file holds a list of links (or an object with a ``links`` list); each
    link has ``order``, ``link_type`` and the financing terms, plus
    ``prior_balance`` and ``incorporated_charges`` for non-original links.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON in {path}: {exc}") from exc
    try:
        links = chain_from_dicts(data)
        report = analyze_chain(links, margin=parse_percent(margin) if margin else config.attention_margin_pp)
    except RuralCreditError as exc:
        raise click.ClickException(f"{exc} (field: {exc.field})" if exc.field else str(exc)) from exc
    if output:
        export(output, report)
    else:
        print_chain(report)


if __name__ == "__main__":
    cli()
