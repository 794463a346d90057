"""Output helpers for the rural credit CLI.

Schedules, compliance verdicts, TCR results and chain reports are rendered as
plain tab-separated text so they can be piped into other tools.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .data_models import ChainReport, ComplianceVerdict, InstallmentLine, LateCharges, TCRResult

RULE = "-" * 72


def print_summary(summary: Dict[str, object]) -> None:
    """Print schedule metrics in a human-readable format."""
    print("Summary")
    print(RULE)
    print(f"Principal financed : {summary['principal_financed']:.2f}")
    print(f"Annual rate        : {summary['annual_rate']}% ({summary['rate_convention']})")
    print(f"Period rate        : {summary['period_rate']}%")
    print(f"Effective annual   : {summary['effective_annual_rate']}%")
    print(f"System / term      : {summary['system']} / {summary['term']} {summary['granularity']}")
    print(f"Total interest     : {summary['total_interest']:.2f}")
    print(f"Total payment      : {summary['total_payment']:.2f}")
    print(f"First payment      : {summary['first_payment']:.2f}")
    print(f"Highest payment    : {summary['max_payment']:.2f}")
    if summary.get("paid_periods"):
        print(f"Paid installments  : {summary['paid_periods']}")
        print(f"Total paid         : {summary['total_paid']:.2f}")
    if "amount_actually_paid" in summary:
        print(f"Actually paid      : {summary['amount_actually_paid']:.2f}")
    print(f"Outstanding balance: {summary['outstanding_balance']:.2f}")
    print(RULE)


def print_schedule(lines: Iterable[InstallmentLine], show_legal: bool = False) -> None:
    """Print schedule lines as a simple table.

    Parameters
    ----------
    lines: Iterable[InstallmentLine]
        The lines to print.
    show_legal: bool
        Whether to include the legal payment and excess columns filled in by
        the compliance analyzer.
    """
    headers = ["Period", "Due", "Opening", "Interest", "Amortization", "Payment", "Closing"]
    if show_legal:
        headers.extend(["LegalPayment", "Excess"])
    print("\t".join(headers))
    for line in lines:
        row = [
            str(line.index),
            line.due_date.isoformat() if line.due_date else "-",
            f"{line.opening_balance:.2f}",
            f"{line.interest:.2f}",
            f"{line.amortization:.2f}",
            f"{line.payment:.2f}",
            f"{line.closing_balance:.2f}",
        ]
        if show_legal:
            row.append(f"{line.legal_payment:.2f}" if line.legal_payment is not None else "-")
            row.append(f"{line.excess:.2f}" if line.excess is not None else "-")
        print("\t".join(row))


def print_verdict(verdict: ComplianceVerdict, title: str = "Compliance") -> None:
    print(title)
    print(RULE)
    print(f"Status             : {verdict.status}")
    print(f"Charge             : {verdict.charge_kind}")
    print(f"Evaluated rate     : {verdict.evaluated_rate}%")
    print(f"Cap                : {verdict.cap}%")
    print(f"Difference         : {verdict.difference_pp:+.2f} p.p. (margin {verdict.margin_pp})")
    if verdict.total_excess is not None:
        print(f"Total excess       : {verdict.total_excess:.2f}")
        print(f"Excess paid        : {verdict.paid_excess:.2f}")
        print(f"Interest charged   : {verdict.total_interest:.2f}")
        print(f"Legal interest     : {verdict.total_legal_interest:.2f}")
        print(f"Outstanding        : {verdict.outstanding_balance:.2f}")
        print(f"Legal outstanding  : {verdict.legal_outstanding_balance:.2f}")
    if verdict.reported_balance is not None:
        print(f"Reported balance   : {verdict.reported_balance:.2f}")
        print(f"Balance overstated : {verdict.balance_difference:.2f}")
    for citation in verdict.citations:
        print(f"  * {citation}")
    print(RULE)


def print_late_charges(charges: LateCharges) -> None:
    print("Late charges")
    print(RULE)
    print(f"Balance            : {charges.balance:.2f}")
    print(f"Days overdue       : {charges.days_overdue}")
    print(f"Moratory interest  : {charges.moratory_interest:.2f}")
    print(f"Penalty            : {charges.penalty:.2f}")
    print(f"Total due          : {charges.total_due:.2f}")
    print(RULE)


def print_tcr(result: TCRResult) -> None:
    print(f"TCR ({result.mode})")
    print(RULE)
    if result.fam is not None:
        print(f"FAM                : {result.fam:.7f}")
        print(f"Accumulated IPCA   : {result.accumulated_inflation}%")
        print(f"Months             : {result.months}")
    if result.jm is not None:
        print(f"Jm                 : {result.jm}%")
        print(f"FII                : {result.fii}")
    print(f"FP / FA            : {result.fp} / {result.fa}")
    print(f"TCR                : {result.effective_rate}%")
    print(f"TCR a.a.           : {result.annualized_rate}%")
    if result.updated_balance is not None:
        print(f"Updated balance    : {result.updated_balance:.2f}")
    print(RULE)


def print_chain(report: ChainReport) -> None:
    print("Contract chain")
    print(RULE)
    print("\t".join(["Order", "Type", "Contract", "Principal", "Rate", "Status", "Change%", "Capitalized", "Mata-mata"]))
    for analysis in report.links:
        link = analysis.link
        print(
            "\t".join(
                [
                    str(link.order),
                    link.link_type,
                    link.contract_number or "-",
                    f"{link.terms.principal:.2f}",
                    f"{link.terms.annual_rate}",
                    analysis.verdict.status,
                    f"{analysis.principal_change_percent}" if analysis.principal_change_percent is not None else "-",
                    "yes" if analysis.capitalization_detected else "no",
                    "yes" if analysis.mata_mata_detected else "no",
                ]
            )
        )
    print(RULE)
    print(f"Original principal : {report.original_principal:.2f}")
    print(f"Current principal  : {report.current_principal:.2f}")
    print(f"Growth             : {report.growth_percent}%")
    print(f"Charges folded in  : {report.total_incorporated_charges:.2f}")
    print(f"Mata-mata          : {'yes' if report.mata_mata_detected else 'no'}")
    print(f"Rate above legal   : {'yes' if report.rate_above_legal_detected else 'no'}")
    for alert in report.all_alerts:
        orders = ",".join(str(o) for o in alert.affected_orders)
        print(f"[{alert.severity.upper()}] {alert.code} ({orders}): {alert.title}")
    print(RULE)
