"""Analysis of chains of successive rural credit contracts.

A chain starts with the original contract and continues with aditivos,
refinancings, novations and renegotiations. Each link is scheduled and checked
against the cap of its modality; refinancing-type links that fold unpaid
charges into the new principal are flagged as capitalization (anatocism), and
two such links in a row as a "mata-mata" roll-over. Each refinancing or
novation is also classified by its new principal against the contract it paid
off: a principal that did not drop below 90% of the previous one is a
per-link mata-mata.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from .compliance import evaluate
from .data_models import (
    NAO_CONFORME,
    ORIGINAL,
    REFINANCIAMENTO,
    ChainAlert,
    ChainReport,
    ContractChainLink,
    LinkAnalysis,
)
from .engine import build_schedule
from .exceptions import InvalidChainError
from .limits import (
    ANATOCISM_CITATION,
    CITATIONS,
    DISCOUNTED_RENEGOTIATION_CITATION,
    DISPROPORTION_CITATION,
    MATA_MATA_CITATION,
    MORA,
    MORATORY_CAP_AA,
    REMUNERATORIO,
    ROLLOVER_CITATION,
    cap_for_modality,
)
from .utils import HUNDRED, ONE, ZERO, format_brl, to_money, to_points

logger = logging.getLogger(__name__)

CRITICO = "critico"
ATENCAO = "atencao"
INFORMATIVO = "informativo"

# Principal above the reported prior balance by more than this (percent)
# is flagged as a disproportionate increase.
DISPROPORTION_THRESHOLD = Decimal("20")

# A rollover keeping at least this share (percent) of the previous principal
# did not really reduce the debt.
ROLLOVER_KEPT_SHARE = Decimal("90")


def _validate(links: Sequence[ContractChainLink]) -> List[ContractChainLink]:
    chain = list(links)
    if not chain:
        raise InvalidChainError("A contract chain needs at least one link", field="links", constraint="non-empty")
    for position, link in enumerate(chain):
        if not isinstance(link, ContractChainLink):
            raise InvalidChainError(
                f"Link at position {position} is not a ContractChainLink", field="links", constraint="type"
            )
        if link.order != position + 1:
            raise InvalidChainError(
                f"Link orders must be contiguous from 1; position {position + 1} has order {link.order}",
                field="order",
                constraint="contiguous",
            )
    if chain[0].link_type != ORIGINAL:
        raise InvalidChainError(
            f"The first link must be the original contract; got {chain[0].link_type!r}",
            field="link_type",
            constraint="first == original",
        )
    for link in chain[1:]:
        if link.link_type == ORIGINAL:
            raise InvalidChainError(
                f"Only the first link may be original; link {link.order} is original too",
                field="link_type",
                constraint="single original",
            )
    return chain


def _label(link: ContractChainLink) -> str:
    return f"nº {link.contract_number}" if link.contract_number else f"da posição {link.order}"


def _link_alerts(
    link: ContractChainLink,
    previous: Optional[ContractChainLink],
    status: str,
    cap: Decimal,
    capitalized: bool,
) -> List[ChainAlert]:
    alerts = []
    label = _label(link)
    principal = link.terms.principal

    if status == NAO_CONFORME:
        alerts.append(
            ChainAlert(
                severity=CRITICO,
                code="TAXA_ACIMA_LEGAL",
                title="Taxa de Juros Acima do Limite Legal",
                description=(
                    f"O contrato {label} prevê taxa de juros remuneratórios de {link.terms.annual_rate:.2f}% a.a., "
                    f"superior ao limite de {cap}% a.a. aplicável."
                ),
                citation=CITATIONS[REMUNERATORIO][0],
                affected_orders=(link.order,),
            )
        )

    if link.moratory_rate is not None and link.moratory_rate > MORATORY_CAP_AA:
        alerts.append(
            ChainAlert(
                severity=CRITICO,
                code="MORA_ACIMA_LEGAL",
                title="Taxa de Mora Acima do Limite Legal",
                description=(
                    f"O contrato {label} prevê juros de mora de {link.moratory_rate:.2f}% a.a., "
                    f"superior ao limite legal de {MORATORY_CAP_AA}% a.a."
                ),
                citation=CITATIONS[MORA][0],
                affected_orders=(link.order,),
            )
        )

    if capitalized:
        alerts.append(
            ChainAlert(
                severity=CRITICO,
                code="CAPITALIZACAO_INDEVIDA",
                title="Capitalização Indevida de Encargos",
                description=(
                    f"O contrato {label} incorporou {format_brl(link.incorporated_charges)} de encargos "
                    "(juros, multas e/ou correção) ao novo principal, configurando anatocismo."
                ),
                citation=ANATOCISM_CITATION,
                affected_orders=(link.order,),
            )
        )

    if previous is not None and link.prior_balance:
        increase = principal - link.prior_balance
        percent = increase / link.prior_balance * HUNDRED
        if increase > 0 and percent > DISPROPORTION_THRESHOLD:
            alerts.append(
                ChainAlert(
                    severity=ATENCAO,
                    code="AUMENTO_DESPROPORCIONAL",
                    title="Aumento Desproporcional do Principal",
                    description=(
                        f"O valor do contrato {label} ({format_brl(principal)}) é {percent:.2f}% maior que o saldo "
                        f"devedor informado do contrato anterior ({format_brl(link.prior_balance)})."
                    ),
                    citation=DISPROPORTION_CITATION,
                    affected_orders=(link.order,),
                )
            )
    return alerts


def _rollover_alert(link: ContractChainLink, previous: ContractChainLink) -> ChainAlert:
    """Classify a refinancing or novation by its principal against the contract it paid off."""
    new = link.terms.principal
    old = previous.terms.principal
    percent = (new - old) / old * HUNDRED
    kind = "refinanciamento" if link.link_type == REFINANCIAMENTO else "novação"
    label = _label(link)
    previous_label = _label(previous)
    orders = (previous.order, link.order)

    if new > old:
        return ChainAlert(
            severity=CRITICO,
            code="MATA_MATA",
            title="Operação Mata-Mata Detectada: Aumento do Principal",
            description=(
                f"O contrato {label} ({kind}) quitou o contrato anterior {previous_label}. O novo principal "
                f"({format_brl(new)}) é {percent:.2f}% maior que o anterior ({format_brl(old)}), evidenciando "
                "incorporação de encargos ao novo principal."
            ),
            citation=ROLLOVER_CITATION,
            affected_orders=orders,
        )
    if new * HUNDRED >= old * ROLLOVER_KEPT_SHARE:
        return ChainAlert(
            severity=CRITICO,
            code="MATA_MATA",
            title="Operação Mata-Mata Suspeita: Principal Mantido",
            description=(
                f"O contrato {label} ({kind}) quitou o contrato anterior {previous_label}. O novo principal "
                f"({format_brl(new)}) é praticamente igual ao anterior ({format_brl(old)}, variação de "
                f"{abs(percent):.2f}%), sem redução real da dívida, indicando provável incorporação de encargos."
            ),
            citation=ROLLOVER_CITATION,
            affected_orders=orders,
        )
    return ChainAlert(
        severity=INFORMATIVO,
        code="RENEGOCIACAO_COM_DESCONTO",
        title="Renegociação com Redução de Saldo",
        description=(
            f"O contrato {label} ({kind}) renovou o contrato anterior {previous_label} com redução de "
            f"{abs(percent):.2f}% no valor (de {format_brl(old)} para {format_brl(new)}). Não configura "
            "operação mata-mata."
        ),
        citation=DISCOUNTED_RENEGOTIATION_CITATION,
        affected_orders=orders,
    )


def _mata_mata(capitalized: Sequence[bool]) -> bool:
    return any(a and b for a, b in zip(capitalized, capitalized[1:]))


def analyze_chain(links: Sequence[ContractChainLink], margin=None) -> ChainReport:
    """Analyze an ordered chain of contracts.

    Raises
    ------
    InvalidChainError
        If the chain is empty, its orders are not contiguous from 1, it does
        not start with the original contract or it has a second original.
    """
    chain = _validate(links)

    analyses = []
    capitalized_flags = []
    total_charges = ZERO
    previous = None
    for link in chain:
        cap = cap_for_modality(link.modality)
        schedule = build_schedule(link.terms)
        verdict = evaluate(link.terms.annual_rate, cap, schedule=schedule, margin=margin, modality=link.modality)
        capitalized = link.is_refinancing and link.incorporated_charges > 0
        if capitalized:
            total_charges += link.incorporated_charges
        change = None
        rollover_alert = None
        if previous is not None:
            change = to_points((link.terms.principal / previous.terms.principal - ONE) * HUNDRED)
            if link.is_rollover:
                rollover_alert = _rollover_alert(link, previous)
        link_alerts = _link_alerts(link, previous, verdict.status, cap, capitalized)
        if rollover_alert is not None:
            link_alerts.append(rollover_alert)

        analyses.append(
            LinkAnalysis(
                link=link,
                schedule=schedule,
                verdict=verdict,
                capitalization_detected=capitalized,
                principal_change_percent=change,
                mata_mata_detected=rollover_alert is not None and rollover_alert.code == "MATA_MATA",
                alerts=tuple(link_alerts),
            )
        )
        if link_alerts:
            logger.info(
                "Link %d (%s) flagged: %s",
                link.order,
                link.link_type,
                ", ".join(alert.code for alert in link_alerts),
                extra={
                    "order": link.order,
                    "contract": link.contract_number or None,
                    "modality": link.modality,
                    "codes": [alert.code for alert in link_alerts],
                },
            )
        capitalized_flags.append(capitalized)
        previous = link

    original = chain[0].terms.principal
    current = chain[-1].terms.principal
    mata_mata = _mata_mata(capitalized_flags)
    all_orders = tuple(link.order for link in chain)

    alerts = []
    if mata_mata:
        alerts.append(
            ChainAlert(
                severity=CRITICO,
                code="CADEIA_MATA_MATA",
                title="Cadeia de Operações Mata-Mata Identificada",
                description=(
                    f"A cadeia contém {sum(capitalized_flags)} operações de refinanciamento com encargos "
                    "incorporados, sendo ao menos duas consecutivas: novos contratos quitam os anteriores "
                    "incorporando encargos ao principal e perpetuando a dívida."
                ),
                citation=MATA_MATA_CITATION,
                affected_orders=all_orders,
            )
        )
    if total_charges > 0:
        alerts.append(
            ChainAlert(
                severity=CRITICO,
                code="TOTAL_ENCARGOS_CAPITALIZADOS",
                title=f"Total de Encargos Capitalizados: {format_brl(total_charges)}",
                description=(
                    f"Ao longo da cadeia foram incorporados {format_brl(total_charges)} de encargos ao principal "
                    "de novos contratos, valor a ser expurgado do saldo devedor atual."
                ),
                citation=ANATOCISM_CITATION,
                affected_orders=all_orders,
            )
        )

    report = ChainReport(
        links=tuple(analyses),
        alerts=tuple(alerts),
        original_principal=to_money(original),
        current_principal=to_money(current),
        principal_increase=to_money(current - original),
        growth_percent=to_points((current / original - ONE) * HUNDRED),
        total_incorporated_charges=to_money(total_charges),
        capitalization_detected=any(capitalized_flags),
        mata_mata_detected=mata_mata,
        rate_above_legal_detected=any(a.verdict.status == NAO_CONFORME for a in analyses),
    )
    logger.info(
        "Chain of %d links: growth=%s%% charges=%s capitalization=%s mata_mata=%s rate_above_legal=%s",
        len(chain),
        report.growth_percent,
        report.total_incorporated_charges,
        report.capitalization_detected,
        report.mata_mata_detected,
        report.rate_above_legal_detected,
    )
    return report
