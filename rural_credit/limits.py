"""Statutory limits for rural credit charges.

The caps below derive from statute and Central Bank regulation, so they are
compiled into the engine and only change with a new release. Callers may pick
a credit modality to compare against its MCR table rate; modalities with freely
agreed charges fall back to the 12 % a.a. judicial review parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

REMUNERATIVE_CAP_AA = Decimal("12.0")  # Decreto 22.626/33 (Lei de Usura)
MORATORY_CAP_AA = Decimal("1.0")  # Decreto-Lei 167/67, art. 5
PENALTY_CAP = Decimal("2.0")  # percent of the overdue balance

# Percentage points above a cap still reported as "atencao".
ATTENTION_MARGIN_PP = Decimal("0.50")

REMUNERATORIO = "remuneratorio"
MORA = "mora"
MULTA = "multa"
CHARGE_KINDS = (REMUNERATORIO, MORA, MULTA)

STATUTORY_CAPS: Dict[str, Decimal] = {
    REMUNERATORIO: REMUNERATIVE_CAP_AA,
    MORA: MORATORY_CAP_AA,
    MULTA: PENALTY_CAP,
}

CITATIONS: Dict[str, Tuple[str, ...]] = {
    REMUNERATORIO: (
        "Decreto nº 22.626/33 (Lei de Usura), art. 1º: juros remuneratórios limitados a 12% a.a.",
        "STJ, REsp 1.061.530/RS (recurso repetitivo): revisão de encargos abusivos",
        "STJ, REsp 1.112.879/PR: limitação a 12% a.a. na ausência de deliberação do CMN",
    ),
    MORA: (
        "Decreto-Lei nº 167/67, art. 5º, parágrafo único: juros de mora limitados a 1% a.a.",
        "STJ, REsp 1.509.057/RS: juros moratórios em cédula de crédito rural",
    ),
    MULTA: (
        "Código de Defesa do Consumidor, art. 52, § 1º: multa moratória limitada a 2%",
        "Lei nº 9.298/96: redução da multa moratória para 2%",
    ),
}

ANATOCISM_CITATION = "Decreto nº 22.626/33, art. 4º (anatocismo); STJ, REsp 1.286.698/RS; AgRg no REsp 1.370.585/RS"
MATA_MATA_CITATION = "AgRg no REsp 1.370.585/RS; REsp 1.061.530/RS; TRF-4, AC 5003210-21.2018.4.04.7112"
DISPROPORTION_CITATION = "CDC, art. 39, V; Código Civil, arts. 422 e 478"
ROLLOVER_CITATION = "AgRg no REsp 1.370.585/RS; REsp 1.286.698/RS; Decreto nº 22.626/33, art. 4º"
DISCOUNTED_RENEGOTIATION_CITATION = "Código Civil, art. 385 (novação com redução da obrigação) e art. 840 (transação)"

MCR_UPDATE = "Atualização MCR nº 752, de 19/01/2026"


@dataclass(frozen=True)
class ModalityLimit:
    """Maximum pre-fixed rate of a credit modality (``None`` = freely agreed)."""

    modality: str
    label: str
    max_rate: Optional[Decimal]
    citation: str
    program: Optional[str] = None

    @property
    def freely_agreed(self) -> bool:
        return self.max_rate is None


def _limit(modality: str, label: str, rate: Optional[str], citation: str, program: Optional[str] = None) -> ModalityLimit:
    return ModalityLimit(
        modality=modality,
        label=label,
        max_rate=Decimal(rate) if rate is not None else None,
        citation=citation,
        program=program,
    )


MODALITY_LIMITS: Dict[str, ModalityLimit] = {
    limit.modality: limit
    for limit in (
        _limit("custeio_obrigatorio", "Custeio — Recursos Obrigatórios", "14.0", "MCR 7-1, Tabela 1, item 1.1-1; Res. CMN 5.234"),
        _limit("custeio_livre", "Custeio — Recursos Livres", None, "MCR 7-1, Tabela 1, item 1.1-4; Res. CMN 5.234"),
        _limit("investimento_subvencionado", "Investimento — Subvencionado (equalização)", "12.5", "MCR 7-1, Tabela 1, item 1.1-2; Res. CMN 5.234"),
        _limit("investimento_livre", "Investimento — Recursos Livres", None, "MCR 7-1, Tabela 1, item 1.1-4; Res. CMN 5.234"),
        _limit("comercializacao", "Comercialização", "14.0", "MCR 7-1, Tabela 1, item 1.1-1; Res. CMN 5.234"),
        _limit("industrializacao", "Industrialização", "14.0", "MCR 7-1, Tabela 1, item 1.1-1; Res. CMN 5.234"),
        _limit("pronaf_b", "Pronaf Grupo B (Microcrédito)", "0.5", "MCR 7-6, Tabela 1, item 13; Res. CMN 5.099", "Pronaf"),
        _limit("pronaf_custeio", "Pronaf Custeio (Grupos C, D, E, V)", "5.0", "MCR 7-6, Tabela 1, item 4; Res. CMN 5.099", "Pronaf"),
        _limit("pronaf_investimento", "Pronaf Investimento (Mais Alimentos)", "5.0", "MCR 7-6, Tabela 1, item 5; Res. CMN 5.099", "Pronaf"),
        _limit("pronaf_agroecologia", "Pronaf Agroecologia / Floresta / Semiárido", "3.0", "MCR 7-6, Tabela 1, itens 7, 8 e 14; Res. CMN 5.099", "Pronaf"),
        _limit("pronamp_custeio", "Pronamp Custeio (Médio Produtor)", "8.0", "MCR 7-4, Tabela 1, item 1.1-1; Res. CMN 5.234", "Pronamp"),
        _limit("pronamp_investimento", "Pronamp Investimento (Médio Produtor)", "8.5", "MCR 7-4, Tabela 1, item 1.1-2; Res. CMN 5.234", "Pronamp"),
        _limit("nao_controlado", "Recursos Não Controlados (livre pactuação)", None, "MCR 7-1, Tabela 1, item 1.1-4; Res. CMN 5.234"),
    )
}


def cap_for_modality(modality: Optional[str]) -> Decimal:
    """Return the remunerative cap (percent a.a.) to compare a contract against.

    ``None`` and freely agreed modalities use the 12 % a.a. parameter applied
    by the courts. Unknown modalities raise ``KeyError``.
    """
    if modality is None:
        return REMUNERATIVE_CAP_AA
    limit = MODALITY_LIMITS[modality]
    return REMUNERATIVE_CAP_AA if limit.freely_agreed else limit.max_rate


def citations_for(kind: str, modality: Optional[str] = None) -> Tuple[str, ...]:
    """Legal citations backing the cap of ``kind`` (and of ``modality``, if any)."""
    citations = CITATIONS[kind]
    if kind == REMUNERATORIO and modality is not None:
        limit = MODALITY_LIMITS[modality]
        if limit.freely_agreed:
            note = f"{limit.citation}: livre pactuação; parâmetro judicial de 12% a.a."
        else:
            note = f"{limit.citation} ({MCR_UPDATE}): taxa máxima de {limit.max_rate}% a.a."
        citations = (note,) + citations
    return citations


def list_modalities() -> List[Dict[str, object]]:
    """Describe every modality for selectors in the calling layer."""
    return [
        {
            "modality": limit.modality,
            "label": limit.label,
            "max_rate": str(limit.max_rate) if limit.max_rate is not None else None,
            "comparison_cap": str(cap_for_modality(limit.modality)),
            "program": limit.program,
            "citation": limit.citation,
        }
        for limit in MODALITY_LIMITS.values()
    ]
