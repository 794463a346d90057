"""Conversion between plain JSON-like data and the engine's value objects.

Used by the CLI (``chain`` reads a JSON file) and by the HTTP adapter. Parsing
raises the engine's own errors so both layers report the offending field the
same way.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .data_models import MONTHLY, ContractChainLink, FinancingTerms, RateFactors
from .exceptions import InvalidChainError, InvalidFactorError, InvalidTermError, RuralCreditError
from .utils import parse_year_month

TERM_FIELDS = (
    "principal",
    "annual_rate",
    "term",
    "system",
    "granularity",
    "paid_periods",
    "rate_convention",
    "grace_periods",
    "first_due_date",
    "actual_payments",
)


def _require_mapping(data: Any, what: str, error=InvalidTermError) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise error(f"{what} must be an object; got {type(data).__name__}", field=what, constraint="object")
    return data


def _int(data: Mapping[str, Any], name: str, default: Optional[int] = None, error=InvalidTermError) -> int:
    value = data.get(name, default)
    if value is None:
        raise error(f"{name} is required", field=name, constraint="required")
    if isinstance(value, bool):
        raise error(f"{name} must be an integer; got {value!r}", field=name, constraint="integer")
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            raise error(f"{name} must be an integer; got {value!r}", field=name, constraint="integer") from None
    return value


def parse_due_date(value: Any) -> Optional[date]:
    """Accept a ``date``, an ISO ``YYYY-MM-DD`` string or a ``YYYY-MM`` string."""
    if value is None or isinstance(value, date):
        return value
    try:
        if isinstance(value, str) and value.count("-") == 1:
            return parse_year_month(value)
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidTermError(
            f"first_due_date must be YYYY-MM or YYYY-MM-DD; got {value!r}",
            field="first_due_date",
            constraint="date",
        ) from None


def terms_from_dict(data: Mapping[str, Any]) -> FinancingTerms:
    """Build :class:`FinancingTerms` from a dict (``rate`` is accepted for ``annual_rate``)."""
    data = _require_mapping(data, "terms")
    for name in ("principal", "system"):
        if data.get(name) is None:
            raise InvalidTermError(f"{name} is required", field=name, constraint="required")
    payments = data.get("actual_payments") or ()
    if isinstance(payments, (str, Mapping)) or not isinstance(payments, Iterable):
        raise InvalidTermError("actual_payments must be a list", field="actual_payments", constraint="list")
    return FinancingTerms(
        principal=data["principal"],
        annual_rate=data.get("annual_rate", data.get("rate")),
        term=_int(data, "term"),
        system=str(data["system"]).lower(),
        granularity=str(data.get("granularity", MONTHLY)).lower(),
        paid_periods=_int(data, "paid_periods", 0),
        rate_convention=str(data.get("rate_convention", "nominal")).lower(),
        grace_periods=_int(data, "grace_periods", 0),
        first_due_date=parse_due_date(data.get("first_due_date")),
        actual_payments=tuple(payments),
    )


def factors_from_dict(data: Mapping[str, Any]) -> RateFactors:
    data = _require_mapping(data, "factors", InvalidFactorError)
    series = data.get("ipca_monthly") or ()
    if isinstance(series, (str, Mapping)) or not isinstance(series, Iterable):
        raise InvalidFactorError("ipca_monthly must be a list", field="ipca_monthly", constraint="list")
    fa = data.get("fa")
    return RateFactors(
        ipca_monthly=tuple(series),
        jm=data.get("jm"),
        fii=data.get("fii"),
        fp=data.get("fp"),
        fa=Decimal("0") if fa is None else fa,
    )


def link_from_dict(data: Mapping[str, Any]) -> ContractChainLink:
    """Build a chain link; the terms may be nested under ``terms`` or inline."""
    data = _require_mapping(data, "link", InvalidChainError)
    terms_data = data.get("terms")
    if terms_data is None:
        terms_data = {name: data[name] for name in TERM_FIELDS + ("rate",) if name in data}
    link_type = data.get("link_type", data.get("type"))
    if link_type is None:
        raise InvalidChainError("link_type is required", field="link_type", constraint="required")
    return ContractChainLink(
        order=_int(data, "order", error=InvalidChainError),
        link_type=str(link_type).lower(),
        terms=terms_from_dict(terms_data),
        prior_balance=data.get("prior_balance"),
        incorporated_charges=data.get("incorporated_charges"),
        contract_number=str(data.get("contract_number", "")),
        modality=data.get("modality"),
        moratory_rate=data.get("moratory_rate"),
    )


def chain_from_dicts(items: Any) -> List[ContractChainLink]:
    if isinstance(items, Mapping):
        items = items.get("links")
    if not isinstance(items, list):
        raise InvalidChainError("A chain must be a list of links", field="links", constraint="list")
    return [link_from_dict(item) for item in items]


def to_jsonable(value: Any) -> Any:
    """Convert engine results into JSON-serializable structures.

    Decimals become strings so no precision is lost; dates become ISO strings.
    """
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, RuralCreditError):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def verdict_to_dict(verdict) -> Dict[str, Any]:
    """Serialize a verdict, adding its derived ``is_compliant`` flag."""
    payload = to_jsonable(verdict)
    payload["is_compliant"] = verdict.is_compliant
    return payload
