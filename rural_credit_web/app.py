"""JSON HTTP adapter for the rural credit engine.

Every endpoint accepts and returns JSON. Decimals are rendered as strings and
validation errors become ``400`` responses carrying the offending field and
the violated constraint.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from rural_credit import compliance
from rural_credit.chain import analyze_chain
from rural_credit.config import ApiConfig
from rural_credit.debt import compute_late_charges
from rural_credit.engine import FULL, VIEWS, build_schedule, summarize
from rural_credit.exceptions import RuralCreditError
from rural_credit.limits import (
    ATTENTION_MARGIN_PP,
    MCR_UPDATE,
    MODALITY_LIMITS,
    MORATORY_CAP_AA,
    PENALTY_CAP,
    REMUNERATIVE_CAP_AA,
    cap_for_modality,
    list_modalities,
)
from rural_credit.logging import setup_logging
from rural_credit.serialization import (
    chain_from_dicts,
    factors_from_dict,
    terms_from_dict,
    to_jsonable,
    verdict_to_dict,
)
from rural_credit.tcr import compute_fii, compute_tcr, program_factor

logger = logging.getLogger(__name__)


class BadRequest(RuralCreditError):
    """Raised for request bodies that are not the expected JSON object."""


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object", field="body", constraint="json object")
    return data


def _terms_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    return data.get("terms", data)


def _serialize_schedule(schedule) -> list:
    return [to_jsonable(line) for line in schedule]


def create_app(config: Optional[ApiConfig] = None) -> Flask:
    """Build the Flask application."""
    config = config or ApiConfig.from_env()
    margin_default: Decimal = config.engine.attention_margin_pp

    app = Flask(__name__)
    app.config["RURAL_CREDIT"] = config
    app.json.sort_keys = False

    @app.errorhandler(RuralCreditError)
    def handle_engine_error(exc: RuralCreditError):
        logger.info("Rejected request to %s: %s", request.path, exc)
        return jsonify(exc.to_dict()), 400

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/api/limits")
    def limits():
        return jsonify(
            {
                "remunerative_cap": str(REMUNERATIVE_CAP_AA),
                "moratory_cap": str(MORATORY_CAP_AA),
                "penalty_cap": str(PENALTY_CAP),
                "attention_margin_pp": str(margin_default),
                "default_attention_margin_pp": str(ATTENTION_MARGIN_PP),
                "mcr_update": MCR_UPDATE,
                "modalities": list_modalities(),
            }
        )

    @app.post("/api/schedule")
    def schedule():
        data = _payload()
        view = data.get("view", FULL)
        if view not in VIEWS:
            raise BadRequest(f"view must be one of {VIEWS}; got {view!r}", field="view", constraint="choice")
        result = build_schedule(terms_from_dict(_terms_payload(data)), view=view)
        return jsonify(
            {
                "summary": to_jsonable(summarize(result)),
                "period_rate": str(result.period_rate),
                "schedule": _serialize_schedule(result),
            }
        )

    @app.post("/api/compliance")
    def evaluate_compliance():
        data = _payload()
        terms = terms_from_dict(_terms_payload(data))
        modality = data.get("modality")
        if modality is not None and modality not in MODALITY_LIMITS:
            raise BadRequest(f"Unknown credit modality {modality!r}", field="modality", constraint="choice")
        cap = data.get("cap")
        if cap is None:
            cap = cap_for_modality(modality)
        margin = data.get("margin", margin_default)
        verdict = compliance.evaluate(
            terms.annual_rate,
            cap,
            schedule=build_schedule(terms),
            margin=margin,
            modality=modality,
            reported_balance=data.get("reported_balance"),
        )
        body: Dict[str, Any] = {"verdict": verdict_to_dict(verdict)}
        if "moratory_rate" in data or "penalty_rate" in data:
            charges = compliance.evaluate_charges(
                terms.annual_rate,
                data.get("moratory_rate", 0),
                data.get("penalty_rate", 0),
                margin=margin,
                modality=modality,
            )
            body["charges"] = {
                "status": charges.status,
                "remunerative": verdict_to_dict(charges.remunerative),
                "moratory": verdict_to_dict(charges.moratory),
                "penalty": verdict_to_dict(charges.penalty),
            }
        return jsonify(body)

    @app.post("/api/tcr")
    def tcr():
        data = _payload()
        raw_factors = data.get("factors", data)
        if not isinstance(raw_factors, dict):
            raise BadRequest("factors must be a JSON object", field="factors", constraint="json object")
        factors_data = dict(raw_factors)
        if factors_data.get("fp") is None and data.get("program_rate") is not None:
            factors_data["fp"] = program_factor(data["program_rate"])
        if factors_data.get("fii") is None and data.get("pre") is not None and factors_data.get("jm") is not None:
            factors_data["fii"] = compute_fii(data["pre"], factors_data["jm"])
        result = compute_tcr(data.get("mode"), factors_from_dict(factors_data), principal=data.get("principal"))
        return jsonify(to_jsonable(result))

    @app.post("/api/late-charges")
    def late_charges():
        data = _payload()
        charges = compute_late_charges(
            data.get("balance"),
            data.get("moratory_rate"),
            data.get("penalty_rate", 0),
            data.get("days_overdue"),
        )
        return jsonify(to_jsonable(charges))

    @app.post("/api/chain")
    def chain():
        data = _payload()
        report = analyze_chain(chain_from_dicts(data.get("links")), margin=data.get("margin", margin_default))
        body = to_jsonable(report)
        body["all_alerts"] = to_jsonable(report.all_alerts)
        return jsonify(body)

    return app


def main() -> None:
    config = ApiConfig.from_env()
    setup_logging(config.engine.log_level, config.engine.log_format)
    create_app(config).run(host=config.host, port=config.port, debug=config.debug)


if __name__ == "__main__":
    main()
