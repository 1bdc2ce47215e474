# neardiag/routes/datapacks.py
# -*- coding: utf-8 -*-
import logging
from typing import List, Optional

from flask import Blueprint, jsonify, request

from ..extensions import get_engine
from ..models import QUARTIER_ID, DemographicFilter

logger = logging.getLogger(__name__)

bp = Blueprint("datapacks", __name__)


def parse_selection() -> List[str]:
    """?sus=1,2 or ?sus=1&sus=2 -> ['1', '2']"""
    out = []
    for raw in request.args.getlist("sus"):
        out += [s.strip() for s in raw.split(",") if s.strip()]
    return out


def parse_demographic() -> Optional[DemographicFilter]:
    f = DemographicFilter(gender=request.args.get("gender") or None,
                          age_category=request.args.get("age") or None)
    return None if f.is_empty else f


@bp.get("/api/v1/cohorts")
def cohorts():
    engine = get_engine()
    tables = engine.context.tables
    return jsonify({
        "quartier": {
            "id": QUARTIER_ID,
            "name": tables.quartier_name,
            "color": tables.quartier_color,
            "population": tables.quartier_population,
        },
        "cohorts": [c.to_dict() for c in engine.context.translator.cohorts()],
    })


@bp.get("/api/v1/datapacks")
def list_datapacks():
    prefix = request.args.get("prefix", "")
    return jsonify(get_engine().registry.describe(prefix))


@bp.get("/api/v1/datapacks/<name>")
def get_datapack(name):
    registry = get_engine().registry
    if name not in registry:
        return jsonify({"error": f"unknown datapack '{name}'"}), 404
    dp = registry.get(name)
    try:
        if dp.kind == "graph":
            res = dp.get_graph(parse_selection(), parse_demographic())
        else:
            res = dp.get_distribution(parse_selection(), parse_demographic())
        payload = res.to_dict()
        payload["datapack"] = dp.name
        return jsonify(payload)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Error computing datapack {name}: {str(e)}")
        return jsonify({"error": "Internal server error"}), 500


@bp.post("/api/v1/datapacks/invalidate")
def invalidate():
    body = request.get_json(silent=True) or {}
    name = body.get("name") or request.args.get("name")
    try:
        done = get_engine().registry.invalidate(name)
    except KeyError as e:
        return jsonify({"error": str(e.args[0]) if e.args else "not found"}), 404
    return jsonify({"message": "invalidated", "datapacks": done})
