"""
Platform Factory
Analysis Blueprint — requirement analysis pipeline (owner only).

Endpoints:
    POST /api/v1/analysis/analyze                  {text}
    POST /api/v1/analysis/sector-context           {text}
    POST /api/v1/analysis/generate-specification   {text}
    POST /api/v1/analysis/full-analysis            {text, options?}
    GET  /api/v1/analysis/sectors
    GET  /api/v1/analysis/capabilities

All routes share one rate-limit budget (scope ``analysis_pipeline``).
Model failures never surface here: every analysis answers, tagged with
the provenance of each part.
"""

import logging
from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from platform_factory.analysis.sectors import classify_sector, list_sectors
from platform_factory.auth import require_owner
from platform_factory.core.exceptions import ValidationError
from platform_factory.middleware.timing import current_trace_id
from platform_factory.models import db
from platform_factory.services.pipeline_service import get_pipeline

logger = logging.getLogger(__name__)

analysis_bp = Blueprint("analysis", __name__, url_prefix="/api/v1/analysis")

CAPABILITIES = {
    "languages": ["ar", "en", "mixed"],
    "sectors": ["healthcare", "military", "government", "commercial", "education", "financial"],
    "operations": [
        {"id": "analyze", "method": "POST", "path": "/api/v1/analysis/analyze",
         "description": "Intents, entities, keywords and summary of a request"},
        {"id": "sector-context", "method": "POST", "path": "/api/v1/analysis/sector-context",
         "description": "Sector, regulations and security level of a request"},
        {"id": "generate-specification", "method": "POST", "path": "/api/v1/analysis/generate-specification",
         "description": "Technical specification with sector rules applied"},
        {"id": "full-analysis", "method": "POST", "path": "/api/v1/analysis/full-analysis",
         "description": "Analysis, sector context and specification; optional scaffold build",
         "options": {"generateScaffold": "boolean"}},
    ],
    "provenance": ["generated", "heuristic"],
    "scaffold": {
        "stack": ["React", "TypeScript", "Express", "PostgreSQL", "Drizzle ORM", "Docker"],
        "flags": ["hasAuth", "hasPayments", "hasSubscriptions", "hasCMS", "hasAnalytics"],
    },
}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _require_text(data: dict) -> str:
    """Validate the ``text`` field before any model call is made."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"field": "body", "reason": "type"})
    text = data.get("text")
    if text is None:
        raise ValidationError("text is required", details={"field": "text", "reason": "missing"})
    if not isinstance(text, str):
        raise ValidationError("text must be a string", details={"field": "text", "reason": "type"})
    if not text.strip():
        raise ValidationError("text must not be empty", details={"field": "text", "reason": "missing"})

    max_length = current_app.config.get("MAX_TEXT_LENGTH", 20000)
    if len(text) > max_length:
        raise ValidationError(
            f"text exceeds {max_length} characters",
            details={"field": "text", "reason": "too_long", "maxLength": max_length},
        )
    return text


def _trace(endpoint: str) -> str:
    trace_id = current_trace_id()
    logger.info(
        "Pipeline request %s by %s", endpoint, g.current_user_id,
        extra={
            "trace_id": trace_id,
            "endpoint": endpoint,
            "caller_id": g.current_user_id,
        },
    )
    return trace_id


def _commit():
    """Commit usage logs (and SQL-backed builds) written during the request."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Failed to commit pipeline records: %s", e)


# ══════════════════════════════════════════════════════════════════════════════
# PIPELINE
# ══════════════════════════════════════════════════════════════════════════════

@analysis_bp.route("/analyze", methods=["POST"])
@require_owner
def analyze():
    data = request.get_json(silent=True) or {}
    text = _require_text(data)
    _trace("analyze")

    result = get_pipeline().analyze(text, user=g.current_user_id)
    _commit()
    return jsonify(result), 200


@analysis_bp.route("/sector-context", methods=["POST"])
@require_owner
def sector_context():
    data = request.get_json(silent=True) or {}
    text = _require_text(data)
    _trace("sector-context")
    return jsonify(classify_sector(text).to_wire()), 200


@analysis_bp.route("/generate-specification", methods=["POST"])
@require_owner
def generate_specification():
    data = request.get_json(silent=True) or {}
    text = _require_text(data)
    _trace("generate-specification")

    result = get_pipeline().generate_specification(text, user=g.current_user_id)
    _commit()
    return jsonify(result), 200


@analysis_bp.route("/full-analysis", methods=["POST"])
@require_owner
def full_analysis():
    data = request.get_json(silent=True) or {}
    text = _require_text(data)
    options = data.get("options") or {}
    if not isinstance(options, dict):
        raise ValidationError("options must be an object", details={"field": "options", "reason": "type"})
    _trace("full-analysis")

    result = get_pipeline().full_analysis(text, options, user=g.current_user_id)
    _commit()
    return jsonify(result), 200


# ══════════════════════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════════════════════

@analysis_bp.route("/sectors", methods=["GET"])
@require_owner
def sectors():
    return jsonify({"sectors": list_sectors()}), 200


@analysis_bp.route("/capabilities", methods=["GET"])
@require_owner
def capabilities():
    return jsonify(CAPABILITIES), 200
