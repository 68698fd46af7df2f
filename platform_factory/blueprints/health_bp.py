"""
Health probes.

    GET /api/v1/health/ready   process is up (load balancer probe)
    GET /api/v1/health/live    database, sector catalog and LLM provider status

Both are exempt from rate limiting and authentication.
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from platform_factory.analysis.sectors import get_sector_catalog
from platform_factory.models import db
from platform_factory.services.pipeline_service import get_gateway

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


def _probe_database() -> dict:
    started = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _probe_sectors() -> dict:
    catalog = get_sector_catalog()
    return {"status": "ok", "version": catalog.version, "count": len(catalog.priority)}


def _probe_llm() -> dict:
    # local stub is always registered, so this probe cannot fail
    return {
        "status": "ok",
        "providers": get_gateway().available_providers,
        "default_model": current_app.config.get("LLM_DEFAULT_CHAT_MODEL"),
    }


_PROBES = (
    ("database", _probe_database, (SQLAlchemyError,)),
    ("sectors", _probe_sectors, (OSError, ValueError)),
    ("llm", _probe_llm, ()),
)


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {}
    for name, probe, expected_errors in _PROBES:
        try:
            checks[name] = probe()
        except expected_errors as exc:
            logger.error("Health probe %s failed: %s", name, exc)
            checks[name] = {"status": "error", "detail": str(exc)}

    checks["builds"] = {"backend": current_app.config.get("BUILD_STORE_BACKEND", "memory")}

    healthy = all(check.get("status", "ok") == "ok" for check in checks.values())
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
