"""
Platform Factory
Platforms Blueprint — scaffold builds and downloads.

Endpoints:
    POST /api/v1/platforms/build              PlatformSpec → BuildResult (201)
    GET  /api/v1/platforms/builds/<id>        build summary
    GET  /api/v1/platforms/download/<id>      scaffold ZIP
"""

import io
import logging

import pydantic
from flask import Blueprint, g, jsonify, request, send_file
from sqlalchemy.exc import SQLAlchemyError

from platform_factory.auth import require_auth
from platform_factory.builds import create_zip_bytes
from platform_factory.codegen.models import PlatformSpec
from platform_factory.core.exceptions import ValidationError
from platform_factory.models import db
from platform_factory.services.pipeline_service import get_build_registry

logger = logging.getLogger(__name__)

platforms_bp = Blueprint("platforms", __name__, url_prefix="/api/v1/platforms")


def _parse_spec(data: dict) -> PlatformSpec:
    try:
        return PlatformSpec.model_validate(data)
    except pydantic.ValidationError as e:
        errors = {
            ".".join(str(loc) for loc in err["loc"]) or "body": err["msg"]
            for err in e.errors()
        }
        missing = any(err["type"] == "missing" for err in e.errors())
        raise ValidationError(
            "Invalid platform specification",
            details={"reason": "missing" if missing else "invalid", "fields": errors},
        ) from None


@platforms_bp.route("/build", methods=["POST"])
@require_auth
def build_platform():
    data = request.get_json(silent=True) or {}
    spec = _parse_spec(data)

    build = get_build_registry().create_build(spec)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Failed to persist build %s: %s", build.id, e)
        raise

    logger.info("Build %s requested by %s: %s", build.id, g.current_user_id, build.status,
                extra={"build_id": build.id, "caller_id": g.current_user_id})
    return jsonify(build.to_wire()), 201


@platforms_bp.route("/builds/<build_id>", methods=["GET"])
@require_auth
def get_build(build_id):
    return jsonify(get_build_registry().get_build(build_id).summary()), 200


@platforms_bp.route("/download/<build_id>", methods=["GET"])
@require_auth
def download(build_id):
    build = get_build_registry().get_build(build_id)
    archive = create_zip_bytes(build)
    return send_file(
        io.BytesIO(archive),
        mimetype="application/zip",
        as_attachment=True,
        download_name=f"{build.id}.zip",
    )
