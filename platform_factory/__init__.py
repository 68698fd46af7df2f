"""
Platform Factory
Flask Application Factory.

Usage:
    from platform_factory import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import json
import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter

from platform_factory.auth import caller_rate_limit_key, init_auth
from platform_factory.config import config
from platform_factory.middleware.logging_config import configure_logging
from platform_factory.middleware.rate_limiter import init_rate_limits
from platform_factory.middleware.timing import init_request_timing
from platform_factory.models import db
from platform_factory.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=caller_rate_limit_key,
    default_limits=[],                     # per-blueprint limits only
)


def _ensure_sqlite_dir(uri: str):
    if uri.startswith("sqlite:///") and ":memory:" not in uri:
        os.makedirs(os.path.dirname(uri[len("sqlite:///"):]) or ".", exist_ok=True)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    _ensure_sqlite_dir(app.config["SQLALCHEMY_DATABASE_URI"])
    db.init_app(app)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Request timing middleware (assigns the trace id) ─────────────────
    init_request_timing(app)

    # ── Authentication middleware ────────────────────────────────────────
    init_auth(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.get_data(cache=True) and "json" not in ct:
                abort(415, description="Content-Type must be application/json")
        return None

    # ── Import all models so create_all() sees them ──────────────────────
    from platform_factory.models import ai as _ai_models        # noqa: F401
    from platform_factory.models import build as _build_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from platform_factory.blueprints.analysis_bp import analysis_bp
    from platform_factory.blueprints.health_bp import health_bp
    from platform_factory.blueprints.platforms_bp import platforms_bp

    app.register_blueprint(analysis_bp)
    app.register_blueprint(platforms_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("build-scaffold")
    @click.argument("spec_json", type=click.Path(exists=True, dir_okay=False))
    @click.argument("output_zip", type=click.Path(dir_okay=False, writable=True))
    def build_scaffold_cmd(spec_json, output_zip):
        """Build a scaffold from a PlatformSpec JSON file and write the ZIP."""
        from platform_factory.builds import create_zip_bytes
        from platform_factory.codegen.models import PlatformSpec
        from platform_factory.services.pipeline_service import get_build_registry

        with open(spec_json, "r", encoding="utf-8") as f:
            spec = PlatformSpec.model_validate(json.load(f))

        build = get_build_registry().create_build(spec)
        db.session.commit()
        if build.status != "complete":
            raise click.ClickException(f"Build {build.id} failed: {build.error}")

        with open(output_zip, "wb") as f:
            f.write(create_zip_bytes(build))
        logger.info("Wrote %d files for build %s to %s", len(build.files), build.id, output_zip)
        click.echo(build.id)

    @app.cli.command("classify-sector")
    @click.argument("text")
    def classify_sector_cmd(text):
        """Print the sector context for TEXT as JSON."""
        from platform_factory.analysis.sectors import classify_sector

        click.echo(json.dumps(classify_sector(text).to_wire(), ensure_ascii=False, indent=2))

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
