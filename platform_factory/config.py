"""
Platform Factory
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'platform_factory_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _normalise_db_url(raw: str) -> str:
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy (AI usage log + SQL build store)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Request guards
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # 2 MB
    MAX_TEXT_LENGTH = int(os.getenv("MAX_TEXT_LENGTH", "20000"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL")
    LOG_FORMAT = os.getenv("LOG_FORMAT")
    SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "1000"))

    # Authentication
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    API_KEYS = os.getenv("API_KEYS", "")
    OWNER_USER_ID = os.getenv("OWNER_USER_ID", "")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "platform-factory")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))

    # LLM gateway
    LLM_DEFAULT_CHAT_MODEL = os.getenv("LLM_DEFAULT_CHAT_MODEL", "claude-3-5-haiku-20241022")
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
    LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "1"))
    PROMPTS_DIR = os.getenv("PROMPTS_DIR")

    # Rate limiting (Flask-Limiter)
    PIPELINE_RATE_LIMIT = os.getenv("PIPELINE_RATE_LIMIT", "30 per 60 seconds")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_STRATEGY = "moving-window"
    RATELIMIT_ENABLED = True

    # Builds
    BUILD_STORE_BACKEND = os.getenv("BUILD_STORE_BACKEND", "memory")
    BUILD_STORE_MAX_ENTRIES = int(os.getenv("BUILD_STORE_MAX_ENTRIES", "500"))

    # Sector profiles (None → packaged analysis/data/sectors.yaml)
    SECTOR_PROFILES_PATH = os.getenv("SECTOR_PROFILES_PATH")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalise_db_url(_raw_db_url) if _raw_db_url else _SQLITE_DEV
    # Auth disabled by default in development for convenience
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = "testing-secret-key-with-at-least-32-bytes"
    API_AUTH_ENABLED = "true"
    API_KEYS = "owner-key:owner,member-key:member"
    OWNER_USER_ID = "owner"
    RATELIMIT_STORAGE_URI = "memory://"
    BUILD_STORE_BACKEND = "memory"
    LLM_DEFAULT_CHAT_MODEL = "local-stub"
    LLM_TIMEOUT_SECONDS = 5.0
    LLM_MAX_RETRIES = 0


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _normalise_db_url(_raw_db_url) if _raw_db_url else _SQLITE_DEV
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    def __init__(self):
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if self.BUILD_STORE_BACKEND == "sql" and not os.getenv("DATABASE_URL"):
            raise RuntimeError("DATABASE_URL environment variable is required for BUILD_STORE_BACKEND=sql")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
