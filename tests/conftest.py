"""
Shared pytest fixtures for the Platform Factory test suite.

Provides:
    - app: Flask application (session-scoped, "testing" config)
    - session: Per-test app context + DB / limiter / build store cleanup (autouse)
    - client: Flask test client
    - owner_headers / member_headers: X-API-Key headers for the two test callers
    - failing_gateway / stub_gateway: gateways for the analysis components
    - make_failing_gateway / make_canned_gateway: gateway double factories
"""

import pytest
from flask import current_app

from platform_factory import create_app, limiter
from platform_factory.ai.gateway import LLMGateway, LocalStubProvider
from platform_factory.ai.prompt_registry import PromptRegistry
from platform_factory.builds import InMemoryBuildStore
from platform_factory.core.exceptions import UpstreamModelError
from platform_factory.models import db as _db
from platform_factory.models.ai import AIUsageLog
from platform_factory.models.build import BuildRecord

OWNER_KEY = "owner-key"
MEMBER_KEY = "member-key"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def session(app):
    """Per-test: open app context, reset rate limits, clear builds and usage logs."""
    with app.app_context():
        limiter.reset()
        yield
        _db.session.rollback()
        for model in (AIUsageLog, BuildRecord):
            _db.session.query(model).delete()
        _db.session.commit()
        registry = getattr(current_app, "_pf_build_registry", None)
        if registry is not None and isinstance(registry.store, InMemoryBuildStore):
            registry.store.clear()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def owner_headers():
    return {"X-API-Key": OWNER_KEY}


@pytest.fixture()
def member_headers():
    return {"X-API-Key": MEMBER_KEY}


# ── Gateway doubles ──────────────────────────────────────────────────────


class FailingGateway:
    """Gateway whose every call fails the way an unreachable model does."""

    def __init__(self, kind="upstream_error"):
        self.kind = kind
        self.calls = 0

    def chat(self, messages, model=None, **kwargs):
        self.calls += 1
        raise UpstreamModelError("model unavailable", kind=self.kind)


class CannedGateway:
    """Gateway that answers every call with a fixed content string."""

    def __init__(self, content):
        self.content = content
        self.calls = []

    def chat(self, messages, model=None, **kwargs):
        self.calls.append({"messages": messages, **kwargs})
        return {"content": self.content, "prompt_tokens": 0, "completion_tokens": 0, "model": "canned"}


@pytest.fixture()
def failing_gateway():
    return FailingGateway()


@pytest.fixture()
def make_failing_gateway():
    return FailingGateway


@pytest.fixture()
def make_canned_gateway():
    return CannedGateway


@pytest.fixture()
def stub_gateway():
    """Real gateway routed to the deterministic local stub."""
    return LLMGateway(config={"LLM_DEFAULT_CHAT_MODEL": "local-stub", "LLM_MAX_RETRIES": 0},
                      providers={"local": LocalStubProvider()})


@pytest.fixture()
def prompt_registry():
    return PromptRegistry()
