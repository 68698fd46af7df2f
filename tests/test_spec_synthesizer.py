"""
Tests — Specification Synthesizer.

Covers:
    - sector rules on both paths: sector, compliance superset, forced security level,
      security baseline
    - heuristic template (features from suggested actions, timeline, budget)
    - security_baseline monotonicity, merge_unique ordering
"""

import json

import pytest

from platform_factory.ai.structured_output import Provenance
from platform_factory.analysis.requirement_analyzer import fallback_analysis
from platform_factory.analysis.schemas import SECURITY_LEVELS, Entity, EntityExtraction, SectorContext
from platform_factory.analysis.sectors import get_sector_catalog
from platform_factory.analysis.spec_synthesizer import (
    BASE_SECURITY_FEATURES,
    FALLBACK_PLATFORM_NAME,
    SpecificationSynthesizer,
    fallback_payload,
    merge_unique,
    security_baseline,
)

SECTORS = ["healthcare", "military", "government", "commercial", "education", "financial"]

MODEL_SPEC = {
    "platform": {"name": "Care Hub", "type": "web", "compliance": ["GDPR"]},
    "architecture": {
        "frontend": {"framework": "React", "features": ["SSR"]},
        "security": {"level": "standard", "features": ["CAPTCHA"]},
    },
    "features": [
        {"name": "Appointments", "priority": "must", "complexity": 4, "estimatedHours": 60},
        {"id": "X-9", "name": "Billing"},
    ],
    "integrations": [{"name": "Stripe", "type": "payment", "required": True}],
}


def _context(sector: str) -> SectorContext:
    profile = get_sector_catalog().profile(sector)
    return SectorContext(
        sector=sector,
        confidence=1.0,
        regulations=profile.regulations,
        security_level=profile.security_level,
        compliance_requirements=profile.compliance_requirements,
        data_classification=profile.data_classification,
    )


# ═════════════════════════════════════════════════════════════════════════════
# SECTOR RULES
# ═════════════════════════════════════════════════════════════════════════════

class TestSectorRules:

    @pytest.mark.parametrize("sector", SECTORS)
    def test_heuristic_path(self, sector, failing_gateway, prompt_registry):
        ctx = _context(sector)
        sourced = SpecificationSynthesizer(failing_gateway, prompt_registry).synthesize(
            fallback_analysis("Build a platform"), ctx,
        )
        spec = sourced.value

        assert sourced.provenance is Provenance.HEURISTIC
        assert spec.platform.sector == sector
        assert set(ctx.compliance_requirements) <= set(spec.platform.compliance)
        assert spec.architecture.security.level == ctx.security_level
        assert set(security_baseline(ctx.security_level)) <= set(spec.architecture.security.features)

    @pytest.mark.parametrize("sector", SECTORS)
    def test_generated_path(self, sector, make_canned_gateway, prompt_registry):
        ctx = _context(sector)
        gateway = make_canned_gateway(json.dumps(MODEL_SPEC))
        sourced = SpecificationSynthesizer(gateway, prompt_registry).synthesize(
            fallback_analysis("Build a platform"), ctx,
        )
        spec = sourced.value

        assert sourced.provenance is Provenance.GENERATED
        assert spec.platform.sector == sector
        assert spec.platform.compliance[0] == "GDPR"
        assert set(ctx.compliance_requirements) <= set(spec.platform.compliance)
        # the model said "standard"; the sector decides
        assert spec.architecture.security.level == ctx.security_level
        assert spec.architecture.security.features[0] == "CAPTCHA"
        assert set(security_baseline(ctx.security_level)) <= set(spec.architecture.security.features)

    def test_no_duplicate_compliance(self, make_canned_gateway, prompt_registry):
        answer = dict(MODEL_SPEC, platform={"name": "Care Hub", "compliance": ["HIPAA", "GDPR"]})
        spec = SpecificationSynthesizer(make_canned_gateway(json.dumps(answer)), prompt_registry).synthesize(
            fallback_analysis("x"), _context("healthcare"),
        ).value
        assert spec.platform.compliance.count("HIPAA") == 1

    def test_generated_fields_kept(self, make_canned_gateway, prompt_registry):
        spec = SpecificationSynthesizer(make_canned_gateway(json.dumps(MODEL_SPEC)), prompt_registry).synthesize(
            fallback_analysis("x"), _context("commercial"),
        ).value

        assert spec.platform.name == "Care Hub"
        assert spec.architecture.frontend.framework == "React"
        assert spec.architecture.backend.framework == "Node.js + Express"
        assert spec.architecture.database.type == "PostgreSQL"
        assert [f.id for f in spec.features] == ["F-1", "X-9"]
        assert spec.features[0].estimated_hours == 60
        assert spec.integrations[0].name == "Stripe"
        assert spec.id.startswith("SPEC-")
        assert spec.version == "1.0.0"

    def test_prompt_includes_sector_json(self, make_canned_gateway, prompt_registry):
        gateway = make_canned_gateway(json.dumps(MODEL_SPEC))
        SpecificationSynthesizer(gateway, prompt_registry).synthesize(
            fallback_analysis("x"), _context("military"), user="owner",
        )
        call = gateway.calls[0]
        assert call["purpose"] == "specification_synthesis"
        assert '"securityLevel": "military"' in call["messages"][-1]["content"]

    def test_invalid_model_answer_falls_back(self, make_canned_gateway, prompt_registry):
        gateway = make_canned_gateway('{"features": [{"name": "A", "complexity": 99}]}')
        sourced = SpecificationSynthesizer(gateway, prompt_registry).synthesize(
            fallback_analysis("x"), _context("education"),
        )
        assert sourced.provenance is Provenance.HEURISTIC
        assert sourced.reason == "invalid_schema"


# ═════════════════════════════════════════════════════════════════════════════
# HEURISTIC TEMPLATE
# ═════════════════════════════════════════════════════════════════════════════

class TestFallbackPayload:

    def test_defaults(self):
        analysis = fallback_analysis("Build a platform")
        draft = fallback_payload(analysis)

        assert draft.platform.name == FALLBACK_PLATFORM_NAME
        assert [f.name for f in draft.features] == analysis.suggested_actions
        assert [f.id for f in draft.features] == ["F-1", "F-2", "F-3"]
        assert all(f.priority == "should" and f.complexity == 5 and f.estimated_hours == 40 for f in draft.features)
        assert len(draft.timeline.phases) == 3
        assert draft.budget.development == 50000
        assert draft.budget.currency == "USD"

    def test_platform_entity_names_platform(self):
        analysis = fallback_analysis("x").model_copy(update={
            "entities": EntityExtraction(entities=[Entity(type="platform", value="Clinic One")]),
        })
        assert fallback_payload(analysis).platform.name == "Clinic One"

    def test_drafts_are_independent(self):
        first = fallback_payload(fallback_analysis("x"))
        first.timeline.phases.clear()
        second = fallback_payload(fallback_analysis("x"))
        assert len(second.timeline.phases) == 3


# ═════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═════════════════════════════════════════════════════════════════════════════

class TestSecurityBaseline:

    def test_standard_is_base(self):
        assert security_baseline("standard") == list(BASE_SECURITY_FEATURES)

    def test_monotonic(self):
        for lower, higher in zip(SECURITY_LEVELS, SECURITY_LEVELS[1:]):
            assert set(security_baseline(lower)) < set(security_baseline(higher))

    def test_military_includes_fips(self):
        features = security_baseline("military")
        assert "FIPS 140-3" in features
        assert "MFA" in features
        assert "Zero Trust" in features

    def test_merge_unique_keeps_first_order(self):
        assert merge_unique(["b", "a"], ["a", "c"], None, ("b", "d")) == ["b", "a", "c", "d"]
