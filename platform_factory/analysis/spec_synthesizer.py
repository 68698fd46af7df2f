"""
Specification Synthesizer — NLPAnalysisResult + SectorContext → TechnicalSpecification.

Two paths produce a draft:
    - generated: the model's JSON answer (``SpecificationPayload``)
    - heuristic: a fixed template built from the analysis' suggested actions

Both drafts then go through the same sector enforcement:
    - platform.sector is the classified sector
    - platform.compliance always contains every sector compliance item
    - architecture.security.level is the sector's level, whatever the model said
    - architecture.security.features always contain the level's baseline
"""

import json
import logging
import uuid
from datetime import datetime, timezone

from platform_factory.ai.structured_output import Sourced, attempt_generative, decode_structured
from platform_factory.analysis.schemas import (
    SECURITY_LEVELS,
    Architecture,
    ArchitectureDraft,
    BackendBlock,
    Budget,
    DatabaseBlock,
    Feature,
    FrontendBlock,
    InfrastructureBlock,
    NLPAnalysisResult,
    PlatformDescriptor,
    PlatformDraft,
    SectorContext,
    SecurityBlock,
    SpecificationPayload,
    TechnicalSpecification,
    Timeline,
    TimelinePhase,
)

logger = logging.getLogger(__name__)

PURPOSE = "specification_synthesis"
SPEC_VERSION = "1.0.0"

DEFAULT_PLATFORM_NAME = "منصة جديدة"
FALLBACK_PLATFORM_NAME = "منصة سيادية جديدة"

# ── Security baseline (cumulative by level) ──────────────────────────────────

BASE_SECURITY_FEATURES = ("TLS 1.3", "AES-256 Encryption", "RBAC", "Audit Logging")

LEVEL_SECURITY_ADDITIONS = {
    "standard": (),
    "enhanced": ("MFA", "Session Management", "Rate Limiting"),
    "high": ("Zero Trust", "SIEM Integration", "Encryption at Rest", "Key Management"),
    "military": (
        "FIPS 140-3", "PKI/X.509", "Air-Gap Ready",
        "Hardware Security Modules", "Secure Boot", "Tamper Detection",
    ),
}


def security_baseline(level: str) -> list[str]:
    """Baseline features for ``level``; each level includes every lower one."""
    features = list(BASE_SECURITY_FEATURES)
    for lvl in SECURITY_LEVELS:
        features.extend(LEVEL_SECURITY_ADDITIONS[lvl])
        if lvl == level:
            break
    return features


def merge_unique(*groups) -> list[str]:
    """Order-preserving union of string lists."""
    out: list[str] = []
    seen = set()
    for group in groups:
        for item in group or ():
            if item not in seen:
                seen.add(item)
                out.append(item)
    return out


# ── Stack defaults ───────────────────────────────────────────────────────────

DEFAULT_FRONTEND = FrontendBlock(framework="React + TypeScript")
DEFAULT_BACKEND = BackendBlock(framework="Node.js + Express")
DEFAULT_DATABASE = DatabaseBlock(type="PostgreSQL")
DEFAULT_INFRASTRUCTURE = InfrastructureBlock(provider="Hetzner Cloud")

FALLBACK_ARCHITECTURE = ArchitectureDraft(
    frontend=FrontendBlock(framework="React + TypeScript + Vite", features=["Responsive", "RTL Support", "Dark Mode"]),
    backend=BackendBlock(framework="Node.js + Express + TypeScript", features=["REST API", "WebSocket", "Queue Processing"]),
    database=DatabaseBlock(type="PostgreSQL + Drizzle ORM"),
    infrastructure=InfrastructureBlock(provider="Hetzner Cloud", services=["Kubernetes", "Object Storage", "Load Balancer"]),
)

FALLBACK_TIMELINE = Timeline(
    phases=[
        TimelinePhase(name="التحليل والتصميم", duration="2 أسابيع", deliverables=["مستندات التصميم", "النماذج الأولية"]),
        TimelinePhase(name="التطوير", duration="8 أسابيع", deliverables=["النظام الأساسي", "الاختبارات"]),
        TimelinePhase(name="الاختبار والنشر", duration="2 أسابيع", deliverables=["النظام المختبر", "التوثيق"]),
    ],
    total_estimate="12 أسبوع",
)

FALLBACK_BUDGET = Budget(development=50000, infrastructure=10000, maintenance=5000, currency="USD")

FALLBACK_FEATURE_COMPLEXITY = 5
FALLBACK_FEATURE_HOURS = 40


def new_specification_id() -> str:
    return f"SPEC-{uuid.uuid4().hex}"


def fallback_payload(analysis: NLPAnalysisResult) -> SpecificationPayload:
    """Deterministic draft used whenever the model path fails."""
    platform_entities = [e.value for e in analysis.entities.entities if e.type == "platform" and e.value]
    features = [
        Feature(
            id=f"F-{i}",
            name=action,
            description=action,
            priority="should",
            complexity=FALLBACK_FEATURE_COMPLEXITY,
            estimated_hours=FALLBACK_FEATURE_HOURS,
            dependencies=[],
        )
        for i, action in enumerate(analysis.suggested_actions, start=1)
    ]
    return SpecificationPayload(
        platform=PlatformDraft(name=platform_entities[0] if platform_entities else FALLBACK_PLATFORM_NAME, type="web"),
        architecture=FALLBACK_ARCHITECTURE.model_copy(deep=True),
        features=features,
        integrations=[],
        timeline=FALLBACK_TIMELINE.model_copy(deep=True),
        budget=FALLBACK_BUDGET.model_copy(),
    )


def enforce_sector(draft: SpecificationPayload, sector: SectorContext) -> TechnicalSpecification:
    """Build the final specification from a draft, applying every sector rule."""
    arch = draft.architecture
    security_features = arch.security.features if arch.security else []

    features = [
        f if f.id else f.model_copy(update={"id": f"F-{i}"})
        for i, f in enumerate(draft.features, start=1)
    ]

    return TechnicalSpecification(
        id=new_specification_id(),
        version=SPEC_VERSION,
        created_at=datetime.now(timezone.utc).isoformat(),
        platform=PlatformDescriptor(
            name=draft.platform.name or DEFAULT_PLATFORM_NAME,
            type=draft.platform.type,
            sector=sector.sector,
            compliance=merge_unique(draft.platform.compliance, sector.compliance_requirements),
        ),
        architecture=Architecture(
            frontend=arch.frontend or DEFAULT_FRONTEND,
            backend=arch.backend or DEFAULT_BACKEND,
            database=arch.database or DEFAULT_DATABASE,
            security=SecurityBlock(
                level=sector.security_level,
                features=merge_unique(security_features, security_baseline(sector.security_level)),
            ),
            infrastructure=arch.infrastructure or DEFAULT_INFRASTRUCTURE,
        ),
        features=features,
        integrations=draft.integrations,
        timeline=draft.timeline or Timeline(phases=[], total_estimate="TBD"),
        budget=draft.budget or Budget(),
    )


class SpecificationSynthesizer:
    """Runs the specification prompt and enforces sector rules on every result."""

    def __init__(self, gateway, prompt_registry):
        self.gateway = gateway
        self.prompt_registry = prompt_registry

    def synthesize(
        self,
        analysis: NLPAnalysisResult,
        sector_context: SectorContext,
        *,
        user: str = "system",
    ) -> Sourced[TechnicalSpecification]:
        drafted = attempt_generative(
            lambda: self._generate(analysis, sector_context, user),
            lambda: fallback_payload(analysis),
            label=PURPOSE,
        )
        return Sourced(enforce_sector(drafted.value, sector_context), drafted.provenance, drafted.reason)

    def _generate(self, analysis: NLPAnalysisResult, sector: SectorContext, user: str) -> SpecificationPayload:
        messages = self.prompt_registry.render(
            PURPOSE,
            analysis_json=json.dumps(analysis.to_wire(), ensure_ascii=False, indent=2),
            sector_json=json.dumps(sector.to_wire(), ensure_ascii=False, indent=2),
        )
        response = self.gateway.chat(messages, purpose=PURPOSE, user=user, max_tokens=4000)
        return decode_structured(response.get("content"), SpecificationPayload).unwrap()
