"""
Platform Factory
Wire models for the analysis pipeline.

All models serialise with camelCase keys (``to_wire()``) and accept either
camelCase or snake_case on input.

Models:
    - SectorContext: result of keyword classification
    - UserIntent / Entity / EntityExtraction / NLPAnalysisResult
    - TechnicalSpecification and its sub-blocks
    - AnalysisPayload / SpecificationPayload: the shapes the model is asked
      to return; decoded leniently (every field optional) and then merged
      into the full result types
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SectorId = Literal["healthcare", "military", "government", "commercial", "education", "financial"]
SecurityLevel = Literal["standard", "enhanced", "high", "military"]
DataClassification = Literal["public", "internal", "confidential", "secret", "top_secret"]

IntentAction = Literal["create", "modify", "delete", "query", "analyze", "deploy", "configure"]
EntityType = Literal["platform", "feature", "user", "data", "workflow", "integration", "security"]
Sentiment = Literal["positive", "neutral", "negative"]
Urgency = Literal["low", "medium", "high", "critical"]
Complexity = Literal["simple", "moderate", "complex", "enterprise"]

PlatformType = Literal["web", "mobile", "desktop", "api", "hybrid"]
Priority = Literal["must", "should", "could", "wont"]

# Ordinal scales (low → high)
SECURITY_LEVELS: tuple[str, ...] = ("standard", "enhanced", "high", "military")
DATA_CLASSIFICATIONS: tuple[str, ...] = ("public", "internal", "confidential", "secret", "top_secret")


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ══════════════════════════════════════════════════════════════════════════════
# Sector context
# ══════════════════════════════════════════════════════════════════════════════


class SectorContext(WireModel):
    model_config = ConfigDict(frozen=True)

    sector: SectorId
    confidence: float = Field(ge=0, le=1)
    regulations: tuple[str, ...] = ()
    security_level: SecurityLevel
    compliance_requirements: tuple[str, ...] = ()
    data_classification: DataClassification
    special_requirements: tuple[str, ...] = ()
    risk_factors: tuple[str, ...] = ()
    recommended_architecture: tuple[str, ...] = ()


# ══════════════════════════════════════════════════════════════════════════════
# Requirement analysis
# ══════════════════════════════════════════════════════════════════════════════


class UserIntent(WireModel):
    action: IntentAction
    target: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.5, ge=0, le=1)
    context: list[str] = Field(default_factory=list)


class EntitySpan(WireModel):
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class Entity(WireModel):
    type: EntityType
    value: str
    confidence: float = Field(default=0.5, ge=0, le=1)
    position: Optional[EntitySpan] = None


class Relationship(WireModel):
    source: str
    target: str
    type: str = ""


class EntityExtraction(WireModel):
    entities: list[Entity] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)


class AnalysisPayload(WireModel):
    """What the model is asked to return for a requirement analysis."""

    intents: list[UserIntent] = Field(default_factory=list)
    entities: EntityExtraction = Field(default_factory=EntityExtraction)
    sentiment: Sentiment = "neutral"
    urgency: Urgency = "medium"
    complexity: Complexity = "moderate"
    keywords: list[str] = Field(default_factory=list)
    summary: str = ""
    suggested_actions: list[str] = Field(default_factory=list)


class NLPAnalysisResult(AnalysisPayload):
    original_text: str
    language: Literal["ar", "en", "mixed"]


# ══════════════════════════════════════════════════════════════════════════════
# Technical specification
# ══════════════════════════════════════════════════════════════════════════════


class PlatformDescriptor(WireModel):
    name: str
    type: PlatformType = "web"
    sector: SectorId
    compliance: list[str] = Field(default_factory=list)


class FrontendBlock(WireModel):
    framework: str
    features: list[str] = Field(default_factory=list)


class BackendBlock(WireModel):
    framework: str
    features: list[str] = Field(default_factory=list)


class DatabaseBlock(WireModel):
    type: str
    tables: list[dict[str, Any]] = Field(default_factory=list, alias="schema")


class SecurityBlock(WireModel):
    level: SecurityLevel
    features: list[str] = Field(default_factory=list)


class InfrastructureBlock(WireModel):
    provider: str
    services: list[str] = Field(default_factory=list)


class Architecture(WireModel):
    frontend: FrontendBlock
    backend: BackendBlock
    database: DatabaseBlock
    security: SecurityBlock
    infrastructure: InfrastructureBlock


class Feature(WireModel):
    id: str = ""
    name: str
    description: str = ""
    priority: Priority = "should"
    complexity: int = Field(default=5, ge=1, le=10)
    estimated_hours: int | float = Field(default=0, ge=0)
    dependencies: list[str] = Field(default_factory=list)


class Integration(WireModel):
    name: str
    type: str = ""
    required: bool = False


class TimelinePhase(WireModel):
    name: str
    duration: str = ""
    deliverables: list[str] = Field(default_factory=list)


class Timeline(WireModel):
    phases: list[TimelinePhase] = Field(default_factory=list)
    total_estimate: str = "TBD"


class Budget(WireModel):
    development: int | float = 0
    infrastructure: int | float = 0
    maintenance: int | float = 0
    currency: str = "USD"


class TechnicalSpecification(WireModel):
    id: str
    version: str = "1.0.0"
    created_at: str
    platform: PlatformDescriptor
    architecture: Architecture
    features: list[Feature] = Field(default_factory=list)
    integrations: list[Integration] = Field(default_factory=list)
    timeline: Timeline = Field(default_factory=Timeline)
    budget: Budget = Field(default_factory=Budget)


# ── Model-answer shapes (every block optional) ─────────────────────────────

class PlatformDraft(WireModel):
    name: Optional[str] = None
    type: PlatformType = "web"
    compliance: list[str] = Field(default_factory=list)


class SecurityDraft(WireModel):
    level: Optional[str] = None
    features: list[str] = Field(default_factory=list)


class ArchitectureDraft(WireModel):
    frontend: Optional[FrontendBlock] = None
    backend: Optional[BackendBlock] = None
    database: Optional[DatabaseBlock] = None
    security: Optional[SecurityDraft] = None
    infrastructure: Optional[InfrastructureBlock] = None


class SpecificationPayload(WireModel):
    """What the model is asked to return for a specification."""

    platform: PlatformDraft = Field(default_factory=PlatformDraft)
    architecture: ArchitectureDraft = Field(default_factory=ArchitectureDraft)
    features: list[Feature] = Field(default_factory=list)
    integrations: list[Integration] = Field(default_factory=list)
    timeline: Optional[Timeline] = None
    budget: Optional[Budget] = None
