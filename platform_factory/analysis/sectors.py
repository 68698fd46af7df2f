"""
Sector Classifier — keyword scoring against versioned sector profiles.

Profiles live in ``analysis/data/sectors.yaml`` (or the file named by the
SECTOR_PROFILES_PATH config key) and are loaded once per path.

Scoring:
    - each keyword of a sector (any locale) found as a case-insensitive
      substring of the text adds 1 to that sector's score
    - the highest score wins; equal scores resolve by the catalog's
      ``priority`` list
    - confidence = min(score / 5, 1); no hits → default sector at 0.5

Usage:
    from platform_factory.analysis.sectors import classify_sector
    ctx = classify_sector("Build a hospital patient record system")
    ctx.sector      # "healthcare"
"""

import functools
import logging
from pathlib import Path
from typing import Optional

import yaml
from flask import current_app, has_app_context
from pydantic import ConfigDict, Field

from platform_factory.analysis.schemas import (
    DataClassification,
    SectorContext,
    SectorId,
    SecurityLevel,
    WireModel,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILES_PATH = Path(__file__).parent / "data" / "sectors.yaml"

# Hits needed for full confidence
CONFIDENCE_SATURATION = 5
NO_EVIDENCE_CONFIDENCE = 0.5


class SectorProfile(WireModel):
    model_config = ConfigDict(frozen=True)

    sector: SectorId
    names: dict[str, str] = Field(default_factory=dict)
    keywords: dict[str, tuple[str, ...]]
    regulations: tuple[str, ...] = ()
    security_level: SecurityLevel
    compliance_requirements: tuple[str, ...] = ()
    data_classification: DataClassification
    special_requirements: tuple[str, ...] = ()
    risk_factors: tuple[str, ...] = ()
    recommended_architecture: tuple[str, ...] = ()

    @property
    def all_keywords(self) -> tuple[str, ...]:
        return tuple(kw for locale in sorted(self.keywords) for kw in self.keywords[locale])


class SectorCatalog(WireModel):
    model_config = ConfigDict(frozen=True)

    version: str
    priority: tuple[SectorId, ...]
    default_sector: SectorId = "commercial"
    profiles: dict[str, SectorProfile]

    def profile(self, sector: str) -> SectorProfile:
        return self.profiles[sector]


@functools.lru_cache(maxsize=8)
def load_sector_catalog(path: Optional[str] = None) -> SectorCatalog:
    """
    Load and validate a sector profile file.

    Raises ValueError when the file does not define every prioritised
    sector; this is a deployment error, not a request error.
    """
    source = Path(path) if path else DEFAULT_PROFILES_PATH
    with open(source, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    profiles = {
        sector_id: SectorProfile.model_validate({"sector": sector_id, **(body or {})})
        for sector_id, body in (raw.get("sectors") or {}).items()
    }
    catalog = SectorCatalog(
        version=str(raw.get("version", "0")),
        priority=tuple(raw.get("priority") or profiles.keys()),
        default_sector=raw.get("default_sector", "commercial"),
        profiles=profiles,
    )

    missing = [s for s in catalog.priority if s not in profiles] + [
        s for s in profiles if s not in catalog.priority
    ]
    if missing or catalog.default_sector not in profiles:
        raise ValueError(f"Sector profile file {source} is inconsistent (missing/unranked: {missing})")

    logger.info("Loaded %d sector profiles (version %s) from %s", len(profiles), catalog.version, source)
    return catalog


def get_sector_catalog() -> SectorCatalog:
    """Catalog configured for the current app, or the packaged default."""
    path = None
    if has_app_context():
        path = current_app.config.get("SECTOR_PROFILES_PATH")
    return load_sector_catalog(path)


def score_sectors(text: str, catalog: Optional[SectorCatalog] = None) -> dict[str, int]:
    catalog = catalog or get_sector_catalog()
    lowered = (text or "").lower()
    return {
        sector: sum(1 for kw in catalog.profile(sector).all_keywords if kw.lower() in lowered)
        for sector in catalog.priority
    }


def classify_sector(text: str, catalog: Optional[SectorCatalog] = None) -> SectorContext:
    """Classify free text into one of the catalog's sectors. Never raises for any input text."""
    catalog = catalog or get_sector_catalog()
    scores = score_sectors(text, catalog)

    max_score = max(scores.values()) if scores else 0
    if max_score > 0:
        # priority order decides ties
        sector = next(s for s in catalog.priority if scores[s] == max_score)
        confidence = min(max_score / CONFIDENCE_SATURATION, 1.0)
    else:
        sector = catalog.default_sector
        confidence = NO_EVIDENCE_CONFIDENCE

    profile = catalog.profile(sector)
    return SectorContext(
        sector=profile.sector,
        confidence=confidence,
        regulations=profile.regulations,
        security_level=profile.security_level,
        compliance_requirements=profile.compliance_requirements,
        data_classification=profile.data_classification,
        special_requirements=profile.special_requirements,
        risk_factors=profile.risk_factors,
        recommended_architecture=profile.recommended_architecture,
    )


def list_sectors(catalog: Optional[SectorCatalog] = None) -> list[dict]:
    """Static sector descriptors in priority order."""
    catalog = catalog or get_sector_catalog()
    out = []
    for sector in catalog.priority:
        profile = catalog.profile(sector)
        out.append({
            "id": profile.sector,
            "name": profile.names.get("en", profile.sector.title()),
            "nameAr": profile.names.get("ar", ""),
            "securityLevel": profile.security_level,
            "dataClassification": profile.data_classification,
            "regulations": list(profile.regulations),
            "complianceRequirements": list(profile.compliance_requirements),
            "keywordCount": len(profile.all_keywords),
        })
    return out
