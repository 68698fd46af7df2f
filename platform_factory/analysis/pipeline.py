"""
Analysis Pipeline — orchestrates language, sector, analysis and specification.

    text ─┬─> classify_sector (worker thread, pure)
          └─> RequirementAnalyzer (calling thread, LLM)
                     │ both done
                     ▼
              SpecificationSynthesizer (LLM)
                     │ options.generateScaffold
                     ▼
              BuildRegistry.create_build(PlatformSpec)

Payloads are plain camelCase dicts ready for ``jsonify``; each reports
which path (generated / heuristic) produced its parts.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor

from platform_factory.analysis.schemas import NLPAnalysisResult, SectorContext, TechnicalSpecification
from platform_factory.analysis.sectors import classify_sector, get_sector_catalog
from platform_factory.analysis.spec_synthesizer import FALLBACK_PLATFORM_NAME
from platform_factory.codegen.models import DESCRIPTION_MAX_LENGTH, NAME_MAX_LENGTH, PlatformSpec

logger = logging.getLogger(__name__)

# Keyword → PlatformSpec flag, matched against feature names, integrations and keywords
CAPABILITY_HINTS = {
    "has_payments": ("payment", "checkout", "stripe", "billing", "دفع", "مدفوعات"),
    "has_subscriptions": ("subscription", "membership", "recurring", "pricing plan", "اشتراك"),
    "has_cms": ("cms", "content", "blog", "article", "محتوى"),
    "has_analytics": ("analytics", "dashboard", "report", "metrics", "تحليلات", "تقارير"),
}


def _bool_option(options: dict, key: str) -> bool:
    value = options.get(key)
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes")
    return bool(value)


def _clip(value: str | None, limit: int) -> str:
    return (value or "").strip()[:limit].strip()


def platform_spec_from_specification(
    spec: TechnicalSpecification,
    analysis: NLPAnalysisResult,
) -> PlatformSpec:
    """
    Derive a scaffold request from a synthesized specification.

    Capability flags are switched on when any feature name, integration
    name/type or analysis keyword mentions them. Authentication is always on.
    Name and description are trimmed to what ``PlatformSpec`` accepts, with
    fallbacks when the model left them blank.
    """
    haystack = " ".join(
        [f.name for f in spec.features]
        + [f.description for f in spec.features]
        + [f"{i.name} {i.type}" for i in spec.integrations]
        + analysis.keywords
    ).lower()
    flags = {flag: any(hint in haystack for hint in hints) for flag, hints in CAPABILITY_HINTS.items()}

    name = _clip(spec.platform.name, NAME_MAX_LENGTH) or FALLBACK_PLATFORM_NAME
    is_arabic = analysis.language == "ar"
    description = (
        _clip(analysis.summary, DESCRIPTION_MAX_LENGTH)
        or _clip(analysis.original_text, DESCRIPTION_MAX_LENGTH)
        or name
    )
    return PlatformSpec(
        name=name,
        name_ar=name if is_arabic else "",
        description=description,
        description_ar=description if analysis.language in ("ar", "mixed") else "",
        sector=spec.platform.sector,
        features=[f.name for f in spec.features],
        has_auth=True,
        **flags,
    )


class AnalysisPipeline:
    """Thread-pooled orchestration of the analysis components."""

    def __init__(self, analyzer, synthesizer, build_registry=None, max_workers: int = 4):
        self.analyzer = analyzer
        self.synthesizer = synthesizer
        self.build_registry = build_registry
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sector-classifier")

    # ── Single steps ─────────────────────────────────────────────────────

    def analyze(self, text: str, *, user: str = "system") -> dict:
        sourced = self.analyzer.analyze(text, user=user)
        payload = sourced.value.to_wire()
        payload["provenance"] = sourced.provenance.value
        return payload

    def sector_context(self, text: str) -> dict:
        return classify_sector(text).to_wire()

    # ── Composite steps ──────────────────────────────────────────────────

    def _analyze_and_classify(self, text: str, user: str):
        # Resolve the catalog here; the worker thread has no app context.
        catalog = get_sector_catalog()
        sector_future = self._executor.submit(classify_sector, text, catalog)
        analysis = self.analyzer.analyze(text, user=user)
        sector: SectorContext = sector_future.result()
        return analysis, sector

    def _run(self, text: str, user: str):
        analysis, sector = self._analyze_and_classify(text, user)
        specification = self.synthesizer.synthesize(analysis.value, sector, user=user)
        payload = {
            "analysis": analysis.value.to_wire(),
            "sectorContext": sector.to_wire(),
            "specification": specification.value.to_wire(),
            "provenance": {
                "analysis": analysis.provenance.value,
                "specification": specification.provenance.value,
            },
        }
        return payload, analysis, specification

    def generate_specification(self, text: str, *, user: str = "system") -> dict:
        payload, _, _ = self._run(text, user)
        return payload

    def full_analysis(self, text: str, options: dict | None = None, *, user: str = "system") -> dict:
        options = options or {}
        started = time.perf_counter()

        payload, analysis, specification = self._run(text, user)

        if _bool_option(options, "generateScaffold"):
            if self.build_registry is None:
                raise RuntimeError("generateScaffold requested but no build registry is configured")
            platform_spec = platform_spec_from_specification(specification.value, analysis.value)
            build = self.build_registry.create_build(platform_spec)
            payload["platformSpec"] = platform_spec.to_wire()
            payload["build"] = build.summary()

        payload["processingTimeMs"] = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Full analysis complete: sector=%s analysis=%s specification=%s (%dms)",
            payload["sectorContext"]["sector"], analysis.provenance.value, specification.provenance.value,
            payload["processingTimeMs"],
        )
        return payload
