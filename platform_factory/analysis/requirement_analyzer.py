"""
Requirement Analyzer — free text → NLPAnalysisResult.

The model is asked for intents, entities, relationships, tone, scope and
next steps as strict JSON. Whatever goes wrong upstream (transport error,
timeout, prose instead of JSON, JSON of the wrong shape) the analyzer
answers with a heuristic analysis instead, tagged ``heuristic``.

Usage:
    analyzer = RequirementAnalyzer(gateway, prompt_registry)
    sourced = analyzer.analyze("Build a hospital patient record system")
    sourced.value.keywords
    sourced.provenance
"""

import logging
from typing import Optional

from platform_factory.ai.structured_output import Sourced, attempt_generative, decode_structured
from platform_factory.analysis.language import detect_language
from platform_factory.analysis.schemas import (
    AnalysisPayload,
    EntityExtraction,
    EntitySpan,
    NLPAnalysisResult,
    UserIntent,
)

logger = logging.getLogger(__name__)

PURPOSE = "requirement_analysis"

SUMMARY_LENGTH = 200
MIN_KEYWORD_LENGTH = 4

FALLBACK_SUGGESTED_ACTIONS = (
    "تحليل المتطلبات بشكل أعمق / Analyse the requirements in more depth",
    "تحديد النطاق / Define the scope",
    "مراجعة مع صاحب المصلحة / Review with the stakeholder",
)


def fallback_analysis(text: str, language: Optional[str] = None) -> NLPAnalysisResult:
    """Deterministic analysis used whenever the model path fails."""
    text = text or ""
    return NLPAnalysisResult(
        original_text=text,
        language=language or detect_language(text),
        intents=[UserIntent(action="create", target="platform", parameters={}, confidence=0.5, context=[])],
        entities=EntityExtraction(),
        sentiment="neutral",
        urgency="medium",
        complexity="moderate",
        keywords=[w for w in text.split() if len(w) >= MIN_KEYWORD_LENGTH],
        summary=text[:SUMMARY_LENGTH],
        suggested_actions=list(FALLBACK_SUGGESTED_ACTIONS),
    )


def locate_entity_spans(payload: AnalysisPayload, text: str) -> EntityExtraction:
    """Fill in missing entity positions where the value occurs in ``text``."""
    lowered = text.lower()
    located = []
    for entity in payload.entities.entities:
        if entity.position is None and entity.value:
            idx = lowered.find(entity.value.lower())
            if idx >= 0:
                entity = entity.model_copy(
                    update={"position": EntitySpan(start=idx, end=idx + len(entity.value))}
                )
        located.append(entity)
    return EntityExtraction(entities=located, relationships=payload.entities.relationships)


class RequirementAnalyzer:
    """Runs the requirement-analysis prompt with a heuristic safety net."""

    def __init__(self, gateway, prompt_registry):
        self.gateway = gateway
        self.prompt_registry = prompt_registry

    def analyze(self, text: str, *, user: str = "system") -> Sourced[NLPAnalysisResult]:
        text = text or ""
        language = detect_language(text)
        return attempt_generative(
            lambda: self._generate(text, language, user),
            lambda: fallback_analysis(text, language),
            label=PURPOSE,
        )

    def _generate(self, text: str, language: str, user: str) -> NLPAnalysisResult:
        messages = self.prompt_registry.render(PURPOSE, text=text)
        response = self.gateway.chat(messages, purpose=PURPOSE, user=user, max_tokens=2000)
        payload = decode_structured(response.get("content"), AnalysisPayload).unwrap()

        return NLPAnalysisResult(
            original_text=text,
            language=language,
            intents=payload.intents,
            entities=locate_entity_spans(payload, text),
            sentiment=payload.sentiment,
            urgency=payload.urgency,
            complexity=payload.complexity,
            keywords=payload.keywords,
            summary=payload.summary,
            suggested_actions=payload.suggested_actions,
        )
