"""
Lazy per-app service singletons.

Stored as attributes on the Flask app (test-isolation safe): every app built
by ``create_app`` gets its own gateway, registries, build store and pipeline.
"""

from flask import current_app

from platform_factory.ai.gateway import LLMGateway
from platform_factory.ai.prompt_registry import PromptRegistry
from platform_factory.analysis.pipeline import AnalysisPipeline
from platform_factory.analysis.requirement_analyzer import RequirementAnalyzer
from platform_factory.analysis.spec_synthesizer import SpecificationSynthesizer
from platform_factory.builds import BuildRegistry, create_build_store


def get_gateway() -> LLMGateway:
    if not hasattr(current_app, "_pf_gateway"):
        current_app._pf_gateway = LLMGateway(config=current_app.config)
    return current_app._pf_gateway


def get_prompt_registry() -> PromptRegistry:
    if not hasattr(current_app, "_pf_prompt_registry"):
        current_app._pf_prompt_registry = PromptRegistry(current_app.config.get("PROMPTS_DIR"))
    return current_app._pf_prompt_registry


def get_build_registry() -> BuildRegistry:
    if not hasattr(current_app, "_pf_build_registry"):
        current_app._pf_build_registry = BuildRegistry(create_build_store(current_app.config))
    return current_app._pf_build_registry


def get_pipeline() -> AnalysisPipeline:
    if not hasattr(current_app, "_pf_pipeline"):
        current_app._pf_pipeline = AnalysisPipeline(
            analyzer=RequirementAnalyzer(get_gateway(), get_prompt_registry()),
            synthesizer=SpecificationSynthesizer(get_gateway(), get_prompt_registry()),
            build_registry=get_build_registry(),
        )
    return current_app._pf_pipeline
