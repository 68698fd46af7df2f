"""
Platform Factory
Requirement analysis pipeline.

Submodules:
    - language: Arabic / English / mixed detection
    - sectors: keyword sector classification over the YAML catalog
    - requirement_analyzer: text → NLPAnalysisResult
    - spec_synthesizer: analysis + sector → TechnicalSpecification
    - pipeline: orchestration and PlatformSpec mapping
"""
