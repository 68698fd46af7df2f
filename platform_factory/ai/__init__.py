"""
Platform Factory
AI module.

Submodules:
    - gateway: LLM Gateway (provider routing, timeout, retry, cost tracking)
    - prompt_registry: Built-in and YAML prompt templates
    - structured_output: JSON decoding of model answers + provenance helpers
"""
