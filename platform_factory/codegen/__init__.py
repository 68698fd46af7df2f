"""
Platform Factory
Scaffold code generation.

    from platform_factory.codegen import PlatformSpec, generate_platform_code
    files = generate_platform_code(PlatformSpec(name="Clinic", description="...", sector="healthcare"))
"""

from platform_factory.codegen.engine import generate_platform_code
from platform_factory.codegen.models import GeneratedFile, PlatformSpec

__all__ = ["GeneratedFile", "PlatformSpec", "generate_platform_code"]
