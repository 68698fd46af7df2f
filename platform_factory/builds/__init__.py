"""
Platform Factory
Scaffold builds: lifecycle registry, storage backends and ZIP packaging.
"""

from platform_factory.builds.packager import create_zip_bytes
from platform_factory.builds.registry import BuildRegistry
from platform_factory.builds.store import BuildResult, InMemoryBuildStore, SqlBuildStore, create_build_store

__all__ = [
    "BuildRegistry",
    "BuildResult",
    "InMemoryBuildStore",
    "SqlBuildStore",
    "create_build_store",
    "create_zip_bytes",
]
