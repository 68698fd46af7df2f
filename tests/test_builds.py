"""
Tests — scaffold builds.

Covers:
    - BuildRegistry lifecycle: building → complete / error, terminal states, unknown ids
    - InMemoryBuildStore bounds, SqlBuildStore round trip, backend selection
    - create_zip_bytes: entries, deterministic bytes, non-complete builds
"""

import io
import zipfile

import pytest

from platform_factory.builds import (
    BuildRegistry,
    BuildResult,
    InMemoryBuildStore,
    SqlBuildStore,
    create_build_store,
    create_zip_bytes,
)
from platform_factory.builds.registry import DOWNLOAD_URL_TEMPLATE
from platform_factory.codegen import PlatformSpec
from platform_factory.core.exceptions import BuildError, ConflictError, NotFoundError
from platform_factory.models import db
from platform_factory.models.build import BuildRecord


@pytest.fixture()
def spec():
    return PlatformSpec(name="Shop Hub", description="Online store", sector="commercial", has_payments=True)


@pytest.fixture()
def registry():
    return BuildRegistry(InMemoryBuildStore())


def _failing_generator(spec):
    raise BuildError("template exploded")


# ═════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═════════════════════════════════════════════════════════════════════════════

class TestBuildRegistry:

    def test_complete_build(self, registry, spec):
        build = registry.create_build(spec)

        assert build.status == "complete"
        assert build.id.startswith("build_")
        assert build.download_url == DOWNLOAD_URL_TEMPLATE.format(build_id=build.id)
        assert build.error is None
        assert len(build.files) == 24
        assert build.platform == spec
        assert registry.get_build(build.id) == build

    def test_failed_generator_records_error(self, spec):
        registry = BuildRegistry(InMemoryBuildStore(), generator=_failing_generator)
        build = registry.create_build(spec)

        assert build.status == "error"
        assert build.error == "template exploded"
        assert build.files == []
        assert build.download_url is None
        assert registry.get_build(build.id).status == "error"

    def test_ids_unique(self, registry, spec):
        ids = {registry.create_build(spec).id for _ in range(5)}
        assert len(ids) == 5

    def test_terminal_builds_never_change(self, registry, spec):
        build = registry.create_build(spec)
        with pytest.raises(ConflictError):
            registry._transition(build, "error", error="late failure")
        assert registry.get_build(build.id).status == "complete"

    def test_unknown_build(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_build("build_missing")

    def test_summary_omits_contents(self, registry, spec):
        summary = registry.create_build(spec).summary()
        assert summary["fileCount"] == 24
        assert set(summary["files"][0]) == {"filePath", "language", "category"}
        assert summary["platform"]["hasPayments"] is True
        assert summary["downloadUrl"].endswith(summary["id"])

    def test_wire_form(self, registry, spec):
        wire = registry.create_build(spec).to_wire()
        assert wire["status"] == "complete"
        assert wire["files"][0]["filePath"] == "package.json"
        assert "content" in wire["files"][0]
        assert BuildResult.model_validate(wire).id == wire["id"]


# ═════════════════════════════════════════════════════════════════════════════
# STORES
# ═════════════════════════════════════════════════════════════════════════════

class TestBuildStores:

    def _result(self, build_id, status="complete"):
        return BuildResult(
            id=build_id,
            status=status,
            platform=PlatformSpec(name="A", description="B", sector="commercial"),
            created_at="2024-01-01T00:00:00+00:00",
        )

    def test_memory_eviction_keeps_in_progress(self):
        store = InMemoryBuildStore(max_entries=2)
        store.put(self._result("b1", status="building"))
        store.put(self._result("b2"))
        store.put(self._result("b3"))

        assert len(store) == 2
        assert store.get("b1") is not None
        assert store.get("b2") is None
        assert store.get("b3") is not None

    def test_memory_unbounded(self):
        store = InMemoryBuildStore()
        for i in range(10):
            store.put(self._result(f"b{i}"))
        assert len(store) == 10
        store.clear()
        assert len(store) == 0

    def test_sql_store_round_trip(self, spec):
        registry = BuildRegistry(SqlBuildStore())
        build = registry.create_build(spec)
        db.session.commit()

        record = db.session.get(BuildRecord, build.id)
        assert record.status == "complete"
        assert registry.get_build(build.id) == build
        assert SqlBuildStore().get("build_missing") is None

    def test_backend_selection(self):
        assert isinstance(create_build_store({"BUILD_STORE_BACKEND": "memory"}), InMemoryBuildStore)
        assert isinstance(create_build_store({"BUILD_STORE_BACKEND": "sql"}), SqlBuildStore)
        assert isinstance(create_build_store({}), InMemoryBuildStore)
        with pytest.raises(ValueError):
            create_build_store({"BUILD_STORE_BACKEND": "redis"})


# ═════════════════════════════════════════════════════════════════════════════
# PACKAGING
# ═════════════════════════════════════════════════════════════════════════════

class TestPackager:

    def test_one_entry_per_file(self, registry, spec):
        build = registry.create_build(spec)
        with zipfile.ZipFile(io.BytesIO(create_zip_bytes(build))) as archive:
            assert archive.namelist() == [f.file_path for f in build.files]
            for generated in build.files:
                assert archive.read(generated.file_path).decode("utf-8") == generated.content
            assert all(info.date_time == (1980, 1, 1, 0, 0, 0) for info in archive.infolist())

    def test_deterministic_bytes(self, registry, spec):
        build = registry.create_build(spec)
        assert create_zip_bytes(build) == create_zip_bytes(build)

    def test_error_build_not_packaged(self, spec):
        build = BuildRegistry(InMemoryBuildStore(), generator=_failing_generator).create_build(spec)
        with pytest.raises(ConflictError):
            create_zip_bytes(build)

    def test_building_not_packaged(self):
        build = BuildResult(
            id="build_x",
            platform=PlatformSpec(name="A", description="B", sector="commercial"),
            created_at="2024-01-01T00:00:00+00:00",
        )
        with pytest.raises(ConflictError):
            create_zip_bytes(build)
