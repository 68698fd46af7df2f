"""
Build storage.

    BuildStore (interface)
      ├── InMemoryBuildStore — process lifetime, lock-guarded, bounded
      └── SqlBuildStore      — ``build_records`` table via Flask-SQLAlchemy

Selected with ``BUILD_STORE_BACKEND=memory|sql``.

Transaction policy (SqlBuildStore): put() uses flush(), never commit().
Caller (route handler / CLI command) is responsible for db.session.commit().
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Literal, Optional

from pydantic import Field

from platform_factory.analysis.schemas import WireModel
from platform_factory.codegen.models import GeneratedFile, PlatformSpec
from platform_factory.models import db
from platform_factory.models.build import BuildRecord

logger = logging.getLogger(__name__)

BuildStatus = Literal["building", "complete", "error"]
TERMINAL_STATUSES = frozenset({"complete", "error"})


class BuildResult(WireModel):
    id: str
    status: BuildStatus = "building"
    platform: PlatformSpec
    files: list[GeneratedFile] = Field(default_factory=list)
    download_url: Optional[str] = None
    error: Optional[str] = None
    created_at: str

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def summary(self) -> dict:
        """Wire form without file contents."""
        return {
            "id": self.id,
            "status": self.status,
            "platform": self.platform.to_wire(),
            "fileCount": len(self.files),
            "files": [
                {"filePath": f.file_path, "language": f.language, "category": f.category}
                for f in self.files
            ],
            "downloadUrl": self.download_url,
            "error": self.error,
            "createdAt": self.created_at,
        }


class BuildStore(ABC):
    """Keyed storage of build results."""

    @abstractmethod
    def get(self, build_id: str) -> BuildResult | None:
        ...

    @abstractmethod
    def put(self, result: BuildResult) -> None:
        ...


class InMemoryBuildStore(BuildStore):
    """
    Dict-backed store for a single process.

    When ``max_entries`` is exceeded the oldest terminal builds are evicted;
    builds still in progress are never dropped.
    """

    def __init__(self, max_entries: int | None = None):
        self.max_entries = max_entries
        self._builds: OrderedDict[str, BuildResult] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, build_id: str) -> BuildResult | None:
        with self._lock:
            return self._builds.get(build_id)

    def put(self, result: BuildResult) -> None:
        with self._lock:
            self._builds[result.id] = result
            self._evict()

    def _evict(self):
        if not self.max_entries:
            return
        overflow = len(self._builds) - self.max_entries
        if overflow <= 0:
            return
        for build_id in [bid for bid, b in self._builds.items() if b.is_terminal][:overflow]:
            del self._builds[build_id]
            logger.debug("Evicted build %s", build_id)

    def clear(self):
        with self._lock:
            self._builds.clear()

    def __len__(self):
        with self._lock:
            return len(self._builds)


class SqlBuildStore(BuildStore):
    """Persists each build as a ``BuildRecord`` row (whole result as JSON)."""

    def get(self, build_id: str) -> BuildResult | None:
        record = db.session.get(BuildRecord, build_id)
        if record is None:
            return None
        return BuildResult.model_validate(record.payload)

    def put(self, result: BuildResult) -> None:
        record = db.session.get(BuildRecord, result.id)
        if record is None:
            record = BuildRecord(id=result.id)
            db.session.add(record)
        record.status = result.status
        record.payload = result.to_wire()
        db.session.flush()


def create_build_store(config) -> BuildStore:
    """Build store for the configured backend."""
    backend = config.get("BUILD_STORE_BACKEND", "memory")
    if backend == "sql":
        return SqlBuildStore()
    if backend != "memory":
        raise ValueError(f"Unknown BUILD_STORE_BACKEND: {backend}")
    return InMemoryBuildStore(max_entries=config.get("BUILD_STORE_MAX_ENTRIES"))
