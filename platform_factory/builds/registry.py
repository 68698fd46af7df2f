"""
Build Registry — owns the build lifecycle.

    building ──> complete   (generator returned files)
            └──> error      (generator raised; message recorded)

Terminal states never change again, and build ids are never reused.
"""

import logging
import uuid
from datetime import datetime, timezone

from platform_factory.builds.store import BuildResult, BuildStore
from platform_factory.codegen import generate_platform_code
from platform_factory.codegen.models import PlatformSpec
from platform_factory.core.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

DOWNLOAD_URL_TEMPLATE = "/api/v1/platforms/download/{build_id}"


def new_build_id() -> str:
    return f"build_{uuid.uuid4().hex}"


class BuildRegistry:
    def __init__(self, store: BuildStore, generator=generate_platform_code):
        self.store = store
        self.generator = generator

    def create_build(self, spec: PlatformSpec) -> BuildResult:
        """
        Generate a scaffold for ``spec`` and record the outcome.

        Generator failures end in an ``error`` build; they are not raised.
        """
        build_id = new_build_id()
        while self.store.get(build_id) is not None:
            build_id = new_build_id()

        build = BuildResult(
            id=build_id,
            status="building",
            platform=spec,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.store.put(build)

        try:
            files = self.generator(spec)
        except Exception as e:
            logger.error("Build %s failed: %s", build_id, e, exc_info=True)
            return self._transition(build, "error", error=str(e) or type(e).__name__)

        logger.info("Build %s complete: %d files", build_id, len(files))
        return self._transition(
            build,
            "complete",
            files=files,
            download_url=DOWNLOAD_URL_TEMPLATE.format(build_id=build_id),
        )

    def _transition(self, build: BuildResult, status: str, **changes) -> BuildResult:
        if build.is_terminal:
            raise ConflictError(
                f"Build {build.id} is already {build.status}",
                details={"buildId": build.id, "status": build.status, "requested": status},
            )
        updated = build.model_copy(update={"status": status, **changes})
        self.store.put(updated)
        return updated

    def get_build(self, build_id: str) -> BuildResult:
        build = self.store.get(build_id)
        if build is None:
            raise NotFoundError(resource="Build", resource_id=build_id)
        return build
