"""
Scaffold packaging — complete build → in-memory ZIP archive.

One entry per generated file, named by its ``filePath``. Entry timestamps
and permissions are fixed, so packaging the same build twice yields the
same bytes.
"""

import io
import zipfile

from platform_factory.builds.store import BuildResult
from platform_factory.core.exceptions import ConflictError

COMPRESS_LEVEL = 9
ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)
ENTRY_MODE = 0o644


def create_zip_bytes(build: BuildResult) -> bytes:
    if build.status != "complete":
        raise ConflictError(
            f"Build {build.id} is {build.status}; only complete builds can be downloaded",
            details={"buildId": build.id, "status": build.status},
        )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL) as archive:
        for generated in build.files:
            info = zipfile.ZipInfo(generated.file_path, date_time=ENTRY_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = ENTRY_MODE << 16
            archive.writestr(info, generated.content.encode("utf-8"), compresslevel=COMPRESS_LEVEL)
    return buffer.getvalue()
