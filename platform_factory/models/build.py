"""
Platform Factory
Persisted build records (BUILD_STORE_BACKEND=sql).

The record keeps the whole ``BuildResult`` as JSON; status and timestamps
are mirrored into columns for querying.
"""

from datetime import datetime, timezone

from platform_factory.models import db


BUILD_STATUSES = {"building", "complete", "error"}


class BuildRecord(db.Model):
    """One scaffold build, keyed by its opaque build id."""

    __tablename__ = "build_records"

    id = db.Column(db.String(64), primary_key=True, comment="build_<uuid hex>")
    status = db.Column(db.String(20), nullable=False, default="building", index=True)
    payload = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<BuildRecord {self.id} {self.status}>"
