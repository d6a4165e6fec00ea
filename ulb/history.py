"""Build history records.

One BuildRecord row is written per `ulb build` invocation so that past
builds (and the stage they failed in) can be listed with `ulb history`.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from ulb.db import Base
from ulb.types import BuildStatus


class BuildRecord(Base):
    """ORM model for one build invocation.

    Attributes:
        id: Primary key.
        distro: Target distribution.
        image_name: Image name from the build config.
        config_path: Absolute path of the build config.
        release: Whether this was a release build.
        status: Build status (pending, running, succeeded, failed).
        requested_at: Timestamp when the build was requested.
        started_at: Timestamp when the pipeline started.
        finished_at: Timestamp when the pipeline finished.
        failed_stage: Stage the build failed in, if any.
        error_type: Error code of the failure.
        error_message: Error message of the failure.
        iso_path: Host path of the produced ISO.
    """

    __tablename__ = "build_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    distro: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    image_name: Mapped[str] = mapped_column(String(255), nullable=False)
    config_path: Mapped[str] = mapped_column(String(500), nullable=False)
    release: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BuildStatus.PENDING.value, index=True
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    failed_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    iso_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<BuildRecord(id={self.id}, distro='{self.distro}', "
            f"image_name='{self.image_name}', status='{self.status}')>"
        )

    def mark_running(self) -> None:
        """Mark this build as running."""
        self.status = BuildStatus.RUNNING.value
        self.started_at = datetime.now()

    def mark_succeeded(self, iso_path: str) -> None:
        """Mark this build as succeeded."""
        self.status = BuildStatus.SUCCEEDED.value
        self.finished_at = datetime.now()
        self.iso_path = iso_path

    def mark_failed(
        self,
        error_type: str | None = None,
        message: str | None = None,
        stage: str | None = None,
    ) -> None:
        """Mark this build as failed.

        Args:
            error_type: Error code of the failure.
            message: Error message details.
            stage: Stage the failure happened in.
        """
        self.status = BuildStatus.FAILED.value
        self.finished_at = datetime.now()
        if error_type:
            self.error_type = error_type
        if message:
            self.error_message = message
        if stage:
            self.failed_stage = stage

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serialisable dict."""
        return {
            "id": self.id,
            "distro": self.distro,
            "image_name": self.image_name,
            "config_path": self.config_path,
            "release": self.release,
            "status": self.status,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "failed_stage": self.failed_stage,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "iso_path": self.iso_path,
        }


def create_build_record(
    session: Session,
    distro: str,
    image_name: str,
    config_path: str,
    release: bool,
) -> BuildRecord:
    """Create a new BuildRecord in pending state.

    Args:
        session: Database session.
        distro: Target distribution.
        image_name: Image name from the config.
        config_path: Absolute config path.
        release: Release build flag.

    Returns:
        Created BuildRecord.
    """
    record = BuildRecord(
        distro=distro,
        image_name=image_name,
        config_path=config_path,
        release=release,
        status=BuildStatus.PENDING.value,
    )
    session.add(record)
    session.flush()
    return record


def list_builds(
    session: Session,
    distro: str | None = None,
    status: BuildStatus | None = None,
    limit: int = 20,
) -> list[BuildRecord]:
    """List build records, newest first.

    Args:
        session: Database session.
        distro: Filter by distro.
        status: Filter by status.
        limit: Maximum results to return.

    Returns:
        List of BuildRecord instances.
    """
    stmt = select(BuildRecord)
    if distro is not None:
        stmt = stmt.where(BuildRecord.distro == distro)
    if status is not None:
        stmt = stmt.where(BuildRecord.status == status.value)
    stmt = stmt.order_by(BuildRecord.id.desc()).limit(limit)
    return list(session.execute(stmt).scalars().all())


__all__ = ["BuildRecord", "create_build_record", "list_builds"]
