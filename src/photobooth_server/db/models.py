"""SQLAlchemy 2.0 ORM models for the share server."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from photobooth_server.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SharedPhoto(Base):
    """Metadata for a shared photo.

    The image itself lives in object storage; file_url points at its
    public share link. created_at is assigned on first insert and drives
    expiry.
    """

    __tablename__ = "photos"

    # Client-generated share id
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    file_url: Mapped[str] = mapped_column(String(500), nullable=False)

    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)

    layout_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (Index("ix_photos_created_at", "created_at"),)

    @property
    def created_at_utc(self) -> datetime:
        """created_at as an aware UTC datetime (SQLite drops tzinfo)."""
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=timezone.utc)
        return self.created_at

    def __repr__(self) -> str:
        return f"<SharedPhoto(id={self.id}, created_at={self.created_at})>"
