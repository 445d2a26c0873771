"""SQLAlchemy ORM models for the catalog document store."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - these tables are DOCUMENT tables, not a relational schema! Each row is
# (id, camelCase JSON document) exactly as the web client and the mirror see it. The whole
# catalog is loaded at startup and rewritten wholesale after each mutation, so there are no
# foreign keys and no per-column fields to migrate when an entity grows a field.
# position keeps insertion order stable across restarts (the catalog lists are ordered).
class _DocumentMixin:
    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class AlbumDocument(_DocumentMixin, Base):
    """Stored album document."""

    __tablename__ = "albums"


class TrackDocument(_DocumentMixin, Base):
    """Stored track document."""

    __tablename__ = "tracks"


class ArtistDocument(_DocumentMixin, Base):
    """Stored artist document."""

    __tablename__ = "artists"
