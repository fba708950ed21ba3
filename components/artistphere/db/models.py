from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class Artist(Base):
    __tablename__ = "artists"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(256))

    # http(s) URL or /uploads/<file>
    imageRef: Mapped[str] = mapped_column(String(2048))

    bio: Mapped[str] = mapped_column(Text(), default="")
    paragraph1: Mapped[str] = mapped_column(Text(), default="")
    paragraph2: Mapped[str] = mapped_column(Text(), default="")
    paragraph3: Mapped[str] = mapped_column(Text(), default="")
    hitSong: Mapped[str] = mapped_column(String(256), default="")
    charity: Mapped[str] = mapped_column(String(256), default="")
    aboutCharity: Mapped[str] = mapped_column(Text(), default="")
    platformLinks: Mapped[dict[str, str]] = mapped_column(JSON(), default=dict)

    createdAt: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updatedAt: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # Case-sensitive, enforced by the database so concurrent inserts cannot both win.
        UniqueConstraint("name", name="uq_artists_name"),
    )

    def __repr__(self) -> str:
        return f"Artist(id={self.id!s}, name={self.name!r})"
