import uuid
from collections.abc import Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from artistphere.db import models
from artistphere.log import get_logger
from artistphere.models.artists import TEXT_FIELDS
from artistphere.models.errors import (
    DuplicateName,
    MissingImage,
    NotFound,
    StorageUnavailable,
    ValidationError,
)

_log = get_logger(__name__)

MUTABLE_FIELDS = frozenset({"name", "imageRef", "platformLinks", *TEXT_FIELDS})

_CONNECTION_ERRORS = (OperationalError, InterfaceError, OSError)


@dataclass(frozen=True)
class IdentityHint:
    """How an upsert locates an existing artist: by id when given, else by name."""

    artist_id: uuid.UUID | None = None
    name: str | None = None

    def __post_init__(self):
        if self.artist_id is None and not self.name:
            raise ValidationError("name", "An id or a name is required to upsert")

    def __str__(self) -> str:
        return str(self.artist_id) if self.artist_id is not None else repr(self.name)


class ArtistStore:
    """
    Persistence for artist records on top of one ``AsyncSession``.

    Name uniqueness is left to the ``uq_artists_name`` constraint; every write
    commits and translates the resulting ``IntegrityError`` into
    ``DuplicateName``. Connection failures surface as ``StorageUnavailable``.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = models.utcnow):
        self._db = db
        self._clock = clock

    @asynccontextmanager
    async def _guard(self):
        try:
            yield
        except _CONNECTION_ERRORS as e:
            _log.error(f"Storage error: {e}")
            await self._rollback()
            raise StorageUnavailable() from e

    async def _rollback(self):
        try:
            await self._db.rollback()
        except _CONNECTION_ERRORS as e:
            _log.debug(f"Rollback after storage error failed too: {e}")

    async def _commit(self, name: str):
        async with self._guard():
            try:
                await self._db.commit()
            except IntegrityError as e:
                _log.warning(f"Name already taken: {name!r}")
                await self._db.rollback()
                raise DuplicateName(name) from e

    async def create(self, fields: dict[str, Any]) -> models.Artist:
        _check_fields(fields)
        if not fields.get("name"):
            raise ValidationError("name", "Name is required")
        if not fields.get("imageRef"):
            raise MissingImage()

        now = self._clock()
        artist = models.Artist(id=uuid.uuid4(), createdAt=now, updatedAt=now, **fields)
        self._db.add(artist)
        await self._commit(artist.name)

        _log.info(f"Created artist {artist.id} ({artist.name!r})")
        return artist

    async def get(self, artist_id: uuid.UUID) -> models.Artist:
        async with self._guard():
            artist = await self._db.get(models.Artist, artist_id)

        if artist is None:
            _log.debug(f"Artist {artist_id} not found")
            raise NotFound(artist_id)
        return artist

    async def find(self, hint: IdentityHint) -> models.Artist | None:
        async with self._guard():
            if hint.artist_id is not None:
                return await self._db.get(models.Artist, hint.artist_id)
            return await self._db.scalar(
                select(models.Artist).where(models.Artist.name == hint.name)
            )

    async def taken_names(self, names: Iterable[str]) -> set[str]:
        wanted = list(names)
        if not wanted:
            return set()
        async with self._guard():
            results = await self._db.scalars(
                select(models.Artist.name).where(models.Artist.name.in_(wanted))
            )
            return set(results)

    async def list_artists(self, page: int = 1, page_size: int = 20) -> list[models.Artist]:
        """Newest first. ``page`` is 1-based; past the end yields an empty list."""
        if page < 1:
            raise ValidationError("page", "Page must be 1 or greater")
        if page_size < 1:
            raise ValidationError("limit", "Limit must be 1 or greater")

        stmt = (
            select(models.Artist)
            .order_by(models.Artist.createdAt.desc(), models.Artist.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        async with self._guard():
            results = await self._db.scalars(stmt)
            return list(results)

    async def update(self, artist_id: uuid.UUID, fields: dict[str, Any]) -> models.Artist:
        _check_fields(fields)
        artist = await self.get(artist_id)

        if not fields.get("name", artist.name):
            raise ValidationError("name", "Name cannot be empty")
        if not fields.get("imageRef", artist.imageRef):
            raise ValidationError("img", "Image cannot be empty")

        for key, value in fields.items():
            if key == "platformLinks":
                # new dict so the JSON column is flagged dirty
                artist.platformLinks = {**(artist.platformLinks or {}), **value}
            else:
                setattr(artist, key, value)

        artist.updatedAt = self._clock()
        await self._commit(artist.name)

        _log.info(f"Updated artist {artist.id}: {sorted(fields)}")
        return artist

    async def upsert(
        self, hint: IdentityHint, fields: dict[str, Any]
    ) -> tuple[models.Artist, bool]:
        existing = await self.find(hint)
        if existing is not None:
            return await self.update(existing.id, fields), False

        if hint.artist_id is not None:
            _log.debug(f"No artist with id {hint}, creating a new record")

        try:
            return await self.create(fields), True
        except DuplicateName:
            # The name is already taken, either by a concurrent insert or by an
            # earlier upsert whose id hint never matched. Fold into that record.
            existing = await self.find(IdentityHint(name=fields.get("name")))
            if existing is None:
                raise
            _log.info(f"{fields.get('name')!r} already exists, updating instead of creating")
            return await self.update(existing.id, fields), False

    async def delete(self, artist_id: uuid.UUID) -> models.Artist:
        artist = await self.get(artist_id)

        async with self._guard():
            await self._db.delete(artist)
            await self._db.commit()

        _log.info(f"Deleted artist {artist_id} ({artist.name!r})")
        return artist

    async def bulk_create(
        self, batch: Iterable[dict[str, Any]]
    ) -> tuple[list[models.Artist], list[str]]:
        """Insert each record on its own; duplicates are skipped, not fatal."""
        created: list[models.Artist] = []
        skipped: list[str] = []
        for fields in batch:
            try:
                created.append(await self.create(fields))
            except DuplicateName as e:
                skipped.append(e.name)

        if skipped:
            # rolling back each duplicate expired the rows committed before it
            async with self._guard():
                for artist in created:
                    await self._db.refresh(artist)

        return created, skipped


def _check_fields(fields: dict[str, Any]):
    for key in fields:
        if key not in MUTABLE_FIELDS:
            raise ValidationError(key, "Unknown field")
