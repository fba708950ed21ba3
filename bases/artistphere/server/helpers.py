import uuid
from typing import Annotated

from fastapi import Depends
from minio import Minio
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from artistphere.artist import ArtistStore
from artistphere.db import with_db
from artistphere.fs import ImageResolver, with_bucket
from artistphere.log import get_logger
from artistphere.models.errors import InvalidId
from artistphere.server.config import config

log = get_logger(__name__)


def parse_artist_id(artistId: str) -> uuid.UUID:
    """Reject malformed ids before the store is touched."""
    try:
        return uuid.UUID(artistId)
    except ValueError:
        log.warning(f"Invalid artist id: {artistId!r}")
        raise InvalidId(artistId)


async def with_store(db: Annotated[AsyncSession, Depends(with_db)]) -> ArtistStore:
    return ArtistStore(db)


async def with_resolver(
    minio: Annotated[Minio | None, Depends(with_bucket)],
) -> ImageResolver:
    return ImageResolver(
        minio,
        bucket=config.minio_bucket,
        public_url=config.minio_public_url,
        upload_dir=config.upload_dir,
    )


class PageQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(config.default_page_size, ge=1, le=config.max_page_size)


ArtistId = Annotated[uuid.UUID, Depends(parse_artist_id)]
Store = Annotated[ArtistStore, Depends(with_store)]
Resolver = Annotated[ImageResolver, Depends(with_resolver)]
