import base64
import itertools
import logging
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from artistphere.db.models import Base
from artistphere.fs import ImageResolver
from artistphere.log import get_logger

aiosqlite_logger = get_logger("aiosqlite")
aiosqlite_logger.setLevel(logging.INFO)

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class FakeMinio:
    """Records put_object calls instead of talking to an object store."""

    def __init__(self, fail: Exception | None = None):
        self.objects: dict[tuple[str, str], tuple[bytes, str | None]] = {}
        self.fail = fail

    def put_object(self, bucket_name, object_name, data, length, content_type=None):
        if self.fail is not None:
            raise self.fail
        payload = data.read()
        assert len(payload) == length
        self.objects[(bucket_name, object_name)] = (payload, content_type)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def png_data_uri() -> str:
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


@pytest.fixture
def clock():
    """Each call is one second after the previous, so ordering is deterministic."""
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def fake_minio() -> FakeMinio:
    return FakeMinio()


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def resolver(fake_minio, upload_dir) -> ImageResolver:
    return ImageResolver(
        fake_minio,
        bucket="artistphere",
        public_url="http://minio.test/",
        upload_dir=upload_dir,
    )


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """In-memory SQLite database session for testing"""
    async_session = async_sessionmaker(db_engine, expire_on_commit=False)
    async with async_session() as session:
        yield session
