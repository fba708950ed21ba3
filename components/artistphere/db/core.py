from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from artistphere.log import get_logger
from artistphere.models.errors import StorageUnavailable

_log = get_logger(__name__)

_engine: AsyncEngine | None = None
_sessionMaker: async_sessionmaker[AsyncSession] | None = None


def setup_db(conn_string: str) -> AsyncEngine:
    global _engine
    global _sessionMaker

    if _engine:
        _log.debug("DB is already set up, returning existing instance of engine")
        return _engine

    _log.debug("Setting Up DB Connection")

    # pre-ping replaces connections dropped by the server on checkout
    _engine = create_async_engine(conn_string, pool_pre_ping=True)
    _sessionMaker = async_sessionmaker(_engine, expire_on_commit=False, autoflush=False)

    _log.debug("DB Connection Success")

    return _engine


async def teardown_db():
    global _engine
    global _sessionMaker

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _sessionMaker = None
    _log.debug("DB Connection Disposed")


async def with_db():
    _log.debug("with_db called")

    if _sessionMaker is None or _engine is None:
        _log.error("with_db called before setup_db")
        raise StorageUnavailable()
    async with _sessionMaker() as db:
        try:
            yield db
            await db.flush()
        except Exception as e:
            await db.rollback()
            raise e
        finally:
            await db.close()


async def with_optional_db():
    """Like ``with_db`` but yields ``None`` instead of failing when the engine is down."""
    if _sessionMaker is None:
        _log.warning("with_optional_db called before setup_db")
        yield None
        return

    async with _sessionMaker() as db:
        yield db
