from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends
from minio import Minio
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from artistphere.db import with_optional_db
from artistphere.fs import with_bucket
from artistphere.log import get_logger

_log = get_logger(__name__)

api_router = APIRouter(tags=["health"])


@api_router.get("/health")
async def health_check(
    session: Annotated[AsyncSession | None, Depends(with_optional_db)],
    minio: Annotated[Minio | None, Depends(with_bucket)],
):
    """
    Health check endpoint for load balancers and monitoring.
    """
    checks = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {},
    }

    if session is None:
        checks["services"]["database"] = "not configured"
        checks["status"] = "unhealthy"
    else:
        try:
            await session.execute(text("SELECT 1"))
            checks["services"]["database"] = "ok"
        except (SQLAlchemyError, OSError) as e:
            _log.warning(f"Health check: database unreachable: {e}")
            checks["services"]["database"] = f"error: {e}"
            checks["status"] = "unhealthy"

    checks["services"]["object_store"] = "configured" if minio is not None else "not configured"

    return checks
