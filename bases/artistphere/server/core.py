from artistphere.server.config import config
from artistphere.log import get_logger, configure_logging

configure_logging(config.log_level, config.log_file)

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from artistphere.server.api.artists import api_router as artist_router
from artistphere.server.api.health import api_router as health_router
from artistphere.fs import setup_minio, teardown_minio
from artistphere.db import setup_db, teardown_db, models
from artistphere.models.errors import ArtistError, StandardError, StandardErrorTypes

log = get_logger(__name__)

_allowed_origins = {origin.rstrip("/") for origin in config.allowed_origins}


@asynccontextmanager
async def lifespan(app: FastAPI):

    if config.dev_db:
        db_engine = setup_db("sqlite+aiosqlite:///artistphere_dev.db")
    else:
        db_engine = setup_db(str(config.db_conn_string))

    async with db_engine.begin() as conn:
        log.info("Configuring Database")
        await conn.run_sync(models.Base.metadata.create_all)

    Path(config.upload_dir).mkdir(parents=True, exist_ok=True)

    _minio_client = setup_minio(
        config.minio_url,
        config.minio_access_key,
        config.minio_secret_key,
        bucket=config.minio_bucket,
        secure=config.minio_secure,
        timeout=config.upload_timeout_seconds,
    )

    yield

    teardown_minio()
    await teardown_db()


app = FastAPI(title="Artistphere API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(_allowed_origins),
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)


# Registered after CORSMiddleware so it runs first.
@app.middleware("http")
async def reject_unknown_origins(request: Request, call_next):
    origin = request.headers.get("origin")
    if origin and origin.rstrip("/") not in _allowed_origins:
        log.warning(f"Rejected request from origin {origin}")
        body = StandardError(
            message="CORS Error: Access Denied", error=StandardErrorTypes.FORBIDDEN_ORIGIN
        )
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=body.model_dump(mode="json"))
    return await call_next(request)


@app.exception_handler(ArtistError)
async def artist_error_handler(request: Request, exc: ArtistError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        log.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_response().model_dump(mode="json")
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        loc = ".".join(str(part) for part in first["loc"] if part not in ("body", "query", "path"))
        message = f"{loc}: {first['msg']}" if loc else first["msg"]
    log.info(f"{request.method} {request.url.path} rejected: {message}")
    body = StandardError(message=message, error=StandardErrorTypes.VALIDATION_ERROR)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(mode="json"))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = StandardError(message=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception(f"{request.method} {request.url.path} raised", exc_info=exc)
    body = StandardError(message="An unexpected error occurred", error=StandardErrorTypes.INTERNAL)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump(mode="json"))


app.include_router(artist_router, prefix="/api")
app.include_router(health_router, prefix="/api")

app.mount("/uploads", StaticFiles(directory=config.upload_dir, check_dir=False), name="uploads")


@app.get("/")
async def root():
    return {"message": "Welcome to Artists API"}
