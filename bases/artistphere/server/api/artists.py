import json
import uuid
from collections.abc import Mapping
from typing import Annotated, Any

from fastapi import APIRouter, Body, File, Form, Query, Response, UploadFile, status

from artistphere.artist import IdentityHint, ValidatedPayload, ValidationMode, validate
from artistphere.db import models
from artistphere.fs import ImageResolver
from artistphere.log import get_logger
from artistphere.models.artists import ArtistListResponse, ArtistRecord, ArtistResponse
from artistphere.models.errors import ValidationError
from artistphere.server.helpers import ArtistId, PageQuery, Resolver, Store

_log = get_logger(__name__)

api_router = APIRouter(prefix="/artists", tags=["artists"])


def _record(artist: models.Artist) -> ArtistRecord:
    return ArtistRecord.model_validate(artist)


async def _ingest(validated: ValidatedPayload, resolver: ImageResolver) -> dict[str, Any]:
    fields = dict(validated.fields)
    if validated.image is not None:
        fields["imageRef"] = await resolver.resolve(validated.image)
    return fields


def _body_id(payload: Mapping[str, Any]) -> uuid.UUID | None:
    raw = payload.get("id")
    if raw is None:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise ValidationError("id", "Invalid artist ID")


@api_router.post("", status_code=status.HTTP_201_CREATED, response_model_exclude_none=True)
async def create_artist(
    payload: Annotated[Any, Body()],
    store: Store,
    resolver: Resolver,
) -> ArtistResponse:
    _log.info("create_artist called")

    validated = validate(payload, ValidationMode.CREATE)
    if validated.artist_id is not None:
        raise ValidationError("id", "Artist ids are assigned by the server")

    fields = await _ingest(validated, resolver)
    artist = await store.create(fields)

    return ArtistResponse(data=_record(artist))


@api_router.post("/upload", status_code=status.HTTP_201_CREATED, response_model_exclude_none=True)
async def create_artist_with_upload(
    store: Store,
    resolver: Resolver,
    name: Annotated[str, Form()],
    image: Annotated[UploadFile | None, File()] = None,
    bio: Annotated[str | None, Form()] = None,
    paragraph1: Annotated[str | None, Form()] = None,
    paragraph2: Annotated[str | None, Form()] = None,
    paragraph3: Annotated[str | None, Form()] = None,
    hitSong: Annotated[str | None, Form()] = None,
    charity: Annotated[str | None, Form()] = None,
    aboutCharity: Annotated[str | None, Form()] = None,
    platformLinks: Annotated[str | None, Form()] = None,
) -> ArtistResponse:
    """Create an artist from a multipart form, saving the image to local disk."""
    _log.info(f"create_artist_with_upload called: {image.filename if image else None}")

    payload: dict[str, Any] = {
        key: value
        for key, value in {
            "name": name,
            "bio": bio,
            "paragraph1": paragraph1,
            "paragraph2": paragraph2,
            "paragraph3": paragraph3,
            "hitSong": hitSong,
            "charity": charity,
            "aboutCharity": aboutCharity,
        }.items()
        if value is not None
    }
    if platformLinks:
        try:
            payload["platformLinks"] = json.loads(platformLinks)
        except json.JSONDecodeError:
            raise ValidationError("platformLinks", "Must be a JSON object")

    validated = validate(payload, ValidationMode.CREATE, upload=image)
    fields = await _ingest(validated, resolver)
    artist = await store.create(fields)

    return ArtistResponse(data=_record(artist))


@api_router.post("/bulk", status_code=status.HTTP_201_CREATED, response_model_exclude_none=True)
async def create_artists(
    payload: Annotated[Any, Body()],
    store: Store,
    resolver: Resolver,
) -> ArtistListResponse:
    if not isinstance(payload, list):
        raise ValidationError("body", "Request body must be an array of artist objects")

    _log.info(f"create_artists called with {len(payload)} artists")

    batch: list[ValidatedPayload] = []
    for index, item in enumerate(payload):
        try:
            batch.append(validate(item, ValidationMode.CREATE))
        except ValidationError as e:
            raise ValidationError(f"[{index}].{e.field}", e.reason) from e

    # Drop names that are already taken before any image is uploaded for them.
    taken = await store.taken_names(validated.fields["name"] for validated in batch)
    fresh: list[ValidatedPayload] = []
    skipped: list[str] = []
    for validated in batch:
        name = validated.fields["name"]
        if name in taken:
            skipped.append(name)
            continue
        taken.add(name)
        fresh.append(validated)

    fields = [await _ingest(validated, resolver) for validated in fresh]
    created, lost = await store.bulk_create(fields)
    skipped.extend(lost)

    message = None
    if skipped:
        _log.warning(f"Skipped {len(skipped)} duplicate artists")
        message = f"Skipped duplicate names: {', '.join(skipped)}"

    return ArtistListResponse(data=[_record(a) for a in created], message=message)


async def _upsert(
    path_id: uuid.UUID | None,
    payload: Any,
    response: Response,
    store: Store,
    resolver: Resolver,
) -> ArtistResponse:
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Request body must be an artist object")

    body_id = _body_id(payload)
    if path_id is not None and body_id is not None and path_id != body_id:
        raise ValidationError("id", "Body id does not match path")

    target_id = path_id or body_id
    name = payload.get("name")
    hint = IdentityHint(
        artist_id=target_id,
        name=name.strip() if isinstance(name, str) and target_id is None else None,
    )

    existing = await store.find(hint)
    validated = validate(payload, ValidationMode.UPSERT, exists=existing is not None)
    fields = await _ingest(validated, resolver)
    artist, created = await store.upsert(hint, fields)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ArtistResponse(data=_record(artist), wasCreated=created)


@api_router.put("", response_model_exclude_none=True)
async def upsert_artist(
    payload: Annotated[Any, Body()],
    response: Response,
    store: Store,
    resolver: Resolver,
) -> ArtistResponse:
    """Create or update, keyed by the body's ``id`` or, failing that, its ``name``."""
    _log.info("upsert_artist called")
    return await _upsert(None, payload, response, store, resolver)


@api_router.put("/{artistId}", response_model_exclude_none=True)
async def upsert_artist_by_id(
    artist_id: ArtistId,
    payload: Annotated[Any, Body()],
    response: Response,
    store: Store,
    resolver: Resolver,
) -> ArtistResponse:
    _log.info(f"upsert_artist/{artist_id} called")
    return await _upsert(artist_id, payload, response, store, resolver)


@api_router.get("", response_model_exclude_none=True)
async def list_artists(
    query: Annotated[PageQuery, Query()],
    store: Store,
) -> ArtistListResponse:
    _log.debug(f"list_artists called: page={query.page} limit={query.limit}")

    artists = await store.list_artists(query.page, query.limit)
    return ArtistListResponse(data=[_record(a) for a in artists])


@api_router.get("/{artistId}", response_model_exclude_none=True)
async def get_artist(artist_id: ArtistId, store: Store) -> ArtistResponse:
    _log.debug(f"get_artist/{artist_id} called")

    artist = await store.get(artist_id)
    return ArtistResponse(data=_record(artist))


@api_router.patch("/{artistId}", response_model_exclude_none=True)
async def update_artist(
    artist_id: ArtistId,
    payload: Annotated[Any, Body()],
    store: Store,
    resolver: Resolver,
) -> ArtistResponse:
    _log.info(f"update_artist/{artist_id} called")

    validated = validate(payload, ValidationMode.UPDATE)
    if validated.artist_id is not None and validated.artist_id != artist_id:
        raise ValidationError("id", "Body id does not match path")

    # 404 before any image is uploaded
    await store.get(artist_id)

    fields = await _ingest(validated, resolver)
    artist = await store.update(artist_id, fields)

    return ArtistResponse(data=_record(artist))


@api_router.post("/{artistId}/image", response_model_exclude_none=True)
async def replace_artist_image(
    artist_id: ArtistId,
    image: Annotated[UploadFile, File()],
    store: Store,
    resolver: Resolver,
) -> ArtistResponse:
    _log.info(f"replace_artist_image/{artist_id} called: {image.filename}")

    validated = validate({}, ValidationMode.UPDATE, upload=image)
    await store.get(artist_id)

    fields = await _ingest(validated, resolver)
    artist = await store.update(artist_id, fields)

    return ArtistResponse(data=_record(artist))


@api_router.delete("/{artistId}", response_model_exclude_none=True)
async def delete_artist(artist_id: ArtistId, store: Store) -> ArtistResponse:
    _log.info(f"delete_artist/{artist_id} called")

    artist = await store.delete(artist_id)
    return ArtistResponse(data=_record(artist), message="Artist deleted")
