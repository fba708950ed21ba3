import base64
import binascii
import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Any

import pydantic
from fastapi import UploadFile

from artistphere.fs.images import ImageInput, InlineImage, LinkedImage, UploadedImage
from artistphere.log import get_logger
from artistphere.models.artists import (
    HTTP_URL,
    PLATFORMS,
    TEXT_FIELDS,
    UPLOAD_PATH,
    ArtistPayload,
)
from artistphere.models.errors import MissingImage, ValidationError

_log = get_logger(__name__)

NAME_MAX_LENGTH = 256

DATA_URI = re.compile(r"^data:(image/[A-Za-z0-9.+-]+);base64,(.*)$", re.DOTALL)


class ValidationMode(StrEnum):
    CREATE = auto()
    UPDATE = auto()
    UPSERT = auto()


@dataclass
class ValidatedPayload:
    mode: ValidationMode
    fields: dict[str, Any] = field(default_factory=dict)
    image: ImageInput | None = None
    artist_id: uuid.UUID | None = None


def parse_image(value: str) -> ImageInput:
    value = value.strip()

    if HTTP_URL.match(value) or UPLOAD_PATH.match(value):
        return LinkedImage(value)

    match = DATA_URI.match(value)
    if match is None:
        raise ValidationError("img", "Invalid image URL or file path")

    encoded = "".join(match.group(2).split())
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("img", "Inline image is not valid base64")

    if not data:
        raise ValidationError("img", "Inline image is empty")

    return InlineImage(data=data, declared_type=match.group(1).lower())


def _first_error(exc: pydantic.ValidationError) -> ValidationError:
    error = exc.errors()[0]
    loc = ".".join(str(part) for part in error["loc"]) or "body"
    if error["type"] == "extra_forbidden":
        return ValidationError(loc, "Unknown field")
    return ValidationError(loc, error["msg"])


def validate(
    payload: Mapping[str, Any],
    mode: ValidationMode,
    *,
    upload: UploadFile | None = None,
    exists: bool = False,
) -> ValidatedPayload:
    """
    Check an artist payload and normalize it for the store.

    ``UPSERT`` is resolved to ``UPDATE`` when the target record ``exists``
    and to ``CREATE`` otherwise. ``CREATE`` fills every optional field with
    its default, ``UPDATE`` returns only the fields the client supplied.

    Raises ``ValidationError`` for the first offending field, or
    ``MissingImage`` when a create carries no image.
    """
    if mode == ValidationMode.UPSERT:
        mode = ValidationMode.UPDATE if exists else ValidationMode.CREATE

    if not isinstance(payload, Mapping):
        raise ValidationError("body", "Request body must be an artist object")

    try:
        parsed = ArtistPayload.model_validate(payload)
    except pydantic.ValidationError as e:
        raise _first_error(e) from e

    supplied = parsed.model_fields_set
    creating = mode == ValidationMode.CREATE
    result = ValidatedPayload(mode=mode, artist_id=parsed.id)

    if creating or "name" in supplied:
        name = (parsed.name or "").strip()
        if not name:
            raise ValidationError("name", "Name is required" if creating else "Name cannot be empty")
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError("name", f"Name is longer than {NAME_MAX_LENGTH} characters")
        result.fields["name"] = name

    if upload is not None:
        result.image = UploadedImage(upload)
    elif "img" in supplied:
        if not parsed.img or not parsed.img.strip():
            raise ValidationError("img", "Image cannot be empty")
        result.image = parse_image(parsed.img)

    if creating and result.image is None:
        raise MissingImage()

    for text_field in TEXT_FIELDS:
        if text_field in supplied:
            result.fields[text_field] = getattr(parsed, text_field) or ""
        elif creating:
            result.fields[text_field] = ""

    links: dict[str, str] = {}
    if parsed.platformLinks is not None:
        links = parsed.platformLinks.model_dump(exclude_unset=True)

    if creating:
        result.fields["platformLinks"] = {p: "" for p in PLATFORMS} | links
    elif links:
        result.fields["platformLinks"] = links

    _log.debug(f"Validated {mode} payload: {sorted(result.fields)}")
    return result
