import re
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator

PLATFORMS: tuple[str, ...] = (
    "spotify",
    "soundcloud",
    "youtube",
    "instagram",
    "applemusic",
    "beatport",
    "bandcamp",
    "twitter",
    "deezer",
    "audiomack",
    "twitch",
)

TEXT_FIELDS: tuple[str, ...] = (
    "bio",
    "paragraph1",
    "paragraph2",
    "paragraph3",
    "hitSong",
    "charity",
    "aboutCharity",
)

HTTP_URL = re.compile(r"^https?://\S+$")
UPLOAD_PATH = re.compile(r"^/uploads/\S+$")


class PlatformLinks(BaseModel):
    """Links to an artist's profiles. Every value is empty or an http(s) URL."""

    model_config = ConfigDict(extra="forbid")

    spotify: str | None = None
    soundcloud: str | None = None
    youtube: str | None = None
    instagram: str | None = None
    applemusic: str | None = None
    beatport: str | None = None
    bandcamp: str | None = None
    twitter: str | None = None
    deezer: str | None = None
    audiomack: str | None = None
    twitch: str | None = None

    @field_validator(*PLATFORMS)
    @classmethod
    def validate_link(cls, v: str | None) -> str:
        if not v:
            return ""
        v = v.strip()
        if not HTTP_URL.match(v):
            raise ValueError("Link must be an http(s) URL")
        return v


class ArtistPayload(BaseModel):
    """Artist fields as a client submits them. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID | None = None
    name: str | None = None
    img: str | None = None
    bio: str | None = None
    paragraph1: str | None = None
    paragraph2: str | None = None
    paragraph3: str | None = None
    hitSong: str | None = None
    charity: str | None = None
    aboutCharity: str | None = None
    platformLinks: PlatformLinks | None = None


class ArtistRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    imageRef: str
    bio: str = ""
    paragraph1: str = ""
    paragraph2: str = ""
    paragraph3: str = ""
    hitSong: str = ""
    charity: str = ""
    aboutCharity: str = ""
    platformLinks: dict[str, str] = {}
    createdAt: datetime
    updatedAt: datetime

    @field_validator("createdAt", "updatedAt")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive values for timezone-aware columns
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ArtistResponse(BaseModel):
    success: bool = True
    data: ArtistRecord | None = None
    message: str | None = None
    wasCreated: bool | None = None


class ArtistListResponse(BaseModel):
    success: bool = True
    data: list[ArtistRecord] = []
    message: str | None = None
