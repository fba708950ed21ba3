from enum import StrEnum, auto
from pydantic import BaseModel


class StandardErrorTypes(StrEnum):
    VALIDATION_ERROR = auto()
    INVALID_ID = auto()
    IMAGE_TOO_LARGE = auto()
    DUPLICATE_NAME = auto()
    NOT_FOUND = auto()
    MISSING_IMAGE = auto()
    UPLOAD_FAILURE = auto()
    STORAGE_UNAVAILABLE = auto()
    FORBIDDEN_ORIGIN = auto()
    INTERNAL = auto()


class StandardError(BaseModel):
    success: bool = False
    message: str
    error: StandardErrorTypes | None = None


class ArtistError(Exception):
    """Base for every failure the artist pipeline reports to a caller."""

    status_code: int = 500
    type: StandardErrorTypes = StandardErrorTypes.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> StandardError:
        return StandardError(message=self.message, error=self.type)


class ValidationError(ArtistError):
    status_code = 400
    type = StandardErrorTypes.VALIDATION_ERROR

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class InvalidId(ArtistError):
    status_code = 400
    type = StandardErrorTypes.INVALID_ID

    def __init__(self, artist_id: str):
        super().__init__("Invalid artist ID")
        self.artist_id = artist_id


class ImageTooLarge(ValidationError):
    status_code = 413
    type = StandardErrorTypes.IMAGE_TOO_LARGE


class DuplicateName(ArtistError):
    status_code = 400
    type = StandardErrorTypes.DUPLICATE_NAME

    def __init__(self, name: str):
        super().__init__(f"An artist named '{name}' already exists")
        self.name = name


class NotFound(ArtistError):
    status_code = 404
    type = StandardErrorTypes.NOT_FOUND

    def __init__(self, artist_id: object):
        super().__init__("Artist not found")
        self.artist_id = artist_id


class MissingImage(ArtistError):
    status_code = 400
    type = StandardErrorTypes.MISSING_IMAGE

    def __init__(self, message: str = "An image URL, inline image or file upload is required"):
        super().__init__(message)


class UploadFailure(ArtistError):
    status_code = 500
    type = StandardErrorTypes.UPLOAD_FAILURE


class StorageUnavailable(ArtistError):
    status_code = 500
    type = StandardErrorTypes.STORAGE_UNAVAILABLE

    def __init__(self, message: str = "Artist storage is unavailable"):
        super().__init__(message)
