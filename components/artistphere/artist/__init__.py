from artistphere.artist.core import ArtistStore, IdentityHint
from artistphere.artist.validation import ValidatedPayload, ValidationMode, validate

__all__ = ["ArtistStore", "IdentityHint", "ValidatedPayload", "ValidationMode", "validate"]
