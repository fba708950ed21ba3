from artistphere.fs.core import (
    ALLOWED_IMAGE_TYPES,
    MAX_FILE_SIZE,
    setup_minio,
    teardown_minio,
    with_bucket,
)
from artistphere.fs.images import (
    ImageInput,
    ImageResolver,
    InlineImage,
    LinkedImage,
    UploadedImage,
)

__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "MAX_FILE_SIZE",
    "setup_minio",
    "teardown_minio",
    "with_bucket",
    "ImageInput",
    "ImageResolver",
    "InlineImage",
    "LinkedImage",
    "UploadedImage",
]
