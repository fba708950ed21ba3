from artistphere.log import get_logger

import json

import urllib3
from minio import Minio
from minio.error import MinioException

_log = get_logger(__name__)

_client: Minio | None = None


def setup_minio(
    endpoint: str,
    access_key: str,
    secret_key: str,
    bucket: str | None = None,
    secure: bool = False,
    timeout: float = 10.0,
):
    global _client

    if _client:
        _log.debug("Minio connection established, returning existing client")
        return _client

    _log.info("Setting up Minio client")

    # Minio's default pool never times out a read; uploads must fail instead of hanging.
    http_client = urllib3.PoolManager(
        timeout=urllib3.Timeout(connect=timeout, read=timeout),
        retries=urllib3.Retry(
            total=2, backoff_factor=0.2, status_forcelist=[500, 502, 503, 504]
        ),
    )
    _client = Minio(
        endpoint,
        access_key=access_key,
        secret_key=secret_key,
        secure=secure,
        http_client=http_client,
    )

    policy = {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket}/*",
            },
        ],
    }

    if bucket:
        try:
            found = _client.bucket_exists(bucket_name=bucket)
            if not found:
                _log.warning(
                    f"{bucket} does not exist, creating and setting read only policy"
                )
                _client.make_bucket(bucket_name=bucket)
                _client.set_bucket_policy(bucket_name=bucket, policy=json.dumps(policy))
                _log.debug("Done")
            else:
                _log.info(f"{bucket} exists.")
        except (MinioException, urllib3.exceptions.HTTPError) as e:
            # Inline uploads will fail with UploadFailure until the store is reachable.
            _log.error(f"Could not verify bucket {bucket}: {e}")

    return _client


def teardown_minio():
    global _client

    if _client is None:
        return

    _client = None
    _log.debug("Minio client released")


async def with_bucket() -> Minio | None:
    return _client


ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
