"""S3 I/O operations."""

import json

import boto3
from botocore.exceptions import ClientError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from publish_worker.domain.errors import ExternalUnavailableError
from publish_worker.domain.types import JsonValue
from publish_worker.infrastructure.config.settings import Settings

_MISSING_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3ObjectNotFoundError(KeyError):
    """Requested S3 object does not exist."""


def _raise_for(e: ClientError, action: str, key: str) -> None:
    code = e.response.get("Error", {}).get("Code")
    if code in _MISSING_CODES:
        raise S3ObjectNotFoundError(key) from e
    raise ExternalUnavailableError(f"Failed to {action} S3 object {key}: {e}") from e


_retry_unavailable = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(ExternalUnavailableError),
    reraise=True,
)


class S3IO:
    """S3 I/O operations."""

    def __init__(self, settings: Settings) -> None:
        """Initialize S3 client."""
        self.settings = settings
        self.s3_client = boto3.client("s3", region_name=settings.aws_region)
        self.bucket = settings.aws_s3_bucket

    @_retry_unavailable
    async def get_bytes(self, key: str, bucket: str | None = None) -> bytes:
        """Get raw object content from S3."""
        try:
            response = self.s3_client.get_object(Bucket=bucket or self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            _raise_for(e, "read", key)

    async def get_json(self, key: str) -> dict[str, JsonValue]:
        """Get JSON object from S3."""
        return json.loads((await self.get_bytes(key)).decode("utf-8"))

    async def put_json(self, key: str, data: dict[str, JsonValue]) -> None:
        """Put JSON object to S3."""
        content = json.dumps(data, default=str, indent=2)
        await self.put_object(key, content.encode("utf-8"), "application/json")

    @_retry_unavailable
    async def put_object(self, key: str, body: bytes, content_type: str = "application/octet-stream") -> None:
        """Put object to S3."""
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except ClientError as e:
            _raise_for(e, "write", key)

    @_retry_unavailable
    async def delete_object(self, key: str) -> None:
        """Delete object from S3. Deleting a missing object succeeds."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            _raise_for(e, "delete", key)

    async def object_exists(self, key: str) -> bool:
        """Check if object exists in S3."""
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError:
            return False
