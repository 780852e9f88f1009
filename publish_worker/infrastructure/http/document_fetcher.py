"""Document fetching from S3 and over HTTP."""

import httpx
import structlog

from publish_worker.domain.errors import ExternalUnavailableError
from publish_worker.domain.ports import DocumentFetcherPort
from publish_worker.infrastructure.aws.s3_io import S3IO, S3ObjectNotFoundError
from publish_worker.infrastructure.aws.s3_path import S3Path

logger = structlog.get_logger()


class DocumentFetcher(DocumentFetcherPort):
    """Fetches s3:// urls from S3 and anything else over HTTP."""

    def __init__(self, s3_io: S3IO, client: httpx.AsyncClient) -> None:
        """Initialize document fetcher."""
        self.s3_io = s3_io
        self.client = client

    async def fetch(self, url: str) -> bytes:
        if S3Path.is_s3_url(url):
            try:
                bucket, key = S3Path.split(url)
            except ValueError as e:
                raise ExternalUnavailableError(str(e)) from e
            return await self._get_s3(key, bucket)
        return await self._get_http(url)

    async def fetch_upload(self, storage_key: str) -> bytes:
        return await self._get_s3(storage_key)

    async def _get_s3(self, key: str, bucket: str | None = None) -> bytes:
        try:
            return await self.s3_io.get_bytes(key, bucket)
        except S3ObjectNotFoundError as e:
            raise ExternalUnavailableError(f"Document not found: {key}") from e

    async def _get_http(self, url: str) -> bytes:
        try:
            response = await self.client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("document_fetch_failed", url=url, error=str(e))
            raise ExternalUnavailableError(f"Failed to fetch {url}: {e}") from e
        logger.info("document_fetched", url=url, size=len(response.content))
        return response.content
