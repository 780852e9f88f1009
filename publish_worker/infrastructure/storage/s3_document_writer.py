"""S3-backed document storage."""

from publish_worker.domain.ports import DocumentWriterPort
from publish_worker.infrastructure.aws.s3_io import S3IO
from publish_worker.infrastructure.aws.s3_path import S3Path


class S3DocumentWriter(DocumentWriterPort):
    """Stores documents in the worker bucket and returns their s3:// url."""

    def __init__(self, s3_io: S3IO) -> None:
        """Initialize document writer."""
        self.s3_io = s3_io

    async def store(self, key: str, content: bytes, content_type: str) -> str:
        await self.s3_io.put_object(key, content, content_type)
        return S3Path.to_full_path(self.s3_io.bucket, key)
