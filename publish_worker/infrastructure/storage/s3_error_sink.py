"""S3-backed job error records."""

import structlog

from publish_worker.domain.ports import ClockPort, ErrorSinkPort
from publish_worker.domain.types import ErrorRecordDict
from publish_worker.infrastructure.aws.s3_io import S3IO
from publish_worker.infrastructure.aws.s3_path import S3Path

logger = structlog.get_logger()

ERRORS_PREFIX = "errors"


class S3ErrorSink(ErrorSinkPort):
    """Writes one error record per failed job, keyed by job id."""

    def __init__(self, s3_io: S3IO, clock: ClockPort) -> None:
        """Initialize error sink."""
        self.s3_io = s3_io
        self.clock = clock

    async def record_error(self, job_id: str, messages: list[str]) -> None:
        record: ErrorRecordDict = {
            "job_id": job_id,
            "messages": messages,
            "recorded_at": self.clock.now().isoformat() + "Z",
        }
        key = S3Path.join(ERRORS_PREFIX, f"{job_id}.json")
        await self.s3_io.put_json(key, dict(record))
        logger.info("error_record_written", job_id=job_id, key=key)
