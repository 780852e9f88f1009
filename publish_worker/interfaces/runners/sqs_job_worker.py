"""SQS job worker adapter."""

import structlog

from publish_worker.application.dto.events import DatasetDeleteRequestedEvent, DatasetJobEvent
from publish_worker.application.use_cases.apply_batch_mutation import run as apply_batch_mutation
from publish_worker.application.use_cases.delete_dataset import run as delete_dataset
from publish_worker.application.use_cases.dependencies import JobDependencies
from publish_worker.domain.enums import DatasetEvent
from publish_worker.domain.errors import InvalidJobPayloadError
from publish_worker.infrastructure.aws.sqs_consumer import SQSConsumer
from publish_worker.infrastructure.observability.metrics import jobs_failed, jobs_started, jobs_succeeded

logger = structlog.get_logger()

_SUCCESS_EVENTS = frozenset({DatasetEvent.CREATED, DatasetEvent.UPDATED, DatasetEvent.DELETED})


class SQSJobWorker:
    """Pulls dataset jobs off the queue and runs them to a terminal status.

    Jobs report their own failures, so every received message is deleted once
    its job has run; nothing is redelivered.
    """

    def __init__(self, sqs_consumer: SQSConsumer, deps: JobDependencies) -> None:
        """Initialize SQS job worker."""
        self.sqs_consumer = sqs_consumer
        self.deps = deps

    async def process_next_message(self) -> bool:
        """Process next message from SQS. Returns True if message was processed."""
        try:
            event, receipt_handle = await self.sqs_consumer.receive_message()
        except InvalidJobPayloadError:
            jobs_failed.labels(reason="validation").inc()
            return True

        if event is None:
            return False

        jobs_started.inc()
        try:
            result = await self.dispatch(event)
        except Exception:
            jobs_failed.labels(reason="internal").inc()
            await self.sqs_consumer.delete_message(receipt_handle)
            raise

        if result in _SUCCESS_EVENTS:
            jobs_succeeded.inc()
        await self.sqs_consumer.delete_message(receipt_handle)
        return True

    async def dispatch(self, event: DatasetJobEvent) -> DatasetEvent:
        if isinstance(event, DatasetDeleteRequestedEvent):
            return await delete_dataset(event, self.deps)
        return await apply_batch_mutation(event, self.deps)
