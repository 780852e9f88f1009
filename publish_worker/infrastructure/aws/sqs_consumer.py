"""SQS consumer for dataset publish jobs."""

import asyncio
import json

import boto3
import structlog
from botocore.exceptions import ClientError
from pydantic import ValidationError

from publish_worker.application.dto.events import (
    DATASET_DELETE_REQUESTED,
    DATASET_JOB_REQUESTED,
    DatasetDeleteRequestedEvent,
    DatasetJobEvent,
    DatasetJobRequestedEvent,
)
from publish_worker.domain.errors import InvalidJobPayloadError
from publish_worker.infrastructure.config.settings import Settings

logger = structlog.get_logger()

_EVENT_TYPES: dict[str, type[DatasetJobRequestedEvent] | type[DatasetDeleteRequestedEvent]] = {
    DATASET_JOB_REQUESTED: DatasetJobRequestedEvent,
    DATASET_DELETE_REQUESTED: DatasetDeleteRequestedEvent,
}


class SQSConsumer:
    """SQS consumer for dataset publish jobs."""

    def __init__(self, settings: Settings) -> None:
        """Initialize SQS client."""
        self.sqs_client = boto3.client("sqs", region_name=settings.aws_region)
        self.queue_url = settings.aws_sqs_publish_job_queue_url

    async def receive_message(self) -> tuple[DatasetJobEvent | None, str | None]:
        """Receive and parse message from SQS.

        A message that cannot be parsed is deleted, since redelivering it can
        never succeed.

        Returns:
            Tuple of (event, receipt_handle) or (None, None) if no message.

        Raises:
            InvalidJobPayloadError: the message body is not a known job.
        """
        try:
            # Long poll off the event loop so other consumers keep running
            response = await asyncio.to_thread(
                self.sqs_client.receive_message,
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=20,
                MessageAttributeNames=["All"],
            )
        except ClientError as e:
            raise RuntimeError(f"Failed to receive message from SQS: {e}") from e

        messages = response.get("Messages", [])
        if not messages:
            return None, None

        message = messages[0]
        receipt_handle = message["ReceiptHandle"]
        try:
            body = json.loads(message["Body"])
            event = self._parse_event(body)
        except (KeyError, json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.error("invalid_job_payload", message_id=message.get("MessageId"), error=str(e))
            await self.delete_message(receipt_handle)
            raise InvalidJobPayloadError(f"Failed to parse message: {e}") from e

        return event, receipt_handle

    def _parse_event(self, body: dict) -> DatasetJobEvent:
        """Parse event from SQS message body."""
        if body.get("Type") == "Notification":
            return self._parse_sns_message(body)
        return self._parse_direct_message(body)

    def _parse_sns_message(self, sns_body: dict) -> DatasetJobEvent:
        """Parse event from SNS-wrapped message."""
        sns_message = json.loads(sns_body["Message"])
        message_attributes = sns_body.get("MessageAttributes", {})

        event_data = dict(sns_message)
        self._apply_message_attributes(event_data, message_attributes)
        return self._build_event(event_data)

    def _parse_direct_message(self, body: dict) -> DatasetJobEvent:
        """Parse event from direct SQS message."""
        return self._build_event(body)

    def _apply_message_attributes(self, event_data: dict, message_attributes: dict) -> None:
        """Apply SNS message attributes to event data."""
        if not message_attributes:
            return

        type_attr = message_attributes.get("type", {}).get("Value")
        dataset_id_attr = message_attributes.get("datasetId", {}).get("Value")

        if type_attr:
            event_data["type"] = type_attr
        if dataset_id_attr:
            event_data["datasetId"] = dataset_id_attr

    def _build_event(self, event_data: dict) -> DatasetJobEvent:
        """Build the event model for the message type."""
        event_type = event_data.get("type")
        event_class = _EVENT_TYPES.get(event_type)
        if event_class is None:
            raise ValueError(f"Unexpected event type: {event_type}")
        return event_class(**event_data)

    async def delete_message(self, receipt_handle: str) -> None:
        """Delete message from SQS."""
        try:
            self.sqs_client.delete_message(
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
            )
        except ClientError as e:
            raise RuntimeError(f"Failed to delete message from SQS: {e}") from e
