"""SNS notifier for live dataset job notifications."""

import json
import uuid

import boto3
import structlog
from botocore.exceptions import ClientError
from tenacity import retry, stop_after_attempt, wait_exponential

from publish_worker.domain.enums import DatasetEvent
from publish_worker.domain.ports import NotificationPort
from publish_worker.domain.types import JsonDict
from publish_worker.infrastructure.config.settings import Settings

logger = structlog.get_logger()


class SNSNotifier(NotificationPort):
    """Publishes job notifications to an SNS topic.

    The front end subscribes to the topic and fans each message out to the
    channel named in its ``channel`` attribute.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize SNS client."""
        self.settings = settings
        self.sns_client = boto3.client("sns", region_name=settings.aws_region)
        self.topic_arn = settings.aws_sns_dataset_events_topic_arn

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=2, max=10))
    async def notify(self, channel: str, event: DatasetEvent, payload: JsonDict | list) -> None:
        """Publish an event to a notification channel."""
        message = {
            "channel": channel,
            "event": event.value,
            "payload": payload,
        }
        await self._publish(message, channel, event.value)

    async def _publish(self, message: dict, channel: str, event_type: str) -> None:
        """Publish message to the SNS topic."""
        try:
            publish_params = {
                "TopicArn": self.topic_arn,
                "Message": json.dumps(message, default=str),
                "MessageAttributes": {
                    "type": {"DataType": "String", "StringValue": event_type},
                    "channel": {"DataType": "String", "StringValue": channel},
                },
            }

            # For FIFO topics, keep events of one channel in order
            if self.topic_arn.endswith(".fifo"):
                publish_params["MessageGroupId"] = channel
                publish_params["MessageDeduplicationId"] = str(uuid.uuid4())

            logger.info("publishing_event_to_sns", event_type=event_type, channel=channel)

            response = self.sns_client.publish(**publish_params)

            logger.info(
                "event_published_to_sns",
                event_type=event_type,
                channel=channel,
                message_id=response.get("MessageId"),
            )
        except ClientError as e:
            logger.error(
                "failed_to_publish_event_to_sns",
                event_type=event_type,
                channel=channel,
                error=str(e),
                error_code=e.response.get("Error", {}).get("Code"),
            )
            raise RuntimeError(f"Failed to publish event to SNS: {e}") from e
