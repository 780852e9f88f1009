"""Report the terminal status of a dataset job."""

import dataclasses

import structlog

from publish_worker.domain.entities import Dataset
from publish_worker.domain.enums import DatasetEvent
from publish_worker.domain.ports import ErrorSinkPort, NotificationPort
from publish_worker.domain.types import FailurePayloadDict, JsonDict

logger = structlog.get_logger()


async def run_success(
    dataset: Dataset,
    event: DatasetEvent,
    channel_id: str | None,
    notifier: NotificationPort,
) -> None:
    """Notify the channel, if any, with the serialized dataset.

    Nothing is recorded on success when no channel was supplied.
    """
    if not channel_id:
        logger.info("job_succeeded_without_channel", dataset_id=dataset.id, reported=event.value)
        return
    await notifier.notify(channel_id, event, serialize_dataset(dataset))


async def run_failure(
    job_id: str,
    messages: list[str],
    channel_id: str | None,
    notifier: NotificationPort,
    error_sink: ErrorSinkPort,
    event: DatasetEvent = DatasetEvent.FAILED,
) -> None:
    """Notify the channel with the failure messages, or record them."""
    unique_messages = dedupe(messages)
    if channel_id:
        payload: FailurePayloadDict = {"messages": unique_messages}
        await notifier.notify(channel_id, event, payload)
    else:
        await error_sink.record_error(job_id, unique_messages)
    logger.info("job_failure_reported", job_id=job_id, reported=event.value, message_count=len(unique_messages))


def dedupe(messages: list[str]) -> list[str]:
    """Drop repeated messages, keeping first-seen order."""
    return list(dict.fromkeys(messages))


def serialize_dataset(dataset: Dataset) -> JsonDict:
    payload = dataclasses.asdict(dataset)
    payload["state"] = dataset.state.value
    payload["full_name"] = dataset.full_name
    payload["pages_url"] = dataset.pages_url
    for file_payload in payload["files"]:
        file_payload.pop("content", None)
        file_payload.pop("metadata_dirty", None)
    return payload
