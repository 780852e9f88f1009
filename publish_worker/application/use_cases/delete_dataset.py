"""Delete a dataset and its remote repository."""

import structlog

from publish_worker.application.dto.events import DatasetDeleteRequestedEvent
from publish_worker.application.use_cases.dependencies import JobDependencies
from publish_worker.application.use_cases.report_status import run_failure
from publish_worker.domain.enums import DatasetEvent
from publish_worker.domain.errors import DatasetBusyError, DatasetNotFoundError
from publish_worker.infrastructure.observability.metrics import jobs_failed

logger = structlog.get_logger()

DELETE_FAILED_MESSAGE = "Your dataset could not be deleted. Please try again."


async def run(event: DatasetDeleteRequestedEvent, deps: JobDependencies) -> DatasetEvent:
    """Delete the repository, then the dataset record.

    Deleting a dataset that no longer exists, or whose repository is already
    gone, succeeds without side effects.
    """
    structlog.contextvars.bind_contextvars(job_id=event.job_id, dataset_id=event.dataset_id)
    try:
        async with deps.lease.hold(event.dataset_id):
            try:
                dataset = await deps.dataset_store.get(event.dataset_id)
            except DatasetNotFoundError:
                logger.info("dataset_already_deleted")
            else:
                synchronizer = deps.synchronizer()
                await synchronizer.fetch(dataset)
                await deps.coordinator(synchronizer).delete(dataset)
                await deps.dataset_store.delete(dataset.id)

        if event.channel_id:
            await deps.notifier.notify(event.channel_id, DatasetEvent.DELETED, {"id": event.dataset_id})
        logger.info("dataset_deleted")
        return DatasetEvent.DELETED

    except DatasetBusyError:
        logger.warning("dataset_busy")
        jobs_failed.labels(reason="busy").inc()
        await run_failure(event.job_id, [DELETE_FAILED_MESSAGE], event.channel_id, deps.notifier, deps.error_sink)
        return DatasetEvent.FAILED
    except Exception as e:
        logger.error("dataset_delete_failed", error=str(e), exc_info=True)
        jobs_failed.labels(reason="internal").inc()
        await run_failure(event.job_id, [DELETE_FAILED_MESSAGE], event.channel_id, deps.notifier, deps.error_sink)
        return DatasetEvent.FAILED
    finally:
        structlog.contextvars.unbind_contextvars("job_id", "dataset_id")
