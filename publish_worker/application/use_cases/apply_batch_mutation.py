"""Apply a batch of dataset changes - main orchestration."""

import dataclasses
import time

import structlog

from publish_worker.application.dto.events import DatasetJobRequestedEvent, FileOperation
from publish_worker.application.services.content import load_content
from publish_worker.application.services.file_validator import UPLOAD_PROBLEM_MESSAGE, FileValidator
from publish_worker.application.services.repository_sync import RepositorySynchronizer
from publish_worker.application.use_cases.create_file_schema import run as create_file_schema
from publish_worker.application.use_cases.dependencies import JobDependencies
from publish_worker.application.use_cases.report_status import run_failure, run_success
from publish_worker.domain.entities import Dataset, DatasetFile
from publish_worker.domain.enums import DatasetEvent, FileAction, PublishState
from publish_worker.domain.errors import (
    DatasetBusyError,
    ExternalUnavailableError,
    FilenameCollisionError,
    InvalidJobPayloadError,
    PublishValidationError,
    SchemaMalformedError,
    SchemaResolutionError,
)
from publish_worker.infrastructure.observability.metrics import job_duration_seconds, jobs_failed

logger = structlog.get_logger()

MISSING_CONTENT_MESSAGE = "has no content. Please upload a file or give a url and try again."
SCHEMA_CREATION_MESSAGE = "has a schema that could not be created. Please check your schema and try again."
BUSY_MESSAGE = "This dataset is being changed by another job. Please try again shortly."
BUILD_PENDING_MESSAGE = "Your dataset has been published but the site is still building. Please check back later."
BUILD_FAILED_MESSAGE = "Your dataset has been published but the site failed to build."
UNAVAILABLE_MESSAGE = "A remote service is currently unavailable. Please try again later."
INTERNAL_MESSAGE = "Something went wrong while publishing your dataset. Please try again."


@dataclasses.dataclass
class _Batch:
    """Per-job working state."""

    event: DatasetJobRequestedEvent
    dataset: Dataset
    validator: FileValidator
    synchronizer: RepositorySynchronizer
    added: list[DatasetFile] = dataclasses.field(default_factory=list)
    removed: list[DatasetFile] = dataclasses.field(default_factory=list)


async def run(event: DatasetJobRequestedEvent, deps: JobDependencies) -> DatasetEvent:
    """Apply attribute changes and file operations to one dataset, then publish.

    Reports a terminal status exactly once and returns the reported event.
    """
    structlog.contextvars.bind_contextvars(job_id=event.job_id, dataset_id=event.dataset_id)
    started = time.monotonic()
    try:
        logger.info("processing_job", file_operations=len(event.files))
        async with deps.lease.hold(event.dataset_id):
            return await _apply(event, deps)

    except DatasetBusyError:
        logger.warning("dataset_busy")
        await _report_failure(event, [BUSY_MESSAGE], deps, "busy")
        return DatasetEvent.FAILED
    except PublishValidationError as e:
        logger.info("job_validation_failed", messages=e.messages)
        await _report_failure(event, e.messages, deps, "validation")
        return DatasetEvent.FAILED
    except ExternalUnavailableError as e:
        logger.error("job_external_unavailable", error=str(e), exc_info=True)
        await _report_failure(event, [UNAVAILABLE_MESSAGE], deps, "internal")
        return DatasetEvent.FAILED
    except Exception as e:
        logger.error("job_failed", error=str(e), exc_info=True)
        await _report_failure(event, [INTERNAL_MESSAGE], deps, "internal")
        return DatasetEvent.FAILED
    finally:
        job_duration_seconds.observe(time.monotonic() - started)
        structlog.contextvars.unbind_contextvars("job_id", "dataset_id")


async def _apply(event: DatasetJobRequestedEvent, deps: JobDependencies) -> DatasetEvent:
    synchronizer = deps.synchronizer()
    batch = _Batch(
        event=event,
        dataset=await _load_dataset(event.dataset_id, synchronizer, deps),
        validator=deps.file_validator(),
        synchronizer=synchronizer,
    )
    dataset = batch.dataset
    dataset.assign_attributes({**event.dataset, "job_id": event.job_id})

    file_messages: list[str] = []
    for operation in event.files:
        file_messages.extend(await _apply_file_operation(operation, batch, deps))

    coordinator = deps.coordinator(synchronizer)
    messages = await coordinator.check(dataset) + file_messages
    if messages:
        await _flush_added_files(batch)
        await _report_failure(event, messages, deps, "validation")
        return DatasetEvent.FAILED

    await _stage_removals(batch)
    initial_state = dataset.state
    try:
        outcome = await coordinator.publish(dataset)
        await deps.dataset_store.save(dataset)
    except Exception:
        # Keep the last state reached, e.g. a repository that now exists
        if dataset.state != initial_state:
            await deps.dataset_store.save(dataset)
        raise

    if outcome.state == PublishState.BUILD_PENDING:
        await _report_failure(event, [BUILD_PENDING_MESSAGE], deps, "build_pending", DatasetEvent.BUILD_PENDING)
        return DatasetEvent.BUILD_PENDING
    if outcome.state == PublishState.BUILD_FAILED:
        await _report_failure(event, [BUILD_FAILED_MESSAGE], deps, "build_failed")
        return DatasetEvent.FAILED

    reported = DatasetEvent.CREATED if outcome.created else DatasetEvent.UPDATED
    await run_success(dataset, reported, event.channel_id, deps.notifier)
    logger.info("job_completed", state=outcome.state.value, reported=reported.value)
    return reported


async def _load_dataset(dataset_id: str, synchronizer: RepositorySynchronizer, deps: JobDependencies) -> Dataset:
    dataset = await deps.dataset_store.get(dataset_id)
    if await synchronizer.fetch(dataset) is None:
        return dataset
    try:
        if await deps.resolver.discover(dataset.schema_url) is not None:
            dataset.schema = dataset.schema_url
    except SchemaMalformedError:
        # Kept so the dataset checks report it as invalid
        dataset.schema = dataset.schema_url
    return dataset


# ============================================================================
# File Operations
# ============================================================================


async def _apply_file_operation(operation: FileOperation, batch: _Batch, deps: JobDependencies) -> list[str]:
    if operation.id is None:
        return await _add_file(operation, batch, deps)

    dataset_file = batch.dataset.find_file(operation.id)
    if dataset_file is None:
        raise InvalidJobPayloadError(f"File {operation.id} does not belong to dataset {batch.dataset.id}")

    if operation.action == FileAction.DELETE:
        await _remove_file(dataset_file, batch)
        return []
    return await _update_file(operation, dataset_file, batch, deps)


async def _add_file(operation: FileOperation, batch: _Batch, deps: JobDependencies) -> list[str]:
    title = operation.title
    try:
        schema_id = await _schema_for(operation, batch, deps)
    except (SchemaResolutionError, ExternalUnavailableError) as e:
        logger.warning("file_schema_creation_failed", title=title, error=str(e))
        return [_file_message(title, SCHEMA_CREATION_MESSAGE)]

    try:
        content = await load_content(deps.fetcher, operation.storage_key, operation.file)
    except ExternalUnavailableError as e:
        logger.warning("file_content_unavailable", title=title, error=str(e))
        return [_file_message(title, UPLOAD_PROBLEM_MESSAGE)]
    if content is None:
        return [_file_message(title, MISSING_CONTENT_MESSAGE)]

    dataset_file = DatasetFile.new_file(
        title=title,
        description=operation.description,
        content=content,
        storage_key=operation.storage_key,
        source_url=operation.file,
        dataset_file_schema_id=schema_id,
    )
    result = await batch.validator.validate(dataset_file, content)
    if not result.valid:
        return [_file_message(title, message) for message in result.messages]

    try:
        batch.dataset.add_file(dataset_file)
    except FilenameCollisionError as e:
        return [_file_message(title, message) for message in e.messages]

    try:
        if batch.synchronizer.has_remote:
            await batch.synchronizer.add_dataset_file(dataset_file, content)
            dataset_file.content = None
        await deps.dataset_store.save_file(batch.dataset.id, dataset_file)
    except ExternalUnavailableError as e:
        logger.error("file_add_failed", filename=dataset_file.filename, error=str(e))
        dataset_file.rollback()
        batch.dataset.remove_file(dataset_file)
        return [_file_message(title, UPLOAD_PROBLEM_MESSAGE)]

    dataset_file.persisted = True
    batch.added.append(dataset_file)
    logger.info("file_added", filename=dataset_file.filename, file_id=dataset_file.id)
    return []


async def _update_file(
    operation: FileOperation,
    dataset_file: DatasetFile,
    batch: _Batch,
    deps: JobDependencies,
) -> list[str]:
    title = operation.title or dataset_file.title
    try:
        schema_id = await _schema_for(operation, batch, deps) or dataset_file.dataset_file_schema_id
    except (SchemaResolutionError, ExternalUnavailableError) as e:
        logger.warning("file_schema_creation_failed", file_id=dataset_file.id, error=str(e))
        return [_file_message(title, SCHEMA_CREATION_MESSAGE)]

    try:
        content = await load_content(deps.fetcher, operation.storage_key, operation.file)
    except ExternalUnavailableError as e:
        logger.warning("file_content_unavailable", file_id=dataset_file.id, error=str(e))
        return [_file_message(title, UPLOAD_PROBLEM_MESSAGE)]

    # Validate a candidate so an invalid update leaves the file in its last-good state
    candidate = dataclasses.replace(
        dataset_file,
        title=title,
        description=operation.description if operation.description is not None else dataset_file.description,
        dataset_file_schema_id=schema_id,
    )
    checked = content
    if checked is None and schema_id != dataset_file.dataset_file_schema_id:
        # A newly attached schema applies to the content already published
        try:
            checked = await load_content(deps.fetcher, dataset_file.storage_key, dataset_file.source_url)
        except ExternalUnavailableError as e:
            logger.warning("file_content_unavailable", file_id=dataset_file.id, error=str(e))
            return [_file_message(title, UPLOAD_PROBLEM_MESSAGE)]
        if checked is None:
            return [_file_message(title, MISSING_CONTENT_MESSAGE)]

    result = await batch.validator.validate(candidate, checked)
    if not result.valid:
        return [_file_message(title, message) for message in result.messages]

    # Saved with the dataset once published, so a failed batch keeps the last-good record
    dataset_file.title = candidate.title
    dataset_file.description = candidate.description
    dataset_file.dataset_file_schema_id = schema_id
    dataset_file.metadata_dirty = True
    if content is not None:
        dataset_file.content = content
        dataset_file.storage_key = operation.storage_key
        dataset_file.source_url = operation.file
    logger.info("file_updated", file_id=dataset_file.id, content_replaced=content is not None)
    return []


async def _remove_file(dataset_file: DatasetFile, batch: _Batch) -> None:
    batch.dataset.remove_file(dataset_file)
    batch.removed.append(dataset_file)
    logger.info("file_removed", file_id=dataset_file.id, filename=dataset_file.filename)


async def _schema_for(operation: FileOperation, batch: _Batch, deps: JobDependencies) -> str | None:
    """Schema id for an operation, creating a schema from inline content first."""
    if operation.schema_content is not None:
        schema = await create_file_schema(
            operation.schema_name,
            operation.schema_description,
            operation.schema_content,
            batch.event.user_id,
            deps.document_writer,
            deps.dataset_store,
            deps.resolver,
        )
        return schema.id
    return operation.dataset_file_schema_id


async def _stage_removals(batch: _Batch) -> None:
    """Stage remote removals once the batch is known to publish."""
    if not batch.synchronizer.has_remote:
        return
    for dataset_file in batch.removed:
        await batch.synchronizer.remove_dataset_file(dataset_file)


async def _flush_added_files(batch: _Batch) -> None:
    """Publish the writes of files that were added and persisted in a failed batch."""
    if not batch.added or not batch.synchronizer.has_remote:
        return
    names = ", ".join(f.filename for f in batch.added)
    await batch.synchronizer.push(f"Add {names}")


# ============================================================================
# Reporting
# ============================================================================


def _file_message(title: str | None, message: str) -> str:
    return f"Your file '{title or ''}' {message}"


async def _report_failure(
    event: DatasetJobRequestedEvent,
    messages: list[str],
    deps: JobDependencies,
    reason: str,
    reported: DatasetEvent = DatasetEvent.FAILED,
) -> None:
    jobs_failed.labels(reason=reason).inc()
    await run_failure(event.job_id, messages, event.channel_id, deps.notifier, deps.error_sink, reported)
