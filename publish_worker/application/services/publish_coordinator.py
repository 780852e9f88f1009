"""Dataset publish lifecycle.

Draft -> RemoteCreated -> ContentPushed -> BuildPending -> Certified | BuildFailed
"""

from dataclasses import dataclass
from datetime import timedelta

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.stop import stop_base

from publish_worker.application.services.content import load_content
from publish_worker.application.services.repository_sync import RepositorySynchronizer
from publish_worker.application.services.schema_resolver import SchemaResolver
from publish_worker.application.services.site_builder import CONFIG_PATH, build_certified_site_config
from publish_worker.domain.entities import Dataset, PublishOutcome, ResolvedSchema
from publish_worker.domain.enums import BuildStatus, PublishState
from publish_worker.domain.errors import (
    ExternalUnavailableError,
    InvalidSchemaError,
    RepositoryNameCollisionError,
    SchemaMalformedError,
    SchemaParseError,
    SchemaUnreachableError,
)
from publish_worker.domain.ports import (
    BuildStatusPort,
    CertificateIssuerPort,
    ClockPort,
    DocumentFetcherPort,
)
from publish_worker.infrastructure.observability.metrics import build_poll_attempts

logger = structlog.get_logger()

INVALID_SCHEMA_MESSAGE = "Schema is invalid"

_STILL_BUILDING = frozenset({None, BuildStatus.QUEUED.value, BuildStatus.BUILDING.value})

# A repository exists but its first push never completed
_CONTENT_NOT_PUSHED = frozenset({PublishState.DRAFT, PublishState.REMOTE_CREATED})
_BUILD_NOT_SEEN = frozenset({PublishState.CONTENT_PUSHED, PublishState.BUILD_PENDING})


@dataclass(frozen=True)
class PollPolicy:
    """Bounds for the build-status poll."""

    initial_seconds: float = 5
    max_interval_seconds: float = 60
    max_attempts: int = 20
    deadline_seconds: float = 900


class PublishCoordinator:
    """Drives a dataset through its publish lifecycle."""

    def __init__(
        self,
        synchronizer: RepositorySynchronizer,
        resolver: SchemaResolver,
        build_status: BuildStatusPort,
        certificates: CertificateIssuerPort,
        fetcher: DocumentFetcherPort,
        clock: ClockPort,
        poll_policy: PollPolicy | None = None,
    ) -> None:
        """Initialize publish coordinator."""
        self.synchronizer = synchronizer
        self.resolver = resolver
        self.build_status = build_status
        self.certificates = certificates
        self.fetcher = fetcher
        self.clock = clock
        self.poll_policy = poll_policy or PollPolicy()

    async def check(self, dataset: Dataset) -> list[str]:
        """Dataset-level validation, run before any remote side effect."""
        messages: list[str] = []
        try:
            await self.dataset_schema(dataset)
        except InvalidSchemaError as e:
            messages.extend(e.messages)

        if not self.synchronizer.has_remote:
            try:
                await self.synchronizer.ensure_name_available(dataset)
            except RepositoryNameCollisionError as e:
                messages.extend(e.messages)
        return messages

    async def dataset_schema(self, dataset: Dataset) -> ResolvedSchema | None:
        if not dataset.schema:
            return None
        try:
            return await self.resolver.resolve(dataset.schema)
        except (SchemaMalformedError, SchemaParseError) as e:
            raise InvalidSchemaError(INVALID_SCHEMA_MESSAGE) from e
        except SchemaUnreachableError as e:
            raise ExternalUnavailableError(f"Schema could not be fetched: {dataset.schema}") from e

    async def publish(self, dataset: Dataset) -> PublishOutcome:
        """Create, update or resume publishing from the last state reached."""
        if not self.synchronizer.has_remote:
            return await self.create(dataset)
        if dataset.state in _CONTENT_NOT_PUSHED:
            return await self.resume_create(dataset)

        outcome = await self.update(dataset)
        if dataset.state in _BUILD_NOT_SEEN:
            logger.info("dataset_build_resumed", dataset_id=dataset.id, state=dataset.state.value)
            return await self._complete_build(dataset, created=False)
        return outcome

    async def create(self, dataset: Dataset) -> PublishOutcome:
        """Create the remote repository, push all content and wait for the site."""
        schema = await self.dataset_schema(dataset)

        await self.synchronizer.ensure_name_available(dataset)
        await self.synchronizer.create_repository(dataset)
        dataset.state = PublishState.REMOTE_CREATED
        return await self._push_all(dataset, schema)

    async def resume_create(self, dataset: Dataset) -> PublishOutcome:
        """Push the full content of a repository whose first push never completed."""
        logger.info("dataset_create_resumed", dataset_id=dataset.id, full_name=dataset.full_name)
        schema = await self.dataset_schema(dataset)
        return await self._push_all(dataset, schema)

    async def _push_all(self, dataset: Dataset, schema: ResolvedSchema | None) -> PublishOutcome:
        contents: dict[str, bytes] = {}
        for dataset_file in dataset.files:
            content = dataset_file.content
            if content is None:
                content = await load_content(self.fetcher, dataset_file.storage_key, dataset_file.source_url)
            if content is None:
                logger.warning("dataset_file_without_content", filename=dataset_file.filename)
                continue
            await self.synchronizer.add_dataset_file(dataset_file, content)
            dataset_file.content = None
            contents[dataset_file.filename] = content

        await self.synchronizer.write_scaffold(dataset, schema, contents)
        await self.synchronizer.push(f"Create {dataset.name}")
        dataset.state = PublishState.CONTENT_PUSHED
        logger.info("dataset_content_pushed", dataset_id=dataset.id, files=len(contents))
        return await self._complete_build(dataset, created=True)

    async def _complete_build(self, dataset: Dataset, created: bool) -> PublishOutcome:
        dataset.state = await self.await_build(dataset)
        if dataset.state == PublishState.CERTIFIED:
            await self.certify(dataset)
        return PublishOutcome(state=dataset.state, created=created)

    async def update(self, dataset: Dataset) -> PublishOutcome:
        """Push changed files and the rebuilt descriptor in a single push."""
        schema = await self.dataset_schema(dataset)

        for dataset_file in dataset.files:
            if dataset_file.content is None and not dataset_file.metadata_dirty:
                continue
            await self.synchronizer.update_dataset_file(dataset_file, dataset_file.content)
            dataset_file.content = None

        await self.synchronizer.write_descriptor(dataset, schema)
        await self.synchronizer.push(f"Update {dataset.name}")
        logger.info("dataset_updated", dataset_id=dataset.id, state=dataset.state.value)
        return PublishOutcome(state=dataset.state, created=False)

    async def delete(self, dataset: Dataset) -> None:
        await self.synchronizer.delete_repository()
        logger.info("dataset_remote_deleted", dataset_id=dataset.id)

    async def await_build(self, dataset: Dataset) -> PublishState:
        """Poll the build status with bounded exponential backoff."""
        policy = self.poll_policy
        dataset.state = PublishState.BUILD_PENDING
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts) | _stop_at_deadline(self.clock, policy.deadline_seconds),
            wait=wait_exponential(
                multiplier=policy.initial_seconds,
                min=policy.initial_seconds,
                max=policy.max_interval_seconds,
            ),
            retry=retry_if_result(lambda status: status in _STILL_BUILDING)
            | retry_if_exception_type(ExternalUnavailableError),
            sleep=self.clock.sleep,
            before_sleep=_log_build_poll,
        )

        try:
            status = await retrying(self.build_status.get_build_status, dataset.full_name)
        except RetryError:
            logger.warning("build_still_pending", dataset_id=dataset.id, full_name=dataset.full_name)
            return PublishState.BUILD_PENDING
        finally:
            build_poll_attempts.observe(retrying.statistics.get("attempt_number", 0))

        if status == BuildStatus.BUILT.value:
            logger.info("build_complete", dataset_id=dataset.id)
            return PublishState.CERTIFIED

        logger.error("build_failed", dataset_id=dataset.id, status=status)
        return PublishState.BUILD_FAILED

    async def certify(self, dataset: Dataset) -> None:
        """Request a certificate and add its badge to the site.

        Issuance that never completes leaves the dataset certified without a badge.
        """
        try:
            generated = await self.certificates.generate(dataset.pages_url)
            if generated.get("success") != "pending":
                logger.info("certificate_not_pending", dataset_id=dataset.id, success=generated.get("success"))
                return
            result = await self.certificates.result(dataset.pages_url)
        except ExternalUnavailableError as e:
            logger.warning("certificate_unavailable", dataset_id=dataset.id, error=str(e))
            return

        certificate_url = result.get("certificate_url")
        if not certificate_url:
            logger.info("certificate_not_issued", dataset_id=dataset.id)
            return

        dataset.certificate_url = str(certificate_url).replace(".json", "")
        await self.synchronizer.update_file(CONFIG_PATH, build_certified_site_config(dataset))
        await self.synchronizer.push("Add certificate badge")
        logger.info("certificate_added", dataset_id=dataset.id, certificate_url=dataset.certificate_url)


class _stop_at_deadline(stop_base):
    """Stop once the clock passes a deadline set when polling starts."""

    def __init__(self, clock: ClockPort, seconds: float) -> None:
        self.clock = clock
        self.deadline = clock.now() + timedelta(seconds=seconds)

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.clock.now() >= self.deadline


def _log_build_poll(retry_state: RetryCallState) -> None:
    logger.info(
        "build_pending_retry",
        attempt=retry_state.attempt_number,
        next_wait=retry_state.next_action.sleep if retry_state.next_action else None,
    )
