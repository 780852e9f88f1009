"""Main entrypoint."""

import asyncio
import os
import signal

import httpx
import structlog
from prometheus_client import start_http_server

from publish_worker.application.services.publish_coordinator import PollPolicy
from publish_worker.application.services.schema_resolver import SchemaResolver
from publish_worker.application.use_cases.dependencies import JobDependencies
from publish_worker.infrastructure.aws.s3_io import S3IO
from publish_worker.infrastructure.aws.sns_notifier import SNSNotifier
from publish_worker.infrastructure.aws.sqs_consumer import SQSConsumer
from publish_worker.infrastructure.config.settings import Settings
from publish_worker.infrastructure.github.pages_status import GitHubPagesStatus
from publish_worker.infrastructure.github.repository_store import GitHubRepositoryStore
from publish_worker.infrastructure.http.certificate_client import CertificateClient
from publish_worker.infrastructure.http.document_fetcher import DocumentFetcher
from publish_worker.infrastructure.observability.logging import configure_logging
from publish_worker.infrastructure.runtime.clock import SystemClock
from publish_worker.infrastructure.runtime.lease import LocalDatasetLease
from publish_worker.infrastructure.runtime.site_assets import FileSystemSiteAssets
from publish_worker.infrastructure.storage.s3_dataset_store import S3DatasetStore
from publish_worker.infrastructure.storage.s3_document_writer import S3DocumentWriter
from publish_worker.infrastructure.storage.s3_error_sink import S3ErrorSink
from publish_worker.interfaces.runners.sqs_job_worker import SQSJobWorker

logger = structlog.get_logger()

shutdown_event = asyncio.Event()


def signal_handler() -> None:
    """Handle shutdown signal."""
    logger.info("shutdown_signal_received")
    shutdown_event.set()


def export_aws_credentials(settings: Settings) -> bool:
    """Load AWS credentials from Settings to environment for boto3."""
    has_credentials = False
    if settings.aws_access_key_id:
        os.environ["AWS_ACCESS_KEY_ID"] = settings.aws_access_key_id
        has_credentials = True
    if settings.aws_secret_access_key:
        os.environ["AWS_SECRET_ACCESS_KEY"] = settings.aws_secret_access_key
        has_credentials = True
    if settings.aws_session_token:
        os.environ["AWS_SESSION_TOKEN"] = settings.aws_session_token
    return has_credentials


def build_dependencies(
    settings: Settings,
    github_client: httpx.AsyncClient,
    http_client: httpx.AsyncClient,
) -> JobDependencies:
    """Wire the production adapters."""
    s3_io = S3IO(settings)
    clock = SystemClock()
    fetcher = DocumentFetcher(s3_io, http_client)
    return JobDependencies(
        dataset_store=S3DatasetStore(s3_io),
        repository_store=GitHubRepositoryStore(github_client, settings.github_login, settings.github_pages_branch),
        fetcher=fetcher,
        document_writer=S3DocumentWriter(s3_io),
        notifier=SNSNotifier(settings),
        error_sink=S3ErrorSink(s3_io, clock),
        build_status=GitHubPagesStatus(github_client),
        certificates=CertificateClient(http_client, settings.certificate_service_url, settings.certificate_api_key),
        site_assets=FileSystemSiteAssets(settings.site_assets_dir),
        lease=LocalDatasetLease(settings.dataset_lease_timeout_seconds),
        clock=clock,
        resolver=SchemaResolver(fetcher),
        poll_policy=PollPolicy(
            initial_seconds=settings.build_poll_initial_seconds,
            max_interval_seconds=settings.build_poll_max_interval_seconds,
            max_attempts=settings.build_poll_max_attempts,
            deadline_seconds=settings.build_poll_deadline_seconds,
        ),
    )


async def consume(worker: SQSJobWorker, slot: int) -> None:
    """One consumer loop; several run side by side."""
    while not shutdown_event.is_set():
        try:
            await worker.process_next_message()
        except Exception as e:
            logger.error("main_loop_error", slot=slot, exc_info=True, error=str(e))
            await asyncio.sleep(5)


async def main_loop() -> None:
    """Main event loop."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)
    logger.info("worker_starting")

    has_credentials = export_aws_credentials(settings)
    env_has_access_key = bool(os.environ.get("AWS_ACCESS_KEY_ID"))
    env_has_secret_key = bool(os.environ.get("AWS_SECRET_ACCESS_KEY"))

    logger.info(
        "settings_loaded",
        region=settings.aws_region,
        bucket=settings.aws_s3_bucket,
        sqs_queue_url=settings.aws_sqs_publish_job_queue_url,
        sqs_queue_enabled=settings.aws_sqs_publish_job_queue_enabled,
        github_api_url=settings.github_api_url,
        worker_concurrency=settings.worker_concurrency,
        credentials_from_settings=has_credentials,
        credentials_from_env=env_has_access_key and env_has_secret_key,
    )

    if not env_has_access_key or not env_has_secret_key:
        logger.warning(
            "aws_credentials_missing",
            message="AWS credentials not found. Make sure AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are set in .env or environment",
        )

    start_http_server(settings.prometheus_port)

    if not settings.aws_sqs_publish_job_queue_enabled:
        logger.warning("sqs_queue_disabled")
        return

    timeout = httpx.Timeout(settings.http_timeout_seconds)
    github_headers = {
        "Authorization": f"Bearer {settings.github_token}",
        "Accept": "application/vnd.github+json",
    }
    async with (
        httpx.AsyncClient(base_url=settings.github_api_url, headers=github_headers, timeout=timeout) as github_client,
        httpx.AsyncClient(timeout=timeout) as http_client,
    ):
        deps = build_dependencies(settings, github_client, http_client)
        worker = SQSJobWorker(SQSConsumer(settings), deps)

        logger.info("worker_ready")
        await asyncio.gather(*(consume(worker, slot) for slot in range(settings.worker_concurrency)))

    logger.info("worker_shutting_down")


def main() -> None:
    """Entrypoint."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(main_loop())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()


if __name__ == "__main__":
    main()
