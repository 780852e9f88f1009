"""Collaborators shared by the dataset job use cases."""

from dataclasses import dataclass, field

from publish_worker.application.services.file_validator import FileValidator
from publish_worker.application.services.publish_coordinator import PollPolicy, PublishCoordinator
from publish_worker.application.services.repository_sync import RepositorySynchronizer
from publish_worker.application.services.schema_resolver import SchemaResolver
from publish_worker.domain.ports import (
    BuildStatusPort,
    CertificateIssuerPort,
    ClockPort,
    DatasetLeasePort,
    DatasetStorePort,
    DocumentFetcherPort,
    DocumentWriterPort,
    ErrorSinkPort,
    NotificationPort,
    RepositoryStorePort,
    SiteAssetsPort,
)


@dataclass
class JobDependencies:
    """Ports and shared services for one worker process."""

    dataset_store: DatasetStorePort
    repository_store: RepositoryStorePort
    fetcher: DocumentFetcherPort
    document_writer: DocumentWriterPort
    notifier: NotificationPort
    error_sink: ErrorSinkPort
    build_status: BuildStatusPort
    certificates: CertificateIssuerPort
    site_assets: SiteAssetsPort
    lease: DatasetLeasePort
    clock: ClockPort
    resolver: SchemaResolver
    poll_policy: PollPolicy = field(default_factory=PollPolicy)

    def file_validator(self) -> FileValidator:
        return FileValidator(self.resolver, self.dataset_store)

    def synchronizer(self) -> RepositorySynchronizer:
        """New synchronizer; repository handles are never shared between jobs."""
        return RepositorySynchronizer(self.repository_store, self.site_assets)

    def coordinator(self, synchronizer: RepositorySynchronizer) -> PublishCoordinator:
        return PublishCoordinator(
            synchronizer,
            self.resolver,
            self.build_status,
            self.certificates,
            self.fetcher,
            self.clock,
            self.poll_policy,
        )
