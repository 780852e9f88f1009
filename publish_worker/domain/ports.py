"""Ports (interfaces) for infrastructure adapters."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from publish_worker.domain.entities import Dataset, DatasetFile, DatasetFileSchema
from publish_worker.domain.enums import DatasetEvent
from publish_worker.domain.types import JsonDict, Timestamp


class RepositoryHandlePort(ABC):
    """Handle on one remote repository.

    Content changes are staged and only become visible to readers on push.
    """

    name: str
    full_name: str
    html_url: str

    @abstractmethod
    async def put_file(self, path: str, content: bytes) -> str:
        """Stage a file write and return the content sha."""

    @abstractmethod
    async def remove_file(self, path: str) -> None:
        """Stage a file removal."""

    @abstractmethod
    async def push(self, message: str) -> None:
        """Commit and publish all staged changes."""


class RepositoryStorePort(ABC):
    """Port for the external versioned repository store."""

    @abstractmethod
    async def find(self, owner: str, name: str) -> RepositoryHandlePort:
        """Find a repository. Raises RepositoryNotFoundError when absent."""

    @abstractmethod
    async def create(self, owner: str, name: str, private: bool = False) -> RepositoryHandlePort:
        """Create a repository."""

    @abstractmethod
    async def delete(self, handle: RepositoryHandlePort) -> None:
        """Delete a repository."""


class BuildStatusPort(ABC):
    """Port for the hosting provider's site build status."""

    @abstractmethod
    async def get_build_status(self, full_name: str) -> str | None:
        """Get build status, or None when no build is known yet."""


class CertificateIssuerPort(ABC):
    """Port for the content-authenticity certificate service."""

    @abstractmethod
    async def generate(self, site_url: str) -> JsonDict:
        """Request a certificate for a published site."""

    @abstractmethod
    async def result(self, site_url: str) -> JsonDict:
        """Poll the outcome of a certificate request."""


class DocumentFetcherPort(ABC):
    """Port for fetching documents by url."""

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Fetch a document. Raises ExternalUnavailableError on failure."""

    @abstractmethod
    async def fetch_upload(self, storage_key: str) -> bytes:
        """Fetch uploaded file content by storage key."""


class DocumentWriterPort(ABC):
    """Port for storing documents that must later be fetchable by url."""

    @abstractmethod
    async def store(self, key: str, content: bytes, content_type: str) -> str:
        """Store a document and return its url."""


class DatasetStorePort(ABC):
    """Port for dataset and schema persistence."""

    @abstractmethod
    async def get(self, dataset_id: str) -> Dataset:
        """Load a dataset. Raises DatasetNotFoundError when absent."""

    @abstractmethod
    async def save(self, dataset: Dataset) -> None:
        """Persist a dataset and its files."""

    @abstractmethod
    async def save_file(self, dataset_id: str, dataset_file: DatasetFile) -> DatasetFile:
        """Persist a single file record, assigning an id when new."""

    @abstractmethod
    async def delete(self, dataset_id: str) -> None:
        """Delete a dataset record."""

    @abstractmethod
    async def get_schema(self, schema_id: str) -> DatasetFileSchema:
        """Load a schema record."""

    @abstractmethod
    async def save_schema(self, schema: DatasetFileSchema) -> None:
        """Persist a schema record."""


class NotificationPort(ABC):
    """Port for live job notifications."""

    @abstractmethod
    async def notify(self, channel: str, event: DatasetEvent, payload: JsonDict | list) -> None:
        """Publish an event to a notification channel."""


class ErrorSinkPort(ABC):
    """Port for persisting job failures when no channel was supplied."""

    @abstractmethod
    async def record_error(self, job_id: str, messages: list[str]) -> None:
        """Persist an error record keyed by job id."""


class SiteAssetsPort(ABC):
    """Port for static-site scaffold templates."""

    @abstractmethod
    def read(self, name: str) -> bytes:
        """Read a scaffold template by relative name."""


class DatasetLeasePort(ABC):
    """Port for per-dataset mutual exclusion."""

    @abstractmethod
    def hold(self, dataset_id: str) -> AbstractAsyncContextManager[None]:
        """Hold the dataset lease. Raises DatasetBusyError when it cannot be acquired."""


class ClockPort(ABC):
    """Port for time operations."""

    @abstractmethod
    def now(self) -> Timestamp:
        """Get current timestamp."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for a number of seconds."""
