"""In-memory collaborators and test data shared across test modules."""

import copy
import uuid
from datetime import datetime, timedelta

from publish_worker.domain.entities import Dataset, DatasetFile, DatasetFileSchema
from publish_worker.domain.enums import DatasetEvent
from publish_worker.domain.errors import (
    DatasetNotFoundError,
    ExternalUnavailableError,
    RepositoryNotFoundError,
)
from publish_worker.domain.ports import (
    BuildStatusPort,
    CertificateIssuerPort,
    ClockPort,
    DatasetStorePort,
    DocumentFetcherPort,
    DocumentWriterPort,
    ErrorSinkPort,
    NotificationPort,
    RepositoryHandlePort,
    RepositoryStorePort,
    SiteAssetsPort,
)
from publish_worker.infrastructure.github.repository_store import git_blob_sha


def csv_bytes(*rows: str) -> bytes:
    return ("\n".join(rows) + "\n").encode("utf-8")


SHOES_AND_HATS_SCHEMA = {
    "@context": "http://www.w3.org/ns/csvw",
    "tables": [
        {
            "url": "shoes.csv",
            "tableSchema": {
                "columns": [
                    {"name": "name", "titles": "name", "required": True},
                    {"name": "size", "titles": "size", "datatype": "integer"},
                ],
            },
        },
        {
            "url": "hats.csv",
            "tableSchema": {
                "columns": [
                    {"name": "name", "titles": "name", "required": True},
                    {"name": "price", "titles": "price", "datatype": "decimal"},
                ],
            },
        },
    ],
}

SINGLE_TABLE_SCHEMA = {
    "fields": [
        {"name": "drink", "type": "string", "constraints": {"required": True}},
        {"name": "temperature", "type": "integer", "constraints": {"minimum": 0, "maximum": 100}},
    ],
}


class InMemoryDatasetStore(DatasetStorePort):
    def __init__(self) -> None:
        self.datasets: dict[str, Dataset] = {}
        self.schemas: dict[str, DatasetFileSchema] = {}
        self.saved_files: list[tuple[str, str]] = []
        self.deleted: list[str] = []

    async def get(self, dataset_id: str) -> Dataset:
        if dataset_id not in self.datasets:
            raise DatasetNotFoundError(dataset_id)
        return copy.deepcopy(self.datasets[dataset_id])

    async def save(self, dataset: Dataset) -> None:
        stored = copy.deepcopy(dataset)
        for dataset_file in stored.files:
            dataset_file.content = None
            dataset_file.metadata_dirty = False
        self.datasets[dataset.id] = stored

    async def save_file(self, dataset_id: str, dataset_file: DatasetFile) -> DatasetFile:
        if dataset_file.id is None:
            dataset_file.id = str(uuid.uuid4())
        stored = self.datasets[dataset_id]
        record = copy.deepcopy(dataset_file)
        record.content = None
        record.persisted = True
        stored.files = [f for f in stored.files if f.id != dataset_file.id] + [record]
        self.saved_files.append((dataset_id, dataset_file.id))
        return dataset_file

    async def delete(self, dataset_id: str) -> None:
        self.datasets.pop(dataset_id, None)
        self.deleted.append(dataset_id)

    async def get_schema(self, schema_id: str) -> DatasetFileSchema:
        if schema_id not in self.schemas:
            raise DatasetNotFoundError(schema_id)
        return self.schemas[schema_id]

    async def save_schema(self, schema: DatasetFileSchema) -> None:
        self.schemas[schema.id] = schema


class InMemoryRepositoryHandle(RepositoryHandlePort):
    def __init__(self, owner: str, name: str) -> None:
        self.name = name
        self.full_name = f"{owner}/{name}"
        self.html_url = f"https://github.com/{self.full_name}"
        self.files: dict[str, bytes] = {}
        self.staged: dict[str, bytes | None] = {}
        self.pushes: list[tuple[str, list[str]]] = []
        self.failing_pushes = 0

    async def put_file(self, path: str, content: bytes) -> str:
        self.staged[path] = content
        return git_blob_sha(content)

    async def remove_file(self, path: str) -> None:
        self.staged[path] = None

    async def push(self, message: str) -> None:
        if self.failing_pushes:
            self.failing_pushes -= 1
            self.staged = {}
            raise ExternalUnavailableError(f"Push to {self.full_name} rejected")
        for path, content in self.staged.items():
            if content is None:
                self.files.pop(path, None)
            else:
                self.files[path] = content
        self.pushes.append((message, list(self.staged)))
        self.staged = {}


class InMemoryRepositoryStore(RepositoryStorePort):
    def __init__(self) -> None:
        self.repos: dict[str, InMemoryRepositoryHandle] = {}
        self.created: list[str] = []
        self.deleted: list[str] = []
        # Pushes that fail on the next created repository
        self.failing_pushes = 0

    def add(self, owner: str, name: str) -> InMemoryRepositoryHandle:
        handle = InMemoryRepositoryHandle(owner, name)
        self.repos[handle.full_name] = handle
        return handle

    async def find(self, owner: str, name: str) -> InMemoryRepositoryHandle:
        full_name = f"{owner}/{name}"
        if full_name not in self.repos:
            raise RepositoryNotFoundError(full_name)
        return self.repos[full_name]

    async def create(self, owner: str, name: str, private: bool = False) -> InMemoryRepositoryHandle:
        handle = self.add(owner, name)
        handle.failing_pushes, self.failing_pushes = self.failing_pushes, 0
        self.created.append(handle.full_name)
        return handle

    async def delete(self, handle: RepositoryHandlePort) -> None:
        self.repos.pop(handle.full_name, None)
        self.deleted.append(handle.full_name)


class ScriptedBuildStatus(BuildStatusPort):
    """Returns queued statuses in order, repeating the last one."""

    def __init__(self, statuses: list[str | None] | None = None) -> None:
        self.statuses = statuses or ["built"]
        self.calls = 0

    async def get_build_status(self, full_name: str) -> str | None:
        status = self.statuses[min(self.calls, len(self.statuses) - 1)]
        self.calls += 1
        return status


class StubCertificates(CertificateIssuerPort):
    def __init__(self, generated: dict | None = None, result: dict | None = None) -> None:
        self.generated = generated if generated is not None else {"success": "pending"}
        self.outcome = result if result is not None else {"certificate_url": "https://certificates.example/datasets/1.json"}
        self.requests: list[str] = []

    async def generate(self, site_url: str) -> dict:
        self.requests.append(site_url)
        return self.generated

    async def result(self, site_url: str) -> dict:
        return self.outcome


class InMemoryFetcher(DocumentFetcherPort):
    def __init__(self) -> None:
        self.documents: dict[str, bytes] = {}
        self.uploads: dict[str, bytes] = {}

    async def fetch(self, url: str) -> bytes:
        if url not in self.documents:
            raise ExternalUnavailableError(url)
        return self.documents[url]

    async def fetch_upload(self, storage_key: str) -> bytes:
        if storage_key not in self.uploads:
            raise ExternalUnavailableError(storage_key)
        return self.uploads[storage_key]


class InMemoryDocumentWriter(DocumentWriterPort):
    def __init__(self, fetcher: InMemoryFetcher) -> None:
        self.fetcher = fetcher

    async def store(self, key: str, content: bytes, content_type: str) -> str:
        url = f"memory://{key}"
        self.fetcher.documents[url] = content
        return url


class RecordingNotifier(NotificationPort):
    def __init__(self) -> None:
        self.notifications: list[tuple[str, DatasetEvent, dict | list]] = []

    async def notify(self, channel: str, event: DatasetEvent, payload: dict | list) -> None:
        self.notifications.append((channel, event, payload))


class RecordingErrorSink(ErrorSinkPort):
    def __init__(self) -> None:
        self.records: dict[str, list[str]] = {}

    async def record_error(self, job_id: str, messages: list[str]) -> None:
        self.records[job_id] = messages


class TemplateAssets(SiteAssetsPort):
    def read(self, name: str) -> bytes:
        return f"template:{name}".encode("utf-8")


class FakeClock(ClockPort):
    """Time advances only by sleeping."""

    def __init__(self) -> None:
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return datetime(2024, 1, 1, 12, 0, 0) + timedelta(seconds=sum(self.sleeps))

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
