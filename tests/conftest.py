"""Shared fixtures wired to in-memory collaborators."""

import json

import pytest

from publish_worker.application.services.publish_coordinator import PollPolicy
from publish_worker.application.services.schema_resolver import SchemaResolver
from publish_worker.application.use_cases.dependencies import JobDependencies
from publish_worker.domain.entities import DatasetFileSchema
from publish_worker.infrastructure.runtime.lease import LocalDatasetLease
from tests.support import (
    FakeClock,
    InMemoryDatasetStore,
    InMemoryDocumentWriter,
    InMemoryFetcher,
    InMemoryRepositoryStore,
    RecordingErrorSink,
    RecordingNotifier,
    ScriptedBuildStatus,
    StubCertificates,
    TemplateAssets,
)


@pytest.fixture
def dataset_store():
    return InMemoryDatasetStore()


@pytest.fixture
def repository_store():
    return InMemoryRepositoryStore()


@pytest.fixture
def fetcher():
    return InMemoryFetcher()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def error_sink():
    return RecordingErrorSink()


@pytest.fixture
def build_status():
    return ScriptedBuildStatus()


@pytest.fixture
def certificates():
    return StubCertificates()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def deps(dataset_store, repository_store, fetcher, notifier, error_sink, build_status, certificates, clock):
    """Job dependencies wired to in-memory collaborators."""
    return JobDependencies(
        dataset_store=dataset_store,
        repository_store=repository_store,
        fetcher=fetcher,
        document_writer=InMemoryDocumentWriter(fetcher),
        notifier=notifier,
        error_sink=error_sink,
        build_status=build_status,
        certificates=certificates,
        site_assets=TemplateAssets(),
        lease=LocalDatasetLease(timeout_seconds=0.1),
        clock=clock,
        resolver=SchemaResolver(fetcher),
        poll_policy=PollPolicy(initial_seconds=1, max_interval_seconds=4, max_attempts=5, deadline_seconds=60),
    )


@pytest.fixture
def register_schema(dataset_store, fetcher):
    """Store a schema document and its record, returning the record."""

    def _register(schema_id: str, document: dict) -> DatasetFileSchema:
        url = f"memory://schemas/{schema_id}.json"
        fetcher.documents[url] = json.dumps(document).encode("utf-8")
        schema = DatasetFileSchema(id=schema_id, name=schema_id, url=url, user_id="user-1")
        dataset_store.schemas[schema_id] = schema
        return schema

    return _register
