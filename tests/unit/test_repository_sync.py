"""Unit tests for the repository synchronizer."""

import json
from unittest.mock import AsyncMock

import pytest

from publish_worker.application.services.repository_sync import (
    REPOSITORY_EXISTS_MESSAGE,
    NoRemoteRepositoryError,
    RepositorySynchronizer,
)
from publish_worker.application.services.schema_resolver import parse_schema
from publish_worker.domain.entities import Dataset, DatasetFile
from publish_worker.domain.errors import ExternalUnavailableError, RepositoryNameCollisionError
from tests.support import SINGLE_TABLE_SCHEMA, TemplateAssets, csv_bytes


@pytest.fixture
def synchronizer(repository_store):
    return RepositorySynchronizer(repository_store, TemplateAssets())


@pytest.fixture
def dataset():
    return Dataset(id="ds-1", name="Hot Drinks", user_login="octopub", frequency="Monthly")


@pytest.mark.asyncio
async def test_fetch_without_remote(synchronizer, dataset):
    """Test a missing repository means no prior remote state."""
    assert await synchronizer.fetch(dataset) is None
    assert not synchronizer.has_remote


@pytest.mark.asyncio
async def test_fetch_ignores_repository_of_unpublished_dataset(synchronizer, repository_store, dataset):
    """Test a repository with the derived name is not attached to a new dataset."""
    repository_store.add("octopub", "hot-drinks")

    assert await synchronizer.fetch(dataset) is None


@pytest.mark.asyncio
async def test_fetch_recorded_repository(synchronizer, repository_store, dataset):
    """Test a published dataset attaches its recorded repository."""
    handle = repository_store.add("octopub", "drinks-archive")
    dataset.repo = "drinks-archive"

    assert await synchronizer.fetch(dataset) is handle
    assert synchronizer.has_remote


@pytest.mark.asyncio
async def test_ensure_name_available_detects_collision(synchronizer, repository_store, dataset):
    """Test a taken repository name is a validation failure."""
    repository_store.add("octopub", "hot-drinks")

    with pytest.raises(RepositoryNameCollisionError) as exc_info:
        await synchronizer.ensure_name_available(dataset)

    assert exc_info.value.messages == [REPOSITORY_EXISTS_MESSAGE]
    assert repository_store.created == []


@pytest.mark.asyncio
async def test_content_operations_require_remote(synchronizer):
    """Test staging without a repository handle fails."""
    with pytest.raises(NoRemoteRepositoryError):
        await synchronizer.create_file("index.html", b"")


@pytest.mark.asyncio
async def test_staged_changes_publish_on_push(synchronizer, repository_store, dataset):
    """Test writes stay staged until the push."""
    handle = await synchronizer.create_repository(dataset)
    dataset_file = DatasetFile.new_file(title="Tea")

    await synchronizer.add_dataset_file(dataset_file, csv_bytes("drink", "tea"))

    assert synchronizer.staged_paths == ["data/tea.csv", "data/tea.md"]
    assert handle.files == {}
    assert dataset.repo == "hot-drinks"
    assert dataset.url == "https://github.com/octopub/hot-drinks"

    await synchronizer.push("Add tea")

    assert set(handle.files) == {"data/tea.csv", "data/tea.md"}
    assert synchronizer.staged_paths == []
    assert dataset_file.file_sha is not None


@pytest.mark.asyncio
async def test_add_dataset_file_rolls_back_on_failure(dataset):
    """Test a partial add leaves the file unsaved and is not retried."""
    handle = AsyncMock()
    handle.put_file.side_effect = ["sha-data", ExternalUnavailableError("down")]
    synchronizer = RepositorySynchronizer(AsyncMock(), TemplateAssets())
    synchronizer.handle = handle
    dataset_file = DatasetFile.new_file(title="Tea")
    dataset_file.persisted = True

    with pytest.raises(ExternalUnavailableError):
        await synchronizer.add_dataset_file(dataset_file, csv_bytes("drink", "tea"))

    assert dataset_file.file_sha is None
    assert not dataset_file.persisted
    assert handle.put_file.await_count == 2


@pytest.mark.asyncio
async def test_update_metadata_only_skips_data(synchronizer, repository_store, dataset):
    """Test a metadata-only update rewrites the view page only."""
    repository_store.add("octopub", "hot-drinks")
    dataset.repo = "hot-drinks"
    await synchronizer.fetch(dataset)
    dataset_file = DatasetFile(title="Tea", filename="tea.csv", id="f-1", metadata_dirty=True)

    await synchronizer.update_dataset_file(dataset_file, None)

    assert synchronizer.staged_paths == ["data/tea.md"]
    assert not dataset_file.metadata_dirty


@pytest.mark.asyncio
async def test_update_with_content_writes_data_and_view(synchronizer, repository_store, dataset):
    """Test new content rewrites the data file and its view page."""
    repository_store.add("octopub", "hot-drinks")
    dataset.repo = "hot-drinks"
    await synchronizer.fetch(dataset)
    dataset_file = DatasetFile(title="Tea", filename="tea.csv", id="f-1")

    await synchronizer.update_dataset_file(dataset_file, csv_bytes("drink", "green tea"))

    assert synchronizer.staged_paths == ["data/tea.csv", "data/tea.md"]


@pytest.mark.asyncio
async def test_remove_dataset_file(synchronizer, repository_store, dataset):
    """Test removing a file removes its data and view page."""
    handle = repository_store.add("octopub", "hot-drinks")
    handle.files = {"data/tea.csv": b"drink\n", "data/tea.md": b"---\n", "index.html": b""}
    dataset.repo = "hot-drinks"
    await synchronizer.fetch(dataset)

    await synchronizer.remove_dataset_file(DatasetFile(title="Tea", filename="tea.csv", id="f-1"))
    await synchronizer.push("Remove tea")

    assert set(handle.files) == {"index.html"}


@pytest.mark.asyncio
async def test_write_scaffold_with_schema(synchronizer, dataset):
    """Test the scaffold includes schema artifacts when a schema exists."""
    handle = await synchronizer.create_repository(dataset)
    dataset.files = [DatasetFile(title="Hot Drinks", filename="hot-drinks.csv", id="f-1")]
    schema = parse_schema(SINGLE_TABLE_SCHEMA)
    content = csv_bytes("drink,temperature", "tea,80")

    await synchronizer.write_scaffold(dataset, schema, {"hot-drinks.csv": content})
    await synchronizer.push("Create")

    assert {
        "datapackage.json",
        "index.html",
        "css/style.css",
        "_layouts/default.html",
        "_layouts/resource.html",
        "_layouts/api-item.html",
        "_layouts/api-list.html",
        "_includes/data_table.html",
        "js/data_table.js",
        "_config.yml",
        "schema.json",
        "data/hot-drinks/index.json",
    } == set(handle.files)
    assert handle.files["index.html"] == b"template:html/index.html"
    assert json.loads(handle.files["schema.json"]) == SINGLE_TABLE_SCHEMA
    assert json.loads(handle.files["data/hot-drinks/index.json"]) == [{"drink": "tea", "temperature": 80}]


@pytest.mark.asyncio
async def test_write_scaffold_without_schema(synchronizer, dataset):
    """Test no schema artifacts are written without a schema."""
    handle = await synchronizer.create_repository(dataset)

    await synchronizer.write_scaffold(dataset, None, {})
    await synchronizer.push("Create")

    assert "schema.json" not in handle.files
    assert "datapackage.json" in handle.files


@pytest.mark.asyncio
async def test_delete_without_remote_is_noop(synchronizer, repository_store):
    """Test deleting with no repository handle does nothing."""
    await synchronizer.delete_repository()

    assert repository_store.deleted == []


@pytest.mark.asyncio
async def test_delete_repository(synchronizer, repository_store, dataset):
    """Test deleting removes the whole repository."""
    repository_store.add("octopub", "hot-drinks")
    dataset.repo = "hot-drinks"
    await synchronizer.fetch(dataset)

    await synchronizer.delete_repository()

    assert repository_store.deleted == ["octopub/hot-drinks"]
    assert not synchronizer.has_remote
