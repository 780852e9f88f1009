"""Unit tests for domain entities."""

import pytest

from publish_worker.domain.entities import Dataset, DatasetFile, slugify
from publish_worker.domain.errors import FilenameCollisionError, PublishValidationError
from publish_worker.domain.licenses import lookup_license


def test_slugify():
    """Test display names become url-safe slugs."""
    assert slugify("Hot Drinks") == "hot-drinks"
    assert slugify("  Café & Bar -- 2024!  ") == "caf-bar-2024"
    assert slugify("Shoes") == "shoes"


def test_new_file_derives_filename_from_title():
    """Test a new file's filename is the slugified title."""
    dataset_file = DatasetFile.new_file(title="Hot Drinks")

    assert dataset_file.filename == "hot-drinks.csv"
    assert dataset_file.data_path == "data/hot-drinks.csv"
    assert dataset_file.view_path == "data/hot-drinks.md"
    assert dataset_file.api_path == "data/hot-drinks/index.json"
    assert not dataset_file.persisted


def test_new_file_without_title_has_no_filename():
    """Test a missing title yields no filename."""
    assert DatasetFile.new_file(title=None).filename == ""


def test_add_file_refuses_filename_collision():
    """Test a second file slugifying to the same filename is refused."""
    dataset = Dataset(id="ds-1", name="Drinks", user_login="octopub")
    first = DatasetFile.new_file(title="Hot Drinks")
    dataset.add_file(first)

    with pytest.raises(FilenameCollisionError) as exc_info:
        dataset.add_file(DatasetFile.new_file(title="hot drinks!"))

    assert isinstance(exc_info.value, PublishValidationError)
    assert exc_info.value.messages == ["has a filename (hot-drinks.csv) that is already used in this dataset"]
    assert dataset.files == [first]


def test_dataset_urls():
    """Test repository and site urls derive from owner and name."""
    dataset = Dataset(id="ds-1", name="Hot Drinks", user_login="octopub")

    assert dataset.full_name == "octopub/hot-drinks"
    assert dataset.github_url == "http://github.com/octopub/hot-drinks"
    assert dataset.pages_url == "http://octopub.github.io/hot-drinks"
    assert dataset.schema_url == "http://octopub.github.io/hot-drinks/schema.json"

    dataset.owner = "cafe-org"
    dataset.repo = "drinks"
    assert dataset.full_name == "cafe-org/drinks"

    dataset_file = DatasetFile.new_file(title="Tea")
    assert dataset_file.pages_url(dataset) == "http://cafe-org.github.io/drinks/data/tea.csv"
    assert dataset_file.github_url(dataset) == "http://github.com/cafe-org/drinks/data/tea.csv"


def test_find_file_accepts_numeric_ids():
    """Test files can be found by id regardless of id type."""
    dataset_file = DatasetFile(title="Tea", filename="tea.csv", id="42")
    dataset = Dataset(id="ds-1", name="Drinks", user_login="octopub", files=[dataset_file])

    assert dataset.find_file(42) is dataset_file
    assert dataset.find_file("7") is None


def test_assign_attributes_ignores_unknown_keys():
    """Test only assignable attributes are applied."""
    dataset = Dataset(id="ds-1", name="Drinks", user_login="octopub")

    dataset.assign_attributes({"description": "Hot ones", "id": "other", "state": "certified"})

    assert dataset.description == "Hot ones"
    assert dataset.id == "ds-1"
    assert dataset.state.value == "draft"


def test_rollback_returns_file_to_unsaved():
    """Test rollback clears persistence markers."""
    dataset_file = DatasetFile(title="Tea", filename="tea.csv", file_sha="a", view_sha="b", persisted=True)

    dataset_file.rollback()

    assert (dataset_file.persisted, dataset_file.file_sha, dataset_file.view_sha) == (False, None, None)


def test_lookup_license():
    """Test license lookup is case-insensitive and tolerates unknown codes."""
    assert lookup_license("cc-by-4.0").title == "Creative Commons Attribution 4.0"
    assert lookup_license("Unknown-1").url is None
    assert lookup_license(None) is None
