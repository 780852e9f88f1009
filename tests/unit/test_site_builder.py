"""Unit tests for static site artifacts."""

import json

import yaml

from publish_worker.application.services.site_builder import (
    build_api_listing,
    build_certified_site_config,
    build_site_config,
    build_view_page,
)
from publish_worker.domain.entities import Dataset, DatasetFile, FieldSpec, TableSchema
from publish_worker.domain.enums import FieldType
from tests.support import csv_bytes


def test_site_config():
    """Test the initial site config."""
    dataset = Dataset(id="ds-1", name="Hot Drinks", user_login="octopub", frequency="Monthly")

    config = yaml.safe_load(build_site_config(dataset))

    assert config == {"data_dir": ".", "update_frequency": "Monthly", "permalink": "pretty"}


def test_certified_site_config():
    """Test the site config carries the certificate badge once certified."""
    dataset = Dataset(
        id="ds-1",
        name="Hot Drinks",
        user_login="octopub",
        frequency="Monthly",
        certificate_url="https://certificates.example/datasets/1",
    )

    config = yaml.safe_load(build_certified_site_config(dataset))

    assert config == {
        "data_source": ".",
        "update_frequency": "Monthly",
        "certificate_url": "https://certificates.example/datasets/1/badge.js",
    }


def test_view_page_front_matter():
    """Test a file's view page is front matter for the resource layout."""
    dataset_file = DatasetFile(title="Hot Drinks", filename="hot-drinks.csv", description="Menu")

    page = build_view_page(dataset_file).decode("utf-8")

    assert page.startswith("---\n") and page.endswith("---\n")
    front_matter = yaml.safe_load(page.strip("-\n"))
    assert front_matter == {
        "layout": "resource",
        "title": "Hot Drinks",
        "description": "Menu",
        "resource": "data/hot-drinks.csv",
        "permalink": "/hot-drinks/",
    }


def test_api_listing_is_typed_by_schema():
    """Test listing values are typed according to the table schema."""
    table = TableSchema(
        fields=(
            FieldSpec(name="drink"),
            FieldSpec(name="temperature", field_type=FieldType.INTEGER),
            FieldSpec(name="price", field_type=FieldType.NUMBER),
            FieldSpec(name="iced", field_type=FieldType.BOOLEAN),
        ),
    )
    content = csv_bytes("drink,temperature,price,iced", "tea,80,1.5,no", "latte,,2,yes")

    listing = json.loads(build_api_listing(content, table))

    assert listing == [
        {"drink": "tea", "temperature": 80, "price": 1.5, "iced": False},
        {"drink": "latte", "temperature": None, "price": 2.0, "iced": True},
    ]


def test_api_listing_without_schema_keeps_strings():
    """Test listing values stay strings when no table applies."""
    listing = json.loads(build_api_listing(csv_bytes("drink,temperature", "tea,80"), None))

    assert listing == [{"drink": "tea", "temperature": "80"}]
