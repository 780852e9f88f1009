"""Data package descriptor builder."""

import json

from publish_worker.domain.entities import CSV_MEDIATYPE, Dataset, ResolvedSchema, slugify
from publish_worker.domain.enums import Dialect
from publish_worker.domain.licenses import lookup_license
from publish_worker.domain.types import DescriptorDict, LicenseDict, PublisherDict, ResourceDict

DESCRIPTOR_PATH = "datapackage.json"


def build_descriptor(dataset: Dataset, schema: ResolvedSchema | None = None) -> DescriptorDict:
    """Build the data package descriptor for a dataset.

    Only a single-table schema is embedded in resources. Keys with empty values
    are left out rather than serialized as null.
    """
    descriptor: DescriptorDict = {"name": slugify(dataset.name), "title": dataset.name}
    if dataset.description:
        descriptor["description"] = dataset.description

    license_details = lookup_license(dataset.license)
    if license_details is not None:
        license_entry: LicenseDict = {"title": license_details.title}
        if license_details.url:
            license_entry = {"url": license_details.url, "title": license_details.title}
        descriptor["licenses"] = [license_entry]

    publisher: PublisherDict = _compact({"name": dataset.publisher_name, "web": dataset.publisher_url})
    if publisher:
        descriptor["publishers"] = [publisher]

    embedded = schema.document if schema is not None and schema.dialect == Dialect.SINGLE_TABLE else None

    resources: list[ResourceDict] = []
    for dataset_file in dataset.files:
        resource: ResourceDict = _compact(
            {
                "name": dataset_file.title,
                "mediatype": CSV_MEDIATYPE,
                "description": dataset_file.description,
                "path": dataset_file.data_path,
                "schema": embedded,
            },
        )
        resources.append(resource)
    descriptor["resources"] = resources

    return descriptor


def serialize_descriptor(descriptor: DescriptorDict) -> bytes:
    """Serialize a descriptor to stable JSON bytes."""
    return json.dumps(descriptor, indent=2, ensure_ascii=False).encode("utf-8")


def _compact(values: dict) -> dict:
    return {key: value for key, value in values.items() if value not in (None, "")}
