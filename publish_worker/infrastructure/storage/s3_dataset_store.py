"""S3-backed dataset and schema records."""

import dataclasses
import uuid

import structlog

from publish_worker.domain.entities import Dataset, DatasetFile, DatasetFileSchema
from publish_worker.domain.enums import PublishState
from publish_worker.domain.errors import DatasetNotFoundError
from publish_worker.domain.ports import DatasetStorePort
from publish_worker.domain.types import JsonDict
from publish_worker.infrastructure.aws.s3_io import S3IO, S3ObjectNotFoundError
from publish_worker.infrastructure.aws.s3_path import S3Path

logger = structlog.get_logger()

DATASETS_PREFIX = "datasets"
SCHEMAS_PREFIX = "schemas"

# Transient fields never persisted with a file record
_TRANSIENT_FILE_FIELDS = ("content", "metadata_dirty")


class S3DatasetStore(DatasetStorePort):
    """Stores one JSON document per dataset, files embedded."""

    def __init__(self, s3_io: S3IO) -> None:
        """Initialize dataset store."""
        self.s3_io = s3_io

    async def get(self, dataset_id: str) -> Dataset:
        try:
            record = await self.s3_io.get_json(self._dataset_key(dataset_id))
        except S3ObjectNotFoundError as e:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_id}") from e
        return dataset_from_record(record)

    async def save(self, dataset: Dataset) -> None:
        await self.s3_io.put_json(self._dataset_key(dataset.id), dataset_to_record(dataset))
        logger.info("dataset_saved", dataset_id=dataset.id, state=dataset.state.value, files=len(dataset.files))

    async def save_file(self, dataset_id: str, dataset_file: DatasetFile) -> DatasetFile:
        """Persist one file record into its dataset document."""
        if dataset_file.id is None:
            dataset_file.id = str(uuid.uuid4())

        key = self._dataset_key(dataset_id)
        try:
            record = await self.s3_io.get_json(key)
        except S3ObjectNotFoundError as e:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_id}") from e

        files = [f for f in record.get("files", []) if f.get("id") != dataset_file.id]
        files.append(file_to_record(dataset_file))
        record["files"] = files
        await self.s3_io.put_json(key, record)
        logger.info("dataset_file_saved", dataset_id=dataset_id, file_id=dataset_file.id)
        return dataset_file

    async def delete(self, dataset_id: str) -> None:
        await self.s3_io.delete_object(self._dataset_key(dataset_id))
        logger.info("dataset_record_deleted", dataset_id=dataset_id)

    async def get_schema(self, schema_id: str) -> DatasetFileSchema:
        try:
            record = await self.s3_io.get_json(self._schema_key(schema_id))
        except S3ObjectNotFoundError as e:
            raise DatasetNotFoundError(f"Schema not found: {schema_id}") from e
        return DatasetFileSchema(**record)

    async def save_schema(self, schema: DatasetFileSchema) -> None:
        await self.s3_io.put_json(self._schema_key(schema.id), dataclasses.asdict(schema))

    def _dataset_key(self, dataset_id: str) -> str:
        return S3Path.join(DATASETS_PREFIX, f"{dataset_id}.json")

    def _schema_key(self, schema_id: str) -> str:
        return S3Path.join(SCHEMAS_PREFIX, f"{schema_id}.json")


def file_to_record(dataset_file: DatasetFile) -> JsonDict:
    record = dataclasses.asdict(dataset_file)
    for name in _TRANSIENT_FILE_FIELDS:
        record.pop(name, None)
    record["persisted"] = True
    return record


def dataset_to_record(dataset: Dataset) -> JsonDict:
    record = dataclasses.asdict(dataset)
    record["state"] = dataset.state.value
    record["files"] = [file_to_record(f) for f in dataset.files]
    return record


def dataset_from_record(record: JsonDict) -> Dataset:
    """Build a dataset from its stored document, ignoring unknown keys."""
    dataset_fields = {f.name for f in dataclasses.fields(Dataset)}
    file_fields = {f.name for f in dataclasses.fields(DatasetFile)} - set(_TRANSIENT_FILE_FIELDS)

    values = {k: v for k, v in record.items() if k in dataset_fields and k not in ("files", "state")}
    files = [
        DatasetFile(**{k: v for k, v in file_record.items() if k in file_fields})
        for file_record in record.get("files", [])
    ]
    return Dataset(**values, state=PublishState(record.get("state", PublishState.DRAFT.value)), files=files)
