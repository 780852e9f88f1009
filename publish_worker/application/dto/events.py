"""Event DTOs."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from publish_worker.domain.enums import FileAction
from publish_worker.domain.types import JsonValue

DATASET_JOB_REQUESTED = "dataset_job_requested"
DATASET_DELETE_REQUESTED = "dataset_delete_requested"


class FileOperation(BaseModel):
    """One file add/update/delete within a batch."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None  # Existing file id, absent for adds
    action: FileAction = FileAction.UPSERT
    title: str | None = None
    description: str | None = None
    # Content comes either from an upload (storage key) or a url fetched once
    file: str | None = None
    storage_key: str | None = Field(None, alias="storageKey")
    # Inline schema content, creates a new schema record
    schema_content: str | dict[str, JsonValue] | None = Field(None, alias="schema")
    schema_name: str | None = Field(None, alias="schemaName")
    schema_description: str | None = Field(None, alias="schemaDescription")
    dataset_file_schema_id: str | None = Field(None, alias="datasetFileSchemaId")

    @field_validator("id", "dataset_file_schema_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value


class DatasetJobRequestedEvent(BaseModel):
    """Batch of dataset attribute changes and file operations."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    job_id: str = Field(alias="jobId")
    dataset_id: str = Field(alias="datasetId")
    user_id: str = Field(alias="userId")
    dataset: dict[str, JsonValue] = Field(default_factory=dict)
    files: list[FileOperation] = Field(default_factory=list)
    channel_id: str | None = Field(None, alias="channelId")

    @field_validator("files", mode="before")
    @classmethod
    def _wrap_single_file(cls, value: object) -> object:
        # A single operation may be sent as a bare object
        if isinstance(value, dict):
            return [value]
        return value


class DatasetDeleteRequestedEvent(BaseModel):
    """Request to delete a dataset and its remote repository."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    job_id: str = Field(alias="jobId")
    dataset_id: str = Field(alias="datasetId")
    user_id: str = Field(alias="userId")
    channel_id: str | None = Field(None, alias="channelId")


DatasetJobEvent = DatasetJobRequestedEvent | DatasetDeleteRequestedEvent
