"""Domain enums for schema dialects, publish states and events."""

from enum import Enum


class Dialect(str, Enum):
    """Schema dialect enum."""

    SINGLE_TABLE = "single-table"  # Table Schema
    TABLE_GROUP = "table-group"  # CSV on the Web


class FieldType(str, Enum):
    """Column type enum shared by both schema dialects."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    ANY = "any"


class PublishState(str, Enum):
    """Publish lifecycle state of a dataset."""

    DRAFT = "draft"
    REMOTE_CREATED = "remote_created"
    CONTENT_PUSHED = "content_pushed"
    BUILD_PENDING = "build_pending"
    CERTIFIED = "certified"
    BUILD_FAILED = "build_failed"


class BuildStatus(str, Enum):
    """Hosting provider build status."""

    QUEUED = "queued"
    BUILDING = "building"
    BUILT = "built"
    ERRORED = "errored"


class DatasetEvent(str, Enum):
    """Notification event kinds."""

    CREATED = "dataset_created"
    UPDATED = "dataset_updated"
    FAILED = "dataset_failed"
    BUILD_PENDING = "dataset_build_pending"
    DELETED = "dataset_deleted"


class FileAction(str, Enum):
    """File operation kinds within a batch."""

    UPSERT = "upsert"
    DELETE = "delete"
