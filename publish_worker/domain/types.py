"""Domain types and aliases."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, TypedDict

Timestamp = datetime

# JSON-serializable types (recursive)
# Using TYPE_CHECKING to avoid circular reference issues
if TYPE_CHECKING:
    JsonValue = str | int | float | bool | None | dict[str, "JsonValue"] | list["JsonValue"]
else:
    # Runtime fallback - JSON values can be any JSON-serializable type
    JsonValue = str | int | float | bool | None | dict | list

JsonDict = dict[str, JsonValue]


# Data package descriptor structure
class LicenseDict(TypedDict, total=False):
    """License entry in a data package descriptor."""
    url: str
    title: str


class PublisherDict(TypedDict, total=False):
    """Publisher entry in a data package descriptor."""
    name: str
    web: str


class ResourceDict(TypedDict, total=False):
    """Resource entry in a data package descriptor."""
    name: str
    mediatype: str
    description: str
    path: str
    schema: JsonDict


class DescriptorDict(TypedDict, total=False):
    """Data package descriptor structure."""
    name: str
    title: str
    description: str
    licenses: list[LicenseDict]
    publishers: list[PublisherDict]
    resources: list[ResourceDict]


# Failure payload sent to notification channels
class FailurePayloadDict(TypedDict):
    """Failure notification payload."""
    messages: list[str]


# Error record structure (persisted when no channel was supplied)
class ErrorRecordDict(TypedDict):
    """Error record structure."""
    job_id: str
    messages: list[str]
    recorded_at: str
