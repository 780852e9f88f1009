"""Domain entities."""

import re
from dataclasses import dataclass, field

from publish_worker.domain.enums import Dialect, FieldType, PublishState
from publish_worker.domain.errors import FilenameCollisionError
from publish_worker.domain.types import JsonDict

CSV_MEDIATYPE = "text/csv"


def slugify(value: str) -> str:
    """Generate a URL-safe slug from a display name.

    Lowercases, strips anything that is not alphanumeric, whitespace or a hyphen,
    and collapses whitespace/hyphen runs to a single hyphen.
    """
    slug = value.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"[\s-]+", "-", slug)
    return slug.strip("-")


@dataclass(frozen=True)
class FieldSpec:
    """Column definition shared by both schema dialects."""

    name: str
    field_type: FieldType = FieldType.STRING
    titles: tuple[str, ...] = ()
    required: bool = False
    unique: bool = False
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | str | None = None
    maximum: float | str | None = None
    pattern: str | None = None
    enum: tuple[str, ...] | None = None

    def matches_header(self, header: str) -> bool:
        """Check whether a CSV header refers to this column."""
        return header == self.name or header in self.titles


@dataclass(frozen=True)
class TableSchema:
    """Flat list of column definitions for one table."""

    fields: tuple[FieldSpec, ...]


@dataclass(frozen=True)
class ResolvedSchema:
    """Parsed schema document tagged with its dialect."""

    dialect: Dialect
    document: JsonDict
    table: TableSchema | None = None
    tables: dict[str, TableSchema] = field(default_factory=dict)

    def table_for(self, filename: str) -> TableSchema | None:
        """Return the table schema that applies to a file, if any."""
        if self.dialect == Dialect.SINGLE_TABLE:
            return self.table
        return self.tables.get(filename)


@dataclass
class DatasetFileSchema:
    """Schema record shared by reference across files."""

    id: str
    name: str
    url: str
    description: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one file."""

    valid: bool
    messages: tuple[str, ...] = ()
    file_id: str | None = None
    filename: str | None = None


@dataclass
class DatasetFile:
    """Tabular file owned by exactly one dataset."""

    title: str | None
    filename: str
    description: str | None = None
    id: str | None = None
    mediatype: str = CSV_MEDIATYPE
    dataset_file_schema_id: str | None = None
    storage_key: str | None = None
    source_url: str | None = None
    file_sha: str | None = None
    view_sha: str | None = None
    persisted: bool = False
    # Pending content, cleared once it has been written to the remote repository
    content: bytes | None = field(default=None, repr=False)
    metadata_dirty: bool = False

    @classmethod
    def new_file(
        cls,
        title: str | None,
        description: str | None = None,
        content: bytes | None = None,
        storage_key: str | None = None,
        source_url: str | None = None,
        dataset_file_schema_id: str | None = None,
    ) -> "DatasetFile":
        """Build a new, unsaved file with a filename derived from its title."""
        return cls(
            title=title,
            filename=cls.filename_for(title),
            description=description,
            content=content,
            storage_key=storage_key,
            source_url=source_url,
            dataset_file_schema_id=dataset_file_schema_id,
        )

    @staticmethod
    def filename_for(title: str | None) -> str:
        """Derive a filename from a title."""
        if not title:
            return ""
        return f"{slugify(title)}.csv"

    @property
    def stem(self) -> str:
        return self.filename.rsplit(".", 1)[0]

    @property
    def data_path(self) -> str:
        return f"data/{self.filename}"

    @property
    def view_path(self) -> str:
        return f"data/{self.stem}.md"

    @property
    def api_path(self) -> str:
        return f"data/{self.stem}/index.json"

    def rollback(self) -> None:
        """Return the record to an unsaved state."""
        self.persisted = False
        self.file_sha = None
        self.view_sha = None

    def github_url(self, dataset: "Dataset") -> str:
        return f"{dataset.github_url}/{self.data_path}"

    def pages_url(self, dataset: "Dataset") -> str:
        return f"{dataset.pages_url}/{self.data_path}"


@dataclass
class Dataset:
    """Dataset published as a data package."""

    id: str
    name: str
    user_login: str
    description: str | None = None
    license: str | None = None
    publisher_name: str | None = None
    publisher_url: str | None = None
    frequency: str | None = None
    owner: str | None = None
    private: bool = False
    schema: str | None = None
    repo: str | None = None
    url: str | None = None
    certificate_url: str | None = None
    job_id: str | None = None
    state: PublishState = PublishState.DRAFT
    files: list[DatasetFile] = field(default_factory=list)

    @property
    def repo_owner(self) -> str:
        return self.owner or self.user_login

    @property
    def repo_name(self) -> str:
        """Repository name derived from the dataset name."""
        return slugify(self.name)

    @property
    def full_name(self) -> str:
        return f"{self.repo_owner}/{self.repo or self.repo_name}"

    @property
    def github_url(self) -> str:
        return f"http://github.com/{self.full_name}"

    @property
    def pages_url(self) -> str:
        return f"http://{self.repo_owner}.github.io/{self.repo or self.repo_name}"

    @property
    def schema_url(self) -> str:
        return f"{self.pages_url}/schema.json"

    def find_file(self, file_id: str | int) -> DatasetFile | None:
        for dataset_file in self.files:
            if dataset_file.id is not None and str(dataset_file.id) == str(file_id):
                return dataset_file
        return None

    def add_file(self, dataset_file: DatasetFile) -> None:
        """Attach a file, refusing filename collisions."""
        for existing in self.files:
            if existing.filename == dataset_file.filename:
                raise FilenameCollisionError(
                    f"has a filename ({dataset_file.filename}) that is already used in this dataset",
                )
        self.files.append(dataset_file)

    def remove_file(self, dataset_file: DatasetFile) -> None:
        self.files.remove(dataset_file)

    def assign_attributes(self, changes: JsonDict) -> None:
        """Apply attribute changes from a job payload."""
        for key, value in changes.items():
            if key in _ASSIGNABLE_ATTRIBUTES:
                setattr(self, key, value)


_ASSIGNABLE_ATTRIBUTES = frozenset(
    {
        "name",
        "description",
        "license",
        "publisher_name",
        "publisher_url",
        "frequency",
        "owner",
        "private",
        "schema",
        "job_id",
    },
)


@dataclass(frozen=True)
class PublishOutcome:
    """Result of running a dataset through the publish lifecycle."""

    state: PublishState
    created: bool = False
    messages: tuple[str, ...] = ()
