"""Schema document DTOs for the two supported dialects."""

from pydantic import BaseModel, ConfigDict, Field

from publish_worker.domain.types import JsonValue


class TableSchemaConstraints(BaseModel):
    """Table Schema field constraints."""

    model_config = ConfigDict(populate_by_name=True)

    required: bool = False
    unique: bool = False
    min_length: int | None = Field(None, alias="minLength")
    max_length: int | None = Field(None, alias="maxLength")
    minimum: float | str | None = None
    maximum: float | str | None = None
    pattern: str | None = None
    enum: list[JsonValue] | None = None


class TableSchemaField(BaseModel):
    """Table Schema field."""

    name: str
    type: str = "string"
    title: str | None = None
    description: str | None = None
    constraints: TableSchemaConstraints = Field(default_factory=TableSchemaConstraints)


class TableSchemaDocument(BaseModel):
    """Table Schema document (single table)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    fields: list[TableSchemaField]
    primary_key: str | list[str] | None = Field(None, alias="primaryKey")


class CsvwDatatype(BaseModel):
    """CSV on the Web datatype description."""

    model_config = ConfigDict(populate_by_name=True)

    base: str = "string"
    format: str | None = None
    min_length: int | None = Field(None, alias="minLength")
    max_length: int | None = Field(None, alias="maxLength")
    minimum: float | str | None = None
    maximum: float | str | None = None


class CsvwColumn(BaseModel):
    """CSV on the Web column."""

    name: str | None = None
    titles: str | list[str] | None = None
    datatype: str | CsvwDatatype = "string"
    required: bool = False


class CsvwTableSchema(BaseModel):
    """CSV on the Web table schema."""

    columns: list[CsvwColumn] = Field(default_factory=list)


class CsvwTable(BaseModel):
    """CSV on the Web table description."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    table_schema: CsvwTableSchema = Field(default_factory=CsvwTableSchema, alias="tableSchema")


class CsvwTableGroup(BaseModel):
    """CSV on the Web table group."""

    tables: list[CsvwTable]
