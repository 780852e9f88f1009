"""Schema resolution and dialect classification."""

import asyncio
import json
import re
from datetime import datetime

import structlog
from pydantic import ValidationError

from publish_worker.application.dto.schema import (
    CsvwColumn,
    CsvwDatatype,
    CsvwTableGroup,
    TableSchemaDocument,
    TableSchemaField,
)
from publish_worker.domain.entities import FieldSpec, ResolvedSchema, TableSchema
from publish_worker.domain.enums import Dialect, FieldType
from publish_worker.domain.errors import (
    ExternalUnavailableError,
    SchemaMalformedError,
    SchemaParseError,
    SchemaUnreachableError,
)
from publish_worker.domain.ports import DocumentFetcherPort
from publish_worker.domain.types import JsonDict, JsonValue

logger = structlog.get_logger()

_TABLE_SCHEMA_TYPES = {
    "string": FieldType.STRING,
    "integer": FieldType.INTEGER,
    "number": FieldType.NUMBER,
    "boolean": FieldType.BOOLEAN,
    "date": FieldType.DATE,
    "datetime": FieldType.DATETIME,
}

_CSVW_TYPES = {
    "string": FieldType.STRING,
    "integer": FieldType.INTEGER,
    "int": FieldType.INTEGER,
    "long": FieldType.INTEGER,
    "short": FieldType.INTEGER,
    "nonNegativeInteger": FieldType.INTEGER,
    "positiveInteger": FieldType.INTEGER,
    "decimal": FieldType.NUMBER,
    "double": FieldType.NUMBER,
    "float": FieldType.NUMBER,
    "number": FieldType.NUMBER,
    "boolean": FieldType.BOOLEAN,
    "date": FieldType.DATE,
    "dateTime": FieldType.DATETIME,
    "datetime": FieldType.DATETIME,
}


class SchemaResolver:
    """Fetches, parses and classifies schema documents.

    Parsed schemas are cached by schema url. Schema documents are treated as
    immutable once fetched, so the cache is never invalidated and can be shared
    read-only across jobs.
    """

    def __init__(self, fetcher: DocumentFetcherPort) -> None:
        """Initialize schema resolver."""
        self.fetcher = fetcher
        self._cache: dict[str, ResolvedSchema] = {}
        self._lock = asyncio.Lock()

    async def resolve(self, url: str) -> ResolvedSchema:
        """Resolve a schema url into a parsed schema and its dialect.

        Raises:
            SchemaUnreachableError: the document could not be fetched.
            SchemaParseError: the document is not a schema of either dialect.
            SchemaMalformedError: the schema declares no fields or tables.
        """
        cached = self._cache.get(url)
        if cached is not None:
            return cached

        async with self._lock:
            if url in self._cache:
                return self._cache[url]

            try:
                raw = await self.fetcher.fetch(url)
            except ExternalUnavailableError as e:
                raise SchemaUnreachableError(f"Schema not reachable: {url}") from e

            resolved = parse_schema(raw)
            self._cache[url] = resolved
            logger.info("schema_resolved", url=url, dialect=resolved.dialect.value)
            return resolved

    async def discover(self, url: str) -> ResolvedSchema | None:
        """Resolve an optional, auto-discovered schema.

        A schema that is missing or unparseable means "no schema". A schema
        that parses but declares nothing still raises ``SchemaMalformedError``.
        """
        try:
            return await self.resolve(url)
        except (SchemaUnreachableError, SchemaParseError) as e:
            logger.info("schema_not_discovered", url=url, reason=type(e).__name__)
            return None


def parse_schema(raw: bytes | str | JsonDict) -> ResolvedSchema:
    """Parse a schema document and classify its dialect."""
    document = _load_document(raw)

    if "tables" in document or "tableSchema" in document:
        return _parse_table_group(document)
    if "fields" in document:
        return _parse_single_table(document)

    raise SchemaParseError("Schema declares neither fields nor tables")


def _load_document(raw: bytes | str | JsonDict) -> JsonDict:
    if isinstance(raw, dict):
        return raw
    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SchemaParseError(f"Schema is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise SchemaParseError("Schema must be a JSON object")
    return document


def _parse_single_table(document: JsonDict) -> ResolvedSchema:
    try:
        parsed = TableSchemaDocument.model_validate(document)
    except ValidationError as e:
        raise SchemaParseError(f"Invalid Table Schema: {e}") from e

    if not parsed.fields:
        raise SchemaMalformedError("Table Schema has no fields")

    fields = tuple(_table_schema_field(f) for f in parsed.fields)
    return ResolvedSchema(
        dialect=Dialect.SINGLE_TABLE,
        document=document,
        table=TableSchema(fields=fields),
    )


def _table_schema_field(field: TableSchemaField) -> FieldSpec:
    field_type = _TABLE_SCHEMA_TYPES.get(field.type, FieldType.ANY)
    constraints = field.constraints
    return FieldSpec(
        name=field.name,
        field_type=field_type,
        titles=(field.title,) if field.title else (),
        required=constraints.required,
        unique=constraints.unique,
        min_length=constraints.min_length,
        max_length=constraints.max_length,
        minimum=_bound(constraints.minimum, field_type),
        maximum=_bound(constraints.maximum, field_type),
        pattern=_pattern(constraints.pattern),
        enum=_enum(constraints.enum),
    )


def _parse_table_group(document: JsonDict) -> ResolvedSchema:
    # A lone table description is a group of one
    group_document = document if "tables" in document else {"tables": [document]}
    try:
        parsed = CsvwTableGroup.model_validate(group_document)
    except ValidationError as e:
        raise SchemaParseError(f"Invalid CSV on the Web schema: {e}") from e

    if not parsed.tables or not parsed.tables[0].table_schema.columns:
        raise SchemaMalformedError("CSV on the Web schema has no columns")

    tables: dict[str, TableSchema] = {}
    for table in parsed.tables:
        key = table.url.rstrip("/").rsplit("/", 1)[-1]
        tables[key] = TableSchema(
            fields=tuple(_column_to_field(column, index) for index, column in enumerate(table.table_schema.columns)),
        )

    return ResolvedSchema(dialect=Dialect.TABLE_GROUP, document=document, tables=tables)


def _column_to_field(column: CsvwColumn, index: int) -> FieldSpec:
    if column.titles is None:
        titles: tuple[str, ...] = ()
    elif isinstance(column.titles, str):
        titles = (column.titles,)
    else:
        titles = tuple(column.titles)

    name = column.name or (titles[0] if titles else f"_col.{index + 1}")
    datatype = column.datatype if isinstance(column.datatype, CsvwDatatype) else CsvwDatatype(base=column.datatype)
    field_type = _CSVW_TYPES.get(datatype.base, FieldType.ANY)

    return FieldSpec(
        name=name,
        field_type=field_type,
        titles=titles,
        required=column.required,
        min_length=datatype.min_length,
        max_length=datatype.max_length,
        minimum=_bound(datatype.minimum, field_type),
        maximum=_bound(datatype.maximum, field_type),
        # For strings the CSVW format is a regular expression
        pattern=_pattern(datatype.format) if field_type == FieldType.STRING else None,
    )


def _bound(value: float | str | None, field_type: FieldType) -> float | str | None:
    """Numeric bounds for numbers, ISO 8601 bounds for dates and datetimes."""
    if value is None:
        return None
    if field_type in (FieldType.INTEGER, FieldType.NUMBER):
        try:
            return float(value)
        except ValueError as e:
            raise SchemaParseError(f"Bound {value!r} is not a number") from e
    if field_type in (FieldType.DATE, FieldType.DATETIME):
        if not isinstance(value, str):
            raise SchemaParseError(f"Bound {value!r} is not a date")
        try:
            datetime.fromisoformat(value)
        except ValueError as e:
            raise SchemaParseError(f"Bound {value!r} is not a date") from e
    return value


def _pattern(pattern: str | None) -> str | None:
    if pattern is None:
        return None
    try:
        re.compile(pattern)
    except re.error as e:
        raise SchemaParseError(f"Pattern {pattern!r} is not a regular expression: {e}") from e
    return pattern


def _enum(values: list[JsonValue] | None) -> tuple[str, ...] | None:
    # CSV cells are text, so enum members compare by their JSON text form
    if values is None:
        return None
    return tuple(value if isinstance(value, str) else json.dumps(value) for value in values)
