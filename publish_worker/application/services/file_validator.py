"""Tabular file validation."""

import io
import json
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import pandas as pd
import structlog

from publish_worker.application.services.schema_resolver import SchemaResolver
from publish_worker.domain.entities import DatasetFile, FieldSpec, ResolvedSchema, TableSchema, ValidationResult
from publish_worker.domain.enums import FieldType
from publish_worker.domain.errors import DatasetNotFoundError, SchemaResolutionError, SchemaUnreachableError
from publish_worker.domain.ports import DatasetStorePort

logger = structlog.get_logger()

NOT_CSV_MESSAGE = "does not appear to be a valid CSV. Please check your file and try again."
UPLOAD_PROBLEM_MESSAGE = "had some problems trying to upload. Please check your file and try again."
MISSING_TITLE_MESSAGE = "must have a title."
INVALID_SCHEMA_MESSAGE = "has a schema that is invalid. Please check your schema and try again."
UNREACHABLE_SCHEMA_MESSAGE = "has a schema that could not be found. Please check your schema and try again."

_BOOLEAN_VALUES = ("true", "false", "1", "0", "yes", "no")


class NotCsvError(ValueError):
    """Content is not delimited tabular data."""


class FileValidator:
    """Validates tabular files, optionally against their schema."""

    def __init__(self, resolver: SchemaResolver, dataset_store: DatasetStorePort) -> None:
        """Initialize file validator."""
        self.resolver = resolver
        self.dataset_store = dataset_store

    async def validate(self, dataset_file: DatasetFile, content: bytes | None = None) -> ValidationResult:
        """Validate a file and its content.

        Without content only the file metadata is checked.
        """
        messages: list[str] = []
        if not dataset_file.title:
            messages.append(MISSING_TITLE_MESSAGE)

        if content is not None:
            resolved: ResolvedSchema | None = None
            if dataset_file.dataset_file_schema_id:
                try:
                    resolved = await self.resolve_file_schema(dataset_file.dataset_file_schema_id)
                except (SchemaUnreachableError, DatasetNotFoundError):
                    messages.append(UNREACHABLE_SCHEMA_MESSAGE)
                except SchemaResolutionError:
                    messages.append(INVALID_SCHEMA_MESSAGE)
                else:
                    messages.extend(check_content(content, dataset_file.filename, resolved))
            else:
                messages.extend(check_content(content, dataset_file.filename))

        result = ValidationResult(
            valid=not messages,
            messages=tuple(messages),
            file_id=dataset_file.id,
            filename=dataset_file.filename,
        )
        logger.info(
            "file_validated",
            filename=dataset_file.filename,
            valid=result.valid,
            message_count=len(messages),
        )
        return result

    async def resolve_file_schema(self, schema_id: str) -> ResolvedSchema:
        schema = await self.dataset_store.get_schema(schema_id)
        return await self.resolver.resolve(schema.url)


def read_table(content: bytes) -> pd.DataFrame:
    """Parse CSV content into a frame of strings.

    Raises:
        NotCsvError: the content is not delimited tabular data.
    """
    if _is_json_document(content):
        raise NotCsvError("Content is a JSON document")
    try:
        frame = pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise NotCsvError(str(e)) from e
    return frame.fillna("")


def check_content(content: bytes, filename: str, resolved: ResolvedSchema | None = None) -> list[str]:
    """Check content well-formedness and, when a table schema applies, its rows."""
    try:
        frame = read_table(content)
    except NotCsvError as e:
        logger.info("file_not_csv", filename=filename, reason=str(e))
        return [NOT_CSV_MESSAGE]
    except Exception as e:
        # Parser-specific failures map onto one stable message
        logger.warning("file_parse_failed", filename=filename, error=str(e), exc_info=True)
        return [UPLOAD_PROBLEM_MESSAGE]

    if resolved is None:
        return []

    table = resolved.table_for(filename)
    if table is None:
        logger.info("no_applicable_table_schema", filename=filename, dialect=resolved.dialect.value)
        return []

    return check_table(frame, table)


def check_table(frame: pd.DataFrame, table: TableSchema) -> list[str]:
    """Validate a frame against a table schema, reporting the first failure."""
    if not table.fields:
        return [INVALID_SCHEMA_MESSAGE]

    headers = [str(column) for column in frame.columns]
    columns: list[tuple[FieldSpec, str]] = []
    for spec in table.fields:
        header = next((h for h in headers if spec.matches_header(h)), None)
        if header is None:
            return [f"does not match the schema: column '{spec.name}' is missing."]
        columns.append((spec, header))

    first: _Violation | None = None
    for field_index, (spec, header) in enumerate(columns):
        for check_index, (mask, reason) in enumerate(_field_checks(frame[header], spec)):
            rows = np.flatnonzero(mask.to_numpy())
            if rows.size == 0:
                continue
            candidate = _Violation(int(rows[0]), field_index, check_index, header, reason)
            if first is None or candidate.sort_key < first.sort_key:
                first = candidate

    if first is None:
        return []

    value = frame[first.header].iloc[first.row]
    # Data rows start on line 2, after the header
    return [
        f"does not match the schema: row {first.row + 2}, column '{first.header}' {first.reason(value)}.",
    ]


@dataclass(frozen=True)
class _Violation:
    row: int
    field_index: int
    check_index: int
    header: str
    reason: Callable[[str], str]

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.row, self.field_index, self.check_index)


def _field_checks(values: pd.Series, spec: FieldSpec) -> list[tuple[pd.Series, Callable[[str], str]]]:
    """Build (violation mask, reason) pairs for one column."""
    stripped = values.str.strip()
    empty = stripped == ""
    present = ~empty
    checks: list[tuple[pd.Series, Callable[[str], str]]] = []

    if spec.required:
        checks.append((empty, lambda _v: "is required but empty"))

    numeric: pd.Series | None = None
    moments: pd.Series | None = None
    if spec.field_type in (FieldType.INTEGER, FieldType.NUMBER):
        numeric = pd.to_numeric(stripped.where(present), errors="coerce")
        if spec.field_type == FieldType.INTEGER:
            bad = present & (numeric.isna() | (numeric % 1 != 0))
            checks.append((bad, lambda v: f"value '{v}' is not a valid integer"))
        else:
            checks.append((present & numeric.isna(), lambda v: f"value '{v}' is not a valid number"))
    elif spec.field_type == FieldType.BOOLEAN:
        bad = present & ~stripped.str.lower().isin(_BOOLEAN_VALUES)
        checks.append((bad, lambda v: f"value '{v}' is not a valid boolean"))
    elif spec.field_type == FieldType.DATE:
        moments = pd.to_datetime(stripped.where(present), format="%Y-%m-%d", errors="coerce")
        checks.append((present & moments.isna(), lambda v: f"value '{v}' is not a valid date"))
    elif spec.field_type == FieldType.DATETIME:
        moments = pd.to_datetime(stripped.where(present), format="ISO8601", utc=True, errors="coerce")
        checks.append((present & moments.isna(), lambda v: f"value '{v}' is not a valid datetime"))

    lengths = values.str.len()
    if spec.min_length is not None:
        checks.append((present & (lengths < spec.min_length), lambda v: f"value '{v}' is shorter than {spec.min_length}"))
    if spec.max_length is not None:
        checks.append((present & (lengths > spec.max_length), lambda v: f"value '{v}' is longer than {spec.max_length}"))

    ordered = numeric if numeric is not None else moments
    if ordered is not None:
        if spec.minimum is not None:
            low = _comparable_bound(spec.minimum, spec.field_type)
            checks.append((present & (ordered < low), lambda v: f"value '{v}' is below {_format_bound(spec.minimum)}"))
        if spec.maximum is not None:
            high = _comparable_bound(spec.maximum, spec.field_type)
            checks.append((present & (ordered > high), lambda v: f"value '{v}' is above {_format_bound(spec.maximum)}"))

    if spec.pattern is not None:
        matched = values.str.fullmatch(spec.pattern).fillna(False).astype(bool)
        checks.append((present & ~matched, lambda v: f"value '{v}' does not match the pattern {spec.pattern}"))

    if spec.enum is not None:
        checks.append((present & ~values.isin(spec.enum), lambda v: f"value '{v}' is not one of {', '.join(spec.enum)}"))

    if spec.unique:
        checks.append((present & values.duplicated(), lambda v: f"value '{v}' is not unique"))

    return checks


def _comparable_bound(bound: float | str, field_type: FieldType) -> float | pd.Timestamp:
    if field_type not in (FieldType.DATE, FieldType.DATETIME):
        return float(bound)
    moment = pd.Timestamp(bound)
    if field_type == FieldType.DATE:
        return moment
    # Datetime cells are parsed as UTC
    return moment.tz_localize("UTC") if moment.tzinfo is None else moment.tz_convert("UTC")


def _format_bound(bound: float | str) -> str:
    return bound if isinstance(bound, str) else f"{bound:g}"


def _is_json_document(content: bytes) -> bool:
    head = content.lstrip()[:1]
    if head not in (b"{", b"["):
        return False
    try:
        json.loads(content)
    except (UnicodeDecodeError, ValueError):
        return False
    return True
