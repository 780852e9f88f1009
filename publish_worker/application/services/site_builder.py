"""Static site artifacts for a published dataset."""

import json

import pandas as pd
import yaml

from publish_worker.application.services.file_validator import read_table
from publish_worker.domain.entities import Dataset, DatasetFile, TableSchema
from publish_worker.domain.enums import FieldType
from publish_worker.domain.types import JsonDict

CONFIG_PATH = "_config.yml"
SCHEMA_PATH = "schema.json"

# (remote path, template name)
SCAFFOLD_FILES = (
    ("index.html", "html/index.html"),
    ("css/style.css", "stylesheets/style.css"),
    ("_layouts/default.html", "html/default.html"),
    ("_layouts/resource.html", "html/resource.html"),
    ("_layouts/api-item.html", "html/api-item.html"),
    ("_layouts/api-list.html", "html/api-list.html"),
    ("_includes/data_table.html", "html/data_table.html"),
    ("js/data_table.js", "js/data_table.js"),
)


def build_site_config(dataset: Dataset) -> bytes:
    """Site configuration for a freshly published dataset."""
    config = {
        "data_dir": ".",
        "update_frequency": dataset.frequency,
        "permalink": "pretty",
    }
    return yaml.safe_dump(config, sort_keys=False).encode("utf-8")


def build_certified_site_config(dataset: Dataset) -> bytes:
    """Site configuration carrying the certificate badge."""
    config = {
        "data_source": ".",
        "update_frequency": dataset.frequency,
        "certificate_url": f"{dataset.certificate_url}/badge.js",
    }
    return yaml.safe_dump(config, sort_keys=False).encode("utf-8")


def build_view_page(dataset_file: DatasetFile) -> bytes:
    """Human-browsable page for one file."""
    front_matter = {
        "layout": "resource",
        "title": dataset_file.title,
        "description": dataset_file.description,
        "resource": dataset_file.data_path,
        "permalink": f"/{dataset_file.stem}/",
    }
    body = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
    return f"---\n{body}---\n".encode("utf-8")


def build_api_listing(content: bytes, table: TableSchema | None) -> bytes:
    """JSON listing of a file's rows, typed according to its table schema."""
    frame = read_table(content)
    if table is not None:
        for spec in table.fields:
            header = next((str(c) for c in frame.columns if spec.matches_header(str(c))), None)
            if header is not None:
                frame[header] = _typed_column(frame[header], spec.field_type)

    records: list[JsonDict] = json.loads(frame.to_json(orient="records", force_ascii=False))
    return json.dumps(records, indent=2, ensure_ascii=False).encode("utf-8")


def _typed_column(values: pd.Series, field_type: FieldType) -> pd.Series:
    stripped = values.str.strip()
    present = stripped != ""
    if field_type == FieldType.INTEGER:
        numeric = pd.to_numeric(stripped.where(present), errors="coerce")
        return numeric.where(numeric % 1 == 0).astype("Int64")
    if field_type == FieldType.NUMBER:
        return pd.to_numeric(stripped.where(present), errors="coerce")
    if field_type == FieldType.BOOLEAN:
        lowered = stripped.str.lower()
        return lowered.map({"true": True, "1": True, "yes": True, "false": False, "0": False, "no": False})
    return values.where(present)

