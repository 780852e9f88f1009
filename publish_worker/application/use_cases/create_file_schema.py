"""Create a file schema from inline schema content."""

import json
import uuid

import structlog

from publish_worker.application.services.schema_resolver import SchemaResolver
from publish_worker.domain.entities import DatasetFileSchema
from publish_worker.domain.ports import DatasetStorePort, DocumentWriterPort
from publish_worker.domain.types import JsonDict

logger = structlog.get_logger()


async def run(
    name: str | None,
    description: str | None,
    content: str | JsonDict,
    user_id: str,
    writer: DocumentWriterPort,
    dataset_store: DatasetStorePort,
    resolver: SchemaResolver,
) -> DatasetFileSchema:
    """Store the schema document, resolve it and save the schema record.

    The record is only saved once the document has resolved, so a failed
    creation leaves nothing behind for files to reference.
    """
    raw = content if isinstance(content, str) else json.dumps(content)
    schema_id = str(uuid.uuid4())

    url = await writer.store(f"schemas/documents/{schema_id}.json", raw.encode("utf-8"), "application/json")
    resolved = await resolver.resolve(url)

    schema = DatasetFileSchema(
        id=schema_id,
        name=name or "Schema",
        url=url,
        description=description,
        user_id=user_id,
    )
    await dataset_store.save_schema(schema)
    logger.info("file_schema_created", schema_id=schema_id, dialect=resolved.dialect.value)
    return schema
