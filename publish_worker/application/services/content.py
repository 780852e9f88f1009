"""File content ingestion."""

from publish_worker.domain.ports import DocumentFetcherPort


async def load_content(
    fetcher: DocumentFetcherPort,
    storage_key: str | None,
    source_url: str | None,
) -> bytes | None:
    """Load file content from an upload or a url, whichever was supplied."""
    if storage_key:
        return await fetcher.fetch_upload(storage_key)
    if source_url:
        return await fetcher.fetch(source_url)
    return None
