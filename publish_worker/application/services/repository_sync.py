"""Synchronizes a dataset's file set with its remote repository."""

import json

import structlog

from publish_worker.application.services.descriptor import DESCRIPTOR_PATH, build_descriptor, serialize_descriptor
from publish_worker.application.services.site_builder import (
    CONFIG_PATH,
    SCAFFOLD_FILES,
    SCHEMA_PATH,
    build_api_listing,
    build_site_config,
    build_view_page,
)
from publish_worker.domain.entities import Dataset, DatasetFile, ResolvedSchema
from publish_worker.domain.errors import (
    DomainError,
    RepositoryNameCollisionError,
    RepositoryNotFoundError,
)
from publish_worker.domain.ports import RepositoryHandlePort, RepositoryStorePort, SiteAssetsPort
from publish_worker.infrastructure.observability.metrics import remote_pushes

logger = structlog.get_logger()

REPOSITORY_EXISTS_MESSAGE = "Repository name already exists"


class NoRemoteRepositoryError(DomainError):
    """A remote operation was attempted before a repository handle exists."""


class RepositorySynchronizer:
    """Owns the single remote repository handle of one dataset.

    Content operations are staged on the handle; nothing is visible to readers
    until ``push``. An instance must not be shared between concurrent jobs.
    """

    def __init__(self, store: RepositoryStorePort, assets: SiteAssetsPort) -> None:
        """Initialize repository synchronizer."""
        self.store = store
        self.assets = assets
        self.handle: RepositoryHandlePort | None = None
        self._staged: list[str] = []

    @property
    def has_remote(self) -> bool:
        return self.handle is not None

    @property
    def staged_paths(self) -> list[str]:
        return list(self._staged)

    async def fetch(self, dataset: Dataset) -> RepositoryHandlePort | None:
        """Attach the dataset's existing repository, if there is one.

        A dataset that was never published has no repository, even when one
        with its derived name exists.
        """
        if not dataset.repo:
            self.handle = None
            return None
        try:
            self.handle = await self.store.find(dataset.repo_owner, dataset.repo)
        except RepositoryNotFoundError:
            logger.info("repository_not_found", dataset_id=dataset.id, full_name=dataset.full_name)
            self.handle = None
        return self.handle

    async def ensure_name_available(self, dataset: Dataset) -> None:
        """Fail when the derived repository name is already taken."""
        try:
            await self.store.find(dataset.repo_owner, dataset.repo_name)
        except RepositoryNotFoundError:
            return
        raise RepositoryNameCollisionError(REPOSITORY_EXISTS_MESSAGE)

    async def create_repository(self, dataset: Dataset) -> RepositoryHandlePort:
        self.handle = await self.store.create(dataset.repo_owner, dataset.repo_name, private=dataset.private)
        dataset.repo = self.handle.name
        dataset.url = self.handle.html_url
        logger.info("repository_created", dataset_id=dataset.id, full_name=self.handle.full_name)
        return self.handle

    async def delete_repository(self) -> None:
        """Delete the remote repository. A missing handle is a no-op."""
        if self.handle is None:
            logger.info("repository_delete_skipped")
            return
        await self.store.delete(self.handle)
        logger.info("repository_deleted", full_name=self.handle.full_name)
        self.handle = None
        self._staged.clear()

    async def create_file(self, path: str, content: bytes) -> str:
        return await self._put(path, content)

    async def update_file(self, path: str, content: bytes) -> str:
        return await self._put(path, content)

    async def delete_file(self, path: str) -> None:
        handle = self._require_handle()
        await handle.remove_file(path)
        self._staged.append(path)

    async def push(self, message: str) -> None:
        """Commit and publish every staged change."""
        handle = self._require_handle()
        await handle.push(message)
        remote_pushes.inc()
        logger.info("repository_pushed", full_name=handle.full_name, changes=len(self._staged), message=message)
        self._staged.clear()

    async def add_dataset_file(self, dataset_file: DatasetFile, content: bytes) -> None:
        """Write a file's data and viewer page.

        On failure the file is rolled back to an unsaved state and the write is
        not retried.
        """
        try:
            dataset_file.file_sha = await self.create_file(dataset_file.data_path, content)
            dataset_file.view_sha = await self.create_file(dataset_file.view_path, build_view_page(dataset_file))
        except Exception:
            logger.error("dataset_file_add_failed", filename=dataset_file.filename, exc_info=True)
            dataset_file.rollback()
            raise

    async def update_dataset_file(self, dataset_file: DatasetFile, content: bytes | None) -> None:
        """Write new content and/or refreshed metadata for an existing file."""
        if content is not None:
            dataset_file.file_sha = await self.update_file(dataset_file.data_path, content)
        if content is not None or dataset_file.metadata_dirty:
            dataset_file.view_sha = await self.update_file(dataset_file.view_path, build_view_page(dataset_file))
        dataset_file.metadata_dirty = False

    async def remove_dataset_file(self, dataset_file: DatasetFile) -> None:
        await self.delete_file(dataset_file.data_path)
        await self.delete_file(dataset_file.view_path)

    async def write_descriptor(self, dataset: Dataset, schema: ResolvedSchema | None) -> None:
        await self._put(DESCRIPTOR_PATH, serialize_descriptor(build_descriptor(dataset, schema)))

    async def write_scaffold(
        self,
        dataset: Dataset,
        schema: ResolvedSchema | None,
        contents: dict[str, bytes],
    ) -> None:
        """Write the static-site scaffold, descriptor and schema artifacts.

        ``contents`` maps filenames to their data, used for the per-file API
        listings written when the dataset has a schema.
        """
        await self.write_descriptor(dataset, schema)
        for path, template in SCAFFOLD_FILES:
            await self.create_file(path, self.assets.read(template))
        await self.create_file(CONFIG_PATH, build_site_config(dataset))

        if schema is None:
            return

        await self.create_file(SCHEMA_PATH, json.dumps(schema.document, indent=2).encode("utf-8"))
        for dataset_file in dataset.files:
            content = contents.get(dataset_file.filename)
            if content is None:
                continue
            listing = build_api_listing(content, schema.table_for(dataset_file.filename))
            await self.create_file(dataset_file.api_path, listing)

    async def _put(self, path: str, content: bytes) -> str:
        handle = self._require_handle()
        sha = await handle.put_file(path, content)
        self._staged.append(path)
        return sha

    def _require_handle(self) -> RepositoryHandlePort:
        if self.handle is None:
            raise NoRemoteRepositoryError("No remote repository attached")
        return self.handle
