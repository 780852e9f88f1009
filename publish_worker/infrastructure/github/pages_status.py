"""GitHub Pages build status."""

import httpx

from publish_worker.domain.ports import BuildStatusPort
from publish_worker.infrastructure.github.repository_store import GitHubClient


class GitHubPagesStatus(BuildStatusPort):
    """Reads the Pages site status of a repository."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize pages status reader."""
        self.github = GitHubClient(client)

    async def get_build_status(self, full_name: str) -> str | None:
        """Current status, or None while Pages has no site for the repository."""
        response = await self.github.request("GET", f"/repos/{full_name}/pages")
        if response.status_code == 404:
            return None
        return response.json().get("status")
