"""GitHub repository store over the REST and Git Data APIs."""

import base64
import hashlib

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from publish_worker.domain.errors import ExternalUnavailableError, RepositoryNotFoundError
from publish_worker.domain.ports import RepositoryHandlePort, RepositoryStorePort
from publish_worker.domain.types import JsonDict

logger = structlog.get_logger()

_FILE_MODE = "100644"

_retry_unavailable = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(ExternalUnavailableError),
    reraise=True,
)


def git_blob_sha(content: bytes) -> str:
    """Content sha as git computes it for a blob."""
    header = f"blob {len(content)}\0".encode("utf-8")
    return hashlib.sha1(header + content).hexdigest()


class GitHubClient:
    """Thin JSON wrapper over an authenticated httpx client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize GitHub client."""
        self.client = client

    @_retry_unavailable
    async def request(self, method: str, path: str, json: JsonDict | None = None) -> httpx.Response:
        """Send a request. 404 responses are returned, other errors raise."""
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TransportError as e:
            raise ExternalUnavailableError(f"GitHub request failed: {method} {path}: {e}") from e

        if response.status_code == 404 or response.is_success:
            return response
        logger.warning("github_request_failed", method=method, path=path, status=response.status_code)
        raise ExternalUnavailableError(f"GitHub returned {response.status_code} for {method} {path}")

    async def json(self, method: str, path: str, json: JsonDict | None = None) -> JsonDict:
        response = await self.request(method, path, json)
        if response.status_code == 404:
            raise RepositoryNotFoundError(f"Not found: {path}")
        return response.json()


class GitHubRepositoryHandle(RepositoryHandlePort):
    """Stages file changes and pushes them as one commit on the pages branch."""

    def __init__(self, github: GitHubClient, data: JsonDict, branch: str) -> None:
        """Initialize repository handle."""
        self.github = github
        self.name = data["name"]
        self.full_name = data["full_name"]
        self.html_url = data["html_url"]
        self.default_branch = data.get("default_branch") or "main"
        self.branch = branch
        # path -> content, None for removals
        self._staged: dict[str, bytes | None] = {}

    async def put_file(self, path: str, content: bytes) -> str:
        self._staged[path] = content
        return git_blob_sha(content)

    async def remove_file(self, path: str) -> None:
        self._staged[path] = None

    async def push(self, message: str) -> None:
        """Create blobs, a tree and a commit, then move the branch to it."""
        if not self._staged:
            logger.info("push_skipped_nothing_staged", full_name=self.full_name)
            return

        repo_path = f"/repos/{self.full_name}"
        head_sha, branch_exists = await self._head()
        head_commit = await self.github.json("GET", f"{repo_path}/git/commits/{head_sha}")

        tree = []
        for path, content in self._staged.items():
            entry: JsonDict = {"path": path, "mode": _FILE_MODE, "type": "blob"}
            if content is None:
                entry["sha"] = None
            else:
                blob = await self.github.json(
                    "POST",
                    f"{repo_path}/git/blobs",
                    {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
                )
                entry["sha"] = blob["sha"]
            tree.append(entry)

        new_tree = await self.github.json(
            "POST",
            f"{repo_path}/git/trees",
            {"base_tree": head_commit["tree"]["sha"], "tree": tree},
        )
        commit = await self.github.json(
            "POST",
            f"{repo_path}/git/commits",
            {"message": message, "tree": new_tree["sha"], "parents": [head_sha]},
        )

        if branch_exists:
            await self.github.json("PATCH", f"{repo_path}/git/refs/heads/{self.branch}", {"sha": commit["sha"]})
        else:
            await self.github.json(
                "POST",
                f"{repo_path}/git/refs",
                {"ref": f"refs/heads/{self.branch}", "sha": commit["sha"]},
            )

        logger.info("commit_pushed", full_name=self.full_name, sha=commit["sha"], files=len(tree))
        self._staged.clear()

    async def _head(self) -> tuple[str, bool]:
        """Head commit of the pages branch, falling back to the default branch."""
        repo_path = f"/repos/{self.full_name}"
        try:
            ref = await self.github.json("GET", f"{repo_path}/git/ref/heads/{self.branch}")
            return ref["object"]["sha"], True
        except RepositoryNotFoundError:
            ref = await self.github.json("GET", f"{repo_path}/git/ref/heads/{self.default_branch}")
            return ref["object"]["sha"], False


class GitHubRepositoryStore(RepositoryStorePort):
    """Finds, creates and deletes GitHub repositories."""

    def __init__(self, client: httpx.AsyncClient, login: str, pages_branch: str = "gh-pages") -> None:
        """Initialize repository store."""
        self.github = GitHubClient(client)
        self.login = login
        self.pages_branch = pages_branch

    async def find(self, owner: str, name: str) -> GitHubRepositoryHandle:
        data = await self.github.json("GET", f"/repos/{owner}/{name}")
        return GitHubRepositoryHandle(self.github, data, self.pages_branch)

    async def create(self, owner: str, name: str, private: bool = False) -> GitHubRepositoryHandle:
        """Create a repository with an initial commit to build on."""
        path = "/user/repos" if owner == self.login else f"/orgs/{owner}/repos"
        data = await self.github.json("POST", path, {"name": name, "private": private, "auto_init": True})
        logger.info("github_repository_created", full_name=data["full_name"])
        return GitHubRepositoryHandle(self.github, data, self.pages_branch)

    async def delete(self, handle: RepositoryHandlePort) -> None:
        """Delete a repository. One that is already gone counts as deleted."""
        response = await self.github.request("DELETE", f"/repos/{handle.full_name}")
        if response.status_code == 404:
            logger.info("github_repository_already_deleted", full_name=handle.full_name)
            return
        logger.info("github_repository_deleted", full_name=handle.full_name)
