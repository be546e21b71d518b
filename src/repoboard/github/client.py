"""GitHubContentClient - Async access to the GitHub contents, tree and blob APIs."""

from __future__ import annotations

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from repoboard.github.exceptions import (
    ConflictError,
    ForbiddenError,
    GitHubError,
    NotFoundError,
    UnauthorizedError,
    UnavailableError,
)
from repoboard.github.models import (
    DirectoryEntry,
    FileContent,
    GitHubUser,
    RepoContext,
    Repository,
    TreeEntry,
)
from repoboard.logging import truncate_output

logger = logging.getLogger("repoboard.github")

GITHUB_API_URL = "https://api.github.com"

# Entries returned by one contents API directory listing at most
DIRECTORY_LISTING_LIMIT = 1000


class GitHubContentClient:
    """Client for the parts of the GitHub REST API used as a record store.

    The client holds no credentials. Every call receives a RepoContext that
    names the repository, branch and bearer token to use.
    """

    def __init__(
        self,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the content client.

        Args:
            base_url: GitHub API URL (for testing/enterprise)
            timeout: Per-request timeout in seconds, enforced by httpx
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client for the GitHub API."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GitHubContentClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Transport ---

    async def _request(
        self,
        ctx: RepoContext,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        resource: str | None = None,
    ) -> Any:
        """Send an authenticated request and decode the JSON body.

        Args:
            ctx: Repository context carrying the token
            method: HTTP method
            endpoint: API path relative to base_url
            params: Query parameters
            json: JSON request body
            resource: Name of the resource for error messages (defaults to endpoint)

        Returns:
            Decoded JSON response ({} for empty responses)

        Raises:
            GitHubError: Classified by status (see _error_for)
        """
        try:
            response = await self.client.request(
                method,
                endpoint,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {ctx.token}"},
            )
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, endpoint, e)
            raise UnavailableError(f"Could not reach GitHub: {e}") from e

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

        logger.warning(
            "%s %s -> %d: %s",
            method,
            endpoint,
            response.status_code,
            truncate_output(response.text, 500),
        )
        raise self._error_for(response, resource or endpoint)

    @staticmethod
    def _error_for(response: httpx.Response, resource: str) -> GitHubError:
        """Map an unsuccessful response to the matching GitHubError subclass."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        status = response.status_code
        message = body.get("message") or f"GitHub API error: {status} {response.reason_phrase}"
        detail = f"{resource}: {message}"

        if status == 404:
            return NotFoundError(detail, status, body)
        if status == 401:
            return UnauthorizedError(detail, status, body)
        if status == 429 or (status == 403 and _is_rate_limited(response, message)):
            return UnavailableError(f"GitHub rate limit exceeded: {message}", status, body)
        if status == 403:
            return ForbiddenError(detail, status, body)
        # 422 "sha wasn't supplied" means the file already exists
        if status == 409 or (status == 422 and "sha" in message.lower()):
            return ConflictError(resource, status, body)
        if status >= 500:
            return UnavailableError(detail, status, body)
        return GitHubError(detail, status, body)

    @staticmethod
    def _repo_url(ctx: RepoContext) -> str:
        return f"/repos/{ctx.owner}/{ctx.repo}"

    def _contents_url(self, ctx: RepoContext, path: str) -> str:
        return f"{self._repo_url(ctx)}/contents/{quote(path.strip('/'), safe='/')}"

    # --- Repository metadata ---

    async def get_repository(self, ctx: RepoContext) -> Repository:
        """Fetch repository details including the caller's permissions."""
        data = await self._request(ctx, "GET", self._repo_url(ctx), resource=ctx.full_name)
        return Repository.from_api(data)

    async def resolve_branch(self, ctx: RepoContext) -> str:
        """Return the context branch, or the repository default branch."""
        if ctx.branch:
            return ctx.branch
        repository = await self.get_repository(ctx)
        return repository.default_branch

    async def get_current_user(self, ctx: RepoContext) -> GitHubUser:
        """Fetch the profile of the token's owner."""
        data = await self._request(ctx, "GET", "/user", resource="user")
        return GitHubUser.from_api(data)

    async def list_collaborators(
        self, ctx: RepoContext, permission: str = "push"
    ) -> list[GitHubUser]:
        """List repository collaborators holding at least the given permission."""
        data = await self._request(
            ctx,
            "GET",
            f"{self._repo_url(ctx)}/collaborators",
            params={"permission": permission, "per_page": 100},
        )
        return [GitHubUser.from_api(item) for item in data]

    async def list_forks(self, ctx: RepoContext) -> list[GitHubUser]:
        """List the owners of the repository's forks."""
        data = await self._request(
            ctx, "GET", f"{self._repo_url(ctx)}/forks", params={"per_page": 100}
        )
        return [GitHubUser.from_api(item["owner"]) for item in data if item.get("owner")]

    # --- Contents API ---

    async def get_file(self, ctx: RepoContext, path: str, ref: str | None = None) -> FileContent:
        """Fetch a single file.

        Args:
            ctx: Repository context
            path: File path relative to the repository root
            ref: Branch, tag or commit (defaults to the context branch)

        Returns:
            FileContent with decoded bytes and the current blob hash.
            content is None when GitHub declines to inline the file.

        Raises:
            NotFoundError: If the file does not exist
            GitHubError: If the path is a directory
        """
        ref = ref or ctx.branch
        data = await self._request(
            ctx,
            "GET",
            self._contents_url(ctx, path),
            params={"ref": ref} if ref else None,
            resource=path,
        )
        if not isinstance(data, dict) or data.get("type") != "file":
            raise GitHubError(f"Expected a file but got a directory: {path}")

        return FileContent(
            path=data.get("path", path),
            sha=data["sha"],
            size=data.get("size", 0),
            content=_decode_base64(data),
        )

    async def list_directory(
        self, ctx: RepoContext, path: str, ref: str | None = None
    ) -> list[DirectoryEntry]:
        """List the entries of one directory.

        Raises:
            NotFoundError: If the directory does not exist
            GitHubError: If the path is a file
        """
        ref = ref or ctx.branch
        data = await self._request(
            ctx,
            "GET",
            self._contents_url(ctx, path),
            params={"ref": ref} if ref else None,
            resource=path,
        )
        if not isinstance(data, list):
            raise GitHubError(f"Expected a directory but got a file: {path}")

        return [
            DirectoryEntry(
                name=item["name"],
                path=item["path"],
                sha=item["sha"],
                type=item.get("type", "file"),
                size=item.get("size", 0),
            )
            for item in data
        ]

    async def put_file(
        self,
        ctx: RepoContext,
        path: str,
        content: bytes,
        message: str,
        expected_sha: str | None = None,
        branch: str | None = None,
    ) -> str:
        """Create or update a file as a single commit.

        Args:
            ctx: Repository context
            path: File path relative to the repository root
            content: Raw file bytes
            message: Commit message
            expected_sha: Hash the file must currently have. None means the
                file must not exist yet.
            branch: Target branch (defaults to the context branch)

        Returns:
            The blob hash of the committed content

        Raises:
            ConflictError: If the remote file does not match expected_sha
        """
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if expected_sha:
            body["sha"] = expected_sha
        branch = branch or ctx.branch
        if branch:
            body["branch"] = branch

        logger.debug("Writing %s (expected sha: %s)", path, expected_sha or "none")
        data = await self._request(
            ctx, "PUT", self._contents_url(ctx, path), json=body, resource=path
        )
        sha = str(data["content"]["sha"])
        logger.info("Committed %s -> %s", path, sha[:7])
        return sha

    async def delete_file(
        self,
        ctx: RepoContext,
        path: str,
        sha: str,
        message: str,
        branch: str | None = None,
    ) -> None:
        """Delete a file as a single commit.

        Raises:
            ConflictError: If the remote file does not match sha
            NotFoundError: If the file does not exist
        """
        body: dict[str, Any] = {"message": message, "sha": sha}
        branch = branch or ctx.branch
        if branch:
            body["branch"] = branch

        await self._request(ctx, "DELETE", self._contents_url(ctx, path), json=body, resource=path)
        logger.info("Deleted %s", path)

    # --- Git data API ---

    async def list_tree(
        self, ctx: RepoContext, root_path: str, branch: str | None = None
    ) -> list[TreeEntry]:
        """List every blob below root_path with a single recursive tree call.

        If GitHub truncates the tree, root_path is listed again from its own
        subtree. Should that be truncated as well, the folder is walked through
        the contents API, with a warning for any listing that reaches the
        contents API limit.

        Raises:
            NotFoundError: If the branch does not exist or the repository is empty
        """
        branch = branch or await self.resolve_branch(ctx)
        prefix = root_path.strip("/")

        try:
            ref = await self._request(
                ctx,
                "GET",
                f"{self._repo_url(ctx)}/git/ref/heads/{branch}",
                resource=f"branch {branch}",
            )
        except ConflictError as e:
            # GitHub answers 409 for a repository without any commit
            raise NotFoundError(
                f"Repository {ctx.full_name} is empty", e.status, e.response
            ) from e

        commit_sha = ref["object"]["sha"]
        tree = await self._request(
            ctx,
            "GET",
            f"{self._repo_url(ctx)}/git/trees/{commit_sha}",
            params={"recursive": "1"},
        )

        if not tree.get("truncated"):
            return [
                TreeEntry(path=item["path"], sha=item["sha"], size=item.get("size"))
                for item in tree.get("tree", [])
                if item.get("type") == "blob" and _is_under(item["path"], prefix)
            ]

        if prefix:
            logger.info(
                "Tree of %s@%s is truncated, listing subtree %s", ctx.full_name, branch, prefix
            )
            entries = await self._list_subtree(ctx, prefix, branch)
            if entries is not None:
                return entries

        logger.warning(
            "Tree of %s@%s is truncated, listing %s directory by directory",
            ctx.full_name,
            branch,
            prefix or "/",
        )
        return await self._walk_directory(ctx, prefix, branch)

    async def _list_subtree(
        self, ctx: RepoContext, prefix: str, branch: str
    ) -> list[TreeEntry] | None:
        """List the blobs below prefix from its own tree; None if that tree is truncated."""
        tree_ish = quote(f"{branch}:{prefix}", safe="/:")
        try:
            tree = await self._request(
                ctx,
                "GET",
                f"{self._repo_url(ctx)}/git/trees/{tree_ish}",
                params={"recursive": "1"},
                resource=f"tree {prefix}",
            )
        except NotFoundError:
            return []
        if tree.get("truncated"):
            return None

        # Subtree paths are relative to prefix
        return [
            TreeEntry(path=f"{prefix}/{item['path']}", sha=item["sha"], size=item.get("size"))
            for item in tree.get("tree", [])
            if item.get("type") == "blob"
        ]

    async def _walk_directory(self, ctx: RepoContext, root: str, ref: str) -> list[TreeEntry]:
        """Collect every file below root through the contents API."""
        entries: list[TreeEntry] = []
        pending = [root]
        while pending:
            directory = pending.pop()
            items = await self.list_directory(ctx, directory, ref=ref)
            if len(items) >= DIRECTORY_LISTING_LIMIT:
                logger.warning(
                    "Listing of %s returned %d entries, the contents API maximum; "
                    "files beyond it may be missing",
                    directory,
                    len(items),
                )
            for item in items:
                if item.type == "dir":
                    pending.append(item.path)
                elif item.type == "file":
                    entries.append(TreeEntry(path=item.path, sha=item.sha, size=item.size))
        entries.sort(key=lambda entry: entry.path)
        return entries

    async def get_blob(self, ctx: RepoContext, sha: str) -> bytes:
        """Fetch raw blob content by hash (works for files of any size).

        Returns:
            Decoded bytes, or b"" if GitHub returned no base64 content
        """
        data = await self._request(
            ctx, "GET", f"{self._repo_url(ctx)}/git/blobs/{sha}", resource=f"blob {sha}"
        )
        return _decode_base64(data) or b""


def _decode_base64(data: dict[str, Any]) -> bytes | None:
    """Decode the base64 "content" field of a contents or blob response."""
    content = data.get("content")
    if not content or data.get("encoding", "base64") != "base64":
        return None
    return base64.b64decode(content)


def _is_under(path: str, prefix: str) -> bool:
    return not prefix or path == prefix or path.startswith(prefix + "/")


def _is_rate_limited(response: httpx.Response, message: str) -> bool:
    # Secondary limits keep quota left but send retry-after
    return (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "retry-after" in response.headers
        or "rate limit" in message.lower()
    )
