"""GitHub content client - Reads and commits repository files through the REST API."""

from repoboard.github.client import GITHUB_API_URL, GitHubContentClient
from repoboard.github.exceptions import (
    ConflictError,
    ForbiddenError,
    GitHubError,
    NotFoundError,
    UnauthorizedError,
    UnavailableError,
)
from repoboard.github.models import (
    DEFAULT_CONFIG_ROOT,
    DirectoryEntry,
    FileContent,
    GitHubUser,
    RepoContext,
    Repository,
    TreeEntry,
)

__all__ = [
    "DEFAULT_CONFIG_ROOT",
    "GITHUB_API_URL",
    "ConflictError",
    "DirectoryEntry",
    "FileContent",
    "ForbiddenError",
    "GitHubContentClient",
    "GitHubError",
    "GitHubUser",
    "NotFoundError",
    "RepoContext",
    "Repository",
    "TreeEntry",
    "UnauthorizedError",
    "UnavailableError",
]
