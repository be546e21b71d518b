"""Custom exceptions for the GitHub content client."""

from __future__ import annotations

from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.response = response or {}


class NotFoundError(GitHubError):
    """Requested file, directory or repository does not exist."""


class UnauthorizedError(GitHubError):
    """Token is missing, invalid or expired."""


class ForbiddenError(GitHubError):
    """Token lacks the scope or permission for this operation."""


class ConflictError(GitHubError):
    """Write rejected because the file changed since its hash was read."""

    def __init__(
        self,
        path: str,
        status: int | None = None,
        response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"'{path}' was changed by someone else since it was loaded. "
            "Refresh and try again.",
            status=status,
            response=response,
        )
        self.path = path


class UnavailableError(GitHubError):
    """GitHub could not be reached or is temporarily refusing requests."""
