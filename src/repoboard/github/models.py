"""Data models for the GitHub content client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_CONFIG_ROOT = ".repoboard"


@dataclass(frozen=True)
class RepoContext:
    """Everything a single call needs to reach the target repository.

    Passed explicitly to every client and store operation; nothing is
    cached between calls.
    """

    owner: str
    repo: str
    token: str = field(repr=False)
    branch: str | None = None
    config_root: str = DEFAULT_CONFIG_ROOT

    @classmethod
    def from_full_name(
        cls,
        full_name: str,
        token: str,
        branch: str | None = None,
        config_root: str = DEFAULT_CONFIG_ROOT,
    ) -> RepoContext:
        """Build a context from an "owner/repo" string.

        Raises:
            ValueError: If full_name is not in "owner/repo" format
        """
        owner, _, repo = full_name.strip().partition("/")
        if not owner or not repo or "/" in repo:
            raise ValueError(f"Invalid repository name: {full_name}")
        return cls(owner=owner, repo=repo, token=token, branch=branch, config_root=config_root)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def tickets_dir(self) -> str:
        return f"{self.config_root}/tickets"

    @property
    def images_dir(self) -> str:
        return f"{self.config_root}/images"


@dataclass
class FileContent:
    """A single file read through the contents API."""

    path: str
    sha: str
    size: int = 0
    content: bytes | None = None  # None when GitHub does not inline it

    @property
    def text(self) -> str:
        return (self.content or b"").decode("utf-8")


@dataclass
class TreeEntry:
    """A blob found by a recursive tree listing."""

    path: str
    sha: str
    size: int | None = None


@dataclass
class DirectoryEntry:
    """An entry of a contents API directory listing."""

    name: str
    path: str
    sha: str
    type: str  # "file" or "dir"
    size: int = 0


@dataclass
class GitHubUser:
    """A GitHub account."""

    login: str
    id: int
    avatar_url: str = ""
    name: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GitHubUser:
        return cls(
            login=data["login"],
            id=data["id"],
            avatar_url=data.get("avatar_url") or "",
            name=data.get("name"),
        )


@dataclass
class Repository:
    """Repository metadata relevant to the board."""

    full_name: str
    default_branch: str
    private: bool = False
    can_push: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Repository:
        permissions = data.get("permissions") or {}
        return cls(
            full_name=data["full_name"],
            default_branch=data.get("default_branch") or "main",
            private=bool(data.get("private", False)),
            can_push=bool(permissions.get("push", False)),
        )
