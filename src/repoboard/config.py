"""Settings loading for a repoboard deployment.

The settings file only points at the target repository; columns, ticket
types, versions and tickets all live in the repository itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from repoboard.github import DEFAULT_CONFIG_ROOT, GITHUB_API_URL, RepoContext

SETTINGS_FILE = "repoboard.yaml"


class ConfigError(Exception):
    """Raised when the settings file is invalid or missing."""


@dataclass
class Settings:
    """Deployment-local pointer to the board repository."""

    repository: str
    branch: str | None = None
    config_root: str = DEFAULT_CONFIG_ROOT
    api_url: str = GITHUB_API_URL
    root_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], root_path: Path | None = None) -> Settings:
        """Create settings from a dictionary.

        Raises:
            ConfigError: If repository is missing or not in "owner/repo" format.
        """
        repository = data.get("repository")
        if not repository or not isinstance(repository, str):
            raise ConfigError("Missing required field: repository")

        owner, _, repo = repository.partition("/")
        if not owner or not repo or "/" in repo:
            raise ConfigError(f"repository must be in 'owner/repo' format, got '{repository}'")

        config_root = str(data.get("config_root") or DEFAULT_CONFIG_ROOT).strip("/")
        return cls(
            repository=repository,
            branch=data.get("branch") or None,
            config_root=config_root,
            api_url=data.get("api_url") or GITHUB_API_URL,
            root_path=root_path,
        )

    def context(self, token: str) -> RepoContext:
        """Build the per-call repository context for a token."""
        return RepoContext.from_full_name(
            self.repository, token, branch=self.branch, config_root=self.config_root
        )


def load_settings(settings_path: Path | str) -> Settings:
    """Load settings from a YAML file.

    Raises:
        ConfigError: If the file doesn't exist or is invalid.
    """
    settings_path = Path(settings_path)

    if not settings_path.exists():
        raise ConfigError(f"Settings file not found: {settings_path}")

    try:
        with open(settings_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {settings_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Settings must be a YAML mapping, got {type(data).__name__}")

    return Settings.from_dict(data, settings_path.parent)


def find_settings(start_path: Path | str | None = None) -> Path:
    """Find repoboard.yaml by walking up from start_path (default: cwd).

    Raises:
        ConfigError: If no settings file is found.
    """
    start = Path.cwd() if start_path is None else Path(start_path)

    for directory in [start.resolve(), *start.resolve().parents]:
        candidate = directory / SETTINGS_FILE
        if candidate.exists():
            return candidate

    raise ConfigError(f"No {SETTINGS_FILE} found in {start} or any parent directory")
