"""Shared pytest fixtures and configuration."""

import logging
from collections.abc import Iterator

import pytest
from fakes import FakeGitHub

from repoboard.github import GitHubContentClient, RepoContext
from repoboard.store import AssetStore, TicketStore


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")
    config.addinivalue_line("markers", "real: talks to the real GitHub API (local only)")


# Shared fixtures


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Detach handlers installed by setup_logging so tests don't leak them."""
    yield
    logger = logging.getLogger("repoboard")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def github() -> FakeGitHub:
    """An empty fake repository acme/board on branch main."""
    return FakeGitHub()


@pytest.fixture
def client(github: FakeGitHub) -> GitHubContentClient:
    """A content client wired to the fake repository."""
    return GitHubContentClient(base_url="https://api.github.test", transport=github.transport())


@pytest.fixture
def ctx(github: FakeGitHub) -> RepoContext:
    """Context for the fake repository, branch left to the default."""
    return RepoContext(owner=github.owner, repo=github.repo, token=github.token)


@pytest.fixture
def store(client: GitHubContentClient) -> TicketStore:
    return TicketStore(client)


@pytest.fixture
def assets(client: GitHubContentClient) -> AssetStore:
    return AssetStore(client)
