"""Integration tests against the real GitHub API.

These tests require:
- GITHUB_TOKEN environment variable (with contents write access)
- REPOBOARD_TEST_REPO environment variable (e.g., "owner/test-repo")
- A repository with at least one commit; tests write under a throwaway folder

Run with: pytest tests/integration/github/ -m real
"""

import os
import uuid
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from repoboard.github import ConflictError, GitHubContentClient, RepoContext
from repoboard.records import Ticket
from repoboard.store import AssetStore, TicketStore

# Skip all tests in this module if credentials not available
pytestmark = [
    pytest.mark.integration,
    pytest.mark.real,
    pytest.mark.skipif(
        not os.environ.get("GITHUB_TOKEN") or not os.environ.get("REPOBOARD_TEST_REPO"),
        reason="GITHUB_TOKEN and REPOBOARD_TEST_REPO required",
    ),
]


@pytest.fixture
def live_ctx() -> RepoContext:
    """Context writing below a unique folder so runs don't collide."""
    return RepoContext.from_full_name(
        os.environ["REPOBOARD_TEST_REPO"],
        os.environ["GITHUB_TOKEN"],
        config_root=f".repoboard-test/{uuid.uuid4().hex[:8]}",
    )


@pytest_asyncio.fixture
async def live_client() -> AsyncIterator[GitHubContentClient]:
    async with GitHubContentClient() as client:
        yield client


@pytest.mark.asyncio
async def test_push_access(live_client: GitHubContentClient, live_ctx: RepoContext) -> None:
    assert await TicketStore(live_client).check_push_access(live_ctx) is True


@pytest.mark.asyncio
async def test_ticket_lifecycle(live_client: GitHubContentClient, live_ctx: RepoContext) -> None:
    store = TicketStore(live_client)
    assert await store.list_tickets(live_ctx) == []

    created = await store.create_ticket(live_ctx, Ticket(id="live-1", title="Live test"))
    try:
        moved = await store.move_ticket(live_ctx, created, "todo")

        with pytest.raises(ConflictError):
            await store.update_ticket(live_ctx, created)

        tickets = await store.list_tickets(live_ctx)
        assert [(t.id, t.status) for t in tickets] == [("live-1", "todo")]
    finally:
        current = await store.get_ticket(live_ctx, "live-1")
        await store.delete_ticket(live_ctx, current)

    assert moved.sha != created.sha


@pytest.mark.asyncio
async def test_image_round_trip(live_client: GitHubContentClient, live_ctx: RepoContext) -> None:
    assets = AssetStore(live_client)
    data = b"\x89PNG\r\n\x1a\n" + os.urandom(64)

    name = await assets.upload(live_ctx, "live-1", "pixel.png", data)
    try:
        assert await assets.fetch(live_ctx, "live-1", name) == data
        assert name in await assets.list_images(live_ctx, "live-1")
    finally:
        await assets.delete(live_ctx, "live-1", name)
