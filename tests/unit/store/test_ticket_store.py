"""Unit tests for TicketStore ticket and configuration operations."""

import asyncio
import dataclasses

import pytest
import yaml
from fakes import FakeGitHub

from repoboard.github import ConflictError, GitHubContentClient, NotFoundError, RepoContext
from repoboard.records import InvalidRecordError, Priority, Ticket
from repoboard.store import TicketStore, generate_ticket_id, generate_version_id
from repoboard.store.store import MAX_CONCURRENT_FETCHES

TICKETS = ".repoboard/tickets"


@pytest.mark.unit
class TestIdGeneration:
    """Tests for id generators."""

    def test_ticket_ids_are_distinct(self) -> None:
        ids = {generate_ticket_id() for _ in range(50)}

        assert len(ids) == 50

    def test_ticket_id_format(self) -> None:
        prefix, _, suffix = generate_ticket_id().partition("-")

        assert prefix.isalnum()
        assert len(suffix) == 4

    def test_version_id_prefix(self) -> None:
        assert generate_version_id().startswith("v-")


@pytest.mark.unit
class TestCreateAndUpdate:
    """Tests for create_ticket, update_ticket and delete_ticket."""

    @pytest.mark.asyncio
    async def test_create_assigns_path_and_sha(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(ctx, Ticket(id="t1", title="First"))

        assert created.path == ".repoboard/tickets/t1.yml"
        assert created.sha == github.sha_of(created.path)
        assert created.created_at == created.updated_at
        assert github.commits == ["Create ticket: First"]

        on_disk = yaml.safe_load(github.text_of(created.path))
        assert on_disk["title"] == "First"
        assert on_disk["updatedAt"] == created.updated_at

    @pytest.mark.asyncio
    async def test_create_existing_id_conflicts(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/t1.yml", "title: Existing\n")

        with pytest.raises(ConflictError):
            await store.create_ticket(ctx, Ticket(id="t1", title="Second"))

        assert github.text_of(f"{TICKETS}/t1.yml") == "title: Existing\n"

    @pytest.mark.asyncio
    async def test_create_invalid_ticket_makes_no_request(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        with pytest.raises(InvalidRecordError):
            await store.create_ticket(ctx, Ticket(id="../escape", title="Bad"))

        assert github.requests == []

    @pytest.mark.asyncio
    async def test_update_returns_new_sha(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(ctx, Ticket(id="t1", title="First"))

        updated = await store.update_ticket(
            ctx, dataclasses.replace(created, priority=Priority.HIGH)
        )

        assert updated.sha != created.sha
        assert updated.sha == github.sha_of(created.path)
        assert updated.updated_at >= created.updated_at
        assert github.commits[-1] == "Update ticket: First"

    @pytest.mark.asyncio
    async def test_second_update_with_same_sha_conflicts(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(ctx, Ticket(id="t1", title="First"))
        await store.update_ticket(ctx, dataclasses.replace(created, title="From A"))
        remote = github.text_of(created.path)

        with pytest.raises(ConflictError) as exc_info:
            await store.update_ticket(ctx, dataclasses.replace(created, title="From B"))

        assert exc_info.value.path == created.path
        assert github.text_of(created.path) == remote

    @pytest.mark.asyncio
    async def test_stale_load_conflicts_after_remote_edit(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/t1.yml", "title: Original\nstatus: todo\n")
        mine = await store.get_ticket(ctx, "t1")
        github.add_file(f"{TICKETS}/t1.yml", "title: Edited on github.com\nstatus: done\n")

        with pytest.raises(ConflictError):
            await store.update_ticket(ctx, dataclasses.replace(mine, status="in-progress"))

        reloaded = await store.get_ticket(ctx, "t1")
        assert reloaded.status == "done"
        updated = await store.update_ticket(ctx, dataclasses.replace(reloaded, status="in-progress"))
        assert updated.status == "in-progress"

    @pytest.mark.asyncio
    async def test_update_unsaved_ticket(self, store: TicketStore, ctx: RepoContext) -> None:
        with pytest.raises(InvalidRecordError, match="not been created"):
            await store.update_ticket(ctx, Ticket(id="t1", title="Never saved"))

    @pytest.mark.asyncio
    async def test_delete_ticket(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(ctx, Ticket(id="t1", title="First"))
        github.add_file(".repoboard/images/t1/1-abc123-shot.png", b"\x89PNG")

        await store.delete_ticket(ctx, created)

        assert created.path not in github.files
        assert ".repoboard/images/t1/1-abc123-shot.png" in github.files
        assert github.commits[-1] == "Delete ticket: First"

    @pytest.mark.asyncio
    async def test_delete_stale_ticket_conflicts(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(ctx, Ticket(id="t1", title="First"))
        await store.update_ticket(ctx, dataclasses.replace(created, title="Changed"))

        with pytest.raises(ConflictError):
            await store.delete_ticket(ctx, created)

        assert created.path in github.files


@pytest.mark.unit
class TestMoveTicket:
    """Tests for move_ticket."""

    @pytest.mark.asyncio
    async def test_move_changes_status(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(ctx, Ticket(id="t1", title="First"))

        moved = await store.move_ticket(ctx, created, "todo", "v1")

        assert moved.status == "todo"
        assert moved.version == "v1"
        assert yaml.safe_load(github.text_of(created.path))["version"] == "v1"

    @pytest.mark.asyncio
    async def test_move_without_change_makes_no_commit(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        created = await store.create_ticket(
            ctx, Ticket(id="t1", title="First", status="todo", version="v1")
        )

        same = await store.move_ticket(ctx, created, "TODO")

        assert same is created
        assert len(github.requests_to("PUT")) == 1

    @pytest.mark.asyncio
    async def test_move_back_to_backlog_clears_version(
        self, store: TicketStore, ctx: RepoContext
    ) -> None:
        created = await store.create_ticket(
            ctx, Ticket(id="t1", title="First", status="todo", version="v1")
        )

        moved = await store.move_ticket(ctx, created, "backlog", clear_version=True)

        assert moved.version is None
        assert moved.is_backlog


@pytest.mark.unit
class TestListTickets:
    """Tests for list_tickets and get_ticket."""

    @pytest.mark.asyncio
    async def test_missing_folder_returns_empty(self, store: TicketStore, ctx: RepoContext) -> None:
        assert await store.list_tickets(ctx) == []

    @pytest.mark.asyncio
    async def test_empty_repository_returns_empty(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.empty = True

        assert await store.list_tickets(ctx) == []

    @pytest.mark.asyncio
    async def test_lists_ticket_files_only(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/a.yml", "title: A\nstatus: todo\n")
        github.add_file(f"{TICKETS}/b.yaml", "title: B\n")
        github.add_file(f"{TICKETS}/notes.md", "not a ticket")
        github.add_file(".repoboard/columns.yml", "columns: []\n")

        tickets = await store.list_tickets(ctx)

        assert [(t.id, t.title) for t in tickets] == [("a", "A"), ("b", "B")]
        assert tickets[0].sha == github.sha_of(f"{TICKETS}/a.yml")

    @pytest.mark.asyncio
    async def test_malformed_file_is_skipped(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/a.yml", "title: A\n")
        github.add_file(f"{TICKETS}/b.yml", "title: [broken\n")
        github.add_file(f"{TICKETS}/c.yml", "- not\n- a mapping\n")
        github.add_file(f"{TICKETS}/d.yml", "title: D\n")

        tickets = await store.list_tickets(ctx)

        assert [t.id for t in tickets] == ["a", "d"]

    @pytest.mark.asyncio
    async def test_failed_fetch_is_skipped(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/a.yml", "title: A\n")
        github.add_file(f"{TICKETS}/b.yml", "title: B\n")
        github.add_file(f"{TICKETS}/c.yml", b"title: \xff\xfe\n")
        github.fail_paths[f"{TICKETS}/b.yml"] = 500

        tickets = await store.list_tickets(ctx)

        assert [t.id for t in tickets] == ["a"]

    @pytest.mark.asyncio
    async def test_impossible_date_is_skipped(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/t1.yml", "title: Valid\ndueDate: 2024-05-01\n")
        github.add_file(f"{TICKETS}/t2.yml", "title: Broken\ndueDate: 2024-13-45\n")

        tickets = await store.list_tickets(ctx)

        assert [t.id for t in tickets] == ["t1"]

    @pytest.mark.asyncio
    async def test_fetches_are_bounded(
        self,
        store: TicketStore,
        ctx: RepoContext,
        github: FakeGitHub,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        for n in range(25):
            github.add_file(f"{TICKETS}/t{n:02d}.yml", f"title: T{n}\n")
        read_text = store._read_text
        in_flight = 0
        peak = 0

        async def counting_read(ctx: RepoContext, path: str) -> tuple[str, str]:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0)
                return await read_text(ctx, path)
            finally:
                in_flight -= 1

        monkeypatch.setattr(store, "_read_text", counting_read)

        tickets = await store.list_tickets(ctx)

        assert len(tickets) == 25
        assert 1 < peak <= MAX_CONCURRENT_FETCHES

    @pytest.mark.asyncio
    async def test_large_ticket_read_through_blob(

        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/big.yml", "title: Big\ndescription: " + "x" * 200 + "\n")
        github.inline_limit = 100

        ticket = await store.get_ticket(ctx, "big")

        assert ticket.title == "Big"
        assert github.requests_to("GET", "/git/blobs/")

    @pytest.mark.asyncio
    async def test_get_ticket_falls_back_to_yaml_extension(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(f"{TICKETS}/legacy.yaml", "title: Legacy\n")

        ticket = await store.get_ticket(ctx, "legacy")

        assert ticket.path == f"{TICKETS}/legacy.yaml"

    @pytest.mark.asyncio
    async def test_get_missing_ticket(self, store: TicketStore, ctx: RepoContext) -> None:
        with pytest.raises(NotFoundError):
            await store.get_ticket(ctx, "nope")


@pytest.mark.unit
class TestBoardConfig:
    """Tests for config_exists, load_config and initialize_config."""

    @pytest.mark.asyncio
    async def test_config_exists(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        assert await store.config_exists(ctx) is False

        github.add_file(".repoboard/columns.yml", "columns: []\n")

        assert await store.config_exists(ctx) is True

    @pytest.mark.asyncio
    async def test_load_config_defaults_when_missing(
        self, store: TicketStore, ctx: RepoContext
    ) -> None:
        config = await store.load_config(ctx)

        assert [c.id for c in config.columns] == ["todo", "in-progress", "done"]
        assert [t.id for t in config.ticket_types] == ["epic", "story", "bug", "task"]
        assert config.versions == []

    @pytest.mark.asyncio
    async def test_load_config_reads_both_forms(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(".repoboard/columns.yml", "- id: doing\n  statuses: [doing, review]\n")
        github.add_file(".repoboard/versions.yml", "versions:\n  - id: v1\n    name: Sprint 1\n")

        config = await store.load_config(ctx)

        assert [c.id for c in config.columns] == ["doing"]
        assert config.columns[0].statuses == ["doing", "review"]
        assert config.version("v1").name == "Sprint 1"
        assert len(config.ticket_types) == 4

    @pytest.mark.asyncio
    async def test_load_config_malformed_file_uses_default(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(".repoboard/columns.yml", "columns: [broken\n")

        config = await store.load_config(ctx)

        assert [c.id for c in config.columns] == ["todo", "in-progress", "done"]

    @pytest.mark.asyncio
    async def test_load_config_impossible_version_date_uses_default(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(
            ".repoboard/versions.yml",
            "versions:\n  - id: v1\n    name: Sprint 1\n    startDate: 2024-02-30\n",
        )

        config = await store.load_config(ctx)

        assert config.versions == []

    @pytest.mark.asyncio
    async def test_initialize_config(

        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        welcome = await store.initialize_config(ctx)

        assert sorted(github.files) == [
            ".repoboard/columns.yml",
            ".repoboard/ticketTypes.yml",
            ".repoboard/tickets/welcome.yml",
            ".repoboard/versions.yml",
        ]
        assert yaml.safe_load(github.text_of(".repoboard/versions.yml")) == {"versions": []}
        assert welcome.sha == github.sha_of(welcome.path)
        assert [t.id for t in await store.list_tickets(ctx)] == ["welcome"]

    @pytest.mark.asyncio
    async def test_initialize_config_overwrites_existing(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.add_file(".repoboard/columns.yml", "columns:\n  - id: custom\n")

        await store.initialize_config(ctx)

        config = await store.load_config(ctx)
        assert [c.id for c in config.columns] == ["todo", "in-progress", "done"]
        assert len(github.commits) == 4


@pytest.mark.unit
class TestRepositoryAccess:
    """Tests for load_contributors and check_push_access."""

    @pytest.mark.asyncio
    async def test_contributors_are_deduplicated(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        github.collaborators = [{"login": "alice", "id": 1}, {"login": "bob", "id": 2}]
        github.forks = [{"owner": {"login": "bob", "id": 2}}, {"owner": {"login": "carol", "id": 3}}]

        contributors = await store.load_contributors(ctx)

        assert [user.login for user in contributors] == ["alice", "bob", "carol"]

    @pytest.mark.asyncio
    async def test_check_push_access(
        self, store: TicketStore, ctx: RepoContext, github: FakeGitHub
    ) -> None:
        assert await store.check_push_access(ctx) is True

        github.can_push = False

        assert await store.check_push_access(ctx) is False

    @pytest.mark.asyncio
    async def test_closed_client_can_be_reused(
        self, client: GitHubContentClient, ctx: RepoContext
    ) -> None:
        async with client:
            assert await TicketStore(client).list_tickets(ctx) == []
        assert await TicketStore(client).list_tickets(ctx) == []
