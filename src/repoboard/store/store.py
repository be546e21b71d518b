"""TicketStore - Main API for tickets, versions and board configuration."""

from __future__ import annotations

import asyncio
import dataclasses
import secrets
import string
import time
from collections.abc import Callable
from typing import TypeVar

from repoboard.github import (
    ConflictError,
    ForbiddenError,
    GitHubContentClient,
    GitHubError,
    GitHubUser,
    NotFoundError,
    RepoContext,
)
from repoboard.logging import get_logger
from repoboard.records import (
    DEFAULT_COLUMNS,
    DEFAULT_TICKET_TYPES,
    DEFAULT_VERSIONS,
    BoardConfig,
    InvalidRecordError,
    MalformedRecordError,
    RecordError,
    Ticket,
    Version,
    default_config,
    is_ticket_file,
    parse_columns_file,
    parse_ticket,
    parse_ticket_types_file,
    parse_versions_file,
    serialize_columns_file,
    serialize_ticket,
    serialize_ticket_types_file,
    serialize_versions_file,
    utc_timestamp,
    validate_ticket,
)
from repoboard.records.codec import ticket_path
from repoboard.records.defaults import (
    WELCOME_TICKET_DESCRIPTION,
    WELCOME_TICKET_ID,
    WELCOME_TICKET_TITLE,
)
from repoboard.store.exceptions import VersionNotFoundError

logger = get_logger("store")

T = TypeVar("T")

# Ticket files fetched at once by list_tickets
MAX_CONCURRENT_FETCHES = 10

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_ticket_id() -> str:
    """Generate a unique ticket ID (base-36 milliseconds + random suffix)."""
    return f"{_base36(time.time_ns() // 1_000_000)}-{_random_suffix(4)}"


def generate_version_id() -> str:
    """Generate a unique version ID."""
    return f"v-{_base36(time.time_ns() // 1_000_000)}-{_random_suffix(2)}"


class TicketStore:
    """Main API for board records stored in a GitHub repository.

    Every write is one commit gated by the blob hash the caller last saw.
    The store keeps no state between calls; conflicts are reported, never
    merged or retried.
    """

    def __init__(self, client: GitHubContentClient) -> None:
        """Initialize the store.

        Args:
            client: Content client used for every request
        """
        self._client = client

    # --- Paths ---

    @staticmethod
    def columns_path(ctx: RepoContext) -> str:
        return f"{ctx.config_root}/columns.yml"

    @staticmethod
    def ticket_types_path(ctx: RepoContext) -> str:
        return f"{ctx.config_root}/ticketTypes.yml"

    @staticmethod
    def versions_path(ctx: RepoContext) -> str:
        return f"{ctx.config_root}/versions.yml"

    # --- File helpers ---

    async def _read_text(self, ctx: RepoContext, path: str) -> tuple[str, str]:
        """Read a UTF-8 file, falling back to the blob API for large files.

        Returns:
            Tuple of (text, blob hash)
        """
        file = await self._client.get_file(ctx, path)
        content = file.content
        if content is None:
            content = await self._client.get_blob(ctx, file.sha)
        try:
            return content.decode("utf-8"), file.sha
        except UnicodeDecodeError as e:
            raise MalformedRecordError("file is not UTF-8 text", path) from e

    async def _current_sha(self, ctx: RepoContext, path: str) -> str | None:
        try:
            file = await self._client.get_file(ctx, path)
        except NotFoundError:
            return None
        return file.sha

    async def _overwrite(self, ctx: RepoContext, path: str, text: str, message: str) -> str:
        """Write a file whatever its current content, using a fresh hash."""
        sha = await self._current_sha(ctx, path)
        return await self._client.put_file(
            ctx, path, text.encode("utf-8"), message, expected_sha=sha
        )

    # --- Ticket Operations ---

    async def list_tickets(self, ctx: RepoContext) -> list[Ticket]:
        """Load every ticket of the board.

        A file that cannot be fetched or decoded is logged and skipped; the
        other tickets are still returned.

        Returns:
            Tickets ordered by path. Empty if the tickets folder is missing.
        """
        try:
            entries = await self._client.list_tree(ctx, ctx.tickets_dir)
        except NotFoundError:
            logger.info("No tickets folder in %s", ctx.full_name)
            return []

        paths = [entry.path for entry in entries if is_ticket_file(entry.path, ctx.tickets_dir)]
        limit = asyncio.Semaphore(MAX_CONCURRENT_FETCHES)
        results = await asyncio.gather(*(self._load_ticket(ctx, path, limit) for path in paths))
        tickets = [ticket for ticket in results if ticket is not None]

        logger.info(
            "Loaded %d of %d ticket file(s) from %s", len(tickets), len(paths), ctx.full_name
        )
        return tickets

    async def _load_ticket(
        self, ctx: RepoContext, path: str, limit: asyncio.Semaphore
    ) -> Ticket | None:
        try:
            async with limit:
                text, sha = await self._read_text(ctx, path)
            return parse_ticket(text, path, sha)
        except (GitHubError, RecordError) as e:
            logger.warning("Skipping ticket %s: %s", path, e)
            return None

    async def get_ticket(self, ctx: RepoContext, ticket_id: str) -> Ticket:
        """Load a single ticket by ID.

        Raises:
            NotFoundError: If no ticket file exists for the ID
            MalformedRecordError: If the file cannot be decoded
        """
        path = ticket_path(ctx.tickets_dir, ticket_id)
        try:
            text, sha = await self._read_text(ctx, path)
        except NotFoundError:
            # Hand-written tickets may use the long extension
            path = path.removesuffix(".yml") + ".yaml"
            text, sha = await self._read_text(ctx, path)
        return parse_ticket(text, path, sha)

    async def create_ticket(self, ctx: RepoContext, ticket: Ticket) -> Ticket:
        """Create a new ticket file.

        Args:
            ctx: Repository context
            ticket: Ticket to create; path and sha are ignored

        Returns:
            A copy of the ticket with its assigned path, hash and timestamps

        Raises:
            InvalidRecordError: If the id or title is invalid
            ConflictError: If a ticket with this id already exists
        """
        validate_ticket(ticket)
        now = utc_timestamp()
        path = ticket_path(ctx.tickets_dir, ticket.id)
        created = dataclasses.replace(
            ticket,
            path=path,
            sha="",
            created_at=ticket.created_at or now,
            updated_at=now,
        )

        created.sha = await self._client.put_file(
            ctx,
            path,
            serialize_ticket(created, updated_at=now).encode("utf-8"),
            f"Create ticket: {ticket.title}",
        )
        logger.info("Created ticket %s in %s", ticket.id, ctx.full_name)
        return created

    async def update_ticket(self, ctx: RepoContext, ticket: Ticket) -> Ticket:
        """Commit a changed ticket using its current hash.

        Returns:
            A copy of the ticket with the new hash and updated timestamp

        Raises:
            InvalidRecordError: If the ticket was never saved or is invalid
            ConflictError: If the file changed remotely; reload before retrying
        """
        validate_ticket(ticket)
        if not ticket.path or not ticket.sha:
            raise InvalidRecordError(f"Ticket '{ticket.id}' has not been created yet")

        now = utc_timestamp()
        updated = dataclasses.replace(ticket, updated_at=now)
        try:
            updated.sha = await self._client.put_file(
                ctx,
                ticket.path,
                serialize_ticket(updated, updated_at=now).encode("utf-8"),
                f"Update ticket: {ticket.title}",
                expected_sha=ticket.sha,
            )
        except ConflictError:
            logger.warning("Ticket %s changed remotely since %s", ticket.id, ticket.sha[:7])
            raise
        logger.info("Updated ticket %s", ticket.id)
        return updated

    async def move_ticket(
        self,
        ctx: RepoContext,
        ticket: Ticket,
        status: str,
        version: str | None = None,
        *,
        clear_version: bool = False,
    ) -> Ticket:
        """Change a ticket's status and optionally its version.

        No commit is made when nothing changes.
        """
        new_version = None if clear_version else (version or ticket.version)
        if ticket.status.lower() == status.lower() and new_version == ticket.version:
            return ticket
        return await self.update_ticket(
            ctx, dataclasses.replace(ticket, status=status, version=new_version)
        )

    async def delete_ticket(self, ctx: RepoContext, ticket: Ticket) -> None:
        """Delete a ticket file. Its images are left in place.

        Raises:
            ConflictError: If the file changed remotely
        """
        if not ticket.path or not ticket.sha:
            raise InvalidRecordError(f"Ticket '{ticket.id}' has not been created yet")
        await self._client.delete_file(
            ctx, ticket.path, ticket.sha, f"Delete ticket: {ticket.title}"
        )
        logger.info("Deleted ticket %s", ticket.id)

    # --- Board Configuration ---

    async def config_exists(self, ctx: RepoContext) -> bool:
        """Whether the board folder exists in the repository."""
        try:
            await self._client.list_directory(ctx, ctx.config_root)
        except NotFoundError:
            return False
        return True

    async def load_config(self, ctx: RepoContext) -> BoardConfig:
        """Load columns, ticket types and versions.

        A missing or malformed file is replaced by its default; any other
        error propagates.
        """
        defaults = default_config()
        columns, ticket_types, versions = await asyncio.gather(
            self._load_list(ctx, self.columns_path(ctx), parse_columns_file, defaults.columns),
            self._load_list(
                ctx, self.ticket_types_path(ctx), parse_ticket_types_file, defaults.ticket_types
            ),
            self._load_list(ctx, self.versions_path(ctx), parse_versions_file, defaults.versions),
        )
        return BoardConfig(columns=columns, ticket_types=ticket_types, versions=versions)

    async def _load_list(
        self,
        ctx: RepoContext,
        path: str,
        parse: Callable[[str, str], list[T]],
        default: list[T],
    ) -> list[T]:
        try:
            text, _ = await self._read_text(ctx, path)
            return parse(text, path)
        except NotFoundError:
            return default
        except MalformedRecordError as e:
            logger.warning("Using defaults instead of %s: %s", path, e)
            return default

    async def initialize_config(self, ctx: RepoContext) -> Ticket:
        """Write the default configuration and a welcome ticket.

        Existing files are overwritten. Callers should check config_exists()
        first. Files are committed one after another.

        Returns:
            The created welcome ticket
        """
        logger.info("Initializing board in %s", ctx.full_name)
        await self._overwrite(
            ctx,
            self.columns_path(ctx),
            serialize_columns_file(DEFAULT_COLUMNS),
            "Initialize board: add columns.yml",
        )
        await self._overwrite(
            ctx,
            self.ticket_types_path(ctx),
            serialize_ticket_types_file(DEFAULT_TICKET_TYPES),
            "Initialize board: add ticketTypes.yml",
        )
        await self._overwrite(
            ctx,
            self.versions_path(ctx),
            serialize_versions_file(DEFAULT_VERSIONS),
            "Initialize board: add versions.yml",
        )

        now = utc_timestamp()
        path = ticket_path(ctx.tickets_dir, WELCOME_TICKET_ID)
        welcome = Ticket(
            id=WELCOME_TICKET_ID,
            title=WELCOME_TICKET_TITLE,
            description=WELCOME_TICKET_DESCRIPTION,
            created_at=now,
            updated_at=now,
            path=path,
        )
        welcome.sha = await self._overwrite(
            ctx, path, serialize_ticket(welcome, updated_at=now), "Initialize board: add sample ticket"
        )
        return welcome

    # --- Version Operations ---

    async def _read_versions(self, ctx: RepoContext) -> tuple[list[Version], str | None]:
        """Read the shared versions file and its current hash (None if absent)."""
        path = self.versions_path(ctx)
        try:
            text, sha = await self._read_text(ctx, path)
        except NotFoundError:
            return [], None
        return parse_versions_file(text, path), sha

    async def _write_versions(
        self, ctx: RepoContext, versions: list[Version], sha: str | None, message: str
    ) -> None:
        await self._client.put_file(
            ctx,
            self.versions_path(ctx),
            serialize_versions_file(versions).encode("utf-8"),
            message,
            expected_sha=sha,
        )

    async def list_versions(self, ctx: RepoContext) -> list[Version]:
        versions, _ = await self._read_versions(ctx)
        return versions

    async def save_versions(self, ctx: RepoContext, versions: list[Version]) -> None:
        """Replace the whole versions list."""
        sha = await self._current_sha(ctx, self.versions_path(ctx))
        await self._write_versions(ctx, versions, sha, "Update versions")

    async def create_version(self, ctx: RepoContext, version: Version) -> list[Version]:
        """Append a version to the shared versions file.

        An empty id is replaced by a generated one.

        Returns:
            The full, updated list of versions

        Raises:
            InvalidRecordError: If the name is empty or the id already exists
            ConflictError: If the versions file changed between read and write
        """
        if not version.name.strip():
            raise InvalidRecordError("Version needs a name")

        versions, sha = await self._read_versions(ctx)
        created = dataclasses.replace(
            version,
            id=version.id or generate_version_id(),
            created_at=version.created_at or utc_timestamp(),
        )
        if any(v.id == created.id for v in versions):
            raise InvalidRecordError(f"Version '{created.id}' already exists")

        updated = [*versions, created]
        await self._write_versions(ctx, updated, sha, f"Add version: {created.name}")
        logger.info("Created version %s", created.id)
        return updated

    async def update_version(self, ctx: RepoContext, version: Version) -> list[Version]:
        """Replace the version with the same id.

        Raises:
            VersionNotFoundError: If no version has this id
            ConflictError: If the versions file changed between read and write
        """
        versions, sha = await self._read_versions(ctx)
        if not any(v.id == version.id for v in versions):
            raise VersionNotFoundError(f"Version with id '{version.id}' not found")

        updated = [version if v.id == version.id else v for v in versions]
        await self._write_versions(ctx, updated, sha, f"Update version: {version.name}")
        logger.info("Updated version %s", version.id)
        return updated

    async def delete_version(self, ctx: RepoContext, version_id: str) -> list[Version]:
        """Remove a version. Tickets referencing it are not changed.

        Raises:
            VersionNotFoundError: If no version has this id
            ConflictError: If the versions file changed between read and write
        """
        versions, sha = await self._read_versions(ctx)
        updated = [v for v in versions if v.id != version_id]
        if len(updated) == len(versions):
            raise VersionNotFoundError(f"Version with id '{version_id}' not found")

        await self._write_versions(ctx, updated, sha, f"Delete version: {version_id}")
        logger.info("Deleted version %s", version_id)
        return updated

    # --- Repository Access ---

    async def load_contributors(self, ctx: RepoContext) -> list[GitHubUser]:
        """Users who can be assigned: push collaborators, then fork owners."""
        try:
            collaborators = await self._client.list_collaborators(ctx, permission="push")
            fork_owners = await self._client.list_forks(ctx)
        except NotFoundError:
            return []

        contributors: list[GitHubUser] = []
        seen: set[str] = set()
        for user in [*collaborators, *fork_owners]:
            if user.login not in seen:
                seen.add(user.login)
                contributors.append(user)
        return contributors

    async def check_push_access(self, ctx: RepoContext) -> bool:
        """Whether the token may commit to the repository."""
        try:
            repository = await self._client.get_repository(ctx)
        except ForbiddenError:
            return False
        return repository.can_push
