"""CLI entry point for repoboard.

Every command loads repoboard.yaml, builds a repository context from the
token and runs one store operation against GitHub.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import click

from repoboard.config import ConfigError, Settings, find_settings, load_settings
from repoboard.github import (
    ConflictError,
    GitHubContentClient,
    GitHubError,
    RepoContext,
    UnauthorizedError,
)
from repoboard.logging import get_logger, setup_logging
from repoboard.records import Priority, RecordError, Ticket, Version
from repoboard.store import (
    AssetStore,
    StoreError,
    TicketStore,
    generate_ticket_id,
    image_path,
)

logger = get_logger("cli")

T = TypeVar("T")

Operation = Callable[[TicketStore, AssetStore, RepoContext], Awaitable[T]]


@dataclass
class CliState:
    """Options shared by every command."""

    config_path: Path | None
    token: str | None


def _load(state: CliState) -> tuple[Settings, RepoContext]:
    if not state.token:
        raise click.ClickException("No GitHub token: pass --token or set GITHUB_TOKEN")
    try:
        settings_path = state.config_path or find_settings()
        settings = load_settings(settings_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    return settings, settings.context(state.token)


def _run(state: CliState, operation: Operation[T]) -> T:
    """Run one store operation with a fresh client."""
    settings, ctx = _load(state)

    async def runner() -> T:
        async with GitHubContentClient(base_url=settings.api_url) as client:
            return await operation(TicketStore(client), AssetStore(client), ctx)

    try:
        return asyncio.run(runner())
    except ConflictError as e:
        raise click.ClickException(f"{e} (changed remotely, refresh and retry)") from e
    except UnauthorizedError as e:
        raise click.ClickException(f"GitHub rejected the token: {e}") from e
    except (GitHubError, RecordError, StoreError) as e:
        raise click.ClickException(str(e)) from e


def _format_ticket_line(ticket: Ticket) -> str:
    priority = ticket.priority.value if ticket.priority else "-"
    version = ticket.version or "-"
    return f"{ticket.id:<24} {ticket.status:<14} {priority:<9} {version:<14} {ticket.title}"


@click.group()
@click.version_option(package_name="repoboard")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to repoboard.yaml (auto-detected if not specified)",
)
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token (default: $GITHUB_TOKEN)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, token: str | None, verbose: bool) -> None:
    """repoboard - tickets stored as YAML files in a GitHub repository."""
    setup_logging(level="DEBUG" if verbose else None)
    ctx.obj = CliState(config_path=config_path, token=token)


@main.command()
@click.option("--force", is_flag=True, help="Overwrite an existing board configuration")
@click.pass_obj
def init(state: CliState, force: bool) -> None:
    """Write the default board configuration to the repository."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> bool:
        if not force and await store.config_exists(ctx):
            return False
        await store.initialize_config(ctx)
        return True

    if _run(state, operation):
        click.echo("Board initialized")
    else:
        click.echo("Board already initialized (use --force to overwrite)")


@main.command()
@click.option("--status", help="Only tickets with this status")
@click.option("--version", "version_id", help="Only tickets of this version")
@click.pass_obj
def tickets(state: CliState, status: str | None, version_id: str | None) -> None:
    """List tickets."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> list[Ticket]:
        return await store.list_tickets(ctx)

    for ticket in _run(state, operation):
        if status and ticket.status.lower() != status.lower():
            continue
        if version_id and ticket.version != version_id:
            continue
        click.echo(_format_ticket_line(ticket))


@main.command()
@click.argument("ticket_id")
@click.pass_obj
def show(state: CliState, ticket_id: str) -> None:
    """Show one ticket."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> Ticket:
        return await store.get_ticket(ctx, ticket_id)

    ticket = _run(state, operation)
    click.echo(f"{ticket.id}: {ticket.title}")
    click.echo(f"  type:      {ticket.type}")
    click.echo(f"  status:    {ticket.status}")
    if ticket.priority:
        click.echo(f"  priority:  {ticket.priority.value}")
    if ticket.version:
        click.echo(f"  version:   {ticket.version}")
    if ticket.parent:
        click.echo(f"  parent:    {ticket.parent}")
    if ticket.assignees:
        click.echo(f"  assignees: {', '.join(ticket.assignees)}")
    if ticket.labels:
        click.echo(f"  labels:    {', '.join(ticket.labels)}")
    if ticket.images:
        click.echo(f"  images:    {', '.join(ticket.images)}")
    if ticket.description:
        click.echo("")
        click.echo(ticket.description)


@main.command()
@click.option("--id", "ticket_id", help="Ticket id (generated if omitted)")
@click.option("--title", required=True)
@click.option("--type", "ticket_type", default="task", show_default=True)
@click.option("--status", default="backlog", show_default=True)
@click.option("--priority", type=click.Choice([p.value for p in Priority]))
@click.option("--version", "version_id")
@click.option("--parent")
@click.option("--assignee", "assignees", multiple=True)
@click.option("--label", "labels", multiple=True)
@click.option("--description")
@click.pass_obj
def create(
    state: CliState,
    ticket_id: str | None,
    title: str,
    ticket_type: str,
    status: str,
    priority: str | None,
    version_id: str | None,
    parent: str | None,
    assignees: tuple[str, ...],
    labels: tuple[str, ...],
    description: str | None,
) -> None:
    """Create a ticket."""
    ticket = Ticket(
        id=ticket_id or generate_ticket_id(),
        title=title,
        type=ticket_type,
        status=status,
        priority=Priority(priority) if priority else None,
        version=version_id,
        parent=parent,
        assignees=list(assignees),
        labels=list(labels),
        description=description,
    )

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> Ticket:
        return await store.create_ticket(ctx, ticket)

    created = _run(state, operation)
    click.echo(f"Created {created.id} ({created.path})")


@main.command()
@click.argument("ticket_id")
@click.argument("status")
@click.option("--version", "version_id", help="Assign the ticket to this version")
@click.option("--backlog", is_flag=True, help="Remove the ticket from its version")
@click.pass_obj
def move(
    state: CliState, ticket_id: str, status: str, version_id: str | None, backlog: bool
) -> None:
    """Change a ticket's status."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> Ticket:
        ticket = await store.get_ticket(ctx, ticket_id)
        return await store.move_ticket(ctx, ticket, status, version_id, clear_version=backlog)

    moved = _run(state, operation)
    click.echo(f"{moved.id} is now {moved.status}")


@main.command()
@click.argument("ticket_id")
@click.pass_obj
def delete(state: CliState, ticket_id: str) -> None:
    """Delete a ticket (its images are kept)."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> None:
        ticket = await store.get_ticket(ctx, ticket_id)
        await store.delete_ticket(ctx, ticket)

    _run(state, operation)
    click.echo(f"Deleted {ticket_id}")


@main.command()
@click.pass_obj
def versions(state: CliState) -> None:
    """List versions."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> list[Version]:
        return await store.list_versions(ctx)

    for version in _run(state, operation):
        dates = " -> ".join(d for d in (version.start_date, version.target_date) if d)
        click.echo(f"{version.id:<16} {version.name:<20} {dates}".rstrip())


@main.command("version-add")
@click.argument("name")
@click.option("--start", "start_date", help="Start date (YYYY-MM-DD)")
@click.option("--target", "target_date", help="Target date (YYYY-MM-DD)")
@click.pass_obj
def version_add(
    state: CliState, name: str, start_date: str | None, target_date: str | None
) -> None:
    """Add a version."""
    version = Version(id="", name=name, start_date=start_date, target_date=target_date)

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> list[Version]:
        return await store.create_version(ctx, version)

    created = _run(state, operation)[-1]
    click.echo(f"Created version {created.id} ({created.name})")


@main.command("version-remove")
@click.argument("version_id")
@click.pass_obj
def version_remove(state: CliState, version_id: str) -> None:
    """Remove a version."""

    async def operation(store: TicketStore, _: AssetStore, ctx: RepoContext) -> list[Version]:
        return await store.delete_version(ctx, version_id)

    _run(state, operation)
    click.echo(f"Removed version {version_id}")


@main.command()
@click.argument("ticket_id")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def attach(state: CliState, ticket_id: str, image: Path) -> None:
    """Upload an image and add it to a ticket."""

    async def operation(store: TicketStore, assets: AssetStore, ctx: RepoContext) -> str:
        ticket = await store.get_ticket(ctx, ticket_id)
        name = await assets.upload(ctx, ticket.id, image.name, image.read_bytes())
        try:
            await store.update_ticket(
                ctx, dataclasses.replace(ticket, images=[*ticket.images, name])
            )
        except GitHubError:
            logger.warning("Image %s uploaded but not linked to %s", name, ticket.id)
            raise
        return name

    name = _run(state, operation)
    click.echo(f"Attached {name} to {ticket_id}")


@main.command()
@click.argument("ticket_id")
@click.argument("image_name")
@click.pass_obj
def detach(state: CliState, ticket_id: str, image_name: str) -> None:
    """Remove an image from a ticket and delete the file."""

    async def operation(store: TicketStore, assets: AssetStore, ctx: RepoContext) -> None:
        # Reject unsafe names before the ticket is touched
        image_path(ctx, ticket_id, image_name)
        ticket = await store.get_ticket(ctx, ticket_id)
        if image_name in ticket.images:
            await store.update_ticket(
                ctx,
                dataclasses.replace(
                    ticket, images=[name for name in ticket.images if name != image_name]
                ),
            )
        await assets.delete(ctx, ticket.id, image_name)

    _run(state, operation)
    click.echo(f"Detached {image_name} from {ticket_id}")
