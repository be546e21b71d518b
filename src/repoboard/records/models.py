"""Data models for board records."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum


class Priority(StrEnum):
    """Ticket priority, ordered from low to critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


@dataclass
class Column:
    """A board lane grouping one or more statuses."""

    id: str
    name: str
    statuses: list[str] = field(default_factory=list)
    color: str | None = None

    def matches(self, status: str) -> bool:
        """Whether a ticket status belongs to this column (case-insensitive)."""
        status = status.lower()
        return any(s.lower() == status for s in self.statuses)


@dataclass
class TicketType:
    """Cosmetic metadata for a ticket type (epic, story, bug, task or custom)."""

    id: str
    name: str
    icon: str | None = None
    color: str | None = None


@dataclass
class Version:
    """A version or sprint. All versions share one file."""

    id: str
    name: str
    start_date: str | None = None
    target_date: str | None = None
    created_at: str | None = None


@dataclass
class Ticket:
    """A ticket stored as one YAML file.

    path and sha are assigned by the store: sha is the blob hash of the
    content last fetched or committed and gates the next write.
    """

    id: str
    title: str
    type: str = "task"
    status: str = "backlog"
    priority: Priority | None = None
    assignees: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    parent: str | None = None  # may form cycles, never traversed by the store
    version: str | None = None
    estimate: int | float | None = None
    due_date: str | None = None
    description: str | None = None
    images: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    path: str = ""
    sha: str = ""

    @property
    def is_backlog(self) -> bool:
        """Backlog status and no version assigned."""
        return self.status.lower() == "backlog" and not self.version

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id!r}, status={self.status!r}, sha={self.sha[:7]!r})>"


@dataclass
class BoardConfig:
    """Columns, ticket types and versions loaded from the repository."""

    columns: list[Column] = field(default_factory=list)
    ticket_types: list[TicketType] = field(default_factory=list)
    versions: list[Version] = field(default_factory=list)

    def all_columns(self) -> list[Column]:
        """Configured columns preceded by the synthetic backlog column."""
        from repoboard.records.defaults import BACKLOG_COLUMN

        backlog = replace(BACKLOG_COLUMN, statuses=list(BACKLOG_COLUMN.statuses))
        return [backlog, *(c for c in self.columns if c.id != backlog.id)]

    def ticket_type(self, type_id: str) -> TicketType:
        """Look up a ticket type; unknown custom ids get a plain entry."""
        for ticket_type in self.ticket_types:
            if ticket_type.id == type_id:
                return ticket_type
        return TicketType(id=type_id, name=type_id.replace("-", " ").title())

    def version(self, version_id: str) -> Version | None:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None
