"""Board grouping helpers.

Lookups here are single-level: a ticket's parent is only ever resolved by
id, so parent cycles cannot cause a traversal to loop.
"""

from __future__ import annotations

from repoboard.records.defaults import BACKLOG_COLUMN
from repoboard.records.models import BoardConfig, Column, Ticket


def find_ticket(tickets: list[Ticket], ticket_id: str) -> Ticket | None:
    for ticket in tickets:
        if ticket.id == ticket_id:
            return ticket
    return None


def children_of(tickets: list[Ticket], parent_id: str) -> list[Ticket]:
    """Direct children of a ticket (no recursion)."""
    return [ticket for ticket in tickets if ticket.parent == parent_id]


def backlog_tickets(tickets: list[Ticket]) -> list[Ticket]:
    """Tickets shown in the backlog column: backlog status, no version."""
    return [ticket for ticket in tickets if ticket.is_backlog]


def column_tickets(
    tickets: list[Ticket], column: Column, version_id: str | None = None
) -> list[Ticket]:
    """Tickets whose status belongs to column.

    When version_id is given only that version's tickets are returned.
    """
    return [
        ticket
        for ticket in tickets
        if column.matches(ticket.status) and (version_id is None or ticket.version == version_id)
    ]


def group_by_column(
    tickets: list[Ticket], config: BoardConfig, version_id: str | None = None
) -> dict[str, list[Ticket]]:
    """Map every column id (backlog first) to its tickets, in column order."""
    grouped: dict[str, list[Ticket]] = {}
    for column in config.all_columns():
        if column.id == BACKLOG_COLUMN.id:
            grouped[column.id] = backlog_tickets(tickets)
        else:
            grouped[column.id] = column_tickets(tickets, column, version_id)
    return grouped
