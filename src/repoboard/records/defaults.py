"""Default board configuration written by initialize_config."""

from __future__ import annotations

import copy

from repoboard.records.models import BoardConfig, Column, TicketType, Version

# Always present on the board, never stored in columns.yml
BACKLOG_COLUMN = Column(id="backlog", name="Backlog", statuses=["backlog"], color="#8b949e")

DEFAULT_COLUMNS = [
    Column(id="todo", name="To Do", statuses=["todo"], color="#58a6ff"),
    Column(id="in-progress", name="In Progress", statuses=["in-progress"], color="#d29922"),
    Column(id="done", name="Done", statuses=["done"], color="#3fb950"),
]

DEFAULT_TICKET_TYPES = [
    TicketType(id="epic", name="Epic", icon="\U0001f3af", color="#a371f7"),
    TicketType(id="story", name="Story", icon="\U0001f4d6", color="#58a6ff"),
    TicketType(id="bug", name="Bug", icon="\U0001f41b", color="#f85149"),
    TicketType(id="task", name="Task", icon="✅", color="#3fb950"),
]

DEFAULT_VERSIONS: list[Version] = []

WELCOME_TICKET_ID = "welcome"
WELCOME_TICKET_TITLE = "Welcome to repoboard!"
WELCOME_TICKET_DESCRIPTION = (
    "This is your first ticket. Feel free to edit or delete it.\n"
    "\n"
    "Tickets are stored as YAML files in the `tickets/` folder of the board directory.\n"
)


def default_config() -> BoardConfig:
    """A fresh copy of the default configuration."""
    return BoardConfig(
        columns=copy.deepcopy(DEFAULT_COLUMNS),
        ticket_types=copy.deepcopy(DEFAULT_TICKET_TYPES),
        versions=copy.deepcopy(DEFAULT_VERSIONS),
    )
