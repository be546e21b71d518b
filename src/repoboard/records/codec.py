"""YAML codec for board records.

Parses and serializes:
- columns.yml: column definitions
- ticketTypes.yml: ticket type definitions
- versions.yml: version/sprint definitions
- tickets/<id>.yml: one ticket per file

The list files accept either a bare sequence or a mapping with a single
collection key, and are always written in the keyed form.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from typing import Any

import yaml

from repoboard.records.exceptions import InvalidRecordError, MalformedRecordError
from repoboard.records.models import Column, Priority, Ticket, TicketType, Version

DEFAULT_TICKET_TYPE = "task"
BACKLOG_STATUS = "backlog"
TICKET_EXTENSIONS = (".yml", ".yaml")
TICKET_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

COLUMNS_KEY = "columns"
TICKET_TYPES_KEY = "ticketTypes"
VERSIONS_KEY = "versions"


class _BoardDumper(yaml.SafeDumper):
    """SafeDumper with indented sequences and literal blocks for multi-line text."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    style = "|" if "\n" in value else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style=style)


_BoardDumper.add_representer(str, _represent_str)


# --- YAML helpers ---


def load_yaml(text: str, path: str | None = None) -> Any:
    """Parse YAML text.

    Raises:
        MalformedRecordError: If the text is not valid YAML, or holds an
            unquoted date that is not a real calendar date
    """
    try:
        return yaml.safe_load(text)
    except (yaml.YAMLError, ValueError) as e:
        raise MalformedRecordError(f"Invalid YAML: {e}", path) from e


def dump_yaml(data: Any) -> str:
    """Serialize data to block-style YAML with keys in insertion order."""
    return yaml.dump(
        data,
        Dumper=_BoardDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=float("inf"),
    )


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with milliseconds."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp or date written by any client."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    # Unquoted dates are parsed by YAML; keep them as text
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    return str(value) or None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    if isinstance(value, str):
        return [value]
    return []


def _parse_priority(value: Any) -> Priority | None:
    try:
        return Priority(value)
    except ValueError:
        return None


def _parse_estimate(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


# --- Tickets ---


def ticket_id_from_path(path: str) -> str:
    """Extract the ticket id from its file path.

    e.g. ".repoboard/tickets/fix-login.yml" -> "fix-login"
    """
    filename = path.rsplit("/", 1)[-1]
    for extension in TICKET_EXTENSIONS:
        if filename.endswith(extension):
            return filename[: -len(extension)]
    return filename


def is_ticket_file(path: str, tickets_dir: str) -> bool:
    """Whether path is a YAML file inside the tickets directory."""
    return path.endswith(TICKET_EXTENSIONS) and path.startswith(tickets_dir.rstrip("/") + "/")


def ticket_path(tickets_dir: str, ticket_id: str) -> str:
    return f"{tickets_dir.rstrip('/')}/{ticket_id}.yml"


def validate_ticket(ticket: Ticket) -> None:
    """Check the fields a ticket needs before it can be written.

    Raises:
        InvalidRecordError: If the id is not a safe file name or the title is empty
    """
    if not TICKET_ID_PATTERN.fullmatch(ticket.id):
        raise InvalidRecordError(
            f"Invalid ticket id '{ticket.id}': use letters, digits, '.', '_' or '-'"
        )
    if not ticket.title.strip():
        raise InvalidRecordError(f"Ticket '{ticket.id}' needs a title")


def parse_ticket(text: str, path: str, sha: str) -> Ticket:
    """Parse a ticket file.

    Missing optional fields get defaults; an invalid priority or a
    non-numeric estimate is dropped rather than rejected.

    Args:
        text: YAML content
        path: File path, the filename stem becomes the ticket id
        sha: Blob hash of the content

    Returns:
        The decoded Ticket

    Raises:
        MalformedRecordError: If the content is not a YAML mapping
    """
    data = load_yaml(text, path)
    if not isinstance(data, dict):
        raise MalformedRecordError("ticket file must contain a mapping", path)

    ticket_id = ticket_id_from_path(path)
    return Ticket(
        id=ticket_id,
        path=path,
        sha=sha,
        title=_optional_str(data.get("title")) or f"Ticket {ticket_id}",
        type=_optional_str(data.get("type")) or DEFAULT_TICKET_TYPE,
        status=_optional_str(data.get("status")) or BACKLOG_STATUS,
        priority=_parse_priority(data.get("priority")),
        assignees=_string_list(data.get("assignees")),
        labels=_string_list(data.get("labels")),
        parent=_optional_str(data.get("parent")),
        version=_optional_str(data.get("version")),
        estimate=_parse_estimate(data.get("estimate")),
        due_date=_optional_str(data.get("dueDate")),
        description=_optional_str(data.get("description")),
        images=_string_list(data.get("images")),
        created_at=_optional_str(data.get("createdAt")),
        updated_at=_optional_str(data.get("updatedAt")),
    )


def serialize_ticket(ticket: Ticket, updated_at: str | None = None) -> str:
    """Serialize a ticket, emitting only fields that have a value.

    updatedAt is always refreshed: to updated_at when given, otherwise to
    the current time. Decoding the result therefore reproduces the ticket
    except for its updated timestamp.
    """
    data: dict[str, Any] = {
        "title": ticket.title,
        "type": ticket.type,
        "status": ticket.status,
    }
    if ticket.priority:
        data["priority"] = Priority(ticket.priority).value
    if ticket.assignees:
        data["assignees"] = list(ticket.assignees)
    if ticket.labels:
        data["labels"] = list(ticket.labels)
    if ticket.parent:
        data["parent"] = ticket.parent
    if ticket.version:
        data["version"] = ticket.version
    if ticket.estimate is not None:
        data["estimate"] = ticket.estimate
    if ticket.due_date:
        data["dueDate"] = ticket.due_date
    if ticket.description:
        data["description"] = ticket.description
    if ticket.images:
        data["images"] = list(ticket.images)
    if ticket.created_at:
        data["createdAt"] = ticket.created_at
    data["updatedAt"] = updated_at or utc_timestamp()

    return dump_yaml(data)


# --- List files ---


def _parse_collection(text: str, key: str, path: str | None) -> list[dict[str, Any]]:
    """Resolve the bare-list / keyed-mapping forms to a list of mappings."""
    data = load_yaml(text, path)
    if data is None:
        return []
    if isinstance(data, dict):
        if key not in data:
            raise MalformedRecordError(f"expected a '{key}' list", path)
        data = data[key] if data[key] is not None else []
    if not isinstance(data, list):
        raise MalformedRecordError(f"'{key}' must be a list", path)

    for item in data:
        if not isinstance(item, dict) or item.get("id") is None:
            raise MalformedRecordError(f"every entry of '{key}' needs an id", path)
    return data


def parse_columns_file(text: str, path: str | None = None) -> list[Column]:
    """Parse columns.yml; statuses default to the column id."""
    columns = []
    for item in _parse_collection(text, COLUMNS_KEY, path):
        column_id = str(item["id"])
        statuses = item.get("statuses")
        columns.append(
            Column(
                id=column_id,
                name=_optional_str(item.get("name")) or column_id,
                statuses=_string_list(statuses) if isinstance(statuses, list) else [column_id],
                color=_optional_str(item.get("color")),
            )
        )
    return columns


def serialize_columns_file(columns: list[Column]) -> str:
    return dump_yaml(
        {
            COLUMNS_KEY: [
                _compact(
                    {
                        "id": c.id,
                        "name": c.name,
                        "statuses": list(c.statuses),
                        "color": c.color,
                    }
                )
                for c in columns
            ]
        }
    )


def parse_ticket_types_file(text: str, path: str | None = None) -> list[TicketType]:
    """Parse ticketTypes.yml."""
    return [
        TicketType(
            id=str(item["id"]),
            name=_optional_str(item.get("name")) or str(item["id"]),
            icon=_optional_str(item.get("icon")),
            color=_optional_str(item.get("color")),
        )
        for item in _parse_collection(text, TICKET_TYPES_KEY, path)
    ]


def serialize_ticket_types_file(ticket_types: list[TicketType]) -> str:
    return dump_yaml(
        {
            TICKET_TYPES_KEY: [
                _compact({"id": t.id, "name": t.name, "icon": t.icon, "color": t.color})
                for t in ticket_types
            ]
        }
    )


def parse_versions_file(text: str, path: str | None = None) -> list[Version]:
    """Parse versions.yml."""
    return [
        Version(
            id=str(item["id"]),
            name=_optional_str(item.get("name")) or str(item["id"]),
            start_date=_optional_str(item.get("startDate")),
            target_date=_optional_str(item.get("targetDate")),
            created_at=_optional_str(item.get("createdAt")),
        )
        for item in _parse_collection(text, VERSIONS_KEY, path)
    ]


def serialize_versions_file(versions: list[Version]) -> str:
    return dump_yaml(
        {
            VERSIONS_KEY: [
                _compact(
                    {
                        "id": v.id,
                        "name": v.name,
                        "startDate": v.start_date,
                        "targetDate": v.target_date,
                        "createdAt": v.created_at,
                    }
                )
                for v in versions
            ]
        }
    )
