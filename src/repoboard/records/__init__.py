"""Board records - Typed tickets, versions, columns and their YAML encoding."""

from repoboard.records.board import (
    backlog_tickets,
    children_of,
    column_tickets,
    find_ticket,
    group_by_column,
)
from repoboard.records.codec import (
    is_ticket_file,
    parse_columns_file,
    parse_ticket,
    parse_ticket_types_file,
    parse_timestamp,
    parse_versions_file,
    serialize_columns_file,
    serialize_ticket,
    serialize_ticket_types_file,
    serialize_versions_file,
    ticket_id_from_path,
    utc_timestamp,
    validate_ticket,
)
from repoboard.records.defaults import (
    BACKLOG_COLUMN,
    DEFAULT_COLUMNS,
    DEFAULT_TICKET_TYPES,
    DEFAULT_VERSIONS,
    default_config,
)
from repoboard.records.exceptions import (
    InvalidRecordError,
    MalformedRecordError,
    RecordError,
)
from repoboard.records.models import (
    BoardConfig,
    Column,
    Priority,
    Ticket,
    TicketType,
    Version,
)

__all__ = [
    "BACKLOG_COLUMN",
    "DEFAULT_COLUMNS",
    "DEFAULT_TICKET_TYPES",
    "DEFAULT_VERSIONS",
    "BoardConfig",
    "Column",
    "InvalidRecordError",
    "MalformedRecordError",
    "Priority",
    "RecordError",
    "Ticket",
    "TicketType",
    "Version",
    "backlog_tickets",
    "children_of",
    "column_tickets",
    "default_config",
    "find_ticket",
    "group_by_column",
    "is_ticket_file",
    "parse_columns_file",
    "parse_ticket",
    "parse_ticket_types_file",
    "parse_timestamp",
    "parse_versions_file",
    "serialize_columns_file",
    "serialize_ticket",
    "serialize_ticket_types_file",
    "serialize_versions_file",
    "ticket_id_from_path",
    "utc_timestamp",
    "validate_ticket",
]
