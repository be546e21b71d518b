"""Stores - Ticket, version, configuration and image operations over a GitHub repository."""

from repoboard.store.assets import (
    ALLOWED_IMAGE_EXTENSIONS,
    AssetStore,
    generate_image_name,
    image_path,
    is_valid_image_extension,
    mime_type_for,
    sanitize_filename,
)
from repoboard.store.exceptions import (
    ImageUnavailableError,
    InvalidImageError,
    StoreError,
    VersionNotFoundError,
)
from repoboard.store.store import TicketStore, generate_ticket_id, generate_version_id

__all__ = [
    "ALLOWED_IMAGE_EXTENSIONS",
    "AssetStore",
    "ImageUnavailableError",
    "InvalidImageError",
    "StoreError",
    "TicketStore",
    "VersionNotFoundError",
    "generate_image_name",
    "generate_ticket_id",
    "generate_version_id",
    "image_path",
    "is_valid_image_extension",
    "mime_type_for",
    "sanitize_filename",
]
