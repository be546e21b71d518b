"""Custom exceptions for the ticket and asset stores."""


class StoreError(Exception):
    """Base exception for store errors."""


class VersionNotFoundError(StoreError):
    """Version with given ID does not exist."""


class InvalidImageError(StoreError):
    """Image rejected before any request (unsupported extension or unsafe name)."""


class ImageUnavailableError(StoreError):
    """Image exists but no content could be loaded for it."""
