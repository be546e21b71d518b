"""AssetStore - Image attachments stored under the board's images folder."""

from __future__ import annotations

import base64
import re
import secrets
import time
from urllib.parse import quote

from repoboard.github import GitHubContentClient, NotFoundError, RepoContext
from repoboard.logging import get_logger
from repoboard.records import InvalidRecordError
from repoboard.records.codec import TICKET_ID_PATTERN
from repoboard.store.exceptions import ImageUnavailableError, InvalidImageError

logger = get_logger("store.assets")

ALLOWED_IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp", "svg")

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}

RAW_CONTENT_URL = "https://raw.githubusercontent.com"

# A single path segment; generated names always match
IMAGE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _extension(filename: str) -> str:
    _, dot, extension = filename.rpartition(".")
    return extension.lower() if dot else ""


def is_valid_image_extension(filename: str) -> bool:
    return _extension(filename) in ALLOWED_IMAGE_EXTENSIONS


def mime_type_for(filename: str) -> str:
    return MIME_TYPES.get(_extension(filename), "application/octet-stream")


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9.-] with '_'."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


def generate_image_name(filename: str) -> str:
    """Unique stored name: millisecond timestamp, random hex, sanitized name."""
    return f"{time.time_ns() // 1_000_000}-{secrets.token_hex(3)}-{sanitize_filename(filename)}"


def image_path(ctx: RepoContext, ticket_id: str, image_name: str) -> str:
    """Repository path of an image.

    Raises:
        InvalidRecordError: If the ticket id is not a safe file name
        InvalidImageError: If the image name is not a single safe path segment
    """
    _check_ticket_id(ticket_id)
    _check_image_name(image_name)
    return f"{ctx.images_dir}/{ticket_id}/{image_name}"


def _check_ticket_id(ticket_id: str) -> None:
    if not TICKET_ID_PATTERN.fullmatch(ticket_id):
        raise InvalidRecordError(f"Invalid ticket id '{ticket_id}'")


def _check_image_name(image_name: str) -> None:
    if not IMAGE_NAME_PATTERN.fullmatch(image_name):
        raise InvalidImageError(f"Invalid image name '{image_name}'")


class AssetStore:
    """Uploads, loads and deletes ticket images.

    Uploading an image does not add it to the ticket: the caller appends the
    returned name to Ticket.images and updates the ticket. Deleting a ticket
    does not delete its images.
    """

    def __init__(self, client: GitHubContentClient) -> None:
        self._client = client

    async def upload(
        self, ctx: RepoContext, ticket_id: str, filename: str, data: bytes
    ) -> str:
        """Upload an image for a ticket.

        Args:
            ctx: Repository context
            ticket_id: Ticket the image belongs to
            filename: Original file name (only used for the extension and the stored name)
            data: Image bytes

        Returns:
            The generated image name

        Raises:
            InvalidImageError: If the extension is not allowed (no request is made)
        """
        if not is_valid_image_extension(filename):
            raise InvalidImageError(
                f"Invalid image extension for '{filename}'. "
                f"Allowed: {', '.join(ALLOWED_IMAGE_EXTENSIONS)}"
            )
        _check_ticket_id(ticket_id)

        image_name = generate_image_name(filename)
        path = image_path(ctx, ticket_id, image_name)
        branch = await self._client.resolve_branch(ctx)

        await self._client.put_file(
            ctx,
            path,
            data,
            f"Add image {image_name} for ticket {ticket_id}",
            branch=branch,
        )
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return image_name

    async def fetch(self, ctx: RepoContext, ticket_id: str, image_name: str) -> bytes:
        """Load image bytes, through the blob API when the file is too large to inline.

        Raises:
            NotFoundError: If the image does not exist
            ImageUnavailableError: If neither API returned content
        """
        path = image_path(ctx, ticket_id, image_name)
        file = await self._client.get_file(ctx, path)

        content = file.content
        if not content and file.sha:
            logger.debug("Content of %s not inlined, fetching blob %s", path, file.sha)
            content = await self._client.get_blob(ctx, file.sha)
        if not content:
            raise ImageUnavailableError(f"Unable to load image content: {path}")
        return content

    async def fetch_as_data_url(self, ctx: RepoContext, ticket_id: str, image_name: str) -> str:
        """Load an image as a data: URL (works for private repositories)."""
        content = await self.fetch(ctx, ticket_id, image_name)
        encoded = base64.b64encode(content).decode("ascii")
        return f"data:{mime_type_for(image_name)};base64,{encoded}"

    async def delete(self, ctx: RepoContext, ticket_id: str, image_name: str) -> None:
        """Delete an image using a hash looked up just before the delete.

        Raises:
            NotFoundError: If the image does not exist
            ConflictError: If the image changed between lookup and delete
        """
        path = image_path(ctx, ticket_id, image_name)
        branch = await self._client.resolve_branch(ctx)
        file = await self._client.get_file(ctx, path, ref=branch)
        await self._client.delete_file(
            ctx,
            path,
            file.sha,
            f"Delete image {image_name} from ticket {ticket_id}",
            branch=branch,
        )
        logger.info("Deleted %s", path)

    async def list_images(self, ctx: RepoContext, ticket_id: str) -> list[str]:
        """Names of the images stored for a ticket (empty if none)."""
        _check_ticket_id(ticket_id)
        try:
            entries = await self._client.list_directory(ctx, f"{ctx.images_dir}/{ticket_id}")
        except NotFoundError:
            return []
        return [
            entry.name
            for entry in entries
            if entry.type == "file" and is_valid_image_extension(entry.name)
        ]

    async def image_url(self, ctx: RepoContext, ticket_id: str, image_name: str) -> str:
        """Raw content URL of an image (only loads for public repositories).

        Without a context branch the repository's default branch is looked up.
        """
        path = image_path(ctx, ticket_id, image_name)
        branch = await self._client.resolve_branch(ctx)
        return f"{RAW_CONTENT_URL}/{ctx.owner}/{ctx.repo}/{quote(branch)}/{quote(path)}"
