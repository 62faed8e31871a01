"""Image attachment validation and encoding.

Accepts raw bytes, bare base64 strings or data URLs and produces an
``Attachment`` with raw bytes and a supported media type.
"""

import base64
import binascii
import logging

from src.errors import UnsupportedAttachmentError
from src.models.schemas import Attachment

logger = logging.getLogger(__name__)

# Constants
MAX_ATTACHMENT_SIZE = 10 * 1024 * 1024  # 10MB
SUPPORTED_IMAGE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/heic",
        "image/heif",
    }
)


def strip_data_url_prefix(value: str) -> str:
    """Drop a ``data:<type>;base64,`` style prefix from an encoded image.

    Everything up to and including the first comma is removed. Strings
    without a comma are returned unchanged.

    Args:
        value: Data URL or bare base64 string.

    Returns:
        The payload after the first comma.
    """
    _, sep, payload = value.partition(",")
    return payload if sep else value


def _validate_media_type(media_type: str | None) -> str:
    """Normalize and check a declared media type.

    Raises:
        UnsupportedAttachmentError: If the type is missing or not an accepted image type.
    """
    normalized = (media_type or "").strip().lower()
    if normalized not in SUPPORTED_IMAGE_TYPES:
        raise UnsupportedAttachmentError(
            f"Unsupported image type '{media_type}'. Please upload a JPEG, PNG, WEBP or HEIC image."
        )
    return normalized


def _decode(value: str) -> bytes:
    try:
        return base64.b64decode(strip_data_url_prefix(value), validate=True)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedAttachmentError(f"Invalid image encoding: {e}") from e


def load_attachment(data: bytes | str, media_type: str | None) -> Attachment:
    """Validate an image and wrap it as an ``Attachment``.

    Args:
        data: Raw bytes, a bare base64 string or a data URL.
        media_type: Declared MIME type of the image.

    Returns:
        Attachment with raw bytes and normalized media type.

    Raises:
        UnsupportedAttachmentError: If the type is not accepted, the data is
            empty, undecodable, or larger than 10MB.
    """
    normalized = _validate_media_type(media_type)

    raw = _decode(data) if isinstance(data, str) else bytes(data)

    if not raw:
        raise UnsupportedAttachmentError("Empty image provided")

    if len(raw) > MAX_ATTACHMENT_SIZE:
        size_mb = len(raw) / (1024 * 1024)
        raise UnsupportedAttachmentError(
            f"Image size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)"
        )

    logger.debug(f"Loaded {normalized} attachment ({len(raw)} bytes)")
    return Attachment(data=raw, media_type=normalized)


def to_data_url(attachment: Attachment) -> str:
    """Encode an attachment as a data URL for inline display."""
    encoded = base64.b64encode(attachment.data).decode("ascii")
    return f"data:{attachment.media_type};base64,{encoded}"
