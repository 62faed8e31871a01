"""Image attachment handling for tutor messages.

Validates and normalizes the single image a user may attach to a message.

Responsibilities:
    - Media type allow-list (JPEG, PNG, WEBP, HEIC, HEIF)
    - Size limit enforcement
    - Data URL prefix stripping and base64 decoding
    - Data URL encoding for inline display

Output is an ``Attachment`` holding raw bytes, ready to be sent to the model.
"""

from src.media.attachments import (
    MAX_ATTACHMENT_SIZE,
    SUPPORTED_IMAGE_TYPES,
    load_attachment,
    strip_data_url_prefix,
    to_data_url,
)

__all__ = [
    "MAX_ATTACHMENT_SIZE",
    "SUPPORTED_IMAGE_TYPES",
    "load_attachment",
    "strip_data_url_prefix",
    "to_data_url",
]
