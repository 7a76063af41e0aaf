"""Image intake: size and type checks done before anything is persisted."""
from __future__ import annotations

import base64
import binascii
import re

from direct_chat.application.exceptions import (
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from direct_chat.domain.entities.message import ImageAttachment
from direct_chat.domain.value_objects.enums import ImageContentType

MAX_IMAGE_BYTES = 5 * 1024 * 1024

_DATA_URL_RE = re.compile(r"^data:(?P<type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)


def _sniff(data: bytes) -> ImageContentType | None:
    if data.startswith(b"\xff\xd8\xff"):
        return ImageContentType.JPEG
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return ImageContentType.PNG
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ImageContentType.GIF
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageContentType.WEBP
    return None


def validate_image(
    data: bytes,
    content_type: str | None,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> ImageAttachment:
    """Return an attachment or raise 413/415-class errors.

    The declared content type must be one of jpeg/png/gif/webp and must
    match the file signature.
    """
    if len(data) > max_bytes:
        raise PayloadTooLargeError(f"Image exceeds {max_bytes} bytes")
    if not data:
        raise ValidationError("Image is empty")

    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared == "image/jpg":
        declared = ImageContentType.JPEG
    if declared not in ImageContentType.__members__.values():
        raise UnsupportedMediaTypeError(f"Unsupported image type: {declared or 'unknown'}")

    sniffed = _sniff(data)
    if sniffed is None or sniffed != declared:
        raise UnsupportedMediaTypeError("Image content does not match its type")
    return ImageAttachment(content_type=sniffed.value, data=data)


def decode_data_url(
    data_url: str,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> ImageAttachment:
    """Parse a ``data:<type>;base64,<payload>`` string into an attachment."""
    match = _DATA_URL_RE.match(data_url.strip())
    if match is None:
        raise ValidationError("Image must be a base64 data URL")

    encoded = match.group("data")
    # base64 inflates by 4/3; reject obviously oversized payloads before decoding
    if len(encoded) > (max_bytes + 2) // 3 * 4 + 4:
        raise PayloadTooLargeError(f"Image exceeds {max_bytes} bytes")
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image payload is not valid base64") from exc
    return validate_image(data, match.group("type"), max_bytes)
