"""Image payload helpers."""

import base64
import binascii

from calorie_track.domain.errors import InputValidationError


def decode_image(encoded: str) -> bytes:
    """Decode a base64 image, accepting an optional data URL prefix."""
    value = encoded.strip()
    if value.startswith("data:") and "," in value:
        value = value.split(",", maxsplit=1)[1]
    try:
        image_bytes = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputValidationError("Image is not valid base64") from exc
    if not image_bytes:
        raise InputValidationError("No image provided")
    return image_bytes


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
