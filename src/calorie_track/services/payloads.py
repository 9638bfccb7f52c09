"""Normalization of the accepted estimation request bodies."""

import json

from pydantic import ValidationError

from calorie_track.domain.errors import InputValidationError
from calorie_track.domain.estimates import EstimateRequest
from calorie_track.domain.requests import MessagesBody, TypedBody
from calorie_track.services.images import decode_image

DEFAULT_MAX_FOOD_LENGTH = 500


def parse_estimate_body(
    raw: bytes, max_food_length: int = DEFAULT_MAX_FOOD_LENGTH
) -> EstimateRequest:
    """Parse a raw JSON body in either accepted shape into a request."""
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        raise InputValidationError("Invalid JSON body") from None
    if not isinstance(data, dict):
        raise InputValidationError("Invalid request format")

    if "messages" in data:
        try:
            messages_body = MessagesBody.model_validate(data)
        except ValidationError:
            raise InputValidationError("Invalid request format") from None
        return _from_messages(messages_body, max_food_length)

    if "type" in data:
        try:
            typed_body = TypedBody.model_validate(data)
        except ValidationError:
            raise InputValidationError(
                "Invalid request type. Use 'text' or 'image'."
            ) from None
        return _from_typed(typed_body, max_food_length)

    raise InputValidationError("Invalid request format")


def _from_messages(body: MessagesBody, max_food_length: int) -> EstimateRequest:
    if not body.messages:
        raise InputValidationError("Invalid request format")
    content = body.messages[-1].content
    if isinstance(content, str):
        return EstimateRequest(kind="text", food=_clean_food(content, max_food_length))
    if isinstance(content, list):
        for part in content:
            encoded = part.get("image_base64")
            if isinstance(encoded, str) and encoded.strip():
                return EstimateRequest(kind="image", image_bytes=decode_image(encoded))
        raise InputValidationError("No image provided")
    raise InputValidationError("Unsupported content type")


def _from_typed(body: TypedBody, max_food_length: int) -> EstimateRequest:
    if body.type == "text":
        return EstimateRequest(
            kind="text", food=_clean_food(body.food, max_food_length)
        )
    if not body.image or not body.image.strip():
        raise InputValidationError("Missing 'image' field")
    return EstimateRequest(kind="image", image_bytes=decode_image(body.image))


def _clean_food(food: str | None, max_food_length: int) -> str:
    value = (food or "").strip()
    if not value:
        raise InputValidationError("Missing 'food' field")
    if len(value) > max_food_length:
        raise InputValidationError(
            f"Food description too long (max {max_food_length} chars)"
        )
    return value
