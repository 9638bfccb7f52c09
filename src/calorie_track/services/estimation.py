"""Calorie estimation using a hosted text/vision model."""

import asyncio
import json
import logging
import math
from collections.abc import Awaitable, Iterator
from dataclasses import dataclass
from typing import Protocol, TypeVar

from pydantic import ValidationError

from calorie_track.domain.errors import (
    InputValidationError,
    InvalidUpstreamResponseError,
    UpstreamError,
    UpstreamUnavailableError,
)
from calorie_track.domain.estimates import (
    CONFIDENCE_LEVELS,
    EstimateRequest,
    FoodEstimate,
    RawEstimate,
)

ESTIMATE_SYSTEM_PROMPT = """You are a professional nutritionist.
Estimate the TOTAL calories for the food the user describes.
Respond ONLY with one JSON object, no markdown and no explanation:
{"foodName": "<english name>", "foodNameAr": "<arabic name>", \
"calories": <positive integer>, "confidence": "low" | "medium" | "high", \
"breakdown": "<short sentence>"}
Rules:
- Use standard serving sizes if no portion is given.
- confidence: high for common foods, medium if ambiguous, low if unclear."""

TRANSLATE_SYSTEM_PROMPT = (
    "Translate the following food name to Arabic. "
    "Reply with ONLY the Arabic translation, nothing else."
)

VISION_PROMPT = (
    "What food is in this image? "
    "List all visible foods with approximate portion sizes."
)

_FOOD_NAME_MAX_LENGTH = 120

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModelClient(Protocol):
    """Interface for a hosted text and vision model."""

    async def complete(
        self,
        *,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the raw text completion for a chat prompt."""

    async def describe_image(
        self, *, image_bytes: bytes, prompt: str, max_tokens: int
    ) -> str:
        """Return a free-text description of the image."""


@dataclass
class EstimationService:
    """Build prompts, call the model and validate its answer."""

    client: ModelClient
    timeout_seconds: float = 20.0
    temperature: float = 0.3
    max_tokens: int = 256
    translate_max_tokens: int = 50

    async def estimate(self, request: EstimateRequest) -> FoodEstimate:
        """Estimate calories for a text description or a food photo."""
        if request.kind == "image":
            if not request.image_bytes:
                raise InputValidationError("No image provided")
            description = await self.describe_image(request.image_bytes)
        else:
            description = (request.food or "").strip()
        return await self.estimate_text(description)

    async def describe_image(self, image_bytes: bytes) -> str:
        """Resolve an image to a text description of the food in it."""
        text = await self._bounded(
            self.client.describe_image(
                image_bytes=image_bytes,
                prompt=VISION_PROMPT,
                max_tokens=self.max_tokens,
            )
        )
        description = (text or "").strip()
        if not description:
            raise InvalidUpstreamResponseError("AI could not recognize the image")
        return description

    async def estimate_text(self, description: str) -> FoodEstimate:
        """Estimate calories for a text description."""
        raw_text = await self._bounded(
            self.client.complete(
                messages=[
                    {"role": "system", "content": ESTIMATE_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f"Estimate calories for: {description}",
                    },
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        )
        raw = parse_estimate(raw_text)
        food_name = raw.food_name or description[:_FOOD_NAME_MAX_LENGTH].strip()
        food_name_alt = raw.food_name_ar or await self.translate(food_name)
        return FoodEstimate(
            food_name=food_name,
            food_name_alt=food_name_alt,
            calories=round_half_up(raw.calories),
            confidence=normalize_confidence(raw.confidence),
            breakdown=format_breakdown(raw.breakdown),
        )

    async def translate(self, food_name: str) -> str:
        """Translate a food name to Arabic, falling back to the input."""
        try:
            text = await self._bounded(
                self.client.complete(
                    messages=[
                        {"role": "system", "content": TRANSLATE_SYSTEM_PROMPT},
                        {"role": "user", "content": food_name},
                    ],
                    max_tokens=self.translate_max_tokens,
                    temperature=self.temperature,
                )
            )
        except UpstreamError as exc:
            _logger.warning("Translation failed for %r: %s", food_name, exc)
            return food_name
        translated = (text or "").strip().strip('"').strip()
        return translated or food_name

    async def _bounded(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except TimeoutError:
            raise UpstreamUnavailableError("AI service timed out") from None


def parse_estimate(text: str) -> RawEstimate:
    """Extract and validate the estimate JSON object from model output."""
    payload = extract_json_object(text)
    try:
        return RawEstimate.model_validate(payload)
    except ValidationError as exc:
        raise InvalidUpstreamResponseError("Invalid calorie value") from exc


def extract_json_object(text: str) -> dict[str, object]:
    """Parse the full text as JSON, else the first balanced `{...}` object."""
    stripped = (text or "").strip()
    try:
        parsed = json.loads(stripped)
    except (ValueError, RecursionError):
        parsed = None
    if isinstance(parsed, dict):
        return parsed
    for candidate in _balanced_objects(stripped):
        try:
            parsed = json.loads(candidate)
        except (ValueError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return parsed
    raise InvalidUpstreamResponseError("AI returned invalid JSON")


def _balanced_objects(text: str) -> Iterator[str]:
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def _matching_brace(text: str, start: int) -> int | None:
    """Return the index closing the brace at `start`, skipping string literals."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def normalize_confidence(value: str | None) -> str:
    """Return a known confidence level, defaulting to medium."""
    if isinstance(value, str) and value.strip().lower() in CONFIDENCE_LEVELS:
        return value.strip().lower()
    return "medium"


def format_breakdown(value: object) -> str | None:
    """Render the model's breakdown as short text."""
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        parts = [f"{key}: {item}" for key, item in value.items() if item is not None]
        return ", ".join(parts) or None
    if isinstance(value, list):
        parts = [str(item) for item in value if item is not None]
        return ", ".join(parts) or None
    return str(value)
