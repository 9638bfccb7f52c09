"""Models for calorie estimation requests and results."""

import math
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Confidence = Literal["low", "medium", "high"]
CONFIDENCE_LEVELS: frozenset[str] = frozenset({"low", "medium", "high"})


@dataclass(frozen=True)
class EstimateRequest:
    """Normalized estimation input: a text description or an image."""

    kind: Literal["text", "image"]
    food: str | None = None
    image_bytes: bytes | None = None


class RawEstimate(BaseModel):
    """Schema for the JSON object the model is asked to produce."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    calories: float = Field(gt=0)
    confidence: str | None = None
    breakdown: object | None = None
    food_name: str | None = Field(default=None, alias="foodName")
    food_name_ar: str | None = Field(default=None, alias="foodNameAr")

    @field_validator("calories", mode="before")
    @classmethod
    def _coerce_calories(cls, value: object) -> float:
        if isinstance(value, bool):
            raise ValueError("calories must be a number")
        if isinstance(value, str):
            value = value.strip()
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError("calories must be a number") from exc
        if not math.isfinite(number):
            raise ValueError("calories must be finite")
        return number

    @field_validator("food_name", "food_name_ar", "confidence", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> str | None:
        if isinstance(value, str):
            return value.strip() or None
        return None


class FoodEstimate(BaseModel):
    """Calorie estimate returned to the client."""

    food_name: str
    food_name_alt: str
    calories: int = Field(ge=0)
    confidence: Confidence = "medium"
    breakdown: str | None = None

    def to_payload(self) -> dict[str, object]:
        """Return the camelCase wire representation."""
        return {
            "foodName": self.food_name,
            "foodNameAr": self.food_name_alt,
            "calories": self.calories,
            "confidence": self.confidence,
            "breakdown": self.breakdown,
        }
