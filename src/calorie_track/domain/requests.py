"""Pydantic models for the accepted estimation request bodies."""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    """One message of the chat-style request body."""

    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | list[dict[str, object]] | None = None


class MessagesBody(BaseModel):
    """Body shape `{"messages": [...]}` sent by the web client."""

    model_config = ConfigDict(extra="ignore")

    messages: list[ChatMessage]


class TypedBody(BaseModel):
    """Body shape `{"type": "text"|"image", "food"?, "image"?}`."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["text", "image"]
    food: str | None = None
    image: str | None = None
