"""OpenAI Responses API client for text and vision calls."""

from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from calorie_track.domain.errors import UpstreamUnavailableError
from calorie_track.services.estimation import ModelClient
from calorie_track.services.images import to_data_url


@dataclass
class OpenAIModelClient(ModelClient):
    """Model client backed by OpenAI Responses API."""

    client: AsyncOpenAI
    model: str

    @classmethod
    def create(
        cls, api_key: str, model: str, timeout_seconds: float = 20.0
    ) -> "OpenAIModelClient":
        """Create an OpenAI client; the SDK's own retries are disabled."""
        return cls(
            client=AsyncOpenAI(
                api_key=api_key, timeout=timeout_seconds, max_retries=0
            ),
            model=model,
        )

    async def complete(
        self,
        *,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Call the Responses API with a chat-style input."""
        return await self._create(
            {
                "model": self.model,
                "input": messages,
                "max_output_tokens": max_tokens,
                "temperature": temperature,
                "store": False,
            }
        )

    async def describe_image(
        self, *, image_bytes: bytes, prompt: str, max_tokens: int
    ) -> str:
        """Describe an image passed as a data URL."""
        image_url = to_data_url(image_bytes)
        return await self._create(
            {
                "model": self.model,
                "input": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "input_text", "text": prompt},
                            {"type": "input_image", "image_url": image_url},
                        ],
                    }
                ],
                "max_output_tokens": max_tokens,
                "store": False,
            }
        )

    async def _create(self, request_payload: dict[str, object]) -> str:
        try:
            response = await self.client.responses.create(**request_payload)
        except openai.APIError as exc:
            raise UpstreamUnavailableError("AI service unavailable") from exc
        return response.output_text or ""

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
