"""Cloudflare Workers AI REST client."""

from dataclasses import dataclass

import httpx

from calorie_track.domain.errors import (
    InvalidUpstreamResponseError,
    UpstreamUnavailableError,
)
from calorie_track.services.estimation import ModelClient


@dataclass
class CloudflareAIClient(ModelClient):
    """Model client backed by the Workers AI `ai/run` endpoint."""

    account_id: str
    api_token: str
    base_url: str
    text_model: str
    vision_model: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 20.0

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        account_id: str,
        api_token: str,
        base_url: str,
        text_model: str,
        vision_model: str,
        timeout_seconds: float = 20.0,
    ) -> "CloudflareAIClient":
        """Create a Workers AI client with a managed httpx session."""
        return cls(
            account_id=account_id,
            api_token=api_token,
            base_url=base_url.rstrip("/"),
            text_model=text_model,
            vision_model=vision_model,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def complete(
        self,
        *,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Run the text model on a chat prompt."""
        result = await self._run(
            self.text_model,
            {
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
        )
        response = result.get("response")
        if not isinstance(response, str):
            raise InvalidUpstreamResponseError("AI returned an empty response")
        return response

    async def describe_image(
        self, *, image_bytes: bytes, prompt: str, max_tokens: int
    ) -> str:
        """Run the vision model; the image is sent as a list of byte values."""
        result = await self._run(
            self.vision_model,
            {"image": list(image_bytes), "prompt": prompt, "max_tokens": max_tokens},
        )
        description = result.get("description") or result.get("response")
        return description if isinstance(description, str) else ""

    async def _run(
        self, model: str, payload: dict[str, object]
    ) -> dict[str, object]:
        url = f"{self.base_url}/accounts/{self.account_id}/ai/run/{model}"
        try:
            response = await self.http_client.post(
                url,
                headers={"Authorization": f"Bearer {self.api_token}"},
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError("AI service unavailable") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidUpstreamResponseError("AI returned a malformed body") from exc
        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise InvalidUpstreamResponseError("AI returned a malformed body")
        return result

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
