"""Shared test fixtures."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from calorie_track.api.app import create_app
from calorie_track.config import Settings
from calorie_track.containers import AppContainer
from calorie_track.services.auth import AuthVerifier, TokenVerifier
from calorie_track.services.credits import CreditLedger, InMemoryCreditStore
from calorie_track.services.estimation import EstimationService, ModelClient
from calorie_track.services.proxy import EstimateProxy

VALID_TOKEN = "valid-token"
AUTH_HEADERS = {"Authorization": f"Bearer {VALID_TOKEN}"}

DEFAULT_ESTIMATE = json.dumps(
    {
        "foodName": "Chicken shawarma",
        "foodNameAr": "شاورما دجاج",
        "calories": 540,
        "confidence": "high",
        "breakdown": "Wrap with chicken, garlic sauce and pickles",
    },
    ensure_ascii=False,
)


@dataclass
class FakeTokenVerifier(TokenVerifier):
    """Token verifier accepting a fixed set of tokens."""

    tokens: dict[str, dict[str, object]] = field(
        default_factory=lambda: {
            VALID_TOKEN: {"uid": "user-1", "email": "user@example.com"},
            "other-token": {"uid": "user-2", "email": "other@example.com"},
        }
    )
    calls: list[str] = field(default_factory=list)

    async def verify_id_token(self, token: str) -> dict[str, object]:
        self.calls.append(token)
        if token not in self.tokens:
            raise ValueError("Token rejected")
        return self.tokens[token]


@dataclass
class FakeModelClient(ModelClient):
    """Model client returning canned completions and recording calls."""

    completion: str = DEFAULT_ESTIMATE
    translation: str = "ترجمة"
    description: str = "A bowl of white rice with grilled chicken"
    error: Exception | None = None
    delay_seconds: float = 0.0
    completions: list[list[dict[str, str]]] = field(default_factory=list)
    images: list[bytes] = field(default_factory=list)

    async def complete(
        self,
        *,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.completions.append(messages)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        if "Arabic" in messages[0]["content"]:
            return self.translation
        return self.completion

    async def describe_image(
        self, *, image_bytes: bytes, prompt: str, max_tokens: int
    ) -> str:
        self.images.append(image_bytes)
        if self.error is not None:
            raise self.error
        return self.description


@dataclass
class FixedClock:
    """Clock that only moves when a test advances it."""

    now: datetime = field(
        default_factory=lambda: datetime(
            2024, 5, 14, 9, 30, tzinfo=timezone(timedelta(hours=3))
        )
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        cloudflare_account_id="account-id",
        cloudflare_api_token="cf-token",
        admin_token="admin-token",
        daily_credit_limit=5,
        upstream_timeout_seconds=1.0,
        auth_timeout_seconds=1.0,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def credit_store() -> InMemoryCreditStore:
    return InMemoryCreditStore()


@pytest.fixture
def token_verifier() -> FakeTokenVerifier:
    return FakeTokenVerifier()


@pytest.fixture
def model_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def container(
    settings: Settings,
    clock: FixedClock,
    credit_store: InMemoryCreditStore,
    token_verifier: FakeTokenVerifier,
    model_client: FakeModelClient,
) -> AppContainer:
    credit_ledger = CreditLedger(
        store=credit_store, limit=settings.daily_credit_limit, clock=clock
    )
    auth_verifier = AuthVerifier(
        client=token_verifier, timeout_seconds=settings.auth_timeout_seconds
    )
    estimation_service = EstimationService(
        client=model_client, timeout_seconds=settings.upstream_timeout_seconds
    )
    proxy = EstimateProxy(
        auth_verifier=auth_verifier,
        credit_ledger=credit_ledger,
        estimation_service=estimation_service,
        max_food_length=settings.max_food_length,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        credit_ledger=credit_ledger,
        auth_verifier=auth_verifier,
        estimation_service=estimation_service,
        proxy=proxy,
        close_resources=close_resources,
    )


@pytest.fixture
def client(container: AppContainer) -> TestClient:
    return TestClient(create_app(container))
