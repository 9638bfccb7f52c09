"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from calorie_track.adapters.cloudflare_ai_client import CloudflareAIClient
from calorie_track.adapters.firebase_auth_client import FirebaseAuthClient
from calorie_track.adapters.openai_model_client import OpenAIModelClient
from calorie_track.adapters.supabase_credit_repository import (
    SupabaseCreditRepository,
)
from calorie_track.config import Settings, parse_ledger_backend, parse_provider
from calorie_track.services.auth import AuthVerifier
from calorie_track.services.credits import (
    CreditLedger,
    CreditStore,
    InMemoryCreditStore,
)
from calorie_track.services.estimation import EstimationService
from calorie_track.services.proxy import EstimateProxy


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    credit_ledger: CreditLedger
    auth_verifier: AuthVerifier
    estimation_service: EstimationService
    proxy: EstimateProxy
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    credit_ledger = CreditLedger(
        store=_build_credit_store(resolved_settings),
        limit=resolved_settings.daily_credit_limit,
    )
    auth_verifier = AuthVerifier(
        client=FirebaseAuthClient.create(resolved_settings.firebase_project_id),
        timeout_seconds=resolved_settings.auth_timeout_seconds,
    )
    model_client = _build_model_client(resolved_settings)
    estimation_service = EstimationService(
        client=model_client,
        timeout_seconds=resolved_settings.upstream_timeout_seconds,
    )
    proxy = EstimateProxy(
        auth_verifier=auth_verifier,
        credit_ledger=credit_ledger,
        estimation_service=estimation_service,
        max_food_length=resolved_settings.max_food_length,
    )

    async def close_resources() -> None:
        await model_client.close()

    return AppContainer(
        settings=resolved_settings,
        credit_ledger=credit_ledger,
        auth_verifier=auth_verifier,
        estimation_service=estimation_service,
        proxy=proxy,
        close_resources=close_resources,
    )


def _build_credit_store(settings: Settings) -> CreditStore:
    backend = parse_ledger_backend(settings.ledger_backend)
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError("Supabase ledger requires SUPABASE_URL and key")
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseCreditRepository(client)
    return InMemoryCreditStore()


def _build_model_client(
    settings: Settings,
) -> CloudflareAIClient | OpenAIModelClient:
    provider = parse_provider(settings.model_provider)
    if provider == "openai":
        if not settings.openai_api_key:
            raise ValueError("OpenAI provider requires OPENAI_API_KEY")
        return OpenAIModelClient.create(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.upstream_timeout_seconds,
        )
    if not settings.cloudflare_account_id or not settings.cloudflare_api_token:
        raise ValueError(
            "Cloudflare provider requires CLOUDFLARE_ACCOUNT_ID and API token"
        )
    return CloudflareAIClient.create(
        account_id=settings.cloudflare_account_id,
        api_token=settings.cloudflare_api_token,
        base_url=settings.cloudflare_base_url,
        text_model=settings.cloudflare_text_model,
        vision_model=settings.cloudflare_vision_model,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
