"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

MODEL_PROVIDERS = frozenset({"cloudflare", "openai"})
LEDGER_BACKENDS = frozenset({"memory", "supabase"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    environment: str = _ENVIRONMENT
    firebase_project_id: str = "caloriestrack"
    model_provider: str = "cloudflare"
    cloudflare_account_id: str | None = None
    cloudflare_api_token: str | None = None
    cloudflare_base_url: str = "https://api.cloudflare.com/client/v4"
    cloudflare_text_model: str = "@cf/meta/llama-3.1-8b-instruct"
    cloudflare_vision_model: str = "@cf/llava-hf/llava-1.5-7b-hf"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    daily_credit_limit: int = 1000
    upstream_timeout_seconds: float = 20.0
    auth_timeout_seconds: float = 10.0
    max_food_length: int = 500
    ledger_backend: str = "memory"
    ledger_cleanup_interval_seconds: float = 3600.0
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    admin_token: str | None = None
    cors_allow_origin: str = "*"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_provider(raw: str) -> str:
    """Normalize the model provider name, rejecting unknown values."""
    value = raw.strip().lower()
    if value not in MODEL_PROVIDERS:
        raise ValueError(f"Unknown model provider: {raw!r}")
    return value


def parse_ledger_backend(raw: str) -> str:
    """Normalize the credit ledger backend name."""
    value = raw.strip().lower()
    if value not in LEDGER_BACKENDS:
        raise ValueError(f"Unknown ledger backend: {raw!r}")
    return value
