"""Forgeplan engine configuration.

Centralised, typed configuration for the generation engine. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class InvocationConfig(BaseModel):
    """Settings for a single outbound model call."""

    timeout: float = Field(
        default=60.0, ge=1.0, description="Wall-clock timeout per model call in seconds"
    )
    system_prompt: str = Field(
        default=(
            "You are an expert software developer. Generate high-quality, "
            "production-ready code. Follow best practices, include proper error "
            "handling, and add comments where necessary. The code should be "
            "modern, efficient, and maintainable."
        ),
        description="System prompt sent with every stage unless the stage overrides it",
    )


class RetryConfig(BaseModel):
    """Retry/backoff policy applied to each model before failing over."""

    max_retries: int = Field(
        default=2, ge=0, description="Retries per model for timeout and rate-limit errors"
    )
    backoff_base: float = Field(
        default=1.0, ge=0.0, description="Delay before the first retry in seconds"
    )
    backoff_max: float = Field(default=8.0, ge=0.0, description="Upper bound for a single delay")

    def delay_for(self, retry_number: int) -> float:
        """Exponential delay before retry ``retry_number`` (1-based)."""
        if retry_number < 1:
            return 0.0
        return min(self.backoff_base * (2 ** (retry_number - 1)), self.backoff_max)


class ProviderConfig(BaseModel):
    """Endpoint and credentials for one model provider."""

    base_url: str
    api_key: str = Field(default="", description="Explicit key; falls back to api_key_env")
    api_key_env: str = Field(default="", description="Environment variable holding the key")
    api_version: str = Field(default="", description="Provider API version header, if any")

    def resolve_api_key(self) -> str:
        """Return the explicit key or the value of ``api_key_env``."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env, "")
        return ""


def _default_providers() -> dict[str, ProviderConfig]:
    return {
        "openai": ProviderConfig(
            base_url="https://api.openai.com/v1",
            api_key_env="OPENAI_API_KEY",
        ),
        "anthropic": ProviderConfig(
            base_url="https://api.anthropic.com",
            api_key_env="ANTHROPIC_API_KEY",
            api_version="2023-06-01",
        ),
        "google": ProviderConfig(
            base_url="https://generativelanguage.googleapis.com/v1beta",
            api_key_env="GOOGLE_API_KEY",
        ),
        # Llama models are served through an OpenAI-compatible host.
        "meta": ProviderConfig(
            base_url="https://api.together.xyz/v1",
            api_key_env="TOGETHER_API_KEY",
        ),
    }


class Config(BaseModel):
    """Global engine configuration.

    Instances are typically created once by the CLI or by the surrounding
    application and passed to ``GenerationEngine.from_config``.
    """

    default_model: str = Field(default="gpt-4-turbo")
    default_fallback_model: str = Field(default="claude-3-sonnet")
    max_concurrent_stages: int = Field(
        default=1, ge=1, description="Stages run concurrently within one pipeline run"
    )
    catalog_path: Path | None = Field(
        default=None, description="Optional JSON file replacing the built-in model catalog"
    )
    templates_path: Path | None = Field(
        default=None, description="Optional JSON file replacing the built-in templates"
    )
    invocation: InvocationConfig = Field(default_factory=InvocationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    providers: dict[str, ProviderConfig] = Field(default_factory=_default_providers)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            FORGEPLAN_DEFAULT_MODEL, FORGEPLAN_FALLBACK_MODEL,
            FORGEPLAN_MAX_CONCURRENT_STAGES, FORGEPLAN_TIMEOUT,
            FORGEPLAN_MAX_RETRIES, FORGEPLAN_BACKOFF_BASE,
            FORGEPLAN_CATALOG_PATH, FORGEPLAN_TEMPLATES_PATH,
            FORGEPLAN_<PROVIDER>_BASE_URL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("FORGEPLAN_DEFAULT_MODEL"):
            kwargs["default_model"] = os.environ["FORGEPLAN_DEFAULT_MODEL"]
        if os.environ.get("FORGEPLAN_FALLBACK_MODEL"):
            kwargs["default_fallback_model"] = os.environ["FORGEPLAN_FALLBACK_MODEL"]
        if os.environ.get("FORGEPLAN_MAX_CONCURRENT_STAGES"):
            kwargs["max_concurrent_stages"] = int(os.environ["FORGEPLAN_MAX_CONCURRENT_STAGES"])
        if os.environ.get("FORGEPLAN_CATALOG_PATH"):
            kwargs["catalog_path"] = Path(os.environ["FORGEPLAN_CATALOG_PATH"])
        if os.environ.get("FORGEPLAN_TEMPLATES_PATH"):
            kwargs["templates_path"] = Path(os.environ["FORGEPLAN_TEMPLATES_PATH"])

        invocation_kwargs: dict[str, Any] = {}
        if os.environ.get("FORGEPLAN_TIMEOUT"):
            invocation_kwargs["timeout"] = float(os.environ["FORGEPLAN_TIMEOUT"])

        retry_kwargs: dict[str, Any] = {}
        if os.environ.get("FORGEPLAN_MAX_RETRIES"):
            retry_kwargs["max_retries"] = int(os.environ["FORGEPLAN_MAX_RETRIES"])
        if os.environ.get("FORGEPLAN_BACKOFF_BASE"):
            retry_kwargs["backoff_base"] = float(os.environ["FORGEPLAN_BACKOFF_BASE"])

        providers = _default_providers()
        for name, provider in providers.items():
            url = os.environ.get(f"FORGEPLAN_{name.upper()}_BASE_URL")
            if url:
                provider.base_url = url

        return cls(
            invocation=InvocationConfig(**invocation_kwargs),
            retry=RetryConfig(**retry_kwargs),
            providers=providers,
            **kwargs,
        )
