"""Pydantic v2 models for the model catalog and model selections."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Provider(str, Enum):
    """External vendor operating a family of models."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    META = "meta"


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------

class TokenCost(BaseModel):
    """USD price per 1,000 tokens."""
    model_config = ConfigDict(frozen=True)

    input: float = Field(..., ge=0)
    output: float = Field(..., ge=0)


class AIModel(BaseModel):
    """A known model and its capability metadata."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str = Field(..., description="Catalog identifier, e.g. 'gpt-4-turbo'")
    name: str = Field(default="", description="Human-readable model name")
    provider: Provider
    description: str = Field(default="")
    max_tokens: int = Field(..., ge=1, description="Context window in tokens")
    supports_streaming: bool = Field(default=True)
    supports_vision: bool = Field(default=False)
    cost_per_1k_tokens: TokenCost = Field(..., alias="costPer1kTokens")
    capabilities: frozenset[str] = Field(default_factory=frozenset)
    provider_model: str = Field(
        default="", description="Identifier sent to the provider; defaults to id"
    )

    @property
    def api_model(self) -> str:
        """Identifier to put on the wire."""
        return self.provider_model or self.id

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities


# ---------------------------------------------------------------------------
# Selections
# ---------------------------------------------------------------------------

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TOP_P = 1.0


class PartialModelSelection(BaseModel):
    """A model selection as submitted by a caller; nothing is checked yet.

    Field values are deliberately unconstrained so that the selection
    validator can report every violated rule at once.
    """
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    primary_model: Optional[str] = None
    fallback_model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None


class ModelSelection(BaseModel):
    """A validated model selection, produced by ``SelectionValidator.validate``."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    primary_model: str
    fallback_model: Optional[str] = None
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    top_p: float = Field(default=DEFAULT_TOP_P, ge=0, le=1)
    frequency_penalty: float = Field(default=0.0, ge=-2, le=2)
    presence_penalty: float = Field(default=0.0, ge=-2, le=2)

    @property
    def models(self) -> list[str]:
        """Models in the order they will be tried."""
        chain = [self.primary_model]
        if self.fallback_model and self.fallback_model != self.primary_model:
            chain.append(self.fallback_model)
        return chain

    def tuning(self, temperature: Optional[float] = None) -> "TuningParams":
        """Sampling parameters for one call, optionally overriding temperature."""
        return TuningParams(
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
        )


class TuningParams(BaseModel):
    """Sampling parameters forwarded to a provider."""
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    top_p: float = Field(default=DEFAULT_TOP_P, ge=0, le=1)
    frequency_penalty: float = Field(default=0.0, ge=-2, le=2)
    presence_penalty: float = Field(default=0.0, ge=-2, le=2)
