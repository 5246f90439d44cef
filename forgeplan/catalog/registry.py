"""Immutable registry of known models.

The catalog is loaded once (from the built-in defaults or a JSON file) and
only read afterwards, so one instance can be shared by concurrent pipeline
runs without locking.
"""

from __future__ import annotations

import math
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Optional

from forgeplan.catalog.models import AIModel, Provider, TokenCost
from forgeplan.errors import NotFoundError
from forgeplan.utils import load_json

# ---------------------------------------------------------------------------
# Built-in models
# ---------------------------------------------------------------------------

DEFAULT_MODELS: tuple[AIModel, ...] = (
    AIModel(
        id="gpt-4-turbo",
        name="GPT-4 Turbo",
        provider=Provider.OPENAI,
        description="Most capable model for complex reasoning and code generation",
        max_tokens=128_000,
        supports_vision=True,
        cost_per_1k_tokens=TokenCost(input=0.01, output=0.03),
        capabilities=frozenset(
            {"code-generation", "reasoning", "multimodal", "function-calling"}
        ),
    ),
    AIModel(
        id="gpt-4o",
        name="GPT-4o",
        provider=Provider.OPENAI,
        description="Multimodal model optimised for speed and efficiency",
        max_tokens=128_000,
        supports_vision=True,
        cost_per_1k_tokens=TokenCost(input=0.005, output=0.015),
        capabilities=frozenset(
            {"code-generation", "reasoning", "multimodal", "function-calling", "fast-response"}
        ),
    ),
    AIModel(
        id="claude-3-opus",
        name="Claude 3 Opus",
        provider=Provider.ANTHROPIC,
        description="Strong at code analysis and technical documentation",
        max_tokens=200_000,
        supports_vision=True,
        cost_per_1k_tokens=TokenCost(input=0.015, output=0.075),
        capabilities=frozenset({"code-analysis", "documentation", "reasoning", "long-context"}),
        provider_model="claude-3-opus-20240229",
    ),
    AIModel(
        id="claude-3-sonnet",
        name="Claude 3 Sonnet",
        provider=Provider.ANTHROPIC,
        description="Balance between performance and cost for development work",
        max_tokens=200_000,
        supports_vision=True,
        cost_per_1k_tokens=TokenCost(input=0.003, output=0.015),
        capabilities=frozenset({"code-generation", "documentation", "balanced-performance"}),
        provider_model="claude-3-sonnet-20240229",
    ),
    AIModel(
        id="gemini-pro",
        name="Gemini Pro",
        provider=Provider.GOOGLE,
        description="General-purpose Google model with multimodal support",
        max_tokens=32_768,
        supports_vision=True,
        cost_per_1k_tokens=TokenCost(input=0.00125, output=0.005),
        capabilities=frozenset(
            {"multimodal", "code-generation", "translation", "cost-effective"}
        ),
    ),
    AIModel(
        id="llama-3-70b",
        name="Llama 3 70B",
        provider=Provider.META,
        description="Open-weight model for general development work",
        max_tokens=8_192,
        supports_vision=False,
        cost_per_1k_tokens=TokenCost(input=0.00088, output=0.00088),
        capabilities=frozenset(
            {"code-generation", "general-purpose", "cost-effective", "open-source"}
        ),
        provider_model="meta-llama/Llama-3-70b-chat-hf",
    ),
)


# ---------------------------------------------------------------------------
# ModelCatalog
# ---------------------------------------------------------------------------


class ModelCatalog:
    """Read-only lookup over a fixed set of ``AIModel`` entries.

    Iteration and ``list()`` preserve load order.
    """

    def __init__(
        self,
        models: Iterable[AIModel] = DEFAULT_MODELS,
        default_fallback: Optional[str] = "claude-3-sonnet",
    ) -> None:
        by_id: dict[str, AIModel] = {}
        for model in models:
            if model.id in by_id:
                raise ValueError(f"Duplicate model id in catalog: {model.id}")
            by_id[model.id] = model
        self._models = MappingProxyType(by_id)
        self.default_fallback = default_fallback

    @classmethod
    def from_json(cls, path: str | Path, default_fallback: Optional[str] = None) -> "ModelCatalog":
        """Load a catalog from a JSON array of model objects (camelCase or snake_case)."""
        raw = load_json(path)
        if not isinstance(raw, list):
            raise ValueError(f"Catalog file must contain a JSON array: {path}")
        return cls(
            (AIModel.model_validate(item) for item in raw),
            default_fallback=default_fallback,
        )

    # -- Lookups -----------------------------------------------------------

    def get(self, model_id: str) -> AIModel:
        """Return the model with ``model_id`` or raise ``NotFoundError``."""
        model = self._models.get(model_id)
        if model is None:
            raise NotFoundError("model", model_id)
        return model

    def find(self, model_id: str) -> Optional[AIModel]:
        return self._models.get(model_id)

    def list(self) -> list[AIModel]:
        return list(self._models.values())

    def filter_by_capability(self, capability: str) -> list[AIModel]:
        return [m for m in self._models.values() if m.has_capability(capability)]

    def filter_by_provider(self, provider: Provider | str) -> list[AIModel]:
        provider = Provider(provider)
        return [m for m in self._models.values() if m.provider == provider]

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __iter__(self) -> Iterator[AIModel]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    # -- Capability checks -------------------------------------------------

    def supports(
        self,
        model_id: str,
        *,
        max_tokens: Optional[int] = None,
        streaming: Optional[bool] = None,
        vision: Optional[bool] = None,
        capability: Optional[str] = None,
    ) -> bool:
        """Return ``True`` if the model meets every given requirement.

        Unknown models never satisfy anything.
        """
        model = self.find(model_id)
        if model is None:
            return False
        if max_tokens is not None and model.max_tokens < max_tokens:
            return False
        if streaming and not model.supports_streaming:
            return False
        if vision and not model.supports_vision:
            return False
        if capability is not None and capability not in model.capabilities:
            return False
        return True

    def default_fallback_for(self, model_id: str) -> Optional[str]:
        """Pick the fallback model to pair with ``model_id``.

        Uses the configured default unless it is the primary itself (or is
        missing from the catalog), in which case the cheapest other
        code-generation model is chosen.
        """
        if (
            self.default_fallback
            and self.default_fallback != model_id
            and self.default_fallback in self._models
        ):
            return self.default_fallback

        candidates = [
            m
            for m in self.filter_by_capability("code-generation")
            if m.id != model_id
        ]
        if not candidates:
            return None
        cheapest = min(
            candidates,
            key=lambda m: m.cost_per_1k_tokens.input + m.cost_per_1k_tokens.output,
        )
        return cheapest.id

    # -- Cost estimation ---------------------------------------------------

    def estimate_cost(self, prompt: str, model_id: str, max_tokens: int) -> float:
        """Rough USD cost of sending ``prompt`` to ``model_id``.

        Input tokens are approximated as one token per four characters;
        output is assumed to be twice the input, capped at ``max_tokens``.
        """
        model = self.get(model_id)
        input_tokens = math.ceil(len(prompt) / 4)
        output_tokens = min(max_tokens, input_tokens * 2)

        input_cost = (input_tokens / 1000) * model.cost_per_1k_tokens.input
        output_cost = (output_tokens / 1000) * model.cost_per_1k_tokens.output
        return input_cost + output_cost
