"""xAI Grok adapter using openai SDK (OpenAI-compatible API)."""

from typing import Any

from openai import AsyncOpenAI

from src.errors import ProviderConfigurationError
from src.models import ModelConfig
from src.providers.base import catalog_entry
from src.providers.openai_provider import OpenAIAdapter

XAI_MODELS: tuple[ModelConfig, ...] = (
    catalog_entry(
        "grok-4-0709", "Grok 4", "xAI",
        input_price=5.00, output_price=15.00, max_tokens=8192, context_window=128000,
        reasoning=True, multimodal=True, knowledge_cutoff="October 2023",
    ),
    catalog_entry(
        "grok-3", "Grok 3", "xAI",
        input_price=2.00, output_price=10.00, max_tokens=8192, context_window=128000,
        knowledge_cutoff="December 2024",
    ),
    catalog_entry(
        "grok-3-mini", "Grok 3 Mini", "xAI",
        input_price=0.50, output_price=2.00, max_tokens=8192, context_window=128000,
        knowledge_cutoff="October 2023",
    ),
    catalog_entry(
        "grok-3-fast", "Grok 3 Fast", "xAI",
        input_price=1.00, output_price=4.00, max_tokens=8192, context_window=128000,
        knowledge_cutoff="December 2024",
    ),
    catalog_entry(
        "grok-3-mini-fast", "Grok 3 Mini Fast", "xAI",
        input_price=0.25, output_price=1.00, max_tokens=8192, context_window=128000,
        knowledge_cutoff="October 2023",
    ),
)


class XAIAdapter(OpenAIAdapter):
    """xAI Grok models via OpenAI-compatible API."""

    provider_name = "xAI"
    catalog = XAI_MODELS
    max_tokens_param = "max_tokens"

    def _build_client(self, api_key: str) -> Any:
        if not self._settings.base_url:
            raise ProviderConfigurationError(self.name(), "base_url is required for xAI provider")
        return AsyncOpenAI(api_key=api_key, base_url=self._settings.base_url)

    def supports_temperature(self, model_config: ModelConfig) -> bool:
        return True
