"""DeepSeek adapter using openai SDK (OpenAI-compatible API)."""

from typing import Any

from openai import AsyncOpenAI

from src.models import ModelConfig
from src.providers.base import catalog_entry
from src.providers.openai_provider import OpenAIAdapter

DEEPSEEK_BASE_URL = "https://api.deepseek.com"

DEEPSEEK_MODELS: tuple[ModelConfig, ...] = (
    catalog_entry(
        "deepseek-reasoner", "DeepSeek R1 Reasoner", "DeepSeek",
        input_price=0.55, output_price=2.19, reasoning_price=2.19,
        max_tokens=8000, context_window=128000, reasoning=True,
    ),
    catalog_entry(
        "deepseek-chat", "DeepSeek V3 Chat", "DeepSeek",
        input_price=0.27, output_price=1.10, max_tokens=4000, context_window=128000,
    ),
)


class DeepSeekAdapter(OpenAIAdapter):
    """DeepSeek models; R1 returns its chain of thought as reasoning_content."""

    provider_name = "DeepSeek"
    catalog = DEEPSEEK_MODELS
    max_tokens_param = "max_tokens"

    def _build_client(self, api_key: str) -> Any:
        return AsyncOpenAI(api_key=api_key, base_url=self._settings.base_url or DEEPSEEK_BASE_URL)

    def supports_temperature(self, model_config: ModelConfig) -> bool:
        return True
