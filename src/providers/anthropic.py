"""Anthropic Claude adapter using anthropic SDK with native async."""

from typing import Any

import anthropic as anthropic_sdk

from src.errors import MalformedResponseError
from src.messages import NormalizedPrompt
from src.models import ModelConfig
from src.pricing import TokenUsage
from src.providers.base import Completion, ProviderAdapter, catalog_entry

ANTHROPIC_MODELS: tuple[ModelConfig, ...] = (
    catalog_entry(
        "claude-sonnet-4-20250514", "Claude Sonnet 4", "Anthropic",
        input_price=3.00, output_price=15.00, max_tokens=8192, context_window=200000,
        reasoning=True, multimodal=True, knowledge_cutoff="April 2024",
    ),
    catalog_entry(
        "claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet", "Anthropic",
        input_price=3.00, output_price=15.00, max_tokens=8192, context_window=200000,
        reasoning=True, multimodal=True, knowledge_cutoff="April 2023",
    ),
    catalog_entry(
        "claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", "Anthropic",
        input_price=3.00, output_price=15.00, max_tokens=8192, context_window=200000,
        multimodal=True, knowledge_cutoff="2022",
    ),
    catalog_entry(
        "claude-3-haiku-20240307", "Claude 3 Haiku", "Anthropic",
        input_price=0.25, output_price=1.25, max_tokens=4096, context_window=200000,
        multimodal=True, knowledge_cutoff="Unknown",
    ),
)


class AnthropicAdapter(ProviderAdapter):
    """Anthropic Claude via anthropic SDK.

    Reasoning-capable models are asked to emit ``<reasoning>`` blocks, which
    are stripped from the visible answer. Native ``thinking`` blocks, when
    present, are kept as reasoning too.
    """

    provider_name = "Anthropic"
    catalog = ANTHROPIC_MODELS
    uses_reasoning_tags = True
    single_turn = True
    connection_errors = (anthropic_sdk.APIConnectionError,)

    def _build_client(self, api_key: str) -> Any:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def invoke(
        self,
        prompt: NormalizedPrompt,
        model_config: ModelConfig,
        max_tokens: int,
        temperature: float | None,
    ) -> Any:
        kwargs: dict[str, Any] = {
            "model": model_config.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt.folded_user()}],
        }
        if prompt.system:
            kwargs["system"] = prompt.system
        if temperature is not None:
            kwargs["temperature"] = temperature
        return await self._client.messages.create(**kwargs)

    def parse(self, raw: Any) -> Completion:
        if not raw.content:
            raise MalformedResponseError(self.name(), "Empty response content")

        text_blocks = [b.text for b in raw.content if b.type == "text"]
        thinking_blocks = [b.thinking for b in raw.content if b.type == "thinking"]

        usage: TokenUsage | None = None
        if raw.usage:
            usage = TokenUsage(input=raw.usage.input_tokens, output=raw.usage.output_tokens)

        return Completion(
            text="\n".join(text_blocks) if text_blocks else None,
            reasoning="\n\n".join(thinking_blocks) if thinking_blocks else None,
            usage=usage,
        )
