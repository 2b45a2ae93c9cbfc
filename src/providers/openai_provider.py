"""OpenAI adapter using the openai SDK's chat completions API with native async."""

from typing import Any

import openai
from openai import AsyncOpenAI

from src.errors import MalformedResponseError
from src.messages import NormalizedPrompt
from src.models import ModelConfig
from src.pricing import TokenUsage
from src.providers.base import Completion, ProviderAdapter, catalog_entry

OPENAI_MODELS: tuple[ModelConfig, ...] = (
    catalog_entry(
        "gpt-5-2025-08-07", "GPT-5", "OpenAI",
        input_price=1.25, output_price=10.00, max_tokens=128000, context_window=400000,
        reasoning=True, multimodal=True, knowledge_cutoff="October 2024",
    ),
    catalog_entry(
        "gpt-5-mini-2025-08-07", "GPT-5 Mini", "OpenAI",
        input_price=0.25, output_price=2.00, max_tokens=128000, context_window=400000,
        reasoning=True, multimodal=True, knowledge_cutoff="October 2024",
    ),
    catalog_entry(
        "gpt-5-nano-2025-08-07", "GPT-5 Nano", "OpenAI",
        input_price=0.05, output_price=0.40, max_tokens=128000, context_window=400000,
        reasoning=True, multimodal=True, knowledge_cutoff="May 31, 2024",
    ),
    catalog_entry(
        "gpt-4.1-2025-04-14", "GPT-4.1", "OpenAI",
        input_price=5.00, output_price=15.00, max_tokens=16384, context_window=200000,
        multimodal=True, knowledge_cutoff="June 2024",
    ),
    catalog_entry(
        "gpt-4.1-mini-2025-04-14", "GPT-4.1 Mini", "OpenAI",
        input_price=1.00, output_price=4.00, max_tokens=16384, context_window=128000,
        multimodal=True, knowledge_cutoff="June 2024",
    ),
    catalog_entry(
        "gpt-4.1-nano-2025-04-14", "GPT-4.1 Nano", "OpenAI",
        input_price=0.50, output_price=2.00, max_tokens=16384, context_window=128000,
        multimodal=True, knowledge_cutoff="October 2023",
    ),
    catalog_entry(
        "gpt-4o-mini-2024-07-18", "GPT-4o Mini", "OpenAI",
        input_price=0.15, output_price=0.60, max_tokens=16384, context_window=128000,
        multimodal=True, knowledge_cutoff="October 2023",
    ),
    catalog_entry(
        "o4-mini-2025-04-16", "OpenAI o4 Mini", "OpenAI",
        input_price=2.00, output_price=8.00, max_tokens=65536, context_window=128000,
        reasoning=True, function_calling=False, streaming=False, knowledge_cutoff="June 2024",
    ),
    catalog_entry(
        "o3-2025-04-16", "OpenAI o3", "OpenAI",
        input_price=15.00, output_price=60.00, max_tokens=65536, context_window=200000,
        reasoning=True, function_calling=False, streaming=False, knowledge_cutoff="June 2024",
    ),
)


class OpenAIAdapter(ProviderAdapter):
    """OpenAI models via openai SDK. Base for the OpenAI-compatible vendors."""

    provider_name = "OpenAI"
    catalog = OPENAI_MODELS
    connection_errors = (openai.APIConnectionError,)
    # Name of the output-limit parameter the endpoint accepts.
    max_tokens_param = "max_completion_tokens"

    def _build_client(self, api_key: str) -> Any:
        return AsyncOpenAI(api_key=api_key, base_url=self._settings.base_url)

    def supports_temperature(self, model_config: ModelConfig) -> bool:
        # Reasoning models reject sampling parameters.
        return not model_config.capabilities.reasoning

    async def invoke(
        self,
        prompt: NormalizedPrompt,
        model_config: ModelConfig,
        max_tokens: int,
        temperature: float | None,
    ) -> Any:
        kwargs: dict[str, Any] = {
            "model": model_config.model,
            "messages": prompt.chat_messages(),
            self.max_tokens_param: max_tokens,
        }
        if temperature is not None and self.supports_temperature(model_config):
            kwargs["temperature"] = temperature
        return await self._client.chat.completions.create(**kwargs)

    def parse(self, raw: Any) -> Completion:
        choice = raw.choices[0] if raw.choices else None
        if choice is None or choice.message is None:
            raise MalformedResponseError(self.name(), "Response has no choices")

        message = choice.message
        # DeepSeek R1 and Grok mini models expose the chain of thought here.
        reasoning = getattr(message, "reasoning_content", None)

        usage: TokenUsage | None = None
        if raw.usage:
            details = getattr(raw.usage, "completion_tokens_details", None)
            usage = TokenUsage(
                input=raw.usage.prompt_tokens,
                output=raw.usage.completion_tokens,
                reasoning=getattr(details, "reasoning_tokens", None),
            )

        return Completion(
            text=message.content,
            reasoning=reasoning if isinstance(reasoning, str) else None,
            usage=usage,
        )
