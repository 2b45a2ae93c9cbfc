"""Gemini adapter using google-genai SDK with native async."""

from typing import Any

from google import genai
from google.genai import types as genai_types

from src.errors import MalformedResponseError
from src.messages import NormalizedPrompt
from src.models import ModelConfig
from src.pricing import TokenUsage
from src.providers.base import Completion, ProviderAdapter, catalog_entry

_THINKING_BUDGET = 4000

GEMINI_MODELS: tuple[ModelConfig, ...] = (
    catalog_entry(
        "gemini-2.5-pro", "Gemini 2.5 Pro", "Google",
        input_price=2.50, output_price=10.00, max_tokens=8192, context_window=2000000,
        reasoning=True, multimodal=True, knowledge_cutoff="Early 2023",
    ),
    catalog_entry(
        "gemini-2.5-flash", "Gemini 2.5 Flash", "Google",
        input_price=0.075, output_price=0.30, max_tokens=8192, context_window=1000000,
        reasoning=True, multimodal=True, knowledge_cutoff="Early 2023",
    ),
    catalog_entry(
        "gemini-2.0-flash", "Gemini 2.0 Flash", "Google",
        input_price=0.075, output_price=0.30, max_tokens=8192, context_window=1000000,
        multimodal=True, knowledge_cutoff="September 2021",
    ),
)


class GeminiAdapter(ProviderAdapter):
    """Google Gemini via google-genai SDK. Thought parts become the reasoning trace."""

    provider_name = "Google"
    catalog = GEMINI_MODELS
    single_turn = True

    def _build_client(self, api_key: str) -> Any:
        return genai.Client(api_key=api_key)

    async def invoke(
        self,
        prompt: NormalizedPrompt,
        model_config: ModelConfig,
        max_tokens: int,
        temperature: float | None,
    ) -> Any:
        thinking = None
        if model_config.capabilities.reasoning:
            thinking = genai_types.ThinkingConfig(
                include_thoughts=True,
                thinking_budget=_THINKING_BUDGET,
            )
        return await self._client.aio.models.generate_content(
            model=model_config.model,
            contents=prompt.folded_user(),
            config=genai_types.GenerateContentConfig(
                max_output_tokens=max_tokens,
                system_instruction=prompt.system,
                temperature=temperature,
                thinking_config=thinking,
            ),
        )

    def parse(self, raw: Any) -> Completion:
        if not raw.candidates:
            raise MalformedResponseError(self.name(), "Response has no candidates")

        content = raw.candidates[0].content
        parts = (content.parts if content else None) or []
        answer = [p.text for p in parts if p.text and not getattr(p, "thought", False)]
        thoughts = [p.text for p in parts if p.text and getattr(p, "thought", False)]

        usage: TokenUsage | None = None
        meta = raw.usage_metadata
        if meta:
            # candidates_token_count excludes thinking tokens; output counts both.
            thinking = getattr(meta, "thoughts_token_count", None)
            usage = TokenUsage(
                input=meta.prompt_token_count or 0,
                output=(meta.candidates_token_count or 0) + (thinking or 0),
                reasoning=thinking,
            )

        return Completion(
            text="".join(answer) if answer else None,
            reasoning="\n\n".join(thoughts) if thoughts else None,
            usage=usage,
        )
