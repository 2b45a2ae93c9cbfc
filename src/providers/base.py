"""Abstract base for all vendor adapters."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from config.config_loader import ProviderSettings
from src.errors import (
    MalformedResponseError,
    ProviderConfigurationError,
    ProviderError,
    TransientProviderError,
)
from src.messages import NormalizedPrompt, normalize_messages
from src.models import (
    CallOptions,
    Capabilities,
    Limits,
    ModelConfig,
    ModelMessage,
    ModelResponse,
    Pricing,
)
from src.pricing import Cost, TokenUsage, calculate_cost
from src.reasoning import REASONING_INSTRUCTION, merge_reasoning, split_reasoning

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response generated"

# Statuses below 500 that are still worth a caller retry.
_TRANSIENT_STATUS = {408, 409, 429}


@dataclass(frozen=True)
class Completion:
    """Vendor output reduced to the fields every adapter reports."""

    text: str | None
    reasoning: str | None = None
    usage: TokenUsage | None = None


def catalog_entry(
    model_id: str,
    name: str,
    provider: str,
    *,
    input_price: float,
    output_price: float,
    max_tokens: int,
    context_window: int,
    reasoning: bool = False,
    multimodal: bool = False,
    function_calling: bool = True,
    streaming: bool = True,
    reasoning_price: float | None = None,
    knowledge_cutoff: str = "",
) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        name=name,
        provider=provider,
        model=model_id,
        capabilities=Capabilities(
            reasoning=reasoning,
            multimodal=multimodal,
            function_calling=function_calling,
            streaming=streaming,
        ),
        pricing=Pricing(
            input_per_million=input_price,
            output_per_million=output_price,
            reasoning_per_million=reasoning_price,
        ),
        limits=Limits(max_tokens=max_tokens, context_window=context_window),
        knowledge_cutoff=knowledge_cutoff,
    )


def classify_failure(
    provider_name: str,
    exc: Exception,
    connection_errors: tuple[type[BaseException], ...] = (),
) -> ProviderError:
    """Map an SDK exception onto the typed failure taxonomy."""
    if isinstance(exc, ProviderError):
        return exc

    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        status = getattr(exc, "code", None)
    context = {"status": status} if isinstance(status, int) else {}

    if isinstance(status, int):
        if status >= 500 or status in _TRANSIENT_STATUS:
            return TransientProviderError(provider_name, f"API call failed ({status}): {exc}", context)
        if 400 <= status < 500:
            return ProviderConfigurationError(provider_name, f"Request rejected ({status}): {exc}", context)

    if isinstance(exc, (TimeoutError, ConnectionError, *connection_errors)):
        return TransientProviderError(provider_name, f"Connection failed: {exc}")

    return TransientProviderError(provider_name, f"API call failed: {exc}")


class ProviderAdapter(ABC):
    """One vendor: normalize -> invoke -> parse -> extract reasoning -> price.

    Subclasses hold no mutable state; the vendor client is injected or built
    once from the credential and shared by every call.
    """

    provider_name: str = ""
    catalog: tuple[ModelConfig, ...] = ()
    # Prompt reasoning-capable models to wrap their reasoning in <reasoning> tags.
    uses_reasoning_tags: bool = False
    # Sends assistant turns folded into the user text rather than as separate turns.
    single_turn: bool = False
    connection_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, settings: ProviderSettings, client: Any = None) -> None:
        self._settings = settings
        if client is None:
            api_key = settings.api_key()
            if not api_key:
                raise ProviderConfigurationError(settings.name, f"Missing API key: {settings.api_key_env}")
            client = self._build_client(api_key)
        self._client = client
        self._models = {m.id: m for m in self.catalog}

    def name(self) -> str:
        return self._settings.name

    def models(self) -> list[ModelConfig]:
        return list(self.catalog)

    def get_model(self, model_id: str) -> ModelConfig | None:
        return self._models.get(model_id)

    @abstractmethod
    def _build_client(self, api_key: str) -> Any:
        """Create the vendor SDK client."""
        ...

    @abstractmethod
    async def invoke(
        self,
        prompt: NormalizedPrompt,
        model_config: ModelConfig,
        max_tokens: int,
        temperature: float | None,
    ) -> Any:
        """Send the normalized prompt and return the raw vendor response."""
        ...

    @abstractmethod
    def parse(self, raw: Any) -> Completion:
        """Pull text, structured reasoning and usage out of the raw response.

        Raises:
            MalformedResponseError: When the payload has an unexpected shape.
        """
        ...

    def normalize(self, messages: list[ModelMessage], model_config: ModelConfig) -> NormalizedPrompt:
        prompt = normalize_messages(messages)
        if self.uses_reasoning_tags and model_config.capabilities.reasoning:
            prompt = prompt.with_system_suffix(REASONING_INSTRUCTION)
        return prompt

    def extract_reasoning(self, completion: Completion) -> tuple[str, str | None]:
        """Split visible content from reasoning.

        Structured reasoning reported by the vendor and tag-delimited
        reasoning found in the text are both moved to the reasoning trace.
        """
        if completion.text is None:
            return NO_RESPONSE, merge_reasoning(completion.reasoning)
        content, tagged = split_reasoning(completion.text)
        if not content.strip():
            content = NO_RESPONSE
        return content, merge_reasoning(completion.reasoning, tagged)

    def price_usage(self, usage: TokenUsage | None, model_config: ModelConfig) -> Cost | None:
        if usage is None:
            return None
        return calculate_cost(usage, model_config.pricing)

    def effective_max_tokens(self, model_config: ModelConfig, options: CallOptions | None) -> int:
        requested = options.max_tokens if options and options.max_tokens else self._settings.max_tokens
        return min(requested, model_config.limits.max_tokens)

    def render(self, prompt: NormalizedPrompt) -> str:
        return prompt.render(folded=self.single_turn)

    async def call_model(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> ModelResponse:
        """Run one request/response cycle against the vendor.

        Raises:
            ProviderConfigurationError: Unknown model or request rejected by the vendor.
            TransientProviderError: Timeout, connection failure, 5xx or rate limit.
        """
        model_config = self.get_model(model_id)
        if model_config is None:
            raise ProviderConfigurationError(self.name(), f"Model not found: {model_id}", {"modelId": model_id})

        prompt = self.normalize(messages, model_config)
        max_tokens = self.effective_max_tokens(model_config, options)
        temperature = options.temperature if options and options.temperature is not None else self._settings.temperature
        timeout = self._settings.timeout_sec

        start = time.monotonic()
        try:
            raw = await asyncio.wait_for(
                self.invoke(prompt, model_config, max_tokens, temperature),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise TransientProviderError(self.name(), f"Request timed out after {timeout}s") from exc
        except ProviderError:
            raise
        except Exception as exc:
            raise classify_failure(self.name(), exc, self.connection_errors) from exc
        response_time_ms = int((time.monotonic() - start) * 1000)

        try:
            completion = self.parse(raw)
        except (MalformedResponseError, AttributeError, IndexError, KeyError, TypeError) as exc:
            logger.warning("%s returned a malformed response for %s: %s", self.name(), model_id, exc)
            completion = Completion(text=None)

        content, reasoning = self.extract_reasoning(completion)
        cost = self.price_usage(completion.usage, model_config)

        logger.info(
            "%s %s: %.2fs, %s tokens, $%s",
            self.name(),
            model_id,
            response_time_ms / 1000,
            completion.usage.input + completion.usage.output if completion.usage else None,
            f"{cost.total:.6f}" if cost else "n/a",
        )

        return ModelResponse(
            content=content,
            response_time_ms=response_time_ms,
            model_config=model_config,
            reasoning=reasoning,
            token_usage=completion.usage,
            prompt=self.render(prompt),
        )
