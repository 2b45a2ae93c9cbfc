"""Provider registry: merged model catalog and dispatch-by-model-id."""

import logging
from typing import Any

from config.config_loader import AppConfig, CircuitBreakerConfig
from src.errors import ConfigurationError
from src.models import CallOptions, ModelConfig, ModelMessage, ModelResponse
from src.providers.anthropic import AnthropicAdapter
from src.providers.base import ProviderAdapter
from src.providers.circuit_breaker import CircuitBreaker
from src.providers.deepseek import DeepSeekAdapter
from src.providers.gemini import GeminiAdapter
from src.providers.openai_provider import OpenAIAdapter
from src.providers.xai import XAIAdapter

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[ProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "gemini": GeminiAdapter,
    "xai": XAIAdapter,
    "deepseek": DeepSeekAdapter,
}


class ProviderRegistry:
    """Holds one adapter per configured vendor."""

    def __init__(
        self,
        adapters: list[ProviderAdapter],
        breaker_config: CircuitBreakerConfig | None = None,
    ) -> None:
        breaker_config = breaker_config or CircuitBreakerConfig()
        self._adapters = list(adapters)
        self._by_model: dict[str, ProviderAdapter] = {}
        self._breakers: dict[str, CircuitBreaker] = {}
        for adapter in self._adapters:
            self._breakers[adapter.name()] = CircuitBreaker(
                adapter.name(),
                failure_threshold=breaker_config.failure_threshold,
                recovery_timeout_sec=breaker_config.recovery_timeout_sec,
            )
            for model in adapter.models():
                if model.id in self._by_model:
                    logger.warning(
                        "Model %s offered by both %s and %s; keeping %s",
                        model.id,
                        self._by_model[model.id].name(),
                        adapter.name(),
                        self._by_model[model.id].name(),
                    )
                    continue
                self._by_model[model.id] = adapter

    def providers(self) -> list[str]:
        return [a.name() for a in self._adapters]

    def list_models(self) -> list[ModelConfig]:
        return [m for a in self._adapters for m in a.models()]

    def get_model(self, model_id: str) -> ModelConfig | None:
        adapter = self._by_model.get(model_id)
        return adapter.get_model(model_id) if adapter else None

    def models_by_capability(self, capability: str) -> list[ModelConfig]:
        return [m for m in self.list_models() if getattr(m.capabilities, capability)]

    def reasoning_models(self) -> list[ModelConfig]:
        return self.models_by_capability("reasoning")

    def adapter_for(self, model_id: str) -> ProviderAdapter:
        """Raises ConfigurationError for a model no configured vendor offers."""
        adapter = self._by_model.get(model_id)
        if adapter is None:
            raise ConfigurationError(f"Model not found: {model_id}", {"modelId": model_id})
        return adapter

    def breaker_for(self, provider_name: str) -> CircuitBreaker:
        return self._breakers[provider_name]

    async def call(
        self,
        model_id: str,
        messages: list[ModelMessage],
        options: CallOptions | None = None,
    ) -> ModelResponse:
        adapter = self.adapter_for(model_id)
        breaker = self._breakers[adapter.name()]
        return await breaker.call(lambda: adapter.call_model(messages, model_id, options))


def build_registry(config: AppConfig, clients: dict[str, Any] | None = None) -> ProviderRegistry:
    """Build an adapter for every vendor with a credential (or an injected client)."""
    clients = clients or {}
    adapters: list[ProviderAdapter] = []
    for name, settings in config.providers.items():
        if name not in PROVIDER_CLASSES:
            logger.warning("Provider '%s' unknown, skipping", name)
            continue
        client = clients.get(name)
        if client is None and name not in config.available_providers:
            continue
        try:
            adapters.append(PROVIDER_CLASSES[name](settings, client=client))
        except ConfigurationError as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return ProviderRegistry(adapters, config.circuit_breaker)
