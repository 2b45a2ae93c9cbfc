"""Tests for src/registry.py."""

from unittest.mock import AsyncMock

import pytest

from config.config_loader import CircuitBreakerConfig, ProviderSettings
from src.errors import ConfigurationError, TransientProviderError
from src.messages import user_message
from src.providers.anthropic import AnthropicAdapter
from src.providers.circuit_breaker import BreakerState
from src.registry import ProviderRegistry, build_registry

from tests.conftest import FakeAdapter, make_model, reply


def test_list_models_is_union(fake_registry):
    assert [m.id for m in fake_registry.list_models()] == ["m1", "m2"]
    assert fake_registry.providers() == ["alpha", "beta"]


def test_get_model_and_capabilities(fake_registry):
    assert fake_registry.get_model("m2").capabilities.reasoning is True
    assert fake_registry.get_model("missing") is None
    assert [m.id for m in fake_registry.reasoning_models()] == ["m2"]
    assert [m.id for m in fake_registry.models_by_capability("multimodal")] == []


async def test_call_dispatches_to_owning_adapter(fake_registry, alpha_client, beta_client):
    response = await fake_registry.call("m2", user_message("hello"))

    assert response.content == "Hi from m2"
    assert response.model_id == "m2"
    beta_client.assert_awaited_once()
    alpha_client.assert_not_awaited()


async def test_unknown_model_is_configuration_error(fake_registry):
    with pytest.raises(ConfigurationError, match="Model not found"):
        await fake_registry.call("m9", user_message("hello"))


def test_duplicate_model_keeps_first_adapter():
    first = FakeAdapter("first", (make_model("shared"),))
    second = FakeAdapter("second", (make_model("shared"),))
    registry = ProviderRegistry([first, second])
    assert registry.adapter_for("shared") is first


async def test_breaker_opens_per_provider():
    failing = AsyncMock(side_effect=TransientProviderError("alpha", "503"))
    registry = ProviderRegistry(
        [
            FakeAdapter("alpha", (make_model("m1"),), client=failing),
            FakeAdapter("beta", (make_model("m2"),), client=AsyncMock(return_value=reply("ok"))),
        ],
        CircuitBreakerConfig(failure_threshold=2, recovery_timeout_sec=60),
    )
    for _ in range(2):
        with pytest.raises(TransientProviderError):
            await registry.call("m1", user_message("x"))

    assert registry.breaker_for("alpha").state is BreakerState.OPEN
    assert registry.breaker_for("beta").state is BreakerState.CLOSED
    assert (await registry.call("m2", user_message("x"))).content == "ok"


def test_build_registry_skips_providers_without_keys(sample_app_config, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    sample_app_config.available_providers = set()
    registry = build_registry(sample_app_config)
    assert registry.providers() == []
    assert registry.list_models() == []


def test_build_registry_uses_injected_clients(sample_app_config):
    sample_app_config.available_providers = set()
    registry = build_registry(sample_app_config, clients={"anthropic": object()})
    assert registry.providers() == ["anthropic"]
    assert isinstance(registry.adapter_for("claude-3-haiku-20240307"), AnthropicAdapter)


def test_build_registry_skips_unknown_provider(sample_app_config):
    sample_app_config.providers["mystery"] = ProviderSettings(
        name="mystery", api_key_env="MYSTERY_KEY", timeout_sec=10, max_tokens=10
    )
    sample_app_config.available_providers = {"mystery"}
    registry = build_registry(sample_app_config, clients={"anthropic": object()})
    assert registry.providers() == ["anthropic"]
