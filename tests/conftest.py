"""Shared pytest fixtures."""

from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest
import yaml

from config.config_loader import (
    AppConfig,
    CircuitBreakerConfig,
    DefaultsConfig,
    IntensityLevel,
    PromptsConfig,
    ProviderSettings,
)
from src.models import ModelConfig
from src.pricing import TokenUsage
from src.providers.base import Completion, ProviderAdapter, catalog_entry
from src.registry import ProviderRegistry


def make_model(
    model_id: str,
    provider: str = "Fake",
    *,
    reasoning: bool = False,
    input_price: float = 1.0,
    output_price: float = 2.0,
    max_tokens: int = 1000,
) -> ModelConfig:
    return catalog_entry(
        model_id, model_id.upper(), provider,
        input_price=input_price, output_price=output_price,
        max_tokens=max_tokens, context_window=8000, reasoning=reasoning,
    )


def reply(text: str | None, input_tokens: int = 10, output_tokens: int = 20, reasoning: str | None = None):
    """Raw response object understood by FakeAdapter.parse."""
    return SimpleNamespace(
        text=text,
        reasoning=reasoning,
        usage=TokenUsage(input=input_tokens, output=output_tokens),
    )


class FakeAdapter(ProviderAdapter):
    """Test double adapter. ``client`` is an AsyncMock called once per request."""

    provider_name = "Fake"

    def __init__(
        self,
        name: str = "fake",
        models: tuple[ModelConfig, ...] = (),
        client: Any = None,
        timeout_sec: float = 5.0,
        max_tokens: int = 500,
    ) -> None:
        self.catalog = tuple(models) or (make_model(f"{name}-model"),)
        settings = ProviderSettings(
            name=name,
            api_key_env="FAKE_API_KEY",
            timeout_sec=timeout_sec,
            max_tokens=max_tokens,
        )
        super().__init__(settings, client=client or AsyncMock(return_value=reply("Mock response")))

    def _build_client(self, api_key: str) -> Any:
        raise AssertionError("FakeAdapter always gets an injected client")

    async def invoke(self, prompt, model_config, max_tokens, temperature):
        return await self._client(prompt=prompt, model=model_config.model, max_tokens=max_tokens)

    def parse(self, raw: Any) -> Completion:
        return Completion(text=raw.text, reasoning=raw.reasoning, usage=raw.usage)


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        debate_preamble="You are in a debate.",
        debate_base="You are {role}, arguing {position}: {topic}.",
        opening="Open on {topic}; it should be {outcome}. ({intensity_heading})",
        rebuttal="{opponent_quote}Rebut. {topic} should be {outcome}. ({intensity_heading})",
        battle_prompt="You are PersonX.\n{prompt}",
        challenger='Original prompt: "{original_prompt}". PersonX said: "{response}". Push back.',
        creative_original="Write something for: {original_prompt}",
        creative_enhancement='Improve this for "{original_prompt}":\n{response}',
        intensities={
            level: IntensityLevel(level=level, label=label, guidance=f"Guidance {level}")
            for level, label in [(1, "Respectful"), (2, "Assertive"), (3, "Combative"), (4, "Scorched Earth")]
        },
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(output_dir=tmp_path / "output", intensity=2, compare_panel=["m1", "m2"])


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    settings = ProviderSettings(
        name="anthropic",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=2000,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        providers={"anthropic": settings},
        prompts=sample_prompts_config,
        circuit_breaker=CircuitBreakerConfig(),
        available_providers={"anthropic"},
    )


@pytest.fixture
def alpha_client() -> AsyncMock:
    return AsyncMock(return_value=reply("Hi from m1"))


@pytest.fixture
def beta_client() -> AsyncMock:
    return AsyncMock(return_value=reply("Hi from m2"))


@pytest.fixture
def fake_registry(alpha_client: AsyncMock, beta_client: AsyncMock) -> ProviderRegistry:
    """m1 served by vendor 'alpha', m2 by vendor 'beta'."""
    return ProviderRegistry(
        [
            FakeAdapter("alpha", (make_model("m1"),), client=alpha_client, timeout_sec=0.2),
            FakeAdapter("beta", (make_model("m2", reasoning=True),), client=beta_client, timeout_sec=0.2),
        ]
    )


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "defaults": {
            "output_dir": str(tmp_path / "output"),
            "intensity": 3,
            "compare_panel": ["m1", "m2"],
        },
        "providers": {
            "anthropic": {
                "api_key_env": "TEST_ANTHROPIC_KEY",
                "timeout_sec": 60,
                "max_tokens": 2000,
            },
            "xai": {
                "api_key_env": "TEST_GROK_KEY",
                "base_url": "https://api.x.ai/v1",
                "timeout_sec": 30,
                "max_tokens": 1000,
                "temperature": 0.5,
            },
        },
        "circuit_breaker": {"failure_threshold": 5, "recovery_timeout_sec": 10},
        "intensities": {
            1: {"label": "Respectful", "guidance": "Be kind.\n"},
            3: {"label": "Combative", "guidance": "Be sharp.\n", "summary": "sharp"},
        },
        "prompts": {
            "debate_preamble": "Debate.\n",
            "debate_base": "{role} {position} {topic}",
            "opening": "Open {topic} {outcome} {intensity_heading}",
            "rebuttal": "{opponent_quote}Rebut {topic} {outcome} {intensity_heading}",
            "battle_prompt": "{prompt}",
            "challenger": "{original_prompt} {response}",
            "creative_original": "{original_prompt}",
            "creative_enhancement": "{original_prompt} {response}",
        },
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path
