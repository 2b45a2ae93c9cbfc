"""Load settings.yaml into typed dataclasses. Reports which vendors have credentials."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ProviderSettings:
    name: str
    api_key_env: str
    timeout_sec: float
    max_tokens: int
    base_url: str | None = None
    temperature: float | None = None

    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "").strip()


@dataclass
class IntensityLevel:
    level: int
    label: str
    guidance: str
    summary: str = ""

    @property
    def heading(self) -> str:
        return f"Level {self.level} - {self.label}"

    @property
    def full_text(self) -> str:
        return f"{self.heading}\n{self.guidance}".strip()


@dataclass
class PromptsConfig:
    debate_preamble: str
    debate_base: str
    opening: str
    rebuttal: str
    battle_prompt: str
    challenger: str
    creative_original: str
    creative_enhancement: str
    intensities: dict[int, IntensityLevel] = field(default_factory=dict)


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 3
    recovery_timeout_sec: float = 30.0


@dataclass
class DefaultsConfig:
    output_dir: Path
    intensity: int = 2
    compare_panel: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[str, ProviderSettings]
    prompts: PromptsConfig
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    available_providers: set[str] = field(default_factory=set)


def _load_intensities(raw: dict) -> dict[int, IntensityLevel]:
    levels: dict[int, IntensityLevel] = {}
    for level, entry in raw.items():
        levels[int(level)] = IntensityLevel(
            level=int(level),
            label=str(entry["label"]),
            guidance=str(entry["guidance"]).strip(),
            summary=str(entry.get("summary", "")),
        )
    return levels


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Missing API keys are logged, not raised. A vendor without a key is
    simply left out of available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw.get("defaults", {})
    defaults = DefaultsConfig(
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
        intensity=int(defaults_raw.get("intensity", 2)),
        compare_panel=list(defaults_raw.get("compare_panel", [])),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        debate_preamble=prompts_raw["debate_preamble"].strip(),
        debate_base=prompts_raw["debate_base"].strip(),
        opening=prompts_raw["opening"].strip(),
        rebuttal=prompts_raw["rebuttal"].strip(),
        battle_prompt=prompts_raw["battle_prompt"].strip(),
        challenger=prompts_raw["challenger"].strip(),
        creative_original=prompts_raw["creative_original"].strip(),
        creative_enhancement=prompts_raw["creative_enhancement"].strip(),
        intensities=_load_intensities(raw.get("intensities", {})),
    )

    breaker_raw = raw.get("circuit_breaker", {})
    breaker = CircuitBreakerConfig(
        failure_threshold=int(breaker_raw.get("failure_threshold", 3)),
        recovery_timeout_sec=float(breaker_raw.get("recovery_timeout_sec", 30)),
    )

    providers: dict[str, ProviderSettings] = {}
    available_providers: set[str] = set()

    for provider_name, provider_raw in raw["providers"].items():
        settings = ProviderSettings(
            name=provider_name,
            api_key_env=provider_raw["api_key_env"],
            timeout_sec=float(provider_raw["timeout_sec"]),
            max_tokens=int(provider_raw["max_tokens"]),
            base_url=provider_raw.get("base_url"),
            temperature=provider_raw.get("temperature"),
        )
        providers[provider_name] = settings

        if settings.api_key():
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                settings.api_key_env,
            )

    return AppConfig(
        defaults=defaults,
        providers=providers,
        prompts=prompts,
        circuit_breaker=breaker,
        available_providers=available_providers,
    )
