"""Dataclasses shared by adapters, registry, orchestrator and sequencer."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.errors import ErrorKind
from src.pricing import Cost, TokenUsage, calculate_cost

ROLES = ("system", "user", "context", "assistant")


@dataclass(frozen=True)
class ModelMessage:
    role: str              # "system", "user", "context" or "assistant"
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")


@dataclass(frozen=True)
class Capabilities:
    reasoning: bool = False
    multimodal: bool = False
    function_calling: bool = False
    streaming: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "reasoning": self.reasoning,
            "multimodal": self.multimodal,
            "functionCalling": self.function_calling,
            "streaming": self.streaming,
        }


@dataclass(frozen=True)
class Pricing:
    input_per_million: float
    output_per_million: float
    reasoning_per_million: float | None = None

    def to_dict(self) -> dict[str, float]:
        data = {
            "inputPerMillion": self.input_per_million,
            "outputPerMillion": self.output_per_million,
        }
        if self.reasoning_per_million is not None:
            data["reasoningPerMillion"] = self.reasoning_per_million
        return data


@dataclass(frozen=True)
class Limits:
    max_tokens: int
    context_window: int

    def to_dict(self) -> dict[str, int]:
        return {"maxTokens": self.max_tokens, "contextWindow": self.context_window}


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    provider: str          # display provider name, e.g. "OpenAI"
    model: str             # model string sent to the vendor
    capabilities: Capabilities
    pricing: Pricing
    limits: Limits
    knowledge_cutoff: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "model": self.model,
            "knowledgeCutoff": self.knowledge_cutoff,
            "capabilities": self.capabilities.to_dict(),
            "pricing": self.pricing.to_dict(),
            "limits": self.limits.to_dict(),
        }


@dataclass(frozen=True)
class CallOptions:
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class ModelResponse:
    content: str
    response_time_ms: int
    model_config: ModelConfig
    reasoning: str | None = None
    token_usage: TokenUsage | None = None
    prompt: str | None = None  # rendered text actually sent to the vendor

    @property
    def model_id(self) -> str:
        return self.model_config.id

    @property
    def cost(self) -> Cost | None:
        """Derived from token usage and the pricing that produced this response."""
        if self.token_usage is None:
            return None
        return calculate_cost(self.token_usage, self.model_config.pricing)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": "success",
            "content": self.content,
            "responseTime": self.response_time_ms,
            "modelConfig": self.model_config.to_dict(),
        }
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        if self.prompt is not None:
            data["systemPrompt"] = self.prompt
        if self.token_usage is not None:
            data["tokenUsage"] = self.token_usage.to_dict()
        cost = self.cost
        if cost is not None:
            data["cost"] = cost.to_dict()
        return data


@dataclass(frozen=True)
class CallFailure:
    """A failed model call encoded as data."""

    model_id: str
    kind: ErrorKind
    message: str
    provider: str | None = None
    status: str = "error"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "modelId": self.model_id,
            "provider": self.provider,
            "error": {"kind": self.kind.value, "message": self.message},
        }


ComparisonResult = dict[str, ModelResponse | CallFailure]


class TurnType(str, Enum):
    INITIAL = "initial"
    REBUTTAL = "rebuttal"
    PROMPT_RESPONSE = "prompt_response"


@dataclass(frozen=True)
class Turn:
    id: str
    seat_id: str
    round: int
    type: TurnType
    response: ModelResponse
    prompt: str                        # the instruction text this turn answered
    rebuts: str | None = None          # id of the turn this one responds to

    @property
    def model_id(self) -> str:
        return self.response.model_id

    @property
    def content(self) -> str:
        return self.response.content

    @property
    def reasoning(self) -> str | None:
        return self.response.reasoning

    @property
    def response_time_ms(self) -> int:
        return self.response.response_time_ms

    @property
    def token_usage(self) -> TokenUsage | None:
        return self.response.token_usage

    @property
    def cost(self) -> Cost | None:
        return self.response.cost

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "seatId": self.seat_id,
            "modelId": self.model_id,
            "round": self.round,
            "type": self.type.value,
            "content": self.content,
            "responseTime": self.response_time_ms,
            "promptUsed": self.prompt,
        }
        if self.rebuts is not None:
            data["rebuts"] = self.rebuts
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        if self.token_usage is not None:
            data["tokenUsage"] = self.token_usage.to_dict()
        if self.cost is not None:
            data["cost"] = self.cost.to_dict()
        return data


@dataclass
class Seat:
    id: str
    model_id: str
    role: str | None = None   # "AFFIRMATIVE" / "NEGATIVE" in debate mode
