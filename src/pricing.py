"""Token usage and cost accounting."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.models import Pricing

_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class TokenUsage:
    input: int
    output: int
    reasoning: int | None = None

    def to_dict(self) -> dict[str, int]:
        data = {"input": self.input, "output": self.output}
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        return data


@dataclass(frozen=True)
class Cost:
    input: float
    output: float
    total: float
    reasoning: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"input": self.input, "output": self.output}
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        data["total"] = self.total
        return data


def calculate_cost(usage: TokenUsage, pricing: "Pricing") -> Cost:
    """Price a call's token usage.

    ``usage.output`` counts every generated token, reasoning included. When
    the model bills reasoning at its own rate (``pricing.reasoning_per_million``)
    the reported reasoning tokens are moved out of the output charge and
    priced separately; otherwise they are already covered by ``output``.
    """
    input_cost = usage.input / _PER_MILLION * pricing.input_per_million

    billed_output = usage.output
    reasoning_cost: float | None = None
    if usage.reasoning is not None and pricing.reasoning_per_million is not None:
        reasoning_tokens = min(usage.reasoning, usage.output)
        billed_output -= reasoning_tokens
        reasoning_cost = reasoning_tokens / _PER_MILLION * pricing.reasoning_per_million

    output_cost = billed_output / _PER_MILLION * pricing.output_per_million
    total = input_cost + output_cost + (reasoning_cost or 0.0)
    return Cost(input=input_cost, output=output_cost, total=total, reasoning=reasoning_cost)
