"""Compare mode: fan one prompt out to many models, keep every outcome."""

import asyncio
import logging

from src.errors import ErrorKind, ModelCompareError, ProviderError
from src.messages import user_message
from src.models import CallFailure, CallOptions, ComparisonResult, ModelResponse
from src.registry import ProviderRegistry

logger = logging.getLogger(__name__)


async def call_isolated(
    registry: ProviderRegistry,
    model_id: str,
    prompt: str,
    options: CallOptions | None = None,
) -> ModelResponse | CallFailure:
    """Call a single model. Never raises; failures come back as CallFailure."""
    try:
        return await registry.call(model_id, user_message(prompt), options)
    except ModelCompareError as exc:
        provider = exc.provider_name if isinstance(exc, ProviderError) else None
        logger.warning("Model %s failed (%s): %s", model_id, exc.kind.value, exc)
        return CallFailure(model_id=model_id, kind=exc.kind, message=str(exc), provider=provider)
    except Exception as exc:
        logger.warning("Model %s unexpected failure: %s", model_id, exc)
        return CallFailure(
            model_id=model_id,
            kind=ErrorKind.TRANSIENT,
            message=f"Unexpected error: {exc}",
        )


class ComparisonOrchestrator:
    """Owns the result map of one comparison request.

    ``compare`` runs every model concurrently and waits for all of them;
    ``retry`` re-runs one model and replaces only that key.
    """

    def __init__(self, registry: ProviderRegistry, options: CallOptions | None = None) -> None:
        self._registry = registry
        self._options = options
        self._prompt: str | None = None
        self._results: ComparisonResult = {}

    @property
    def prompt(self) -> str | None:
        return self._prompt

    @property
    def results(self) -> ComparisonResult:
        return dict(self._results)

    async def compare(self, prompt: str, model_ids: list[str]) -> ComparisonResult:
        """Run ``prompt`` against every model id.

        Returns:
            Mapping with exactly the requested model ids as keys, in request
            order; each value is a ModelResponse or a CallFailure.

        Raises:
            ValueError: If the prompt is blank.
        """
        if not prompt.strip():
            raise ValueError("prompt must not be empty")

        unique_ids = list(dict.fromkeys(model_ids))
        logger.info("Comparing %d models", len(unique_ids))

        outcomes = await asyncio.gather(
            *(call_isolated(self._registry, m, prompt, self._options) for m in unique_ids)
        )

        self._prompt = prompt
        self._results = dict(zip(unique_ids, outcomes))

        succeeded = sum(isinstance(o, ModelResponse) for o in outcomes)
        logger.info("Comparison complete: %d/%d models succeeded", succeeded, len(unique_ids))
        return self.results

    async def retry(self, model_id: str) -> ComparisonResult:
        """Re-run one model of the last comparison; other entries are untouched.

        Raises:
            RuntimeError: If no comparison has run yet.
            KeyError: If model_id was not part of the comparison.
        """
        if self._prompt is None:
            raise RuntimeError("retry() called before compare()")
        if model_id not in self._results:
            raise KeyError(model_id)

        logger.info("Retrying %s", model_id)
        outcome = await call_isolated(self._registry, model_id, self._prompt, self._options)
        self._results[model_id] = outcome
        return self.results

    def failures(self) -> dict[str, CallFailure]:
        return {k: v for k, v in self._results.items() if isinstance(v, CallFailure)}

    def total_cost(self) -> float:
        total = 0.0
        for outcome in self._results.values():
            if isinstance(outcome, ModelResponse) and outcome.cost is not None:
                total += outcome.cost.total
        return total
