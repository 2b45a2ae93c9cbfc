"""FastAPI surface over the registry, comparison orchestrator and turn sequencer.

Comparisons and sessions live in in-memory stores on ``app.state``; nothing
is persisted.
"""

import logging
import uuid
from collections import OrderedDict
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from config.config_loader import PromptsConfig
from src.compare import ComparisonOrchestrator
from src.errors import ConfigurationError, ProviderError, SequencerStateError, TransientProviderError
from src.messages import user_message
from src.models import CallFailure, CallOptions, Turn
from src.registry import ProviderRegistry
from src.turns import SessionMode, TurnSequencer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

DEFAULT_MAX_ENTRIES = 200


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RespondRequest(_CamelModel):
    model_id: str = Field(alias="modelId")
    prompt: str
    max_tokens: int | None = Field(default=None, alias="maxTokens")
    temperature: float | None = None


class CompareRequest(_CamelModel):
    prompt: str
    selected_models: list[str] = Field(alias="selectedModels")


class SessionStartRequest(_CamelModel):
    topic: str
    participants: list[str]
    mode: SessionMode = SessionMode.DEBATE
    intensity: int | None = None


class AdvanceRequest(_CamelModel):
    seat: str | None = None
    rebut_target_id: str | None = Field(default=None, alias="rebutTargetId")
    instruction: str | None = None


def _registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


class BoundedStore(OrderedDict):
    """Least-recently-used map; the oldest entry is dropped past ``max_entries``."""

    def __init__(self, max_entries: int, on_evict=None) -> None:
        super().__init__()
        self.max_entries = max_entries
        self._on_evict = on_evict

    def get(self, key, default=None):
        if key not in self:
            return default
        self.move_to_end(key)
        return self[key]

    def put(self, key, value) -> None:
        self[key] = value
        self.move_to_end(key)
        while len(self) > self.max_entries:
            evicted_key, evicted = self.popitem(last=False)
            logger.debug("Evicted %s from store", evicted_key)
            if self._on_evict:
                self._on_evict(evicted)


def _session(request: Request, session_id: str) -> TurnSequencer:
    session = request.app.state.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


def _session_view(session: TurnSequencer) -> dict[str, Any]:
    return {
        "id": session.session_id,
        "mode": session.mode.value,
        "status": session.status.value,
        "topic": session.topic,
        "intensity": session.intensity.level if session.intensity else None,
        "seats": [{"id": s.id, "modelId": s.model_id, "role": s.role} for s in session.seats],
        "transcript": [t.to_dict() for t in session.transcript],
        "totalCost": session.total_cost(),
    }


@router.get("/models")
async def list_models(request: Request) -> list[dict[str, Any]]:
    return [m.to_dict() for m in _registry(request).list_models()]


@router.post("/models/respond")
async def respond(payload: RespondRequest, request: Request) -> dict[str, Any]:
    options = CallOptions(max_tokens=payload.max_tokens, temperature=payload.temperature)
    response = await _registry(request).call(payload.model_id, user_message(payload.prompt), options)
    return response.to_dict()


@router.post("/compare")
async def compare(payload: CompareRequest, request: Request, response: Response) -> dict[str, Any]:
    """Returns the ComparisonResult; its id comes back in ``X-Comparison-Id``."""
    orchestrator = ComparisonOrchestrator(_registry(request))
    results = await orchestrator.compare(payload.prompt, payload.selected_models)
    comparison_id = uuid.uuid4().hex
    request.app.state.comparisons.put(comparison_id, orchestrator)
    response.headers["X-Comparison-Id"] = comparison_id
    return {model_id: outcome.to_dict() for model_id, outcome in results.items()}


@router.post("/compare/{comparison_id}/retry/{model_id}")
async def retry_model(comparison_id: str, model_id: str, request: Request) -> dict[str, Any]:
    orchestrator = request.app.state.comparisons.get(comparison_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail=f"Comparison not found: {comparison_id}")
    try:
        results = await orchestrator.retry(model_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Model {model_id} not part of comparison {comparison_id}")
    return {mid: outcome.to_dict() for mid, outcome in results.items()}


@router.post("/sessions", status_code=201)
async def start_session(payload: SessionStartRequest, request: Request) -> dict[str, Any]:
    session = TurnSequencer(_registry(request), request.app.state.prompts)
    session.start(payload.topic, payload.participants, payload.mode, payload.intensity)
    request.app.state.sessions.put(session.session_id, session)
    return _session_view(session)


@router.post("/sessions/{session_id}/turns")
async def advance_session(session_id: str, payload: AdvanceRequest, request: Request) -> dict[str, Any]:
    session = _session(request, session_id)
    outcome = await session.advance_turn(payload.seat, payload.rebut_target_id, payload.instruction)
    body: dict[str, Any] = {"status": session.status.value, "turn": None}
    if isinstance(outcome, Turn):
        body["turn"] = outcome.to_dict()
    elif isinstance(outcome, CallFailure):
        body["failure"] = outcome.to_dict()
    else:
        body["discarded"] = True
    return body


@router.post("/sessions/{session_id}/cancel")
async def cancel_session(session_id: str, request: Request) -> dict[str, Any]:
    session = _session(request, session_id)
    session.cancel()
    return _session_view(session)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request) -> dict[str, Any]:
    return _session_view(_session(request, session_id))


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, request: Request) -> None:
    session = _session(request, session_id)
    session.cancel()
    del request.app.state.sessions[session_id]


@router.delete("/compare/{comparison_id}", status_code=204)
async def delete_comparison(comparison_id: str, request: Request) -> None:
    if request.app.state.comparisons.pop(comparison_id, None) is None:
        raise HTTPException(status_code=404, detail=f"Comparison not found: {comparison_id}")


def _error_body(exc: Exception) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": str(exc)}
    if isinstance(exc, ProviderError):
        body["provider"] = exc.provider_name
    return body


def create_app(
    registry: ProviderRegistry,
    prompts: PromptsConfig,
    max_entries: int = DEFAULT_MAX_ENTRIES,
) -> FastAPI:
    app = FastAPI(title="Model Compare")
    app.state.registry = registry
    app.state.prompts = prompts
    app.state.comparisons = BoundedStore(max_entries)
    # an evicted session may still have a turn in flight
    app.state.sessions = BoundedStore(max_entries, on_evict=lambda session: session.cancel())

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        # unknown model id vs. a request the vendor refused
        status = 400 if isinstance(exc, ProviderError) else 404
        return JSONResponse(status_code=status, content=_error_body(exc))

    @app.exception_handler(TransientProviderError)
    async def _transient_error(request: Request, exc: TransientProviderError) -> JSONResponse:
        return JSONResponse(status_code=502, content=_error_body(exc))

    @app.exception_handler(SequencerStateError)
    async def _state_error(request: Request, exc: SequencerStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content=_error_body(exc))

    @app.exception_handler(ValueError)
    async def _value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(exc))

    app.include_router(router)
    logger.info("API ready with %d models", len(registry.list_models()))
    return app
