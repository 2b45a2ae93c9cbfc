"""Tests for src/models.py dataclasses."""

import pytest

from src.errors import ErrorKind
from src.models import CallFailure, ModelMessage, ModelResponse, Turn, TurnType
from src.pricing import TokenUsage

from tests.conftest import make_model


def test_model_message_fields():
    m = ModelMessage(role="context", content="Earlier notes")
    assert m.role == "context"
    assert m.content == "Earlier notes"


def test_model_message_rejects_unknown_role():
    with pytest.raises(ValueError, match="Unknown message role"):
        ModelMessage(role="tool", content="x")


def test_model_config_to_dict_uses_camel_case():
    data = make_model("m1", reasoning=True).to_dict()
    assert data["id"] == "m1"
    assert data["capabilities"]["reasoning"] is True
    assert "functionCalling" in data["capabilities"]
    assert data["pricing"] == {"inputPerMillion": 1.0, "outputPerMillion": 2.0}
    assert data["limits"]["maxTokens"] == 1000


def test_model_response_without_usage_has_no_cost():
    r = ModelResponse(content="hi", response_time_ms=5, model_config=make_model("m1"))
    assert r.model_id == "m1"
    assert r.cost is None
    assert "cost" not in r.to_dict()


def test_model_response_cost_derived_from_usage():
    r = ModelResponse(
        content="hi",
        response_time_ms=5,
        model_config=make_model("m1", input_price=2.0, output_price=4.0),
        token_usage=TokenUsage(input=1_000_000, output=500_000),
    )
    assert r.cost.input == pytest.approx(2.0)
    assert r.cost.output == pytest.approx(2.0)
    assert r.cost.total == pytest.approx(4.0)


def test_model_response_to_dict():
    r = ModelResponse(
        content="hi",
        response_time_ms=42,
        model_config=make_model("m1"),
        reasoning="because",
        token_usage=TokenUsage(input=1, output=2),
        prompt="user: hello",
    )
    data = r.to_dict()
    assert data["status"] == "success"
    assert data["responseTime"] == 42
    assert data["reasoning"] == "because"
    assert data["systemPrompt"] == "user: hello"
    assert data["tokenUsage"] == {"input": 1, "output": 2}
    assert data["cost"]["total"] == pytest.approx(r.cost.total)
    assert data["modelConfig"]["id"] == "m1"
    assert set(data["modelConfig"]) >= {"id", "name", "provider", "capabilities", "pricing", "limits"}


def test_call_failure_to_dict():
    f = CallFailure(model_id="m2", kind=ErrorKind.TRANSIENT, message="timed out", provider="beta")
    assert f.to_dict() == {
        "status": "error",
        "modelId": "m2",
        "provider": "beta",
        "error": {"kind": "transient", "message": "timed out"},
    }


def test_turn_exposes_response_fields():
    response = ModelResponse(
        content="I rebut.",
        response_time_ms=10,
        model_config=make_model("m1"),
        token_usage=TokenUsage(input=3, output=4),
    )
    turn = Turn(
        id="s:turn-2",
        seat_id="seat2",
        round=1,
        type=TurnType.REBUTTAL,
        response=response,
        prompt="Rebut.",
        rebuts="s:turn-1",
    )
    assert turn.model_id == "m1"
    assert turn.content == "I rebut."
    data = turn.to_dict()
    assert data["type"] == "rebuttal"
    assert data["rebuts"] == "s:turn-1"
    assert data["promptUsed"] == "Rebut."
