"""Turn-based sessions: debate, battle and creative combat.

One model speaks at a time. Each turn is an explicit ``advance_turn`` call;
the caller decides who speaks next and when to stop. A session owns its
transcript and is the only writer to it.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from config.config_loader import IntensityLevel, PromptsConfig
from src.errors import ErrorKind, ModelCompareError, ProviderError, SequencerStateError
from src.models import CallFailure, CallOptions, ModelMessage, ModelResponse, Seat, Turn, TurnType
from src.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEBATE_ROLES = ("AFFIRMATIVE", "NEGATIVE")


class SessionStatus(str, Enum):
    IDLE = "idle"
    AWAITING_OPENING = "awaiting_opening"
    AWAITING_NEXT_TURN = "awaiting_next_turn"
    STREAMING_TURN = "streaming_turn"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class SessionMode(str, Enum):
    DEBATE = "debate"
    BATTLE = "battle"
    CREATIVE = "creative"


_ADVANCEABLE = (SessionStatus.AWAITING_OPENING, SessionStatus.AWAITING_NEXT_TURN)


@dataclass(frozen=True)
class TurnPlan:
    seat: Seat
    type: TurnType
    messages: list[ModelMessage]
    instruction: str
    rebuts: str | None = None


def _quote_opponent(content: str) -> str:
    trimmed = content.strip()
    if not trimmed:
        return ""
    return f'Opponent\'s latest statement:\n"""\n{trimmed}\n"""\n\n'


def _position(role: str) -> tuple[str, str]:
    """(position, outcome) for a debate role."""
    if role == "AFFIRMATIVE":
        return "FOR", "adopted"
    return "AGAINST", "rejected"


class TurnSequencer:
    """State machine for one turn-based session.

    idle -> awaiting_opening -> streaming_turn -> awaiting_next_turn -> ...
    -> finished | cancelled. A response that arrives after ``cancel()`` or
    ``reset()`` is discarded and never touches the transcript.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        prompts: PromptsConfig,
        options: CallOptions | None = None,
        session_id: str | None = None,
    ) -> None:
        self._registry = registry
        self._prompts = prompts
        self._options = options
        self.session_id = session_id or uuid.uuid4().hex
        self._status = SessionStatus.IDLE
        self._mode = SessionMode.DEBATE
        self._topic = ""
        self._intensity: IntensityLevel | None = None
        self._seats: list[Seat] = []
        self._transcript: list[Turn] = []
        self._generation = 0
        self._inflight: asyncio.Future[ModelResponse] | None = None

    # -- inspection -------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def intensity(self) -> IntensityLevel | None:
        return self._intensity

    @property
    def seats(self) -> list[Seat]:
        return list(self._seats)

    @property
    def transcript(self) -> list[Turn]:
        return list(self._transcript)

    def total_cost(self) -> float:
        return sum(t.cost.total for t in self._transcript if t.cost is not None)

    def expected_seat(self) -> Seat | None:
        """Seat whose turn it is in debate mode; None in the free-order modes."""
        if self._mode is not SessionMode.DEBATE or not self._seats:
            return None
        return self._seats[len(self._transcript) % len(self._seats)]

    # -- lifecycle --------------------------------------------------------

    def start(
        self,
        topic: str,
        participants: list[str],
        mode: SessionMode | str = SessionMode.DEBATE,
        intensity: int | None = None,
    ) -> None:
        """Seat the participants in order and wait for the opening turn.

        Raises:
            SequencerStateError: If the session was already started.
            ValueError: On a blank topic, wrong participant count or unknown intensity.
        """
        if self._status is not SessionStatus.IDLE:
            raise SequencerStateError(f"Session already started ({self._status.value})")
        mode = SessionMode(mode)
        if not topic.strip():
            raise ValueError("topic must not be empty")
        if mode is SessionMode.DEBATE and len(participants) != 2:
            raise ValueError(f"Debate needs exactly 2 participants, got {len(participants)}")
        if not participants:
            raise ValueError("At least one participant is required")

        level: IntensityLevel | None = None
        if intensity is not None:
            if intensity not in self._prompts.intensities:
                raise ValueError(f"Unknown intensity level: {intensity}")
            level = self._prompts.intensities[intensity]
        elif mode is SessionMode.DEBATE:
            raise ValueError("Debate needs an intensity level")

        for model_id in participants:
            self._registry.adapter_for(model_id)

        self._mode = mode
        self._topic = topic.strip()
        self._intensity = level
        self._seats = []
        for i, model_id in enumerate(participants):
            role = DEBATE_ROLES[i] if mode is SessionMode.DEBATE else None
            self._seats.append(Seat(id=f"seat{i + 1}", model_id=model_id, role=role))
        self._status = SessionStatus.AWAITING_OPENING
        logger.info(
            "Session %s started: %s with %s",
            self.session_id,
            mode.value,
            ", ".join(participants),
        )

    def add_seat(self, model_id: str) -> Seat:
        """Seat another model (battle and creative modes)."""
        if self._mode is SessionMode.DEBATE:
            raise SequencerStateError("Debate seats are fixed")
        if self._status in (SessionStatus.IDLE, SessionStatus.FINISHED, SessionStatus.CANCELLED):
            raise SequencerStateError(f"Cannot add a seat while {self._status.value}")
        self._registry.adapter_for(model_id)
        seat = Seat(id=f"seat{len(self._seats) + 1}", model_id=model_id)
        self._seats.append(seat)
        return seat

    def cancel(self) -> bool:
        """Stop the session. Any in-flight response will be discarded.

        Returns:
            True if the session was running and is now cancelled.
        """
        if self._status in (SessionStatus.IDLE, SessionStatus.FINISHED, SessionStatus.CANCELLED):
            return False
        self._generation += 1
        self._status = SessionStatus.CANCELLED
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        logger.info("Session %s cancelled", self.session_id)
        return True

    def finish(self) -> None:
        if self._status not in _ADVANCEABLE:
            raise SequencerStateError(f"Cannot finish while {self._status.value}")
        self._status = SessionStatus.FINISHED

    def reset(self) -> None:
        """Drop seats and transcript and return to idle."""
        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        self._seats = []
        self._transcript = []
        self._topic = ""
        self._intensity = None
        self._status = SessionStatus.IDLE

    # -- turns ------------------------------------------------------------

    def _resolve_seat(self, key: str) -> Seat:
        for seat in self._seats:
            if seat.id == key:
                return seat
        for seat in self._seats:
            if seat.model_id == key:
                return seat
        raise ValueError(f"Unknown seat or model: {key}")

    def _find_turn(self, turn_id: str) -> Turn:
        for turn in self._transcript:
            if turn.id == turn_id:
                return turn
        raise ValueError(f"Unknown turn: {turn_id}")

    def _intensity_block(self) -> str | None:
        if self._intensity is None:
            return None
        return f"Adversarial intensity guidance:\n{self._intensity.full_text}"

    def _plan_debate(self, seat_key: str | None, rebut_target_id: str | None) -> TurnPlan:
        seat = self.expected_seat()
        assert seat is not None and seat.role is not None
        if seat_key is not None and self._resolve_seat(seat_key).id != seat.id:
            raise SequencerStateError(f"It is {seat.id}'s turn ({seat.role})")
        previous = self._transcript[-1] if self._transcript else None
        if rebut_target_id is not None and (previous is None or rebut_target_id != previous.id):
            raise ValueError("Debate rebuttals always answer the immediately preceding turn")

        intensity = self._intensity
        assert intensity is not None
        position, outcome = _position(seat.role)
        system = self._prompts.debate_base.format(
            role=seat.role,
            position=position,
            topic=self._topic,
        )
        if previous is None:
            instruction = self._prompts.opening.format(
                topic=self._topic,
                outcome=outcome,
                intensity_heading=intensity.heading,
            )
            turn_type, rebuts = TurnType.INITIAL, None
        else:
            instruction = self._prompts.rebuttal.format(
                opponent_quote=_quote_opponent(previous.content),
                topic=self._topic,
                outcome=outcome,
                intensity_heading=intensity.heading,
            )
            turn_type, rebuts = TurnType.REBUTTAL, previous.id

        messages = [
            ModelMessage(role="system", content=f"{self._prompts.debate_preamble}\n\n{self._intensity_block()}"),
            ModelMessage(role="system", content=system),
            ModelMessage(role="user", content=instruction),
        ]
        return TurnPlan(seat=seat, type=turn_type, messages=messages, instruction=instruction, rebuts=rebuts)

    def _plan_battle(self, seat_key: str | None, rebut_target_id: str | None) -> TurnPlan:
        if seat_key is None:
            raise ValueError("Battle mode needs the seat or model that speaks next")
        seat = self._resolve_seat(seat_key)
        if rebut_target_id is not None:
            target = self._find_turn(rebut_target_id)
            instruction = self._prompts.challenger.format(original_prompt=self._topic, response=target.content)
            turn_type, rebuts = TurnType.REBUTTAL, target.id
        else:
            instruction = self._prompts.battle_prompt.format(prompt=self._topic)
            turn_type, rebuts = TurnType.PROMPT_RESPONSE, None

        messages: list[ModelMessage] = []
        block = self._intensity_block()
        if block:
            messages.append(ModelMessage(role="system", content=block))
        messages.append(ModelMessage(role="user", content=instruction))
        return TurnPlan(seat=seat, type=turn_type, messages=messages, instruction=instruction, rebuts=rebuts)

    def _plan_creative(self, seat_key: str | None, target_id: str | None) -> TurnPlan:
        if seat_key is None:
            seat = self._seats[len(self._transcript) % len(self._seats)]
        else:
            seat = self._resolve_seat(seat_key)

        if not self._transcript:
            if target_id is not None:
                raise ValueError("Nothing to enhance yet")
            instruction = self._prompts.creative_original.format(original_prompt=self._topic)
            turn_type, rebuts = TurnType.INITIAL, None
        else:
            target = self._find_turn(target_id) if target_id else self._transcript[-1]
            instruction = self._prompts.creative_enhancement.format(
                original_prompt=self._topic,
                response=target.content,
            )
            turn_type, rebuts = TurnType.PROMPT_RESPONSE, target.id
        return TurnPlan(
            seat=seat,
            type=turn_type,
            messages=[ModelMessage(role="user", content=instruction)],
            instruction=instruction,
            rebuts=rebuts,
        )

    def plan_turn(
        self,
        seat: str | None = None,
        rebut_target_id: str | None = None,
        instruction: str | None = None,
    ) -> TurnPlan:
        """Build the prompt for the next turn without calling any model."""
        if self._mode is SessionMode.DEBATE:
            plan = self._plan_debate(seat, rebut_target_id)
        elif self._mode is SessionMode.BATTLE:
            plan = self._plan_battle(seat, rebut_target_id)
        else:
            plan = self._plan_creative(seat, rebut_target_id)

        if instruction and instruction.strip():
            extra = f"Additional instructions: {instruction.strip()}"
            plan = TurnPlan(
                seat=plan.seat,
                type=plan.type,
                messages=[*plan.messages, ModelMessage(role="user", content=extra)],
                instruction=f"{plan.instruction}\n\n{extra}",
                rebuts=plan.rebuts,
            )
        return plan

    def _next_round(self) -> int:
        if self._mode is SessionMode.DEBATE:
            return len(self._transcript) // len(self._seats) + 1
        return len(self._transcript) + 1

    async def advance_turn(
        self,
        seat: str | None = None,
        rebut_target_id: str | None = None,
        instruction: str | None = None,
    ) -> Turn | CallFailure | None:
        """Let one model speak.

        Args:
            seat: Seat id or model id that speaks. Optional in debate mode
                (seats alternate) and creative mode (seats rotate).
            rebut_target_id: Turn to answer. Battle: any prior turn. Creative:
                the version to enhance (defaults to the latest). Debate: must
                be the immediately preceding turn if given.
            instruction: Extra caller text appended to the prompt.

        Returns:
            The appended Turn; a CallFailure if the model call failed (the
            transcript is unchanged and the session can advance again); or
            None if the session was cancelled or reset while the call was in
            flight, in which case the response was discarded.

        Raises:
            SequencerStateError: If the session cannot advance right now.
            ValueError: On an unknown seat or target turn.
        """
        if self._status not in _ADVANCEABLE:
            raise SequencerStateError(f"Cannot advance while {self._status.value}")

        plan = self.plan_turn(seat, rebut_target_id, instruction)
        generation = self._generation
        previous_status = self._status
        self._status = SessionStatus.STREAMING_TURN
        logger.info(
            "Session %s: %s (%s) speaks, %s",
            self.session_id,
            plan.seat.id,
            plan.seat.model_id,
            plan.type.value,
        )

        task = asyncio.ensure_future(self._registry.call(plan.seat.model_id, plan.messages, self._options))
        self._inflight = task
        try:
            response = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.info("Session %s: in-flight turn from %s abandoned", self.session_id, plan.seat.model_id)
                return None
            self._generation += 1
            self._status = SessionStatus.CANCELLED
            raise
        except ModelCompareError as exc:
            if generation != self._generation:
                return None
            self._status = previous_status
            provider = exc.provider_name if isinstance(exc, ProviderError) else None
            logger.warning("Session %s: turn from %s failed: %s", self.session_id, plan.seat.model_id, exc)
            return CallFailure(model_id=plan.seat.model_id, kind=exc.kind, message=str(exc), provider=provider)
        except Exception as exc:
            if generation != self._generation:
                return None
            self._status = previous_status
            logger.warning("Session %s: turn from %s failed unexpectedly: %s", self.session_id, plan.seat.model_id, exc)
            return CallFailure(
                model_id=plan.seat.model_id,
                kind=ErrorKind.TRANSIENT,
                message=f"Unexpected error: {exc}",
            )
        finally:
            if self._inflight is task:
                self._inflight = None

        if generation != self._generation or self._status is not SessionStatus.STREAMING_TURN:
            logger.info(
                "Session %s: discarding late response from %s after cancellation",
                self.session_id,
                plan.seat.model_id,
            )
            return None

        turn = Turn(
            id=f"{self.session_id}:turn-{len(self._transcript) + 1}",
            seat_id=plan.seat.id,
            round=self._next_round(),
            type=plan.type,
            response=response,
            prompt=plan.instruction,
            rebuts=plan.rebuts,
        )
        self._transcript.append(turn)
        self._status = SessionStatus.AWAITING_NEXT_TURN
        return turn

    async def auto_advance(
        self,
        turns: int,
        on_turn: Callable[[Turn], None] | None = None,
        seat_order: list[str] | None = None,
        on_failure: Callable[[CallFailure], None] | None = None,
    ) -> list[Turn]:
        """Advance up to ``turns`` times in a row, stopping on failure or cancellation.

        Each step is an ordinary ``advance_turn`` call; ``seat_order`` cycles
        the speaking seats for the free-order modes. A failed turn is handed
        to ``on_failure`` before the loop stops.
        """
        produced: list[Turn] = []
        for i in range(turns):
            seat = seat_order[i % len(seat_order)] if seat_order else None
            outcome = await self.advance_turn(seat)
            if isinstance(outcome, CallFailure) and on_failure:
                on_failure(outcome)
            if not isinstance(outcome, Turn):
                break
            produced.append(outcome)
            if on_turn:
                on_turn(outcome)
        return produced
