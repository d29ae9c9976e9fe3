from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from english_practice.application.exercise_generation import (
    TERMINAL_STATES,
    ExerciseGenerationSession,
    GenerationOutcome,
    GenerationState,
)
from english_practice.application.llm import (
    MalformedResponseError,
    RequestTimeoutError,
    TransportError,
)
from english_practice.domain.exercises import ExerciseKind, ExerciseRequest, RawModelPayload

MC_PAYLOAD = {
    "questions": [
        {
            "question": "She ___ here since 2019.",
            "options": ["has lived", "lives", "lived", "is living"],
            "correctAnswer": 0,
            "explanation": "Since + point in time takes the present perfect.",
        }
    ]
}
GAP_PAYLOAD = {"text": "They [GAP:were] (be) late.", "explanation": "Past plural of be."}


@dataclass
class FakeGateway:
    scripted: list[RawModelPayload | Exception]
    on_submit: Callable[[], None] | None = None
    requests: list[ExerciseRequest] = field(default_factory=list)

    async def submit(self, request: ExerciseRequest) -> RawModelPayload:
        self.requests.append(request)
        if self.on_submit is not None:
            self.on_submit()
        step = self.scripted.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def test_session_starts_idle() -> None:
    session = ExerciseGenerationSession(FakeGateway(scripted=[]))

    assert session.state is GenerationState.IDLE
    assert session.outcome is None


def test_generate_multiple_choice_reaches_ready() -> None:
    session = ExerciseGenerationSession(FakeGateway(scripted=[MC_PAYLOAD]))

    outcome = asyncio.run(session.generate(ExerciseRequest.multiple_choice("present perfect", 1)))

    assert outcome.succeeded
    assert outcome.kind is ExerciseKind.MULTIPLE_CHOICE
    assert outcome.questions[0].correct_option == "has lived"
    assert outcome.gap_fill is None
    assert session.state is GenerationState.READY
    assert session.outcome == outcome


def test_generate_gap_fill_reaches_ready() -> None:
    session = ExerciseGenerationSession(FakeGateway(scripted=[GAP_PAYLOAD]))

    outcome = asyncio.run(session.generate(ExerciseRequest.gap_fill("past simple of be")))

    assert outcome.state is GenerationState.READY
    assert outcome.gap_fill is not None
    assert outcome.gap_fill.display_text == "They _____ (be) late."
    assert outcome.questions == ()


@pytest.mark.parametrize(
    ("error", "expected_state", "message_fragment"),
    [
        (RequestTimeoutError("timed out"), GenerationState.TIMED_OUT, "did not respond in time"),
        (TransportError("boom", status_code=500), GenerationState.TRANSPORT_FAILED, "boom"),
        (MalformedResponseError("prose"), GenerationState.MALFORMED_RESPONSE, "unreadable"),
    ],
)
def test_generate_maps_gateway_errors_to_terminal_states(
    error: Exception,
    expected_state: GenerationState,
    message_fragment: str,
) -> None:
    session = ExerciseGenerationSession(FakeGateway(scripted=[error]))

    outcome = asyncio.run(session.generate(ExerciseRequest.gap_fill("articles")))

    assert outcome.state is expected_state
    assert outcome.state in TERMINAL_STATES
    assert not outcome.succeeded
    assert outcome.error_message is not None
    assert message_fragment in outcome.error_message
    assert session.state is expected_state


def test_generate_reports_empty_result_for_unusable_payload() -> None:
    session = ExerciseGenerationSession(FakeGateway(scripted=[{"text": "No markers."}]))

    outcome = asyncio.run(session.generate(ExerciseRequest.gap_fill("articles")))

    assert outcome.state is GenerationState.EMPTY_RESULT
    assert outcome.gap_fill is None


def test_generate_allows_retry_after_failure() -> None:
    gateway = FakeGateway(scripted=[RequestTimeoutError("timed out"), GAP_PAYLOAD])
    session = ExerciseGenerationSession(gateway)
    request = ExerciseRequest.gap_fill("articles")

    first = asyncio.run(session.generate(request))
    second = asyncio.run(session.generate(request))

    assert first.state is GenerationState.TIMED_OUT
    assert second.state is GenerationState.READY
    assert first.submission_id != second.submission_id


def test_reset_during_request_discards_late_result() -> None:
    gateway = FakeGateway(scripted=[GAP_PAYLOAD])
    session = ExerciseGenerationSession(gateway)
    gateway.on_submit = session.reset

    outcome = asyncio.run(session.generate(ExerciseRequest.gap_fill("articles")))

    assert outcome.stale
    assert outcome.state is GenerationState.IDLE
    assert session.state is GenerationState.IDLE
    assert session.outcome is None


def test_reset_during_request_discards_late_failure() -> None:
    gateway = FakeGateway(scripted=[TransportError("boom")])
    session = ExerciseGenerationSession(gateway)
    gateway.on_submit = session.reset

    outcome = asyncio.run(session.generate(ExerciseRequest.gap_fill("articles")))

    assert outcome.stale
    assert outcome.error_message is None
    assert session.state is GenerationState.IDLE


def test_newer_submission_supersedes_older_one() -> None:
    release_first = asyncio.Event()

    class OrderedGateway:
        def __init__(self) -> None:
            self.calls = 0

        async def submit(self, request: ExerciseRequest) -> RawModelPayload:
            self.calls += 1
            if self.calls == 1:
                await release_first.wait()
                return MC_PAYLOAD
            return GAP_PAYLOAD

    session = ExerciseGenerationSession(OrderedGateway())

    async def run() -> tuple[GenerationOutcome, GenerationOutcome]:
        first_task = asyncio.create_task(
            session.generate(ExerciseRequest.multiple_choice("present perfect", 1))
        )
        await asyncio.sleep(0)
        second = await session.generate(ExerciseRequest.gap_fill("articles"))
        release_first.set()
        first = await first_task
        return first, second

    first, second = asyncio.run(run())

    assert first.stale
    assert second.state is GenerationState.READY
    assert session.outcome == second
    assert session.state is GenerationState.READY
