"""Submission lifecycle for exercise generation with stale-result protection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from uuid import uuid4

from english_practice.application.gap_fill_normalizer import normalize_gap_fill
from english_practice.application.llm import (
    EmptyResultError,
    ExerciseGateway,
    MalformedResponseError,
    RequestTimeoutError,
    TransportError,
)
from english_practice.application.multiple_choice_normalizer import normalize_multiple_choice
from english_practice.domain.exercises import (
    ExerciseKind,
    ExerciseRequest,
    GapFillExercise,
    MultipleChoiceQuestion,
    RawModelPayload,
)

LOGGER = logging.getLogger(__name__)


class GenerationState(StrEnum):
    """States of one submission."""

    IDLE = "idle"
    REQUESTING = "requesting"
    NORMALIZING = "normalizing"
    READY = "ready"
    TIMED_OUT = "timed_out"
    TRANSPORT_FAILED = "transport_failed"
    MALFORMED_RESPONSE = "malformed_response"
    EMPTY_RESULT = "empty_result"


TERMINAL_STATES = frozenset(
    {
        GenerationState.READY,
        GenerationState.TIMED_OUT,
        GenerationState.TRANSPORT_FAILED,
        GenerationState.MALFORMED_RESPONSE,
        GenerationState.EMPTY_RESULT,
    }
)


@dataclass(frozen=True)
class GenerationOutcome:
    """Terminal result of one submission."""

    submission_id: str
    kind: ExerciseKind
    state: GenerationState
    questions: tuple[MultipleChoiceQuestion, ...] = ()
    gap_fill: GapFillExercise | None = None
    error_message: str | None = None
    stale: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state is GenerationState.READY


class ExerciseGenerationSession:
    """Run submit-then-normalize cycles; only the latest submission updates state."""

    def __init__(self, gateway: ExerciseGateway) -> None:
        self._gateway = gateway
        self._state = GenerationState.IDLE
        self._active_submission_id: str | None = None
        self._outcome: GenerationOutcome | None = None

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def outcome(self) -> GenerationOutcome | None:
        return self._outcome

    def reset(self) -> None:
        """Return to idle; results of in-flight submissions become stale."""
        self._active_submission_id = None
        self._state = GenerationState.IDLE
        self._outcome = None

    async def generate(self, request: ExerciseRequest) -> GenerationOutcome:
        """Submit the request, normalize the payload, and report a terminal outcome."""
        submission_id = str(uuid4())
        self._active_submission_id = submission_id
        self._state = GenerationState.REQUESTING
        self._outcome = None

        LOGGER.info(
            "event=exercise_generation_started correlation_id=%s kind=%s desired_count=%s",
            submission_id,
            request.kind.value,
            request.desired_count if request.desired_count is not None else "-",
        )

        try:
            payload = await self._gateway.submit(request)
        except RequestTimeoutError as exc:
            return self._finish_failed(
                submission_id,
                request,
                GenerationState.TIMED_OUT,
                "The exercise service did not respond in time. Please try again.",
                exc,
            )
        except TransportError as exc:
            return self._finish_failed(
                submission_id,
                request,
                GenerationState.TRANSPORT_FAILED,
                f"The exercise service is unavailable: {exc}",
                exc,
            )
        except MalformedResponseError as exc:
            return self._finish_failed(
                submission_id,
                request,
                GenerationState.MALFORMED_RESPONSE,
                "The exercise service returned an unreadable response. Please try again.",
                exc,
            )

        if self._is_stale(submission_id):
            return self._stale_outcome(submission_id, request)

        self._state = GenerationState.NORMALIZING
        try:
            outcome = _normalize(submission_id, request, payload)
        except EmptyResultError as exc:
            return self._finish_failed(
                submission_id,
                request,
                GenerationState.EMPTY_RESULT,
                "No usable exercise could be generated for this knowledge point. "
                "Please try again.",
                exc,
            )

        self._state = outcome.state
        self._outcome = outcome
        LOGGER.info(
            "event=exercise_generation_completed correlation_id=%s kind=%s "
            "question_count=%s gap_count=%s",
            submission_id,
            request.kind.value,
            len(outcome.questions),
            len(outcome.gap_fill.gaps) if outcome.gap_fill is not None else 0,
        )
        return outcome

    def _is_stale(self, submission_id: str) -> bool:
        return self._active_submission_id != submission_id

    def _stale_outcome(
        self,
        submission_id: str,
        request: ExerciseRequest,
    ) -> GenerationOutcome:
        LOGGER.info(
            "event=exercise_generation_superseded correlation_id=%s kind=%s",
            submission_id,
            request.kind.value,
        )
        return GenerationOutcome(
            submission_id=submission_id,
            kind=request.kind,
            state=GenerationState.IDLE,
            stale=True,
        )

    def _finish_failed(
        self,
        submission_id: str,
        request: ExerciseRequest,
        state: GenerationState,
        message: str,
        error: Exception,
    ) -> GenerationOutcome:
        if self._is_stale(submission_id):
            return self._stale_outcome(submission_id, request)

        LOGGER.warning(
            "event=exercise_generation_failed correlation_id=%s kind=%s state=%s error_type=%s",
            submission_id,
            request.kind.value,
            state.value,
            error.__class__.__name__,
        )
        outcome = GenerationOutcome(
            submission_id=submission_id,
            kind=request.kind,
            state=state,
            error_message=message,
        )
        self._state = state
        self._outcome = outcome
        return outcome


def _normalize(
    submission_id: str,
    request: ExerciseRequest,
    payload: RawModelPayload,
) -> GenerationOutcome:
    if request.kind is ExerciseKind.MULTIPLE_CHOICE:
        assert request.desired_count is not None
        questions = normalize_multiple_choice(payload, request.desired_count)
        return GenerationOutcome(
            submission_id=submission_id,
            kind=request.kind,
            state=GenerationState.READY,
            questions=tuple(questions),
        )

    return GenerationOutcome(
        submission_id=submission_id,
        kind=request.kind,
        state=GenerationState.READY,
        gap_fill=normalize_gap_fill(payload),
    )
