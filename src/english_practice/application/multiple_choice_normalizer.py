"""Coerce loosely-shaped model output into multiple-choice questions."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from english_practice.application.llm import EmptyResultError
from english_practice.domain.exercises import (
    OPTION_COUNT,
    MultipleChoiceQuestion,
    RawModelPayload,
)

LOGGER = logging.getLogger(__name__)

_QUESTION_LIST_KEY = "questions"
_QUESTION_TEXT_KEYS = ("question", "questionText", "question_text")
_OPTIONS_KEYS = ("options", "choices")
_CORRECT_ANSWER_KEYS = ("correctAnswer", "correct_answer", "answer")
_OPTION_TEXT_KEYS = ("text", "option", "value")

_OPTION_LETTERS = "ABCD"
_OPTION_SEPARATOR_PATTERN = re.compile(r"[,;]")
_LEADING_INTEGER_PATTERN = re.compile(r"^\s*([+-]?\d+)")
_ANSWER_LETTER_PATTERN = re.compile(r"^(?:OPTION\s+)?\(?([A-D])[).:]?$")


class RawMultipleChoiceItem(BaseModel):
    """Lenient view of one model-written question.

    Options are coerced to four distinct strings and the answer to an in-range
    index. Only a missing or blank question text fails validation.
    """

    model_config = ConfigDict(extra="ignore")

    question: str = Field(validation_alias=AliasChoices(*_QUESTION_TEXT_KEYS))
    options: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(*_OPTIONS_KEYS),
    )
    correct_answer: int = Field(
        default=0,
        validation_alias=AliasChoices(*_CORRECT_ANSWER_KEYS),
    )
    explanation: str = ""

    @field_validator("question", mode="before")
    @classmethod
    def require_question_text(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("question text is missing")
        return value

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, value: Any) -> list[str]:
        """Accept a list, a letter-keyed mapping or a delimited string.

        Unusable entries become empty strings and are filled in later.
        """
        if isinstance(value, list):
            candidates = [_coerce_option(item) for item in value]
        elif isinstance(value, Mapping):
            candidates = [_coerce_option(item) for item in value.values()]
        elif isinstance(value, str):
            pieces = (piece.strip() for piece in _OPTION_SEPARATOR_PATTERN.split(value))
            candidates = [piece for piece in pieces if piece]
        else:
            candidates = []
        return candidates[:OPTION_COUNT]

    @field_validator("correct_answer", mode="before")
    @classmethod
    def interpret_correct_answer(cls, value: Any, info: ValidationInfo) -> int:
        candidates = _padded(info.data.get("options", []))
        index = max(0, min(_interpret_answer(value, candidates), OPTION_COUNT - 1))
        chosen = candidates[index]
        # A repeated option is replaced below, so point at its first occurrence.
        return candidates.index(chosen) if chosen else index

    @field_validator("explanation", mode="before")
    @classmethod
    def coerce_explanation(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @model_validator(mode="after")
    def fill_missing_options(self) -> RawMultipleChoiceItem:
        self.options = _distinct_options(self.options)
        return self

    def to_question(self) -> MultipleChoiceQuestion:
        return MultipleChoiceQuestion(
            question_text=self.question,
            options=tuple(self.options),
            correct_index=self.correct_answer,
            explanation=self.explanation,
        )


def normalize_multiple_choice(
    payload: RawModelPayload,
    expected_count: int,
) -> list[MultipleChoiceQuestion]:
    """Return questions that always carry four options and an in-range answer.

    Per-question defects are repaired rather than rejected. The only hard
    failure is a payload without any usable question, which raises
    ``EmptyResultError``. The result may be shorter or longer than
    ``expected_count``.
    """
    if expected_count < 1:
        raise ValueError("expected_count must be >= 1")

    raw_questions = _locate_question_list(payload)
    if not raw_questions:
        raise EmptyResultError("Model response contains no multiple-choice questions.")

    questions: list[MultipleChoiceQuestion] = []
    for position, raw_question in enumerate(raw_questions):
        try:
            item = RawMultipleChoiceItem.model_validate(raw_question)
        except ValidationError as exc:
            LOGGER.warning(
                "event=mc_question_skipped position=%s entry_type=%s error_count=%s",
                position,
                type(raw_question).__name__,
                exc.error_count(),
            )
            continue
        questions.append(item.to_question())

    if not questions:
        raise EmptyResultError("Model response contains no usable multiple-choice questions.")

    if len(questions) != expected_count:
        LOGGER.warning(
            "event=mc_question_count_mismatch expected_count=%s actual_count=%s",
            expected_count,
            len(questions),
        )
    return questions


def _locate_question_list(payload: RawModelPayload) -> list[Any] | None:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        return None

    named = payload.get(_QUESTION_LIST_KEY)
    if isinstance(named, list):
        return named
    if isinstance(named, Mapping):
        return [named]

    if any(isinstance(payload.get(key), str) for key in _QUESTION_TEXT_KEYS):
        return [payload]

    for value in payload.values():
        if isinstance(value, list):
            return value
    return None


def _coerce_option(item: Any) -> str:
    if isinstance(item, Mapping):
        item = next((item[key] for key in _OPTION_TEXT_KEYS if key in item), None)
    if not isinstance(item, (str, int, float)):
        return ""
    return str(item).strip()


def _padded(options: list[str]) -> list[str]:
    return options + [""] * (OPTION_COUNT - len(options))


def _distinct_options(options: list[str]) -> list[str]:
    """Replace empty and repeated entries with labels no other option uses."""
    candidates = _padded(options)
    taken = {candidate for candidate in candidates if candidate}
    seen: set[str] = set()
    result: list[str] = []
    for position, candidate in enumerate(candidates):
        if not candidate or candidate in seen:
            candidate = _synthesize_option(position, taken=taken)
            taken.add(candidate)
        seen.add(candidate)
        result.append(candidate)
    return result


def _synthesize_option(position: int, *, taken: set[str]) -> str:
    label = f"Option {_OPTION_LETTERS[position]}"
    candidate = label
    suffix = 2
    while candidate in taken:
        candidate = f"{label} ({suffix})"
        suffix += 1
    return candidate


def _interpret_answer(raw_answer: Any, options: list[str]) -> int:
    if isinstance(raw_answer, bool):
        return 0
    if isinstance(raw_answer, int):
        return raw_answer
    if isinstance(raw_answer, float):
        return int(raw_answer) if raw_answer.is_integer() else 0
    if not isinstance(raw_answer, str):
        return 0

    integer_match = _LEADING_INTEGER_PATTERN.match(raw_answer)
    if integer_match is not None:
        number = int(integer_match.group(1))
        if 0 <= number < len(options):
            return number

    letter_match = _ANSWER_LETTER_PATTERN.match(raw_answer.strip().upper())
    if letter_match is not None:
        return _OPTION_LETTERS.index(letter_match.group(1))

    folded_answer = raw_answer.strip().casefold()
    for position, option in enumerate(options):
        if folded_answer and option.casefold() == folded_answer:
            return position

    return 0
