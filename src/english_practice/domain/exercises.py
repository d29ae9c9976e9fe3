"""Domain contracts for generated exercises and the requested LLM output schema."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

OPTION_COUNT = 4
GAP_PLACEHOLDER = "_____"
MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 10
DEFAULT_QUESTION_COUNT = 5

RawModelPayload = object


class ExerciseKind(StrEnum):
    """Supported exercise kinds; values match the proxy wire format."""

    MULTIPLE_CHOICE = "multipleChoice"
    GAP_FILL = "gapFill"


@dataclass(frozen=True)
class ExerciseRequest:
    """One learner submission for exercise generation."""

    kind: ExerciseKind
    knowledge_point: str
    desired_count: int | None = None

    def __post_init__(self) -> None:
        if not self.knowledge_point.strip():
            raise ValueError("knowledge_point must be non-empty")

        if self.kind is ExerciseKind.GAP_FILL:
            if self.desired_count is not None:
                raise ValueError("desired_count is only supported for multiple choice")
            return

        count = self.desired_count
        if count is None or isinstance(count, bool) or not isinstance(count, int):
            raise ValueError("desired_count is required for multiple choice")
        if not MIN_QUESTION_COUNT <= count <= MAX_QUESTION_COUNT:
            raise ValueError(
                f"desired_count must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}"
            )

    @classmethod
    def multiple_choice(
        cls,
        knowledge_point: str,
        count: int = DEFAULT_QUESTION_COUNT,
    ) -> ExerciseRequest:
        return cls(
            kind=ExerciseKind.MULTIPLE_CHOICE,
            knowledge_point=knowledge_point,
            desired_count=count,
        )

    @classmethod
    def gap_fill(cls, knowledge_point: str) -> ExerciseRequest:
        return cls(kind=ExerciseKind.GAP_FILL, knowledge_point=knowledge_point)

    def to_proxy_body(self) -> dict[str, object]:
        """Render the JSON body accepted by the proxy endpoint."""
        body: dict[str, object] = {
            "type": self.kind.value,
            "knowledgePoint": self.knowledge_point.strip(),
        }
        if self.desired_count is not None:
            body["count"] = self.desired_count
        return body


@dataclass(frozen=True)
class MultipleChoiceQuestion:
    """Normalized multiple-choice question with exactly four distinct options."""

    question_text: str
    options: tuple[str, ...]
    correct_index: int
    explanation: str = ""

    def __post_init__(self) -> None:
        if not self.question_text.strip():
            raise ValueError("question_text must be non-empty")
        if len(self.options) != OPTION_COUNT:
            raise ValueError(f"options must contain exactly {OPTION_COUNT} entries")
        if len(set(self.options)) != OPTION_COUNT:
            raise ValueError("options must be distinct")
        if not 0 <= self.correct_index < OPTION_COUNT:
            raise ValueError("correct_index is out of range")

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]

    def to_payload(self) -> dict[str, object]:
        """Render the question in the shape requested from the model."""
        return {
            "question": self.question_text,
            "options": list(self.options),
            "correctAnswer": self.correct_index,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class Gap:
    """One blank in a gap-fill exercise."""

    index: int
    answer: str


@dataclass(frozen=True)
class GapFillExercise:
    """Normalized gap-fill passage with ordered expected answers."""

    display_text: str
    gaps: tuple[Gap, ...]
    explanation: str = ""

    def __post_init__(self) -> None:
        if self.display_text.count(GAP_PLACEHOLDER) != len(self.gaps):
            raise ValueError("gap count must match placeholder count in display_text")
        for position, gap in enumerate(self.gaps):
            if gap.index != position:
                raise ValueError("gap indexes must be sequential from zero")
            if not gap.answer or gap.answer != gap.answer.strip():
                raise ValueError("gap answers must be trimmed and non-empty")

    def to_marked_text(self) -> str:
        """Rebuild the annotated text with ``[GAP:answer]`` markers."""
        parts = self.display_text.split(GAP_PLACEHOLDER)
        chunks = [parts[0]]
        for gap, tail in zip(self.gaps, parts[1:], strict=True):
            chunks.append(f"[GAP:{gap.answer}]")
            chunks.append(tail)
        return "".join(chunks)

    def to_payload(self) -> dict[str, object]:
        return {"text": self.to_marked_text(), "explanation": self.explanation}


class MultipleChoiceItemV1(BaseModel):
    """One question in the requested multiple-choice output."""

    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=OPTION_COUNT, max_length=OPTION_COUNT)
    correct_answer: int = Field(alias="correctAnswer", ge=0, le=OPTION_COUNT - 1)
    explanation: str


class MultipleChoiceBatchV1(BaseModel):
    """Requested multiple-choice output envelope."""

    questions: list[MultipleChoiceItemV1] = Field(min_length=1, max_length=MAX_QUESTION_COUNT)


class GapFillV1(BaseModel):
    """Requested gap-fill output envelope."""

    text: str = Field(
        min_length=1,
        description="Passage with [GAP:answer] markers and hints in parentheses.",
    )
    explanation: str
