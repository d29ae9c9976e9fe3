"""Check learner answers against normalized exercises."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from english_practice.domain.exercises import GapFillExercise, MultipleChoiceQuestion


@dataclass(frozen=True)
class AnswerCheck:
    """Result for one question or gap."""

    index: int
    expected: str
    given: str | None
    is_correct: bool


@dataclass(frozen=True)
class AnswerReport:
    """Per-item results for one exercise attempt."""

    checks: tuple[AnswerCheck, ...]

    @property
    def total(self) -> int:
        return len(self.checks)

    @property
    def correct_count(self) -> int:
        return sum(1 for check in self.checks if check.is_correct)

    @property
    def all_answered(self) -> bool:
        return all(check.given is not None for check in self.checks)


def check_multiple_choice_answers(
    questions: Sequence[MultipleChoiceQuestion],
    answers: Mapping[int, int],
) -> AnswerReport:
    """Compare chosen option indexes keyed by question position."""
    checks: list[AnswerCheck] = []
    for position, question in enumerate(questions):
        chosen = answers.get(position)
        given: str | None = None
        if chosen is not None and 0 <= chosen < len(question.options):
            given = question.options[chosen]
        checks.append(
            AnswerCheck(
                index=position,
                expected=question.correct_option,
                given=given,
                is_correct=chosen == question.correct_index,
            )
        )
    return AnswerReport(checks=tuple(checks))


def check_gap_fill_answers(
    exercise: GapFillExercise,
    answers: Mapping[int, str],
) -> AnswerReport:
    """Compare typed answers keyed by gap index, ignoring case and outer spaces."""
    checks: list[AnswerCheck] = []
    for gap in exercise.gaps:
        typed = answers.get(gap.index)
        given = typed.strip() if typed is not None and typed.strip() else None
        checks.append(
            AnswerCheck(
                index=gap.index,
                expected=gap.answer,
                given=given,
                is_correct=given is not None and given.casefold() == gap.answer.casefold(),
            )
        )
    return AnswerReport(checks=tuple(checks))
