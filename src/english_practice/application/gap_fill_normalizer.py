"""Extract display text and ordered answers from ``[GAP:answer]`` annotated text."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from english_practice.application.llm import EmptyResultError
from english_practice.domain.exercises import (
    GAP_PLACEHOLDER,
    Gap,
    GapFillExercise,
    RawModelPayload,
)

_GAP_MARKER_PATTERN = re.compile(r"\[GAP:(.*?)\]")
_UNDERSCORE_SPLIT_PATTERN = re.compile(r"(_+)")
_MAX_LITERAL_UNDERSCORES = len(GAP_PLACEHOLDER) - 1


class RawGapFillPayload(BaseModel):
    """Lenient view of the model-written gap-fill object."""

    model_config = ConfigDict(extra="ignore")

    text: str
    explanation: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def require_text(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("gap-fill text is missing")
        return value

    @field_validator("explanation", mode="before")
    @classmethod
    def coerce_explanation(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


def normalize_gap_fill(payload: RawModelPayload) -> GapFillExercise:
    """Replace each gap marker with a placeholder and collect its answer.

    Markers with a blank answer are dropped from the display text. Unterminated
    markers are left as written.
    """
    try:
        raw = RawGapFillPayload.model_validate(payload)
    except ValidationError as exc:
        raise EmptyResultError("Model response contains no gap-fill text.") from exc

    literals: list[str] = []
    gaps: list[Gap] = []
    pending: list[str] = []
    cursor = 0
    for match in _GAP_MARKER_PATTERN.finditer(raw.text):
        pending.append(raw.text[cursor : match.start()])
        cursor = match.end()

        answer = match.group(1).strip()
        if not answer:
            continue

        literals.append("".join(pending))
        pending = []
        gaps.append(Gap(index=len(gaps), answer=answer))
    pending.append(raw.text[cursor:])
    literals.append("".join(pending))

    if not gaps:
        raise EmptyResultError("Model response contains no [GAP:answer] markers.")

    return GapFillExercise(
        display_text=_join_display_text(literals),
        gaps=tuple(gaps),
        explanation=raw.explanation,
    )


def _join_display_text(literals: list[str]) -> str:
    """Join literal segments with placeholders between them.

    Each underscore run keeps at most four underscores besides its placeholders,
    so the placeholder count of the text always equals the gap count.
    """
    tokens: list[tuple[str, bool]] = []
    for position, literal in enumerate(literals):
        if position:
            tokens.append((GAP_PLACEHOLDER, True))
        tokens.extend(
            (piece, False) for piece in _UNDERSCORE_SPLIT_PATTERN.split(literal) if piece
        )

    chunks: list[str] = []
    budget = _MAX_LITERAL_UNDERSCORES
    for token, is_placeholder in tokens:
        if is_placeholder:
            chunks.append(token)
        elif token.startswith("_"):
            kept = min(len(token), budget)
            budget -= kept
            chunks.append("_" * kept)
        else:
            budget = _MAX_LITERAL_UNDERSCORES
            chunks.append(token)
    return "".join(chunks)
