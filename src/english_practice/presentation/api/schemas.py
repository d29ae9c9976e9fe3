"""Wire schemas for the proxy endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from english_practice.domain.exercises import (
    DEFAULT_QUESTION_COUNT,
    MAX_QUESTION_COUNT,
    MIN_QUESTION_COUNT,
    ExerciseKind,
    ExerciseRequest,
)


class GenerateExerciseBody(BaseModel):
    """Body of ``POST /api/generate``."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    type: ExerciseKind
    knowledge_point: str = Field(alias="knowledgePoint", min_length=1, max_length=2000)
    count: int | None = Field(default=None, ge=MIN_QUESTION_COUNT, le=MAX_QUESTION_COUNT)

    def to_request(self) -> ExerciseRequest:
        if self.type is ExerciseKind.GAP_FILL:
            return ExerciseRequest.gap_fill(self.knowledge_point)
        return ExerciseRequest.multiple_choice(
            self.knowledge_point,
            self.count if self.count is not None else DEFAULT_QUESTION_COUNT,
        )


class ErrorBody(BaseModel):
    """Failure body returned with a non-200 status."""

    error: str
    details: Any = None
