"""Governed prompt definitions."""

from english_practice.infrastructure.llm.prompts.exercise_generation import (
    GAP_FILL_PROMPT,
    MULTIPLE_CHOICE_PROMPT,
    PROMPTS_BY_KIND,
    PromptSpec,
    build_exercise_payload,
    build_gap_fill_user_prompt,
    build_multiple_choice_user_prompt,
)

__all__ = [
    "GAP_FILL_PROMPT",
    "MULTIPLE_CHOICE_PROMPT",
    "PROMPTS_BY_KIND",
    "PromptSpec",
    "build_exercise_payload",
    "build_gap_fill_user_prompt",
    "build_multiple_choice_user_prompt",
]
