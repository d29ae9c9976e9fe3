"""Governed prompt definitions and vendor payloads for exercise generation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from english_practice.domain.exercises import (
    OPTION_COUNT,
    ExerciseKind,
    ExerciseRequest,
    GapFillV1,
    MultipleChoiceBatchV1,
)

TSchema = TypeVar("TSchema", bound=BaseModel)


@dataclass(frozen=True)
class PromptSpec(Generic[TSchema]):
    """Governed prompt definition with schema and version metadata for logs."""

    prompt_id: str
    version: str
    system_prompt: str
    expected_schema: type[TSchema]
    temperature: float = 0.7


MULTIPLE_CHOICE_PROMPT = PromptSpec[MultipleChoiceBatchV1](
    prompt_id="multiple_choice_generation",
    version="v1",
    system_prompt=(
        "You are an English learning assistant. Generate multiple choice questions "
        "about the English knowledge point given by the user. "
        f"Each question must have EXACTLY {OPTION_COUNT} options: one correct answer "
        "and three incorrect answers. Include the index of the correct answer and a "
        "detailed explanation for each question. Return only a JSON object, "
        "with options as a simple array of strings."
    ),
    expected_schema=MultipleChoiceBatchV1,
)

GAP_FILL_PROMPT = PromptSpec[GapFillV1](
    prompt_id="gap_fill_generation",
    version="v1",
    system_prompt=(
        "You are an English learning assistant specialized in creating contextual "
        "gap fill exercises that provide clear context clues. Return only a JSON object."
    ),
    expected_schema=GapFillV1,
)

PROMPTS_BY_KIND: dict[ExerciseKind, PromptSpec[Any]] = {
    ExerciseKind.MULTIPLE_CHOICE: MULTIPLE_CHOICE_PROMPT,
    ExerciseKind.GAP_FILL: GAP_FILL_PROMPT,
}


def build_multiple_choice_user_prompt(*, knowledge_point: str, question_count: int) -> str:
    """Build user prompt with the knowledge point and the exact question count."""
    return (
        f"Knowledge point: {_quote(knowledge_point)}\n\n"
        "Format your response as a JSON object with the following structure:\n"
        "{\n"
        '  "questions": [\n'
        "    {\n"
        '      "question": "Question text here",\n'
        '      "options": ["Option A", "Option B", "Option C", "Option D"],\n'
        '      "correctAnswer": 0,\n'
        '      "explanation": "Explanation text here"\n'
        "    }\n"
        "  ]\n"
        "}\n\n"
        "IMPORTANT REQUIREMENTS:\n"
        f"1. The \"options\" field must be a simple array of exactly {OPTION_COUNT} strings.\n"
        "2. Provide 3 incorrect answers and 1 correct answer for each question.\n"
        "3. Each option should be short and concise, without embedded explanations.\n"
        f"4. correctAnswer must be the index (0-{OPTION_COUNT - 1}) of the correct option.\n"
        f"5. Include exactly {question_count} questions.\n"
        "6. Do not include option labels (A, B, C, D) in the option text itself.\n"
        "7. Make sure the options are distinct and meaningful alternatives.\n"
        "8. Provide a specific and detailed explanation for every question.\n\n"
        "JSON schema:\n"
        f"{_schema_json(MULTIPLE_CHOICE_PROMPT.expected_schema)}"
    )


def build_gap_fill_user_prompt(*, knowledge_point: str) -> str:
    """Build user prompt asking for [GAP:answer] annotated text."""
    return (
        f"Knowledge point: {_quote(knowledge_point)}\n\n"
        "Create a meaningful gap fill exercise with 5-7 gaps specifically related to "
        "this knowledge point.\n\n"
        "IMPORTANT REQUIREMENTS:\n"
        "1. The text must be a coherent paragraph or dialogue that clearly demonstrates "
        "the knowledge point.\n"
        "2. Each gap should have sufficient context clues so students can reasonably "
        "determine the answer.\n"
        '3. Use the format "[GAP:answer]" to indicate each gap, where "answer" is the '
        "correct word or phrase.\n"
        "4. CRITICAL: Each gap must contain ONLY ONE WORD.\n"
        "5. Choose gaps that directly relate to the knowledge point.\n"
        "6. The exercise should be challenging but solvable based on the surrounding context.\n"
        "7. For grammar-related knowledge points include a hint in parentheses after the gap:\n"
        '   - tenses: the base form of the verb, e.g. "He [GAP:went] (go) to school yesterday."\n'
        "   - plurals: the singular form, e.g. "
        '"There are many [GAP:children] (child) in the park."\n\n'
        "Format your response as a JSON object with the following properties:\n"
        "- text: the text with [GAP:answer] placeholders and hints in parentheses\n"
        "- explanation: a detailed explanation of the exercise and why each answer is correct\n\n"
        "JSON schema:\n"
        f"{_schema_json(GAP_FILL_PROMPT.expected_schema)}"
    )


def build_exercise_payload(request: ExerciseRequest, *, model: str) -> dict[str, object]:
    """Build the vendor chat-completions payload in structured JSON mode."""
    prompt = PROMPTS_BY_KIND[request.kind]
    knowledge_point = request.knowledge_point.strip()
    if request.kind is ExerciseKind.MULTIPLE_CHOICE:
        assert request.desired_count is not None
        user_prompt = build_multiple_choice_user_prompt(
            knowledge_point=knowledge_point,
            question_count=request.desired_count,
        )
    else:
        user_prompt = build_gap_fill_user_prompt(knowledge_point=knowledge_point)

    return {
        "model": model,
        "messages": [
            {"role": "system", "content": prompt.system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "response_format": {"type": "json_object"},
        "temperature": prompt.temperature,
    }


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _schema_json(schema: type[BaseModel]) -> str:
    return json.dumps(
        schema.model_json_schema(by_alias=True),
        ensure_ascii=False,
        sort_keys=True,
        indent=2,
    )
