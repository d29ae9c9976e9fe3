"""Unit tests for multiple-choice payload normalization and repair heuristics."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from english_practice.application.llm import EmptyResultError
from english_practice.application.multiple_choice_normalizer import (
    RawMultipleChoiceItem,
    normalize_multiple_choice,
)
from english_practice.domain.exercises import MultipleChoiceQuestion


def _question(**overrides: object) -> dict[str, object]:
    question: dict[str, object] = {
        "question": "Which sentence uses the present perfect correctly?",
        "options": [
            "I have lived here for three years.",
            "I am living here for three years.",
            "I live here for three years.",
            "I lived here for three years.",
        ],
        "correctAnswer": 0,
        "explanation": "Present perfect links a past start with the present.",
    }
    question.update(overrides)
    return question


def test_normalize_accepts_well_formed_payload() -> None:
    questions = normalize_multiple_choice({"questions": [_question(), _question()]}, 2)

    assert len(questions) == 2
    assert questions[0].options[0] == "I have lived here for three years."
    assert questions[0].correct_index == 0
    assert questions[0].explanation.startswith("Present perfect")


def test_normalize_pads_short_options_and_maps_letter_answer() -> None:
    payload = {
        "questions": [
            {
                "question": "Pick the past participle of 'go'.",
                "options": ["a", "b"],
                "correctAnswer": "B",
                "explanation": "...",
            }
        ]
    }

    questions = normalize_multiple_choice(payload, 1)

    assert questions[0].options == ("a", "b", "Option C", "Option D")
    assert questions[0].correct_index == 1


def test_normalize_truncates_six_options_and_clamps_index() -> None:
    payload = {
        "questions": [
            _question(options=["o1", "o2", "o3", "o4", "o5", "o6"], correctAnswer=5),
        ]
    }

    questions = normalize_multiple_choice(payload, 1)

    assert questions[0].options == ("o1", "o2", "o3", "o4")
    assert questions[0].correct_index == 3


@pytest.mark.parametrize(
    ("raw_answer", "expected_index"),
    [
        ("C", 2),
        ("c", 2),
        ("(D)", 3),
        ("B)", 1),
        ("Option A", 0),
        ("2", 2),
        (" 1 ", 1),
        ("7", 0),
        (2.0, 2),
        (-3, 0),
        (True, 0),
        (None, 0),
        ("I live here for three years.", 2),
        ("nonsense", 0),
    ],
)
def test_normalize_coerces_correct_answer_variants(
    raw_answer: object,
    expected_index: int,
) -> None:
    questions = normalize_multiple_choice({"questions": [_question(correctAnswer=raw_answer)]}, 1)

    assert questions[0].correct_index == expected_index


def test_normalize_takes_values_from_option_mapping() -> None:
    payload = {
        "questions": [
            _question(
                options={"A": "went", "B": "gone", "C": "go", "D": "going"},
                correctAnswer="B",
            ),
        ]
    }

    questions = normalize_multiple_choice(payload, 1)

    assert questions[0].options == ("went", "gone", "go", "going")
    assert questions[0].correct_option == "gone"


def test_normalize_splits_option_string_on_commas_and_semicolons() -> None:
    payload = {"questions": [_question(options="went, gone; go", correctAnswer=1)]}

    questions = normalize_multiple_choice(payload, 1)

    assert questions[0].options == ("went", "gone", "go", "Option D")


def test_normalize_replaces_blank_and_duplicate_options_with_distinct_placeholders() -> None:
    payload = {"questions": [_question(options=["went", "", "went", None], correctAnswer=2)]}

    questions = normalize_multiple_choice(payload, 1)

    assert questions[0].options == ("went", "Option B", "Option C", "Option D")
    assert questions[0].correct_index == 0


def test_normalize_avoids_placeholder_collision_with_real_option() -> None:
    payload = {"questions": [_question(options=["Option D", "went"], correctAnswer=1)]}

    questions = normalize_multiple_choice(payload, 1)

    assert questions[0].options == ("Option D", "went", "Option C", "Option D (2)")
    assert len(set(questions[0].options)) == 4


def test_normalize_defaults_missing_explanation_to_empty_string() -> None:
    question = _question()
    del question["explanation"]

    questions = normalize_multiple_choice({"questions": [question]}, 1)

    assert questions[0].explanation == ""


def test_normalize_falls_back_to_first_top_level_list() -> None:
    payload = {"meta": "ignored", "items": [_question()]}

    questions = normalize_multiple_choice(payload, 1)

    assert len(questions) == 1


def test_normalize_wraps_single_question_object() -> None:
    assert len(normalize_multiple_choice({"questions": _question()}, 1)) == 1
    assert len(normalize_multiple_choice(_question(), 1)) == 1


def test_normalize_accepts_top_level_list() -> None:
    assert len(normalize_multiple_choice([_question(), _question()], 2)) == 2


@pytest.mark.parametrize(
    "payload",
    [
        {"questions": []},
        {},
        {"summary": "no lists here"},
        "not an object",
        None,
        {"questions": ["just a string", 42]},
        {"questions": [{"options": ["a", "b", "c", "d"]}]},
    ],
)
def test_normalize_raises_empty_result_without_usable_questions(payload: object) -> None:
    with pytest.raises(EmptyResultError):
        normalize_multiple_choice(payload, 3)


def test_normalize_skips_unusable_entries_and_keeps_the_rest() -> None:
    payload = {"questions": ["garbage", _question(question="   "), _question()]}

    questions = normalize_multiple_choice(payload, 3)

    assert len(questions) == 1


def test_normalize_does_not_force_expected_count() -> None:
    questions = normalize_multiple_choice({"questions": [_question()]}, 5)

    assert len(questions) == 1


def test_normalize_rejects_non_positive_expected_count() -> None:
    with pytest.raises(ValueError, match="expected_count"):
        normalize_multiple_choice({"questions": [_question()]}, 0)


def test_normalize_invariants_hold_for_malformed_batch() -> None:
    payload = {
        "questions": [
            _question(options=None, correctAnswer="Z"),
            _question(options=[], correctAnswer=99),
            _question(options="only-one", correctAnswer=-5),
            _question(options=[1, 2, 3, 4, 5], correctAnswer="4"),
            _question(options=[{"text": "went"}, ["nested"], 3.5], correctAnswer={"x": 1}),
        ]
    }

    questions = normalize_multiple_choice(payload, 5)

    assert len(questions) == 5
    for question in questions:
        assert len(question.options) == 4
        assert len(set(question.options)) == 4
        assert 0 <= question.correct_index < 4


def test_normalize_is_idempotent_on_normalized_output() -> None:
    first = normalize_multiple_choice(
        {"questions": [_question(options=["a", "b"], correctAnswer="B")]},
        1,
    )

    second = normalize_multiple_choice(
        {"questions": [question.to_payload() for question in first]},
        1,
    )

    assert second == first


def test_question_rejects_invalid_invariants() -> None:
    with pytest.raises(ValueError, match="exactly 4"):
        MultipleChoiceQuestion(question_text="q", options=("a", "b"), correct_index=0)
    with pytest.raises(ValueError, match="distinct"):
        MultipleChoiceQuestion(question_text="q", options=("a", "a", "b", "c"), correct_index=0)
    with pytest.raises(ValueError, match="out of range"):
        MultipleChoiceQuestion(question_text="q", options=("a", "b", "c", "d"), correct_index=4)


def test_raw_item_accepts_alternate_key_names() -> None:
    item = RawMultipleChoiceItem.model_validate(
        {
            "questionText": "Choose the plural of 'mouse'.",
            "choices": ["mice", "mouses", "mices", "mouse"],
            "answer": "mice",
            "explanation": None,
            "difficulty": "easy",
        }
    )

    question = item.to_question()
    assert question.question_text == "Choose the plural of 'mouse'."
    assert question.correct_option == "mice"
    assert question.explanation == ""


def test_raw_item_rejects_missing_question_text() -> None:
    with pytest.raises(ValidationError):
        RawMultipleChoiceItem.model_validate({"options": ["a", "b", "c", "d"], "correctAnswer": 1})


def test_raw_item_points_duplicate_answer_at_first_occurrence() -> None:
    item = RawMultipleChoiceItem.model_validate(
        {"question": "q", "options": ["went", "gone", "went", "go"], "correctAnswer": "C"}
    )

    assert item.options == ["went", "gone", "Option C", "go"]
    assert item.correct_answer == 0
