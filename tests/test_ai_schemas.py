"""Tests for structured AI payload parsing."""

from __future__ import annotations

import json

import pytest

from ai_schemas import (
    ESSAY_TOOL,
    PLAN_TOOL,
    QUESTION_TOOL,
    EssayEvaluation,
    FlashcardBatch,
    QuestionBatch,
    StudyPlanDraft,
    extract_json,
    parse_structured,
)
from errors import GenerationError
from factories import make_evaluation, make_question


class TestExtractJson:
    def test_plain(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_json('```json\n[{"a": 1}]\n```') == [{"a": 1}]

    def test_prose_around_json(self):
        assert extract_json('Aqui está:\n{"a": [1, 2]}\nBons estudos!') == {"a": [1, 2]}

    def test_empty_raises(self):
        with pytest.raises(GenerationError):
            extract_json("   ")

    def test_garbage_raises(self):
        with pytest.raises(GenerationError):
            extract_json("não sei responder")


class TestQuestionParsing:
    def test_wrapped_batch(self):
        batch = parse_structured(json.dumps({"questions": [make_question()]}), QuestionBatch)
        assert batch.questions[0].correct_answer == 2

    def test_bare_object_is_wrapped(self):
        batch = parse_structured(make_question(), QuestionBatch)
        assert len(batch.questions) == 1

    def test_content_keeps_camel_case_keys(self):
        batch = parse_structured([make_question()], QuestionBatch)
        assert set(batch.questions[0].to_content()) == {"question", "options", "correctAnswer", "explanation"}

    @pytest.mark.parametrize("override", [
        {"correctAnswer": 5},
        {"correctAnswer": -1},
        {"options": ["a", "b", "c", "d", "e", "f"]},
        {"question": ""},
    ])
    def test_invalid_questions_rejected(self, override):
        with pytest.raises(GenerationError, match="fora do formato esperado"):
            parse_structured([make_question(**override)], QuestionBatch)

    def test_missing_explanation_rejected(self):
        q = make_question()
        del q["explanation"]
        with pytest.raises(GenerationError):
            parse_structured([q], QuestionBatch)

    def test_empty_batch_rejected(self):
        with pytest.raises(GenerationError):
            parse_structured({"questions": []}, QuestionBatch)


class TestEssayParsing:
    def test_total_is_sum_of_competencies(self):
        ev = parse_structured(make_evaluation((200, 160, 120, 80, 40), score=999), EssayEvaluation)
        assert ev.total == 600
        assert ev.score == 999
        assert ev.improvements == ["Detalhe melhor a proposta de intervenção."]

    def test_competency_above_200_rejected(self):
        with pytest.raises(GenerationError):
            parse_structured(make_evaluation((240, 160, 120, 80, 40)), EssayEvaluation)

    def test_missing_competency_rejected(self):
        ev = make_evaluation()
        del ev["competencies"]["c5"]
        with pytest.raises(GenerationError):
            parse_structured(ev, EssayEvaluation)

    def test_score_is_optional(self):
        ev = make_evaluation()
        del ev["score"]
        assert parse_structured(ev, EssayEvaluation).score is None


class TestPlanAndFlashcards:
    def test_duration_alias(self):
        draft = parse_structured(
            [{"day_offset": 1, "subject": "Matemática", "topic": "PA", "duration": 45}],
            StudyPlanDraft,
        )
        assert draft.tasks[0].duration_minutes == 45

    def test_zero_duration_rejected(self):
        with pytest.raises(GenerationError):
            parse_structured(
                [{"day_offset": 1, "subject": "Matemática", "topic": "PA", "duration_minutes": 0}],
                StudyPlanDraft,
            )

    def test_flashcards(self):
        batch = parse_structured('[{"front": "Mitose", "back": "Divisão celular"}]', FlashcardBatch)
        assert batch.flashcards[0].back == "Divisão celular"


class TestToolSchema:
    def test_parameters_are_self_contained(self):
        params = QUESTION_TOOL.parameters
        assert "$defs" not in json.dumps(params)
        item = params["properties"]["questions"]["items"]
        assert "correctAnswer" in item["properties"]

    def test_essay_schema_uses_aliases(self):
        props = ESSAY_TOOL.parameters["properties"]
        assert "generalFeedback" in props
        assert "melhorias" in props
        assert "c1" in props["competencies"]["properties"]

    def test_plan_tool_name(self):
        assert PLAN_TOOL.name == "create_schedule"
