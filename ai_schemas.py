"""
Declared shapes for every structured payload the AI backend returns.

parse_structured() is the only place model output is parsed and validated;
anything that does not match raises GenerationError and is never partially
accepted.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, get_origin

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from errors import GenerationError

logger = logging.getLogger(__name__)


# ── Questions ───────────────────────────────────────────────

class QuestionContent(BaseModel):
    """One multiple-choice question with exactly five options."""

    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(min_length=1, description="Texto-base completo seguido do comando da questão")
    options: list[str] = Field(min_length=5, max_length=5, description="Cinco alternativas sem prefixo de letra")
    correct_answer: int = Field(alias="correctAnswer", ge=0, le=4, description="Índice da alternativa correta (0 = A)")
    explanation: str = Field(description="Explicação detalhada da resolução")

    def to_content(self) -> dict:
        return self.model_dump(by_alias=True)


class QuestionBatch(BaseModel):
    questions: list[QuestionContent] = Field(min_length=1)


# ── Essays ──────────────────────────────────────────────────

class CompetencyScore(BaseModel):
    score: int = Field(ge=0, le=200, description="Nota de 0 a 200 (múltiplos de 40)")
    feedback: str


class Competencies(BaseModel):
    c1: CompetencyScore
    c2: CompetencyScore
    c3: CompetencyScore
    c4: CompetencyScore
    c5: CompetencyScore


class EssayEvaluation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: Optional[int] = Field(default=None, ge=0, le=1000, description="Nota total de 0 a 1000")
    competencies: Competencies
    general_feedback: str = Field(alias="generalFeedback", description="Feedback geral sobre a redação")
    improvements: list[str] = Field(default_factory=list, alias="melhorias",
                                    description="Sugestões objetivas de melhoria")

    @property
    def total(self) -> int:
        c = self.competencies
        return c.c1.score + c.c2.score + c.c3.score + c.c4.score + c.c5.score


# ── Flashcards ──────────────────────────────────────────────

class FlashcardDraft(BaseModel):
    front: str = Field(min_length=1, description="Pergunta ou conceito")
    back: str = Field(min_length=1, description="Resposta ou explicação")


class FlashcardBatch(BaseModel):
    flashcards: list[FlashcardDraft] = Field(min_length=1)


# ── Study plan ──────────────────────────────────────────────

class PlannedTask(BaseModel):
    day_offset: int = Field(ge=0, le=31, description="Dias a partir de hoje (1 = amanhã)")
    subject: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    duration_minutes: int = Field(gt=0, le=600)

    @model_validator(mode="before")
    @classmethod
    def _accept_duration(cls, data: Any) -> Any:
        if isinstance(data, dict) and "duration_minutes" not in data and "duration" in data:
            data = {**data, "duration_minutes": data["duration"]}
        return data


class StudyPlanDraft(BaseModel):
    tasks: list[PlannedTask] = Field(min_length=1)


# ── Tool schema for function-calling providers ──────────────

def _inline_refs(schema: dict) -> dict:
    """Resolve local $ref pointers so providers get a self-contained schema."""
    defs = schema.get("$defs", {})

    def resolve(node):
        if isinstance(node, dict):
            ref = node.get("$ref")
            if ref and ref.startswith("#/$defs/"):
                return resolve(copy.deepcopy(defs[ref.split("/")[-1]]))
            return {k: resolve(v) for k, v in node.items() if k != "$defs"}
        if isinstance(node, list):
            return [resolve(v) for v in node]
        return node

    return resolve(schema)


@dataclass(frozen=True)
class ToolSchema:
    name: str
    description: str
    model: type[BaseModel]

    @property
    def parameters(self) -> dict:
        return _inline_refs(self.model.model_json_schema(by_alias=True))


QUESTION_TOOL = ToolSchema("create_questions", "Retorna questões de múltipla escolha no padrão ENEM", QuestionBatch)
ESSAY_TOOL = ToolSchema("essay_evaluation", "Retorna a avaliação estruturada da redação", EssayEvaluation)
FLASHCARD_TOOL = ToolSchema("create_flashcards", "Cria flashcards educacionais", FlashcardBatch)
PLAN_TOOL = ToolSchema("create_schedule", "Cria cronograma de estudos", StudyPlanDraft)


# ── Parsing ─────────────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def extract_json(text: str) -> Any:
    """Decode JSON from model output that may carry code fences or prose around it."""
    if not text or not text.strip():
        raise GenerationError("resposta vazia da IA")

    cleaned = _FENCE_RE.sub("", text).strip()
    if cleaned.lower().startswith("json"):
        cleaned = cleaned[4:].strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost bracketed block
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    end = max(cleaned.rfind("]"), cleaned.rfind("}"))
    if starts and end > min(starts):
        try:
            return json.loads(cleaned[min(starts):end + 1])
        except json.JSONDecodeError:
            pass
    raise GenerationError("a IA não retornou um JSON válido")


def _list_field(model: type[BaseModel]) -> str | None:
    """Name of the single list field for wrapper models like QuestionBatch."""
    fields = model.model_fields
    if len(fields) != 1:
        return None
    name, info = next(iter(fields.items()))
    return name if get_origin(info.annotation) is list else None


def parse_structured(payload: str | dict | list, model: type[BaseModel]) -> BaseModel:
    """Validate model output against ``model``; raise GenerationError on any mismatch."""
    data = extract_json(payload) if isinstance(payload, str) else payload

    wrapper = _list_field(model)
    if wrapper:
        if isinstance(data, list):
            data = {wrapper: data}
        elif isinstance(data, dict) and wrapper not in data:
            data = {wrapper: [data]}

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"]) or model.__name__
        logger.warning("AI payload rejected by %s: %d error(s), first at %s: %s",
                       model.__name__, exc.error_count(), where, first["msg"])
        raise GenerationError(
            f"resposta da IA fora do formato esperado ({where}: {first['msg']})"
        ) from exc
