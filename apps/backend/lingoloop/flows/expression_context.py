from __future__ import annotations

from typing import Any, TypedDict

from pydantic import ValidationError

from ..logging import logger
from ..models.vocabulary import ExpressionContent, VocabularyItem
from ..providers import LLMClient, get_llm_provider
from ..store.base import BaseVocabularyStore
from . import ContentGenerationError, build_linear_graph, parse_json_object

DEFINITION_UNAVAILABLE = "Definition unavailable."
DEFINITION_ERROR = "Could not retrieve definition."


class _ExpressionState(TypedDict, total=False):
    expression: str
    raw: str
    content: ExpressionContent


def _expression_prompt(expression: str) -> str:
    return (
        f'Generate study material for the English expression: "{expression}".\n'
        "Return a JSON object strictly matching this schema:\n"
        "{\n"
        '  "definition": "Clear and concise definition in English",\n'
        '  "examples": ["Sentence 1", "Sentence 2", "Sentence 3", "Sentence 4"],\n'
        '  "scenario": "A short, engaging paragraph (approx 3-4 sentences) describing a '
        'realistic daily life situation where this expression is used naturally."\n'
        "}\n"
        "IMPORTANT: Provide at least 3-4 distinct example sentences demonstrating different "
        "usages if possible. Output JSON only."
    )


class ExpressionContextFlow:
    """Expression study material generation flow.

    英語表現から定義・例文・利用シーンを生成する。ダミー生成は行わず、
    生成に失敗した場合は ContentGenerationError を送出する。
    """

    def __init__(self, llm: LLMClient | None = None) -> None:
        self._llm = llm or get_llm_provider()
        self._graph = build_linear_graph(
            _ExpressionState,
            [("generate", self._generate), ("parse", self._parse)],
        )

    def _generate(self, state: _ExpressionState) -> dict[str, Any]:
        expression = state["expression"]
        try:
            raw = self._llm.complete(_expression_prompt(expression))
        except Exception as exc:
            logger.warning("expression_context_llm_failed", expression=expression, error=str(exc)[:200])
            raise ContentGenerationError("Failed to generate context.") from exc
        if not (raw or "").strip():
            raise ContentGenerationError("LLM returned empty output", reason_code="LLM_EMPTY")
        return {"raw": raw}

    def _parse(self, state: _ExpressionState) -> dict[str, Any]:
        data = parse_json_object(state["raw"])
        try:
            content = ExpressionContent.model_validate(data)
        except ValidationError as exc:
            raise ContentGenerationError(
                "LLM output is missing required fields", reason_code="LLM_SCHEMA"
            ) from exc
        if not content.examples:
            raise ContentGenerationError("LLM output has no examples", reason_code="LLM_SCHEMA")
        return {"content": content}

    def run(self, expression: str) -> ExpressionContent:
        expression = (expression or "").strip()
        if not expression:
            raise ValueError("expression is required")
        out = self._graph.invoke({"expression": expression})
        content: ExpressionContent = out["content"]
        logger.info(
            "expression_context_generated",
            expression=expression,
            definition_chars=len(content.definition),
            examples=len(content.examples),
            scenario_chars=len(content.scenario),
        )
        return content


def quick_definition(text: str, context: str, llm: LLMClient | None = None) -> str:
    """文脈中の語句に対する短い英語定義（20語未満）。失敗時は定型文を返す。"""

    prompt = (
        f'Provide a simple, concise English definition for the word or phrase "{text}" '
        f'as it is used in this context: "{context}".\n'
        "Keep it under 20 words."
    )
    try:
        out = (llm or get_llm_provider()).complete(prompt)
    except Exception as exc:
        logger.warning("quick_definition_failed", text=text, error=str(exc)[:200])
        return DEFINITION_ERROR
    return (out or "").strip() or DEFINITION_UNAVAILABLE


def create_vocabulary_item(
    store: BaseVocabularyStore,
    user_id: str,
    expression: str,
    content: ExpressionContent,
    *,
    now_ms: int | None = None,
) -> VocabularyItem:
    """初期 SRS 状態で語彙アイテムを作成し保存する（作成直後から復習対象）。"""

    item = VocabularyItem.create(expression, content, now_ms=now_ms)
    store.save_item(user_id, item)
    logger.info(
        "vocabulary_item_created",
        user_id=user_id,
        item_id=item.id,
        expression=item.expression,
    )
    return item
