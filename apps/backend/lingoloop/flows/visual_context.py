from __future__ import annotations

from typing import Any, TypedDict

from ..logging import logger
from ..models.vocabulary import ImageAnalysisResult
from ..providers import LLMClient, get_llm_provider
from . import ContentGenerationError, build_linear_graph, parse_json_object

_MAX_VOCABULARY = 8

_VISUAL_PROMPT = (
    'Analyze this image to help an English learner "think in English".\n'
    "1. Write a first-person narrative (approx 80-100 words) describing the scene as if you "
    'are there, interacting with the objects (e.g., "I sit at the desk...", "I see a..."). '
    "It should sound like inner monologue or a diary entry.\n"
    "2. List 5-8 key vocabulary words visible in the image that are relevant to the narrative.\n"
    'Return JSON: {"narrative": "...", "vocabulary": ["...", "..."]}'
)


class _VisualState(TypedDict, total=False):
    image_base64: str
    mime_type: str
    raw: str
    result: ImageAnalysisResult


class VisualContextFlow:
    """画像から一人称ナラティブと語彙候補を生成するフロー。"""

    def __init__(self, llm: LLMClient | None = None) -> None:
        self._llm = llm or get_llm_provider()
        self._graph = build_linear_graph(
            _VisualState,
            [("describe", self._describe), ("parse", self._parse)],
        )

    def _describe(self, state: _VisualState) -> dict[str, Any]:
        try:
            raw = self._llm.complete_with_image(
                _VISUAL_PROMPT, state["image_base64"], state["mime_type"]
            )
        except Exception as exc:
            logger.warning("visual_context_llm_failed", error=str(exc)[:200])
            raise ContentGenerationError("Failed to analyze image.") from exc
        if not (raw or "").strip():
            raise ContentGenerationError("LLM returned empty output", reason_code="LLM_EMPTY")
        return {"raw": raw}

    def _parse(self, state: _VisualState) -> dict[str, Any]:
        data = parse_json_object(state["raw"])
        narrative = str(data.get("narrative") or "").strip()
        if not narrative:
            raise ContentGenerationError("LLM output has no narrative", reason_code="LLM_SCHEMA")
        words: list[str] = []
        seen: set[str] = set()
        raw_words = data.get("vocabulary")
        for word in raw_words if isinstance(raw_words, list) else []:
            cleaned = str(word or "").strip()
            if cleaned and cleaned.lower() not in seen:
                seen.add(cleaned.lower())
                words.append(cleaned)
        return {"result": ImageAnalysisResult(narrative=narrative, vocabulary=words[:_MAX_VOCABULARY])}

    def run(self, image_base64: str, mime_type: str) -> ImageAnalysisResult:
        out = self._graph.invoke({"image_base64": image_base64, "mime_type": mime_type})
        result: ImageAnalysisResult = out["result"]
        logger.info(
            "visual_context_generated",
            narrative_chars=len(result.narrative),
            vocabulary=len(result.vocabulary),
        )
        return result
