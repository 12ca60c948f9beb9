"""ルーター共通の依存関係。テストでは app.dependency_overrides で差し替える。"""

from __future__ import annotations

from fastapi import HTTPException

from ..config import settings
from ..flows.expression_context import ExpressionContextFlow
from ..flows.visual_context import VisualContextFlow
from ..logging import logger
from ..providers import LLMClient, get_llm_provider
from ..review_session import ReviewSessionRegistry

_session_registry = ReviewSessionRegistry(ttl_seconds=settings.review_session_ttl_seconds)


def get_session_registry() -> ReviewSessionRegistry:
    return _session_registry


def get_llm() -> LLMClient:
    try:
        return get_llm_provider()
    except RuntimeError as exc:
        logger.warning("llm_provider_unavailable", error=str(exc)[:200])
        raise HTTPException(
            status_code=503,
            detail={"message": str(exc), "reason_code": "LLM_UNAVAILABLE"},
        ) from exc


def get_expression_flow() -> ExpressionContextFlow:
    return ExpressionContextFlow(llm=get_llm())


def get_visual_flow() -> VisualContextFlow:
    return VisualContextFlow(llm=get_llm())
