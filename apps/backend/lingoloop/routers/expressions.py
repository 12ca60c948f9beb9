from functools import partial

import anyio  # オフロード用
from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user_id
from ..flows import ContentGenerationError
from ..flows.expression_context import ExpressionContextFlow, create_vocabulary_item
from ..models.vocabulary import (
    ExpressionContent,
    ExpressionCreateRequest,
    ManualExpressionRequest,
    VocabularyItem,
    VocabularyListResponse,
)
from ..store import BaseVocabularyStore, get_store
from .deps import get_expression_flow

router = APIRouter(tags=["expressions"])


@router.get("", response_model=VocabularyListResponse, response_model_by_alias=True)
async def list_expressions(
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> VocabularyListResponse:
    """保存済みの語彙アイテムを新しい順に返す。"""

    items = await anyio.to_thread.run_sync(store.list_items, user_id)
    return VocabularyListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=VocabularyItem,
    response_model_by_alias=True,
    status_code=201,
    summary="学習コンテンツを生成して語彙アイテムを保存",
)
async def create_expression(
    req: ExpressionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
    flow: ExpressionContextFlow = Depends(get_expression_flow),
) -> VocabularyItem:
    """LLM で定義・例文・利用シーンを生成し、初期 SRS 状態で保存する。

    生成に失敗した場合は保存せず 502 を返す。
    """

    expression = req.expression.strip()
    if not expression:
        raise HTTPException(status_code=400, detail="expression is required")
    try:
        content = await anyio.to_thread.run_sync(flow.run, expression)
    except ContentGenerationError as exc:
        raise HTTPException(
            status_code=502,
            detail={
                "message": "Failed to generate context.",
                "reason_code": exc.reason_code,
                "diagnostics": {"expression": expression, "error": str(exc)[:200]},
            },
        ) from exc
    return await anyio.to_thread.run_sync(
        partial(create_vocabulary_item, store, user_id, expression, content)
    )


@router.post(
    "/manual",
    response_model=VocabularyItem,
    response_model_by_alias=True,
    status_code=201,
    summary="生成を行わずに語彙アイテムを保存",
)
async def create_manual_expression(
    req: ManualExpressionRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> VocabularyItem:
    content = ExpressionContent(
        definition=req.definition, examples=req.examples, scenario=req.scenario
    )
    return await anyio.to_thread.run_sync(
        partial(create_vocabulary_item, store, user_id, req.expression, content)
    )


@router.get("/{item_id}", response_model=VocabularyItem, response_model_by_alias=True)
async def get_expression(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> VocabularyItem:
    item = await anyio.to_thread.run_sync(store.get_item, user_id, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="vocabulary item not found")
    return item


@router.delete("/{item_id}", status_code=204)
async def delete_expression(
    item_id: str,
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> None:
    deleted = await anyio.to_thread.run_sync(store.delete_item, user_id, item_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="vocabulary item not found")
