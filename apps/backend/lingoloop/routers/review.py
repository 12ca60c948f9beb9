from functools import partial

import anyio
from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user_id
from ..config import settings
from ..models.vocabulary import (
    ReviewRatingRequest,
    ReviewRatingResponse,
    ReviewSessionView,
    VocabularyListResponse,
)
from ..review_session import (
    ItemNotFound,
    ReviewSession,
    ReviewSessionRegistry,
    SessionCompleted,
    submit_rating,
)
from ..srs import validate_quality
from ..store import BaseVocabularyStore, get_store
from .deps import get_session_registry

router = APIRouter(tags=["review"])


def _session_view(session: ReviewSession) -> ReviewSessionView:
    return ReviewSessionView(
        session_id=session.session_id,
        total=session.total,
        position=session.position,
        remaining=session.remaining,
        completed=session.completed,
        current=session.current,
    )


@router.get("/due", response_model=VocabularyListResponse)
async def list_due(
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> VocabularyListResponse:
    """期限到来済み（nextReviewDate <= now）のアイテムを古い順に返す。"""

    items = await anyio.to_thread.run_sync(store.list_due_items, user_id)
    return VocabularyListResponse(items=items, total=len(items))


@router.post("/items/{item_id}/rating", response_model=ReviewRatingResponse)
async def rate_item(
    item_id: str,
    req: ReviewRatingRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> ReviewRatingResponse:
    """単一アイテムへの評価を反映する。評価値はストアへ触れる前に検証する。"""

    quality = validate_quality(req.quality)
    item = await anyio.to_thread.run_sync(store.get_item, user_id, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="vocabulary item not found")
    updated = await anyio.to_thread.run_sync(
        partial(submit_rating, store, user_id, item, quality)
    )
    return ReviewRatingResponse(item=updated, quality=quality)


@router.post("/sessions", response_model=ReviewSessionView, status_code=201)
async def start_session(
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
    registry: ReviewSessionRegistry = Depends(get_session_registry),
) -> ReviewSessionView:
    """セッションを開始し、その時点の期限到来アイテムをキューとして固定する。"""

    session = await anyio.to_thread.run_sync(
        partial(ReviewSession.start, store, user_id, limit=settings.review_session_limit)
    )
    registry.add(session)
    return _session_view(session)


def _require_session(
    session_id: str, user_id: str, registry: ReviewSessionRegistry
) -> ReviewSession:
    session = registry.get(session_id, user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="review session not found")
    return session


@router.get("/sessions/{session_id}", response_model=ReviewSessionView)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: ReviewSessionRegistry = Depends(get_session_registry),
) -> ReviewSessionView:
    return _session_view(_require_session(session_id, user_id, registry))


@router.post("/sessions/{session_id}/rating", response_model=ReviewSessionView)
async def rate_session_card(
    session_id: str,
    req: ReviewRatingRequest,
    user_id: str = Depends(get_current_user_id),
    registry: ReviewSessionRegistry = Depends(get_session_registry),
) -> ReviewSessionView:
    """現在のカードを評価して次のカードへ進める。"""

    session = _require_session(session_id, user_id, registry)
    try:
        await anyio.to_thread.run_sync(session.rate, req.quality)
    except SessionCompleted as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ItemNotFound as exc:
        raise HTTPException(
            status_code=404,
            detail={"message": str(exc), "reason_code": "ITEM_NOT_FOUND", "item_id": exc.item_id},
        ) from exc
    return _session_view(session)
