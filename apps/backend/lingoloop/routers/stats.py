from functools import partial

import anyio
from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user_id
from ..logging import logger
from ..models.vocabulary import StudyStats, SyncResponse
from ..stats import compute_study_stats
from ..store import BaseVocabularyStore, SyncedVocabularyStore, get_store

router = APIRouter(tags=["stats"])


def _load_stats(store: BaseVocabularyStore, user_id: str) -> StudyStats:
    items = store.list_items(user_id)
    logs = store.list_review_logs(user_id)
    return compute_study_stats(items, logs)


@router.get("/stats", response_model=StudyStats)
async def get_stats(
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> StudyStats:
    """ダッシュボード用の統計（総数・期限到来数・定着率・連続日数）を返す。"""

    return await anyio.to_thread.run_sync(partial(_load_stats, store, user_id))


@router.post("/sync", response_model=SyncResponse)
async def sync_to_remote(
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> SyncResponse:
    """ローカルに保存されたアイテムをリモートへ反映する（synced ストアのみ）。"""

    if not isinstance(store, SyncedVocabularyStore):
        logger.info("store_sync_skipped", user_id=user_id, backend=type(store).__name__)
        raise HTTPException(status_code=409, detail="sync requires STORAGE_BACKEND=synced")
    pushed = await anyio.to_thread.run_sync(store.sync_local_to_remote, user_id)
    return SyncResponse(pushed=pushed)
