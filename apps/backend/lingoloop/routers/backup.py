"""Backup export / import of a user's vocabulary items.

エクスポートは camelCase の語彙アイテム配列（JSON）をそのまま返す。
インポートは全件を検証してから保存し、1件でも不正なら何も書き込まない。
"""

from datetime import datetime, timezone
from functools import partial
from typing import Any

import anyio
from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..auth import get_current_user_id
from ..logging import logger
from ..models.vocabulary import BackupImportResponse, VocabularyItem
from ..store import BaseVocabularyStore, get_store

router = APIRouter(tags=["backup"])

_INVALID_BACKUP = {
    "message": "Invalid backup file. Expected a LingoLoop JSON export.",
    "reason_code": "INVALID_BACKUP",
}


def parse_backup(payload: Any) -> list[VocabularyItem]:
    """Validate a backup document; accepts a bare item array or `{"items": [...]}`.

    1件でも不正なレコードがあれば 422 とし、呼び出し側では何も保存しない。
    """

    if isinstance(payload, dict) and "items" in payload:
        payload = payload["items"]
    if not isinstance(payload, list):
        raise HTTPException(status_code=422, detail=_INVALID_BACKUP)
    try:
        return [VocabularyItem.model_validate(record) for record in payload]
    except ValidationError as exc:
        logger.warning("backup_invalid", error_count=exc.error_count())
        raise HTTPException(status_code=422, detail=_INVALID_BACKUP) from exc


def _restore(store: BaseVocabularyStore, user_id: str, items: list[VocabularyItem]) -> int:
    for item in items:
        store.save_item(user_id, item)
    logger.info("backup_imported", user_id=user_id, imported=len(items))
    return len(items)


@router.get("/backup")
async def export_backup(
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> JSONResponse:
    """全アイテムを SRS 状態ごと書き出す（ダウンロード用の JSON）。"""

    items = await anyio.to_thread.run_sync(store.list_items, user_id)
    filename = f"lingoloop_backup_{datetime.now(timezone.utc).date().isoformat()}.json"
    logger.info("backup_exported", user_id=user_id, items=len(items))
    return JSONResponse(
        content=[item.to_wire() for item in items],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/backup", response_model=BackupImportResponse)
async def import_backup(
    payload: Any = Body(...),
    user_id: str = Depends(get_current_user_id),
    store: BaseVocabularyStore = Depends(get_store),
) -> BackupImportResponse:
    """バックアップを復元する。同じ id のアイテムは上書きする。"""

    items = parse_backup(payload)
    imported = await anyio.to_thread.run_sync(partial(_restore, store, user_id, items))
    return BackupImportResponse(imported=imported)
