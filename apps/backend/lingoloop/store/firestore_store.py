from __future__ import annotations

import uuid
from typing import Any

from google.api_core import exceptions as gexc
from google.cloud import firestore

from ..logging import logger
from ..models.vocabulary import ReviewLog, VocabularyItem
from ..srs import SRSState
from .base import BaseVocabularyStore, StoreUnavailable
from .common import item_from_record, review_log_from_record


def _doc_id(user_id: str, item_id: str) -> str:
    return f"{user_id}:{item_id}"


class FirestoreVocabularyStore(BaseVocabularyStore):
    """語彙アイテムと復習履歴を Firestore で管理するリモートストア。

    - `vocabulary_items/{user_id}:{item_id}` に1アイテム1ドキュメントで保存
    - `reviews/{uuid}` に評価履歴を追記
    - 書き込みはドキュメント単位で last-write-wins。SRS 更新は4フィールドのみ update する
    """

    def __init__(self, client: firestore.Client):
        self._client = client
        self._items = client.collection("vocabulary_items")
        self._reviews = client.collection("reviews")

    @staticmethod
    def _item_payload(user_id: str, item: VocabularyItem) -> dict[str, Any]:
        payload = item.to_wire()
        payload["user_id"] = user_id
        return payload

    def list_items(self, user_id: str) -> list[VocabularyItem]:
        try:
            snapshots = list(self._items.where("user_id", "==", user_id).stream())
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore list failed: {exc}") from exc
        items = [item_from_record(snap.to_dict() or {}) for snap in snapshots]
        items.sort(key=lambda it: (-it.created_at, it.id))
        return items

    def get_item(self, user_id: str, item_id: str) -> VocabularyItem | None:
        try:
            snap = self._items.document(_doc_id(user_id, item_id)).get()
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore get failed: {exc}") from exc
        if not snap.exists:
            return None
        return item_from_record(snap.to_dict() or {})

    def save_item(self, user_id: str, item: VocabularyItem) -> None:
        try:
            self._items.document(_doc_id(user_id, item.id)).set(self._item_payload(user_id, item))
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore save failed: {exc}") from exc

    def update_srs(self, user_id: str, item_id: str, state: SRSState) -> VocabularyItem | None:
        doc_ref = self._items.document(_doc_id(user_id, item_id))
        try:
            snap = doc_ref.get()
            if not snap.exists:
                return None
            doc_ref.update(
                {
                    "repetition": int(state.repetition),
                    "interval": int(state.interval),
                    "easeFactor": float(state.ease_factor),
                    "nextReviewDate": int(state.next_review_date),
                }
            )
        except gexc.NotFound:
            logger.info("firestore_update_srs_missing", user_id=user_id, item_id=item_id)
            return None
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore update failed: {exc}") from exc
        return item_from_record(snap.to_dict() or {}).apply_srs(state)

    def delete_item(self, user_id: str, item_id: str) -> bool:
        doc_ref = self._items.document(_doc_id(user_id, item_id))
        try:
            if not doc_ref.get().exists:
                return False
            doc_ref.delete()
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore delete failed: {exc}") from exc
        return True

    def record_review(self, user_id: str, log: ReviewLog) -> None:
        payload = log.to_wire()
        payload["user_id"] = user_id
        try:
            self._reviews.document(uuid.uuid4().hex).set(payload)
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore review log failed: {exc}") from exc

    def list_review_logs(self, user_id: str, since_ms: int | None = None) -> list[ReviewLog]:
        query = self._reviews.where("user_id", "==", user_id)
        if since_ms is not None:
            query = query.where("reviewedAt", ">=", int(since_ms))
        try:
            snapshots = list(query.stream())
        except gexc.GoogleAPICallError as exc:
            raise StoreUnavailable(f"firestore review query failed: {exc}") from exc
        logs = [review_log_from_record(snap.to_dict() or {}) for snap in snapshots]
        logs.sort(key=lambda log: log.reviewed_at)
        return logs
