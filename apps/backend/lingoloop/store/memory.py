from __future__ import annotations

from collections import defaultdict
from threading import Lock

from ..models.vocabulary import ReviewLog, VocabularyItem
from ..srs import SRSState
from .base import BaseVocabularyStore


class InMemoryVocabularyStore(BaseVocabularyStore):
    """プロセス内 dict に保持するストア。テストとローカル試用向け。"""

    def __init__(self) -> None:
        self._items: dict[str, dict[str, VocabularyItem]] = defaultdict(dict)
        self._reviews: dict[str, list[ReviewLog]] = defaultdict(list)
        self._lock = Lock()

    def list_items(self, user_id: str) -> list[VocabularyItem]:
        with self._lock:
            items = list(self._items[user_id].values())
        items.sort(key=lambda it: (-it.created_at, it.id))
        return items

    def get_item(self, user_id: str, item_id: str) -> VocabularyItem | None:
        with self._lock:
            return self._items[user_id].get(item_id)

    def save_item(self, user_id: str, item: VocabularyItem) -> None:
        with self._lock:
            self._items[user_id][item.id] = item

    def update_srs(self, user_id: str, item_id: str, state: SRSState) -> VocabularyItem | None:
        with self._lock:
            current = self._items[user_id].get(item_id)
            if current is None:
                return None
            updated = current.apply_srs(state)
            self._items[user_id][item_id] = updated
            return updated

    def delete_item(self, user_id: str, item_id: str) -> bool:
        with self._lock:
            return self._items[user_id].pop(item_id, None) is not None

    def record_review(self, user_id: str, log: ReviewLog) -> None:
        with self._lock:
            self._reviews[user_id].append(log)

    def list_review_logs(self, user_id: str, since_ms: int | None = None) -> list[ReviewLog]:
        with self._lock:
            logs = list(self._reviews[user_id])
        if since_ms is not None:
            logs = [log for log in logs if log.reviewed_at >= since_ms]
        logs.sort(key=lambda log: log.reviewed_at)
        return logs
