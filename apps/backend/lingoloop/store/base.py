"""Repository capability shared by every vocabulary store.

スケジューラはストアに依存しない。復習セッションやルーターはこの基底クラスの
メソッドだけを使い、実体（メモリ / SQLite / Firestore / 同期）は注入される。
"""

from __future__ import annotations

from ..models.vocabulary import ReviewLog, VocabularyItem
from ..srs import SRSState, current_millis, select_due_items


class StoreUnavailable(RuntimeError):
    """Raised when the backing store cannot be reached."""


class BaseVocabularyStore:
    """語彙アイテムの永続化インターフェース。"""

    def list_items(self, user_id: str) -> list[VocabularyItem]:  # pragma: no cover - interface definition
        raise NotImplementedError

    def get_item(self, user_id: str, item_id: str) -> VocabularyItem | None:  # pragma: no cover - interface definition
        raise NotImplementedError

    def save_item(self, user_id: str, item: VocabularyItem) -> None:  # pragma: no cover - interface definition
        """Insert or replace a whole item (last write wins)."""
        raise NotImplementedError

    def update_srs(
        self, user_id: str, item_id: str, state: SRSState
    ) -> VocabularyItem | None:  # pragma: no cover - interface definition
        """Atomically replace the four SRS fields; None if the item is gone."""
        raise NotImplementedError

    def delete_item(self, user_id: str, item_id: str) -> bool:  # pragma: no cover - interface definition
        raise NotImplementedError

    def record_review(self, user_id: str, log: ReviewLog) -> None:  # pragma: no cover - interface definition
        raise NotImplementedError

    def list_review_logs(
        self, user_id: str, since_ms: int | None = None
    ) -> list[ReviewLog]:  # pragma: no cover - interface definition
        raise NotImplementedError

    def list_due_items(self, user_id: str, now_ms: int | None = None) -> list[VocabularyItem]:
        now = current_millis() if now_ms is None else now_ms
        return select_due_items(self.list_items(user_id), now)

    def close(self) -> None:
        return None
