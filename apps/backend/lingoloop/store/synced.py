from __future__ import annotations

from typing import Callable, TypeVar

from ..logging import logger
from ..models.vocabulary import ReviewLog, VocabularyItem
from ..srs import SRSState
from .base import BaseVocabularyStore, StoreUnavailable

T = TypeVar("T")


class SyncedVocabularyStore(BaseVocabularyStore):
    """Local store with a remote mirror.

    - 読み取りはリモートを優先し、成功したらローカルへ反映する
    - 一覧はリモート結果とローカルのみのアイテムを統合し、後者をリモートへ送る
    - 書き込みはローカル → リモートの順。リモート失敗時はログを残してローカルの結果を返す
    - 競合解決は行わず、最後に書いた側が勝つ（last-write-wins）
    """

    def __init__(self, local: BaseVocabularyStore, remote: BaseVocabularyStore) -> None:
        self.local = local
        self.remote = remote

    def _remote(self, operation: str, user_id: str, fn: Callable[[], T]) -> tuple[bool, T | None]:
        try:
            return True, fn()
        except StoreUnavailable as exc:
            logger.warning(
                "store_remote_fallback",
                operation=operation,
                user_id=user_id,
                error=str(exc)[:200],
            )
            return False, None

    def list_items(self, user_id: str) -> list[VocabularyItem]:
        ok, remote_items = self._remote("list_items", user_id, lambda: self.remote.list_items(user_id))
        if not ok or remote_items is None:
            return self.local.list_items(user_id)
        for item in remote_items:
            self.local.save_item(user_id, item)
        # オフライン中に作成されリモート未反映のアイテムも一覧に含め、上流へ送る
        remote_ids = {item.id for item in remote_items}
        pending = [item for item in self.local.list_items(user_id) if item.id not in remote_ids]
        for item in pending:
            pushed, _ = self._remote(
                "list_items_push", user_id, lambda it=item: self.remote.save_item(user_id, it)
            )
            if not pushed:
                break
        if pending:
            logger.info("store_pending_items_merged", user_id=user_id, pending=len(pending))
        merged = [*remote_items, *pending]
        merged.sort(key=lambda it: (-it.created_at, it.id))
        return merged

    def get_item(self, user_id: str, item_id: str) -> VocabularyItem | None:
        ok, remote_item = self._remote(
            "get_item", user_id, lambda: self.remote.get_item(user_id, item_id)
        )
        if not ok:
            return self.local.get_item(user_id, item_id)
        if remote_item is not None:
            self.local.save_item(user_id, remote_item)
            return remote_item
        # リモート未反映（オフライン中に作成）のアイテムはローカルから返す
        return self.local.get_item(user_id, item_id)

    def save_item(self, user_id: str, item: VocabularyItem) -> None:
        self.local.save_item(user_id, item)
        self._remote("save_item", user_id, lambda: self.remote.save_item(user_id, item))

    def update_srs(self, user_id: str, item_id: str, state: SRSState) -> VocabularyItem | None:
        updated = self.local.update_srs(user_id, item_id, state)
        if updated is None:
            remote_item = self.get_item(user_id, item_id)
            if remote_item is None:
                return None
            updated = remote_item.apply_srs(state)
            self.local.save_item(user_id, updated)
        # 4フィールドだけでなくアイテム全体を書き戻し、リモート側の欠落も補う
        final = updated
        self._remote("update_srs", user_id, lambda: self.remote.save_item(user_id, final))
        return updated

    def delete_item(self, user_id: str, item_id: str) -> bool:
        deleted_local = self.local.delete_item(user_id, item_id)
        ok, deleted_remote = self._remote(
            "delete_item", user_id, lambda: self.remote.delete_item(user_id, item_id)
        )
        return deleted_local or bool(ok and deleted_remote)

    def record_review(self, user_id: str, log: ReviewLog) -> None:
        self.local.record_review(user_id, log)
        self._remote("record_review", user_id, lambda: self.remote.record_review(user_id, log))

    def list_review_logs(self, user_id: str, since_ms: int | None = None) -> list[ReviewLog]:
        ok, remote_logs = self._remote(
            "list_review_logs", user_id, lambda: self.remote.list_review_logs(user_id, since_ms)
        )
        if ok and remote_logs is not None:
            return remote_logs
        return self.local.list_review_logs(user_id, since_ms)

    def sync_local_to_remote(self, user_id: str) -> int:
        """Push every local item upstream; returns the number of items written.

        ログイン直後などオフライン中に作成・更新したアイテムをリモートへ反映する。
        """

        pushed = 0
        for item in self.local.list_items(user_id):
            ok, _ = self._remote("sync", user_id, lambda it=item: self.remote.save_item(user_id, it))
            if not ok:
                break
            pushed += 1
        logger.info("store_sync_complete", user_id=user_id, pushed=pushed)
        return pushed

    def close(self) -> None:
        self.local.close()
        self.remote.close()
