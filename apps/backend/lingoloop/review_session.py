"""Review session controller.

セッション開始時点の期限到来アイテムをキューとして固定し、1件ずつ提示して
評価を受け取る。評価ごとにスケジューラで次の SRS 状態を計算し、注入された
ストアへ4フィールドをまとめて書き戻す。セッション中に時刻が進んで新たに
期限を迎えたアイテムはキューに加えない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import Callable

from .id_factory import generate_session_id
from .logging import logger
from .metrics import registry
from .models.vocabulary import ReviewLog, VocabularyItem
from .srs import PASSING_QUALITY, compute_next_review, current_millis, validate_quality
from .store.base import BaseVocabularyStore

Clock = Callable[[], int]


class ItemNotFound(LookupError):
    """Raised when an item disappeared from the store."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"vocabulary item not found: {item_id}")


class SessionCompleted(RuntimeError):
    """Raised when rating a session whose queue is exhausted."""


def submit_rating(
    store: BaseVocabularyStore,
    user_id: str,
    item: VocabularyItem,
    quality: int,
    *,
    now_ms: int | None = None,
) -> VocabularyItem:
    """Apply one rating to `item` and persist the new SRS state.

    評価値の検証はストアに触れる前に行う（InvalidRating はそのまま呼び出し元へ）。
    """

    quality = validate_quality(quality)
    reviewed_at = current_millis() if now_ms is None else now_ms
    state = compute_next_review(item, quality, now_ms=reviewed_at)
    updated = store.update_srs(user_id, item.id, state)
    if updated is None:
        raise ItemNotFound(item.id)
    store.record_review(user_id, ReviewLog.from_state(item.id, quality, reviewed_at, state))
    registry.record_review(quality, lapsed=quality < PASSING_QUALITY)
    logger.info(
        "review_rated",
        user_id=user_id,
        item_id=item.id,
        quality=quality,
        repetition=state.repetition,
        interval=state.interval,
        ease_factor=state.ease_factor,
        next_review_date=state.next_review_date,
    )
    return updated


@dataclass
class ReviewSession:
    store: BaseVocabularyStore
    user_id: str
    queue: list[VocabularyItem]
    session_id: str = field(default_factory=generate_session_id)
    position: int = 0
    clock: Clock = current_millis
    last_active_ms: int = 0
    _lock: Lock = field(default_factory=Lock, init=False, repr=False, compare=False)

    @classmethod
    def start(
        cls,
        store: BaseVocabularyStore,
        user_id: str,
        *,
        limit: int = 0,
        clock: Clock = current_millis,
    ) -> "ReviewSession":
        now = clock()
        queue = store.list_due_items(user_id, now)
        if limit > 0:
            queue = queue[:limit]
        session = cls(store=store, user_id=user_id, queue=queue, clock=clock, last_active_ms=now)
        logger.info(
            "review_session_started",
            session_id=session.session_id,
            user_id=user_id,
            queued=len(queue),
        )
        return session

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.position)

    @property
    def completed(self) -> bool:
        return self.position >= self.total

    @property
    def current(self) -> VocabularyItem | None:
        if self.completed:
            return None
        return self.queue[self.position]

    def rate(self, quality: object) -> VocabularyItem:
        """Rate the current card and advance to the next one.

        同じセッションへの同時評価は直列化する（同じカードを二重に評価しない）。
        """

        with self._lock:
            item = self.current
            if item is None:
                raise SessionCompleted(f"review session {self.session_id} has no cards left")
            quality = validate_quality(quality)
            now = self.clock()
            self.last_active_ms = now
            try:
                updated = submit_rating(self.store, self.user_id, item, quality, now_ms=now)
            except ItemNotFound:
                # 削除済みのカードは読み飛ばす
                logger.warning(
                    "review_session_item_missing", session_id=self.session_id, item_id=item.id
                )
                self.position += 1
                raise
            self.queue[self.position] = updated
            self.position += 1
            if self.completed:
                logger.info(
                    "review_session_completed", session_id=self.session_id, reviewed=self.total
                )
            return updated


class ReviewSessionRegistry:
    """In-process registry of active review sessions keyed by id."""

    def __init__(self, ttl_seconds: int, clock: Clock = current_millis) -> None:
        self._ttl_ms = max(1, int(ttl_seconds)) * 1000
        self._clock = clock
        self._sessions: dict[str, ReviewSession] = {}
        self._lock = Lock()

    def _purge_expired(self) -> None:
        cutoff = self._clock() - self._ttl_ms
        for sid in [sid for sid, s in self._sessions.items() if s.last_active_ms < cutoff]:
            self._sessions.pop(sid, None)
            logger.info("review_session_expired", session_id=sid)

    def add(self, session: ReviewSession) -> ReviewSession:
        with self._lock:
            self._purge_expired()
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str, user_id: str) -> ReviewSession | None:
        with self._lock:
            self._purge_expired()
            session = self._sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
