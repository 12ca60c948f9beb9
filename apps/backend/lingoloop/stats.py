"""ダッシュボード向けの学習統計。"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Iterable, Sequence

from .models.vocabulary import ReviewLog, StudyStats, VocabularyItem
from .srs import current_millis, is_due, round_half_up

# retention 推定で「定着済み」とみなす連続正答回数
_RETENTION_TARGET_REPETITIONS = 5


def _utc_day(ms: int) -> date:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).date()


def review_streak(review_logs: Iterable[ReviewLog], now_ms: int) -> int:
    """Consecutive UTC days with at least one review.

    今日まだ復習していなくても、昨日まで続いていれば連続記録は途切れない。
    """

    days = {_utc_day(log.reviewed_at) for log in review_logs}
    if not days:
        return 0
    cursor = _utc_day(now_ms)
    if cursor not in days:
        cursor -= timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def retention_rate(items: Sequence[VocabularyItem]) -> int:
    """Retention estimate from repetition counts, 0..100."""

    if not items:
        return 0
    total_repetitions = sum(item.repetition for item in items)
    ratio = total_repetitions / (len(items) * _RETENTION_TARGET_REPETITIONS) * 100
    return round_half_up(min(100.0, ratio))


def compute_study_stats(
    items: Sequence[VocabularyItem],
    review_logs: Iterable[ReviewLog] = (),
    now_ms: int | None = None,
) -> StudyStats:
    now = current_millis() if now_ms is None else now_ms
    return StudyStats(
        total_items=len(items),
        items_due=sum(1 for item in items if is_due(item, now)),
        retention_rate=retention_rate(items),
        streak=review_streak(review_logs, now),
    )
