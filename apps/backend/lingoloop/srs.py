"""Spaced-repetition scheduler.

各語彙アイテムの SRS 状態（repetition / interval / ease_factor / next_review_date）
から次回の復習日を算出する純粋関数群。状態は保持せず I/O も行わないため、
スレッド/タスクから同時に呼び出しても安全。

序盤は忘却曲線の落ち込みを狙った固定マイルストーン（1, 2, 6, 31 日）を使い、
それを越えたら SM-2 の ease factor による幾何的な伸長へ切り替える。
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Protocol

MILESTONE_INTERVALS: tuple[int, ...] = (1, 2, 6, 31)
INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
DAY_MS = 24 * 60 * 60 * 1000


class InvalidRating(ValueError):
    """Raised when a review quality is not an integer in [0, 5]."""

    reason_code = "INVALID_RATING"

    def __init__(self, quality: object) -> None:
        self.quality = quality
        super().__init__(
            f"quality must be an integer between {MIN_QUALITY} and {MAX_QUALITY}, got {quality!r}"
        )


class SupportsSRS(Protocol):
    repetition: int
    interval: int
    ease_factor: float


@dataclass(frozen=True)
class SRSState:
    """The four scheduling fields that every review replaces together."""

    repetition: int
    interval: int
    ease_factor: float
    next_review_date: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def current_millis() -> int:
    """Wall clock as integer epoch milliseconds."""

    return time.time_ns() // 1_000_000


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up.

    Python の round() は偶数丸めのため 112.5 -> 112 となる。間隔計算では
    常に切り上げ側へ寄せる。
    """

    return int(math.floor(value + 0.5))


def validate_quality(quality: object) -> int:
    """Return `quality` unchanged or raise `InvalidRating`.

    bool は int のサブクラスだが評価値としては受け付けない。範囲外の値は
    丸めずに常に拒否する。
    """

    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidRating(quality)
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise InvalidRating(quality)
    return quality


def initial_state(now_ms: int | None = None) -> SRSState:
    """SRS state for a freshly created item; due immediately."""

    now = current_millis() if now_ms is None else int(now_ms)
    return SRSState(
        repetition=0,
        interval=0,
        ease_factor=INITIAL_EASE_FACTOR,
        next_review_date=now,
    )


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """SM-2 ease factor update floored at 1.3."""

    penalty = MAX_QUALITY - quality
    updated = ease_factor + (0.1 - penalty * (0.08 + penalty * 0.02))
    return max(MIN_EASE_FACTOR, updated)


def compute_next_review(
    item: SupportsSRS,
    quality: int,
    *,
    now_ms: int | None = None,
) -> SRSState:
    """Compute the item's next SRS state from a recall rating.

    - quality >= 3: repetition が 4 未満ならマイルストーン間隔、それ以降は
      `round(interval * ease_factor)`（更新前の ease factor を使用）。repetition は +1。
    - quality < 3: repetition=0, interval=1 にリセット。
    - ease factor はどちらの分岐でも SM-2 式で更新し、下限 1.3 で止める。
    - next_review_date = now_ms + interval 日（ミリ秒）。

    `now_ms` は評価が送信された時刻。省略時は呼び出し時点の時刻を使う。
    数値状態は (item, quality) だけで決まり、時刻は日付にしか影響しない。
    """

    quality = validate_quality(quality)
    reviewed_at = current_millis() if now_ms is None else int(now_ms)

    repetition = int(item.repetition)
    interval = int(item.interval)
    ease_factor = float(item.ease_factor)

    if quality >= PASSING_QUALITY:
        if repetition < len(MILESTONE_INTERVALS):
            interval = MILESTONE_INTERVALS[repetition]
        else:
            interval = round_half_up(interval * ease_factor)
        repetition += 1
    else:
        repetition = 0
        interval = 1

    return SRSState(
        repetition=repetition,
        interval=interval,
        ease_factor=next_ease_factor(ease_factor, quality),
        next_review_date=reviewed_at + interval * DAY_MS,
    )


def is_due(item: Any, now_ms: int | None = None) -> bool:
    """True when the item's next review date has passed (`nextReviewDate <= now`)."""

    now = current_millis() if now_ms is None else int(now_ms)
    return int(item.next_review_date) <= now


def select_due_items(items: Iterable[Any], now_ms: int | None = None) -> list[Any]:
    """Return the due items, oldest due first.

    同時刻の場合は作成日時、ID の順で安定化する。キューの順序は出題ペースに
    しか影響しない。
    """

    now = current_millis() if now_ms is None else int(now_ms)
    due = [item for item in items if is_due(item, now)]
    due.sort(
        key=lambda it: (
            int(it.next_review_date),
            int(getattr(it, "created_at", 0) or 0),
            str(getattr(it, "id", "")),
        )
    )
    return due


__all__ = [
    "DAY_MS",
    "INITIAL_EASE_FACTOR",
    "InvalidRating",
    "MILESTONE_INTERVALS",
    "MIN_EASE_FACTOR",
    "PASSING_QUALITY",
    "SRSState",
    "compute_next_review",
    "current_millis",
    "initial_state",
    "is_due",
    "next_ease_factor",
    "round_half_up",
    "select_due_items",
    "validate_quality",
]
