from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from ..models.vocabulary import ReviewLog, VocabularyItem
from ..srs import INITIAL_EASE_FACTOR, MIN_EASE_FACTOR


def normalize_non_negative_int(value: Any) -> int:
    """与えられた値を非負整数に正規化する。

    repetition / interval は I/O 層で読み込んだ時点でゼロ以上に矯正する。"""

    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return 0
    return ivalue if ivalue >= 0 else 0


def normalize_ease_factor(value: Any) -> float:
    """ease factor を float として読み出し、下限 1.3 を保証する。

    丸めは行わない。復習のたびに乗算で累積する値なので小数精度を保持する。
    """

    if value is None:
        return INITIAL_EASE_FACTOR
    try:
        fvalue = float(value)
    except (TypeError, ValueError):
        return INITIAL_EASE_FACTOR
    return max(MIN_EASE_FACTOR, fvalue)


def decode_examples(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw) if raw else []
        except ValueError:
            return [raw]
        raw = parsed
    if not isinstance(raw, list):
        return []
    return [str(entry) for entry in raw if str(entry or "").strip()]


def encode_examples(examples: list[str]) -> str:
    return json.dumps(list(examples), ensure_ascii=False)


def item_from_record(record: Mapping[str, Any]) -> VocabularyItem:
    """Build an item from a stored record (camelCase or snake_case keys)."""

    def pick(*keys: str) -> Any:
        for key in keys:
            if key in record and record[key] is not None:
                return record[key]
        return None

    created_at = normalize_non_negative_int(pick("createdAt", "created_at"))
    next_review = pick("nextReviewDate", "next_review_date")
    return VocabularyItem(
        id=str(pick("id")),
        expression=str(pick("expression") or ""),
        definition=str(pick("definition") or ""),
        examples=decode_examples(pick("examples")),
        scenario=str(pick("scenario") or ""),
        created_at=created_at,
        repetition=normalize_non_negative_int(pick("repetition")),
        interval=normalize_non_negative_int(pick("interval", "interval_days")),
        ease_factor=normalize_ease_factor(pick("easeFactor", "ease_factor")),
        next_review_date=(
            normalize_non_negative_int(next_review) if next_review is not None else created_at
        ),
    )


def review_log_from_record(record: Mapping[str, Any]) -> ReviewLog:
    return ReviewLog.model_validate(dict(record))
