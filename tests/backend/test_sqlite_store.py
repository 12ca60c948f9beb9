from __future__ import annotations

import sqlite3

import pytest

from lingoloop.models.vocabulary import ExpressionContent, ReviewLog, VocabularyItem
from lingoloop.srs import DAY_MS, SRSState, compute_next_review
from lingoloop.store.sqlite_store import SQLiteVocabularyStore

NOW = 1_700_000_000_000


@pytest.fixture
def store(tmp_path) -> SQLiteVocabularyStore:
    return SQLiteVocabularyStore(str(tmp_path / "nested" / "lingoloop.sqlite3"))


def _item(item_id: str, *, created_at: int = NOW) -> VocabularyItem:
    return VocabularyItem.create(
        "break the ice",
        ExpressionContent(
            definition="to make people feel more relaxed",
            examples=["She told a joke to break the ice.", "Games help break the ice."],
            scenario="At a party full of strangers...",
        ),
        now_ms=created_at,
        item_id=item_id,
    )


def test_save_and_get_roundtrip(store):
    item = _item("a")
    store.save_item("u1", item)
    assert store.get_item("u1", "a") == item
    assert store.get_item("u2", "a") is None


def test_list_items_newest_first_and_user_scoped(store):
    store.save_item("u1", _item("old", created_at=NOW - 10))
    store.save_item("u1", _item("new", created_at=NOW))
    store.save_item("u2", _item("foreign"))
    assert [it.id for it in store.list_items("u1")] == ["new", "old"]


def test_update_srs_replaces_four_fields_only(store):
    item = _item("a")
    store.save_item("u1", item)
    state = SRSState(repetition=3, interval=6, ease_factor=2.36, next_review_date=NOW + 6 * DAY_MS)

    updated = store.update_srs("u1", "a", state)

    assert updated is not None
    assert updated.srs_state == state
    assert updated.examples == item.examples
    assert updated.created_at == item.created_at
    assert store.get_item("u1", "a") == updated


def test_update_srs_on_missing_item_returns_none(store):
    state = SRSState(repetition=1, interval=1, ease_factor=2.6, next_review_date=NOW)
    assert store.update_srs("u1", "missing", state) is None


def test_ease_factor_precision_survives_many_reviews(store):
    item = _item("a")
    store.save_item("u1", item)
    expected = item
    for quality in (5, 4, 3, 5, 3, 4, 5):
        state = compute_next_review(store.get_item("u1", "a"), quality, now_ms=NOW)
        store.update_srs("u1", "a", state)
        expected = expected.apply_srs(compute_next_review(expected, quality, now_ms=NOW))
    assert store.get_item("u1", "a").ease_factor == expected.ease_factor
    assert store.get_item("u1", "a").interval == expected.interval


def test_list_due_items_uses_stored_dates(store):
    store.save_item("u1", _item("due"))
    future = _item("future").apply_srs(
        SRSState(repetition=1, interval=1, ease_factor=2.6, next_review_date=NOW + DAY_MS)
    )
    store.save_item("u1", future)
    assert [it.id for it in store.list_due_items("u1", NOW)] == ["due"]


def test_delete_item(store):
    store.save_item("u1", _item("a"))
    assert store.delete_item("u1", "a") is True
    assert store.delete_item("u1", "a") is False
    assert store.get_item("u1", "a") is None


def test_review_logs_filtered_by_time(store):
    for offset in (0, DAY_MS, 2 * DAY_MS):
        store.record_review(
            "u1",
            ReviewLog(
                item_id="a",
                quality=4,
                reviewed_at=NOW + offset,
                repetition=1,
                interval=1,
                ease_factor=2.5,
                next_review_date=NOW + offset + DAY_MS,
            ),
        )
    assert len(store.list_review_logs("u1")) == 3
    assert [log.reviewed_at for log in store.list_review_logs("u1", since_ms=NOW + DAY_MS)] == [
        NOW + DAY_MS,
        NOW + 2 * DAY_MS,
    ]
    assert store.list_review_logs("u2") == []


def test_reads_rows_with_corrupt_srs_values(store):
    conn = sqlite3.connect(store.db_path)
    try:
        conn.execute(
            "INSERT INTO vocabulary_items(user_id, id, expression, definition, examples, scenario, "
            "created_at, repetition, interval_days, ease_factor, next_review_date) "
            "VALUES ('u1', 'bad', 'x', 'd', 'not json', '', ?, -3, -1, 0.5, ?);",
            (NOW, NOW),
        )
        conn.commit()
    finally:
        conn.close()

    item = store.get_item("u1", "bad")
    assert item.repetition == 0
    assert item.interval == 0
    assert item.ease_factor == 1.3
    assert item.examples == ["not json"]
