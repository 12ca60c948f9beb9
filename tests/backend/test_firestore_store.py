from __future__ import annotations

import pytest
from google.api_core import exceptions as gexc

from lingoloop.models.vocabulary import ExpressionContent, ReviewLog, VocabularyItem
from lingoloop.srs import DAY_MS, SRSState
from lingoloop.store.base import StoreUnavailable
from lingoloop.store.firestore_store import FirestoreVocabularyStore
from tests.firestore_fakes import FakeFirestoreClient

NOW = 1_700_000_000_000


def _item(item_id: str, *, created_at: int = NOW) -> VocabularyItem:
    return VocabularyItem.create(
        "under the weather",
        ExpressionContent(definition="slightly ill", examples=["I'm feeling under the weather."]),
        now_ms=created_at,
        item_id=item_id,
    )


@pytest.fixture()
def client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture()
def firestore_store(client: FakeFirestoreClient) -> FirestoreVocabularyStore:
    return FirestoreVocabularyStore(client=client)


def test_items_are_stored_with_camel_case_fields(
    firestore_store: FirestoreVocabularyStore, client: FakeFirestoreClient
) -> None:
    firestore_store.save_item("u1", _item("a"))

    docs = client.documents("vocabulary_items")
    assert list(docs) == ["u1:a"]
    payload = docs["u1:a"]
    assert payload["user_id"] == "u1"
    assert payload["easeFactor"] == 2.5
    assert payload["nextReviewDate"] == NOW
    assert payload["createdAt"] == NOW
    assert payload["examples"] == ["I'm feeling under the weather."]


def test_roundtrip_and_user_isolation(firestore_store: FirestoreVocabularyStore) -> None:
    item = _item("a")
    firestore_store.save_item("u1", item)
    firestore_store.save_item("u2", _item("b"))

    assert firestore_store.get_item("u1", "a") == item
    assert firestore_store.get_item("u2", "a") is None
    assert [it.id for it in firestore_store.list_items("u1")] == ["a"]


def test_update_srs_only_touches_scheduling_fields(
    firestore_store: FirestoreVocabularyStore, client: FakeFirestoreClient
) -> None:
    firestore_store.save_item("u1", _item("a"))
    state = SRSState(repetition=2, interval=2, ease_factor=2.7, next_review_date=NOW + 2 * DAY_MS)

    updated = firestore_store.update_srs("u1", "a", state)

    assert updated is not None and updated.srs_state == state
    payload = client.documents("vocabulary_items")["u1:a"]
    assert payload["repetition"] == 2
    assert payload["interval"] == 2
    assert payload["easeFactor"] == 2.7
    assert payload["definition"] == "slightly ill"
    assert firestore_store.get_item("u1", "a") == updated


def test_update_srs_missing_item(firestore_store: FirestoreVocabularyStore) -> None:
    state = SRSState(repetition=1, interval=1, ease_factor=2.6, next_review_date=NOW)
    assert firestore_store.update_srs("u1", "missing", state) is None


def test_delete_item(firestore_store: FirestoreVocabularyStore) -> None:
    firestore_store.save_item("u1", _item("a"))
    assert firestore_store.delete_item("u1", "a") is True
    assert firestore_store.delete_item("u1", "a") is False


def test_review_logs_query(firestore_store: FirestoreVocabularyStore) -> None:
    for offset in (2 * DAY_MS, 0, DAY_MS):
        firestore_store.record_review(
            "u1",
            ReviewLog(
                item_id="a",
                quality=3,
                reviewed_at=NOW + offset,
                repetition=1,
                interval=1,
                ease_factor=2.36,
                next_review_date=NOW + offset + DAY_MS,
            ),
        )
    logs = firestore_store.list_review_logs("u1")
    assert [log.reviewed_at for log in logs] == [NOW, NOW + DAY_MS, NOW + 2 * DAY_MS]
    assert len(firestore_store.list_review_logs("u1", since_ms=NOW + DAY_MS)) == 2
    assert firestore_store.list_review_logs("u2") == []


def test_api_errors_surface_as_store_unavailable(
    firestore_store: FirestoreVocabularyStore, client: FakeFirestoreClient
) -> None:
    client.fail_with = gexc.ServiceUnavailable("firestore offline")

    with pytest.raises(StoreUnavailable):
        firestore_store.list_items("u1")
    with pytest.raises(StoreUnavailable):
        firestore_store.save_item("u1", _item("a"))
    with pytest.raises(StoreUnavailable):
        firestore_store.get_item("u1", "a")


def test_store_factory_switches_to_firestore(monkeypatch: pytest.MonkeyPatch) -> None:
    import lingoloop.store as store_module

    fake = FakeFirestoreClient()
    monkeypatch.setattr(store_module, "_build_firestore_client", lambda: fake)

    created = store_module.create_store("firestore")

    assert isinstance(created, FirestoreVocabularyStore)
    created.save_item("u1", _item("a"))
    assert "u1:a" in fake.documents("vocabulary_items")


def test_normalize_emulator_host() -> None:
    from lingoloop.store import _normalize_emulator_host

    assert _normalize_emulator_host("localhost:8080") == "http://localhost:8080"
    assert _normalize_emulator_host("https://emu:9000") == "https://emu:9000"
    assert _normalize_emulator_host("  ") is None
    assert _normalize_emulator_host(None) is None
