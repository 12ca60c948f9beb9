from __future__ import annotations

import pytest
from google.api_core import exceptions as gexc

from lingoloop.models.vocabulary import ExpressionContent, VocabularyItem
from lingoloop.review_session import submit_rating
from lingoloop.srs import SRSState
from lingoloop.store.base import StoreUnavailable
from lingoloop.store.firestore_store import FirestoreVocabularyStore
from lingoloop.store.memory import InMemoryVocabularyStore
from lingoloop.store.synced import SyncedVocabularyStore
from tests.firestore_fakes import FakeFirestoreClient

NOW = 1_700_000_000_000


def _item(item_id: str, expression: str = "hit the sack") -> VocabularyItem:
    return VocabularyItem.create(
        expression,
        ExpressionContent(definition="go to bed", examples=["I'm tired, time to hit the sack."]),
        now_ms=NOW,
        item_id=item_id,
    )


@pytest.fixture()
def client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture()
def local() -> InMemoryVocabularyStore:
    return InMemoryVocabularyStore()


@pytest.fixture()
def remote(client: FakeFirestoreClient) -> FirestoreVocabularyStore:
    return FirestoreVocabularyStore(client=client)


@pytest.fixture()
def synced(local, remote) -> SyncedVocabularyStore:
    return SyncedVocabularyStore(local=local, remote=remote)


def test_writes_go_to_both_sides(synced, local, remote):
    synced.save_item("u1", _item("a"))
    assert local.get_item("u1", "a") is not None
    assert remote.get_item("u1", "a") is not None


def test_remote_failure_falls_back_to_local(synced, local, client):
    client.fail_with = gexc.ServiceUnavailable("offline")

    synced.save_item("u1", _item("a"))

    assert local.get_item("u1", "a") is not None
    assert [it.id for it in synced.list_items("u1")] == ["a"]
    assert synced.get_item("u1", "a") is not None


def test_reads_prefer_remote_and_refresh_local(synced, local, remote):
    local.save_item("u1", _item("a", expression="stale"))
    remote.save_item("u1", _item("a", expression="fresh"))

    assert synced.get_item("u1", "a").expression == "fresh"
    assert local.get_item("u1", "a").expression == "fresh"


def test_last_write_wins(synced, remote):
    synced.save_item("u1", _item("a", expression="first"))
    synced.save_item("u1", _item("a", expression="second"))
    assert remote.get_item("u1", "a").expression == "second"


def test_rating_updates_both_sides(synced, local, remote):
    item = _item("a")
    synced.save_item("u1", item)

    updated = submit_rating(synced, "u1", item, 5, now_ms=NOW)

    assert local.get_item("u1", "a").srs_state == updated.srs_state
    assert remote.get_item("u1", "a").srs_state == updated.srs_state
    assert len(remote.list_review_logs("u1")) == 1


def test_update_srs_pulls_remote_only_item(synced, local, remote):
    remote.save_item("u1", _item("a"))
    state = SRSState(repetition=1, interval=1, ease_factor=2.6, next_review_date=NOW)

    updated = synced.update_srs("u1", "a", state)

    assert updated is not None
    assert local.get_item("u1", "a").srs_state == state


def test_update_srs_missing_everywhere(synced):
    state = SRSState(repetition=1, interval=1, ease_factor=2.6, next_review_date=NOW)
    assert synced.update_srs("u1", "ghost", state) is None


def test_sync_pushes_offline_items(synced, local, remote, client):
    client.fail_with = gexc.ServiceUnavailable("offline")
    synced.save_item("u1", _item("a"))
    synced.save_item("u1", _item("b"))
    client.fail_with = None
    assert remote.list_items("u1") == []

    pushed = synced.sync_local_to_remote("u1")

    assert pushed == 2
    assert sorted(it.id for it in remote.list_items("u1")) == ["a", "b"]


def test_sync_stops_when_remote_unavailable(synced, local, client):
    local.save_item("u1", _item("a"))
    client.fail_with = gexc.ServiceUnavailable("offline")
    assert synced.sync_local_to_remote("u1") == 0


def test_delete_removes_from_both(synced, local, remote):
    synced.save_item("u1", _item("a"))
    assert synced.delete_item("u1", "a") is True
    assert local.get_item("u1", "a") is None
    assert remote.get_item("u1", "a") is None


def test_list_includes_items_created_offline_and_pushes_them(synced, local, remote, client):
    synced.save_item("u1", _item("a"))
    client.fail_with = gexc.ServiceUnavailable("offline")
    synced.save_item("u1", _item("b"))
    client.fail_with = None

    assert sorted(it.id for it in synced.list_items("u1")) == ["a", "b"]
    assert sorted(it.id for it in remote.list_items("u1")) == ["a", "b"]


def test_list_keeps_offline_items_when_push_fails_midway(synced, local, remote):
    remote.save_item("u1", _item("a"))
    local.save_item("u1", _item("b"))
    local.save_item("u1", _item("c"))

    class _Flaky:
        def __init__(self, inner):
            self.inner = inner

        def list_items(self, user_id):
            return self.inner.list_items(user_id)

        def save_item(self, user_id, item):
            raise StoreUnavailable("offline")

    synced.remote = _Flaky(remote)

    assert sorted(it.id for it in synced.list_items("u1")) == ["a", "b", "c"]
    assert [it.id for it in remote.list_items("u1")] == ["a"]
