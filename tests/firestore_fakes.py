"""Firestore をテストで再現するための簡易フェイク実装。"""

from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gexc


class FakeDocumentSnapshot:
    def __init__(self, collection: str, doc_id: str, data: dict[str, Any] | None) -> None:
        self._collection = collection
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return None if self._data is None else dict(self._data)


class FakeDocumentReference:
    def __init__(self, client: "FakeFirestoreClient", collection: str, doc_id: str) -> None:
        self._client = client
        self._collection = collection
        self.id = doc_id

    def set(self, data: dict[str, Any], merge: bool = False) -> None:
        self._client._check("set")
        bucket = self._client._data.setdefault(self._collection, {})
        if merge and self.id in bucket:
            bucket[self.id].update(data)
        else:
            bucket[self.id] = dict(data)

    def update(self, data: dict[str, Any]) -> None:
        self._client._check("update")
        bucket = self._client._data.setdefault(self._collection, {})
        if self.id not in bucket:
            raise gexc.NotFound(f"document {self._collection}/{self.id} not found")
        bucket[self.id].update(data)

    def get(self) -> FakeDocumentSnapshot:
        self._client._check("get")
        bucket = self._client._data.setdefault(self._collection, {})
        payload = dict(bucket[self.id]) if self.id in bucket else None
        return FakeDocumentSnapshot(self._collection, self.id, payload)

    def delete(self) -> None:
        self._client._check("delete")
        bucket = self._client._data.setdefault(self._collection, {})
        bucket.pop(self.id, None)


class FakeCollectionReference:
    def __init__(self, client: "FakeFirestoreClient", name: str) -> None:
        self._client = client
        self._name = name

    def document(self, doc_id: str) -> FakeDocumentReference:
        return FakeDocumentReference(self._client, self._name, doc_id)

    def _all_snapshots(self) -> list[FakeDocumentSnapshot]:
        bucket = self._client._data.setdefault(self._name, {})
        return [FakeDocumentSnapshot(self._name, doc_id, dict(data)) for doc_id, data in bucket.items()]

    def where(self, field_path: str, op_string: str, value: Any) -> "FakeQuery":
        return FakeQuery(self).where(field_path, op_string, value)

    def stream(self):
        return FakeQuery(self).stream()


class FakeQuery:
    def __init__(
        self,
        collection: FakeCollectionReference,
        filters: list[tuple[str, str, Any]] | None = None,
    ) -> None:
        self._collection = collection
        self._filters: list[tuple[str, str, Any]] = list(filters or [])

    def where(self, field_path: str, op_string: str, value: Any) -> "FakeQuery":
        return FakeQuery(self._collection, [*self._filters, (field_path, op_string, value)])

    def stream(self):
        self._collection._client._check("stream")
        docs = self._collection._all_snapshots()
        for field_path, op_string, expected in self._filters:
            docs = [doc for doc in docs if self._matches(doc, field_path, op_string, expected)]
        yield from docs

    @staticmethod
    def _matches(snapshot: FakeDocumentSnapshot, field_path: str, op_string: str, expected: Any) -> bool:
        actual = (snapshot.to_dict() or {}).get(field_path)
        if op_string == "==":
            return actual == expected
        if actual is None:
            return False
        if op_string == ">=":
            return actual >= expected
        if op_string == "<=":
            return actual <= expected
        raise NotImplementedError(f"unsupported operator: {op_string}")


class FakeFirestoreClient:
    """In-memory stand-in for `google.cloud.firestore.Client`.

    `fail_with` に例外を設定すると、以降のすべての読み書きがその例外で失敗する
    （ネットワーク断の再現用）。
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail_with: Exception | None = None
        self.calls: list[str] = []

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is not None:
            raise self.fail_with

    def collection(self, name: str) -> FakeCollectionReference:
        return FakeCollectionReference(self, name)

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        return {doc_id: dict(data) for doc_id, data in self._data.get(collection, {}).items()}
