import sys
from pathlib import Path
from datetime import datetime, timedelta, timezone

import pytest
from google.cloud import firestore

# Ensure the repository root (parent directory of this file) is on the import path.
# This allows test modules to do `import stats_bridge...` even when pytest is executed
# from a sub-directory or when the working directory is not the project root.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


# ---------------------------------------------------------------------------
# In-memory Firestore double
# ---------------------------------------------------------------------------
# Mimics the small part of `google.cloud.firestore.Client` the writer uses:
# collection().add(), collection().document().get()/set(merge=True) and the
# where/order_by/limit/stream query chain.  Server timestamps are replaced by
# a monotonically increasing clock so ordering can be asserted.


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return None if self._data is None else dict(self._data)


class FakeDocument:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    def get(self):
        self._db._maybe_fail("get")
        data = self._db.docs(self._collection).get(self.id)
        snapshot = FakeSnapshot(self.id, None if data is None else dict(data))
        # Hooks run after the read, i.e. between a read and the following write.
        while self._db.after_get:
            self._db.after_get.pop(0)()
        return snapshot

    def set(self, data, merge=False):
        self._db._maybe_fail("set")
        self._db.set_calls.append((self._collection, self.id, dict(data), merge))
        docs = self._db.docs(self._collection)
        current = dict(docs.get(self.id) or {}) if merge else {}
        for key, value in data.items():
            if isinstance(value, firestore.Increment):
                value = (current.get(key) or 0) + value.value
            current[key] = self._db.resolve(value)
        docs[self.id] = current


class FakeQuery:
    def __init__(self, db, collection, filters=(), descending=None, limit=None):
        self._db = db
        self._collection = collection
        self._filters = list(filters)
        self._descending = descending
        self._limit = limit

    def where(self, *, filter):
        return FakeQuery(
            self._db,
            self._collection,
            self._filters + [(filter.field_path, filter.value)],
            self._descending,
            self._limit,
        )

    def order_by(self, field, direction=firestore.Query.ASCENDING):
        return FakeQuery(
            self._db,
            self._collection,
            self._filters,
            direction == firestore.Query.DESCENDING,
            self._limit,
        )

    def limit(self, count):
        return FakeQuery(self._db, self._collection, self._filters, self._descending, count)

    def stream(self):
        self._db._maybe_fail("stream")
        items = [
            (doc_id, data)
            for doc_id, data in self._db.docs(self._collection).items()
            if all(data.get(field) == value for field, value in self._filters)
        ]
        items.sort(key=lambda item: item[1]["createdAt"], reverse=bool(self._descending))
        if self._limit is not None:
            items = items[: self._limit]
        for doc_id, data in items:
            yield FakeSnapshot(doc_id, data)


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)
        self.name = name

    def add(self, data):
        self._db._maybe_fail("add")
        doc_id = f"evt{len(self._db.docs(self.name)) + 1:04d}"
        self._db.docs(self.name)[doc_id] = {k: self._db.resolve(v) for k, v in data.items()}
        return None, FakeDocument(self._db, self.name, doc_id)

    def document(self, doc_id):
        return FakeDocument(self._db, self.name, doc_id)


class FakeFirestore:
    def __init__(self):
        self.collections = {}
        self.set_calls = []
        self.fail_on = set()
        self.after_get = []
        self._ticks = 0
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def collection(self, name):
        return FakeCollection(self, name)

    def docs(self, name):
        return self.collections.setdefault(name, {})

    def resolve(self, value):
        if value is firestore.SERVER_TIMESTAMP:
            self._ticks += 1
            return self._epoch + timedelta(seconds=self._ticks)
        return value

    def _maybe_fail(self, op):
        if op in self.fail_on:
            raise RuntimeError(f"firestore {op} unavailable")


@pytest.fixture
def fake_db():
    return FakeFirestore()
