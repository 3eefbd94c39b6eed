import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import Collections


class AsyncCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def limit(self, n):
        self._cursor = self._cursor.limit(n)
        return self

    async def to_list(self, length=None):
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class AsyncCollection:
    """Awaitable facade over a mongomock collection, recording every call."""

    def __init__(self, collection):
        self._collection = collection
        self.calls = []

    @property
    def database(self):
        return AsyncDatabase(self._collection.database)

    def find(self, *args, **kwargs):
        self.calls.append("find")
        return AsyncCursor(self._collection.find(*args, **kwargs))


def _awaitable(name):
    async def method(self, *args, **kwargs):
        self.calls.append(name)
        return getattr(self._collection, name)(*args, **kwargs)
    method.__name__ = name
    return method


for _name in (
    "find_one",
    "insert_one",
    "update_one",
    "delete_one",
    "count_documents",
    "find_one_and_update",
):
    setattr(AsyncCollection, _name, _awaitable(_name))


class AsyncDatabase:
    def __init__(self, database):
        self._database = database

    async def list_collection_names(self):
        return self._database.list_collection_names()


@pytest.fixture
def store():
    db = mongomock.MongoClient()["pawmartDB"]
    return Collections(
        listings=AsyncCollection(db["listings"]),
        orders=AsyncCollection(db["orders"]),
        users=AsyncCollection(db["users"]),
    )


@pytest.fixture
def client(store):
    main.app.dependency_overrides[main.get_collections] = lambda: store
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def raw(store):
    """Direct synchronous access to the mongomock collections."""
    return Collections(
        listings=store.listings._collection,
        orders=store.orders._collection,
        users=store.users._collection,
    )
