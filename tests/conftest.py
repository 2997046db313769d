"""
Pytest configuration and shared fixtures for idempotent_mongo_adapter tests.

MongoDB is replaced by an in-process fake exposing the subset of pymongo's
async API the adapter uses. The fake enforces unique indexes and applies TTL
indexes when ``expire()`` is called, standing in for the server's TTL
monitor.
"""

import asyncio
import copy
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from bson import ObjectId
from pymongo.errors import (
    CollectionInvalid,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from idempotent_mongo_adapter.config import AdapterOptions
from idempotent_mongo_adapter.models import (
    IdempotencyRequest,
    IdempotencyResource,
    IdempotencyResponse,
)
from idempotent_mongo_adapter.storage.mongo import MongoStorageAdapter


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    return all(document.get(field) == value for field, value in query.items())


class FakeCollection:
    """Async collection storing documents in a list."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.indexes: dict[str, dict[str, Any]] = {}
        # Method name -> exception raised by that method
        self.errors: dict[str, Exception] = {}

    def _maybe_fail(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    def _unique_fields(self) -> list[str]:
        fields: list[str] = []
        for spec in self.indexes.values():
            if spec.get("unique"):
                fields.extend(spec["key"].keys())
        return fields

    def _check_unique(self, document: dict[str, Any], ignore_id: Any = None) -> None:
        for field in self._unique_fields():
            for existing in self.documents:
                if existing["_id"] == ignore_id:
                    continue
                if field in document and existing.get(field) == document[field]:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name} "
                        f"dup key: {{ {field}: {document[field]!r} }}",
                        code=11000,
                    )

    async def create_indexes(self, models: list[Any]) -> list[str]:
        self._maybe_fail("create_indexes")
        names = []
        for model in models:
            spec = dict(model.document)
            existing = self.indexes.get(spec["name"])
            if existing is not None and existing != spec:
                raise OperationFailure(
                    f"An existing index has the same name as the requested index: {spec['name']}",
                    code=86,
                )
            self.indexes[spec["name"]] = spec
            names.append(spec["name"])
        return names

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        self._maybe_fail("insert_one")
        self._check_unique(document)
        document.setdefault("_id", ObjectId())
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"], acknowledged=True)

    async def find_one(
        self, query: dict[str, Any], projection: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        self._maybe_fail("find_one")
        for document in self.documents:
            if _matches(document, query):
                found = copy.deepcopy(document)
                for field, include in (projection or {}).items():
                    if not include:
                        found.pop(field, None)
                return found
        return None

    async def replace_one(
        self, query: dict[str, Any], replacement: dict[str, Any]
    ) -> SimpleNamespace:
        self._maybe_fail("replace_one")
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                self._check_unique(replacement, ignore_id=document["_id"])
                new_document = copy.deepcopy(replacement)
                new_document["_id"] = document["_id"]
                self.documents[index] = new_document
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        self._maybe_fail("delete_one")
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    def expire(self, now: datetime | None = None) -> int:
        """Apply TTL indexes the way the server's TTL monitor does."""
        now = now or datetime.now(UTC)
        removed = 0
        for spec in self.indexes.values():
            if "expireAfterSeconds" not in spec:
                continue
            field = next(iter(spec["key"].keys()))
            ttl = timedelta(seconds=spec["expireAfterSeconds"])
            kept = [
                d
                for d in self.documents
                if not (isinstance(d.get(field), datetime) and d[field] + ttl <= now)
            ]
            removed += len(self.documents) - len(kept)
            self.documents = kept
        return removed


class FakeDatabase:
    """Async database holding FakeCollections by name."""

    def __init__(self, name: str = "idempotency") -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}
        self.errors: dict[str, Exception] = {}

    async def list_collection_names(self) -> list[str]:
        if "list_collection_names" in self.errors:
            raise self.errors["list_collection_names"]
        return list(self.collections)

    async def create_collection(self, name: str) -> FakeCollection:
        if "create_collection" in self.errors:
            raise self.errors["create_collection"]
        if name in self.collections:
            raise CollectionInvalid(f"collection {name} already exists")
        self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))


class FakeAdmin:
    def __init__(self, client: "FakeAsyncMongoClient") -> None:
        self._client = client

    async def command(self, name: str) -> dict[str, Any]:
        self._client.commands.append(name)
        if self._client.ping_gate is not None:
            await self._client.ping_gate.wait()
        if self._client.ping_error is not None:
            raise self._client.ping_error
        return {"ok": 1.0}


class FakeAsyncMongoClient:
    """Stand-in for pymongo.AsyncMongoClient used by the owning provider."""

    instances: list["FakeAsyncMongoClient"] = []
    ping_error: Exception | None = None
    ping_gate: asyncio.Event | None = None
    close_error: Exception | None = None

    def __init__(self, uri: str, **settings: Any) -> None:
        self.uri = uri
        self.settings = settings
        self.closed = False
        self.commands: list[str] = []
        self.databases: dict[str, FakeDatabase] = {}
        self.admin = FakeAdmin(self)
        type(self).instances.append(self)

    def __getitem__(self, name: str) -> FakeDatabase:
        return self.databases.setdefault(name, FakeDatabase(name))

    def get_default_database(self, default: str | None = None) -> FakeDatabase:
        _, _, path = self.uri.split("://", 1)[1].partition("/")
        name = path.split("?", 1)[0] or default
        return self[name]

    async def close(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


@pytest.fixture
def fake_client_cls(monkeypatch: pytest.MonkeyPatch) -> type[FakeAsyncMongoClient]:
    """Patch AsyncMongoClient in the connection module with a fresh fake class."""

    class Client(FakeAsyncMongoClient):
        instances: list[FakeAsyncMongoClient] = []
        ping_error: Exception | None = None
        ping_gate: asyncio.Event | None = None
        close_error: Exception | None = None

    monkeypatch.setattr("idempotent_mongo_adapter.connection.AsyncMongoClient", Client)
    return Client


@pytest.fixture
def unreachable_error() -> Exception:
    return ServerSelectionTimeoutError("localhost:27017: [Errno 111] Connection refused")


@pytest.fixture
def fake_db() -> FakeDatabase:
    """Provide an empty fake database."""
    return FakeDatabase()


@pytest.fixture
def fake_db_factory() -> type[FakeDatabase]:
    """Provide the fake database class, for tests that need several databases."""
    return FakeDatabase


@pytest.fixture
def delegated_options(fake_db: FakeDatabase) -> AdapterOptions:
    """Adapter options borrowing the fake database through a delegate."""

    async def delegate() -> FakeDatabase:
        return fake_db

    return AdapterOptions(use_delegation=True, delegate=delegate)


@pytest.fixture
def adapter(delegated_options: AdapterOptions) -> MongoStorageAdapter:
    """An uninitialized adapter over the fake database."""
    return MongoStorageAdapter(delegated_options)


@pytest_asyncio.fixture
async def ready_adapter(adapter: MongoStorageAdapter) -> MongoStorageAdapter:
    """An initialized adapter over the fake database."""
    await adapter.init()
    return adapter


@pytest.fixture
def store(fake_db: FakeDatabase) -> FakeCollection:
    """The default store collection of the fake database."""
    return fake_db["idempotencyStore"]


@pytest.fixture
def make_resource() -> Callable[..., IdempotencyResource]:
    """Factory building in-flight resources with a given key."""

    def factory(key: str = "test-key-12345", **request: Any) -> IdempotencyResource:
        request.setdefault("url", "/payments")
        request.setdefault("method", "POST")
        return IdempotencyResource(
            idempotency_key=key,
            request=IdempotencyRequest(**request),
        )

    return factory


@pytest.fixture
def sample_response() -> IdempotencyResponse:
    """Provide a completed response."""
    return IdempotencyResponse(status_code=201, body={"id": "pay_1", "amount": 100})
