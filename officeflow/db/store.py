from __future__ import annotations

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from officeflow.core.config import settings
from officeflow.db.mongo import get_mongo_db


class RemoteStore(ABC):
    """Async document store keyed by collection name and document id.

    Documents go in without an id and come back from ``list_all`` with
    an ``id`` key holding the durable id as a string.
    """

    @abstractmethod
    async def list_all(self, collection: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def create(self, collection: str, data: dict[str, Any]) -> str:
        raise NotImplementedError

    @abstractmethod
    async def replace(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Replace (or insert) the document stored under ``doc_id``."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError


def _doc_key(doc_id: str) -> Any:
    # Imported records may carry ids that were never ObjectIds
    return ObjectId(doc_id) if ObjectId.is_valid(doc_id) else doc_id


class MongoStore(RemoteStore):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    async def list_all(self, collection: str) -> list[dict[str, Any]]:
        items = []
        async for doc in self._db[collection].find({}):
            doc_id = doc.pop("_id")
            items.append({**doc, "id": str(doc_id)})
        return items

    async def create(self, collection: str, data: dict[str, Any]) -> str:
        res = await self._db[collection].insert_one(dict(data))
        return str(res.inserted_id)

    async def replace(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        body = {k: v for k, v in data.items() if k not in ("id", "_id")}
        await self._db[collection].replace_one({"_id": _doc_key(doc_id)}, body, upsert=True)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._db[collection].delete_one({"_id": _doc_key(doc_id)})


class MemoryStore(RemoteStore):
    """In-process store for development and tests.

    Every call yields to the event loop once, so callers observe the same
    suspension points they would against a real database.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def clear(self) -> None:
        self._collections.clear()

    async def list_all(self, collection: str) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        docs = self._collections.get(collection, {})
        return [{**copy.deepcopy(doc), "id": doc_id} for doc_id, doc in docs.items()]

    async def create(self, collection: str, data: dict[str, Any]) -> str:
        await asyncio.sleep(0)
        doc_id = str(ObjectId())
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(dict(data))
        return doc_id

    async def replace(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        body = {k: v for k, v in data.items() if k != "id"}
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(body)

    async def delete(self, collection: str, doc_id: str) -> None:
        await asyncio.sleep(0)
        self._collections.get(collection, {}).pop(doc_id, None)


_memory_store: Optional[MemoryStore] = None


def get_remote_store() -> RemoteStore:
    global _memory_store
    if settings.STORE_BACKEND == "memory":
        if _memory_store is None:
            _memory_store = MemoryStore()
        return _memory_store
    return MongoStore(get_mongo_db())
