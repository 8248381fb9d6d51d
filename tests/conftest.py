import asyncio
import os
from typing import Any, Optional

# Settings are read at import time; keep the suite off MongoDB.
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")

import pytest
from fastapi.testclient import TestClient

from officeflow.db.attachments import get_attachment_store
from officeflow.db.store import MemoryStore, get_remote_store


class ControlledStore(MemoryStore):
    """MemoryStore whose calls can be held open or made to fail.

    ``hold(op, collection)`` returns an event that blocks every matching call
    until it is set; ``fail(op, collection)`` makes matching calls raise
    once they are released.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []
        self._gates: dict[tuple[str, str], asyncio.Event] = {}
        self._failures: dict[tuple[str, str], Exception] = {}

    def hold(self, op: str, collection: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[(op, collection)] = gate
        return gate

    def fail(self, op: str, collection: str, exc: Optional[Exception] = None) -> None:
        self._failures[(op, collection)] = exc or ConnectionError("store unavailable")

    def heal(self, op: str, collection: str) -> None:
        self._failures.pop((op, collection), None)

    async def _enter(self, op: str, collection: str) -> None:
        self.calls.append((op, collection))
        gate = self._gates.get((op, collection))
        if gate is not None:
            await gate.wait()
        exc = self._failures.get((op, collection))
        if exc is not None:
            raise exc

    async def list_all(self, collection: str) -> list[dict[str, Any]]:
        await self._enter("list_all", collection)
        return await super().list_all(collection)

    async def create(self, collection: str, data: dict[str, Any]) -> str:
        await self._enter("create", collection)
        return await super().create(collection, data)

    async def replace(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        await self._enter("replace", collection)
        await super().replace(collection, doc_id, data)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._enter("delete", collection)
        await super().delete(collection, doc_id)

    def documents(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.get(collection, {})


class RecordingMailer:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, str]] = []
        self._fail = fail

    def __call__(self, *, to: str, title: str, body: str) -> None:
        if self._fail:
            raise RuntimeError("SMTP connection failed")
        self.sent.append({"to": to, "title": title, "body": body})


@pytest.fixture
def store():
    return ControlledStore()


@pytest.fixture(autouse=True)
def clean_memory_backends():
    get_remote_store().clear()
    get_attachment_store().clear()
    yield
    get_remote_store().clear()
    get_attachment_store().clear()


@pytest.fixture
def client():
    from main import app

    # One event loop for the whole test so confirmations keep running
    # between requests.
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session(client):
    res = client.post("/api/v1/session")
    assert res.status_code == 201
    return {"X-Session-Id": res.json()["session_id"]}
