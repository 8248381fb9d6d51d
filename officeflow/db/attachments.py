from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket

from officeflow.core.config import settings
from officeflow.core.errors import RecordNotFound
from officeflow.db.mongo import get_mongo_db


def attachment_url(file_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL}/api/v1/attachments/{file_id}"


class AttachmentStore(ABC):
    @abstractmethod
    async def upload(self, employee_id: str, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Store the payload and return a URL it can be fetched from."""
        raise NotImplementedError

    @abstractmethod
    async def fetch(self, file_id: str) -> tuple[bytes, str]:
        raise NotImplementedError


class GridFSAttachmentStore(AttachmentStore):
    def __init__(self, db: AsyncIOMotorDatabase, bucket_name: str = "certificates") -> None:
        self._bucket = AsyncIOMotorGridFSBucket(db, bucket_name=bucket_name)

    async def upload(self, employee_id: str, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        file_id = await self._bucket.upload_from_stream(
            f"{employee_id}/{filename}",
            content,
            metadata={
                "employee_id": employee_id,
                "content_type": content_type or "application/octet-stream",
                "uploaded_at": datetime.utcnow(),
            },
        )
        return attachment_url(str(file_id))

    async def fetch(self, file_id: str) -> tuple[bytes, str]:
        try:
            grid_out = await self._bucket.open_download_stream(ObjectId(file_id))
        except (InvalidId, NoFile) as exc:
            raise RecordNotFound("attachments", file_id) from exc
        content = await grid_out.read()
        meta = grid_out.metadata or {}
        return content, meta.get("content_type", "application/octet-stream")


class MemoryAttachmentStore(AttachmentStore):
    def __init__(self) -> None:
        self._files: dict[str, tuple[bytes, str]] = {}

    def clear(self) -> None:
        self._files.clear()

    async def upload(self, employee_id: str, filename: str, content: bytes, content_type: Optional[str] = None) -> str:
        await asyncio.sleep(0)
        file_id = str(ObjectId())
        self._files[file_id] = (bytes(content), content_type or "application/octet-stream")
        return attachment_url(file_id)

    async def fetch(self, file_id: str) -> tuple[bytes, str]:
        await asyncio.sleep(0)
        if file_id not in self._files:
            raise RecordNotFound("attachments", file_id)
        return self._files[file_id]


_memory_attachments: Optional[MemoryAttachmentStore] = None


def get_attachment_store() -> AttachmentStore:
    global _memory_attachments
    if settings.STORE_BACKEND == "memory":
        if _memory_attachments is None:
            _memory_attachments = MemoryAttachmentStore()
        return _memory_attachments
    return GridFSAttachmentStore(get_mongo_db())
