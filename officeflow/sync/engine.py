"""Optimistic mutation engine.

Every create/update/delete is applied to the in-memory collections first and
confirmed against the remote store in a background task. Records created
locally carry a temporary id until the store assigns a durable one; the
engine keeps that mapping in a side table instead of inferring pending-ness
from the id text.

Failures never propagate into the event loop. They restore the snapshot
taken before the change, land in ``engine.events`` and are raised from
``Mutation.result()`` for callers that wait on the confirmation.

Known limitation: remote calls for the same record are not serialized, so
a late failure of an older update rolls back a newer local edit.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence
from uuid import uuid4

from officeflow.core.errors import CascadeError, RecordNotFound, SyncError
from officeflow.db.store import RemoteStore
from officeflow.schemas.common import Record
from officeflow.sync.collection import Collection, Snapshot

logger = logging.getLogger(__name__)

Prepare = Callable[[Record], Awaitable[Mapping[str, Any]]]
Remote = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class Cascade:
    """Dependents removed together with their parent record."""

    collection: Collection
    foreign_key: str


@dataclass(frozen=True)
class SyncEvent:
    kind: str  # "rollback" or "cascade"
    operation: str
    collection: str
    record_id: Optional[str]
    message: str
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Confirmation:
    record: Optional[Record] = None
    error: Optional[SyncError] = None


class Mutation:
    """Handle returned by every engine operation.

    ``record`` is the optimistic record as applied locally; ``result()``
    waits for the remote confirmation.
    """

    def __init__(self, operation: str, collection: str, record: Optional[Record], task: asyncio.Task) -> None:
        self.operation = operation
        self.collection = collection
        self.record = record
        self._task = task

    def __repr__(self) -> str:
        record_id = self.record.id if self.record is not None else None
        return f"Mutation({self.operation} {self.collection}/{record_id}, done={self.done})"

    @property
    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> Optional[Record]:
        confirmation = await asyncio.shield(self._task)
        if confirmation.error is not None:
            raise confirmation.error
        return confirmation.record


class MutationEngine:
    def __init__(self, store: RemoteStore, event_log_size: int = 100) -> None:
        self.store = store
        self.events: deque[SyncEvent] = deque(maxlen=event_log_size)
        self._tasks: set[asyncio.Task] = set()
        # temp id -> confirmation task, while the creation is in flight
        self._creations: dict[str, asyncio.Task] = {}
        # temp id -> durable id, once confirmed
        self._resolved: dict[str, str] = {}
        # temp ids whose creation failed or was discarded
        self._abandoned: set[str] = set()
        # pending temp ids deleted locally; their creation is undone on arrival
        self._discarded: set[str] = set()
        self._references: list[tuple[Collection, str, Collection]] = []

    # -- bookkeeping -------------------------------------------------------

    def link(self, child: Collection, foreign_key: str, parent: Collection) -> None:
        """Declare that ``child.<foreign_key>`` holds ids of ``parent`` records."""
        self._references.append((child, foreign_key, parent))

    def is_pending(self, record_id: str) -> bool:
        return record_id in self._creations

    def discard(self, record_id: str) -> None:
        """Mark a record removed locally so its pending creation is undone."""
        if record_id in self._creations:
            self._discarded.add(record_id)

    def resolve(self, record_id: str) -> str:
        """Map a reconciled temp id to its durable id."""
        return self._resolved.get(record_id, record_id)

    def pop_events(self) -> list[SyncEvent]:
        events = list(self.events)
        self.events.clear()
        return events

    async def drain(self) -> None:
        """Wait until no confirmation is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -- operations --------------------------------------------------------

    def create(
        self,
        collection: Collection,
        fields: Mapping[str, Any],
        prepare: Optional[Prepare] = None,
    ) -> Mutation:
        temp_id = f"temp-{collection.name}-{uuid4().hex[:12]}"
        record = collection.model.model_validate({**fields, "id": temp_id})
        snapshot = collection.snapshot()
        collection.insert(record)
        task = self._spawn(self._confirm_create(collection, record, snapshot, prepare))
        self._creations[temp_id] = task
        return Mutation("create", collection.name, record, task)

    def update(self, collection: Collection, record: Record) -> Mutation:
        record = self._remap(collection, record)
        if record.id not in collection:
            raise RecordNotFound(collection.name, record.id)
        snapshot = collection.snapshot()
        collection.replace(record)

        async def remote() -> None:
            await self.push_replace(collection, record)

        return self._launch(
            "update",
            collection.name,
            record,
            [(collection, snapshot)],
            remote,
            guard=lambda: self.resolve(record.id) in collection,
        )

    def delete(self, collection: Collection, record_id: str, cascade: Iterable[Cascade] = ()) -> Mutation:
        record_id = self.resolve(record_id)
        record = collection.get(record_id)
        if record is None:
            raise RecordNotFound(collection.name, record_id)
        cascade = list(cascade)
        snapshots = [(collection, collection.snapshot())]
        snapshots += [(link.collection, link.collection.snapshot()) for link in cascade]
        # Parent and dependents leave local state in the same step
        collection.remove(record_id)
        self.discard(record_id)
        dependents = []
        for link in cascade:
            removed = link.collection.remove_where(
                lambda r, fk=link.foreign_key: getattr(r, fk) == record_id
            )
            for dependent in removed:
                self.discard(dependent.id)
            dependents.append((link.collection, removed))
        task = self._spawn(self._confirm_delete(collection, record, snapshots, dependents))
        return Mutation("delete", collection.name, record, task)

    def apply(
        self,
        operation: str,
        collections: Sequence[Collection],
        local: Callable[[], Optional[Record]],
        remote: Remote,
    ) -> Mutation:
        """Run a multi-collection change as one optimistic step.

        Every collection in ``collections`` is snapshotted before ``local``
        runs and restored if ``remote`` fails.
        """
        snapshots = [(c, c.snapshot()) for c in collections]
        record = local()
        return self._launch(operation, collections[0].name, record, snapshots, remote)

    # -- remote helpers ----------------------------------------------------

    async def push_replace(self, collection: Collection, record: Record) -> None:
        durable = await self._durable_id(record.id)
        if durable is None:
            raise SyncError("update", collection.name, record.id)
        document = await self._document(collection, record)
        await self.store.replace(collection.name, durable, document)

    async def push_delete(self, collection: Collection, record_id: str) -> None:
        creation = self._creations.get(record_id)
        if creation is not None:
            # The creation discards the document itself once it lands
            await asyncio.shield(creation)
            return
        if record_id in self._abandoned:
            return
        await self.store.delete(collection.name, self.resolve(record_id))

    # -- confirmations -----------------------------------------------------

    async def _confirm_create(
        self,
        collection: Collection,
        record: Record,
        snapshot: Snapshot,
        prepare: Optional[Prepare],
    ) -> Confirmation:
        temp_id = record.id
        extra: dict[str, Any] = {}
        try:
            # References resolve first, so prepare sees durable parent ids
            document = await self._document(collection, record)
            if prepare is not None:
                extra = dict(await prepare(record))
                document = await self._document(collection, record.model_copy(update=extra))
            real_id = await self.store.create(collection.name, document)
        except Exception as exc:
            self._abandoned.add(temp_id)
            self._creations.pop(temp_id, None)
            error = SyncError("create", collection.name, temp_id, exc)
            if temp_id in self._discarded:
                self._discarded.discard(temp_id)
                logger.debug("Ignoring failed create of deleted %s/%s", collection.name, temp_id)
                return Confirmation(error=error)
            if temp_id in collection:
                self._restore(collection, snapshot)
            return self._fail(error)

        if temp_id in self._discarded:
            # Deleted locally while the creation was in flight
            self._discarded.discard(temp_id)
            self._abandoned.add(temp_id)
            self._creations.pop(temp_id, None)
            try:
                await self.store.delete(collection.name, real_id)
            except Exception as exc:
                logger.warning("Could not discard %s/%s: %s", collection.name, real_id, exc)
            return Confirmation()

        self._resolved[temp_id] = real_id
        self._creations.pop(temp_id, None)
        current = collection.get(temp_id)
        if current is None:
            # Dropped by another mutation's rollback; the store has it, so it comes back
            confirmed = record.model_copy(update={**extra, "id": real_id})
            collection.insert(confirmed)
            logger.info("Restored %s/%s after an unrelated rollback", collection.name, real_id)
        else:
            confirmed = current.model_copy(update={**extra, "id": real_id})
            collection.replace(confirmed, match_id=temp_id)
        self._rewrite_references(collection, temp_id, real_id)
        logger.debug("Confirmed %s/%s as %s", collection.name, temp_id, real_id)
        return Confirmation(record=confirmed)

    async def _confirm_delete(
        self,
        collection: Collection,
        record: Record,
        snapshots: list[tuple[Collection, Snapshot]],
        dependents: list[tuple[Collection, list[Record]]],
    ) -> Confirmation:
        try:
            await self.push_delete(collection, record.id)
        except Exception as exc:
            for coll, snapshot in snapshots:
                self._restore(coll, snapshot)
            return self._fail(SyncError("delete", collection.name, record.id, exc))

        # The parent deletion stands whatever happens to its dependents
        for coll, removed in dependents:
            results = await asyncio.gather(
                *(self.push_delete(coll, r.id) for r in removed), return_exceptions=True
            )
            failed = [r.id for r, res in zip(removed, results) if isinstance(res, BaseException)]
            if failed:
                return self._fail(CascadeError(collection.name, record.id, coll.name, failed))
        return Confirmation(record=record)

    async def _confirm(
        self,
        operation: str,
        collection_name: str,
        record: Optional[Record],
        snapshots: list[tuple[Collection, Snapshot]],
        remote: Remote,
        guard: Optional[Callable[[], bool]],
    ) -> Confirmation:
        record_id = record.id if record is not None else None
        try:
            await remote()
        except Exception as exc:
            error = exc if isinstance(exc, SyncError) else SyncError(operation, collection_name, record_id, exc)
            if guard is not None and not guard():
                logger.debug("Ignoring failed %s of removed %s/%s", operation, collection_name, record_id)
                return Confirmation(error=error)
            for coll, snapshot in snapshots:
                self._restore(coll, snapshot)
            return self._fail(error)
        return Confirmation(record=record)

    # -- internals ---------------------------------------------------------

    def _launch(
        self,
        operation: str,
        collection_name: str,
        record: Optional[Record],
        snapshots: list[tuple[Collection, Snapshot]],
        remote: Remote,
        guard: Optional[Callable[[], bool]] = None,
    ) -> Mutation:
        task = self._spawn(self._confirm(operation, collection_name, record, snapshots, remote, guard))
        return Mutation(operation, collection_name, record, task)

    def _spawn(self, coro: Awaitable[Confirmation]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _durable_id(self, record_id: str) -> Optional[str]:
        creation = self._creations.get(record_id)
        if creation is not None:
            await asyncio.shield(creation)
        if record_id in self._abandoned:
            return None
        return self.resolve(record_id)

    async def _document(self, collection: Collection, record: Record) -> dict[str, Any]:
        document = record.to_document()
        for child, foreign_key, parent in self._references:
            if child is not collection or document.get(foreign_key) is None:
                continue
            durable = await self._durable_id(document[foreign_key])
            if durable is None:
                raise SyncError("reference", parent.name, document[foreign_key])
            document[foreign_key] = durable
        return document

    def _remap(self, collection: Collection, record: Record) -> Record:
        changes = {}
        if record.id in self._resolved:
            changes["id"] = self._resolved[record.id]
        for child, foreign_key, _ in self._references:
            if child is collection:
                value = getattr(record, foreign_key)
                if value in self._resolved:
                    changes[foreign_key] = self._resolved[value]
        return record.model_copy(update=changes) if changes else record

    def _rewrite_references(self, parent: Collection, temp_id: str, real_id: str) -> None:
        for child, foreign_key, linked in self._references:
            if linked is parent:
                child.update_where(
                    lambda r, fk=foreign_key: getattr(r, fk) == temp_id,
                    lambda r, fk=foreign_key: r.model_copy(update={fk: real_id}),
                )

    def _restore(self, collection: Collection, snapshot: Snapshot) -> None:
        restored = tuple(self._remap(collection, r) for r in snapshot if r.id not in self._abandoned)
        known = {r.id for r in restored}
        created = set(self._creations) | set(self._resolved.values())
        # Records created after the snapshot are not part of this rollback
        newer = tuple(r for r in collection if r.id not in known and r.id in created)
        collection.load(restored + newer)

    def _fail(self, error: SyncError) -> Confirmation:
        kind = "rollback" if error.rolled_back else "cascade"
        self.events.append(
            SyncEvent(
                kind=kind,
                operation=error.operation,
                collection=error.collection,
                record_id=error.record_id,
                message=str(error),
            )
        )
        logger.warning("Sync %s: %s", kind, error)
        return Confirmation(error=error)
