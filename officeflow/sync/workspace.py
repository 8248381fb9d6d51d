from __future__ import annotations

import asyncio
import logging
import secrets
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from officeflow.core.config import settings
from officeflow.core.errors import RecordNotFound, ValidationFailed
from officeflow.db.attachments import AttachmentStore, get_attachment_store
from officeflow.db.store import RemoteStore, get_remote_store
from officeflow.schemas.backup_schema import BackupDocument
from officeflow.schemas.certificate_schema import Certificate, CertificateIn
from officeflow.schemas.common import Record
from officeflow.schemas.demand_schema import Demand, DemandIn
from officeflow.schemas.employee_schema import Employee, EmployeeIn
from officeflow.schemas.status_schema import WorkflowStatus
from officeflow.schemas.vacation_schema import Vacation, VacationIn
from officeflow.services.compliance import CertificateAnalysis, analyze_certificates, flag_employees
from officeflow.services.notifications import NotificationDispatcher
from officeflow.sync.collection import Collection
from officeflow.sync.engine import Cascade, Mutation, MutationEngine
from officeflow.sync.statuses import AWAITING_LABEL, StatusTaxonomy, label_key, status_sort_key

logger = logging.getLogger(__name__)

_AWAITING = label_key(AWAITING_LABEL)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: Optional[str] = None


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(p) for p in err.get("loc", ()))
    return f"{where}: {err.get('msg')}" if where else str(err.get("msg"))


class Workspace:
    """In-memory state of one session.

    Owns the five collections, the mutation engine that keeps them in sync
    with the remote store, and the status taxonomy. Created when a session
    opens and discarded when it closes.
    """

    def __init__(
        self,
        store: RemoteStore,
        attachments: Optional[AttachmentStore] = None,
        notifier: Optional[NotificationDispatcher] = None,
        event_log_size: Optional[int] = None,
    ) -> None:
        self.store = store
        self.attachments = attachments
        self.engine = MutationEngine(store, event_log_size or settings.SYNC_EVENT_LOG_SIZE)
        self.notifier = notifier or NotificationDispatcher(store)

        self.demands: Collection[Demand] = Collection("demands", Demand)
        self.vacations: Collection[Vacation] = Collection("vacations", Vacation)
        self.employees: Collection[Employee] = Collection("employees", Employee)
        self.certificates: Collection[Certificate] = Collection("certificates", Certificate)
        self.statuses: Collection[WorkflowStatus] = Collection(
            "statuses", WorkflowStatus, sort_key=status_sort_key
        )
        self.taxonomy = StatusTaxonomy(self.engine, self.statuses, self.demands)

        self.engine.link(self.demands, "owner_id", self.employees)
        self.engine.link(self.vacations, "employee_id", self.employees)
        self.engine.link(self.certificates, "employee_id", self.employees)
        self.loaded = False

    @property
    def collections(self) -> dict[str, Collection]:
        return {
            c.name: c
            for c in (self.demands, self.vacations, self.employees, self.certificates, self.statuses)
        }

    async def load(self) -> None:
        colls = list(self.collections.values())
        results = await asyncio.gather(*(self.store.list_all(c.name) for c in colls))
        for coll, docs in zip(colls, results):
            coll.load(coll.model.model_validate(doc) for doc in docs)
        await self.taxonomy.bootstrap()
        self.loaded = True
        logger.info(
            "Workspace loaded: %s",
            ", ".join(f"{name}={len(c)}" for name, c in self.collections.items()),
        )

    async def sync(self) -> None:
        await self.engine.drain()
        await self.notifier.drain()

    async def close(self) -> None:
        await self.sync()
        self.loaded = False

    def is_pending(self, record_id: str) -> bool:
        return self.engine.is_pending(record_id)

    def get(self, collection: Collection, record_id: str) -> Record:
        record = collection.get(self.engine.resolve(record_id))
        if record is None:
            raise RecordNotFound(collection.name, record_id)
        return record

    # -- demands -----------------------------------------------------------

    def add_demand(self, draft: DemandIn) -> Mutation:
        fields = draft.model_dump()
        fields["status"] = self._status_label(draft.status)
        fields["owner_id"] = self._owner(draft.owner_id)
        return self._create(self.demands, fields)

    def update_demand(self, demand_id: str, changes: Mapping[str, Any]) -> Mutation:
        current = self.get(self.demands, demand_id)
        changes = dict(changes)
        if "status" in changes:
            changes["status"] = self._status_label(changes["status"])
        if "owner_id" in changes:
            changes["owner_id"] = self._owner(changes["owner_id"])
        updated = self._rebuild(current, changes)
        mutation = self.engine.update(self.demands, updated)
        if self.taxonomy.is_terminal(updated.status) and not self.taxonomy.is_terminal(current.status):
            self._notify_done(updated)
        return mutation

    def set_demand_status(self, demand_id: str, label: str) -> Mutation:
        return self.update_demand(demand_id, {"status": label})

    def delete_demand(self, demand_id: str) -> Mutation:
        return self.engine.delete(self.demands, demand_id)

    # -- vacations ---------------------------------------------------------

    def add_vacation(self, draft: VacationIn) -> Mutation:
        employee = self._employee(draft.employee_id)
        fields = draft.model_dump()
        fields.update(employee_id=employee.id, employee_name=employee.name)
        return self._create(self.vacations, fields)

    def update_vacation(self, vacation_id: str, changes: Mapping[str, Any]) -> Mutation:
        current = self.get(self.vacations, vacation_id)
        changes = dict(changes)
        if "employee_id" in changes:
            employee = self._employee(changes["employee_id"])
            changes.update(employee_id=employee.id, employee_name=employee.name)
        return self.engine.update(self.vacations, self._rebuild(current, changes))

    def delete_vacation(self, vacation_id: str) -> Mutation:
        return self.engine.delete(self.vacations, vacation_id)

    # -- employees ---------------------------------------------------------

    def add_employee(self, draft: EmployeeIn) -> Mutation:
        return self._create(self.employees, draft.model_dump())

    def update_employee(self, employee_id: str, changes: Mapping[str, Any]) -> Mutation:
        current = self.get(self.employees, employee_id)
        return self.engine.update(self.employees, self._rebuild(current, changes))

    def delete_employee(self, employee_id: str) -> Mutation:
        return self.engine.delete(
            self.employees,
            employee_id,
            cascade=[Cascade(self.certificates, "employee_id")],
        )

    # -- certificates ------------------------------------------------------

    def add_certificate(self, draft: CertificateIn, attachment: Optional[Attachment] = None) -> Mutation:
        employee = self._employee(draft.employee_id)
        fields = draft.model_dump()
        fields["employee_id"] = employee.id
        prepare = None
        if attachment is not None:
            if self.attachments is None:
                raise ValidationFailed("Attachments are not available")
            prepare = self._uploader(attachment)
        return self._create(self.certificates, fields, prepare)

    def update_certificate(self, certificate_id: str, changes: Mapping[str, Any]) -> Mutation:
        current = self.get(self.certificates, certificate_id)
        return self.engine.update(self.certificates, self._rebuild(current, changes))

    def delete_certificate(self, certificate_id: str) -> Mutation:
        return self.engine.delete(self.certificates, certificate_id)

    # -- analysis ----------------------------------------------------------

    def analyze_employee(self, employee_id: str, today: Optional[date] = None) -> tuple[Employee, CertificateAnalysis]:
        employee = self._employee(employee_id)
        certs = [c for c in self.certificates if c.employee_id == employee.id]
        return employee, analyze_certificates(certs, employee.contract_class, today)

    def flagged_employees(self, today: Optional[date] = None) -> list[tuple[Employee, CertificateAnalysis]]:
        return flag_employees(self.employees, list(self.certificates), today)

    def demand_summary(self, today: Optional[date] = None, upcoming_limit: int = 5) -> dict[str, Any]:
        today = today or date.today()
        open_items = [d for d in self.demands if not self.taxonomy.is_terminal(d.status)]
        upcoming = sorted((d for d in open_items if d.due_date >= today), key=lambda d: d.due_date)
        return {
            "open_demands": len(open_items),
            "awaiting_response": sum(1 for d in open_items if label_key(d.status) == _AWAITING),
            "done": len(self.demands) - len(open_items),
            "by_priority": dict(Counter(d.priority.value for d in self.demands)),
            "upcoming": upcoming[:upcoming_limit],
        }

    # -- backup ------------------------------------------------------------

    def export(self) -> BackupDocument:
        return BackupDocument(**{name: list(coll) for name, coll in self.collections.items()})

    async def import_backup(self, backup: BackupDocument) -> dict[str, int]:
        """Upsert every record under its own id, then reload from the store."""
        await self.sync()
        counts = {}
        for name, coll in self.collections.items():
            records = getattr(backup, name)
            await asyncio.gather(*(self.store.replace(name, r.id, r.to_document()) for r in records))
            counts[name] = len(records)
        await self.load()
        return counts

    # -- helpers -----------------------------------------------------------

    def _create(self, collection: Collection, fields: Mapping[str, Any], prepare=None) -> Mutation:
        try:
            return self.engine.create(collection, fields, prepare)
        except ValidationError as exc:
            raise ValidationFailed(_first_error(exc)) from exc

    def _rebuild(self, current: Record, changes: Mapping[str, Any]) -> Record:
        try:
            return type(current).model_validate({**current.model_dump(), **changes, "id": current.id})
        except ValidationError as exc:
            raise ValidationFailed(_first_error(exc)) from exc

    def _status_label(self, label: Optional[str]) -> str:
        if label is None or not label.strip():
            first = self.taxonomy.first()
            if first is None:
                raise ValidationFailed("No status available")
            return first.label
        status = self.taxonomy.find(label)
        if status is None:
            raise ValidationFailed(f'Unknown status "{label}"')
        return status.label

    def _owner(self, owner_id: Optional[str]) -> Optional[str]:
        if not owner_id:
            return None
        return self._employee(owner_id).id

    def _employee(self, employee_id: str) -> Employee:
        employee = self.employees.get(self.engine.resolve(employee_id))
        if employee is None:
            raise ValidationFailed(f"Unknown employee {employee_id}")
        return employee

    def _uploader(self, attachment: Attachment) -> Callable:
        async def upload(record: Certificate) -> dict[str, Any]:
            employee_id = self.engine.resolve(record.employee_id)
            url = await self.attachments.upload(
                employee_id, attachment.filename, attachment.content, attachment.content_type
            )
            return {"attachment_url": url}

        return upload

    def _notify_done(self, demand: Demand) -> None:
        if not demand.owner_id:
            return
        owner = self.employees.get(demand.owner_id)
        if owner is not None and owner.notification_tokens:
            self.notifier.notify_demand_done(owner, demand)


class WorkspaceRegistry:
    """Open workspaces keyed by session id."""

    def __init__(self, factory: Callable[[], Workspace]) -> None:
        self._factory = factory
        self._sessions: dict[str, Workspace] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(self) -> tuple[str, Workspace]:
        workspace = self._factory()
        await workspace.load()
        session_id = secrets.token_urlsafe(24)
        self._sessions[session_id] = workspace
        return session_id, workspace

    def get(self, session_id: str) -> Optional[Workspace]:
        return self._sessions.get(session_id)

    async def close(self, session_id: str) -> bool:
        workspace = self._sessions.pop(session_id, None)
        if workspace is None:
            return False
        await workspace.close()
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)


def _default_workspace() -> Workspace:
    return Workspace(get_remote_store(), get_attachment_store())


registry = WorkspaceRegistry(_default_workspace)
