from __future__ import annotations

import asyncio
import logging
from typing import Optional

from officeflow.core.errors import (
    DuplicateStatusError,
    LastStatusError,
    ProtectedStatusError,
    RecordNotFound,
    ValidationFailed,
)
from officeflow.schemas.demand_schema import Demand
from officeflow.schemas.status_schema import WorkflowStatus
from officeflow.sync.collection import Collection
from officeflow.sync.engine import Mutation, MutationEngine

logger = logging.getLogger(__name__)

AWAITING_LABEL = "Awaiting Response"
TERMINAL_LABEL = "Done"
TERMINAL_ORDER = 99

# Built-in statuses: always present, never deleted, never renamed
PROTECTED_STATUSES: dict[str, dict] = {
    "Open": {"order": 0, "icon": "Inbox", "color": "bg-blue-500"},
    AWAITING_LABEL: {"order": 1, "icon": "MailQuestion", "color": "bg-yellow-500"},
    TERMINAL_LABEL: {"order": TERMINAL_ORDER, "icon": "CheckCircle2", "color": "bg-green-500"},
}


def label_key(label: str) -> str:
    return label.strip().casefold()


_PROTECTED_KEYS = frozenset(label_key(label) for label in PROTECTED_STATUSES)


def is_protected(label: str) -> bool:
    return label_key(label) in _PROTECTED_KEYS


def status_sort_key(status: WorkflowStatus) -> tuple[int, str]:
    return status.order, label_key(status.label)


async def _raise_first(*aws) -> None:
    results = await asyncio.gather(*aws, return_exceptions=True)
    for res in results:
        if isinstance(res, BaseException):
            raise res


class StatusTaxonomy:
    """User-extensible set of demand statuses.

    Deleting or renaming a status relabels the demands that carry it in the
    same optimistic step, so every demand keeps pointing at a live label.
    """

    def __init__(
        self,
        engine: MutationEngine,
        statuses: Collection[WorkflowStatus],
        demands: Collection[Demand],
    ) -> None:
        self.engine = engine
        self.statuses = statuses
        self.demands = demands

    def find(self, label: str) -> Optional[WorkflowStatus]:
        key = label_key(label)
        for status in self.statuses:
            if label_key(status.label) == key:
                return status
        return None

    def first(self) -> Optional[WorkflowStatus]:
        return min(self.statuses, key=status_sort_key, default=None)

    def terminal(self) -> Optional[WorkflowStatus]:
        return self.find(TERMINAL_LABEL)

    def is_terminal(self, label: str) -> bool:
        return label_key(label) == label_key(TERMINAL_LABEL)

    def add(self, label: str, icon: str = "Inbox", color: str = "bg-slate-500") -> Mutation:
        label = label.strip()
        if not label:
            raise ValidationFailed("Status label cannot be empty")
        if self.find(label) is not None:
            raise DuplicateStatusError(f'Status "{label}" already exists')
        # New statuses always sort before the terminal one
        orders = [s.order for s in self.statuses if not self.is_terminal(s.label)]
        order = max(orders, default=-1) + 1
        if order >= TERMINAL_ORDER:
            raise ValidationFailed("No position left before the terminal status")
        return self.engine.create(
            self.statuses,
            {"label": label, "order": order, "icon": icon, "color": color},
        )

    def update(
        self,
        status_id: str,
        label: Optional[str] = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Mutation:
        status = self._get(status_id)
        changes: dict = {}
        if icon is not None:
            changes["icon"] = icon
        if color is not None:
            changes["color"] = color
        if label is not None and label.strip() != status.label:
            new_label = label.strip()
            if not new_label:
                raise ValidationFailed("Status label cannot be empty")
            if is_protected(status.label):
                raise ProtectedStatusError(f'"{status.label}" is a built-in status and cannot be renamed')
            other = self.find(new_label)
            if other is not None and other.id != status.id:
                raise DuplicateStatusError(f'Status "{new_label}" already exists')
            changes["label"] = new_label

        updated = status.model_copy(update=changes)
        if "label" not in changes:
            return self.engine.update(self.statuses, updated)
        return self._relabel("update", status, updated)

    def delete(self, status_id: str) -> Mutation:
        status = self._get(status_id)
        if is_protected(status.label):
            raise ProtectedStatusError(f'"{status.label}" is a built-in status and cannot be deleted')
        if len(self.statuses) <= 1:
            raise LastStatusError("At least one status must remain")
        survivors = [s for s in self.statuses if s.id != status.id]
        fallback = min(survivors, key=status_sort_key)
        return self._relabel("delete", status, None, fallback.label)

    async def bootstrap(self) -> list[WorkflowStatus]:
        """Create any missing built-in status directly against the store."""
        created = []
        for label, props in PROTECTED_STATUSES.items():
            if self.find(label) is not None:
                continue
            data = {"label": label, **props}
            status_id = await self.engine.store.create(self.statuses.name, data)
            created.append(WorkflowStatus(id=status_id, **data))
        if created:
            self.statuses.load(list(self.statuses) + created)
            logger.info("Created built-in statuses: %s", ", ".join(s.label for s in created))
        return created

    def _get(self, status_id: str) -> WorkflowStatus:
        status_id = self.engine.resolve(status_id)
        status = self.statuses.get(status_id)
        if status is None:
            raise RecordNotFound(self.statuses.name, status_id)
        return status

    def _relabel(
        self,
        operation: str,
        status: WorkflowStatus,
        updated: Optional[WorkflowStatus],
        fallback: Optional[str] = None,
    ) -> Mutation:
        old_key = label_key(status.label)
        new_label = updated.label if updated is not None else fallback
        relabeled: list[Demand] = []

        def local() -> WorkflowStatus:
            if updated is None:
                self.statuses.remove(status.id)
                self.engine.discard(status.id)
            else:
                self.statuses.replace(updated)
            relabeled.extend(
                self.demands.update_where(
                    lambda d: label_key(d.status) == old_key,
                    lambda d: d.model_copy(update={"status": new_label}),
                )
            )
            return updated or status

        async def remote() -> None:
            # Demands first: the old label stays valid remotely until they move
            await _raise_first(*(self.engine.push_replace(self.demands, d) for d in relabeled))
            if updated is None:
                await self.engine.push_delete(self.statuses, status.id)
            else:
                await self.engine.push_replace(self.statuses, updated)

        return self.engine.apply(operation, [self.statuses, self.demands], local, remote)
