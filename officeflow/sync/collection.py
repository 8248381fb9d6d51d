from __future__ import annotations

from typing import Any, Callable, Generic, Iterable, Iterator, Optional, TypeVar

from officeflow.schemas.common import Record


R = TypeVar("R", bound=Record)

Snapshot = tuple


class Collection(Generic[R]):
    """Ordered, copy-on-write set of records owned by one workspace.

    The records are held in a tuple that is swapped in a single assignment
    on every change, so a snapshot is just the current tuple and restoring
    it is O(1). Records themselves are frozen models.
    """

    def __init__(
        self,
        name: str,
        model: type[R],
        sort_key: Optional[Callable[[R], Any]] = None,
    ) -> None:
        self.name = name
        self.model = model
        self._sort_key = sort_key
        self._items: tuple[R, ...] = ()

    def __iter__(self) -> Iterator[R]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, record_id: object) -> bool:
        return any(r.id == record_id for r in self._items)

    def __repr__(self) -> str:
        return f"Collection({self.name!r}, {len(self._items)} records)"

    @property
    def items(self) -> tuple[R, ...]:
        return self._items

    def get(self, record_id: str) -> Optional[R]:
        for record in self._items:
            if record.id == record_id:
                return record
        return None

    def snapshot(self) -> Snapshot:
        return self._items

    def restore(self, snapshot: Snapshot) -> None:
        self._items = tuple(snapshot)

    def load(self, records: Iterable[R]) -> None:
        self._set(tuple(records))

    def insert(self, record: R) -> None:
        # New records go first; ordered collections re-sort afterwards
        self._set((record,) + self._items)

    def replace(self, record: R, match_id: Optional[str] = None) -> bool:
        target = record.id if match_id is None else match_id
        replaced = False
        items = []
        for current in self._items:
            if current.id == target:
                items.append(record)
                replaced = True
            else:
                items.append(current)
        if replaced:
            self._set(tuple(items))
        return replaced

    def remove(self, record_id: str) -> Optional[R]:
        removed = self.get(record_id)
        if removed is not None:
            self._items = tuple(r for r in self._items if r.id != record_id)
        return removed

    def remove_where(self, predicate: Callable[[R], bool]) -> list[R]:
        removed = [r for r in self._items if predicate(r)]
        if removed:
            self._items = tuple(r for r in self._items if not predicate(r))
        return removed

    def update_where(self, predicate: Callable[[R], bool], change: Callable[[R], R]) -> list[R]:
        """Apply ``change`` to every matching record; return the new records."""
        changed = []
        items = []
        for record in self._items:
            if predicate(record):
                record = change(record)
                changed.append(record)
            items.append(record)
        if changed:
            self._set(tuple(items))
        return changed

    def _set(self, items: tuple[R, ...]) -> None:
        if self._sort_key is not None:
            items = tuple(sorted(items, key=self._sort_key))
        self._items = items
