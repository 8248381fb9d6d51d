import asyncio
from datetime import date

import pytest

from officeflow.core.errors import CascadeError, RecordNotFound, SyncError
from officeflow.schemas.certificate_schema import CertificateIn
from officeflow.schemas.employee_schema import EmployeeIn
from officeflow.sync.workspace import Workspace


async def _seeded(store, *names):
    """Workspace loaded from a store that already holds ``names``."""
    for name in names:
        await store.create("employees", {"name": name, "contract_class": "permanent", "notification_tokens": []})
    ws = Workspace(store)
    await ws.load()
    return ws


def _by_name(ws, name):
    return next(e for e in ws.employees if e.name == name)


class TestCreate:
    def test_record_is_visible_before_confirmation(self, store):
        async def scenario():
            ws = Workspace(store)
            gate = store.hold("create", "employees")
            mutation = ws.add_employee(EmployeeIn(name="Ana"))
            temp_id = mutation.record.id

            assert [e.name for e in ws.employees] == ["Ana"]
            assert temp_id.startswith("temp-employees-")
            assert ws.is_pending(temp_id)

            gate.set()
            confirmed = await mutation.result()
            assert confirmed.id != temp_id
            assert not ws.is_pending(temp_id)
            assert ws.engine.resolve(temp_id) == confirmed.id
            assert ws.employees.get(confirmed.id).name == "Ana"
            assert list(store.documents("employees")) == [confirmed.id]

        asyncio.run(scenario())

    def test_failed_create_restores_previous_state(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            before = ws.employees.snapshot()
            store.fail("create", "employees")

            mutation = ws.add_employee(EmployeeIn(name="Ana"))
            assert len(ws.employees) == 2
            with pytest.raises(SyncError) as err:
                await mutation.result()

            assert err.value.rolled_back
            assert ws.employees.snapshot() == before
            events = ws.engine.pop_events()
            assert [(e.kind, e.operation, e.collection) for e in events] == [("rollback", "create", "employees")]
            assert ws.engine.pop_events() == []

        asyncio.run(scenario())

    def test_update_of_pending_record_waits_for_its_id(self, store):
        async def scenario():
            ws = Workspace(store)
            gate = store.hold("create", "employees")
            created = ws.add_employee(EmployeeIn(name="Ana"))
            ws.update_employee(created.record.id, {"name": "Ana Maria"})
            assert [e.name for e in ws.employees] == ["Ana Maria"]

            gate.set()
            await ws.sync()
            docs = store.documents("employees")
            assert len(docs) == 1
            assert next(iter(docs.values()))["name"] == "Ana Maria"
            assert [e.name for e in ws.employees] == ["Ana Maria"]

        asyncio.run(scenario())

    def test_foreign_keys_are_rewritten_when_the_parent_confirms(self, store):
        async def scenario():
            ws = Workspace(store)
            gate = store.hold("create", "employees")
            employee = ws.add_employee(EmployeeIn(name="Ana")).record
            cert = ws.add_certificate(
                CertificateIn(employee_id=employee.id, certificate_date=date(2024, 3, 1), days=2)
            ).record
            assert cert.employee_id == employee.id

            gate.set()
            await ws.sync()
            real_id = ws.engine.resolve(employee.id)
            assert real_id != employee.id
            assert [c.employee_id for c in ws.certificates] == [real_id]
            stored = list(store.documents("certificates").values())
            assert [d["employee_id"] for d in stored] == [real_id]

        asyncio.run(scenario())


class TestUpdate:
    def test_failed_update_rolls_back(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            before = ws.employees.snapshot()
            store.fail("replace", "employees")

            mutation = ws.update_employee(bea.id, {"name": "Beatriz"})
            assert ws.employees.get(bea.id).name == "Beatriz"
            with pytest.raises(SyncError):
                await mutation.result()
            assert ws.employees.snapshot() == before

        asyncio.run(scenario())

    def test_unknown_record_is_rejected_without_a_mutation(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            with pytest.raises(RecordNotFound):
                ws.update_employee("missing", {"name": "X"})
            assert list(ws.engine.events) == []

        asyncio.run(scenario())

    def test_temp_id_redirects_after_reconciliation(self, store):
        async def scenario():
            ws = Workspace(store)
            created = ws.add_employee(EmployeeIn(name="Ana"))
            real = await created.result()

            updated = ws.update_employee(created.record.id, {"name": "Ana Maria"})
            assert updated.record.id == real.id
            await updated.result()
            assert store.documents("employees")[real.id]["name"] == "Ana Maria"

        asyncio.run(scenario())

    def test_rollback_snapshot_is_remapped_to_durable_ids(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            create_gate = store.hold("create", "employees")
            replace_gate = store.hold("replace", "employees")
            store.fail("replace", "employees")

            created = ws.add_employee(EmployeeIn(name="Ana"))
            update = ws.update_employee(bea.id, {"name": "Beatriz"})

            create_gate.set()
            real = await created.result()
            replace_gate.set()
            with pytest.raises(SyncError):
                await update.result()

            assert {e.id for e in ws.employees} == {bea.id, real.id}
            assert ws.employees.get(bea.id).name == "Bea"

        asyncio.run(scenario())

    def test_rollback_keeps_a_creation_still_in_flight(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            replace_gate = store.hold("replace", "employees")
            store.fail("replace", "employees")
            create_gate = store.hold("create", "employees")

            update = ws.update_employee(bea.id, {"name": "Beatriz"})
            created = ws.add_employee(EmployeeIn(name="Ana"))

            replace_gate.set()
            with pytest.raises(SyncError):
                await update.result()
            assert sorted(e.name for e in ws.employees) == ["Ana", "Bea"]

            create_gate.set()
            ana = await created.result()
            await ws.sync()
            assert ana is not None and ana.name == "Ana"
            assert sorted(e.name for e in ws.employees) == ["Ana", "Bea"]
            assert sorted(d["name"] for d in store.documents("employees").values()) == ["Ana", "Bea"]
            assert [(e.kind, e.operation) for e in ws.engine.pop_events()] == [("rollback", "update")]

        asyncio.run(scenario())

    def test_rollback_keeps_a_creation_confirmed_meanwhile(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            replace_gate = store.hold("replace", "employees")
            store.fail("replace", "employees")

            update = ws.update_employee(bea.id, {"name": "Beatriz"})
            ana = await ws.add_employee(EmployeeIn(name="Ana")).result()
            replace_gate.set()
            with pytest.raises(SyncError):
                await update.result()

            assert ws.employees.get(ana.id) == ana
            assert ws.employees.get(bea.id).name == "Bea"

        asyncio.run(scenario())

    def test_late_failure_of_a_removed_record_is_ignored(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            gate = store.hold("replace", "employees")
            store.fail("replace", "employees")

            update = ws.update_employee(bea.id, {"name": "Beatriz"})
            await ws.delete_employee(bea.id).result()
            gate.set()
            with pytest.raises(SyncError):
                await update.result()

            assert len(ws.employees) == 0
            assert list(ws.engine.events) == []

        asyncio.run(scenario())


class TestDelete:
    def test_failed_delete_restores_the_record(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea", "Caio")
            before = ws.employees.snapshot()
            store.fail("delete", "employees")

            mutation = ws.delete_employee(_by_name(ws, "Bea").id)
            assert [e.name for e in ws.employees] == ["Caio"]
            with pytest.raises(SyncError):
                await mutation.result()
            assert ws.employees.snapshot() == before

        asyncio.run(scenario())

    def test_delete_of_pending_record_is_not_resurrected(self, store):
        async def scenario():
            ws = Workspace(store)
            gate = store.hold("create", "employees")
            created = ws.add_employee(EmployeeIn(name="Ana"))
            deleted = ws.delete_employee(created.record.id)
            assert len(ws.employees) == 0

            gate.set()
            assert await created.result() is None
            await deleted.result()
            await ws.sync()
            assert len(ws.employees) == 0
            assert store.documents("employees") == {}
            assert not ws.is_pending(created.record.id)

        asyncio.run(scenario())

    def test_cascade_removes_dependents_with_the_parent(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            for day in (1, 2):
                await ws.add_certificate(
                    CertificateIn(employee_id=bea.id, certificate_date=date(2024, 3, day))
                ).result()

            await ws.delete_employee(bea.id).result()
            assert len(ws.certificates) == 0
            assert store.documents("certificates") == {}
            assert store.documents("employees") == {}

        asyncio.run(scenario())

    def test_failed_cascade_keeps_the_parent_deleted(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea")
            bea = _by_name(ws, "Bea")
            await ws.add_certificate(
                CertificateIn(employee_id=bea.id, certificate_date=date(2024, 3, 1))
            ).result()
            store.fail("delete", "certificates")

            mutation = ws.delete_employee(bea.id)
            with pytest.raises(CascadeError) as err:
                await mutation.result()

            assert not err.value.rolled_back
            assert err.value.dependent_collection == "certificates"
            assert len(err.value.failed_ids) == 1
            assert len(ws.employees) == 0
            assert len(ws.certificates) == 0
            assert store.documents("employees") == {}
            assert [e.kind for e in ws.engine.pop_events()] == ["cascade"]

        asyncio.run(scenario())


class TestLoad:
    def test_reload_is_idempotent(self, store):
        async def scenario():
            ws = await _seeded(store, "Bea", "Caio")
            first = {name: list(coll) for name, coll in ws.collections.items()}
            await ws.load()
            second = {name: list(coll) for name, coll in ws.collections.items()}
            assert first == second
            assert [s.label for s in ws.statuses] == ["Open", "Awaiting Response", "Done"]

        asyncio.run(scenario())
