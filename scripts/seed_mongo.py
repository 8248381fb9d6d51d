from __future__ import annotations

import asyncio
from datetime import date, timedelta

from bson import ObjectId

from officeflow.db.mongo import get_mongo_db, close_mongo_client
from officeflow.db.mongo_indexes import ensure_indexes
from officeflow.sync.statuses import PROTECTED_STATUSES


async def seed_statuses(db):
    for label, props in PROTECTED_STATUSES.items():
        await db["statuses"].update_one(
            {"label": label},
            {"$setOnInsert": {"label": label, **props}},
            upsert=True,
            collation={"locale": "en", "strength": 2},
        )


async def seed_employees(db):
    employees = [
        {
            "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0b1"),
            "name": "Alice Smith",
            "contract_class": "permanent",
            "notification_tokens": ["mailto:alice@example.com"],
        },
        {
            "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0b2"),
            "name": "Bob Brown",
            "contract_class": "fixed-term",
            "notification_tokens": [],
        },
    ]
    for e in employees:
        await db["employees"].update_one({"_id": e["_id"]}, {"$setOnInsert": e}, upsert=True)
    return employees


async def seed_demands(db, employees):
    today = date.today()
    demand = {
        "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0c1"),
        "title": "Renew office insurance",
        "description": "Sample seed demand",
        "priority": "high",
        "due_date": (today + timedelta(days=7)).isoformat(),
        "status": "Open",
        "owner_id": str(employees[0]["_id"]),
    }
    await db["demands"].update_one({"_id": demand["_id"]}, {"$setOnInsert": demand}, upsert=True)


async def seed_vacations(db, employees):
    start = date.today() + timedelta(days=30)
    vacation = {
        "_id": ObjectId("6562a0f0a0a0a0a0a0a0a0d1"),
        "employee_id": str(employees[1]["_id"]),
        "employee_name": employees[1]["name"],
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=9)).isoformat(),
    }
    await db["vacations"].update_one({"_id": vacation["_id"]}, {"$setOnInsert": vacation}, upsert=True)


async def main():
    db = get_mongo_db()
    # Ensure indexes before inserting
    await ensure_indexes(db)

    await seed_statuses(db)
    employees = await seed_employees(db)
    await seed_demands(db, employees)
    await seed_vacations(db, employees)

    print("MongoDB seed completed.")
    close_mongo_client()


if __name__ == "__main__":
    asyncio.run(main())
