from motor.motor_asyncio import AsyncIOMotorDatabase
from officeflow.db.mongo import get_mongo_db


async def ensure_indexes(db: AsyncIOMotorDatabase | None = None) -> None:
    """Create required MongoDB indexes (idempotent)."""
    if db is None:
        db = get_mongo_db()

    demands = db["demands"]
    await demands.create_index([("status", 1)], name="idx_demand_status")
    await demands.create_index([("owner_id", 1)], name="idx_demand_owner")
    await demands.create_index([("due_date", 1)], name="idx_demand_due_date")

    vacations = db["vacations"]
    await vacations.create_index([("employee_id", 1)], name="idx_vacation_employee")
    await vacations.create_index([("start_date", 1), ("end_date", 1)], name="idx_vacation_dates")

    certificates = db["certificates"]
    # Cascade deletes and compliance lookups go by employee
    await certificates.create_index([("employee_id", 1), ("certificate_date", -1)], name="idx_cert_employee_date")

    statuses = db["statuses"]
    await statuses.create_index([("order", 1)], name="idx_status_order")
    # Labels are unique regardless of case
    await statuses.create_index(
        [("label", 1)],
        unique=True,
        name="uniq_status_label",
        collation={"locale": "en", "strength": 2},
    )

    notifications = db["notifications"]
    await notifications.create_index([("token", 1), ("read", 1), ("created_at", -1)], name="idx_notif_token_read_created")
