import asyncio
import os
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, IndexModel

# Configuration (mirrors expense_approval.config; kept standalone so the script runs before install)
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "expense_approvals")

async def init_db():
    print(f"Connecting to {MONGODB_URL}...")
    client = AsyncIOMotorClient(MONGODB_URL)
    db = client[DB_NAME]

    # 1. Expenses Collection
    print("Creating indexes on 'expenses'...")
    await db.expenses.create_indexes([
        IndexModel([("expense_id", ASCENDING)], unique=True),
        IndexModel([("company_id", ASCENDING), ("employee_id", ASCENDING), ("status", ASCENDING)]),
        IndexModel([("category", ASCENDING), ("submitted_at", DESCENDING)]),
        # Escalation sweep lookup
        IndexModel([("status", ASCENDING), ("approval_chain.status", ASCENDING), ("approval_chain.escalation_at", ASCENDING)]),
    ])

    # 2. Companies Collection
    print("Creating indexes on 'companies'...")
    await db.companies.create_indexes([
        IndexModel([("company_id", ASCENDING)], unique=True),
        IndexModel([("name", ASCENDING)], unique=True),
    ])

    # 3. Approval Log Collection
    print("Creating indexes on 'approval_logs'...")
    await db.approval_logs.create_indexes([
        IndexModel([("entry_id", ASCENDING)], unique=True),
        IndexModel([("expense_id", ASCENDING), ("performed_at", DESCENDING)]),
        IndexModel([("company_id", ASCENDING), ("action", ASCENDING)]),
    ])

    # 4. Notification Outbox
    print("Creating indexes on 'notification_outbox'...")
    await db.notification_outbox.create_indexes([
        IndexModel([("event_id", ASCENDING)], unique=True),
        IndexModel([("status", ASCENDING), ("created_at", ASCENDING)]),
    ])

    # 5. Exchange Rates
    print("Creating indexes on 'exchange_rates'...")
    await db.exchange_rates.create_indexes([
        IndexModel([("base_currency", ASCENDING), ("target_currency", ASCENDING), ("effective_date", DESCENDING)]),
    ])

    print("Database initialization complete.")
    client.close()

if __name__ == "__main__":
    asyncio.run(init_db())
