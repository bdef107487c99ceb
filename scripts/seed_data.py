import asyncio
import os
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient

# Configuration
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "expense_approvals")

async def seed_db():
    print(f"Connecting to {MONGODB_URL}...")
    client = AsyncIOMotorClient(MONGODB_URL)
    db = client[DB_NAME]

    company_id = "acme_corp"

    # 1. Company and approval policy
    print("Seeding Company...")
    await db.companies.update_one(
        {"company_id": company_id},
        {"$set": {
            "company_id": company_id,
            "name": "Acme Corporation",
            "currency": "USD",
            "approval_rules": [
                {
                    "level": 1,
                    "approver": {"kind": "single", "role": "manager"},
                    "required_approvals": 1,
                    "auto_approve_below": 150,
                    "threshold_amount": 0,
                    "threshold_currency": "USD",
                    "notify_roles": ["admin"]
                },
                {
                    "level": 2,
                    "approver": {"kind": "parallel", "roles": ["finance", "admin"]},
                    "required_approvals": 1,
                    "threshold_amount": 1000,
                    "threshold_currency": "USD",
                    "notify_roles": ["executive"]
                },
                {
                    "level": 3,
                    "approver": {"kind": "single", "role": "executive"},
                    "required_approvals": 1,
                    "threshold_amount": 5000,
                    "threshold_currency": "USD",
                    "sla_hours": 48
                }
            ]
        }},
        upsert=True
    )

    # 2. Exchange rates
    print("Seeding Exchange Rates...")
    rates = [
        {"base_currency": "EUR", "target_currency": "USD", "rate": 1.08},
        {"base_currency": "GBP", "target_currency": "USD", "rate": 1.27},
        {"base_currency": "USD", "target_currency": "AUD", "rate": 1.42},
    ]
    for rate in rates:
        await db.exchange_rates.update_one(
            {"base_currency": rate["base_currency"], "target_currency": rate["target_currency"]},
            {"$set": {**rate, "effective_date": datetime(2025, 9, 1), "source": "demo"}},
            upsert=True
        )

    # 3. Expenses (chains are built by POST /api/expenses/{id}/workflow)
    print("Seeding Expenses...")
    expenses = [
        {"expense_id": "EXP-1001", "employee_id": "emp_ava", "amount": 92.5, "currency": "USD", "category": "Meals"},
        {"expense_id": "EXP-1002", "employee_id": "emp_ava", "amount": 1840.0, "currency": "EUR", "category": "Travel"},
        {"expense_id": "EXP-1003", "employee_id": "emp_liam", "amount": 7200.0, "currency": "USD", "category": "Equipment"},
    ]
    for expense in expenses:
        await db.expenses.update_one(
            {"expense_id": expense["expense_id"]},
            {
                "$set": {**expense, "company_id": company_id},
                "$setOnInsert": {
                    "status": "submitted",
                    "approval_chain": [],
                    "version": 0,
                    "submitted_at": datetime.utcnow(),
                    "created_at": datetime.utcnow(),
                    "updated_at": datetime.utcnow()
                }
            },
            upsert=True
        )

    print("Database seeding complete.")
    client.close()

if __name__ == "__main__":
    asyncio.run(seed_db())
