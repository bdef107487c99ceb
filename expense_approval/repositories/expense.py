from datetime import datetime
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorClientSession
from expense_approval.errors import ConflictError
from expense_approval.models.expense import Expense, OPEN_EXPENSE_STATUSES, StepStatus
from expense_approval.repositories.base import BaseRepository

# Fields rewritten by the workflow engine on every mutation
WORKFLOW_FIELDS = (
    "status",
    "approval_chain",
    "workflow_graph",
    "current_approval_level",
    "approval_progress",
    "escalation_notified_at",
)

class ExpenseRepository(BaseRepository[Expense]):

    async def get_by_expense_id(self, expense_id: str,
                                session: Optional[AsyncIOMotorClientSession] = None) -> Optional[Expense]:
        return await self.get_by_field("expense_id", expense_id, session=session)

    async def save_workflow(self, expense: Expense, session: Optional[AsyncIOMotorClientSession] = None) -> Expense:
        """
        Compare-and-swap write of the workflow fields.
        Only succeeds if nobody else wrote the expense since it was read.
        """
        data = expense.model_dump(include=set(WORKFLOW_FIELDS), by_alias=True)
        data["status"] = expense.status.value
        data["updated_at"] = datetime.utcnow()

        result = await self.collection.update_one(
            {"expense_id": expense.expense_id, "version": expense.version},
            {"$set": data, "$inc": {"version": 1}},
            session=session
        )
        if result.matched_count == 0:
            raise ConflictError(
                f"Expense {expense.expense_id} changed concurrently (expected version {expense.version})"
            )

        expense.version += 1
        expense.updated_at = data["updated_at"]
        return expense

    async def find_escalation_candidates(self, now: datetime) -> List[str]:
        """Ids of open expenses holding at least one overdue pending step."""
        query = {
            "status": {"$in": [status.value for status in OPEN_EXPENSE_STATUSES]},
            "approval_chain": {
                "$elemMatch": {
                    "status": StepStatus.PENDING.value,
                    "escalation_at": {"$ne": None, "$lte": now}
                }
            }
        }
        cursor = self.collection.find(query, {"expense_id": 1})
        docs = await cursor.to_list(None)
        return [doc["expense_id"] for doc in docs]
