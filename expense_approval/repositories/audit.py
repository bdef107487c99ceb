import logging
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorClientSession
from expense_approval.models.audit import AuditEntry, AuditAction
from expense_approval.models.base import new_id
from expense_approval.models.expense import Expense
from expense_approval.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

class AuditRecorder(BaseRepository[AuditEntry]):
    """
    Append-only approval log. Entries are never updated or deleted.
    """

    async def append(self, entry: AuditEntry, session: Optional[AsyncIOMotorClientSession] = None) -> AuditEntry:
        """Append an entry; joins the caller's transaction when a session is given."""
        await self.create(entry, session=session)
        logger.info(f"AUDIT [{entry.action.value}]: {entry.expense_id} by {entry.actor or 'system'}")
        return entry

    async def record(self,
                     expense: Expense,
                     actor: Optional[str],
                     action: AuditAction,
                     previous_status: Optional[str] = None,
                     comment: Optional[str] = None,
                     level: Optional[int] = None,
                     metadata: Optional[Dict[str, Any]] = None,
                     session: Optional[AsyncIOMotorClientSession] = None) -> AuditEntry:
        """Helper to build and append an entry for an expense transition."""
        entry = AuditEntry(
            entry_id=new_id("LOG"),
            expense_id=expense.expense_id,
            company_id=expense.company_id,
            actor=actor,
            action=action,
            level=level,
            previous_status=previous_status,
            new_status=expense.status.value,
            comment=comment,
            metadata=metadata or {}
        )
        return await self.append(entry, session=session)

    async def get_for_expense(self, expense_id: str) -> List[AuditEntry]:
        """Retrieve the audit trail of an expense, oldest first."""
        cursor = self.collection.find({"expense_id": expense_id}).sort("performed_at", 1)
        docs = await cursor.to_list(None)
        return [self.model_cls.from_mongo(doc) for doc in docs]
