import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClientSession

from expense_approval.config import settings
from expense_approval.database import db
from expense_approval.errors import ConflictError, NotFoundError
from expense_approval.models.audit import AuditAction, AuditEntry
from expense_approval.models.base import new_id
from expense_approval.models.expense import Expense
from expense_approval.models.notification import NotificationType, OutboxEvent
from expense_approval.services.notifications import outbox_relay

logger = logging.getLogger(__name__)

T = TypeVar("T")

class UnitOfWork:
    """
    Everything written for one expense mutation: the versioned expense,
    its audit entries and its outbox events share one transaction.
    """

    def __init__(self, session: Optional[AsyncIOMotorClientSession]):
        self.session = session
        self.events: List[OutboxEvent] = []

    async def load_expense(self, expense_id: str) -> Expense:
        expense = await db.expenses.get_by_expense_id(expense_id, session=self.session)
        if not expense:
            raise NotFoundError(f"Expense {expense_id} not found")
        return expense

    async def save(self, expense: Expense) -> Expense:
        return await db.expenses.save_workflow(expense, session=self.session)

    async def audit(self,
                    expense: Expense,
                    actor: Optional[str],
                    action: AuditAction,
                    previous_status: Optional[str] = None,
                    comment: Optional[str] = None,
                    level: Optional[int] = None,
                    metadata: Optional[Dict[str, Any]] = None) -> AuditEntry:
        return await db.audit.record(
            expense,
            actor=actor,
            action=action,
            previous_status=previous_status,
            comment=comment,
            level=level,
            metadata=metadata,
            session=self.session
        )

    async def notify(self,
                     expense: Expense,
                     recipients: List[str],
                     type: NotificationType,
                     title: str,
                     message: str,
                     payload: Optional[Dict[str, Any]] = None):
        """Enqueue a notification; it is only sent once the transaction commits."""
        if not recipients:
            return
        event = OutboxEvent(
            event_id=new_id("NTF"),
            expense_id=expense.expense_id,
            company_id=expense.company_id,
            recipients=recipients,
            type=type,
            title=title,
            message=message,
            payload={"expense_id": expense.expense_id, **(payload or {})}
        )
        await db.outbox.enqueue(event, session=self.session)
        self.events.append(event)

async def run_in_transaction(operation: str, work: Callable[[UnitOfWork], Awaitable[T]]) -> T:
    """
    Runs ``work`` inside a transaction, retrying on write conflicts.
    Each attempt re-reads current state. Notifications go out after commit
    and never affect the outcome.
    """
    attempts = settings.MAX_COMMIT_RETRIES + 1
    for attempt in range(1, attempts + 1):
        try:
            async with db.transaction() as session:
                uow = UnitOfWork(session)
                result = await work(uow)
            break
        except ConflictError as e:
            if attempt == attempts:
                logger.error(f"{operation} gave up after {attempts} attempts: {e}")
                raise
            logger.warning(f"{operation} conflicted (attempt {attempt}/{attempts}), retrying: {e}")

    await dispatch_after_commit(uow.events)
    return result

async def dispatch_after_commit(events: List[OutboxEvent]):
    if not events:
        return
    try:
        await outbox_relay.deliver(events)
    except Exception as e:
        logger.error(f"Post-commit notification dispatch failed: {e}")
