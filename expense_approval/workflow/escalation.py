import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from expense_approval.database import db
from expense_approval.errors import ApprovalEngineError
from expense_approval.models.audit import AuditAction
from expense_approval.models.expense import ApprovalStep, Expense, OPEN_EXPENSE_STATUSES, StepStatus
from expense_approval.models.notification import NotificationType
from expense_approval.services.notifications import outbox_relay
from expense_approval.workflow.state import refresh_derived
from expense_approval.workflow.unit_of_work import UnitOfWork, run_in_transaction

logger = logging.getLogger(__name__)

class EscalationMonitor:
    """
    Background monitor for approval SLAs.
    Escalation is an alarm: quorum and tallies are left untouched.
    """

    def __init__(self):
        self.is_running = False

    def flag_overdue(self, expense: Expense, now: datetime) -> List[ApprovalStep]:
        """Marks pending steps past their deadline as escalated."""
        if expense.status not in OPEN_EXPENSE_STATUSES:
            return []

        flagged = []
        for step in expense.approval_chain:
            if step.status == StepStatus.PENDING and step.escalation_at and step.escalation_at <= now:
                step.status = StepStatus.ESCALATED
                step.is_escalated = True
                flagged.append(step)
        return flagged

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        One pass over every open expense with an overdue step.
        Returns the number of expenses escalated.
        """
        now = now or datetime.utcnow()
        candidates = await db.expenses.find_escalation_candidates(now)
        escalated = 0
        for expense_id in candidates:
            try:
                if await self.escalate_expense(expense_id, now):
                    escalated += 1
            except ApprovalEngineError as e:
                logger.warning(f"Escalation of {expense_id} skipped: {e}")
            except Exception as e:
                logger.error(f"Escalation of {expense_id} failed: {e}")

        if escalated:
            logger.info(f"Escalation sweep flagged {escalated} of {len(candidates)} candidate expenses")
        return escalated

    async def escalate_expense(self, expense_id: str, now: datetime) -> bool:
        async def work(uow: UnitOfWork) -> bool:
            expense = await uow.load_expense(expense_id)
            # Re-evaluated on the freshly read state; a decision may have won the race
            flagged = self.flag_overdue(expense, now)
            if not flagged:
                return False

            expense.escalation_notified_at = now
            refresh_derived(expense)
            await uow.save(expense)

            roles = sorted({step.role for step in flagged})
            await uow.audit(
                expense,
                actor=None,
                action=AuditAction.ESCALATED,
                previous_status=expense.status.value,
                comment="Automatic escalation triggered",
                level=flagged[0].level,
                metadata={"levels": sorted({step.level for step in flagged}), "roles": roles}
            )
            await uow.notify(
                expense,
                recipients=[f"role:{role}" for role in roles],
                type=NotificationType.ESCALATION,
                title=f"Approval overdue: expense {expense.expense_id}",
                message=f"{len(flagged)} approval step(s) passed their SLA and were escalated.",
                payload={"levels": sorted({step.level for step in flagged})}
            )
            logger.warning(f"Escalated {len(flagged)} step(s) on {expense.expense_id} for roles {roles}")
            return True

        return await run_in_transaction(f"escalate {expense_id}", work)

    async def start_polling(self, interval_seconds: int = 300):
        """Start the background sweep loop."""
        self.is_running = True
        logger.info(f"Starting escalation monitor (every {interval_seconds}s)...")
        while self.is_running:
            try:
                await self.sweep()
                await outbox_relay.drain()
            except Exception as e:
                logger.error(f"Error in escalation sweep: {e}")

            await asyncio.sleep(interval_seconds)

    async def stop(self):
        self.is_running = False

escalation_monitor = EscalationMonitor()
