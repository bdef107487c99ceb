import logging
from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel

from expense_approval.database import db
from expense_approval.errors import NotFoundError, ValidationError
from expense_approval.models.audit import AuditAction, AuditEntry
from expense_approval.models.expense import ApprovalStep, ExpenseStatus, WorkflowGraph
from expense_approval.models.notification import NotificationType
from expense_approval.workflow.advancer import Decision, StepAdvancer, step_advancer
from expense_approval.workflow.bypass import BYPASS_COMMENT, BypassExecutor, bypass_executor
from expense_approval.workflow.compiler import WorkflowCompiler, workflow_compiler
from expense_approval.workflow.escalation import EscalationMonitor, escalation_monitor
from expense_approval.workflow.unit_of_work import UnitOfWork, run_in_transaction

logger = logging.getLogger(__name__)

class WorkflowResult(BaseModel):
    expense_id: str
    status: ExpenseStatus
    steps: List[ApprovalStep]
    graph: WorkflowGraph

class DecisionResult(BaseModel):
    expense_id: str
    status: ExpenseStatus
    steps: List[ApprovalStep]
    progress: int

class BypassResult(BaseModel):
    expense_id: str
    status: ExpenseStatus
    steps: List[ApprovalStep]

class ApprovalEngine:
    """
    The four operations exposed to the API layer. Each one is a single
    versioned read-modify-write of one expense.
    """

    def __init__(self,
                 compiler: WorkflowCompiler = workflow_compiler,
                 advancer: StepAdvancer = step_advancer,
                 bypasser: BypassExecutor = bypass_executor,
                 monitor: EscalationMonitor = escalation_monitor):
        self.compiler = compiler
        self.advancer = advancer
        self.bypasser = bypasser
        self.monitor = monitor

    async def compile(self, expense_id: str) -> WorkflowResult:
        """Builds (or rebuilds) the approval chain of an expense from its company's policy."""

        async def work(uow: UnitOfWork) -> WorkflowResult:
            expense = await uow.load_expense(expense_id)
            company = await db.companies.get_by_company_id(expense.company_id, session=uow.session)
            if not company:
                raise NotFoundError(f"Company {expense.company_id} not found")
            if expense.status == ExpenseStatus.PAID:
                raise ValidationError(f"Expense {expense_id} is already paid")

            applicable, skipped = await self.compiler.resolve_levels(expense, company)
            steps = self.compiler.build_steps(applicable)
            previous = expense.status
            self.compiler.apply_plan(expense, steps)
            await uow.save(expense)

            await uow.audit(
                expense,
                actor=None,
                action=AuditAction.WORKFLOW_COMPILED,
                previous_status=previous.value,
                level=expense.current_approval_level,
                metadata={"steps": len(steps), "skipped_levels": skipped}
            )
            if expense.status == ExpenseStatus.APPROVED:
                await uow.audit(
                    expense,
                    actor=None,
                    action=AuditAction.APPROVED,
                    previous_status=previous.value,
                    comment="All approval levels auto-approved",
                    metadata={"final": True, "auto": True}
                )
                await uow.notify(
                    expense,
                    recipients=[expense.employee_id],
                    type=NotificationType.APPROVAL_STATUS_CHANGED,
                    title="Expense approved",
                    message=f"Your expense {expense.expense_id} was approved automatically.",
                    payload={"decision": Decision.APPROVE.value}
                )
            else:
                open_roles = {step.role for step in expense.open_steps()}
                notify_roles = {
                    role
                    for rule, _ in applicable
                    if rule.level == expense.current_approval_level
                    for role in rule.notify_roles
                }
                await uow.notify(
                    expense,
                    recipients=[f"role:{role}" for role in sorted(open_roles | notify_roles)],
                    type=NotificationType.APPROVAL_REQUESTED,
                    title=f"Expense awaiting approval • {company.name}",
                    message=f"An expense submitted by {expense.employee_id} requires your attention.",
                    payload={"level": expense.current_approval_level}
                )

            return WorkflowResult(
                expense_id=expense.expense_id,
                status=expense.status,
                steps=expense.approval_chain,
                graph=expense.workflow_graph
            )

        return await run_in_transaction(f"compile {expense_id}", work)

    async def decide(self,
                     expense_id: str,
                     actor_id: str,
                     decision,
                     comment: Optional[str] = None,
                     actor_roles: Optional[Iterable[str]] = None) -> DecisionResult:
        """Applies one approver's decision to the chain."""
        decision = Decision.parse(decision)
        roles = list(actor_roles) if actor_roles is not None else None

        async def work(uow: UnitOfWork) -> DecisionResult:
            expense = await uow.load_expense(expense_id)
            outcome = self.advancer.apply(expense, actor_id, decision, comment=comment, actor_roles=roles)
            await uow.save(expense)

            action = AuditAction.APPROVED if decision == Decision.APPROVE else AuditAction.REJECTED
            metadata = {"step": outcome.step_index, "step_closed": outcome.step_closed}
            if outcome.auto_closed:
                metadata["auto_closed"] = outcome.auto_closed
            if outcome.final:
                metadata["final"] = True
            await uow.audit(
                expense,
                actor=actor_id,
                action=action,
                previous_status=outcome.previous_status.value,
                comment=comment,
                level=outcome.level,
                metadata=metadata
            )

            verb = "approved" if decision == Decision.APPROVE else "rejected"
            await uow.notify(
                expense,
                recipients=[expense.employee_id],
                type=NotificationType.APPROVAL_STATUS_CHANGED,
                title=f"Expense {verb}",
                message=f"Your expense {expense.expense_id} was {verb} by {actor_id} at level {outcome.level}.",
                payload={"decision": decision.value, "status": expense.status.value}
            )

            return DecisionResult(
                expense_id=expense.expense_id,
                status=expense.status,
                steps=expense.approval_chain,
                progress=expense.approval_progress
            )

        return await run_in_transaction(f"decide {expense_id}", work)

    async def bypass(self, expense_id: str, actor_id: str) -> BypassResult:
        """Force-approves every step. Authorization is the caller's job."""

        async def work(uow: UnitOfWork) -> BypassResult:
            expense = await uow.load_expense(expense_id)
            previous = self.bypasser.apply(expense, actor_id, now=datetime.utcnow())
            await uow.save(expense)

            await uow.audit(
                expense,
                actor=actor_id,
                action=AuditAction.CFO_BYPASS,
                previous_status=previous.value,
                comment=f"{BYPASS_COMMENT} executed",
                metadata={"steps": len(expense.approval_chain)}
            )
            await uow.notify(
                expense,
                recipients=[expense.employee_id],
                type=NotificationType.CFO_BYPASS,
                title="Expense approved by CFO",
                message=f"Your expense {expense.expense_id} was approved via CFO bypass."
            )

            return BypassResult(
                expense_id=expense.expense_id,
                status=expense.status,
                steps=expense.approval_chain
            )

        return await run_in_transaction(f"bypass {expense_id}", work)

    async def sweep_escalations(self):
        await self.monitor.sweep()

    async def history(self, expense_id: str) -> List[AuditEntry]:
        expense = await db.expenses.get_by_expense_id(expense_id)
        if not expense:
            raise NotFoundError(f"Expense {expense_id} not found")
        return await db.audit.get_for_expense(expense_id)

approval_engine = ApprovalEngine()
