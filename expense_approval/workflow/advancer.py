import logging
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel

from expense_approval.config import settings
from expense_approval.errors import NotFoundError, ValidationError
from expense_approval.models.expense import (
    ApprovalStep, Expense, ExpenseStatus, OPEN_EXPENSE_STATUSES, StepStatus
)
from expense_approval.workflow.state import refresh_derived

logger = logging.getLogger(__name__)

class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, value) -> "Decision":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Decision must be approve or reject, got {value!r}") from None

class DecisionOutcome(BaseModel):
    """What one decision did to the chain."""
    decision: Decision
    step_index: int
    level: int
    previous_status: ExpenseStatus
    step_closed: bool = False
    auto_closed: List[int] = []
    final: bool = False

class StepAdvancer:
    """
    State machine applying one approver decision to an expense's chain.
    Mutates the expense in memory; persistence belongs to the caller.
    """

    def __init__(self, auto_close_ratio: Optional[float] = None, escalated_decidable: Optional[bool] = None):
        self.auto_close_ratio = settings.PARALLEL_AUTO_CLOSE_RATIO if auto_close_ratio is None else auto_close_ratio
        self.escalated_decidable = (
            settings.ESCALATED_STEPS_DECIDABLE if escalated_decidable is None else escalated_decidable
        )

    def is_decidable(self, step: ApprovalStep) -> bool:
        if step.status == StepStatus.PENDING:
            return True
        return step.status == StepStatus.ESCALATED and self.escalated_decidable

    def is_entitled(self, step: ApprovalStep, actor_id: str, actor_roles: Optional[Iterable[str]] = None) -> bool:
        if step.assigned_approver and step.assigned_approver != actor_id:
            return False
        if actor_roles is not None and step.role not in set(actor_roles):
            return False
        # One identity counts once towards a quorum
        return actor_id not in step.approvers

    def has_approved(self, expense: Expense, actor_id: str) -> bool:
        return any(actor_id in step.approvers for step in expense.approval_chain)

    def find_step(self, expense: Expense, actor_id: str, actor_roles: Optional[Iterable[str]] = None) -> int:
        """
        Index of the first step this actor may decide at the lowest open level.
        Later levels wait until every step below them is closed.
        Raises NotFoundError when there is none, which also covers a step
        already resolved by a concurrent approver and a repeated approval.
        """
        open_steps = expense.open_steps()
        # An identity approves at most once per chain
        if expense.status in OPEN_EXPENSE_STATUSES and open_steps and not self.has_approved(expense, actor_id):
            level = min(step.level for step in open_steps)
            roles = list(actor_roles) if actor_roles is not None else None
            for index, step in enumerate(expense.approval_chain):
                if step.level != level:
                    continue
                if self.is_decidable(step) and self.is_entitled(step, actor_id, roles):
                    return index
        raise NotFoundError(f"No pending approval found for {actor_id} on expense {expense.expense_id}")

    def apply(self,
              expense: Expense,
              actor_id: str,
              decision,
              comment: Optional[str] = None,
              actor_roles: Optional[Iterable[str]] = None,
              now: Optional[datetime] = None) -> DecisionOutcome:
        decision = Decision.parse(decision)
        now = now or datetime.utcnow()
        index = self.find_step(expense, actor_id, actor_roles)
        step = expense.approval_chain[index]

        outcome = DecisionOutcome(
            decision=decision,
            step_index=index,
            level=step.level,
            previous_status=expense.status
        )

        step.decision_at = now
        step.decision_comment = comment

        if decision == Decision.APPROVE:
            step.approvals_received += 1
            step.approvers.append(actor_id)
            if step.approvals_received >= step.required_approvals:
                step.status = StepStatus.APPROVED
                outcome.step_closed = True
                outcome.auto_closed = self._close_parallel_group(expense, step, now)
        else:
            step.status = StepStatus.REJECTED
            outcome.step_closed = True
            expense.status = ExpenseStatus.REJECTED

        refresh_derived(expense)

        if expense.all_steps_approved():
            expense.status = ExpenseStatus.APPROVED
            outcome.final = True

        logger.info(
            f"{decision.value} by {actor_id} on {expense.expense_id} level {step.level}: "
            f"step {step.status.value}, expense {expense.status.value}, progress {expense.approval_progress}%"
        )
        return outcome

    def _close_parallel_group(self, expense: Expense, step: ApprovalStep, now: datetime) -> List[int]:
        """
        Majority early close: once the approved share of a parallel group
        reaches the ratio, the remaining open members are approved too.
        """
        members = expense.group_members(step.parallel_group_id)
        if not members:
            return []

        approved = sum(1 for member in members if member.status == StepStatus.APPROVED)
        if approved / len(members) < self.auto_close_ratio:
            return []

        closed = []
        for index, candidate in enumerate(expense.approval_chain):
            if candidate.parallel_group_id == step.parallel_group_id and candidate.is_open:
                candidate.status = StepStatus.APPROVED
                candidate.auto_approved = True
                candidate.decision_at = now
                closed.append(index)

        if closed:
            logger.info(
                f"Parallel group {step.parallel_group_id} on {expense.expense_id} reached "
                f"{approved}/{len(members)}; auto-closed {len(closed)} step(s)"
            )
        return closed

step_advancer = StepAdvancer()
