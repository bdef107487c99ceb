import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from expense_approval.config import settings
from expense_approval.models.company import Company, ParallelQuorum, PolicyLevel
from expense_approval.models.expense import ApprovalStep, Expense, ExpenseStatus, StepStatus
from expense_approval.services.currency import CurrencyConverter, currency_converter
from expense_approval.workflow.state import refresh_derived

logger = logging.getLogger(__name__)

# A policy level paired with the expense amount expressed in its threshold currency
ApplicableLevel = Tuple[PolicyLevel, float]

class WorkflowCompiler:
    """
    Turns a company's approval policy into the concrete step list of one expense.
    """

    def __init__(self, converter: CurrencyConverter = currency_converter):
        self.converter = converter

    async def resolve_levels(self, expense: Expense, company: Company) -> Tuple[List[ApplicableLevel], List[int]]:
        """
        Filters the policy to the levels whose threshold the expense meets.
        Returns the applicable levels in chain order and the skipped level numbers.
        """
        applicable: List[ApplicableLevel] = []
        skipped: List[int] = []
        for rule in company.approval_rules:
            amount = await self.converter.convert(expense.amount, expense.currency, rule.threshold_currency)
            if amount >= rule.threshold_amount:
                applicable.append((rule, amount))
            else:
                skipped.append(rule.level)

        applicable.sort(key=lambda item: item[0].level)
        return applicable, sorted(skipped)

    def build_steps(self, applicable: List[ApplicableLevel], now: Optional[datetime] = None) -> List[ApprovalStep]:
        now = now or datetime.utcnow()
        steps: List[ApprovalStep] = []
        for rule, amount in applicable:
            steps.extend(self.expand_level(rule, amount, now))

        if not steps:
            steps.append(self.fallback_step(now))
        return steps

    def expand_level(self, rule: PolicyLevel, amount: float, now: datetime) -> List[ApprovalStep]:
        """One step for a single approver, one per role for a parallel quorum."""
        if isinstance(rule.approver, ParallelQuorum):
            roles = rule.approver.roles
            group_id = uuid.uuid4().hex
        else:
            roles = [rule.approver.role]
            group_id = None

        auto_approve = rule.auto_approve_below is not None and amount <= rule.auto_approve_below

        steps = []
        for role in roles:
            quorum = rule.quorum_for(role)
            if auto_approve:
                steps.append(ApprovalStep(
                    level=rule.level,
                    parallel_group_id=group_id,
                    role=role,
                    required_approvals=quorum,
                    approvals_received=quorum,
                    status=StepStatus.APPROVED,
                    auto_approved=True,
                    decision_at=now,
                    decision_comment=f"Auto-approved below {rule.auto_approve_below} {rule.threshold_currency}"
                ))
            else:
                steps.append(ApprovalStep(
                    level=rule.level,
                    parallel_group_id=group_id,
                    role=role,
                    required_approvals=quorum,
                    escalation_at=now + timedelta(hours=rule.sla_hours)
                ))
        return steps

    def fallback_step(self, now: datetime) -> ApprovalStep:
        """Single approval gate used when no policy level applies."""
        return ApprovalStep(
            level=1,
            role=settings.FALLBACK_APPROVER_ROLE,
            required_approvals=1,
            escalation_at=now + timedelta(hours=settings.FALLBACK_SLA_HOURS)
        )

    def apply_plan(self, expense: Expense, steps: List[ApprovalStep]):
        """Replaces the expense's chain wholesale and recounts derived state."""
        expense.approval_chain = steps
        expense.approval_progress = 0
        expense.current_approval_level = steps[0].level
        expense.escalation_notified_at = None
        refresh_derived(expense)

        if expense.all_steps_approved():
            expense.status = ExpenseStatus.APPROVED
        else:
            expense.status = ExpenseStatus.UNDER_REVIEW

        logger.info(
            f"Compiled {len(steps)} approval steps for {expense.expense_id} "
            f"(progress {expense.approval_progress}%, status {expense.status.value})"
        )

workflow_compiler = WorkflowCompiler()
