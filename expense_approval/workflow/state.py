import math
from typing import List

from expense_approval.models.expense import ApprovalStep, Expense, StepStatus
from expense_approval.workflow.graph import build_workflow_graph

def compute_progress(steps: List[ApprovalStep]) -> int:
    """Approved steps as a percentage of all steps, rounded half up."""
    if not steps:
        return 0
    approved = sum(1 for step in steps if step.status == StepStatus.APPROVED)
    return int(math.floor(approved * 100 / len(steps) + 0.5))

def current_level(steps: List[ApprovalStep]) -> int:
    """Level of the first step still awaiting a decision."""
    for step in steps:
        if step.is_open:
            return step.level
    return steps[-1].level if steps else 0

def refresh_derived(expense: Expense):
    """Recompute everything projected from the step list."""
    expense.approval_progress = compute_progress(expense.approval_chain)
    expense.current_approval_level = current_level(expense.approval_chain)
    expense.workflow_graph = build_workflow_graph(expense.approval_chain)
