from typing import List, Literal, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from expense_approval.guardrails.decorators import require_permission
from expense_approval.guardrails.permissions import Actor, Permission
from expense_approval.models.audit import AuditEntry
from expense_approval.workflow.engine import BypassResult, DecisionResult, WorkflowResult, approval_engine

router = APIRouter(prefix="/api/expenses", tags=["Expenses"])

class DecisionRequest(BaseModel):
    decision: Literal["approve", "reject"]
    comment: Optional[str] = None

@router.post("/{expense_id}/workflow", response_model=WorkflowResult)
async def compile_workflow(
    expense_id: str,
    actor: Actor = Depends(require_permission(Permission.COMPILE_WORKFLOW))
):
    return await approval_engine.compile(expense_id)

@router.post("/{expense_id}/decision", response_model=DecisionResult)
async def decide_expense(
    expense_id: str,
    request: DecisionRequest = Body(...),
    actor: Actor = Depends(require_permission(Permission.DECIDE_EXPENSE))
):
    return await approval_engine.decide(
        expense_id,
        actor_id=actor.id,
        decision=request.decision,
        comment=request.comment,
        actor_roles=actor.roles or None
    )

@router.post("/{expense_id}/bypass", response_model=BypassResult)
async def bypass_approval(
    expense_id: str,
    actor: Actor = Depends(require_permission(Permission.BYPASS_APPROVAL))
):
    return await approval_engine.bypass(expense_id, actor_id=actor.id)

@router.get("/{expense_id}/history", response_model=List[AuditEntry])
async def get_history(
    expense_id: str,
    actor: Actor = Depends(require_permission(Permission.VIEW_AUDIT))
):
    return await approval_engine.history(expense_id)
