from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import Field, model_validator
from expense_approval.models.base import EmbeddedModel, MongoModel

class ExpenseStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"

# Statuses in which the approval chain can still move
OPEN_EXPENSE_STATUSES = (ExpenseStatus.SUBMITTED, ExpenseStatus.UNDER_REVIEW)

class StepStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"

class EdgeType(str, Enum):
    SERIAL = "serial"
    PARALLEL = "parallel"

class ApprovalStep(EmbeddedModel):
    """Per-expense instance of one policy level (or one parallel member)."""
    level: int
    parallel_group_id: Optional[str] = None
    role: str
    assigned_approver: Optional[str] = None

    required_approvals: int = Field(1, ge=1)
    approvals_received: int = Field(0, ge=0)
    approvers: List[str] = []

    status: StepStatus = StepStatus.PENDING
    is_escalated: bool = False
    auto_approved: bool = False
    escalation_at: Optional[datetime] = None

    decision_at: Optional[datetime] = None
    decision_comment: Optional[str] = None

    @model_validator(mode="after")
    def validate_tally(self):
        if self.approvals_received > self.required_approvals:
            raise ValueError("approvals_received cannot exceed required_approvals")
        return self

    @property
    def is_open(self) -> bool:
        """Pending, or escalated and still awaiting a decision."""
        return self.status in (StepStatus.PENDING, StepStatus.ESCALATED)

class GraphNode(EmbeddedModel):
    id: str
    label: str
    status: StepStatus
    metadata: Dict[str, Any] = {}

class GraphEdge(EmbeddedModel):
    from_node: str = Field(..., alias="from")
    to_node: str = Field(..., alias="to")
    type: EdgeType

class WorkflowGraph(EmbeddedModel):
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []

class Expense(MongoModel):
    """
    Expense aggregate: owns the approval chain and its graph projection.
    """
    expense_id: str = Field(..., description="Unique internal ID (EXP-...)")
    company_id: str
    employee_id: str

    amount: float = Field(..., ge=0)
    currency: str = "USD"
    category: str = "General"
    description: Optional[str] = None

    status: ExpenseStatus = Field(default=ExpenseStatus.SUBMITTED)

    approval_chain: List[ApprovalStep] = []
    workflow_graph: WorkflowGraph = Field(default_factory=WorkflowGraph)
    current_approval_level: int = 0
    approval_progress: int = Field(0, ge=0, le=100)
    escalation_notified_at: Optional[datetime] = None

    # Optimistic concurrency counter, bumped on every write
    version: int = 0

    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def open_steps(self) -> List[ApprovalStep]:
        return [step for step in self.approval_chain if step.is_open]

    def group_members(self, group_id: Optional[str]) -> List[ApprovalStep]:
        if not group_id:
            return []
        return [step for step in self.approval_chain if step.parallel_group_id == group_id]

    def all_steps_approved(self) -> bool:
        return bool(self.approval_chain) and all(
            step.status == StepStatus.APPROVED for step in self.approval_chain
        )
