from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import Field
from expense_approval.models.base import MongoModel

class AuditAction(str, Enum):
    WORKFLOW_COMPILED = "workflow_compiled"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"
    CFO_BYPASS = "cfo_bypass"

class AuditEntry(MongoModel):
    """
    Immutable approval log entry. Appended, never updated or deleted.
    """
    entry_id: str = Field(..., description="Unique entry ID")
    expense_id: str
    company_id: str

    # None for system-triggered entries (escalation sweep)
    actor: Optional[str] = None
    action: AuditAction
    level: Optional[int] = None

    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    comment: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    performed_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {
        "json_schema_extra": {
            "example": {
                "entry_id": "LOG-4c1d",
                "expense_id": "EXP-9a1b",
                "company_id": "acme",
                "actor": "user_42",
                "action": "approved",
                "previous_status": "under_review",
                "new_status": "approved",
                "metadata": {"final": True}
            }
        }
    }
