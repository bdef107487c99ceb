from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import Field
from expense_approval.models.base import MongoModel

class NotificationType(str, Enum):
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_STATUS_CHANGED = "approval_status_changed"
    CFO_BYPASS = "cfo_bypass"
    ESCALATION = "escalation"

class OutboxStatus(str, Enum):
    PENDING = "pending"
    DISPATCHED = "dispatched"
    FAILED = "failed"

class OutboxEvent(MongoModel):
    """
    Notification written in the same transaction as the state change and
    delivered after commit.
    """
    event_id: str
    expense_id: str
    company_id: str

    # User ids, or "role:<name>" for everyone holding a role
    recipients: List[str]
    type: NotificationType
    title: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    dispatched_at: Optional[datetime] = None

class ExchangeRate(MongoModel):
    base_currency: str
    target_currency: str
    rate: float = Field(..., gt=0)
    effective_date: datetime = Field(default_factory=datetime.utcnow)
    source: str = "manual"
