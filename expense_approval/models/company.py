from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import Field, field_validator, model_validator
from expense_approval.models.base import EmbeddedModel, MongoModel

class SingleApprover(EmbeddedModel):
    """One approver role closes the level."""
    kind: Literal["single"] = "single"
    role: str

class ParallelQuorum(EmbeddedModel):
    """Each role gets its own step; the steps share a parallel group."""
    kind: Literal["parallel"] = "parallel"
    roles: List[str] = Field(..., min_length=1)
    # Per-role quorum, e.g. {"finance": 2}
    role_overrides: Dict[str, int] = Field(default_factory=dict)

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("parallel roles must be unique")
        return v

    @model_validator(mode="after")
    def validate_overrides(self):
        for role, quorum in self.role_overrides.items():
            if role not in self.roles:
                raise ValueError(f"override for unknown parallel role '{role}'")
            if quorum < 1:
                raise ValueError("required approvals must be at least 1")
        return self

ApproverSpec = Annotated[Union[SingleApprover, ParallelQuorum], Field(discriminator="kind")]

class PolicyLevel(EmbeddedModel):
    """One rung of a company's approval ladder."""
    level: int = Field(..., ge=1)
    approver: ApproverSpec
    required_approvals: int = Field(1, ge=1)

    threshold_amount: float = Field(0.0, ge=0)
    threshold_currency: str = "USD"
    auto_approve_below: Optional[float] = None

    sla_hours: int = Field(24, ge=1)
    notify_roles: List[str] = []

    @model_validator(mode="before")
    @classmethod
    def normalise_approver(cls, data: Any) -> Any:
        """Accept the flat ``role`` / ``parallel_roles`` document shape."""
        if not isinstance(data, dict) or "approver" in data:
            return data
        data = dict(data)
        role = data.pop("role", None)
        parallel_roles = data.pop("parallel_roles", None) or data.pop("parallelRoles", None)
        if parallel_roles:
            data["approver"] = {"kind": "parallel", "roles": parallel_roles}
        elif role:
            data["approver"] = {"kind": "single", "role": role}
        return data

    def quorum_for(self, role: str) -> int:
        if isinstance(self.approver, ParallelQuorum):
            return self.approver.role_overrides.get(role, self.required_approvals)
        return self.required_approvals

class Company(MongoModel):
    """
    Tenant document holding the approval policy.
    """
    company_id: str = Field(..., description="Unique Tenant ID")
    name: str
    currency: str = "USD"

    approval_rules: List[PolicyLevel] = []

    @field_validator("approval_rules")
    @classmethod
    def validate_unique_levels(cls, v):
        levels = [rule.level for rule in v]
        if len(set(levels)) != len(levels):
            raise ValueError("policy levels must be unique within a company")
        return v
