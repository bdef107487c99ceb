from typing import Optional

from fastapi import Depends, Header, HTTPException

from expense_approval.guardrails.permissions import Actor, Permission, permission_checker

def get_current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """
    Identity forwarded by the authenticating gateway.
    ``X-Actor-Role`` may carry several comma-separated roles.
    """
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    roles = [role.strip() for role in (x_actor_role or "").split(",") if role.strip()]
    return Actor(id=x_actor_id, roles=roles)

def require_permission(permission: Permission):
    """
    Dependency to check static permission.
    """
    def check(actor: Actor = Depends(get_current_actor)):
        if not permission_checker.check_permission(actor, permission):
            raise HTTPException(
                status_code=403,
                detail=f"Permission denied: {permission.value} required"
            )
        return actor
    return check
