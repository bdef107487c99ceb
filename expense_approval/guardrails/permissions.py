from enum import Enum
from typing import List
import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)

class Permission(str, Enum):
    VIEW_EXPENSE = "VIEW_EXPENSE"
    COMPILE_WORKFLOW = "COMPILE_WORKFLOW"
    DECIDE_EXPENSE = "DECIDE_EXPENSE"
    BYPASS_APPROVAL = "BYPASS_APPROVAL"
    VIEW_AUDIT = "VIEW_AUDIT"

class Role(str, Enum):
    ADMIN = "admin"
    EXECUTIVE = "executive"
    FINANCE = "finance"
    MANAGER = "manager"
    EMPLOYEE = "employee"

# Role -> Permissions Mapping
ROLE_PERMISSIONS = {
    Role.ADMIN: [p for p in Permission], # All
    Role.EXECUTIVE: [
        Permission.VIEW_EXPENSE, Permission.COMPILE_WORKFLOW, Permission.DECIDE_EXPENSE,
        Permission.BYPASS_APPROVAL, Permission.VIEW_AUDIT
    ],
    Role.FINANCE: [
        Permission.VIEW_EXPENSE, Permission.COMPILE_WORKFLOW, Permission.DECIDE_EXPENSE,
        Permission.BYPASS_APPROVAL, Permission.VIEW_AUDIT
    ],
    Role.MANAGER: [
        Permission.VIEW_EXPENSE, Permission.COMPILE_WORKFLOW, Permission.DECIDE_EXPENSE,
        Permission.VIEW_AUDIT
    ],
    Role.EMPLOYEE: [
        Permission.VIEW_EXPENSE, Permission.COMPILE_WORKFLOW
    ],
}

class Actor(BaseModel):
    """Caller identity as supplied by the authentication layer."""
    id: str
    roles: List[str] = []

class PermissionChecker:
    def __init__(self):
        pass

    def check_permission(self, actor: Actor, permission: Permission) -> bool:
        """
        Basic Role-Based Check. Any of the actor's roles may grant it.
        """
        for role in actor.roles:
            try:
                role_enum = Role(role)
            except ValueError:
                logger.warning(f"Unknown role {role} for actor {actor.id}")
                continue
            if permission in ROLE_PERMISSIONS.get(role_enum, []):
                return True

        logger.warning(f"Actor {actor.id} ({actor.roles}) denied permission {permission.value}")
        return False

permission_checker = PermissionChecker()
