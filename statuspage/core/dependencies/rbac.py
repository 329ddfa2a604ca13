"""
Role-Based Access Control (RBAC) Dependencies Module
=====================================================

FastAPI dependencies for role-based authorization.

Admins and editors may create and update incidents and services; only
admins may delete them.

Usage:
    @router.delete("/incidents/{incident_id}")
    def delete_incident(identity: StaffIdentity = Depends(require_role(Role.ADMIN))):
        ...
"""

from typing import Callable

from fastapi import Depends, Request

from statuspage.core.dependencies.auth import get_current_identity
from statuspage.core.exceptions import RoleNotAuthorizedError
from statuspage.core.logging import get_logger
from statuspage.models.role_enum import DELETE_ROLES, WRITE_ROLES, Role
from statuspage.schemas.auth import StaffIdentity

# Initialize logger
logger = get_logger(__name__)


def require_role(*allowed_roles: Role) -> Callable:
    """
    Create a dependency that requires one of ``allowed_roles``.

    Returns:
        Dependency function yielding the caller's StaffIdentity
    """
    def role_checker(
        request: Request,
        identity: StaffIdentity = Depends(get_current_identity),
    ) -> StaffIdentity:
        if identity.role not in allowed_roles:
            logger.warning(
                "role_access_denied",
                user_id=str(identity.user_id),
                user_role=identity.role.value,
                required_roles=[r.value for r in allowed_roles],
                path=request.url.path,
                method=request.method,
            )
            raise RoleNotAuthorizedError([r.value for r in allowed_roles])

        return identity

    return role_checker


require_writer = require_role(*WRITE_ROLES)
require_admin = require_role(*DELETE_ROLES)
