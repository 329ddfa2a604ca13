"""
Role Enumeration Module
=======================

Defines all valid staff roles in the system.

Security Purpose:
- Prevents arbitrary role injection
- Enforces strict backend validation
"""

from enum import Enum


class Role(str, Enum):
    """
    Roles a staff member can hold within their organization.

    ADMIN may create, update and delete. EDITOR may create and update.
    VIEWER may only read the staff dashboard.
    """

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


WRITE_ROLES = (Role.ADMIN, Role.EDITOR)
DELETE_ROLES = (Role.ADMIN,)
