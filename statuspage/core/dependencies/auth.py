"""
Authentication Dependencies Module
==================================

FastAPI dependencies for authentication and identity extraction.

Features:
- JWT token validation through AuthService.verify_credential
- Tenant-bound StaffIdentity for every authenticated request
- Tenant id bound into the logging context

Usage:
    @router.get("/protected")
    def protected_route(identity: StaffIdentity = Depends(get_current_identity)):
        return {"organization_id": str(identity.organization_id)}
"""

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from statuspage.core.config import settings
from statuspage.core.exceptions import AuthenticationError
from statuspage.core.logging import get_logger, tenant_id_context
from statuspage.db.session import get_db
from statuspage.models.user import User
from statuspage.schemas.auth import StaffIdentity
from statuspage.services.auth_service import AuthService

# Initialize logger
logger = get_logger(__name__)


# =====================================
# OAuth2 Scheme
# =====================================

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/login",
    auto_error=False,
    description="OAuth2 token for authentication",
)


# =====================================
# Get Current Identity
# =====================================

def get_current_identity(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> StaffIdentity:
    """
    Verify the bearer token and return the caller's staff identity.

    Raises:
        AuthenticationError: missing, expired, revoked or otherwise invalid
            credential (rendered as 401 by the application handler)
    """
    if not token:
        raise AuthenticationError("Not authenticated")

    try:
        identity = AuthService(db).verify_credential(token)
    except AuthenticationError as e:
        logger.info(
            "credential_rejected",
            reason=e.message,
            path=request.url.path,
        )
        raise

    request.state.user_id = str(identity.user_id)
    request.state.tenant_id = str(identity.organization_id)
    tenant_id_context.set(str(identity.organization_id))
    return identity


def get_current_user(
    identity: StaffIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> User:
    """Load the full user row for the authenticated identity."""
    return db.get(User, identity.user_id)
