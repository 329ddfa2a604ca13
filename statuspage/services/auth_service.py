"""
Authentication Service Module
=============================

Authentication collaborator shared by the HTTP layer and the real-time
gateway:
- Password hashing using Argon2
- JWT access token creation
- Credential verification producing a tenant-bound StaffIdentity
- Token version tracking for forced logout

The same ``verify_credential`` is used by HTTP dependencies (which let
``AuthenticationError`` become a 401) and by the Socket.IO connect handler
(which catches it and demotes the connection to an anonymous viewer).
"""

from datetime import datetime, timedelta, UTC
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from jose import jwt, ExpiredSignatureError, JWTError
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, Argon2Error, InvalidHashError
from pydantic import ValidationError as PydanticValidationError

from statuspage.models.user import User
from statuspage.models.role_enum import Role
from statuspage.core.config import settings
from statuspage.core.exceptions import (
    AccountDisabledError,
    AuthenticationError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
)
from statuspage.core.logging import get_logger
from statuspage.schemas.auth import StaffIdentity, TokenPayload

# Initialize logger
logger = get_logger(__name__)


# ==========================
# Password Hasher Configuration
# ==========================

ph = PasswordHasher(
    time_cost=3,        # Number of passes
    memory_cost=65536,  # 64 MB memory
    parallelism=4,      # 4 parallel threads
    hash_len=32,        # 32-byte hash
    salt_len=16,        # 16-byte salt
)


class TokenType:
    """Token type constants for discrimination."""
    ACCESS = "access"


# ==========================
# Auth Service Class
# ==========================

class AuthService:
    """
    Authentication service handling all auth-related operations.

    Usage:
        auth_service = AuthService(db)
        identity = auth_service.verify_credential(token)
    """

    def __init__(self, db: Session):
        self.db = db

    # --------------------------
    # Password Utilities
    # --------------------------

    @staticmethod
    def hash_password(password: str) -> str:
        return ph.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise
        """
        try:
            ph.verify(hashed_password, plain_password)
            return True
        except VerifyMismatchError:
            return False
        except (Argon2Error, InvalidHashError) as e:
            logger.warning("password_verification_error", error=str(e))
            return False

    # --------------------------
    # Token Creation
    # --------------------------

    @staticmethod
    def create_access_token(
        user_id: UUID,
        organization_id: Optional[UUID],
        role: str,
        token_version: int,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            user_id: User's UUID
            organization_id: Organization the user acts for
            role: Staff role at issue time (re-read from the user on verify)
            token_version: Current token version for revocation
            expires_delta: Custom expiration time

        Returns:
            Encoded JWT access token
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "organization_id": str(organization_id) if organization_id else None,
            "role": role.value if isinstance(role, Role) else role,
            "token_version": token_version,
            "type": TokenType.ACCESS,
            "exp": now + expires_delta,
            "iat": now,
            "iss": settings.ISSUER,
            "aud": settings.AUDIENCE,
        }

        return jwt.encode(
            payload,
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM
        )

    def create_token_for_user(self, user: User) -> dict:
        return {
            "access_token": self.create_access_token(
                user_id=user.id,
                organization_id=user.organization_id,
                role=user.role,
                token_version=user.token_version,
            ),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    # --------------------------
    # Token Decoding & Validation
    # --------------------------

    @staticmethod
    def decode_token(token: str, expected_type: Optional[str] = TokenType.ACCESS) -> dict:
        """
        Decode and validate a JWT token.

        Raises:
            TokenExpiredError: If token has expired
            TokenInvalidError: If token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                issuer=settings.ISSUER,
                audience=settings.AUDIENCE,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError(token_type=expected_type or "unknown")
        except JWTError as e:
            raise TokenInvalidError(reason=str(e))

        if expected_type and payload.get("type") != expected_type:
            raise TokenInvalidError(
                reason=f"Expected {expected_type} token, got {payload.get('type')}"
            )
        return payload

    def validate_access_token(self, token: str) -> User:
        """
        Validate an access token and return the user.

        Raises:
            TokenInvalidError: If token is invalid
            TokenVersionMismatchError: If token version doesn't match
            AccountDisabledError: If account is disabled
        """
        if not token:
            raise TokenInvalidError(reason="Missing token")

        payload = self.decode_token(token, expected_type=TokenType.ACCESS)

        try:
            claims = TokenPayload.model_validate(payload)
        except PydanticValidationError:
            raise TokenInvalidError(reason="Invalid token payload")

        try:
            user_uuid = UUID(claims.sub)
        except ValueError:
            raise TokenInvalidError(reason="Invalid user ID format")

        token_version = claims.token_version
        user = self.db.get(User, user_uuid)
        if not user:
            raise TokenInvalidError(reason="User not found")

        if user.token_version != token_version:
            raise TokenVersionMismatchError()

        if not user.is_active:
            raise AccountDisabledError()

        return user

    def verify_credential(self, token: Optional[str]) -> StaffIdentity:
        """
        Verify a bearer credential and return the tenant-bound identity.

        Role and organization are read from the stored user, not the token,
        so a role change takes effect on the next verification.

        Raises:
            AuthenticationError: for any failure, including a user that has
                no organization assigned
        """
        user = self.validate_access_token(token)
        if user.organization_id is None:
            raise AuthenticationError("User is not assigned to an organization")

        return StaffIdentity(
            user_id=user.id,
            organization_id=user.organization_id,
            role=user.role_enum,
            email=user.email,
        )

    # --------------------------
    # Authentication Methods
    # --------------------------

    def authenticate_user(self, email: str, password: str) -> Tuple[User, dict]:
        """
        Authenticate a user with email and password.

        Returns:
            Tuple of (User, token dict)

        Raises:
            InvalidCredentialsError: If credentials are invalid
            AccountDisabledError: If account is disabled
        """
        user = self.db.scalars(
            select(User).where(User.email == email.lower())
        ).first()

        if not user or not self.verify_password(password, user.hashed_password):
            logger.info("login_failed", email=email, reason="invalid_credentials")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.info("login_failed", email=email, reason="account_disabled")
            raise AccountDisabledError()

        logger.info(
            "login_succeeded",
            user_id=str(user.id),
            tenant_id=str(user.organization_id) if user.organization_id else None,
        )
        return user, self.create_token_for_user(user)
