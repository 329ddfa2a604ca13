"""
Authentication Schemas Module
=============================

Pydantic models for authentication request/response validation and the
verified staff identity shared by the HTTP and real-time layers.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from statuspage.models.role_enum import Role


# ==========================
# Login Schemas
# ==========================

class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["user@example.com"]
    )
    password: str = Field(
        ...,
        min_length=1,
        description="User password",
        examples=["SecureP@ss123"]
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "SecureP@ss123"
            }
        }
    )


class TokenResponse(BaseModel):
    """Token response schema for login."""

    access_token: str = Field(
        ...,
        description="JWT access token"
    )
    token_type: str = Field(
        default="bearer",
        description="Token type"
    )
    expires_in: Optional[int] = Field(
        default=None,
        description="Access token expiration in seconds"
    )


# ==========================
# Token Payload Schemas
# ==========================

class TokenPayload(BaseModel):
    """JWT token payload schema (for internal use)."""

    sub: str  # User ID
    organization_id: Optional[str] = None
    role: str
    token_version: int
    type: str
    exp: int
    iat: Optional[int] = None
    iss: Optional[str] = None
    aud: Optional[str] = None


# ==========================
# Verified Identity
# ==========================

class StaffIdentity(BaseModel):
    """
    Result of verifying a staff credential.

    Bound to exactly one organization for the lifetime of a request or
    real-time connection.
    """

    user_id: UUID
    organization_id: UUID
    role: Role
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles


class CurrentUserResponse(BaseModel):
    """Response for ``GET /auth/me``."""

    id: UUID
    email: str
    username: str
    role: Role
    organization_id: UUID

    model_config = ConfigDict(from_attributes=True)


# ==========================
# Error Schemas
# ==========================

class ErrorResponse(BaseModel):
    """Standard error response schema."""

    success: bool = False
    message: str = Field(
        ...,
        description="Error message"
    )
    details: Optional[dict] = Field(
        default=None,
        description="Additional error details"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "message": "Incident not found",
                "details": {"resource": "Incident"}
            }
        }
    )
