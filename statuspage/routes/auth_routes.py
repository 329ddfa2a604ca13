"""
Authentication Routes Module
============================

Handles:
- Staff login (issues a JWT access token)
- Current identity lookup

Registration and password management are handled elsewhere.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from statuspage.core.dependencies.auth import get_current_user
from statuspage.db.session import get_db
from statuspage.models.user import User
from statuspage.schemas.auth import (
    CurrentUserResponse,
    ErrorResponse,
    LoginRequest,
    TokenResponse,
)
from statuspage.services.auth_service import AuthService

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"model": ErrorResponse, "description": "Authentication failed"},
    },
)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Staff Login",
    description="Authenticate with email and password and receive a JWT access token.",
)
def login(login_data: LoginRequest, db: Session = Depends(get_db)) -> dict:
    _, token = AuthService(db).authenticate_user(
        email=login_data.email,
        password=login_data.password,
    )
    return token


@router.get("/me", response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
