"""Pydantic schemas for API validation"""

from jobboard.schemas.user import (
    UserRegister,
    UserLogin,
    EmailRequest,
    VerifyEmailRequest,
    PasswordResetConfirm,
    UserResponse,
    CurrentUserResponse,
    TokenResponse,
    VerificationRequiredResponse,
    UserStatusUpdate,
)
from jobboard.schemas.response import APIResponse, ErrorResponse

__all__ = [
    "UserRegister", "UserLogin", "EmailRequest", "VerifyEmailRequest", "PasswordResetConfirm",
    "UserResponse", "CurrentUserResponse", "TokenResponse", "VerificationRequiredResponse", "UserStatusUpdate",
    "APIResponse", "ErrorResponse"
]
