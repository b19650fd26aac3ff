"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    # When set, the exception handler also clears the refresh-token cookie.
    clears_session = False

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password; the two are never told apart"""
    def __init__(self):
        super().__init__("Invalid credentials")


class TokenInvalidError(AuthenticationError):
    """Access token is malformed, expired or carries a bad signature"""
    def __init__(self):
        super().__init__("Invalid or expired token")


class MissingAuthorizationError(AuthenticationError):
    """Authorization header absent"""
    def __init__(self):
        super().__init__("Authorization header missing")


class RefreshTokenError(AuthenticationError):
    """Refresh token could not be used; the client must drop its session"""

    clears_session = True

    def __init__(self, message: str = "Unable to refresh session"):
        super().__init__(message)


class MalformedAuthorizationError(BaseAPIException):
    """Authorization header present but not `Bearer <token>`"""
    def __init__(self):
        super().__init__("Invalid authorization format", status_code=400)


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


class AccountDisabledError(AuthorizationError):
    """Account is deactivated"""
    def __init__(self):
        super().__init__("Account deactivated")


class AccountMisconfiguredError(AuthorizationError):
    """Role and profile records disagree"""
    def __init__(self):
        super().__init__("Account misconfigured")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class InvalidActionTokenError(BusinessLogicError):
    """Verification or reset token is unknown, expired or of the wrong kind"""
    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class EmailAlreadyVerifiedError(BusinessLogicError):
    """Email address was verified earlier"""
    def __init__(self):
        super().__init__("Email already verified")


class InvalidOldPasswordError(BusinessLogicError):
    """Old password supplied with a reset did not match"""
    def __init__(self):
        super().__init__("Invalid old password")
