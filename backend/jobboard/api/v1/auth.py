"""Authentication routes"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import Union

from jobboard.core.database import get_db
from jobboard.config import settings
from jobboard.schemas.user import (
    UserRegister,
    UserLogin,
    EmailRequest,
    VerifyEmailRequest,
    PasswordResetConfirm,
    UserResponse,
    CurrentUserResponse,
    TalentProfileResponse,
    EmployerProfileResponse,
    TokenResponse,
    VerificationRequiredResponse,
)
from jobboard.schemas.response import APIResponse
from jobboard.services.account_service import Account, ModeratorAccount, TalentAccount, profile_for
from jobboard.services.session_service import VerificationRequired, session_service
from jobboard.api.cookies import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie
from jobboard.api.deps import Identity, get_current_account, get_current_identity

router = APIRouter()

_RESET_MESSAGE = "If an account exists, a password reset email has been sent"
_RESEND_MESSAGE = "If the account needs verification, a new email has been sent"


def _token_response(access_token: str) -> TokenResponse:
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def register(body: UserRegister, db: Session = Depends(get_db)):
    """
    Register a talent or employer account and send the verification email

    Args:
        body: Credentials, role and profile fields
        db: Database session

    Returns:
        Created user
    """
    registration = session_service.register(
        db,
        email=body.email,
        password=body.password,
        role=body.role,
        profile_data=body.profile.model_dump(),
    )
    data = {"user": UserResponse.model_validate(registration.user).model_dump(mode="json")}
    if registration.verification_token:
        data["verification_token"] = registration.verification_token
    return APIResponse(message="User registered, verification email sent", data=data)


@router.post("/verify-email", response_model=APIResponse)
def verify_email(body: VerifyEmailRequest, db: Session = Depends(get_db)):
    """Mark the email verified using the emailed token"""
    user = session_service.verify_email(db, body.token)
    return APIResponse(
        message="Email verified",
        data=UserResponse.model_validate(user).model_dump(mode="json"),
    )


@router.post("/resend-verification", response_model=APIResponse)
def resend_verification(body: EmailRequest, db: Session = Depends(get_db)):
    """Send a new verification email; the reply never reveals whether the email exists"""
    token = session_service.resend_verification(db, body.email)
    return APIResponse(message=_RESEND_MESSAGE, data={"verification_token": token} if token else None)


@router.post(
    "/login",
    response_model=Union[TokenResponse, VerificationRequiredResponse],
    status_code=status.HTTP_200_OK,
)
def login(credentials: UserLogin, response: Response, db: Session = Depends(get_db)):
    """
    Login endpoint - authenticate user and issue a session

    The access token is returned in the body, the refresh token is set as an
    HttpOnly cookie. Unverified accounts get a verification prompt instead.

    Args:
        credentials: Email and password
        response: Outgoing response, receives the refresh cookie
        db: Database session

    Returns:
        Access token, or a verification-required marker
    """
    outcome = session_service.login(db, credentials.email, credentials.password)

    if isinstance(outcome, VerificationRequired):
        return VerificationRequiredResponse(verification_token=outcome.verification_token)

    set_refresh_cookie(response, outcome.refresh_secret, outcome.refresh_ttl_ms)
    return _token_response(outcome.access_token)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Rotate the refresh cookie and return a new access token

    Any failure clears the cookie (see RefreshTokenError).
    """
    result = session_service.refresh(db, read_refresh_cookie(request))
    set_refresh_cookie(response, result.refresh_secret, result.refresh_ttl_ms)
    return _token_response(result.access_token)


@router.post("/logout", response_model=APIResponse)
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    """Revoke the current refresh token; succeeds whatever its state"""
    session_service.logout(db, read_refresh_cookie(request))
    clear_refresh_cookie(response)
    return APIResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=APIResponse)
def logout_all(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Revoke every refresh token of the caller"""
    session_service.logout_all(db, identity.user_id)
    clear_refresh_cookie(response)
    return APIResponse(message="Logged out from all devices")


@router.get("/me", response_model=Union[CurrentUserResponse, VerificationRequiredResponse])
def get_current_user_info(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """
    Get current user information

    Args:
        account: Current authenticated account
        db: Database session

    Returns:
        User with its profile
    """
    current = session_service.get_current(db, account.user.id)
    if isinstance(current, VerificationRequired):
        return VerificationRequiredResponse()

    profile = None
    if not isinstance(account, ModeratorAccount):
        schema = TalentProfileResponse if isinstance(account, TalentAccount) else EmployerProfileResponse
        profile = schema.model_validate(profile_for(account, account.role))
    return CurrentUserResponse.model_validate(current).model_copy(update={"profile": profile})


@router.post("/password/forgot", response_model=APIResponse)
def request_password_reset(body: EmailRequest, db: Session = Depends(get_db)):
    """Email a password reset link; the reply never reveals whether the email exists"""
    token = session_service.request_password_reset(db, body.email)
    return APIResponse(message=_RESET_MESSAGE, data={"reset_token": token} if token else None)


@router.post("/password/reset", response_model=APIResponse)
def reset_password(body: PasswordResetConfirm, response: Response, db: Session = Depends(get_db)):
    """Set a new password; every session of the account is revoked"""
    session_service.reset_password(db, body.token, body.new_password, body.old_password)
    clear_refresh_cookie(response)
    return APIResponse(message="Password reset successful")
