"""User and authentication schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, Union
from datetime import datetime

from jobboard.core.security import MAX_PASSWORD_BYTES, password_too_long
from jobboard.models.user import UserRole


def _check_password_bytes(value):
    """Reject passwords bcrypt cannot hash; multibyte characters count per byte"""
    if value is not None and password_too_long(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class TalentProfileData(BaseModel):
    """Talent profile fields collected at registration"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    headline: Optional[str] = Field(None, max_length=255)


class EmployerProfileData(BaseModel):
    """Employer profile fields collected at registration"""
    company_name: str = Field(..., min_length=1, max_length=200)
    website: Optional[str] = Field(None, max_length=255)


class UserRegister(BaseModel):
    """Self-service registration schema"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole
    profile: Union[TalentProfileData, EmployerProfileData]

    @field_validator('email')
    @classmethod
    def email_lowercase(cls, v):
        return v.strip().lower()

    password_fits_bcrypt = field_validator("password")(_check_password_bytes)

    @model_validator(mode='after')
    def profile_matches_role(self):
        """Reject moderator sign-ups and profiles that do not fit the role"""
        if self.role is UserRole.TALENT and not isinstance(self.profile, TalentProfileData):
            raise ValueError('TALENT registration requires a talent profile')
        if self.role is UserRole.EMPLOYER and not isinstance(self.profile, EmployerProfileData):
            raise ValueError('EMPLOYER registration requires an employer profile')
        if self.role is UserRole.MODERATOR:
            raise ValueError('Invalid role')
        return self


class UserLogin(BaseModel):
    """User login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    password_fits_bcrypt = field_validator("password")(_check_password_bytes)


class EmailRequest(BaseModel):
    """Email-only body for resend-verification and forgot-password"""
    email: EmailStr


class VerifyEmailRequest(BaseModel):
    """Email verification schema"""
    token: str = Field(..., min_length=1, max_length=256)


class PasswordResetConfirm(BaseModel):
    """Password reset schema"""
    token: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=8, max_length=128)
    old_password: Optional[str] = Field(None, max_length=128)

    password_fits_bcrypt = field_validator("new_password", "old_password")(_check_password_bytes)


class UserStatusUpdate(BaseModel):
    """Activate or deactivate an account"""
    is_active: bool


class TalentProfileResponse(TalentProfileData):
    id: int

    class Config:
        from_attributes = True


class EmployerProfileResponse(EmployerProfileData):
    id: int

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    email: str
    role: UserRole
    is_active: bool
    is_email_verified: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    class Config:
        from_attributes = True


class CurrentUserResponse(UserResponse):
    """User plus the profile its role owns"""
    profile: Optional[Union[TalentProfileResponse, EmployerProfileResponse]] = None


class TokenResponse(BaseModel):
    """Access token response; the refresh token travels in a cookie"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class VerificationRequiredResponse(BaseModel):
    """Returned instead of tokens while the email is unverified"""
    requires_verification: bool = True
    verification_token: Optional[str] = None

    class Config:
        extra = "forbid"
