"""Database models"""

from jobboard.models.user import User, UserRole, SecurityActionKind, TalentProfile, EmployerProfile
from jobboard.models.security import RefreshToken, RefreshTokenState

__all__ = [
    "User", "UserRole", "SecurityActionKind", "TalentProfile", "EmployerProfile",
    "RefreshToken", "RefreshTokenState",
]
