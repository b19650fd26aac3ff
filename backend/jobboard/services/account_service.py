"""Role-typed accounts built from a user and its profile rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy.orm import Session

from jobboard.core.exceptions import AccountMisconfiguredError, AuthorizationError
from jobboard.models.user import EmployerProfile, TalentProfile, User, UserRole


@dataclass(frozen=True)
class TalentAccount:
    user: User
    profile: TalentProfile
    role = UserRole.TALENT


@dataclass(frozen=True)
class EmployerAccount:
    user: User
    profile: EmployerProfile
    role = UserRole.EMPLOYER


@dataclass(frozen=True)
class ModeratorAccount:
    user: User
    role = UserRole.MODERATOR


Account = Union[TalentAccount, EmployerAccount, ModeratorAccount]


def load_account(db: Session, user: User) -> Account:
    """Build the account for ``user``, enforcing the role/profile invariant.

    A TALENT owns exactly one talent profile and no employer profile, an
    EMPLOYER the reverse, a MODERATOR neither. Profile rows are read from the
    database on every call.

    Raises:
        AccountMisconfiguredError: role and profile rows disagree
    """
    try:
        role = UserRole(user.role)
    except ValueError:
        raise AccountMisconfiguredError()

    # Two rows are enough to tell "one" from "more than one".
    talents = db.query(TalentProfile).filter(TalentProfile.user_id == user.id).limit(2).all()
    employers = db.query(EmployerProfile).filter(EmployerProfile.user_id == user.id).limit(2).all()

    if role is UserRole.TALENT and len(talents) == 1 and not employers:
        return TalentAccount(user=user, profile=talents[0])
    if role is UserRole.EMPLOYER and len(employers) == 1 and not talents:
        return EmployerAccount(user=user, profile=employers[0])
    if role is UserRole.MODERATOR and not talents and not employers:
        return ModeratorAccount(user=user)
    raise AccountMisconfiguredError()


def profile_for(account: Account, role: UserRole) -> Union[TalentProfile, EmployerProfile]:
    """Return the profile of ``account`` if it plays ``role``.

    Raises:
        AuthorizationError: the account has a different role, or is a moderator
    """
    role = UserRole(role)
    if role is UserRole.MODERATOR or isinstance(account, ModeratorAccount):
        raise AuthorizationError("Moderators do not have profiles")
    if account.role is not role:
        raise AuthorizationError(f"{role.value.title()} access required")
    return account.profile
