"""User management routes"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from jobboard.core.database import get_db
from jobboard.core.exceptions import AuthorizationError, ResourceNotFoundError
from jobboard.models.user import UserRole
from jobboard.schemas.user import UserResponse, UserStatusUpdate
from jobboard.schemas.response import APIResponse
from jobboard.services.session_service import session_service
from jobboard.services.user_service import user_service
from jobboard.api.cookies import clear_refresh_cookie
from jobboard.api.deps import Identity, get_current_identity, require_role

router = APIRouter()


@router.delete("/me", response_model=APIResponse)
def delete_my_account(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Delete the caller's account with its profile and sessions

    Moderators cannot delete themselves.
    """
    if identity.role is UserRole.MODERATOR:
        raise AuthorizationError("Moderators cannot delete their own account")

    user_service.delete_user(db, identity.user_id)
    clear_refresh_cookie(response)
    return APIResponse(message="Account deleted")


@router.patch("/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    body: UserStatusUpdate,
    identity: Identity = Depends(require_role(UserRole.MODERATOR)),
    db: Session = Depends(get_db)
):
    """
    Activate or deactivate a user (moderator only)

    Deactivation also revokes every session of the user.

    Args:
        user_id: Target user
        body: New status
        identity: Current moderator
        db: Database session

    Returns:
        Updated user
    """
    if user_id == identity.user_id:
        raise AuthorizationError("Moderators cannot change their own status")

    user = session_service.set_user_active(db, user_id, body.is_active)
    if user is None:
        raise ResourceNotFoundError("User")
    return UserResponse.model_validate(user)
