"""User management routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from authgate.core.database import get_db
from authgate.core.exceptions import ResourceNotFoundError
from authgate.schemas.token import Identity
from authgate.schemas.user import UserCreate, UserResponse
from authgate.services.access_control import require_owner_or_admin
from authgate.services.user_service import user_service
from authgate.api.deps import get_current_identity, get_current_admin, require_any_role
from authgate.schemas.response import ErrorResponse

router = APIRouter(responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}})


@router.get("/", response_model=List[UserResponse])
def get_all_users(
    role: Optional[str] = None,
    identity: Identity = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """
    Get all users (admin only)

    Args:
        role: Optional role filter
        identity: Current admin identity
        db: Database session

    Returns:
        List of users
    """
    return user_service.get_all_users(db, role)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    identity: Identity = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    """Create new user (admin only)"""
    return user_service.create_user(db, user_data)


@router.get("/reports/summary")
def get_user_summary(
    identity: Identity = Depends(require_any_role("admin", "manager")),
    db: Session = Depends(get_db)
):
    """Role counts (admin or manager)"""
    users = user_service.get_all_users(db)
    counts: dict = {}
    for user in users:
        counts[user.role] = counts.get(user.role, 0) + 1
    return {"total": len(users), "by_role": counts, "access_level": identity.role}


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """
    Get a single user (the user themselves, or an admin)

    Args:
        user_id: User ID
        identity: Current authenticated identity
        db: Database session

    Returns:
        User
    """
    require_owner_or_admin(identity, user_id)
    user = user_service.get_user_by_id(db, user_id)
    if not user:
        raise ResourceNotFoundError("User")
    return UserResponse.model_validate(user)
