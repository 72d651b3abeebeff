from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from villa_booking.api.deps import forbidden, get_current_user, require_admin, require_super_admin
from villa_booking.api.pagination import LimitParam, OffsetParam
from villa_booking.core.access import AccessControl, get_access_control
from villa_booking.db.models.user import User
from villa_booking.db.session import get_db
from villa_booking.schemas.user import (
    UserProfileUpdateRequest,
    UserResponse,
    UserRoleChangeResponse,
    UserRoleUpdateRequest,
)
from villa_booking.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
def update_me(
    payload: UserProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = user_service.update_profile(db=db, user=current_user, payload=payload)
    return UserResponse.model_validate(user)


@router.get("", response_model=list[UserResponse], status_code=status.HTTP_200_OK)
def list_users(
    _: User = Depends(require_admin),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[UserResponse]:
    users = user_service.list_users(db=db, limit=limit, offset=offset)
    return [UserResponse.model_validate(user) for user in users]


@router.post("/{user_id}/authorize", response_model=UserResponse, status_code=status.HTTP_200_OK)
def authorize_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db),
) -> UserResponse:
    if not access.can_manage_users(current_user):
        raise forbidden()
    user = user_service.get_user_or_404(db=db, user_id=user_id)
    user = user_service.authorize_user(db=db, admin=current_user, user=user)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/role", response_model=UserRoleChangeResponse, status_code=status.HTTP_200_OK)
def change_user_role(
    user_id: int,
    payload: UserRoleUpdateRequest,
    current_user: User = Depends(require_super_admin),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db),
) -> UserRoleChangeResponse:
    user = user_service.get_user_or_404(db=db, user_id=user_id)
    if not access.can_change_role(current_user, user):
        raise forbidden()
    old_role, new_role = user_service.change_role(db=db, super_admin=current_user, user=user, new_role=payload.role)
    return UserRoleChangeResponse(
        user=UserResponse.model_validate(user),
        old_role=old_role,
        new_role=new_role,
    )
