import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from villa_booking.db.models.user import ADMIN_ROLES, User, UserRole
from villa_booking.schemas.user import UserProfileUpdateRequest

logger = logging.getLogger(__name__)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.scalar(select(User).where(User.id == user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def list_users(db: Session, limit: int = 20, offset: int = 0) -> list[User]:
    return list(db.scalars(select(User).order_by(User.id).limit(limit).offset(offset)).all())


def authorize_user(db: Session, admin: User, user: User) -> User:
    if not user.admin_validated:
        user.admin_validated = True
        db.commit()
        db.refresh(user)
        logger.info("user_authorized user_id=%s admin_id=%s", user.id, admin.id)
    return user


def update_profile(db: Session, user: User, payload: UserProfileUpdateRequest) -> User:
    for column, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, column, value.strip() if column != "color_preference" else value)
    db.commit()
    db.refresh(user)
    return user


def change_role(db: Session, super_admin: User, user: User, new_role: UserRole) -> tuple[UserRole, UserRole]:
    old_role = UserRole(user.role)
    user.role = new_role.value
    # Promoted accounts are trusted without a separate validation step.
    if user.role in ADMIN_ROLES:
        user.admin_validated = True
    db.commit()
    db.refresh(user)
    logger.info(
        "user_role_changed user_id=%s old_role=%s new_role=%s by=%s",
        user.id,
        old_role.value,
        new_role.value,
        super_admin.id,
    )
    return old_role, new_role
