import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from villa_booking.core.security import create_access_token, get_password_hash, verify_password
from villa_booking.db.models.user import User, UserRole
from villa_booking.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_DETAIL = "User with this email already exists"
PENDING_VALIDATION_DETAIL = "Account is pending validation"


def register_user(payload: RegisterRequest, db: Session) -> User:
    email = payload.email.lower()
    if db.scalar(select(User).where(User.email == email)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_DETAIL)

    user = User(
        email=email,
        hashed_password=get_password_hash(payload.password),
        firstname=payload.firstname.strip(),
        lastname=payload.lastname.strip(),
        color_preference=payload.color_preference,
        role=UserRole.USER.value,
        admin_validated=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_EMAIL_DETAIL) from None
    db.refresh(user)
    logger.info("user_registered user_id=%s", user.id)
    return user


def login_user(payload: LoginRequest, db: Session) -> TokenResponse:
    user = db.scalar(select(User).where(User.email == payload.email.lower()))
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    # New accounts can sign in only after an admin has validated them.
    if not user.admin_validated:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PENDING_VALIDATION_DETAIL)

    token = create_access_token(subject=str(user.id), extra_claims={"role": user.role, "email": user.email})
    return TokenResponse(access_token=token)
