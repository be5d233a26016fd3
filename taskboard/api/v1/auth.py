import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Response, status
from sqlalchemy.orm import Session

from taskboard.core.config import settings
from taskboard.core.database import get_db
from taskboard.core.security import (
    create_user_token,
    get_password_hash,
    verify_password,
    verify_token,
)
from taskboard.models.user import User
from taskboard.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from taskboard.schemas.base import MessageResponse
from taskboard.schemas.user import CurrentUserResponse

logger = logging.getLogger(__name__)

router = APIRouter()

TOKEN_COOKIE = "token"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    authorization: Optional[str] = Header(None),
    token_cookie: Optional[str] = Cookie(None, alias=TOKEN_COOKIE),
    db: Session = Depends(get_db),
):
    token = None
    if authorization:
        try:
            scheme, token = authorization.split()
        except ValueError:
            raise _unauthorized("Invalid authorization header format")
        if scheme.lower() != "bearer":
            raise _unauthorized("Invalid authentication scheme")
    elif token_cookie:
        token = token_cookie

    if not token:
        raise _unauthorized("Authentication required")

    payload, error = verify_token(token)
    if error == "expired":
        raise _unauthorized("Token has expired")
    elif error == "invalid":
        raise _unauthorized("Invalid token")

    user_id = payload.get("userId")
    if user_id is None:
        raise _unauthorized("Token payload invalid")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("User not found")

    return user


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register_user(user_data: RegisterRequest, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User with this email already exists",
        )

    db_user = User(
        username=user_data.username,
        email=user_data.email,
        passwordhash=get_password_hash(user_data.password),
        role="user",
    )

    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info(f"User {db_user.id} registered with email {db_user.email}")
    return {"user_id": db_user.id, "message": "Registration successful"}


@router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email).first()
    if not user or not verify_password(credentials.password, user.passwordhash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    token = create_user_token(user)
    response.set_cookie(
        key=TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        max_age=settings.access_token_expire_days * 24 * 60 * 60,
    )
    logger.info(f"User {user.id} logged in successfully")

    return {
        "token": token,
        "user_id": user.id,
        "name": user.username or user.email.split("@")[0],
        "email": user.email,
    }


@router.get("/me", response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return {
        "user_id": current_user.id,
        "name": current_user.username,
        "email": current_user.email,
        "role": current_user.role,
    }


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    password_data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(password_data.old_password, current_user.passwordhash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect old password"
        )

    current_user.passwordhash = get_password_hash(password_data.new_password)

    db.commit()
    logger.info(f"User {current_user.id} changed password")

    return {"message": "Password changed successfully"}


@router.post("/logout", response_model=LogoutResponse)
def logout(response: Response, current_user: User = Depends(get_current_user)):
    response.delete_cookie(TOKEN_COOKIE)
    logger.info(f"User {current_user.id} logged out")
    return {"message": "Successfully logged out"}
