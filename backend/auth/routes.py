import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from auth.models import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from auth.utils import (
    get_current_user,
    hash_password,
    issue_session_token,
    normalize_username,
    revoke_sessions,
    session_cookie_name,
    verify_password,
)
from config import settings
from db.database import get_db
from db.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str, *, max_age_seconds: int) -> None:
    samesite = (settings.AUTH_COOKIE_SAMESITE or "lax").strip().lower()
    if samesite not in {"strict", "lax", "none"}:
        samesite = "lax"
    response.set_cookie(
        key=session_cookie_name(),
        value=token,
        httponly=bool(settings.AUTH_COOKIE_HTTPONLY),
        secure=bool(settings.AUTH_COOKIE_SECURE),
        samesite=samesite,  # type: ignore[arg-type]
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
        max_age=max(int(max_age_seconds), 1),
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=session_cookie_name(),
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
    )


def _start_session(response: Response, user: User) -> TokenResponse:
    token = issue_session_token(user)
    _set_session_cookie(response, token, max_age_seconds=max(int(settings.JWT_EXPIRY_HOURS), 1) * 3600)
    return TokenResponse(access_token=token)


def _validated_timezone(raw: str | None) -> str | None:
    tz_name = (raw or "").strip()
    if not tz_name:
        return None
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown timezone '{tz_name}'")
    return tz_name


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    normalized_username = normalize_username(req.username)
    if len(normalized_username) < 3:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username must be at least 3 characters")

    if db.query(User).filter(User.username_normalized == normalized_username).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    user = User(
        username=" ".join(req.username.strip().split()),
        username_normalized=normalized_username,
        password_hash=hash_password(req.password),
        display_name=req.display_name,
        timezone=_validated_timezone(req.timezone),
        token_version=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)

    return _start_session(response, user)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, response: Response, db: Session = Depends(get_db)):
    normalized_username = normalize_username(req.username)
    user = db.query(User).filter(User.username_normalized == normalized_username).first()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _start_session(response, user)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout(response: Response, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """End the session everywhere: tokens issued before this call stop working."""
    revoke_sessions(db, user)
    _clear_session_cookie(response)
    return {"status": "ok"}
