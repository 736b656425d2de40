"""
Passwords and JWT sessions.

A session token records the user's ``token_version`` at the moment it was
issued. Logging out bumps the stored version, which revokes every token
handed out before it, whether it travels as a bearer header or a cookie.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config import settings
from db.database import get_db
from db.models import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class SessionClaims:
    user_id: int
    version: int


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def normalize_username(username: str) -> str:
    return " ".join((username or "").strip().split()).lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def issue_session_token(user: User) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "ver": int(user.token_version or 0),
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_session_token(token: str) -> SessionClaims:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise _unauthorized("Invalid token") from exc
    try:
        return SessionClaims(user_id=int(payload["sub"]), version=int(payload.get("ver", 0)))
    except (KeyError, TypeError, ValueError) as exc:
        raise _unauthorized("Invalid token") from exc


def revoke_sessions(db: Session, user: User) -> int:
    """Invalidate every outstanding token for ``user``; returns the new version."""
    user.token_version = int(user.token_version or 0) + 1
    db.commit()
    logger.info("Revoked sessions for user %s (now version %s)", user.id, user.token_version)
    return user.token_version


def session_cookie_name() -> str:
    return (settings.AUTH_COOKIE_NAME or "").strip() or "habits_session"


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials and credentials.credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(session_cookie_name())
    if not token:
        raise _unauthorized("Not authenticated")

    claims = read_session_token(token)
    user = db.get(User, claims.user_id)
    if user is None:
        raise _unauthorized("User not found")
    if claims.version != int(user.token_version or 0):
        raise _unauthorized("Session revoked. Please sign in again.")
    request.state.user_id = user.id
    return user


def user_timezone(user: User) -> str:
    return (user.timezone or "").strip() or settings.DEFAULT_TIMEZONE
