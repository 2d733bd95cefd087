"""
Email/password authentication with bearer tokens.

Signup is gated by an invite code. Tokens live in process memory and expire
after TOKEN_EXPIRY_HOURS.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import User, UserRole
from .schemas import LoginRequest, SignupRequest, TokenResponse, UserRead
from .settings import get_settings

router = APIRouter(prefix="/api/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)

SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Simple in-memory token store (in production use Redis or DB)
_tokens: dict[str, tuple[int, datetime]] = {}

PBKDF2_ITERATIONS = 200_000


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(password, salt), stored)


def _generate_token() -> str:
    """Generate a secure random token."""
    return secrets.token_urlsafe(32)


def _cleanup_expired_tokens():
    """Remove expired tokens from memory."""
    now = datetime.now(timezone.utc)
    expired = [t for t, (_, exp) in _tokens.items() if exp < now]
    for t in expired:
        del _tokens[t]


def issue_token(user_id: int) -> TokenResponse:
    _cleanup_expired_tokens()
    token = _generate_token()
    expires_at = datetime.now(timezone.utc) + timedelta(hours=get_settings().token_expiry_hours)
    _tokens[token] = (user_id, expires_at)
    return TokenResponse(token=token, expires_at=expires_at.isoformat())


def _token_user_id(credentials: HTTPAuthorizationCredentials | None) -> int:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    _cleanup_expired_tokens()
    entry = _tokens.get(credentials.credentials)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return entry[0]


async def require_user(
    session: SessionDep,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    """Dependency that resolves the bearer token to a User."""
    user = await session.get(User, _token_user_id(credentials))
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return user


CurrentUser = Annotated[User, Depends(require_user)]


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, session: SessionDep):
    settings = get_settings()
    if not hmac.compare_digest(request.invite_code.encode(), settings.signup_invite_code.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid invite code")

    existing = await session.scalar(select(User).where(User.email == request.email))
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(email=request.email, password_hash=hash_password(request.password), role=UserRole.user.value)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return issue_token(user.id)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, session: SessionDep):
    """Returns a bearer token valid for TOKEN_EXPIRY_HOURS."""
    user = await session.scalar(select(User).where(User.email == request.email))
    if user is None or not verify_password(request.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return issue_token(user.id)


@router.post("/logout")
async def logout(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Invalidate current token."""
    if credentials and credentials.credentials in _tokens:
        del _tokens[credentials.credentials]
    return {"status": "logged out"}


@router.get("/me", response_model=UserRead)
async def get_current_user(user: CurrentUser):
    return user
