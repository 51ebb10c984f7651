"""FastAPI dependency injection."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from warden.config import get_settings
from warden.database import get_session_factory
from warden.models import AdminUser

from api.services.account_lifecycle import AccountLifecycleService, AdminIdentity
from api.services.activity_log import SqlActivityLog
from api.services.admin_directory import SqlAdminDirectory
from api.services.hashing import BcryptHasher
from api.services.password_strength import PasswordStrengthPolicy
from api.services.session_registry import InMemorySessionRegistry, RedisSessionRegistry

ADMIN_AUTH_COOKIE_NAME = "warden_admin_token"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def extract_bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth[7:].strip()
        return token or None
    return None


def _extract_cookie_token(request: Request, cookie_name: str) -> str | None:
    cookie_token = request.cookies.get(cookie_name, "").strip()
    return cookie_token or None


def get_raw_token(request: Request) -> str | None:
    return extract_bearer_token(request) or _extract_cookie_token(request, ADMIN_AUTH_COOKIE_NAME)


def get_session_registry(request: Request) -> InMemorySessionRegistry | RedisSessionRegistry:
    return request.app.state.session_registry


def get_password_policy() -> PasswordStrengthPolicy:
    return PasswordStrengthPolicy()


async def get_current_admin(
    request: Request,
    db: AsyncSession = Depends(get_db),
    sessions: InMemorySessionRegistry | RedisSessionRegistry = Depends(get_session_registry),
) -> AdminUser:
    settings = get_settings()
    raw_token = get_raw_token(request)
    if not raw_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        payload = jwt.decode(raw_token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if payload.get("type") != "admin":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    try:
        admin_id = int(payload.get("sub", ""))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if not await sessions.touch(raw_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )

    user = await db.get(AdminUser, admin_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_admin_identity(user: AdminUser = Depends(get_current_admin)) -> AdminIdentity:
    return AdminIdentity(id=user.id, username=user.username)


def get_account_service(
    db: AsyncSession = Depends(get_db),
    sessions: InMemorySessionRegistry | RedisSessionRegistry = Depends(get_session_registry),
    policy: PasswordStrengthPolicy = Depends(get_password_policy),
) -> AccountLifecycleService:
    settings = get_settings()
    return AccountLifecycleService(
        directory=SqlAdminDirectory(db),
        hasher=BcryptHasher(),
        strength_policy=policy,
        sessions=sessions,
        activity_log=SqlActivityLog(db),
        rotation_work_factor=settings.password_change_bcrypt_rounds,
        password_min_length=settings.password_min_length,
    )
