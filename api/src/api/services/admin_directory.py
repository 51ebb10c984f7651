"""SQL-backed admin directory."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from warden.models import AdminUser
from warden.models.admin_user import (
    EMAIL_LOWER_UNIQUE_INDEX,
    EMAIL_UNIQUE_CONSTRAINT,
    USERNAME_UNIQUE_CONSTRAINT,
)

from api.services.account_lifecycle import AdminAccount, DuplicateAccountField

_UPDATABLE_FIELDS = frozenset(
    {"username", "email", "password_hash", "must_change_password", "updated_at"}
)


def _snapshot(user: AdminUser) -> AdminAccount:
    return AdminAccount(
        id=user.id,
        username=user.username,
        email=user.email,
        password_hash=user.password_hash,
        must_change_password=bool(user.must_change_password),
        last_login_at=user.last_login_at,
        last_login_ip=user.last_login_ip,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


_FIELD_MARKERS = (
    ("email", (EMAIL_UNIQUE_CONSTRAINT, EMAIL_LOWER_UNIQUE_INDEX, "admin_users.email")),
    ("username", (USERNAME_UNIQUE_CONSTRAINT, "admin_users.username")),
)


def _conflicting_field(exc: IntegrityError) -> str | None:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    for field_name, markers in _FIELD_MARKERS:
        if any(marker in message for marker in markers):
            return field_name
    return None


class SqlAdminDirectory:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_by_id(self, admin_id: int) -> AdminAccount | None:
        user = await self.db.get(AdminUser, admin_id, populate_existing=True)
        return _snapshot(user) if user else None

    async def find_by_username_excluding(
        self, username: str, exclude_id: int
    ) -> AdminAccount | None:
        result = await self.db.execute(
            select(AdminUser).where(AdminUser.username == username, AdminUser.id != exclude_id)
        )
        user = result.scalars().first()
        return _snapshot(user) if user else None

    async def find_by_email_excluding(self, email: str, exclude_id: int) -> AdminAccount | None:
        result = await self.db.execute(
            select(AdminUser).where(
                func.lower(AdminUser.email) == email.lower(),
                AdminUser.id != exclude_id,
            )
        )
        user = result.scalars().first()
        return _snapshot(user) if user else None

    async def update(self, admin_id: int, fields: dict[str, Any]) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported admin fields: {sorted(unknown)}")
        try:
            async with self.db.begin_nested():
                await self.db.execute(
                    update(AdminUser).where(AdminUser.id == admin_id).values(**fields)
                )
        except IntegrityError as exc:
            field_name = _conflicting_field(exc)
            if field_name is None:
                raise
            raise DuplicateAccountField(field_name) from exc
