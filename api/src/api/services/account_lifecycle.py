"""Self-service account lifecycle for admin users.

Profile reads and updates, password rotation, and logout. All storage, hashing,
session and audit concerns are reached through the collaborator protocols below so the
policy here can run against SQL/Redis in production and in-memory fakes in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50

ACTION_PROFILE_UPDATED = "admin_profile_updated"
ACTION_PASSWORD_CHANGED = "password_changed"
ACTION_LOGOUT = "admin_logout"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class AdminIdentity:
    """Authenticated caller, resolved upstream and passed in explicitly."""

    id: int
    username: str


@dataclass(frozen=True)
class AdminAccount:
    id: int
    username: str
    email: str
    password_hash: str
    must_change_password: bool = False
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Actor:
    type: str
    id: str
    name: str | None = None


@dataclass(frozen=True)
class Violation:
    code: str
    message: str
    field: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {"code": self.code, "message": self.message, "field": self.field}


@dataclass(frozen=True)
class StrengthResult:
    valid: bool
    score: int
    violations: tuple[Violation, ...] = ()

    @property
    def messages(self) -> list[str]:
        return [violation.message for violation in self.violations]


# ──────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────


class AccountLifecycleError(Exception):
    kind = "error"


class AccountNotFound(AccountLifecycleError):
    kind = "not_found"

    def __init__(self, admin_id: int) -> None:
        super().__init__("Admin account not found")
        self.admin_id = admin_id


class ValidationFailed(AccountLifecycleError):
    kind = "validation_failed"

    def __init__(self, error: str, violations: list[Violation]) -> None:
        super().__init__(error)
        self.error = error
        self.violations = list(violations)

    @property
    def messages(self) -> list[str]:
        return [violation.message for violation in self.violations]


class AccountConflict(AccountLifecycleError):
    kind = "conflict"

    def __init__(self, field_name: str) -> None:
        label = "Username" if field_name == "username" else "Email"
        super().__init__(f"{label} is already in use by another admin")
        self.field = field_name


class DuplicateAccountField(Exception):
    """Raised by a directory when its own storage-level uniqueness check rejects a write."""

    def __init__(self, field_name: str) -> None:
        super().__init__(field_name)
        self.field = field_name


# ──────────────────────────────────────────────
# Collaborators
# ──────────────────────────────────────────────


class AdminDirectory(Protocol):
    async def find_by_id(self, admin_id: int) -> AdminAccount | None: ...

    async def find_by_username_excluding(
        self, username: str, exclude_id: int
    ) -> AdminAccount | None: ...

    async def find_by_email_excluding(self, email: str, exclude_id: int) -> AdminAccount | None: ...

    async def update(self, admin_id: int, fields: dict[str, Any]) -> None: ...


class SecretHasher(Protocol):
    async def verify(self, plaintext: str, hashed: str) -> bool: ...

    async def hash(self, plaintext: str, work_factor: int) -> str: ...


class StrengthPolicy(Protocol):
    def evaluate(self, candidate: str, *, username: str | None = None) -> StrengthResult: ...


class SessionRegistry(Protocol):
    async def invalidate(self, token: str) -> None: ...


class ActivityLog(Protocol):
    async def append(
        self,
        action: str,
        details: dict[str, Any],
        target: tuple[str, str] | None,
        actor: Actor,
    ) -> None: ...


# ──────────────────────────────────────────────
# Input normalization
# ──────────────────────────────────────────────


def normalize_email(value: str) -> str:
    return value.strip().lower()


def is_valid_email(value: str) -> bool:
    local, sep, domain = value.partition("@")
    if not sep or not local or "@" in domain:
        return False
    if any(ch.isspace() for ch in value):
        return False
    return "." in domain and not domain.startswith(".") and not domain.endswith(".")


def _profile_violations(username: str, email: str) -> list[Violation]:
    violations: list[Violation] = []
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        violations.append(
            Violation(
                "invalid_length",
                f"Username must be between {USERNAME_MIN_LENGTH} and "
                f"{USERNAME_MAX_LENGTH} characters",
                "username",
            )
        )
    if not is_valid_email(email):
        violations.append(Violation("invalid_email", "Valid email is required", "email"))
    return violations


def public_profile(account: AdminAccount) -> dict[str, Any]:
    return {
        "id": account.id,
        "username": account.username,
        "email": account.email,
        "lastLogin": account.last_login_at.isoformat() if account.last_login_at else None,
        "lastLoginIp": account.last_login_ip,
        "createdAt": account.created_at.isoformat() if account.created_at else None,
        "updatedAt": account.updated_at.isoformat() if account.updated_at else None,
        "mustChangePassword": bool(account.must_change_password),
    }


# ──────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────


@dataclass
class AccountLifecycleService:
    directory: AdminDirectory
    hasher: SecretHasher
    strength_policy: StrengthPolicy
    sessions: SessionRegistry
    activity_log: ActivityLog
    rotation_work_factor: int = 12
    password_min_length: int = 12
    clock: Callable[[], datetime] = _utcnow

    async def get_profile(self, identity: AdminIdentity) -> dict[str, Any]:
        account = await self.directory.find_by_id(identity.id)
        if account is None:
            logger.error("Authenticated admin %s no longer resolves to an account", identity.id)
            raise AccountNotFound(identity.id)
        return public_profile(account)

    async def update_profile(
        self, identity: AdminIdentity, username: str, email: str
    ) -> dict[str, Any]:
        username = username.strip()
        email = normalize_email(email)
        violations = _profile_violations(username, email)
        if violations:
            raise ValidationFailed("Invalid profile data", violations)

        # Username is checked first so a double collision always reports the username.
        if await self.directory.find_by_username_excluding(username, identity.id):
            raise AccountConflict("username")
        if await self.directory.find_by_email_excluding(email, identity.id):
            raise AccountConflict("email")

        try:
            await self.directory.update(
                identity.id,
                {"username": username, "email": email, "updated_at": self.clock()},
            )
        except DuplicateAccountField as exc:
            raise AccountConflict(exc.field) from exc

        account = await self.directory.find_by_id(identity.id)
        if account is None:
            raise AccountNotFound(identity.id)

        await self._audit(
            ACTION_PROFILE_UPDATED,
            {"admin_id": identity.id, "username": username, "email": email},
            Actor(type="admin", id=str(identity.id), name=username),
        )
        logger.info("Admin %s updated profile", identity.id)
        return {
            "id": account.id,
            "username": account.username,
            "email": account.email,
            "mustChangePassword": bool(account.must_change_password),
        }

    async def change_password(
        self, identity: AdminIdentity, current_password: str, new_password: str
    ) -> None:
        violations: list[Violation] = []
        if not current_password:
            violations.append(
                Violation("required", "Current password is required", "currentPassword")
            )
        if len(new_password) < self.password_min_length:
            violations.append(
                Violation(
                    "too_short",
                    f"New password must be at least {self.password_min_length} characters",
                    "newPassword",
                )
            )
        strength = self.strength_policy.evaluate(new_password, username=identity.username)
        violations.extend(strength.violations)
        if violations:
            logger.warning("Rejected password change for admin %s: input", identity.id)
            if all(violation.field == "currentPassword" for violation in violations):
                raise ValidationFailed("Current password is required", violations)
            raise ValidationFailed("Password does not meet security requirements", violations)

        account = await self.directory.find_by_id(identity.id)
        if account is None:
            raise AccountNotFound(identity.id)

        # Required even when must_change_password is set.
        if not await self.hasher.verify(current_password, account.password_hash):
            logger.warning("Rejected password change for admin %s: bad current", identity.id)
            raise ValidationFailed(
                "Current password is incorrect",
                [
                    Violation(
                        "invalid_current_password",
                        "Current password is incorrect",
                        "currentPassword",
                    )
                ],
            )

        new_hash = await self.hasher.hash(new_password, self.rotation_work_factor)
        await self.directory.update(
            identity.id,
            {
                "password_hash": new_hash,
                "must_change_password": False,
                "updated_at": self.clock(),
            },
        )

        await self._audit(
            ACTION_PASSWORD_CHANGED,
            {"admin_id": identity.id},
            Actor(type="admin", id=str(account.id), name=account.username),
        )
        logger.info("Admin %s changed password", identity.id)

    async def logout(self, identity: AdminIdentity, bearer_token: str | None) -> None:
        if bearer_token:
            await self.sessions.invalidate(bearer_token)
        await self._audit(
            ACTION_LOGOUT,
            {"admin_id": identity.id},
            Actor(type="admin", id=str(identity.id), name=identity.username),
        )
        logger.info("Admin %s logged out", identity.id)

    async def _audit(self, action: str, details: dict[str, Any], actor: Actor) -> None:
        try:
            await self.activity_log.append(action, details, None, actor)
        except Exception:
            logger.exception("Failed to record activity %s for %s", action, actor.id)
