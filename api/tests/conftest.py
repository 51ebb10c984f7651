"""API test configuration."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from api.dependencies import get_account_service, get_admin_identity, get_db
from api.main import create_app
from api.services.account_lifecycle import (
    AccountLifecycleService,
    AdminAccount,
    AdminIdentity,
    DuplicateAccountField,
)
from api.services.password_strength import PasswordStrengthPolicy
from api.services.session_registry import InMemorySessionRegistry
from httpx import ASGITransport, AsyncClient

STRONG_PASSWORD = "Vault-Keeper-2026!"
OLD_PASSWORD = "Old-Secret-Pass-01!"


class FakeDirectory:
    """In-memory stand-in for the admin directory."""

    def __init__(self, accounts=()):
        self.accounts = {account.id: account for account in accounts}
        self.updates: list[tuple[int, dict]] = []
        self.lookups = 0
        self.reject_on_update: str | None = None

    async def find_by_id(self, admin_id):
        self.lookups += 1
        return self.accounts.get(admin_id)

    async def find_by_username_excluding(self, username, exclude_id):
        self.lookups += 1
        for account in self.accounts.values():
            if account.username == username and account.id != exclude_id:
                return account
        return None

    async def find_by_email_excluding(self, email, exclude_id):
        self.lookups += 1
        for account in self.accounts.values():
            if account.email.lower() == email.lower() and account.id != exclude_id:
                return account
        return None

    async def update(self, admin_id, fields):
        if self.reject_on_update:
            raise DuplicateAccountField(self.reject_on_update)
        self.updates.append((admin_id, dict(fields)))
        current = self.accounts.get(admin_id)
        if current is None:
            return
        values = {**current.__dict__, **fields}
        self.accounts[admin_id] = AdminAccount(**values)


class FakeHasher:
    """Deterministic hasher: ``plain$<rounds>$<secret>``."""

    def __init__(self):
        self.hash_calls: list[int] = []

    async def verify(self, plaintext, hashed):
        return hashed.rsplit("$", 1)[-1] == plaintext

    async def hash(self, plaintext, work_factor):
        self.hash_calls.append(work_factor)
        return f"plain${work_factor}${plaintext}"


class RecordingActivityLog:
    def __init__(self):
        self.entries: list[dict] = []
        self.fail = False

    async def append(self, action, details, target, actor):
        if self.fail:
            raise RuntimeError("activity log unavailable")
        self.entries.append(
            {"action": action, "details": details, "target": target, "actor": actor}
        )


def make_account(**overrides) -> AdminAccount:
    created = datetime(2026, 1, 5, tzinfo=UTC)
    values = {
        "id": 7,
        "username": "alice",
        "email": "alice@x.com",
        "password_hash": f"plain$10${OLD_PASSWORD}",
        "must_change_password": False,
        "last_login_at": created + timedelta(days=3),
        "last_login_ip": "10.0.0.5",
        "created_at": created,
        "updated_at": created,
    }
    values.update(overrides)
    return AdminAccount(**values)


@pytest.fixture
def identity():
    return AdminIdentity(id=7, username="alice")


@pytest.fixture
def directory():
    return FakeDirectory(
        [
            make_account(),
            make_account(
                id=9,
                username="bob",
                email="bob@x.com",
                password_hash="plain$10$bob-secret",
            ),
        ]
    )


@pytest.fixture
def hasher():
    return FakeHasher()


@pytest.fixture
def activity_log():
    return RecordingActivityLog()


@pytest.fixture
def sessions():
    return InMemorySessionRegistry(idle_timeout_seconds=3600, revocation_ttl_seconds=28800)


@pytest.fixture
def service(directory, hasher, activity_log, sessions):
    return AccountLifecycleService(
        directory=directory,
        hasher=hasher,
        strength_policy=PasswordStrengthPolicy(),
        sessions=sessions,
        activity_log=activity_log,
        rotation_work_factor=12,
        password_min_length=12,
        clock=lambda: datetime(2026, 10, 18, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def app(identity, service, sessions):
    a = create_app()
    a.state.session_registry = sessions
    a.dependency_overrides[get_admin_identity] = lambda: identity
    a.dependency_overrides[get_account_service] = lambda: service
    return a


@pytest.fixture
def mock_db():
    """Creates a mock AsyncSession with common patterns pre-configured."""
    session = AsyncMock()
    # AsyncSession.add() and begin_nested() are synchronous.
    session.add = MagicMock()
    session.begin_nested = MagicMock()
    empty_result = MagicMock()
    empty_result.scalars.return_value.first.return_value = None
    session.execute.return_value = empty_result
    session.get.return_value = None
    return session


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def unauthenticated_client(mock_db, sessions):
    """Client with NO identity override -- exercises token resolution."""
    a = create_app()
    a.state.session_registry = sessions

    async def _override_db():
        yield mock_db

    a.dependency_overrides[get_db] = _override_db
    transport = ASGITransport(app=a)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
