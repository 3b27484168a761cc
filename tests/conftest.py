"""Pytest configuration and fixtures for PetCare tests."""

import asyncio
import os
from typing import AsyncGenerator, Callable
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

# Set test environment before importing app modules
os.environ["MONGODB_URL"] = os.environ.get("TEST_MONGODB_URL", "mongodb://localhost:27017")
os.environ["MONGODB_DATABASE"] = "petcare_test"
os.environ["SESSION_CACHE_PATH"] = ""

from petcare.main import app
from petcare.database import Database
from petcare.models.auth import (
    AuthErrorCode,
    AuthResult,
    Identity,
    ProfileRecord,
    SignedInUser,
    UserRole,
)
from petcare.services.errors import message_for
from petcare.services.session import SessionManager
from petcare.services.session_cache import SessionCache
from petcare.services.storage import MemoryStore
from petcare.utils.helpers import utcnow


def make_profile(uid: str, role: UserRole = UserRole.USER, email: str | None = None) -> ProfileRecord:
    """Build a profile record with one timestamp for all three fields."""
    now = utcnow()
    return ProfileRecord(
        uid=uid,
        email=email or f"{uid}@example.com",
        display_name=uid.title(),
        role=role,
        created_at=now,
        updated_at=now,
        last_login_at=now,
    )


class FakeIdentityProvider:
    """In-memory identity provider with the same contract as the REST client."""

    def __init__(self):
        self.accounts: dict[str, tuple[str, Identity]] = {}
        self.profiles: dict[str, ProfileRecord] = {}
        self.current: Identity | None = None
        self.listeners: list[Callable[[Identity | None], None]] = []
        self.next_error: AuthErrorCode | None = None
        self.profile_error: Exception | None = None
        self.session_valid = True
        self.calls: list[str] = []

    def add_account(
        self,
        uid: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        with_profile: bool = True,
    ) -> Identity:
        identity = Identity(uid=uid, email=email, display_name=uid.title())
        self.accounts[email] = (password, identity)
        if with_profile:
            self.profiles[uid] = make_profile(uid, role=role, email=email)
        return identity

    def subscribe(self, on_change):
        self.listeners.append(on_change)
        asyncio.get_running_loop().call_soon(
            lambda: on_change(self.current) if on_change in self.listeners else None
        )

        def unsubscribe():
            if on_change in self.listeners:
                self.listeners.remove(on_change)

        return unsubscribe

    def emit(self, identity: Identity | None) -> None:
        """Simulate a provider-side session change."""
        self.current = identity
        for listener in list(self.listeners):
            listener(identity)

    def _take_error(self) -> AuthResult | None:
        if self.next_error is None:
            return None
        code, self.next_error = self.next_error, None
        return AuthResult.fail(code, message_for(code))

    async def sign_in(self, email: str, password: str) -> AuthResult[SignedInUser]:
        self.calls.append("sign_in")
        await asyncio.sleep(0)
        failure = self._take_error()
        if failure:
            return failure
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            return AuthResult.fail(
                AuthErrorCode.INVALID_CREDENTIAL,
                message_for(AuthErrorCode.INVALID_CREDENTIAL),
            )
        identity = account[1]
        profile = self.profiles.get(identity.uid)
        if profile is None:
            if self.current is not None:
                self.emit(None)
            return AuthResult.fail(
                AuthErrorCode.USER_DATA_NOT_FOUND,
                message_for(AuthErrorCode.USER_DATA_NOT_FOUND),
            )
        self.emit(identity)
        return AuthResult.ok(SignedInUser(identity=identity, profile=profile))

    async def sign_up(self, email: str, password: str, display_name: str) -> AuthResult[SignedInUser]:
        self.calls.append("sign_up")
        await asyncio.sleep(0)
        failure = self._take_error()
        if failure:
            return failure
        if email in self.accounts:
            return AuthResult.fail(AuthErrorCode.EMAIL_IN_USE, message_for(AuthErrorCode.EMAIL_IN_USE))
        uid = f"uid-{len(self.accounts) + 1}"
        identity = Identity(uid=uid, email=email, display_name=display_name)
        self.accounts[email] = (password, identity)
        now = utcnow()
        profile = ProfileRecord(
            uid=uid,
            email=email,
            display_name=display_name,
            role=UserRole.USER,
            created_at=now,
            updated_at=now,
            last_login_at=now,
        )
        self.profiles[uid] = profile
        self.emit(identity)
        return AuthResult.ok(SignedInUser(identity=identity, profile=profile))

    async def sign_out(self) -> AuthResult[None]:
        self.calls.append("sign_out")
        await asyncio.sleep(0)
        failure = self._take_error()
        if failure:
            return failure
        self.emit(None)
        return AuthResult.ok()

    async def get_current_user_data(self) -> ProfileRecord | None:
        await asyncio.sleep(0)
        if self.profile_error is not None:
            raise self.profile_error
        if self.current is None:
            return None
        return self.profiles.get(self.current.uid)

    async def refresh_session(self) -> bool:
        await asyncio.sleep(0)
        if self.current is None:
            return False
        if not self.session_valid:
            self.emit(None)
            return False
        return True


class FailingStore:
    """Key-value store whose every operation fails."""

    async def multi_get(self, keys):
        raise OSError("disk unavailable")

    async def multi_set(self, items):
        raise OSError("disk unavailable")

    async def multi_remove(self, keys):
        raise OSError("disk unavailable")


@pytest.fixture
def provider() -> FakeIdentityProvider:
    """Fake identity provider with one regular and one admin account."""
    fake = FakeIdentityProvider()
    fake.add_account("u1", "a@b.com", "secret1")
    fake.add_account("admin1", "admin@b.com", "secret2", role=UserRole.ADMIN)
    return fake


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cache(store: MemoryStore) -> SessionCache:
    return SessionCache(store)


@pytest_asyncio.fixture
async def manager(
    provider: FakeIdentityProvider,
    cache: SessionCache,
) -> AsyncGenerator[SessionManager, None]:
    """Started session manager whose first notification has been reconciled."""
    session_manager = SessionManager(provider, cache)
    await session_manager.start()
    await session_manager.wait_until_initialized(timeout=5)
    yield session_manager
    await session_manager.close()


@pytest_asyncio.fixture(scope="function")
async def db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    """Get test database connection and clean up after each test."""
    probe = AsyncIOMotorClient(os.environ["MONGODB_URL"], serverSelectionTimeoutMS=2000)
    try:
        await probe.admin.command("ping")
    except PyMongoError:
        pytest.skip("MongoDB is not available")
    finally:
        probe.close()

    await Database.connect()
    database = Database.get_db()

    yield database

    # Clean up all collections after each test
    await database.users.delete_many({})
    await database.pets.delete_many({})

    await Database.disconnect()


@pytest_asyncio.fixture
async def client(manager: SessionManager) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the test session manager installed."""
    app.state.session_manager = manager
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.session_manager = None
