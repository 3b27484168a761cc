"""Session manager reconciling the local cache with the identity provider."""

import asyncio
import logging
from typing import Callable, Iterable, Protocol

from petcare.models.auth import (
    AuthErrorCode,
    AuthResult,
    Identity,
    ProfileRecord,
    SessionState,
    SignedInUser,
    UserRole,
)
from petcare.services.authorization import is_authorized
from petcare.services.errors import AuthenticationError, message_for
from petcare.services.session_cache import SessionCache

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """Operations the session manager needs from the identity provider."""

    async def sign_in(self, email: str, password: str) -> AuthResult[SignedInUser]: ...

    async def sign_up(
        self, email: str, password: str, display_name: str
    ) -> AuthResult[SignedInUser]: ...

    async def sign_out(self) -> AuthResult[None]: ...

    async def get_current_user_data(self) -> ProfileRecord | None: ...

    async def refresh_session(self) -> bool: ...

    def subscribe(self, on_change: Callable[[Identity | None], None]) -> Callable[[], None]: ...


class SessionManager:
    """Owns the session state of one application instance.

    On ``start`` the cached session is shown optimistically, then every
    provider notification is reconciled in order: an identity with a
    matching profile is kept and cached, anything else clears state and
    cache. Actions update state directly on success and leave it untouched
    on failure, except a sign-in whose account has no profile, which ends
    the session. They report errors through ``AuthResult`` and never raise.

    Use as an async context manager, or pair ``start`` with ``close``.
    """

    def __init__(self, provider: IdentityProvider, cache: SessionCache):
        self.provider = provider
        self.cache = cache

        self._identity: Identity | None = None
        self._profile: ProfileRecord | None = None
        self._active_actions = 0
        self._initializing = True
        self._initialized = asyncio.Event()

        self._events: asyncio.Queue[Identity | None] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._started = False

    async def __aenter__(self) -> "SessionManager":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # Read side

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def profile(self) -> ProfileRecord | None:
        return self._profile

    @property
    def is_loading(self) -> bool:
        return self._active_actions > 0

    @property
    def is_initializing(self) -> bool:
        return self._initializing

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None and self._profile is not None

    @property
    def state(self) -> SessionState:
        """Immutable snapshot of the current session."""
        return SessionState(
            identity=self._identity,
            profile=self._profile,
            is_loading=self.is_loading,
            is_initializing=self._initializing,
        )

    def is_authorized(self, required_roles: Iterable[UserRole | str] | UserRole | str | None = None) -> bool:
        """Whether the current session holds one of ``required_roles``."""
        return is_authorized(self._identity, self._profile, required_roles)

    def view(self) -> "SessionView":
        """Read-only projection for consumers."""
        return SessionView(self)

    # Lifecycle

    async def start(self) -> None:
        """Load the cached session and subscribe to provider changes."""
        if self._started:
            return
        self._started = True

        cached = await self.cache.load()
        if cached is not None:
            self._identity, self._profile = cached
            logger.info(f"Loaded cached session for {self._identity.uid}")

        self._worker = asyncio.create_task(self._run())
        self._unsubscribe = self.provider.subscribe(self._on_identity_changed)

    async def close(self) -> None:
        """Unsubscribe from the provider and stop reconciling."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def wait_until_initialized(self, timeout: float | None = None) -> None:
        """Wait until the first provider notification has been reconciled."""
        await asyncio.wait_for(self._initialized.wait(), timeout)

    async def wait_until_idle(self) -> None:
        """Wait until every queued provider notification has been reconciled."""
        await self._events.join()

    # Reconciliation

    def _on_identity_changed(self, identity: Identity | None) -> None:
        self._events.put_nowait(identity)

    async def _run(self) -> None:
        while True:
            identity = await self._events.get()
            try:
                await self._reconcile(identity)
            except Exception:
                logger.exception("Session reconciliation failed")
            finally:
                self._events.task_done()
                if self._initializing:
                    self._initializing = False
                    self._initialized.set()

    async def _reconcile(self, identity: Identity | None) -> None:
        if identity is None:
            await self._clear()
            return

        try:
            profile = await self.provider.get_current_user_data()
        except Exception as e:
            logger.error(f"Error refreshing user data: {e}")
            profile = None

        if profile is None or profile.uid != identity.uid:
            # An identity without its profile is not a valid session
            await self._clear()
            return
        await self._apply(identity, profile)

    async def _apply(self, identity: Identity, profile: ProfileRecord) -> None:
        self._identity = identity
        self._profile = profile
        await self.cache.save(identity, profile)

    async def _clear(self) -> None:
        self._profile = None
        self._identity = None
        await self.cache.clear()

    # Actions

    async def _guarded(self, action, *args) -> AuthResult:
        self._active_actions += 1
        try:
            return await action(*args)
        except Exception as e:
            error = AuthenticationError.from_exception(e)
            logger.exception("Auth action failed unexpectedly")
            return AuthResult.fail(error.code, error.message)
        finally:
            self._active_actions -= 1

    async def sign_in(self, email: str, password: str) -> AuthResult[SignedInUser]:
        """Sign in and adopt the returned session."""
        return await self._guarded(self._sign_in, email, password)

    async def _sign_in(self, email: str, password: str) -> AuthResult[SignedInUser]:
        result = await self.provider.sign_in(email, password)
        if result.success and result.data is not None:
            await self._apply(result.data.identity, result.data.profile)
        elif result.error is not None and result.error.code == AuthErrorCode.USER_DATA_NOT_FOUND:
            await self._clear()
        return result

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> AuthResult[SignedInUser]:
        """Create an account and adopt its session."""
        return await self._guarded(self._sign_up, email, password, display_name)

    async def _sign_up(self, email: str, password: str, display_name: str) -> AuthResult[SignedInUser]:
        result = await self.provider.sign_up(email, password, display_name)
        if result.success and result.data is not None:
            await self._apply(result.data.identity, result.data.profile)
        return result

    async def sign_out(self) -> AuthResult[None]:
        """End the session at the provider and locally."""
        return await self._guarded(self._sign_out)

    async def _sign_out(self) -> AuthResult[None]:
        result = await self.provider.sign_out()
        if result.success:
            await self._clear()
        return result

    async def refresh(self) -> AuthResult[ProfileRecord]:
        """Re-validate the provider session and re-fetch the profile."""
        return await self._guarded(self._refresh)

    async def _refresh(self) -> AuthResult[ProfileRecord]:
        identity = self._identity
        if identity is None:
            await self._clear()
            return AuthResult.ok()

        if not await self.provider.refresh_session():
            await self._clear()
            return AuthResult.ok()

        try:
            profile = await self.provider.get_current_user_data()
        except Exception as e:
            logger.error(f"Error refreshing user data: {e}")
            profile = None

        if profile is None or profile.uid != identity.uid:
            await self._clear()
            code = AuthErrorCode.USER_DATA_NOT_FOUND
            return AuthResult.fail(code, message_for(code))
        await self._apply(identity, profile)
        return AuthResult.ok(profile)


class SessionView:
    """Consumer-facing session surface.

    Exposes the session state and the bound actions; the state itself can
    only change through those actions.
    """

    __slots__ = ("_manager",)

    def __init__(self, manager: SessionManager):
        self._manager = manager

    @property
    def identity(self) -> Identity | None:
        return self._manager.identity

    @property
    def profile(self) -> ProfileRecord | None:
        return self._manager.profile

    @property
    def is_loading(self) -> bool:
        return self._manager.is_loading

    @property
    def is_initializing(self) -> bool:
        return self._manager.is_initializing

    @property
    def is_authenticated(self) -> bool:
        return self._manager.is_authenticated

    @property
    def state(self) -> SessionState:
        return self._manager.state

    async def sign_in(self, email: str, password: str) -> AuthResult[SignedInUser]:
        return await self._manager.sign_in(email, password)

    async def sign_up(self, email: str, password: str, display_name: str) -> AuthResult[SignedInUser]:
        return await self._manager.sign_up(email, password, display_name)

    async def sign_out(self) -> AuthResult[None]:
        return await self._manager.sign_out()

    async def refresh(self) -> AuthResult[ProfileRecord]:
        return await self._manager.refresh()

    def is_authorized(self, required_roles: Iterable[UserRole | str] | UserRole | str | None = None) -> bool:
        return self._manager.is_authorized(required_roles)
