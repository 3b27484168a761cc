"""Identity provider client for email/password accounts.

Talks to an Identity Toolkit compatible REST API for credentials and to the
profile repository for the application's profile records. Session changes are
published to subscribers as the current ``Identity`` or ``None``.
"""

import asyncio
import logging
from typing import Any, Callable

import httpx
from pymongo.errors import PyMongoError

from petcare.config import get_settings
from petcare.models.auth import (
    AuthErrorCode,
    AuthResult,
    Identity,
    ProfileRecord,
    SignedInUser,
)
from petcare.services.errors import (
    SESSION_REVOKED_MESSAGES,
    AuthenticationError,
    provider_message,
)
from petcare.services.profiles import ProfileRepository
from petcare.services.storage import KeyValueStore

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None], None]

REFRESH_TOKEN_KEY = "@provider_refresh_token"
PROVIDER_IDENTITY_KEY = "@provider_identity"


class IdentityProviderClient:
    """Client for the remote identity provider.

    Holds the provider-side session (ID token, refresh token and identity),
    optionally persisted to a key-value store so it survives restarts.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        api_key: str | None = None,
        base_url: str | None = None,
        token_url: str | None = None,
        token_store: KeyValueStore | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self.profiles = profiles
        self.api_key = api_key if api_key is not None else settings.identity_api_key
        self.base_url = (base_url or settings.identity_base_url).rstrip("/")
        self.token_url = token_url or settings.secure_token_url
        self.timeout = timeout or settings.identity_timeout_seconds
        self.token_store = token_store
        self._client: httpx.AsyncClient | None = None

        self._identity: Identity | None = None
        self._id_token: str | None = None
        self._refresh_token: str | None = None

        self._listeners: list[IdentityListener] = []
        self._pending: set[asyncio.Task] = set()
        self._restore_lock = asyncio.Lock()
        self._restored = False

    @property
    def current_user(self) -> Identity | None:
        """Identity of the active provider session, if any."""
        return self._identity

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                params={"key": self.api_key},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and drop pending notifications."""
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _account_request(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to an ``accounts:*`` endpoint, raising AuthenticationError on rejection."""
        client = await self._get_client()
        response = await client.post(f"{self.base_url}/accounts:{endpoint}", json=payload)
        if response.is_error:
            raise AuthenticationError.from_response(response)
        return response.json()

    # Change stream

    def subscribe(self, on_change: IdentityListener) -> Callable[[], None]:
        """Register a session change callback.

        The callback first receives the session restored at startup, then
        every later change. Must be called from within a running event loop.
        The returned function unsubscribes and may be called more than once.
        """
        self._listeners.append(on_change)
        task = asyncio.get_running_loop().create_task(self._notify_initial(on_change))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    async def _notify_initial(self, listener: IdentityListener) -> None:
        try:
            await self.restore()
        except Exception:
            logger.exception("Restoring provider session failed")
        if listener in self._listeners:
            self._call_listener(listener, self._identity)

    def _emit(self, identity: Identity | None) -> None:
        for listener in list(self._listeners):
            self._call_listener(listener, identity)

    @staticmethod
    def _call_listener(listener: IdentityListener, identity: Identity | None) -> None:
        try:
            listener(identity)
        except Exception:
            logger.exception("Identity listener failed")

    # Provider session bookkeeping

    async def _set_session(self, identity: Identity, id_token: str, refresh_token: str) -> None:
        self._identity = identity
        self._id_token = id_token
        self._refresh_token = refresh_token
        await self._persist_session()
        self._emit(identity)

    async def _drop_session(self) -> None:
        had_session = self._identity is not None
        self._identity = None
        self._id_token = None
        self._refresh_token = None
        if self.token_store is not None:
            try:
                await self.token_store.multi_remove([REFRESH_TOKEN_KEY, PROVIDER_IDENTITY_KEY])
            except Exception as e:
                logger.error(f"Failed to remove provider credentials: {e}")
        if had_session:
            self._emit(None)

    async def _persist_session(self) -> None:
        if self.token_store is None or self._identity is None or self._refresh_token is None:
            return
        try:
            await self.token_store.multi_set({
                REFRESH_TOKEN_KEY: self._refresh_token,
                PROVIDER_IDENTITY_KEY: self._identity.model_dump_json(),
            })
        except Exception as e:
            logger.error(f"Failed to persist provider credentials: {e}")

    async def restore(self) -> None:
        """Restore a persisted provider session once per client."""
        async with self._restore_lock:
            if self._restored:
                return
            self._restored = True
            if self.token_store is None or self._identity is not None:
                return

            try:
                values = await self.token_store.multi_get([REFRESH_TOKEN_KEY, PROVIDER_IDENTITY_KEY])
                refresh_token = values.get(REFRESH_TOKEN_KEY)
                raw_identity = values.get(PROVIDER_IDENTITY_KEY)
                if not refresh_token or not raw_identity:
                    return
                identity = Identity.model_validate_json(raw_identity)
            except Exception as e:
                logger.error(f"Failed to restore provider session: {e}")
                return

            self._identity = identity
            self._refresh_token = refresh_token
            logger.info(f"Restored provider session for {identity.uid}")

            # A revoked token drops the restored session
            await self._refresh_tokens()

    async def refresh_session(self) -> bool:
        """Exchange the refresh token for a fresh ID token.

        Returns whether a provider session is still active. A rejected token
        is treated as external invalidation: the session is dropped and
        subscribers are notified. Network failures keep the session.
        """
        await self.restore()
        return await self._refresh_tokens()

    async def _refresh_tokens(self) -> bool:
        if self._identity is None or not self._refresh_token:
            return False

        uid = self._identity.uid
        try:
            client = await self._get_client()
            response = await client.post(
                self.token_url,
                data={"grant_type": "refresh_token", "refresh_token": self._refresh_token},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh failed, keeping session: {e}")
            return True

        if self._identity is None or self._identity.uid != uid:
            # Session changed while the refresh was in flight
            return self._identity is not None

        if response.is_error:
            reason = provider_message(response)
            if reason in SESSION_REVOKED_MESSAGES or response.status_code in (401, 403):
                logger.info(f"Provider session for {uid} is no longer valid: {reason or response.status_code}")
                await self._drop_session()
                return False
            logger.warning(f"Token refresh failed with {response.status_code}, keeping session")
            return True

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning("Token refresh returned an unreadable body, keeping session")
            return True
        if payload.get("user_id") and payload["user_id"] != uid:
            await self._drop_session()
            return False

        self._id_token = payload.get("id_token", self._id_token)
        self._refresh_token = payload.get("refresh_token", self._refresh_token)
        await self._persist_session()
        return True

    # Account operations

    async def sign_in(self, email: str, password: str) -> AuthResult[SignedInUser]:
        """Sign in with email and password and stamp the login time."""
        await self.restore()
        try:
            data = await self._account_request(
                "signInWithPassword",
                {"email": email, "password": password, "returnSecureToken": True},
            )
            identity = Identity(
                uid=data["localId"],
                email=data.get("email") or email,
                display_name=data.get("displayName") or None,
            )

            try:
                profile = await self.profiles.get(identity.uid)
            except Exception:
                await self._drop_session()
                raise
            if profile is None:
                # Identity without a profile ends any session, including the previous one
                await self._drop_session()
                raise AuthenticationError(AuthErrorCode.USER_DATA_NOT_FOUND)
            profile = await self.profiles.record_login(identity.uid) or profile

            await self._set_session(identity, data["idToken"], data["refreshToken"])
            logger.info(f"Signed in {identity.uid}")
            return AuthResult.ok(SignedInUser(identity=identity, profile=profile))
        except Exception as e:
            error = AuthenticationError.from_exception(e)
            logger.warning(f"Sign-in failed: {error.code.value} ({error.technical})")
            return AuthResult.fail(error.code, error.message)

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> AuthResult[SignedInUser]:
        """Create an account, set its display name and create its profile."""
        await self.restore()
        try:
            data = await self._account_request(
                "signUp",
                {"email": email, "password": password, "returnSecureToken": True},
            )
            uid = data["localId"]
            id_token = data["idToken"]
            refresh_token = data["refreshToken"]

            updated = await self._account_request(
                "update",
                {"idToken": id_token, "displayName": display_name, "returnSecureToken": True},
            )
            id_token = updated.get("idToken", id_token)
            refresh_token = updated.get("refreshToken", refresh_token)

            identity = Identity(uid=uid, email=data.get("email") or email, display_name=display_name)
            profile = await self.profiles.create(uid, identity.email, display_name)

            await self._set_session(identity, id_token, refresh_token)
            logger.info(f"Created account {uid}")
            return AuthResult.ok(SignedInUser(identity=identity, profile=profile))
        except Exception as e:
            error = AuthenticationError.from_exception(e)
            logger.warning(f"Sign-up failed: {error.code.value} ({error.technical})")
            return AuthResult.fail(error.code, error.message)

    async def sign_out(self) -> AuthResult[None]:
        """End the provider session."""
        await self.restore()
        try:
            await self._drop_session()
            return AuthResult.ok()
        except Exception as e:
            error = AuthenticationError.from_exception(e)
            logger.warning(f"Sign-out failed: {error.code.value} ({error.technical})")
            return AuthResult.fail(error.code, error.message)

    async def get_current_user_data(self) -> ProfileRecord | None:
        """Profile record of the active identity, or None."""
        identity = self._identity
        if identity is None:
            return None

        try:
            profile = await self.profiles.get(identity.uid)
        except PyMongoError as e:
            logger.error(f"Error getting user data: {e}")
            return None

        if profile is None:
            logger.info(f"No profile record for {identity.uid}")
        return profile
