"""Local cache of the last reconciled (identity, profile) pair."""

import logging

from pydantic import ValidationError

from petcare.models.auth import Identity, ProfileRecord
from petcare.services.storage import KeyValueStore

logger = logging.getLogger(__name__)

IDENTITY_KEY = "@auth_identity"
PROFILE_KEY = "@auth_user_data"
CACHE_KEYS = [IDENTITY_KEY, PROFILE_KEY]


class SessionCache:
    """Persists the identity and profile as one pair.

    Both keys are always written and removed in a single batch. A load that
    finds only one of them, or data that no longer parses, is treated as a
    corrupt cache and cleared. Store failures are logged and behave like an
    empty cache.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> tuple[Identity, ProfileRecord] | None:
        """Return the cached pair, or None when absent or unusable."""
        try:
            values = await self.store.multi_get(CACHE_KEYS)
        except Exception as e:
            logger.error(f"Error loading persisted auth data: {e}")
            await self.clear()
            return None

        raw_identity = values.get(IDENTITY_KEY)
        raw_profile = values.get(PROFILE_KEY)
        if raw_identity is None and raw_profile is None:
            return None
        if raw_identity is None or raw_profile is None:
            logger.warning("Session cache holds a partial entry, clearing it")
            await self.clear()
            return None

        try:
            identity = Identity.model_validate_json(raw_identity)
            profile = ProfileRecord.model_validate_json(raw_profile)
        except ValidationError as e:
            logger.warning(f"Session cache entry is unreadable, clearing it: {e}")
            await self.clear()
            return None

        if identity.uid != profile.uid:
            logger.warning("Session cache pairs a profile with another identity, clearing it")
            await self.clear()
            return None
        return identity, profile

    async def save(self, identity: Identity, profile: ProfileRecord) -> None:
        """Persist the pair in one batch."""
        try:
            await self.store.multi_set({
                IDENTITY_KEY: identity.model_dump_json(),
                PROFILE_KEY: profile.model_dump_json(),
            })
        except Exception as e:
            logger.error(f"Error persisting auth data: {e}")

    async def clear(self) -> None:
        """Remove both keys in one batch."""
        try:
            await self.store.multi_remove(CACHE_KEYS)
        except Exception as e:
            logger.error(f"Error clearing persisted auth data: {e}")
