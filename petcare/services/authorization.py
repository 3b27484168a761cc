"""Role-based authorization over the current session."""

from typing import Iterable

from petcare.models.auth import Identity, ProfileRecord, UserRole


def is_authorized(
    identity: Identity | None,
    profile: ProfileRecord | None,
    required_roles: Iterable[UserRole | str] | UserRole | str | None = None,
) -> bool:
    """Whether the session may act with one of ``required_roles``.

    Requires both an identity and a profile. No roles (or an empty
    collection) admits any authenticated session. A single role may be
    passed on its own.
    """
    if identity is None or profile is None:
        return False
    if isinstance(required_roles, (str, UserRole)):
        required_roles = [required_roles]
    roles = {getattr(role, "value", role) for role in required_roles or ()}
    if not roles:
        return True
    return profile.role.value in roles
