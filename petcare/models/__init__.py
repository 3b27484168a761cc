"""Pydantic models for PetCare."""

from petcare.models.auth import (
    UserRole,
    AuthErrorCode,
    Identity,
    ProfileRecord,
    AuthError,
    AuthResult,
    SignedInUser,
    SessionState,
    SignInRequest,
    SignUpRequest,
)
from petcare.models.pet import (
    Pet,
    PetCreate,
    PetUpdate,
)

__all__ = [
    # Auth models
    "UserRole",
    "AuthErrorCode",
    "Identity",
    "ProfileRecord",
    "AuthError",
    "AuthResult",
    "SignedInUser",
    "SessionState",
    "SignInRequest",
    "SignUpRequest",
    # Pet models
    "Pet",
    "PetCreate",
    "PetUpdate",
]
