"""Authentication and session models."""

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar
from pydantic import BaseModel, Field, computed_field

T = TypeVar("T")


class UserRole(str, Enum):
    """Application role stored on a profile record."""
    USER = "user"
    ADMIN = "admin"


class AuthErrorCode(str, Enum):
    """Closed set of failures surfaced by auth actions."""
    INVALID_CREDENTIAL = "invalid-credential"
    INVALID_EMAIL = "invalid-email"
    EMAIL_IN_USE = "email-already-in-use"
    WEAK_PASSWORD = "weak-password"
    NETWORK_ERROR = "network-error"
    TOO_MANY_REQUESTS = "too-many-requests"
    ACCOUNT_DISABLED = "user-disabled"
    USER_DATA_NOT_FOUND = "user-data-not-found"
    UNKNOWN = "unknown"


class Identity(BaseModel):
    """Principal authenticated by the identity provider."""
    uid: str = Field(..., min_length=1, max_length=128)
    email: str = ""
    display_name: str | None = None

    model_config = {"frozen": True}


class ProfileRecord(BaseModel):
    """Application data kept for an identity."""
    uid: str = Field(..., min_length=1, max_length=128)
    email: str = ""
    display_name: str = ""
    role: UserRole = UserRole.USER
    created_at: datetime
    updated_at: datetime
    last_login_at: datetime

    model_config = {"frozen": True}


class AuthError(BaseModel):
    """Error payload carried by a failed auth result."""
    code: AuthErrorCode
    message: str


class AuthResult(BaseModel, Generic[T]):
    """Outcome of an auth action; failures never raise."""
    success: bool
    data: T | None = None
    error: AuthError | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "AuthResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: AuthErrorCode, message: str) -> "AuthResult[T]":
        return cls(success=False, error=AuthError(code=code, message=message))


class SignedInUser(BaseModel):
    """Identity and profile returned by a successful sign-in or sign-up."""
    identity: Identity
    profile: ProfileRecord


class SessionState(BaseModel):
    """Snapshot of the reconciled session."""
    identity: Identity | None = None
    profile: ProfileRecord | None = None
    is_loading: bool = False
    is_initializing: bool = True

    @computed_field
    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None and self.profile is not None


class SignInRequest(BaseModel):
    """Request payload for email/password sign-in."""
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=4096)


class SignUpRequest(SignInRequest):
    """Request payload for account creation."""
    display_name: str = Field(..., min_length=1, max_length=100)
