"""Authentication error taxonomy and provider error mapping."""

import httpx

from petcare.models.auth import AuthErrorCode

# Identity Toolkit error messages, keyed by the part before any " : " detail
_PROVIDER_CODES: dict[str, AuthErrorCode] = {
    "INVALID_LOGIN_CREDENTIALS": AuthErrorCode.INVALID_CREDENTIAL,
    "INVALID_PASSWORD": AuthErrorCode.INVALID_CREDENTIAL,
    "EMAIL_NOT_FOUND": AuthErrorCode.INVALID_CREDENTIAL,
    "INVALID_EMAIL": AuthErrorCode.INVALID_EMAIL,
    "MISSING_EMAIL": AuthErrorCode.INVALID_EMAIL,
    "EMAIL_EXISTS": AuthErrorCode.EMAIL_IN_USE,
    "WEAK_PASSWORD": AuthErrorCode.WEAK_PASSWORD,
    "TOO_MANY_ATTEMPTS_TRY_LATER": AuthErrorCode.TOO_MANY_REQUESTS,
    "USER_DISABLED": AuthErrorCode.ACCOUNT_DISABLED,
}

_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.EMAIL_IN_USE: "Email already in use",
    AuthErrorCode.INVALID_CREDENTIAL: "Invalid email or password",
    AuthErrorCode.WEAK_PASSWORD: "Password should be at least 6 characters",
    AuthErrorCode.INVALID_EMAIL: "Invalid email address",
    AuthErrorCode.NETWORK_ERROR: "Network error occurred. Please check your connection",
    AuthErrorCode.TOO_MANY_REQUESTS: "Too many attempts. Please try again later",
    AuthErrorCode.ACCOUNT_DISABLED: "This account has been disabled",
    AuthErrorCode.USER_DATA_NOT_FOUND: "User data not found",
}

# Refresh-token rejections that mean the session was invalidated elsewhere
SESSION_REVOKED_MESSAGES = frozenset({
    "TOKEN_EXPIRED",
    "USER_DISABLED",
    "USER_NOT_FOUND",
    "INVALID_REFRESH_TOKEN",
    "INVALID_GRANT_TYPE",
    "MISSING_REFRESH_TOKEN",
})


def message_for(code: AuthErrorCode) -> str:
    """Human-readable message for an error code."""
    return _MESSAGES.get(code, "An error occurred during authentication")


def provider_message(response: httpx.Response) -> str:
    """Extract the bare error message from an Identity Toolkit error body."""
    try:
        payload = response.json()
    except ValueError:
        return ""
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or ""
    elif isinstance(error, str):
        message = error
    else:
        return ""
    return message.split(":", 1)[0].strip().upper()


class AuthenticationError(Exception):
    """Failure raised inside the identity client, converted to a result at its boundary."""

    def __init__(self, code: AuthErrorCode, message: str | None = None, technical: object = None):
        self.code = code
        self.message = message or message_for(code)
        self.technical = technical
        super().__init__(self.message)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "AuthenticationError":
        """Map an Identity Toolkit error response."""
        provider_code = provider_message(response)
        code = _PROVIDER_CODES.get(provider_code, AuthErrorCode.UNKNOWN)
        return cls(code, technical=provider_code or response.status_code)

    @classmethod
    def from_exception(cls, error: Exception) -> "AuthenticationError":
        """Map any exception raised while talking to the provider."""
        if isinstance(error, cls):
            return error
        if isinstance(error, httpx.HTTPStatusError):
            return cls.from_response(error.response)
        if isinstance(error, httpx.TransportError):
            return cls(AuthErrorCode.NETWORK_ERROR, technical=str(error))
        return cls(AuthErrorCode.UNKNOWN, technical=repr(error))


class SessionNotInitializedError(RuntimeError):
    """Session accessors used outside an initialized session manager scope."""
