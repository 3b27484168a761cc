"""Authentication and session API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from petcare.models.auth import (
    AuthResult,
    ProfileRecord,
    SessionState,
    SignedInUser,
    SignInRequest,
    SignUpRequest,
    UserRole,
)
from petcare.services.errors import SessionNotInitializedError
from petcare.services.session import SessionManager, SessionView

router = APIRouter(prefix="/auth", tags=["auth"])


def get_session_manager(request: Request) -> SessionManager:
    """Session manager installed by the application lifespan."""
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise SessionNotInitializedError(
            "Session accessed outside an initialized SessionManager scope"
        )
    return manager


def get_session(manager: SessionManager = Depends(get_session_manager)) -> SessionView:
    """Dependency for the read-only session view."""
    return manager.view()


def require_authenticated(session: SessionView = Depends(get_session)) -> SessionView:
    """Require an authenticated session."""
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return session


@router.get("/session", response_model=SessionState)
async def get_session_state(session: SessionView = Depends(get_session)) -> SessionState:
    """Current session snapshot."""
    return session.state


@router.post("/sign-in", response_model=AuthResult[SignedInUser])
async def sign_in(
    payload: SignInRequest,
    session: SessionView = Depends(get_session),
) -> AuthResult[SignedInUser]:
    """Sign in with email and password."""
    return await session.sign_in(payload.email, payload.password)


@router.post("/sign-up", response_model=AuthResult[SignedInUser])
async def sign_up(
    payload: SignUpRequest,
    session: SessionView = Depends(get_session),
) -> AuthResult[SignedInUser]:
    """Create an account and sign in."""
    return await session.sign_up(payload.email, payload.password, payload.display_name)


@router.post("/sign-out", response_model=AuthResult[None])
async def sign_out(session: SessionView = Depends(get_session)) -> AuthResult[None]:
    """Sign out of the current session."""
    return await session.sign_out()


@router.post("/refresh", response_model=AuthResult[ProfileRecord])
async def refresh(session: SessionView = Depends(get_session)) -> AuthResult[ProfileRecord]:
    """Re-validate the session and reload the profile."""
    return await session.refresh()


@router.get("/authorized")
async def check_authorized(
    roles: list[UserRole] | None = Query(default=None),
    session: SessionView = Depends(get_session),
) -> dict:
    """Whether the session holds one of ``roles`` (any session when omitted)."""
    return {"authorized": session.is_authorized(roles)}
