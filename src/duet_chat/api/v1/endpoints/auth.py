"""Authentication endpoints for the Duet Chat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from duet_chat.schemas.auth import (
    GoogleLoginRequest,
    LoginRequest,
    SessionResponse,
    SignupRequest,
)
from duet_chat.schemas.user import UserResponse
from duet_chat.services import auth as auth_service
from duet_chat.services.auth import AuthSession
from duet_chat.services.oauth import sign_in_with_google

from ..dependencies import CurrentUserDep, SessionDep, ThrottleDep, VerifierDep

router = APIRouter(prefix="/auth", tags=["authentication"])


def _session_response(session: AuthSession) -> SessionResponse:
    return SessionResponse(
        access_token=session.access_token,
        persistence=session.persistence,
        user=UserResponse.model_validate(session.user),
    )


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, db: SessionDep) -> SessionResponse:
    """Create an email/password account and sign it in."""
    session = auth_service.sign_up(
        db,
        email=request.email,
        password=request.password,
        name=request.name,
        remember=request.remember,
    )
    return _session_response(session)


@router.post("/login", response_model=SessionResponse)
async def login(
    request: LoginRequest,
    db: SessionDep,
    throttle: ThrottleDep,
) -> SessionResponse:
    """Sign in with email and password."""
    session = auth_service.sign_in(
        db,
        email=request.email,
        password=request.password,
        remember=request.remember,
        throttle=throttle,
    )
    return _session_response(session)


@router.post("/oauth/google", response_model=SessionResponse)
async def login_with_google(
    request: GoogleLoginRequest,
    db: SessionDep,
    verifier: VerifierDep,
) -> SessionResponse:
    """Sign in with a Google ID token; the first sign-in creates the profile."""
    session = await sign_in_with_google(
        db,
        request.id_token,
        remember=request.remember,
        verifier=verifier,
    )
    return _session_response(session)


@router.post("/logout")
async def logout(current_user: CurrentUserDep, db: SessionDep) -> dict[str, str]:
    """Mark the caller offline. The client discards its token."""
    auth_service.sign_out(db, current_user)
    return {"status": "signed_out"}
