"""Authentication routes - session introspection, logout and the test-only session mint."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime
import logging
import os

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_auth
from models import AuthSession, User, hash_token, generate_session_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


class AuthMeResponse(BaseModel):
    authenticated: bool
    user_id: Optional[int] = None
    email: Optional[str] = None
    role: Optional[str] = None
    onboarded: bool = False


class MintSessionRequest(BaseModel):
    email: EmailStr


class MintSessionResponse(BaseModel):
    session_token: str
    user_id: int


@router.get("/auth/me", response_model=AuthMeResponse)
async def auth_me(
    auth_session: AuthSession = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Check if user is authenticated."""
    user = await session.get(User, auth_session.user_id)
    return AuthMeResponse(
        authenticated=True,
        user_id=auth_session.user_id,
        email=auth_session.email,
        role=user.role if user else None,
        onboarded=user.onboarded if user else False,
    )


@router.post("/auth/logout")
async def auth_logout(
    auth_session: AuthSession = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Revoke the current session."""
    auth_session.revoked_at = datetime.utcnow()
    session.add(auth_session)
    await session.commit()

    return {"status": "ok"}


@router.post("/test/mint-session", response_model=MintSessionResponse)
async def mint_session(request: MintSessionRequest, session: AsyncSession = Depends(get_session)):
    """
    Test-only endpoint to mint a session without the login provider.
    Only enabled when E2E_TEST_MODE=1 env var is set.
    """
    if os.getenv("E2E_TEST_MODE") != "1":
        raise HTTPException(status_code=404, detail="Not Found")

    email = request.email.lower()

    # Create user if not exists
    result = await session.exec(select(User).where(User.email == email))
    user = result.first()
    if not user:
        user = User(email=email)
        session.add(user)
        await session.commit()
        await session.refresh(user)

    token = generate_session_token()
    session.add(
        AuthSession(
            email=email,
            user_id=user.id,
            session_token_hash=hash_token(token),
        )
    )
    await session.commit()
    logger.info("Minted test session", extra={"user_id": user.id})

    return MintSessionResponse(session_token=token, user_id=user.id)
