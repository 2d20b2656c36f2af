"""
Centralized FastAPI dependencies for authentication and role gating.

Routes never read the bearer token themselves: they depend on get_actor /
require_contractor / require_supplier and pass the resulting ActorContext into
the lifecycle and bidding services.
"""

from datetime import datetime
from typing import Optional
from fastapi import Header, Depends
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select

from database import get_session
from exceptions import AuthenticationError, NotAuthorizedError
from models import ROLE_CONTRACTOR, ROLE_SUPPLIER, ActorContext, AuthSession, User, hash_token


async def get_current_session(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session)
) -> Optional[AuthSession]:
    """
    Extract and validate session from Authorization header.

    Returns None if the token is missing, unknown, revoked or expired.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization[7:]
    token_hash = hash_token(token)

    result = await session.exec(
        select(AuthSession)
        .where(
            AuthSession.session_token_hash == token_hash,
            AuthSession.revoked_at == None,  # noqa: E711
            AuthSession.expires_at > datetime.utcnow(),
        )
    )
    return result.first()


async def require_auth(
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session)
) -> AuthSession:
    """
    Dependency that requires authentication.

    Raises AuthenticationError (401) if not authenticated.
    """
    auth_session = await get_current_session(authorization, session)
    if not auth_session or auth_session.user_id is None:
        raise AuthenticationError()
    return auth_session


async def get_current_user(
    auth_session: AuthSession = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> User:
    user = await session.get(User, auth_session.user_id)
    if not user:
        raise AuthenticationError("Session user no longer exists")
    return user


async def get_actor(user: User = Depends(get_current_user)) -> ActorContext:
    return ActorContext.from_user(user)


async def require_contractor(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    """Raises NotAuthorizedError (403) unless the caller is a contractor."""
    if actor.role != ROLE_CONTRACTOR:
        raise NotAuthorizedError("Contractor access required", detail={"role": actor.role})
    return actor


async def require_supplier(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    """Raises NotAuthorizedError (403) unless the caller is an onboarded supplier."""
    if actor.role != ROLE_SUPPLIER:
        raise NotAuthorizedError("Supplier access required", detail={"role": actor.role})
    if not actor.onboarded:
        raise NotAuthorizedError("Complete onboarding before responding to RFQs")
    return actor
