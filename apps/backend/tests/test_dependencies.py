"""Tests for centralized authentication dependencies."""

import pytest
from datetime import datetime, timedelta

from dependencies import (
    get_actor,
    get_current_session,
    get_current_user,
    require_auth,
    require_contractor,
    require_supplier,
)
from exceptions import AuthenticationError, NotAuthorizedError
from models import ActorContext, AuthSession, hash_token, generate_session_token


async def _add_session(session, user, **overrides) -> str:
    token = generate_session_token()
    session.add(
        AuthSession(
            email=user.email,
            user_id=user.id,
            session_token_hash=hash_token(token),
            **overrides,
        )
    )
    await session.commit()
    return token


@pytest.mark.asyncio
async def test_get_current_session_no_header(session):
    result = await get_current_session(authorization=None, session=session)
    assert result is None


@pytest.mark.asyncio
async def test_get_current_session_wrong_scheme(session, contractor):
    token = await _add_session(session, contractor)
    result = await get_current_session(authorization=f"Token {token}", session=session)
    assert result is None


@pytest.mark.asyncio
async def test_get_current_session_invalid_token(session):
    result = await get_current_session(authorization="Bearer invalid_token", session=session)
    assert result is None


@pytest.mark.asyncio
async def test_get_current_session_valid_token(session, contractor):
    token = await _add_session(session, contractor)
    result = await get_current_session(authorization=f"Bearer {token}", session=session)
    assert result is not None
    assert result.user_id == contractor.id


@pytest.mark.asyncio
async def test_get_current_session_revoked(session, contractor):
    token = await _add_session(session, contractor, revoked_at=datetime.utcnow())
    result = await get_current_session(authorization=f"Bearer {token}", session=session)
    assert result is None


@pytest.mark.asyncio
async def test_get_current_session_expired(session, contractor):
    token = await _add_session(session, contractor, expires_at=datetime.utcnow() - timedelta(minutes=1))
    result = await get_current_session(authorization=f"Bearer {token}", session=session)
    assert result is None


@pytest.mark.asyncio
async def test_require_auth_success(session, contractor):
    token = await _add_session(session, contractor)
    result = await require_auth(authorization=f"Bearer {token}", session=session)
    assert result.user_id == contractor.id


@pytest.mark.asyncio
async def test_require_auth_failure(session):
    with pytest.raises(AuthenticationError) as exc_info:
        await require_auth(authorization=None, session=session)

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Not authenticated"


@pytest.mark.asyncio
async def test_get_actor_from_session(session, supplier):
    token = await _add_session(session, supplier)
    auth_session = await require_auth(authorization=f"Bearer {token}", session=session)
    user = await get_current_user(auth_session=auth_session, session=session)
    actor = await get_actor(user=user)

    assert actor == ActorContext(user_id=supplier.id, role="supplier", onboarded=True)


@pytest.mark.asyncio
async def test_require_contractor():
    contractor = ActorContext(user_id=1, role="contractor", onboarded=True)
    assert await require_contractor(actor=contractor) is contractor

    with pytest.raises(NotAuthorizedError):
        await require_contractor(actor=ActorContext(user_id=2, role="supplier", onboarded=True))
    with pytest.raises(NotAuthorizedError):
        await require_contractor(actor=ActorContext(user_id=3))


@pytest.mark.asyncio
async def test_require_supplier():
    supplier = ActorContext(user_id=1, role="supplier", onboarded=True)
    assert await require_supplier(actor=supplier) is supplier

    with pytest.raises(NotAuthorizedError) as exc_info:
        await require_supplier(actor=ActorContext(user_id=2, role="supplier", onboarded=False))
    assert "onboarding" in exc_info.value.message

    with pytest.raises(NotAuthorizedError):
        await require_supplier(actor=ActorContext(user_id=3, role="contractor", onboarded=True))
