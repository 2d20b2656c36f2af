import pytest
import sys
import os
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Module-level config is read at import time; pin it before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("LLM_RETRY_DELAY_SECONDS", "0")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.pop("SENTRY_DSN", None)

# Add parent directory to path to allow importing models and main
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import app  # noqa: E402
from database import get_session, json_serializer  # noqa: E402
from models import (  # noqa: E402
    ROLE_CONTRACTOR,
    ROLE_SUPPLIER,
    ActorContext,
    AuthSession,
    User,
    generate_session_token,
    hash_token,
)


@pytest_asyncio.fixture(name="session", scope="function")
async def session_fixture():
    # Fresh in-memory database per test; StaticPool keeps the one connection alive
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        json_serializer=json_serializer,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session = sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture(name="client")
async def client_fixture(session: AsyncSession):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: AsyncSession):
    """Factory creating users; suppliers default to onboarded."""

    async def _make_user(
        email: str,
        role=None,
        categories=None,
        service_area=None,
        onboarded=None,
        name=None,
    ) -> User:
        user = User(
            email=email,
            name=name,
            role=role,
            onboarded=(role is not None) if onboarded is None else onboarded,
            categories=categories or [],
            service_area=service_area or [],
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return _make_user


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(session: AsyncSession):
    """Factory returning bearer headers for a fresh session of the given user."""

    async def _auth_headers(user: User) -> dict:
        token = generate_session_token()
        session.add(
            AuthSession(
                email=user.email,
                user_id=user.id,
                session_token_hash=hash_token(token),
            )
        )
        await session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest_asyncio.fixture(name="contractor")
async def contractor_fixture(make_user):
    return await make_user("contractor@example.com", role=ROLE_CONTRACTOR, name="Casey Contractor")


@pytest_asyncio.fixture(name="supplier")
async def supplier_fixture(make_user):
    return await make_user(
        "lumber@example.com",
        role=ROLE_SUPPLIER,
        categories=["lumber"],
        service_area=["seattle"],
        name="Cascade Lumber",
    )


@pytest.fixture(name="contractor_actor")
def contractor_actor_fixture(contractor: User) -> ActorContext:
    return ActorContext.from_user(contractor)


@pytest.fixture(name="supplier_actor")
def supplier_actor_fixture(supplier: User) -> ActorContext:
    return ActorContext.from_user(supplier)


@pytest.fixture(name="llm_key")
def llm_key_fixture(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "test-key")
    return "test-key"
