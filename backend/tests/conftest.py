"""Shared test configuration and fixtures.

Each test gets a fresh SQLite database file (aiosqlite):
- Tables are created from the models, no migrations are involved.
- Request handlers, the bulk worker and the test itself use separate
  sessions, so committed state is what every party sees.
- pysqlite's own transaction handling is disabled and BEGIN is emitted by
  SQLAlchemy, which makes SAVEPOINT (``begin_nested``) work.
"""

import json
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.jwt import create_token_pair
from app.auth.passwords import hash_password
from app.database import Base, get_db
from app.main import app
from app.models.user import User
from app.services.ai_client import get_llm
from app.services.bulk_worker import BulkJobWorker, get_bulk_worker
from app.services.sec_client import TickerDirectory, get_ticker_directory

TEST_PASSWORD = "testpass123"

VALID_NARRATIVE = {
    "business_story": {
        "headline": "Austin's most trusted lawn care",
        "current_state": "A loyal customer base built on word of mouth",
        "value_proposition": "Turn five-star reviews into repeat bookings",
    },
    "pain_points": [{"title": "Seasonal dips", "description": "Bookings drop sharply in winter"}],
    "value_props": [{"title": "Repeat visits", "benefit": "Bring customers back every season"}],
    "proof_points": {"differentiators": ["4.5 star rating", "127 reviews"]},
    "roi_story": {"headline": "Add $37,500 a year", "summary": "Visibility and conversion gains"},
    "solution_fit": {"summary": "Built for local service businesses"},
    "cta_hooks": [{"headline": "Spring is coming", "action": "Book a 15-minute call"}],
}


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data. Commit before calling the API."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# App wiring: database, worker, ticker directory and LLM overrides
# ---------------------------------------------------------------------------


def fake_llm(*payloads: dict | str, input_tokens: int = 120, output_tokens: int = 480) -> GenericFakeChatModel:
    """Chat model that replies with ``payloads`` in order (dicts are sent as JSON)."""
    messages = [
        AIMessage(
            content=payload if isinstance(payload, str) else json.dumps(payload),
            response_metadata={
                "token_usage": {"prompt_tokens": input_tokens, "completion_tokens": output_tokens}
            },
        )
        for payload in payloads
    ]
    return GenericFakeChatModel(messages=iter(messages))


@pytest.fixture
def llm() -> GenericFakeChatModel:
    """Default model: one valid narrative followed by one regeneration reply."""
    return fake_llm(
        VALID_NARRATIVE,
        {"business_story": {**VALID_NARRATIVE["business_story"], "headline": "A fresh headline"}},
    )


@pytest_asyncio.fixture
async def bulk_worker(session_factory) -> AsyncGenerator[BulkJobWorker, None]:
    worker = BulkJobWorker(session_factory, max_concurrent_jobs=1)
    yield worker
    await worker.shutdown()


@pytest.fixture
def ticker_directory() -> TickerDirectory:
    return TickerDirectory()


@pytest_asyncio.fixture
async def client(
    session_factory, bulk_worker, ticker_directory, llm
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the per-test database and in-process worker."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bulk_worker] = lambda: bulk_worker
    app.dependency_overrides[get_ticker_directory] = lambda: ticker_directory
    app.dependency_overrides[get_llm] = lambda: llm

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users per plan
# ---------------------------------------------------------------------------


async def create_user(
    db_session: AsyncSession, plan: str = "starter", role: str = "user", email: str | None = None
) -> User:
    """Insert and commit a user on ``plan``."""
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=email or f"{plan}-{unique}@test.com",
        hashed_password=hash_password(TEST_PASSWORD),
        name=f"{plan.title()} User",
        company_name="Test Co",
        is_active=True,
        role=role,
        plan=plan,
    )
    db_session.add(user)
    await db_session.commit()
    return user


def headers_for(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id))
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A starter-plan user."""
    return await create_user(db_session, "starter")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def growth_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "growth")


@pytest_asyncio.fixture
async def growth_headers(growth_user: User) -> dict[str, str]:
    return headers_for(growth_user)


@pytest_asyncio.fixture
async def scale_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "scale")


@pytest_asyncio.fixture
async def scale_headers(scale_user: User) -> dict[str, str]:
    return headers_for(scale_user)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "scale", role="admin")


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return headers_for(admin_user)
