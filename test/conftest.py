"""
Pytest configuration and fixtures for portal analytics tests
"""

import os
import sys
import tempfile
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

from portal.database import Base, get_db  # noqa: E402
from portal.models.article import Article  # noqa: E402


# Test database URL, overridable with TEST_DATABASE_URL.
# Default is a throwaway SQLite file so each connection gets real transaction semantics.
def get_test_database_url():
    """Get test database URL from environment or fall back to a temp SQLite file"""
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    path = os.path.join(tempfile.gettempdir(), f"portal_analytics_test_{os.getpid()}.db")  # noqa: PTH118
    return f"sqlite+aiosqlite:///{path}"


TEST_DATABASE_URL = get_test_database_url()

# NullPool: connections never outlive the event loop of the test that opened them
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

# Now import and patch the app's database components
import portal.database as database_module  # noqa: E402
from main import app  # noqa: E402

database_module.engine = test_engine
database_module.AsyncSessionLocal = TestSessionLocal


@pytest.fixture(scope="function")
async def setup_test_database():
    """
    Create a fresh schema for each test function that needs it.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    try:
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    except Exception as e:
        import logging

        logging.warning(f"Error during test cleanup: {e}")


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests that need it."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory(setup_test_database):
    """Session maker for tests that need several independent sessions."""
    return TestSessionLocal


def override_get_db():
    """Override database dependency for testing"""

    async def _override():
        async with TestSessionLocal() as session:
            yield session

    return _override


@pytest.fixture
async def client(setup_test_database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app, using the test database"""
    app.dependency_overrides[get_db] = override_get_db()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
        yield async_client
    app.dependency_overrides.clear()


@pytest.fixture
async def test_article(test_db: AsyncSession) -> Article:
    """Article 'a1' with five views already counted"""
    article = Article(
        slug="a1",
        title="Banjir Rob Landa Pesisir Pontianak",
        category="Daerah",
        author="Redaksi",
        view_count=5,
    )
    test_db.add(article)
    await test_db.commit()
    await test_db.refresh(article)
    return article
