import os
os.environ["TESTING"] = "true"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-admin-sessions")
os.environ.setdefault("ADMIN_PASSWORD", "AdminPass123!")
import pytest
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport

from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from app.db.base import Base
from main import app
from app.db.session import get_db

# --- CONFIGURAÇÃO DO BANCO DE DADOS DE TESTE ---
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"
ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]


@pytest.fixture(scope="session")
def async_engine():
    # NullPool: cada teste corre no seu próprio event loop
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    yield engine
    engine.sync_engine.dispose()
    try:
        os.remove("test.db")
    except (PermissionError, FileNotFoundError):
        print("Aviso: não foi possível remover 'test.db'.")


@pytest.fixture(scope="session")
def test_session_local(async_engine):
    TestSessionLocal = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    yield TestSessionLocal


@pytest.fixture(scope="function", autouse=True)
async def db_session(async_engine, test_session_local):
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_local() as session:
        yield session
        await session.close()

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# --- CONFIGURAÇÃO DO CLIENTE HTTP DE TESTE ---

@pytest.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="function")
async def admin_headers(async_client: AsyncClient) -> dict:
    """Faz login como admin e retorna o header Authorization."""
    response = await async_client.post("/api/v1/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
