"""
Pytest Configuration and Fixtures

Configuración global de pytest y fixtures compartidos.
"""

import os
import sys
import asyncio
from pathlib import Path
from typing import AsyncGenerator

# Entorno de test antes de cargar config.settings
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

# Agregar el directorio raíz al path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.database import connection
from src.database.connection import Base, enable_sqlite_savepoints
from src.database import models  # noqa: F401
from tests.factories import UserFactory, ClienteFactory, persist


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture(scope="function")
async def async_engine():
    """Engine async de base de datos en memoria."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Sesión async para tests de queries y servicios.

    Todo se deshace al terminar el test.
    """
    SessionLocal = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with SessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def user(db):
    """Autónomo de prueba."""
    return await persist(db, UserFactory())


@pytest.fixture
async def cliente(db, user):
    """Cliente activo del usuario de prueba."""
    return await persist(db, ClienteFactory(user_id=user.id))


# ============================================================================
# API FIXTURES
# ============================================================================

class ApiContext:
    """Base de datos de la API más helpers para sembrar datos."""

    def __init__(self, engine):
        self.engine = engine
        self.SessionLocal = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def run(self, coro_fn):
        """Ejecuta `coro_fn(db)` en una sesión propia y hace commit."""
        async def _run():
            async with self.SessionLocal() as session:
                result = await coro_fn(session)
                await session.commit()
                return result
        return asyncio.run(_run())

    def add(self, *instances):
        async def _add(session):
            return await persist(session, *instances)
        return self.run(_add)

    def create_user(self, **kwargs) -> int:
        return self.add(UserFactory(**kwargs)).id


@pytest.fixture
def api_db(tmp_path):
    """
    Base de datos SQLite en fichero para los tests de la API.

    El TestClient ejecuta la app en su propio event loop, así que el
    engine usa NullPool y no comparte conexiones entre loops.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        poolclass=NullPool,
    )
    enable_sqlite_savepoints(engine)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())

    ctx = ApiContext(engine)
    previous = (connection.async_engine, connection.AsyncSessionLocal)
    connection.async_engine = engine
    connection.AsyncSessionLocal = ctx.SessionLocal

    yield ctx

    connection.async_engine, connection.AsyncSessionLocal = previous
    asyncio.run(engine.dispose())


@pytest.fixture
def client(api_db):
    """TestClient sobre la base de datos de api_db (sin lifespan)."""
    from fastapi.testclient import TestClient
    from src.api.app import create_app

    return TestClient(create_app(), raise_server_exceptions=False)


@pytest.fixture
def user_id(api_db) -> int:
    return api_db.create_user()


@pytest.fixture
def headers(user_id) -> dict:
    """Cabeceras con el usuario autenticado."""
    return {"X-User-ID": str(user_id)}
