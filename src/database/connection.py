"""
Conexión a Base de Datos

Gestiona la conexión async a SQLite (desarrollo) o PostgreSQL (producción).
Incluye connection pooling, context managers y el bloqueo consultivo usado
al numerar facturas.
"""

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

# Base para los modelos
Base = declarative_base()

# Variables globales
async_engine = None
AsyncSessionLocal = None


def _ensure_sqlite_dir(database_url: str, prefix: str) -> bool:
    """Crea el directorio del fichero SQLite. Devuelve True si es en memoria."""
    db_path = database_url.replace(prefix, "")
    if not db_path or db_path.startswith(":memory:"):
        return True
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return False


def enable_sqlite_savepoints(engine) -> None:
    """
    Deja que SQLAlchemy emita BEGIN en SQLite y activa las claves foráneas.

    El driver abre las transacciones por su cuenta y eso rompe los
    SAVEPOINT que usa la generación de recurrentes.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_async_db(database_url: Optional[str] = None) -> None:
    """
    Inicializa la conexión asincrónica a la base de datos.

    Con SQLite en memoria se usa un StaticPool para que todas las sesiones
    compartan la misma conexión (y por tanto las mismas tablas).
    """
    global async_engine, AsyncSessionLocal

    from config.settings import settings

    database_url = database_url or settings.get_async_database_url()

    if "aiosqlite" in database_url:
        in_memory = _ensure_sqlite_dir(database_url, "sqlite+aiosqlite:///")
        if in_memory:
            async_engine = create_async_engine(
                database_url,
                echo=settings.DATABASE_ECHO,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            async_engine = create_async_engine(
                database_url,
                echo=settings.DATABASE_ECHO,
                connect_args={"check_same_thread": False}
            )
        enable_sqlite_savepoints(async_engine)
    else:
        # PostgreSQL async con connection pooling
        async_engine = create_async_engine(
            database_url,
            echo=settings.DATABASE_ECHO,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_recycle=settings.DATABASE_POOL_RECYCLE,
            pool_pre_ping=True
        )

    AsyncSessionLocal = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


async def create_tables_async() -> None:
    """Crea todas las tablas en la base de datos (async)."""
    global async_engine

    if async_engine is None:
        init_async_db()

    # Importar modelos para registrarlos
    from src.database import models  # noqa

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables_async() -> None:
    """Elimina todas las tablas (solo tests y desarrollo)."""
    if async_engine is None:
        return

    from src.database import models  # noqa

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@asynccontextmanager
async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager asincrónico para sesiones de base de datos.

    Una sesión es una transacción: commit al salir, rollback si hay error.

    Uso:
        async with get_async_db() as db:
            result = await db.execute(query)
    """
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        init_async_db()

    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def is_postgres_session(db: AsyncSession) -> bool:
    """Indica si la sesión trabaja contra PostgreSQL."""
    bind = db.get_bind()
    return bind.dialect.name == "postgresql"


async def advisory_xact_lock(db: AsyncSession, key: int) -> bool:
    """
    Toma un bloqueo consultivo de transacción en PostgreSQL.

    Se libera solo al terminar la transacción. En SQLite no hace nada:
    el único escritor ya serializa las operaciones.

    Returns:
        True si se tomó el bloqueo
    """
    if not is_postgres_session(db):
        return False

    await db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
    return True


async def close_async_db() -> None:
    """Cierra las conexiones async de la base de datos."""
    global async_engine, AsyncSessionLocal

    if async_engine is not None:
        await async_engine.dispose()
        async_engine = None
        AsyncSessionLocal = None
