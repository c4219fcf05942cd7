"""
Queries de Usuario

Funciones para consultar y modificar usuarios (incluye los datos de
empresa y las preferencias de modelos fiscales, que viven en la misma fila).
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from src.database.models import User
from src.utils.logger import get_logger

logger = get_logger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """
    Busca un usuario por su ID.

    Args:
        db: Sesión async de base de datos
        user_id: ID del usuario

    Returns:
        Usuario encontrado o None
    """
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Busca un usuario por email (sin distinguir mayúsculas)."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, user_data: dict) -> User:
    """
    Crea un nuevo usuario.

    Args:
        db: Sesión async de base de datos
        user_data: Datos del usuario (email y nombre_completo obligatorios)

    Returns:
        Usuario creado
    """
    data = dict(user_data)
    data["email"] = data["email"].strip().lower()

    user = User(**data)
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info(f"Usuario creado: {user.email}")
    return user


async def update_user_fields(db: AsyncSession, user: User, fields: dict) -> User:
    """
    Actualiza campos de un usuario ya cargado.

    Args:
        db: Sesión async de base de datos
        user: Usuario a modificar
        fields: Campos y valores nuevos

    Returns:
        Usuario actualizado
    """
    for key, value in fields.items():
        setattr(user, key, value)

    await db.flush()
    logger.info(f"Usuario {user.id} actualizado: {', '.join(sorted(fields))}")
    return user
