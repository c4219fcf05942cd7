"""
Database Mixins

Mixins reutilizables para modelos de base de datos:
- TimestampMixin: Timestamps automáticos
- UserScopedMixin: Aislamiento de datos por usuario
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, select
from sqlalchemy.orm import declared_attr
from datetime import datetime


class TimestampMixin:
    """
    Mixin para timestamps automáticos.

    Agrega created_at y updated_at a los modelos.
    """
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )


class UserScopedMixin:
    """
    Mixin para datos que pertenecen a un usuario.

    Agrega user_id (FK a users) y los filtros de propiedad.
    """
    @declared_attr
    def user_id(cls):
        return Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )

    @classmethod
    def for_user(cls, user_id: int):
        """Filtro para obtener registros de un usuario"""
        return cls.user_id == user_id

    @classmethod
    def owned(cls, record_id: int, user_id: int):
        """Consulta de un registro concreto verificando su propietario."""
        return select(cls).where(cls.id == record_id, cls.user_id == user_id)
