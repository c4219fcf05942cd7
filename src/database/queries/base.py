"""
Base Query Class

Proporciona métodos comunes para todas las queries.
Implementa el patrón Repository con aislamiento por usuario.

Las queries solo hacen flush: el commit lo hace quien abre la sesión
(`get_async_db`), de modo que una operación completa es una transacción.
"""

from typing import TypeVar, Generic, Optional, List, Type, Any, Dict
from sqlalchemy import select, and_, func, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.utils.errors import wrap_database_error
from src.utils.logger import get_logger

logger = get_logger(__name__)

# Type variable para el modelo
T = TypeVar('T')


class BaseQuery(Generic[T]):
    """
    Clase base para queries con operaciones CRUD comunes.

    Proporciona:
    - get_by_id: Buscar por ID dentro del usuario
    - get_all: Listar con filtros y paginación
    - create: Crear nuevo registro
    - update: Actualizar campos de un registro
    - delete: Borrado físico
    - count: Contar registros

    Uso:
        class ClienteQuery(BaseQuery[Cliente]):
            model = Cliente

        query = ClienteQuery()
        cliente = await query.get_by_id(db, 3, user_id=1)
    """

    model: Type[T] = None

    def __init__(self):
        if self.model is None:
            raise NotImplementedError("Subclass must define 'model' attribute")

    def _conditions(self, user_id: int, filters: Optional[Dict[str, Any]] = None) -> list:
        conditions = [self.model.user_id == user_id]
        for field, value in (filters or {}).items():
            if value is not None:
                conditions.append(getattr(self.model, field) == value)
        return conditions

    async def get_by_id(
        self,
        db: AsyncSession,
        record_id: Any,
        user_id: int
    ) -> Optional[T]:
        """
        Busca un registro por su ID.

        Args:
            db: Sesión de base de datos
            record_id: ID del registro
            user_id: ID del usuario propietario

        Returns:
            Registro encontrado o None
        """
        result = await db.execute(
            select(self.model).where(
                and_(self.model.id == record_id, self.model.user_id == user_id)
            )
        )
        return result.scalar_one_or_none()

    async def get_all(
        self,
        db: AsyncSession,
        user_id: int,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: str = "created_at",
        order_desc: bool = True
    ) -> List[T]:
        """
        Obtiene los registros del usuario.

        Args:
            db: Sesión de base de datos
            user_id: ID del usuario
            filters: Igualdades campo=valor (se ignoran los None)
            limit: Límite de resultados
            offset: Offset para paginación
            order_by: Campo para ordenar
            order_desc: Orden descendente

        Returns:
            Lista de registros
        """
        order_field = getattr(self.model, order_by, self.model.id)
        if order_desc:
            order_field = order_field.desc()

        query = (
            select(self.model)
            .where(and_(*self._conditions(user_id, filters)))
            .order_by(order_field, self.model.id)
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, data: dict) -> T:
        """
        Crea un nuevo registro.

        Args:
            db: Sesión de base de datos
            data: Diccionario con datos del registro (incluye user_id)

        Returns:
            Registro creado
        """
        if 'user_id' not in data:
            raise ValueError("user_id es requerido")

        try:
            record = self.model(**data)
            db.add(record)
            await db.flush()
            await db.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"Error creando {self.model.__name__}: {e}")
            raise wrap_database_error(e, operation="create", entity_type=self.model.__name__)

        logger.info(f"{self.model.__name__} creado: {record.id}")
        return record

    async def update(self, db: AsyncSession, record: T, data: dict) -> T:
        """
        Actualiza campos de un registro ya cargado.

        Args:
            db: Sesión de base de datos
            record: Registro a modificar
            data: Campos a actualizar (se ignoran los que no existen)

        Returns:
            Registro actualizado
        """
        for key, value in data.items():
            if hasattr(record, key):
                setattr(record, key, value)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error actualizando {self.model.__name__}: {e}")
            raise wrap_database_error(e, operation="update", entity_type=self.model.__name__)

        logger.info(f"{self.model.__name__} actualizado: {record.id}")
        return record

    async def delete(self, db: AsyncSession, record: T) -> None:
        """Borra físicamente un registro."""
        try:
            await db.delete(record)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error eliminando {self.model.__name__}: {e}")
            raise wrap_database_error(e, operation="delete", entity_type=self.model.__name__)

        logger.info(f"{self.model.__name__} eliminado: {record.id}")

    async def delete_where(self, db: AsyncSession, user_id: int, *conditions) -> int:
        """
        Borra en bloque los registros del usuario que cumplan las condiciones.

        Returns:
            Número de filas eliminadas
        """
        result = await db.execute(
            delete(self.model)
            .where(and_(self.model.user_id == user_id, *conditions))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def count(
        self,
        db: AsyncSession,
        user_id: int,
        filters: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Cuenta registros del usuario.

        Args:
            db: Sesión de base de datos
            user_id: ID del usuario
            filters: Igualdades campo=valor

        Returns:
            Número de registros
        """
        result = await db.execute(
            select(func.count(self.model.id)).where(and_(*self._conditions(user_id, filters)))
        )
        return result.scalar() or 0

    async def exists(self, db: AsyncSession, record_id: Any, user_id: int) -> bool:
        """Verifica si existe un registro del usuario."""
        record = await self.get_by_id(db, record_id, user_id)
        return record is not None
