"""
Queries de Cliente

Funciones para consultar y modificar clientes del usuario.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func, update
from typing import Optional, List

from src.database.models import Cliente, FacturaEmitida, RecurringInvoiceTemplate
from src.database.queries.base import BaseQuery
from src.utils.logger import get_logger

logger = get_logger(__name__)


class ClienteQuery(BaseQuery[Cliente]):
    model = Cliente


cliente_query = ClienteQuery()


async def get_clients(
    db: AsyncSession,
    user_id: int,
    activo: Optional[bool] = None
) -> List[Cliente]:
    """
    Lista los clientes del usuario, el principal primero.

    Args:
        db: Sesión async de base de datos
        user_id: ID del usuario
        activo: Filtrar por estado (None = todos)

    Returns:
        Lista de clientes
    """
    query = select(Cliente).where(Cliente.user_id == user_id)
    if activo is not None:
        query = query.where(Cliente.activo == activo)

    result = await db.execute(
        query.order_by(Cliente.es_cliente_principal.desc(), Cliente.nombre)
    )
    return list(result.scalars().all())


async def get_client_by_id(db: AsyncSession, client_id: int, user_id: int) -> Optional[Cliente]:
    """Obtiene un cliente del usuario por ID."""
    return await cliente_query.get_by_id(db, client_id, user_id)


async def get_active_client(db: AsyncSession, client_id: int, user_id: int) -> Optional[Cliente]:
    """Obtiene un cliente solo si está activo."""
    result = await db.execute(
        select(Cliente).where(
            and_(
                Cliente.id == client_id,
                Cliente.user_id == user_id,
                Cliente.activo == True
            )
        )
    )
    return result.scalar_one_or_none()


async def get_client_by_cif(
    db: AsyncSession,
    cif: str,
    user_id: int,
    activo: Optional[bool] = None,
    exclude_id: Optional[int] = None
) -> Optional[Cliente]:
    """
    Busca un cliente por CIF.

    Args:
        db: Sesión async de base de datos
        cif: CIF/NIF normalizado
        user_id: ID del usuario
        activo: Filtrar por estado (None = cualquiera)
        exclude_id: Ignorar este cliente (para actualizaciones)

    Returns:
        Cliente encontrado o None
    """
    conditions = [Cliente.user_id == user_id, Cliente.cif == cif]
    if activo is not None:
        conditions.append(Cliente.activo == activo)
    if exclude_id is not None:
        conditions.append(Cliente.id != exclude_id)

    result = await db.execute(
        select(Cliente).where(and_(*conditions)).order_by(Cliente.id).limit(1)
    )
    return result.scalar_one_or_none()


async def get_principal_client(
    db: AsyncSession,
    user_id: int,
    exclude_id: Optional[int] = None
) -> Optional[Cliente]:
    """Cliente marcado como principal (como mucho hay uno)."""
    conditions = [Cliente.user_id == user_id, Cliente.es_cliente_principal == True]
    if exclude_id is not None:
        conditions.append(Cliente.id != exclude_id)

    result = await db.execute(select(Cliente).where(and_(*conditions)))
    return result.scalars().first()


async def count_client_invoices(db: AsyncSession, client_id: int, user_id: int) -> int:
    """Número de facturas emitidas a un cliente."""
    result = await db.execute(
        select(func.count(FacturaEmitida.id)).where(
            and_(
                FacturaEmitida.cliente_id == client_id,
                FacturaEmitida.user_id == user_id
            )
        )
    )
    return result.scalar() or 0


async def count_client_templates(db: AsyncSession, client_id: int, user_id: int) -> int:
    """Plantillas recurrentes que facturan a un cliente."""
    result = await db.execute(
        select(func.count(RecurringInvoiceTemplate.id)).where(
            and_(
                RecurringInvoiceTemplate.cliente_id == client_id,
                RecurringInvoiceTemplate.user_id == user_id
            )
        )
    )
    return result.scalar() or 0


async def clear_principal_client(db: AsyncSession, user_id: int) -> None:
    """Desmarca el cliente principal del usuario."""
    await db.execute(
        update(Cliente)
        .where(and_(Cliente.user_id == user_id, Cliente.es_cliente_principal == True))
        .values(es_cliente_principal=False)
        .execution_options(synchronize_session="fetch")
    )


async def create_client(db: AsyncSession, client_data: dict) -> Cliente:
    """Crea un cliente."""
    return await cliente_query.create(db, client_data)


async def update_client(db: AsyncSession, cliente: Cliente, fields: dict) -> Cliente:
    """Actualiza campos de un cliente."""
    return await cliente_query.update(db, cliente, fields)


async def delete_client(db: AsyncSession, cliente: Cliente) -> None:
    """Borra físicamente un cliente (solo si no tiene facturas ni plantillas)."""
    await cliente_query.delete(db, cliente)
