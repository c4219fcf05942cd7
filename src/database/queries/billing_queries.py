"""
Queries de Datos de Facturación

Perfiles de emisor del usuario. Como mucho uno activo y uno principal.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, update
from typing import Optional, List

from src.database.models import DatosFacturacion, FacturaEmitida
from src.database.queries.base import BaseQuery
from src.utils.logger import get_logger

logger = get_logger(__name__)


class DatosFacturacionQuery(BaseQuery[DatosFacturacion]):
    model = DatosFacturacion


datos_facturacion_query = DatosFacturacionQuery()


async def get_billing_configs(db: AsyncSession, user_id: int) -> List[DatosFacturacion]:
    """Perfiles del usuario: principal primero, luego activo, luego más recientes."""
    result = await db.execute(
        select(DatosFacturacion)
        .where(DatosFacturacion.user_id == user_id)
        .order_by(
            DatosFacturacion.es_principal.desc(),
            DatosFacturacion.activo.desc(),
            DatosFacturacion.created_at.desc(),
            DatosFacturacion.id.desc()
        )
    )
    return list(result.scalars().all())


async def get_billing_config_by_id(
    db: AsyncSession,
    config_id: int,
    user_id: int
) -> Optional[DatosFacturacion]:
    """Obtiene un perfil de facturación del usuario."""
    return await datos_facturacion_query.get_by_id(db, config_id, user_id)


async def get_active_billing_config(db: AsyncSession, user_id: int) -> Optional[DatosFacturacion]:
    """Perfil activo del usuario, si lo hay."""
    result = await db.execute(
        select(DatosFacturacion).where(
            and_(DatosFacturacion.user_id == user_id, DatosFacturacion.activo == True)
        )
    )
    return result.scalars().first()


async def count_billing_configs(db: AsyncSession, user_id: int) -> int:
    return await datos_facturacion_query.count(db, user_id)


async def get_most_recent_billing_config(
    db: AsyncSession,
    user_id: int,
    exclude_id: Optional[int] = None
) -> Optional[DatosFacturacion]:
    """Perfil a promover a principal: primero los activos, luego el más reciente."""
    query = select(DatosFacturacion).where(DatosFacturacion.user_id == user_id)
    if exclude_id is not None:
        query = query.where(DatosFacturacion.id != exclude_id)

    result = await db.execute(
        query.order_by(
            DatosFacturacion.activo.desc(),
            DatosFacturacion.created_at.desc(),
            DatosFacturacion.id.desc()
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def deactivate_all_billing_configs(db: AsyncSession, user_id: int) -> None:
    await db.execute(
        update(DatosFacturacion)
        .where(and_(DatosFacturacion.user_id == user_id, DatosFacturacion.activo == True))
        .values(activo=False)
        .execution_options(synchronize_session="fetch")
    )


async def clear_principal_billing_config(db: AsyncSession, user_id: int) -> None:
    await db.execute(
        update(DatosFacturacion)
        .where(and_(DatosFacturacion.user_id == user_id, DatosFacturacion.es_principal == True))
        .values(es_principal=False)
        .execution_options(synchronize_session="fetch")
    )


async def create_billing_config(db: AsyncSession, data: dict) -> DatosFacturacion:
    return await datos_facturacion_query.create(db, data)


async def update_billing_config(
    db: AsyncSession,
    config: DatosFacturacion,
    fields: dict
) -> DatosFacturacion:
    return await datos_facturacion_query.update(db, config, fields)


async def delete_billing_config(db: AsyncSession, config: DatosFacturacion) -> None:
    """Borra el perfil; las facturas que lo usaban quedan sin perfil."""
    await db.execute(
        update(FacturaEmitida)
        .where(FacturaEmitida.datos_facturacion_id == config.id)
        .values(datos_facturacion_id=None)
        .execution_options(synchronize_session=False)
    )
    await datos_facturacion_query.delete(db, config)
