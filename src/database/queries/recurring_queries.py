"""
Queries de Facturas Recurrentes

Plantillas, plantillas pendientes de generar e historial de generación.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, update, delete
from typing import Optional, List, Set
from datetime import date

from src.database.models import FacturaEmitida, RecurringInvoiceTemplate, RecurringInvoiceHistory
from src.database.queries.base import BaseQuery
from src.utils.logger import get_logger

logger = get_logger(__name__)


class TemplateQuery(BaseQuery[RecurringInvoiceTemplate]):
    model = RecurringInvoiceTemplate


template_query = TemplateQuery()


async def get_templates(
    db: AsyncSession,
    user_id: int,
    activo: Optional[bool] = None,
    cliente_id: Optional[int] = None
) -> List[RecurringInvoiceTemplate]:
    """Plantillas del usuario ordenadas por próxima generación."""
    return await template_query.get_all(
        db,
        user_id,
        filters={"activo": activo, "cliente_id": cliente_id},
        order_by="proxima_generacion",
        order_desc=False
    )


async def get_template_by_id(
    db: AsyncSession,
    template_id: int,
    user_id: int
) -> Optional[RecurringInvoiceTemplate]:
    return await template_query.get_by_id(db, template_id, user_id)


async def create_template(db: AsyncSession, data: dict) -> RecurringInvoiceTemplate:
    return await template_query.create(db, data)


async def update_template(
    db: AsyncSession,
    template: RecurringInvoiceTemplate,
    fields: dict
) -> RecurringInvoiceTemplate:
    return await template_query.update(db, template, fields)


async def delete_template(db: AsyncSession, template: RecurringInvoiceTemplate) -> None:
    """Borra la plantilla y su historial. Las facturas generadas se conservan."""
    await db.execute(
        update(FacturaEmitida)
        .where(FacturaEmitida.template_id == template.id)
        .values(template_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(RecurringInvoiceHistory)
        .where(RecurringInvoiceHistory.template_id == template.id)
        .execution_options(synchronize_session=False)
    )
    await template_query.delete(db, template)


async def get_due_templates(
    db: AsyncSession,
    today: date,
    user_id: Optional[int] = None
) -> List[RecurringInvoiceTemplate]:
    """
    Plantillas que deben generar factura hoy o antes.

    Solo activas, no pausadas y sin fecha_fin superada.

    Args:
        db: Sesión async de base de datos
        today: Fecha de referencia
        user_id: Limitar a un usuario (None = todos, para el proceso diario)

    Returns:
        Plantillas pendientes ordenadas por próxima generación
    """
    conditions = [
        RecurringInvoiceTemplate.activo == True,
        RecurringInvoiceTemplate.pausado == False,
        RecurringInvoiceTemplate.proxima_generacion <= today,
        or_(
            RecurringInvoiceTemplate.fecha_fin.is_(None),
            RecurringInvoiceTemplate.fecha_fin >= today
        ),
    ]
    if user_id is not None:
        conditions.append(RecurringInvoiceTemplate.user_id == user_id)

    result = await db.execute(
        select(RecurringInvoiceTemplate)
        .where(and_(*conditions))
        .order_by(RecurringInvoiceTemplate.proxima_generacion, RecurringInvoiceTemplate.id)
    )
    return list(result.scalars().all())


async def get_active_templates(
    db: AsyncSession,
    user_id: Optional[int] = None,
    template_id: Optional[int] = None
) -> List[RecurringInvoiceTemplate]:
    """Plantillas activas (para el backfill por línea de comandos)."""
    conditions = [RecurringInvoiceTemplate.activo == True]
    if user_id is not None:
        conditions.append(RecurringInvoiceTemplate.user_id == user_id)
    if template_id is not None:
        conditions.append(RecurringInvoiceTemplate.id == template_id)

    result = await db.execute(
        select(RecurringInvoiceTemplate)
        .where(and_(*conditions))
        .order_by(RecurringInvoiceTemplate.id)
    )
    return list(result.scalars().all())


# ============================================================================
# HISTORIAL
# ============================================================================

async def add_history(db: AsyncSession, data: dict) -> RecurringInvoiceHistory:
    """Registra un intento de generación."""
    entry = RecurringInvoiceHistory(**data)
    db.add(entry)
    await db.flush()
    return entry


async def get_history(
    db: AsyncSession,
    template_id: int,
    limit: int = 100
) -> List[RecurringInvoiceHistory]:
    result = await db.execute(
        select(RecurringInvoiceHistory)
        .where(RecurringInvoiceHistory.template_id == template_id)
        .order_by(
            RecurringInvoiceHistory.fecha_programada.desc(),
            RecurringInvoiceHistory.id.desc()
        )
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_generated_dates(db: AsyncSession, template_id: int) -> Set[date]:
    """Fechas programadas que ya tienen una generación exitosa."""
    result = await db.execute(
        select(RecurringInvoiceHistory.fecha_programada).where(
            and_(
                RecurringInvoiceHistory.template_id == template_id,
                RecurringInvoiceHistory.exitoso == True
            )
        )
    )
    return set(result.scalars().all())
