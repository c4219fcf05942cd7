"""
Queries de Factura

Funciones para consultar y modificar facturas emitidas del usuario.
Incluye las operaciones en bloque sobre series y años, y los agregados
que usan los modelos fiscales.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func, update, extract
from typing import Optional, List, Dict, Any
from datetime import date

from src.database.models import FacturaEmitida
from src.database.queries.base import BaseQuery
from src.utils.helpers import extraer_secuencia
from src.utils.logger import get_logger
from config.constants import EstadoFactura

logger = get_logger(__name__)


class FacturaQuery(BaseQuery[FacturaEmitida]):
    model = FacturaEmitida


factura_query = FacturaQuery()


def _year_range(year: int):
    return date(year, 1, 1), date(year, 12, 31)


def _computables():
    """Facturas que cuentan para impuestos (todas salvo las canceladas)."""
    return FacturaEmitida.estado != EstadoFactura.CANCELADA.value


async def get_invoices(
    db: AsyncSession,
    user_id: int,
    fecha_desde: Optional[date] = None,
    fecha_hasta: Optional[date] = None,
    cliente_id: Optional[int] = None,
    estado: Optional[str] = None,
    pagada: Optional[bool] = None,
    programacion_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0
) -> List[FacturaEmitida]:
    """
    Lista facturas del usuario con filtros, más recientes primero.

    Args:
        db: Sesión async de base de datos
        user_id: ID del usuario
        fecha_desde: Emitidas desde (inclusive)
        fecha_hasta: Emitidas hasta (inclusive)
        cliente_id: Filtrar por cliente
        estado: Filtrar por estado
        pagada: Filtrar por cobro
        programacion_id: Filtrar por serie
        limit: Máximo de resultados
        offset: Desplazamiento

    Returns:
        Lista de facturas
    """
    conditions = _filters(user_id, fecha_desde, fecha_hasta, cliente_id, estado, pagada, programacion_id)

    result = await db.execute(
        select(FacturaEmitida)
        .where(and_(*conditions))
        .order_by(FacturaEmitida.fecha_emision.desc(), FacturaEmitida.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


def _filters(user_id, fecha_desde, fecha_hasta, cliente_id, estado, pagada, programacion_id) -> list:
    conditions = [FacturaEmitida.user_id == user_id]
    if fecha_desde:
        conditions.append(FacturaEmitida.fecha_emision >= fecha_desde)
    if fecha_hasta:
        conditions.append(FacturaEmitida.fecha_emision <= fecha_hasta)
    if cliente_id:
        conditions.append(FacturaEmitida.cliente_id == cliente_id)
    if estado:
        conditions.append(FacturaEmitida.estado == estado)
    if pagada is not None:
        conditions.append(FacturaEmitida.pagada == pagada)
    if programacion_id:
        conditions.append(FacturaEmitida.programacion_id == programacion_id)
    return conditions


async def get_invoice_totals(
    db: AsyncSession,
    user_id: int,
    fecha_desde: Optional[date] = None,
    fecha_hasta: Optional[date] = None,
    cliente_id: Optional[int] = None,
    estado: Optional[str] = None,
    pagada: Optional[bool] = None
) -> Dict[str, Any]:
    """Totales del listado (mismos filtros, sin paginar)."""
    conditions = _filters(user_id, fecha_desde, fecha_hasta, cliente_id, estado, pagada, None)

    result = await db.execute(
        select(
            func.count(FacturaEmitida.id),
            func.coalesce(func.sum(FacturaEmitida.base_imponible), 0),
            func.coalesce(func.sum(FacturaEmitida.cuota_iva), 0),
            func.coalesce(func.sum(FacturaEmitida.cuota_irpf), 0),
        ).where(and_(*conditions))
    )
    total, facturado, iva, irpf = result.one()
    return {
        "total": int(total or 0),
        "total_facturado": float(facturado or 0),
        "total_iva_repercutido": float(iva or 0),
        "total_irpf_retenido": float(irpf or 0),
    }


async def get_invoice_by_id(db: AsyncSession, invoice_id: int, user_id: int) -> Optional[FacturaEmitida]:
    """Obtiene una factura del usuario por ID."""
    return await factura_query.get_by_id(db, invoice_id, user_id)


async def get_last_invoice_sequence(db: AsyncSession, user_id: int, year: int) -> int:
    """
    Mayor secuencia numérica usada por el usuario en el año.

    Se compara el número, no el texto: '2024-1000' va después de '2024-999'.
    Cuenta todas las series porque la unicidad es (usuario, número).
    """
    result = await db.execute(
        select(FacturaEmitida.numero_factura).where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.numero_factura.like(f"%{year}-%")
            )
        )
    )
    secuencias = [extraer_secuencia(numero) for numero in result.scalars().all()]
    return max(secuencias, default=0)


async def create_invoice(db: AsyncSession, invoice_data: dict) -> FacturaEmitida:
    """
    Crea una factura.

    Args:
        db: Sesión async de base de datos
        invoice_data: Campos de la factura (número ya asignado)

    Returns:
        Factura creada
    """
    invoice = await factura_query.create(db, invoice_data)
    logger.info(f"Factura creada: {invoice.numero_factura}")
    return invoice


async def update_invoice(db: AsyncSession, invoice: FacturaEmitida, fields: dict) -> FacturaEmitida:
    return await factura_query.update(db, invoice, fields)


async def delete_invoice(db: AsyncSession, invoice: FacturaEmitida) -> None:
    await factura_query.delete(db, invoice)


# ============================================================================
# SERIES Y OPERACIONES EN BLOQUE
# ============================================================================

async def count_invoices_by_programacion(db: AsyncSession, programacion_id: int) -> int:
    result = await db.execute(
        select(func.count(FacturaEmitida.id)).where(
            FacturaEmitida.programacion_id == programacion_id
        )
    )
    return result.scalar() or 0


async def delete_invoices_by_programacion(
    db: AsyncSession,
    user_id: int,
    programacion_id: int,
    only_unpaid: bool = False
) -> int:
    """
    Borra las facturas de una serie.

    Args:
        only_unpaid: Conservar las facturas pagadas

    Returns:
        Número de facturas eliminadas
    """
    conditions = [FacturaEmitida.programacion_id == programacion_id]
    if only_unpaid:
        conditions.append(FacturaEmitida.estado != EstadoFactura.PAGADA.value)
    return await factura_query.delete_where(db, user_id, *conditions)


async def update_invoices_by_programacion(
    db: AsyncSession,
    user_id: int,
    programacion_id: int,
    fields: dict
) -> List[FacturaEmitida]:
    """
    Aplica los mismos campos a todas las facturas de una serie.

    Returns:
        Facturas actualizadas
    """
    await db.execute(
        update(FacturaEmitida)
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.programacion_id == programacion_id
            )
        )
        .values(**fields)
        .execution_options(synchronize_session="fetch")
    )
    return await get_invoices(db, user_id, programacion_id=programacion_id, limit=10_000)


async def count_invoices_in_year(db: AsyncSession, user_id: int, year: int) -> int:
    inicio, fin = _year_range(year)
    result = await db.execute(
        select(func.count(FacturaEmitida.id)).where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.fecha_emision.between(inicio, fin)
            )
        )
    )
    return result.scalar() or 0


async def get_programacion_ids_in_year(db: AsyncSession, user_id: int, year: int) -> List[int]:
    """Series con alguna factura en el año."""
    inicio, fin = _year_range(year)
    result = await db.execute(
        select(FacturaEmitida.programacion_id).distinct().where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.fecha_emision.between(inicio, fin),
                FacturaEmitida.programacion_id.isnot(None)
            )
        )
    )
    return [row for row in result.scalars().all()]


async def delete_invoices_in_year(db: AsyncSession, user_id: int, year: int) -> int:
    inicio, fin = _year_range(year)
    return await factura_query.delete_where(
        db, user_id, FacturaEmitida.fecha_emision.between(inicio, fin)
    )


async def get_programacion_invoice_stats(db: AsyncSession, programacion_id: int) -> Dict[str, Any]:
    """Facturas que quedan en una serie y el último año en que hay alguna."""
    result = await db.execute(
        select(
            func.count(FacturaEmitida.id),
            func.max(FacturaEmitida.fecha_emision)
        ).where(FacturaEmitida.programacion_id == programacion_id)
    )
    total, ultima = result.one()
    return {"remaining": int(total or 0), "max_year": ultima.year if ultima else None}


# ============================================================================
# AGREGADOS FISCALES
# ============================================================================

async def sum_invoices(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> Dict[str, float]:
    """Base, IVA e IRPF de las facturas emitidas en el periodo."""
    result = await db.execute(
        select(
            func.coalesce(func.sum(FacturaEmitida.base_imponible), 0),
            func.coalesce(func.sum(FacturaEmitida.cuota_iva), 0),
            func.coalesce(func.sum(FacturaEmitida.cuota_irpf), 0),
            func.count(FacturaEmitida.id),
        ).where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.fecha_emision.between(fecha_inicio, fecha_fin),
                _computables()
            )
        )
    )
    base, iva, irpf, total = result.one()
    return {
        "base": float(base or 0),
        "iva": float(iva or 0),
        "irpf": float(irpf or 0),
        "num_facturas": int(total or 0),
    }


async def sum_invoices_by_tipo_iva(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> Dict[float, Dict[str, float]]:
    """Base y cuota de IVA agrupadas por tipo impositivo."""
    result = await db.execute(
        select(
            FacturaEmitida.tipo_iva,
            func.coalesce(func.sum(FacturaEmitida.base_imponible), 0),
            func.coalesce(func.sum(FacturaEmitida.cuota_iva), 0),
        )
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.fecha_emision.between(fecha_inicio, fecha_fin),
                _computables()
            )
        )
        .group_by(FacturaEmitida.tipo_iva)
        .order_by(FacturaEmitida.tipo_iva)
    )
    return {
        float(tipo): {"base": float(base or 0), "cuota": float(cuota or 0)}
        for tipo, base, cuota in result.all()
    }


async def sum_invoices_by_client(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> List[Dict[str, Any]]:
    """Base facturada por cliente, de mayor a menor."""
    total_base = func.coalesce(func.sum(FacturaEmitida.base_imponible), 0)
    result = await db.execute(
        select(FacturaEmitida.cliente_id, total_base)
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.fecha_emision.between(fecha_inicio, fecha_fin),
                _computables()
            )
        )
        .group_by(FacturaEmitida.cliente_id)
        .order_by(total_base.desc())
    )
    return [{"cliente_id": cliente_id, "base": float(base or 0)} for cliente_id, base in result.all()]


async def sum_invoices_by_month(db: AsyncSession, user_id: int, year: int) -> Dict[int, float]:
    """Base facturada por mes del año (solo los meses con facturas)."""
    mes = extract("month", FacturaEmitida.fecha_emision)
    result = await db.execute(
        select(mes, func.coalesce(func.sum(FacturaEmitida.base_imponible), 0))
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.fecha_emision.between(*_year_range(year)),
                _computables()
            )
        )
        .group_by(mes)
    )
    return {int(m): float(base or 0) for m, base in result.all()}


async def get_pending_invoices(db: AsyncSession, user_id: int) -> List[FacturaEmitida]:
    """Facturas sin cobrar (pendientes o vencidas), la que vence antes primero."""
    result = await db.execute(
        select(FacturaEmitida)
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.estado.in_((EstadoFactura.PENDIENTE.value, EstadoFactura.VENCIDA.value))
            )
        )
        .order_by(FacturaEmitida.fecha_vencimiento.asc(), FacturaEmitida.id.asc())
    )
    return list(result.scalars().all())


async def get_invoices_for_cashflow(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> List[FacturaEmitida]:
    """
    Facturas que mueven caja en el periodo: las cobradas por fecha de
    cobro y las pendientes por fecha de emisión.
    """
    result = await db.execute(
        select(FacturaEmitida)
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                _computables(),
                or_(
                    and_(
                        FacturaEmitida.pagada == False,
                        FacturaEmitida.fecha_emision.between(fecha_inicio, fecha_fin)
                    ),
                    and_(
                        FacturaEmitida.pagada == True,
                        FacturaEmitida.fecha_pago.between(fecha_inicio, fecha_fin)
                    ),
                )
            )
        )
        .order_by(
            func.coalesce(FacturaEmitida.fecha_pago, FacturaEmitida.fecha_emision),
            FacturaEmitida.id
        )
    )
    return list(result.scalars().all())
