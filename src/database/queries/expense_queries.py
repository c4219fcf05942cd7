"""
Queries de Gasto

Funciones para consultar y modificar gastos del usuario, con las mismas
operaciones de serie y año que las facturas y los agregados fiscales
(solo gastos deducibles).
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func, update, extract
from typing import Optional, List, Dict, Any
from datetime import date

from src.database.models import Gasto
from src.database.queries.base import BaseQuery
from src.utils.logger import get_logger

logger = get_logger(__name__)


class GastoQuery(BaseQuery[Gasto]):
    model = Gasto


gasto_query = GastoQuery()


def _filters(
    user_id: int,
    fecha_desde: Optional[date] = None,
    fecha_hasta: Optional[date] = None,
    categoria: Optional[str] = None,
    es_deducible: Optional[bool] = None,
    nivel_riesgo: Optional[str] = None,
    pagado: Optional[bool] = None,
    programacion_id: Optional[int] = None
) -> list:
    conditions = [Gasto.user_id == user_id]
    if fecha_desde:
        conditions.append(Gasto.fecha_emision >= fecha_desde)
    if fecha_hasta:
        conditions.append(Gasto.fecha_emision <= fecha_hasta)
    if categoria:
        conditions.append(Gasto.categoria == categoria)
    if es_deducible is not None:
        conditions.append(Gasto.es_deducible == es_deducible)
    if nivel_riesgo:
        conditions.append(Gasto.nivel_riesgo == nivel_riesgo)
    if pagado is not None:
        conditions.append(Gasto.pagado == pagado)
    if programacion_id:
        conditions.append(Gasto.programacion_id == programacion_id)
    return conditions


async def get_expenses(
    db: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    **filters
) -> List[Gasto]:
    """
    Lista gastos del usuario, más recientes primero.

    Args:
        db: Sesión async de base de datos
        user_id: ID del usuario
        limit: Máximo de resultados
        offset: Desplazamiento
        **filters: fecha_desde, fecha_hasta, categoria, es_deducible,
            nivel_riesgo, pagado, programacion_id

    Returns:
        Lista de gastos
    """
    result = await db.execute(
        select(Gasto)
        .where(and_(*_filters(user_id, **filters)))
        .order_by(Gasto.fecha_emision.desc(), Gasto.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_expense_totals(db: AsyncSession, user_id: int, **filters) -> Dict[str, Any]:
    """Número de gastos, suma de bases y suma del IVA deducible."""
    conditions = _filters(user_id, **filters)
    result = await db.execute(
        select(
            func.count(Gasto.id),
            func.coalesce(func.sum(Gasto.base_imponible), 0),
        ).where(and_(*conditions))
    )
    total, base = result.one()

    iva_result = await db.execute(
        select(func.coalesce(func.sum(Gasto.cuota_iva), 0)).where(
            and_(*conditions, Gasto.es_deducible == True)
        )
    )
    return {
        "total": int(total or 0),
        "suma_base_imponible": float(base or 0),
        "suma_iva_deducible": float(iva_result.scalar() or 0),
    }


async def get_expense_by_id(db: AsyncSession, expense_id: int, user_id: int) -> Optional[Gasto]:
    """Obtiene un gasto del usuario por ID."""
    return await gasto_query.get_by_id(db, expense_id, user_id)


async def create_expense(db: AsyncSession, expense_data: dict) -> Gasto:
    return await gasto_query.create(db, expense_data)


async def update_expense(db: AsyncSession, expense: Gasto, fields: dict) -> Gasto:
    return await gasto_query.update(db, expense, fields)


async def delete_expense(db: AsyncSession, expense: Gasto) -> None:
    await gasto_query.delete(db, expense)


async def get_independence_expenses(
    db: AsyncSession,
    user_id: int,
    year: int,
    month: int,
    last_day: int
) -> List[Gasto]:
    """Gastos de independencia (TRADE) registrados en un mes."""
    result = await db.execute(
        select(Gasto).where(
            and_(
                Gasto.user_id == user_id,
                Gasto.es_gasto_independencia == True,
                Gasto.fecha_emision.between(date(year, month, 1), date(year, month, last_day))
            )
        ).order_by(Gasto.fecha_emision)
    )
    return list(result.scalars().all())


# ============================================================================
# SERIES Y OPERACIONES EN BLOQUE
# ============================================================================

async def count_expenses_by_programacion(db: AsyncSession, programacion_id: int) -> int:
    result = await db.execute(
        select(func.count(Gasto.id)).where(Gasto.programacion_id == programacion_id)
    )
    return result.scalar() or 0


async def delete_expenses_by_programacion(db: AsyncSession, user_id: int, programacion_id: int) -> int:
    return await gasto_query.delete_where(db, user_id, Gasto.programacion_id == programacion_id)


async def update_expenses_by_programacion(
    db: AsyncSession,
    user_id: int,
    programacion_id: int,
    fields: dict
) -> List[Gasto]:
    await db.execute(
        update(Gasto)
        .where(and_(Gasto.user_id == user_id, Gasto.programacion_id == programacion_id))
        .values(**fields)
        .execution_options(synchronize_session="fetch")
    )
    return await get_expenses(db, user_id, limit=10_000, programacion_id=programacion_id)


async def count_expenses_in_year(db: AsyncSession, user_id: int, year: int) -> int:
    result = await db.execute(
        select(func.count(Gasto.id)).where(
            and_(
                Gasto.user_id == user_id,
                Gasto.fecha_emision.between(date(year, 1, 1), date(year, 12, 31))
            )
        )
    )
    return result.scalar() or 0


async def get_programacion_ids_in_year(db: AsyncSession, user_id: int, year: int) -> List[int]:
    result = await db.execute(
        select(Gasto.programacion_id).distinct().where(
            and_(
                Gasto.user_id == user_id,
                Gasto.fecha_emision.between(date(year, 1, 1), date(year, 12, 31)),
                Gasto.programacion_id.isnot(None)
            )
        )
    )
    return list(result.scalars().all())


async def delete_expenses_in_year(db: AsyncSession, user_id: int, year: int) -> int:
    return await gasto_query.delete_where(
        db, user_id, Gasto.fecha_emision.between(date(year, 1, 1), date(year, 12, 31))
    )


async def get_programacion_expense_stats(db: AsyncSession, programacion_id: int) -> Dict[str, Any]:
    result = await db.execute(
        select(func.count(Gasto.id), func.max(Gasto.fecha_emision)).where(
            Gasto.programacion_id == programacion_id
        )
    )
    total, ultima = result.one()
    return {"remaining": int(total or 0), "max_year": ultima.year if ultima else None}


# ============================================================================
# AGREGADOS FISCALES
# ============================================================================

async def sum_deductible_expenses(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date,
    categoria: Optional[str] = None
) -> Dict[str, float]:
    """Base, IVA e IRPF de los gastos deducibles del periodo."""
    conditions = [
        Gasto.user_id == user_id,
        Gasto.es_deducible == True,
        Gasto.fecha_emision.between(fecha_inicio, fecha_fin),
    ]
    if categoria:
        conditions.append(Gasto.categoria == categoria)

    result = await db.execute(
        select(
            func.coalesce(func.sum(Gasto.base_imponible), 0),
            func.coalesce(func.sum(Gasto.cuota_iva), 0),
            func.coalesce(func.sum(Gasto.cuota_irpf), 0),
            func.coalesce(func.sum(Gasto.total_factura), 0),
            func.count(Gasto.id),
        ).where(and_(*conditions))
    )
    base, iva, irpf, importe, total = result.one()
    return {
        "base": float(base or 0),
        "iva": float(iva or 0),
        "irpf": float(irpf or 0),
        "total_factura": float(importe or 0),
        "num_gastos": int(total or 0),
    }


async def sum_deductible_by_tipo_iva(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> Dict[float, Dict[str, float]]:
    result = await db.execute(
        select(
            Gasto.tipo_iva,
            func.coalesce(func.sum(Gasto.base_imponible), 0),
            func.coalesce(func.sum(Gasto.cuota_iva), 0),
        )
        .where(
            and_(
                Gasto.user_id == user_id,
                Gasto.es_deducible == True,
                Gasto.fecha_emision.between(fecha_inicio, fecha_fin)
            )
        )
        .group_by(Gasto.tipo_iva)
        .order_by(Gasto.tipo_iva)
    )
    return {
        float(tipo): {"base": float(base or 0), "cuota": float(cuota or 0)}
        for tipo, base, cuota in result.all()
    }


async def get_rent_expenses(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> List[Gasto]:
    """Alquileres con retención practicada (base de los modelos 115 y 180)."""
    result = await db.execute(
        select(Gasto).where(
            and_(
                Gasto.user_id == user_id,
                Gasto.categoria == "Alquiler",
                Gasto.es_deducible == True,
                Gasto.cuota_irpf > 0,
                Gasto.fecha_emision.between(fecha_inicio, fecha_fin)
            )
        ).order_by(Gasto.fecha_emision)
    )
    return list(result.scalars().all())


async def get_withholding_expenses(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> List[Gasto]:
    """Gastos con retención que no son alquileres (base del modelo 111)."""
    result = await db.execute(
        select(Gasto).where(
            and_(
                Gasto.user_id == user_id,
                Gasto.categoria != "Alquiler",
                Gasto.cuota_irpf > 0,
                Gasto.fecha_emision.between(fecha_inicio, fecha_fin)
            )
        ).order_by(Gasto.fecha_emision)
    )
    return list(result.scalars().all())


async def sum_deductible_expenses_by_month(db: AsyncSession, user_id: int, year: int) -> Dict[int, float]:
    """Base deducible por mes del año (solo los meses con gastos)."""
    mes = extract("month", Gasto.fecha_emision)
    result = await db.execute(
        select(mes, func.coalesce(func.sum(Gasto.base_imponible), 0))
        .where(
            and_(
                Gasto.user_id == user_id,
                Gasto.es_deducible == True,
                Gasto.fecha_emision.between(date(year, 1, 1), date(year, 12, 31))
            )
        )
        .group_by(mes)
    )
    return {int(m): float(base or 0) for m, base in result.all()}


async def get_expenses_for_cashflow(
    db: AsyncSession,
    user_id: int,
    fecha_inicio: date,
    fecha_fin: date
) -> List[Gasto]:
    """Gastos pagados por fecha de pago y pendientes por fecha de emisión."""
    result = await db.execute(
        select(Gasto)
        .where(
            and_(
                Gasto.user_id == user_id,
                or_(
                    and_(Gasto.pagado == False, Gasto.fecha_emision.between(fecha_inicio, fecha_fin)),
                    and_(Gasto.pagado == True, Gasto.fecha_pago.between(fecha_inicio, fecha_fin)),
                )
            )
        )
        .order_by(func.coalesce(Gasto.fecha_pago, Gasto.fecha_emision), Gasto.id)
    )
    return list(result.scalars().all())
