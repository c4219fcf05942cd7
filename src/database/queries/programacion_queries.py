"""
Queries de Programación

Series de ingresos o gastos y sus contadores.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, func, extract
from typing import Optional, List, Dict

from src.database.models import Programacion, FacturaEmitida, Gasto
from src.database.queries.base import BaseQuery
from src.utils.logger import get_logger
from config.constants import TipoProgramacion

logger = get_logger(__name__)


class ProgramacionQuery(BaseQuery[Programacion]):
    model = Programacion


programacion_query = ProgramacionQuery()


async def get_programaciones(
    db: AsyncSession,
    user_id: int,
    tipo: Optional[str] = None
) -> List[Programacion]:
    """Programaciones del usuario, más recientes primero."""
    return await programacion_query.get_all(db, user_id, filters={"tipo": tipo})


async def get_programacion_by_id(
    db: AsyncSession,
    programacion_id: int,
    user_id: int
) -> Optional[Programacion]:
    return await programacion_query.get_by_id(db, programacion_id, user_id)


async def create_programacion(db: AsyncSession, data: dict) -> Programacion:
    programacion = await programacion_query.create(db, data)
    logger.info(
        f"Programación {programacion.id} creada ({programacion.tipo} {programacion.periodicidad})"
    )
    return programacion


async def update_programacion(db: AsyncSession, programacion: Programacion, fields: dict) -> Programacion:
    return await programacion_query.update(db, programacion, fields)


async def delete_programacion(db: AsyncSession, programacion: Programacion) -> None:
    await programacion_query.delete(db, programacion)


async def get_record_counts(db: AsyncSession, user_id: int) -> Dict[int, Dict[str, int]]:
    """
    Número de facturas y gastos vinculados a cada programación del usuario.

    Returns:
        {programacion_id: {"ingresos": n, "gastos": m}}
    """
    counts: Dict[int, Dict[str, int]] = {}

    ingresos = await db.execute(
        select(FacturaEmitida.programacion_id, func.count(FacturaEmitida.id))
        .where(
            and_(
                FacturaEmitida.user_id == user_id,
                FacturaEmitida.programacion_id.isnot(None)
            )
        )
        .group_by(FacturaEmitida.programacion_id)
    )
    for programacion_id, total in ingresos.all():
        counts.setdefault(programacion_id, {"ingresos": 0, "gastos": 0})["ingresos"] = total

    gastos = await db.execute(
        select(Gasto.programacion_id, func.count(Gasto.id))
        .where(and_(Gasto.user_id == user_id, Gasto.programacion_id.isnot(None)))
        .group_by(Gasto.programacion_id)
    )
    for programacion_id, total in gastos.all():
        counts.setdefault(programacion_id, {"ingresos": 0, "gastos": 0})["gastos"] = total

    return counts


async def get_programaciones_pending_extension(
    db: AsyncSession,
    user_id: int,
    year: int,
    tipo: str = TipoProgramacion.INGRESO.value
) -> List[Programacion]:
    """
    Programaciones que aún no han generado registros para `year`.

    Se excluyen las que terminan antes de ese año.
    """
    result = await db.execute(
        select(Programacion)
        .where(
            and_(
                Programacion.user_id == user_id,
                Programacion.tipo == tipo,
                or_(
                    Programacion.fecha_fin.is_(None),
                    extract("year", Programacion.fecha_fin) >= year
                ),
                or_(
                    Programacion.ultimo_ano_generado.is_(None),
                    Programacion.ultimo_ano_generado < year
                )
            )
        )
        .order_by(Programacion.id)
    )
    return list(result.scalars().all())


async def get_max_record_year(db: AsyncSession, user_id: int) -> Optional[int]:
    """Último año con facturas o gastos del usuario."""
    max_factura = await db.execute(
        select(func.max(FacturaEmitida.fecha_emision)).where(FacturaEmitida.user_id == user_id)
    )
    max_gasto = await db.execute(
        select(func.max(Gasto.fecha_emision)).where(Gasto.user_id == user_id)
    )
    years = [d.year for d in (max_factura.scalar(), max_gasto.scalar()) if d is not None]
    return max(years) if years else None
