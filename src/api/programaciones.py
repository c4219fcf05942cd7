"""
Programaciones API

Series de ingresos y gastos: listado, previsualización de fechas,
regeneración, renombrado y borrado.
"""

from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_user_id, load_user
from src.api.schemas import ProgramacionNombre, ProgramacionPreview, ProgramacionRegenerate, envelope
from src.utils.errors import GestorError, NotFoundError, ValidationError
from src.utils.logger import get_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADA = "Programación no encontrada"


def _programacion_dict(programacion, counts: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    from src.database.models import model_to_dict
    from src.utils.schedule_calculator import get_periodicidad_label, get_schedule_description

    counts = counts or {}
    return {
        **model_to_dict(programacion),
        "total_ingresos": counts.get("ingresos", 0),
        "total_gastos": counts.get("gastos", 0),
        "frecuencia_label": get_periodicidad_label(programacion.periodicidad),
        "frecuencia_descripcion": get_schedule_description(
            programacion.periodicidad, programacion.tipo_dia, programacion.dia_especifico
        ),
    }


# ============================================================================
# SERVICE
# ============================================================================

class ProgramacionAPIService:
    """Servicio para API de programaciones."""

    async def _get_or_404(self, db, user_id: int, programacion_id: int):
        from src.database.queries import get_programacion_by_id

        programacion = await get_programacion_by_id(db, programacion_id, user_id)
        if not programacion:
            raise NotFoundError(MSG_NO_ENCONTRADA, entity_type="programacion")
        return programacion

    async def list_programaciones(self, user_id: int, tipo: Optional[str] = None) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.queries import get_programaciones, programacion_queries

            async with get_async_db() as db:
                programaciones = await get_programaciones(db, user_id, tipo=tipo)
                counts = await programacion_queries.get_record_counts(db, user_id)

                return envelope([_programacion_dict(p, counts.get(p.id)) for p in programaciones])

        except Exception as e:
            logger.error(f"Error listando programaciones: {e}")
            raise

    async def get_programacion(self, user_id: int, programacion_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.queries import programacion_queries

        async with get_async_db() as db:
            programacion = await self._get_or_404(db, user_id, programacion_id)
            counts = await programacion_queries.get_record_counts(db, user_id)
            return envelope(_programacion_dict(programacion, counts.get(programacion.id)))

    async def preview(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fechas que generaría una configuración, sin crear nada."""
        from config.settings import settings
        from src.database.connection import get_async_db
        from src.services import series_service
        from src.utils.schedule_calculator import (
            calculate_scheduled_dates,
            get_periodicidad_label,
            get_schedule_description,
            get_tipo_dia_label,
        )

        if not all(data.get(c) for c in series_service.CAMPOS_SCHEDULE):
            raise ValidationError("periodicidad, tipo_dia y fecha_inicio son requeridos")

        async with get_async_db() as db:
            target_end_year = await series_service.resolve_target_end_year(db, user_id, data)

        config = series_service.build_schedule(
            data["periodicidad"],
            data["tipo_dia"],
            data["fecha_inicio"],
            data.get("dia_especifico"),
            data.get("fecha_fin"),
            target_end_year,
        )
        fechas = calculate_scheduled_dates(config, max_records=settings.MAX_SCHEDULED_RECORDS)

        return envelope({
            "total": len(fechas),
            "dates": [f.isoformat() for f in fechas],
            "periodicidad_label": get_periodicidad_label(config.periodicidad),
            "tipo_dia_label": get_tipo_dia_label(config.tipo_dia, config.dia_especifico),
            "descripcion": get_schedule_description(
                config.periodicidad, config.tipo_dia, config.dia_especifico
            ),
        })

    async def count_records(self, user_id: int, programacion_id: int) -> Dict[str, Any]:
        from config.constants import TipoProgramacion
        from src.database.connection import get_async_db
        from src.database.queries import expense_queries, invoice_queries

        async with get_async_db() as db:
            programacion = await self._get_or_404(db, user_id, programacion_id)
            if programacion.tipo == TipoProgramacion.INGRESO.value:
                count = await invoice_queries.count_invoices_by_programacion(db, programacion.id)
            else:
                count = await expense_queries.count_expenses_by_programacion(db, programacion.id)

            return envelope({"count": count, "tipo": programacion.tipo})

    async def regenerate(self, user_id: int, programacion_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Borra los registros de la serie y la vuelve a generar."""
        try:
            from config.constants import TipoProgramacion
            from src.database.connection import get_async_db
            from src.services import series_service

            async with get_async_db() as db:
                await load_user(db, user_id)
                programacion = await self._get_or_404(db, user_id, programacion_id)
                result = await series_service.regenerate(db, user_id, programacion, data)

                registros = "facturas" if programacion.tipo == TipoProgramacion.INGRESO.value else "gastos"
                return envelope(result, info=[
                    f"Serie regenerada correctamente: {result['deleted_count']} {registros} "
                    f"eliminados, {result['created_count']} nuevos creados"
                ])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error regenerando programación {programacion_id}: {e}")
            raise

    async def rename(self, user_id: int, programacion_id: int, nombre: Optional[str]) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.queries import update_programacion

        if not nombre or not nombre.strip():
            raise ValidationError("El nombre es requerido", field="nombre")

        async with get_async_db() as db:
            programacion = await self._get_or_404(db, user_id, programacion_id)
            await update_programacion(db, programacion, {"nombre": nombre.strip()})
            return envelope(_programacion_dict(programacion), info=["Nombre actualizado correctamente"])

    async def delete(self, user_id: int, programacion_id: int, delete_records: bool) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import series_service

            async with get_async_db() as db:
                programacion = await self._get_or_404(db, user_id, programacion_id)
                result = await series_service.delete_programacion(db, user_id, programacion, delete_records)
                return envelope(result, info=["Programación eliminada correctamente"])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando programación {programacion_id}: {e}")
            raise


# Instancia global
programacion_api_service = ProgramacionAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

programaciones_router = APIRouter(prefix="/programaciones", tags=["programaciones"])


@programaciones_router.get("")
async def list_programaciones(
    tipo: Optional[str] = Query(default=None, pattern="^(INGRESO|GASTO)$"),
    user_id: int = Depends(get_user_id)
):
    """Series del usuario con el número de registros de cada una."""
    return await programacion_api_service.list_programaciones(user_id, tipo)


@programaciones_router.post("/preview")
async def preview(body: ProgramacionPreview, user_id: int = Depends(get_user_id)):
    """Previsualiza las fechas de una configuración."""
    return await programacion_api_service.preview(user_id, body.model_dump(exclude_unset=True))


@programaciones_router.get("/{programacion_id}")
async def get_programacion(programacion_id: int, user_id: int = Depends(get_user_id)):
    return await programacion_api_service.get_programacion(user_id, programacion_id)


@programaciones_router.get("/{programacion_id}/count")
async def count_records(programacion_id: int, user_id: int = Depends(get_user_id)):
    return await programacion_api_service.count_records(user_id, programacion_id)


@programaciones_router.put("/{programacion_id}/regenerate")
async def regenerate(
    programacion_id: int,
    body: ProgramacionRegenerate,
    user_id: int = Depends(get_user_id)
):
    return await programacion_api_service.regenerate(
        user_id, programacion_id, body.model_dump(exclude_unset=True)
    )


@programaciones_router.patch("/{programacion_id}/nombre")
async def rename(programacion_id: int, body: ProgramacionNombre, user_id: int = Depends(get_user_id)):
    return await programacion_api_service.rename(user_id, programacion_id, body.nombre)


@programaciones_router.delete("/{programacion_id}")
async def delete_programacion(
    programacion_id: int,
    delete_records: bool = Query(default=False),
    user_id: int = Depends(get_user_id)
):
    """Borra la serie; con delete_records también sus registros."""
    return await programacion_api_service.delete(user_id, programacion_id, delete_records)
