"""
Recurring Templates API

Plantillas de facturas recurrentes: alta, pausa, historial y generación
manual, pendiente o retroactiva (backfill).
"""

from datetime import date
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_user_id, load_user
from src.api.schemas import TemplateCreate, TemplatePause, TemplateUpdate, envelope
from src.utils.errors import BusinessError, GestorError, NotFoundError, ValidationError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADA = "Plantilla no encontrada"

# Cambiar cualquiera de estos campos recalcula la próxima generación
CAMPOS_RECURRENCIA = (
    "frecuencia",
    "tipo_dia_generacion",
    "dia_generacion",
    "intervalo_dias",
    "fecha_inicio",
)


def template_to_dict(template) -> Dict[str, Any]:
    from src.database.models import model_to_dict
    from src.utils.schedule_calculator import get_frequency_description, get_frequency_label

    return {
        **model_to_dict(template),
        "frecuencia_label": get_frequency_label(template.frecuencia),
        "frecuencia_descripcion": get_frequency_description(template.frecuencia, template.intervalo_dias),
    }


def _validate_recurrencia(data: Dict[str, Any]) -> None:
    from config.constants import Frecuencia, TipoDiaGeneracion

    if data.get("frecuencia") == Frecuencia.PERSONALIZADO.value and not data.get("intervalo_dias"):
        raise ValidationError(
            "La frecuencia personalizada requiere intervalo_dias", field="intervalo_dias"
        )

    if (data.get("tipo_dia_generacion") == TipoDiaGeneracion.DIA_ESPECIFICO.value
            and not data.get("dia_generacion")):
        raise ValidationError(
            "El tipo de día específico requiere dia_generacion", field="dia_generacion"
        )

    if data.get("fecha_fin") and data["fecha_fin"] < data["fecha_inicio"]:
        raise ValidationError(
            "La fecha de fin no puede ser anterior a la de inicio", field="fecha_fin"
        )


def _proxima_generacion(data: Dict[str, Any]) -> date:
    from src.utils.date_calculator import calcular_proxima_generacion_inicial

    return calcular_proxima_generacion_inicial(
        data["frecuencia"],
        data["fecha_inicio"],
        data["tipo_dia_generacion"],
        data.get("dia_generacion"),
        data.get("intervalo_dias"),
    )


# ============================================================================
# SERVICE
# ============================================================================

class RecurringTemplateAPIService:
    """Servicio para API de plantillas recurrentes."""

    async def _get_or_404(self, db, user_id: int, template_id: int):
        from src.database.queries import get_template_by_id

        template = await get_template_by_id(db, template_id, user_id)
        if not template:
            raise NotFoundError(MSG_NO_ENCONTRADA, entity_type="plantilla")
        return template

    async def _check_cliente(self, db, user_id: int, cliente_id: int) -> None:
        from src.database.queries.client_queries import get_active_client

        if not await get_active_client(db, cliente_id, user_id):
            raise NotFoundError("Cliente no encontrado o inactivo", entity_type="cliente")

    async def list_templates(
        self,
        user_id: int,
        activo: Optional[bool] = None,
        cliente_id: Optional[int] = None
    ) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.queries import get_templates

            async with get_async_db() as db:
                templates = await get_templates(db, user_id, activo=activo, cliente_id=cliente_id)
                return envelope([template_to_dict(t) for t in templates])

        except Exception as e:
            logger.error(f"Error listando plantillas: {e}")
            raise

    async def get_template(self, user_id: int, template_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db

        async with get_async_db() as db:
            return envelope(template_to_dict(await self._get_or_404(db, user_id, template_id)))

    async def create_template(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea una plantilla.

        La próxima generación se calcula a partir de fecha_inicio; si esta
        es pasada, se avanza hasta la primera ocurrencia desde hoy.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.queries import create_template

            _validate_recurrencia(data)
            fields = {k: v for k, v in data.items() if v is not None}

            async with get_async_db() as db:
                await load_user(db, user_id)
                await self._check_cliente(db, user_id, data["cliente_id"])

                fields["proxima_generacion"] = _proxima_generacion(data)
                template = await create_template(db, {**fields, "user_id": user_id})
                audit_logger.create("plantilla", template.id, {
                    "cliente_id": template.cliente_id,
                    "frecuencia": template.frecuencia,
                })

                return envelope(template_to_dict(template), info=[
                    f"Plantilla creada. Primera factura el {template.proxima_generacion.strftime('%d/%m/%Y')}"
                ])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando plantilla: {e}")
            raise

    async def update_template(self, user_id: int, template_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.queries import update_template

            if not changes:
                raise ValidationError("No hay campos para actualizar")

            async with get_async_db() as db:
                template = await self._get_or_404(db, user_id, template_id)

                if changes.get("cliente_id"):
                    await self._check_cliente(db, user_id, changes["cliente_id"])

                merged = {
                    **{c: getattr(template, c) for c in CAMPOS_RECURRENCIA + ("fecha_fin",)},
                    **changes,
                }
                _validate_recurrencia(merged)

                if any(c in changes for c in CAMPOS_RECURRENCIA):
                    changes["proxima_generacion"] = _proxima_generacion(merged)

                await update_template(db, template, changes)
                audit_logger.update("plantilla", template_id, new_values=changes)
                return envelope(template_to_dict(template))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando plantilla {template_id}: {e}")
            raise

    async def pause(self, user_id: int, template_id: int, motivo: Optional[str]) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.queries import update_template

        async with get_async_db() as db:
            template = await self._get_or_404(db, user_id, template_id)
            await update_template(db, template, {"pausado": True, "motivo_pausa": motivo})
            audit_logger.log("pause", "plantilla", template_id, user_id=user_id, details={"motivo": motivo})
            return envelope(template_to_dict(template), info=["Plantilla pausada"])

    async def resume(self, user_id: int, template_id: int) -> Dict[str, Any]:
        """Reanuda la plantilla. Las fechas saltadas se recuperan con backfill."""
        from src.database.connection import get_async_db
        from src.database.queries import update_template

        async with get_async_db() as db:
            template = await self._get_or_404(db, user_id, template_id)
            await update_template(db, template, {"pausado": False, "motivo_pausa": None})
            audit_logger.log("resume", "plantilla", template_id, user_id=user_id)
            return envelope(template_to_dict(template), info=["Plantilla reanudada"])

    async def history(self, user_id: int, template_id: int, limit: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import recurring_queries

        async with get_async_db() as db:
            await self._get_or_404(db, user_id, template_id)
            entries = await recurring_queries.get_history(db, template_id, limit=limit)
            return envelope([model_to_dict(e) for e in entries])

    async def generate_now(self, user_id: int, template_id: int) -> Dict[str, Any]:
        """Genera la factura de la próxima fecha programada sin esperar a ella."""
        try:
            from src.api.invoices import invoice_to_dict
            from src.database.connection import get_async_db
            from src.services import recurring_service

            async with get_async_db() as db:
                template = await self._get_or_404(db, user_id, template_id)
                if template.pausado:
                    raise BusinessError("La plantilla está pausada")
                if not template.activo:
                    raise BusinessError("La plantilla está inactiva")

                invoice = await recurring_service.generate_invoice_from_template(db, template)
                return envelope(invoice_to_dict(invoice), info=[
                    f"Factura {invoice.numero_factura} generada correctamente"
                ])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error generando factura de plantilla {template_id}: {e}")
            raise

    async def generate_due(self, user_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.services import recurring_service

        async with get_async_db() as db:
            summary = await recurring_service.generate_due_invoices(db, user_id=user_id)
            warnings = [f"Plantilla {e['template_id']}: {e['error']}" for e in summary["errors"]]
            return envelope(summary, warnings=warnings)

    async def backfill(
        self,
        user_id: int,
        template_id: int,
        until: Optional[date],
        dry_run: bool
    ) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import recurring_service

            async with get_async_db() as db:
                template = await self._get_or_404(db, user_id, template_id)
                result = await recurring_service.backfill_template(db, template, until, dry_run)

                info = []
                if dry_run:
                    info.append(f"{len(result['missing'])} facturas pendientes de generar")
                elif result["generated"]:
                    info.append(f"{len(result['generated'])} facturas generadas")
                warnings = [f"{f['fecha']}: {f['error']}" for f in result["failed"]]

                return envelope(result, info=info, warnings=warnings)

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error en backfill de plantilla {template_id}: {e}")
            raise

    async def delete_template(self, user_id: int, template_id: int) -> Dict[str, Any]:
        """Borra la plantilla; las facturas ya generadas se conservan."""
        try:
            from src.database.connection import get_async_db
            from src.database.queries import delete_template

            async with get_async_db() as db:
                template = await self._get_or_404(db, user_id, template_id)
                await delete_template(db, template)
                audit_logger.delete("plantilla", template_id)
                return envelope({"id": template_id}, info=["Plantilla eliminada correctamente"])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando plantilla {template_id}: {e}")
            raise


# Instancia global
template_api_service = RecurringTemplateAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

templates_router = APIRouter(prefix="/recurring-templates", tags=["recurring-templates"])


@templates_router.get("")
async def list_templates(
    activo: Optional[bool] = Query(default=None),
    cliente_id: Optional[int] = Query(default=None),
    user_id: int = Depends(get_user_id)
):
    """Plantillas ordenadas por próxima generación."""
    return await template_api_service.list_templates(user_id, activo, cliente_id)


@templates_router.post("", status_code=201)
async def create_template(body: TemplateCreate, user_id: int = Depends(get_user_id)):
    return await template_api_service.create_template(user_id, body.model_dump())


@templates_router.post("/generate-due")
async def generate_due(user_id: int = Depends(get_user_id)):
    """Genera las facturas de las plantillas con fecha vencida."""
    return await template_api_service.generate_due(user_id)


@templates_router.get("/{template_id}")
async def get_template(template_id: int, user_id: int = Depends(get_user_id)):
    return await template_api_service.get_template(user_id, template_id)


@templates_router.patch("/{template_id}")
async def update_template(template_id: int, body: TemplateUpdate, user_id: int = Depends(get_user_id)):
    return await template_api_service.update_template(
        user_id, template_id, body.model_dump(exclude_unset=True)
    )


@templates_router.patch("/{template_id}/pause")
async def pause_template(template_id: int, body: TemplatePause, user_id: int = Depends(get_user_id)):
    return await template_api_service.pause(user_id, template_id, body.motivo_pausa)


@templates_router.patch("/{template_id}/resume")
async def resume_template(template_id: int, user_id: int = Depends(get_user_id)):
    return await template_api_service.resume(user_id, template_id)


@templates_router.get("/{template_id}/history")
async def template_history(
    template_id: int,
    limit: int = Query(default=100, ge=1, le=500),
    user_id: int = Depends(get_user_id)
):
    return await template_api_service.history(user_id, template_id, limit)


@templates_router.post("/{template_id}/generate")
async def generate_now(template_id: int, user_id: int = Depends(get_user_id)):
    return await template_api_service.generate_now(user_id, template_id)


@templates_router.post("/{template_id}/backfill")
async def backfill_template(
    template_id: int,
    until: Optional[date] = Query(default=None),
    dry_run: bool = Query(default=False),
    user_id: int = Depends(get_user_id)
):
    """Genera las facturas de fechas pasadas que no llegaron a crearse."""
    return await template_api_service.backfill(user_id, template_id, until, dry_run)


@templates_router.delete("/{template_id}")
async def delete_template(template_id: int, user_id: int = Depends(get_user_id)):
    return await template_api_service.delete_template(user_id, template_id)
