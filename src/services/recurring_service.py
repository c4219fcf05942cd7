"""
Servicio de Facturas Recurrentes

Genera facturas a partir de plantillas:
- generate_invoice_from_template: una factura para una fecha programada
- generate_due_invoices: proceso diario sobre todas las plantillas vencidas
- detect_missing_invoices / backfill_template: rellena huecos cuando el
  proceso diario no se ejecutó (caídas, despliegues, altas con fecha de
  inicio pasada)

Cada intento queda en recurring_invoice_history, con éxito o con el
error, de modo que el backfill sabe qué fechas faltan.
"""

import traceback
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.database.models import FacturaEmitida, RecurringInvoiceTemplate
from src.database.queries import recurring_queries
from src.database.queries.client_queries import get_active_client
from src.database.queries.billing_queries import get_active_billing_config
from src.services import invoice_service
from src.utils.date_calculator import (
    calcular_periodo_facturacion,
    calcular_proxima_generacion,
    generate_all_scheduled_dates,
)
from src.utils.errors import BusinessError, GestorError, handle_errors
from src.utils.logger import get_logger, audit_logger, log_exception

logger = get_logger(__name__)


@dataclass
class GenerationSummary:
    """Resultado de un proceso de generación."""
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
        }


def _invoice_data(template: RecurringInvoiceTemplate, fecha_programada: date) -> Dict[str, Any]:
    data = {
        "cliente_id": template.cliente_id,
        "serie": template.serie,
        "fecha_emision": fecha_programada,
        "fecha_vencimiento": fecha_programada + timedelta(days=template.dias_vencimiento or 0),
        "concepto": template.concepto,
        "descripcion_detallada": template.descripcion_detallada,
        "base_imponible": template.base_imponible,
        "tipo_iva": template.tipo_iva,
        "tipo_irpf": template.tipo_irpf,
        "template_id": template.id,
    }

    if template.incluir_periodo_facturacion:
        inicio, fin = calcular_periodo_facturacion(
            template.frecuencia, fecha_programada, template.duracion_periodo_dias
        )
        data["periodo_facturacion_inicio"] = inicio
        data["periodo_facturacion_fin"] = fin

    return data


def next_generation_after(template: RecurringInvoiceTemplate, fecha: date) -> date:
    return calcular_proxima_generacion(
        template.frecuencia,
        fecha,
        template.tipo_dia_generacion,
        template.dia_generacion,
        template.intervalo_dias,
    )


async def generate_invoice_from_template(
    db: AsyncSession,
    template: RecurringInvoiceTemplate,
    fecha_programada: Optional[date] = None,
    advance_schedule: bool = True
) -> FacturaEmitida:
    """
    Crea la factura de una plantilla para una fecha programada.

    Args:
        db: Sesión async de base de datos
        template: Plantilla de origen
        fecha_programada: Fecha de emisión (por defecto la próxima generación)
        advance_schedule: Avanzar proxima_generacion tras generar

    Returns:
        Factura creada

    Raises:
        BusinessError: Si el cliente de la plantilla ya no está activo
    """
    fecha_programada = fecha_programada or template.proxima_generacion

    cliente = await get_active_client(db, template.cliente_id, template.user_id)
    if not cliente:
        raise BusinessError("El cliente de la plantilla no existe o está inactivo")

    data = _invoice_data(template, fecha_programada)
    config = await get_active_billing_config(db, template.user_id)
    if config:
        data["datos_facturacion_id"] = config.id

    invoice = await invoice_service.create_invoice(db, template.user_id, data)

    await recurring_queries.add_history(db, {
        "template_id": template.id,
        "invoice_id": invoice.id,
        "fecha_programada": fecha_programada,
        "exitoso": True,
        "numero_factura": invoice.numero_factura,
        "total_factura": invoice.total_factura,
    })

    fields: Dict[str, Any] = {
        "total_facturas_generadas": (template.total_facturas_generadas or 0) + 1,
        "ultima_factura_generada_id": invoice.id,
    }
    if not template.ultima_generacion or fecha_programada > template.ultima_generacion:
        fields["ultima_generacion"] = fecha_programada
    if advance_schedule and fecha_programada >= template.proxima_generacion:
        fields["proxima_generacion"] = next_generation_after(template, fecha_programada)

    await recurring_queries.update_template(db, template, fields)

    audit_logger.log(
        action="generate",
        entity_type="factura_recurrente",
        entity_id=invoice.id,
        user_id=template.user_id,
        details={"template_id": template.id, "fecha_programada": fecha_programada.isoformat()},
    )
    logger.info(
        f"Plantilla {template.id}: factura {invoice.numero_factura} generada para {fecha_programada}"
    )
    return invoice


async def _record_failure(
    db: AsyncSession,
    template_id: int,
    fecha_programada: date,
    error: Exception
) -> None:
    await recurring_queries.add_history(db, {
        "template_id": template_id,
        "fecha_programada": fecha_programada,
        "exitoso": False,
        "error_mensaje": getattr(error, "message", None) or str(error),
        "error_stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    })


@handle_errors()
async def generate_due_invoices(
    db: AsyncSession,
    today: Optional[date] = None,
    user_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Procesa todas las plantillas con generación pendiente.

    Cada plantilla se genera dentro de un savepoint: si falla, se deshace
    solo esa plantilla, se registra el error en el historial y se sigue
    con las demás.

    Returns:
        {"processed", "successful", "failed", "errors": [{template_id, error}]}
    """
    today = today or date.today()
    summary = GenerationSummary()

    if not settings.FEATURE_RECURRING_INVOICES:
        logger.info("Generación de recurrentes desactivada")
        return summary.to_dict()

    templates = await recurring_queries.get_due_templates(db, today, user_id=user_id)
    logger.info(f"{len(templates)} plantillas pendientes a {today}")

    for template in templates:
        summary.processed += 1
        template_id = template.id
        fecha_programada = template.proxima_generacion
        try:
            async with db.begin_nested():
                await generate_invoice_from_template(db, template, fecha_programada)
            summary.successful += 1
        except GestorError as e:
            summary.failed += 1
            summary.errors.append({"template_id": template_id, "error": e.message})
            await _record_failure(db, template_id, fecha_programada, e)
            logger.warning(f"Plantilla {template_id}: {e.message}")
        except Exception as e:
            summary.failed += 1
            summary.errors.append({"template_id": template_id, "error": str(e)})
            await _record_failure(db, template_id, fecha_programada, e)
            log_exception(logger, f"Error generando plantilla {template_id}", e)

    logger.info(
        f"Recurrentes: {summary.processed} procesadas, "
        f"{summary.successful} ok, {summary.failed} con error"
    )
    return summary.to_dict()


async def detect_missing_invoices(
    db: AsyncSession,
    template: RecurringInvoiceTemplate,
    hasta: Optional[date] = None
) -> List[date]:
    """
    Fechas programadas entre fecha_inicio y `hasta` sin generación exitosa.

    `hasta` se limita a la fecha_fin de la plantilla.
    """
    hasta = hasta or date.today()
    if template.fecha_fin and template.fecha_fin < hasta:
        hasta = template.fecha_fin

    if template.fecha_inicio > hasta:
        return []

    programadas = generate_all_scheduled_dates(
        template.frecuencia,
        template.fecha_inicio,
        hasta,
        template.tipo_dia_generacion,
        template.dia_generacion,
        template.intervalo_dias,
    )
    generadas = await recurring_queries.get_generated_dates(db, template.id)
    return [f for f in programadas if f not in generadas]


async def backfill_template(
    db: AsyncSession,
    template: RecurringInvoiceTemplate,
    hasta: Optional[date] = None,
    dry_run: bool = False
) -> Dict[str, Any]:
    """
    Genera en orden las facturas que faltan de una plantilla.

    Al terminar, proxima_generacion queda en la primera fecha posterior a
    la última generada (nunca retrocede).

    Returns:
        {"template_id", "missing": [...], "generated": [...], "failed": [...], "dry_run"}
    """
    missing = await detect_missing_invoices(db, template, hasta)
    result: Dict[str, Any] = {
        "template_id": template.id,
        "missing": [f.isoformat() for f in missing],
        "generated": [],
        "failed": [],
        "dry_run": dry_run,
    }

    if dry_run or not missing:
        return result

    template_id = template.id
    for fecha in missing:
        try:
            async with db.begin_nested():
                invoice = await generate_invoice_from_template(
                    db, template, fecha, advance_schedule=False
                )
            result["generated"].append({"fecha": fecha.isoformat(), "numero_factura": invoice.numero_factura})
        except GestorError as e:
            await _record_failure(db, template_id, fecha, e)
            result["failed"].append({"fecha": fecha.isoformat(), "error": e.message})

    # Un savepoint deshecho expira la plantilla
    await db.refresh(template)
    siguiente = next_generation_after(template, max(missing))
    if siguiente > template.proxima_generacion:
        await recurring_queries.update_template(db, template, {"proxima_generacion": siguiente})

    audit_logger.bulk("backfill", "factura_recurrente", len(result["generated"]), {
        "template_id": template.id,
    })
    return result


async def backfill_templates(
    db: AsyncSession,
    hasta: Optional[date] = None,
    user_id: Optional[int] = None,
    template_id: Optional[int] = None,
    dry_run: bool = False
) -> List[Dict[str, Any]]:
    """Backfill de todas las plantillas activas que cumplan los filtros."""
    templates = await recurring_queries.get_active_templates(db, user_id=user_id, template_id=template_id)
    started = datetime.utcnow()

    results = []
    for template in templates:
        results.append(await backfill_template(db, template, hasta, dry_run))

    logger.info(
        f"Backfill de {len(templates)} plantillas en "
        f"{(datetime.utcnow() - started).total_seconds():.2f}s"
    )
    return results
