"""
Servicio de Programaciones (series)

Una programación genera de golpe todos los ingresos o gastos de un rango
de fechas y guarda en `datos_base` lo común a todos ellos para poder
extender la serie a otro año, regenerarla o editarla en bloque.

Todas las operaciones trabajan sobre la sesión recibida: la serie
completa se crea, regenera o borra en una única transacción.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from config.constants import (
    ANO_MAX,
    ANO_MIN,
    EstadoFactura,
    TipoProgramacion,
)
from src.database.models import FacturaEmitida, Gasto, Programacion
from src.database.queries import (
    expense_queries,
    invoice_queries,
    programacion_queries,
)
from src.database.queries.client_queries import get_active_client
from src.services import expense_service, invoice_service
from src.utils.errors import BusinessError, NotFoundError, ValidationError
from src.utils.logger import get_logger, audit_logger
from src.utils.schedule_calculator import (
    ScheduleConfig,
    calculate_extension_dates,
    calculate_scheduled_dates,
    validate_schedule_config,
)

logger = get_logger(__name__)

CAMPOS_SCHEDULE = ("periodicidad", "tipo_dia", "fecha_inicio")
CAMPOS_INGRESO = CAMPOS_SCHEDULE + ("cliente_id", "concepto", "base_imponible")
CAMPOS_GASTO = CAMPOS_SCHEDULE + ("concepto", "proveedor_nombre", "base_imponible")

CAMPOS_LOTE_FACTURA = ("concepto", "descripcion_detallada", "base_imponible", "tipo_iva", "tipo_irpf")
CAMPOS_LOTE_GASTO = (
    "concepto", "descripcion", "categoria", "proveedor_nombre", "proveedor_cif",
    "base_imponible", "tipo_iva", "tipo_irpf", "es_deducible", "porcentaje_deducible",
)


# ============================================================================
# CONFIGURACIÓN
# ============================================================================

def require_fields(data: Dict[str, Any], campos: tuple) -> None:
    faltan = [c for c in campos if data.get(c) in (None, "")]
    if faltan:
        raise ValidationError(f"Faltan campos requeridos: {', '.join(faltan)}")


def build_schedule(
    periodicidad: str,
    tipo_dia: str,
    fecha_inicio: Optional[date],
    dia_especifico: Optional[int] = None,
    fecha_fin: Optional[date] = None,
    target_end_year: Optional[int] = None
) -> ScheduleConfig:
    """
    Construye y valida la configuración de fechas.

    Raises:
        ValidationError: Periodicidad o tipo de día desconocidos, o
            configuración que no genera un número válido de fechas
    """
    try:
        config = ScheduleConfig(
            periodicidad=periodicidad,
            tipo_dia=tipo_dia,
            fecha_inicio=fecha_inicio,
            dia_especifico=dia_especifico,
            fecha_fin=fecha_fin,
            target_end_year=target_end_year,
        )
    except ValueError:
        raise ValidationError("Periodicidad o tipo de día no válidos")

    result = validate_schedule_config(config, max_records=settings.MAX_SCHEDULED_RECORDS)
    if not result:
        raise ValidationError(result.error)
    return config


async def resolve_target_end_year(
    db: AsyncSession,
    user_id: int,
    data: Dict[str, Any]
) -> Optional[int]:
    """
    Año hasta el que se genera una serie sin fecha de fin: el indicado,
    el último año con registros del usuario o el año en curso.
    """
    if data.get("fecha_fin"):
        return None
    if data.get("target_end_year"):
        return data["target_end_year"]
    max_year = await programacion_queries.get_max_record_year(db, user_id)
    return max(max_year or 0, date.today().year)


def _invoice_base(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "cliente_id": data["cliente_id"],
        "datos_facturacion_id": data.get("datos_facturacion_id"),
        "concepto": data["concepto"],
        "descripcion_detallada": data.get("descripcion_detallada"),
        "base_imponible": data["base_imponible"],
        "tipo_iva": data.get("tipo_iva", settings.DEFAULT_TIPO_IVA),
        "tipo_irpf": data.get("tipo_irpf", settings.DEFAULT_TIPO_IRPF),
        "serie": data.get("serie") or settings.DEFAULT_INVOICE_SERIE,
        "estado": data.get("estado") or EstadoFactura.PENDIENTE.value,
    }


def _expense_base(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "concepto": data["concepto"],
        "descripcion": data.get("descripcion"),
        "categoria": data.get("categoria"),
        "proveedor_nombre": data["proveedor_nombre"],
        "proveedor_cif": data.get("proveedor_cif"),
        "base_imponible": data["base_imponible"],
        "tipo_iva": data.get("tipo_iva", settings.DEFAULT_TIPO_IVA),
        "tipo_irpf": data.get("tipo_irpf", expense_service.DEFAULT_TIPO_IRPF_GASTO),
        "es_deducible": data.get("es_deducible", True),
        "porcentaje_deducible": data.get("porcentaje_deducible", 100.0),
        "pagado": bool(data.get("pagado")),
    }


# ============================================================================
# GENERACIÓN DE REGISTROS
# ============================================================================

async def _create_invoices(
    db: AsyncSession,
    user_id: int,
    programacion: Programacion,
    fechas: List[date]
) -> List[FacturaEmitida]:
    datos = programacion.datos_base or {}
    invoices = []
    for fecha in fechas:
        invoice = await invoice_service.create_invoice(db, user_id, {
            **datos,
            "fecha_emision": fecha,
            "programacion_id": programacion.id,
        })
        invoices.append(invoice)
    return invoices


async def _create_expenses(
    db: AsyncSession,
    user_id: int,
    programacion: Programacion,
    fechas: List[date]
) -> List[Gasto]:
    datos = dict(programacion.datos_base or {})
    datos.setdefault("concepto", "Gasto programado")
    if not datos.get("categoria"):
        datos["categoria"] = "Otros gastos"
    datos.setdefault("proveedor_nombre", "Proveedor")
    datos.setdefault("base_imponible", 0)

    expenses = []
    for fecha in fechas:
        expense = await expense_service.create_expense(db, user_id, {
            **datos,
            "fecha_emision": fecha,
            "programacion_id": programacion.id,
        })
        expenses.append(expense)
    return expenses


async def _create_records(
    db: AsyncSession,
    user_id: int,
    programacion: Programacion,
    fechas: List[date]
) -> list:
    if programacion.tipo == TipoProgramacion.INGRESO.value:
        return await _create_invoices(db, user_id, programacion, fechas)
    return await _create_expenses(db, user_id, programacion, fechas)


async def create_scheduled(
    db: AsyncSession,
    user_id: int,
    tipo: str,
    data: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Crea una programación y todos sus registros.

    Args:
        db: Sesión async de base de datos
        user_id: ID del usuario
        tipo: INGRESO o GASTO
        data: Configuración de fechas más los datos de los registros

    Returns:
        {"programacion": Programacion, "records": [...]}
    """
    es_ingreso = tipo == TipoProgramacion.INGRESO.value
    require_fields(data, CAMPOS_INGRESO if es_ingreso else CAMPOS_GASTO)

    config = build_schedule(
        data["periodicidad"],
        data["tipo_dia"],
        data["fecha_inicio"],
        data.get("dia_especifico"),
        data.get("fecha_fin"),
        await resolve_target_end_year(db, user_id, data),
    )
    fechas = calculate_scheduled_dates(config, max_records=settings.MAX_SCHEDULED_RECORDS)

    if es_ingreso:
        cliente = await get_active_client(db, data["cliente_id"], user_id)
        if not cliente:
            raise NotFoundError("Cliente no encontrado o inactivo", entity_type="cliente")
        datos_base = _invoice_base(data)
    else:
        # Valida el proveedor antes de crear nada
        expense_service.build_expense_fields(user_id, {**_expense_base(data), "fecha_emision": fechas[0]})
        datos_base = _expense_base(data)

    programacion = await programacion_queries.create_programacion(db, {
        "user_id": user_id,
        "tipo": tipo,
        "nombre": data.get("nombre") or f"Programación {data['concepto'][:50]}",
        "periodicidad": config.periodicidad.value,
        "tipo_dia": config.tipo_dia.value,
        "dia_especifico": data.get("dia_especifico"),
        "fecha_inicio": data["fecha_inicio"],
        "fecha_fin": data.get("fecha_fin"),
        "datos_base": datos_base,
    })

    records = await _create_records(db, user_id, programacion, fechas)

    await programacion_queries.update_programacion(db, programacion, {
        "total_generados": len(records),
        "ultimo_ano_generado": max(f.year for f in fechas),
    })

    audit_logger.bulk("create_series", tipo.lower(), len(records), {"programacion_id": programacion.id})
    logger.info(f"Programación {programacion.id}: {len(records)} registros generados")

    return {"programacion": programacion, "records": records}


async def extend_year(db: AsyncSession, user_id: int, year: int) -> Dict[str, Any]:
    """
    Genera las facturas de `year` para todas las series de ingresos que
    aún no lo tienen.

    Returns:
        {"year", "total_created", "by_programacion": [...]}
    """
    if year < ANO_MIN or year > ANO_MAX:
        raise ValidationError("Año inválido")

    programaciones = await programacion_queries.get_programaciones_pending_extension(db, user_id, year)
    if not programaciones:
        return {"total_created": 0, "message": "No hay programaciones pendientes de extender"}

    total = 0
    by_programacion = []
    for programacion in programaciones:
        fechas = calculate_extension_dates(
            programacion.periodicidad,
            programacion.tipo_dia,
            year,
            programacion.dia_especifico,
            programacion.fecha_fin,
        )
        fechas = [f for f in fechas if f >= programacion.fecha_inicio]

        created = await _create_invoices(db, user_id, programacion, fechas)
        await programacion_queries.update_programacion(db, programacion, {
            "total_generados": (programacion.total_generados or 0) + len(created),
            "ultimo_ano_generado": year,
        })

        total += len(created)
        by_programacion.append({
            "programacion_id": programacion.id,
            "nombre": programacion.nombre,
            "created": len(created),
        })

    audit_logger.bulk("extend_year", "factura", total, {"year": year})
    return {"year": year, "total_created": total, "by_programacion": by_programacion}


async def regenerate(
    db: AsyncSession,
    user_id: int,
    programacion: Programacion,
    data: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Rehace una serie con una configuración nueva.

    Borra todos los registros vinculados, guarda la configuración y
    vuelve a generar. Las facturas nuevas reciben números definitivos.
    """
    fecha_inicio = data.get("fecha_inicio") or programacion.fecha_inicio
    fecha_fin = data["fecha_fin"] if "fecha_fin" in data else programacion.fecha_fin
    periodicidad = data.get("periodicidad") or programacion.periodicidad
    tipo_dia = data.get("tipo_dia") or programacion.tipo_dia
    dia_especifico = data["dia_especifico"] if "dia_especifico" in data else programacion.dia_especifico

    try:
        config = ScheduleConfig(
            periodicidad=periodicidad,
            tipo_dia=tipo_dia,
            fecha_inicio=fecha_inicio,
            dia_especifico=dia_especifico,
            fecha_fin=fecha_fin,
            target_end_year=None if fecha_fin else (
                programacion.ultimo_ano_generado or date.today().year
            ),
        )
        fechas = calculate_scheduled_dates(config, max_records=settings.MAX_SCHEDULED_RECORDS)
    except ValueError:
        raise ValidationError("Periodicidad o tipo de día no válidos")

    if not fechas:
        raise BusinessError("La configuración no genera ninguna fecha válida")

    es_ingreso = programacion.tipo == TipoProgramacion.INGRESO.value
    if es_ingreso:
        deleted = await invoice_queries.delete_invoices_by_programacion(db, user_id, programacion.id)
    else:
        deleted = await expense_queries.delete_expenses_by_programacion(db, user_id, programacion.id)

    datos_base = dict(programacion.datos_base or {})
    if data.get("datos_base"):
        datos_base.update(data["datos_base"])

    await programacion_queries.update_programacion(db, programacion, {
        "periodicidad": config.periodicidad.value,
        "tipo_dia": config.tipo_dia.value,
        "dia_especifico": dia_especifico,
        "fecha_inicio": fecha_inicio,
        "fecha_fin": fecha_fin,
        "datos_base": datos_base,
        "total_generados": 0,
        "ultimo_ano_generado": None,
    })

    created = await _create_records(db, user_id, programacion, fechas)
    await programacion_queries.update_programacion(db, programacion, {
        "total_generados": len(created),
        "ultimo_ano_generado": max(f.year for f in fechas),
    })

    audit_logger.bulk("regenerate_series", programacion.tipo.lower(), len(created), {
        "programacion_id": programacion.id,
        "deleted": deleted,
    })

    return {
        "deleted_count": deleted,
        "created_count": len(created),
        "programacion_id": programacion.id,
        "new_dates": [f.isoformat() for f in fechas],
    }


async def delete_programacion(
    db: AsyncSession,
    user_id: int,
    programacion: Programacion,
    delete_records: bool = False
) -> Dict[str, Any]:
    """
    Borra una programación. Con `delete_records` borra también sus
    registros; si no, quedan sueltos (programacion_id a NULL).
    """
    deleted_ingresos = deleted_gastos = 0

    if delete_records:
        deleted_ingresos = await invoice_queries.delete_invoices_by_programacion(
            db, user_id, programacion.id
        )
        deleted_gastos = await expense_queries.delete_expenses_by_programacion(
            db, user_id, programacion.id
        )
    else:
        await invoice_queries.update_invoices_by_programacion(
            db, user_id, programacion.id, {"programacion_id": None}
        )
        await expense_queries.update_expenses_by_programacion(
            db, user_id, programacion.id, {"programacion_id": None}
        )

    await programacion_queries.delete_programacion(db, programacion)
    audit_logger.delete("programacion", programacion.id, {
        "deleted_ingresos": deleted_ingresos,
        "deleted_gastos": deleted_gastos,
    })

    return {
        "deletedIngresos": deleted_ingresos,
        "deletedGastos": deleted_gastos,
        "recordsKept": not delete_records,
    }


# ============================================================================
# OPERACIONES SOBRE UN REGISTRO DE LA SERIE
# ============================================================================

async def delete_invoice_with_series(
    db: AsyncSession,
    user_id: int,
    invoice: FacturaEmitida,
    delete_all: bool = False
) -> Dict[str, Any]:
    """
    Borra una factura o, con `delete_all`, las facturas no pagadas de su
    serie. Si la serie se queda vacía se borra también la programación.
    """
    if not delete_all or not invoice.programacion_id:
        if invoice.estado == EstadoFactura.PAGADA.value:
            raise BusinessError("No se puede eliminar una factura pagada")
        numero = invoice.numero_factura
        await invoice_queries.delete_invoice(db, invoice)
        return {"deleted_count": 1, "deleted_invoices": [numero]}

    programacion_id = invoice.programacion_id
    pendientes = await invoice_queries.get_invoices(
        db, user_id, programacion_id=programacion_id, limit=10_000
    )
    numeros = [i.numero_factura for i in pendientes if i.estado != EstadoFactura.PAGADA.value]

    deleted = await invoice_queries.delete_invoices_by_programacion(
        db, user_id, programacion_id, only_unpaid=True
    )
    await _fix_programacion_counters(db, user_id, programacion_id, TipoProgramacion.INGRESO.value)

    audit_logger.bulk("delete_series", "factura", deleted, {"programacion_id": programacion_id})
    return {"deleted_count": deleted, "deleted_invoices": numeros}


async def update_invoice_with_series(
    db: AsyncSession,
    user_id: int,
    invoice: FacturaEmitida,
    changes: Dict[str, Any],
    apply_to_all: bool = False
) -> Dict[str, Any]:
    """
    Edita una factura de una serie.

    Con `apply_to_all` los campos comunes se aplican a toda la serie y se
    guardan en `datos_base`. Si no, la factura se separa de la serie.
    """
    if not apply_to_all or not invoice.programacion_id:
        if not changes:
            raise ValidationError("No hay campos para actualizar")
        fields = invoice_service.recalculate_amounts(invoice, changes)
        fields.update(invoice_service.estado_fields(fields.get("estado"), fields.get("fecha_pago")))
        fields["programacion_id"] = None
        await invoice_queries.update_invoice(db, invoice, fields)
        return {"updated_count": 1, "invoices": [invoice]}

    lote = {k: v for k, v in changes.items() if k in CAMPOS_LOTE_FACTURA}
    if not lote:
        raise ValidationError("No hay campos para actualizar en lote")

    fields = invoice_service.recalculate_amounts(invoice, lote)
    programacion_id = invoice.programacion_id
    invoices = await invoice_queries.update_invoices_by_programacion(
        db, user_id, programacion_id, fields
    )

    programacion = await programacion_queries.get_programacion_by_id(db, programacion_id, user_id)
    if programacion:
        await programacion_queries.update_programacion(db, programacion, {
            "datos_base": {**(programacion.datos_base or {}), **lote},
        })

    audit_logger.bulk("update_series", "factura", len(invoices), {"programacion_id": programacion_id})
    return {"updated_count": len(invoices), "invoices": invoices}


async def delete_expense_with_series(
    db: AsyncSession,
    user_id: int,
    expense: Gasto,
    delete_all: bool = False
) -> Dict[str, Any]:
    """Borra un gasto o, con `delete_all`, todos los gastos de su serie."""
    if not delete_all or not expense.programacion_id:
        concepto = expense.concepto
        await expense_queries.delete_expense(db, expense)
        return {"deleted_count": 1, "concepto": concepto}

    programacion_id = expense.programacion_id
    deleted = await expense_queries.delete_expenses_by_programacion(db, user_id, programacion_id)
    await _fix_programacion_counters(db, user_id, programacion_id, TipoProgramacion.GASTO.value)

    audit_logger.bulk("delete_series", "gasto", deleted, {"programacion_id": programacion_id})
    return {"deleted_count": deleted, "concepto": None}


async def update_expense_with_series(
    db: AsyncSession,
    user_id: int,
    expense: Gasto,
    changes: Dict[str, Any],
    apply_to_all: bool = False
) -> Dict[str, Any]:
    if not apply_to_all or not expense.programacion_id:
        if not changes:
            raise ValidationError("No hay campos para actualizar")
        fields = expense_service.recalculate_expense(expense, changes)
        fields["programacion_id"] = None
        await expense_queries.update_expense(db, expense, fields)
        return {"updated_count": 1, "expenses": [expense]}

    lote = {k: v for k, v in changes.items() if k in CAMPOS_LOTE_GASTO}
    if not lote:
        raise ValidationError("No hay campos para actualizar en lote")

    fields = expense_service.recalculate_expense(expense, lote)
    # El riesgo depende de la fecha de cada gasto
    fields.pop("nivel_riesgo", None)

    programacion_id = expense.programacion_id
    expenses = await expense_queries.update_expenses_by_programacion(
        db, user_id, programacion_id, fields
    )

    programacion = await programacion_queries.get_programacion_by_id(db, programacion_id, user_id)
    if programacion:
        await programacion_queries.update_programacion(db, programacion, {
            "datos_base": {**(programacion.datos_base or {}), **lote},
        })

    return {"updated_count": len(expenses), "expenses": expenses}


# ============================================================================
# BORRADO POR AÑO
# ============================================================================

async def _fix_programacion_counters(
    db: AsyncSession,
    user_id: int,
    programacion_id: int,
    tipo: str
) -> None:
    """
    Ajusta contadores tras un borrado masivo. Una serie sin registros se
    reinicia (ingresos) o se borra (borrado de serie completa).
    """
    programacion = await programacion_queries.get_programacion_by_id(db, programacion_id, user_id)
    if not programacion:
        return

    if tipo == TipoProgramacion.INGRESO.value:
        stats = await invoice_queries.get_programacion_invoice_stats(db, programacion_id)
    else:
        stats = await expense_queries.get_programacion_expense_stats(db, programacion_id)

    if stats["remaining"] == 0:
        await programacion_queries.delete_programacion(db, programacion)
        return

    await programacion_queries.update_programacion(db, programacion, {
        "total_generados": stats["remaining"],
        "ultimo_ano_generado": stats["max_year"],
    })


async def delete_invoices_by_year(db: AsyncSession, user_id: int, year: int) -> Dict[str, Any]:
    """
    Borra todas las facturas de un año y ajusta las series afectadas.

    Una serie que se queda sin facturas conserva su configuración pero
    vuelve a contadores a cero, para poder extenderla de nuevo.
    """
    if year < ANO_MIN or year > ANO_MAX:
        raise ValidationError("Año inválido")

    total = await invoice_queries.count_invoices_in_year(db, user_id, year)
    if total == 0:
        return {"total_deleted": 0, "message": f"No hay facturas para eliminar en {year}"}

    programacion_ids = await invoice_queries.get_programacion_ids_in_year(db, user_id, year)
    deleted = await invoice_queries.delete_invoices_in_year(db, user_id, year)

    for programacion_id in programacion_ids:
        programacion = await programacion_queries.get_programacion_by_id(db, programacion_id, user_id)
        if not programacion:
            continue
        stats = await invoice_queries.get_programacion_invoice_stats(db, programacion_id)
        if stats["remaining"] == 0:
            fields = {"total_generados": 0, "ultimo_ano_generado": None}
        else:
            fields = {"total_generados": stats["remaining"], "ultimo_ano_generado": stats["max_year"]}
        await programacion_queries.update_programacion(db, programacion, fields)

    audit_logger.bulk("delete_year", "factura", deleted, {"year": year})
    return {"total_deleted": deleted, "year": year, "programaciones_afectadas": len(programacion_ids)}


async def delete_expenses_by_year(db: AsyncSession, user_id: int, year: int) -> Dict[str, Any]:
    if year < ANO_MIN or year > ANO_MAX:
        raise ValidationError("Año inválido")

    total = await expense_queries.count_expenses_in_year(db, user_id, year)
    if total == 0:
        return {"total_deleted": 0, "message": f"No hay gastos para eliminar en {year}"}

    programacion_ids = await expense_queries.get_programacion_ids_in_year(db, user_id, year)
    deleted = await expense_queries.delete_expenses_in_year(db, user_id, year)

    for programacion_id in programacion_ids:
        programacion = await programacion_queries.get_programacion_by_id(db, programacion_id, user_id)
        if not programacion:
            continue
        stats = await expense_queries.get_programacion_expense_stats(db, programacion_id)
        if stats["remaining"] == 0:
            fields = {"total_generados": 0, "ultimo_ano_generado": None}
        else:
            fields = {"total_generados": stats["remaining"], "ultimo_ano_generado": stats["max_year"]}
        await programacion_queries.update_programacion(db, programacion, fields)

    audit_logger.bulk("delete_year", "gasto", deleted, {"year": year})
    return {"total_deleted": deleted, "year": year, "programaciones_afectadas": len(programacion_ids)}
