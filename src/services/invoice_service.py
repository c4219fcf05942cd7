"""
Servicio de Facturas

Numeración y creación de facturas emitidas. Lo usan tanto la API como
las series (programaciones) y el generador de facturas recurrentes, de
modo que todas las facturas pasan por la misma numeración.

Numeración:
    - Formato YYYY-NNN (2024-001), o SERIE+YYYY-NNN si la serie no es la
      principal (B2024-001).
    - NNN es el máximo numérico del año para el usuario + 1.
    - En PostgreSQL se toma un advisory lock de transacción
      (user_id * 10000 + año) para que dos peticiones simultáneas no
      obtengan el mismo número. En SQLite basta con su único escritor.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from config.constants import EstadoFactura
from src.database.connection import advisory_xact_lock
from src.database.models import FacturaEmitida, User
from src.database.queries import invoice_queries
from src.database.queries.billing_queries import (
    get_active_billing_config,
    get_billing_config_by_id,
)
from src.utils.errors import ValidationError
from src.utils.helpers import generar_numero_factura
from src.utils.logger import get_logger, audit_logger
from src.utils.tax_calculations import calcular_importes
from src.utils.validators import BillingDataValidator

logger = get_logger(__name__)


@dataclass
class Emisor:
    """Datos del emisor que aparecen en la factura."""
    datos_facturacion_id: Optional[int]
    razon_social: Optional[str]
    nif: Optional[str]
    direccion: Optional[str]
    ciudad: Optional[str]
    iban: Optional[str]

    def validate(self) -> None:
        result = BillingDataValidator.validate(
            self.razon_social, self.nif, self.direccion, self.ciudad, self.iban
        )
        if not result:
            raise ValidationError(result.error)


def lock_key(user_id: int, year: int) -> int:
    return user_id * 10000 + year


async def next_invoice_number(
    db: AsyncSession,
    user_id: int,
    year: int,
    serie: Optional[str] = None
) -> str:
    """
    Reserva el siguiente número de factura del año.

    El lock se libera al terminar la transacción, así que la factura debe
    insertarse en la misma sesión.
    """
    if settings.FEATURE_POSTGRES_ADVISORY_LOCKS:
        await advisory_xact_lock(db, lock_key(user_id, year))

    last = await invoice_queries.get_last_invoice_sequence(db, user_id, year)
    prefijo = serie if serie and serie != settings.DEFAULT_INVOICE_SERIE else None
    return generar_numero_factura(year, last, prefijo)


async def preview_next_number(
    db: AsyncSession,
    user_id: int,
    year: int,
    serie: Optional[str] = None
) -> str:
    """Siguiente número sin reservarlo (para mostrarlo en el formulario)."""
    last = await invoice_queries.get_last_invoice_sequence(db, user_id, year)
    prefijo = serie if serie and serie != settings.DEFAULT_INVOICE_SERIE else None
    return generar_numero_factura(year, last, prefijo)


async def resolve_emisor(
    db: AsyncSession,
    user: User,
    datos_facturacion_id: Optional[int] = None
) -> Emisor:
    """
    Datos del emisor para una factura nueva.

    Orden de preferencia: el perfil indicado, el perfil activo y, si no
    hay ninguno, los datos de empresa del usuario. Un perfil sin NIF usa
    el NIF del usuario.

    Raises:
        ValidationError: Si el perfil indicado no existe
    """
    if datos_facturacion_id:
        config = await get_billing_config_by_id(db, datos_facturacion_id, user.id)
        if not config:
            raise ValidationError("Datos de facturación no encontrados")
    else:
        config = await get_active_billing_config(db, user.id)

    if config:
        return Emisor(
            datos_facturacion_id=config.id,
            razon_social=config.razon_social,
            nif=config.nif or user.nif,
            direccion=config.direccion,
            ciudad=config.ciudad,
            iban=config.iban,
        )

    return Emisor(
        datos_facturacion_id=None,
        razon_social=user.razon_social or user.nombre_completo,
        nif=user.nif,
        direccion=user.direccion,
        ciudad=user.ciudad,
        iban=user.iban,
    )


def estado_fields(estado: Optional[str], fecha_pago: Optional[date] = None) -> Dict[str, Any]:
    """
    Campos derivados del estado: PAGADA marca la factura como cobrada
    (hoy si no hay fecha); PENDIENTE la desmarca.
    """
    if estado == EstadoFactura.PAGADA.value:
        return {"estado": estado, "pagada": True, "fecha_pago": fecha_pago or date.today()}
    if estado == EstadoFactura.PENDIENTE.value:
        return {"estado": estado, "pagada": False, "fecha_pago": None}
    if estado:
        return {"estado": estado}
    return {}


async def create_invoice(
    db: AsyncSession,
    user_id: int,
    data: Dict[str, Any],
    numero_factura: Optional[str] = None
) -> FacturaEmitida:
    """
    Crea una factura calculando importes y número.

    Args:
        db: Sesión async de base de datos
        user_id: ID del usuario
        data: Campos de la factura. Requiere cliente_id, concepto,
            base_imponible y fecha_emision; tipos por defecto 21% IVA y
            7% IRPF.
        numero_factura: Número ya reservado (si no, se reserva aquí)

    Returns:
        Factura creada
    """
    fecha_emision: date = data["fecha_emision"]
    serie = data.get("serie") or settings.DEFAULT_INVOICE_SERIE
    tipo_iva = data.get("tipo_iva")
    tipo_irpf = data.get("tipo_irpf")
    tipo_iva = settings.DEFAULT_TIPO_IVA if tipo_iva is None else tipo_iva
    tipo_irpf = settings.DEFAULT_TIPO_IRPF if tipo_irpf is None else tipo_irpf

    importes = calcular_importes(data["base_imponible"], tipo_iva, tipo_irpf)

    if not numero_factura:
        numero_factura = await next_invoice_number(db, user_id, fecha_emision.year, serie)

    fields = {
        "user_id": user_id,
        "cliente_id": data["cliente_id"],
        "datos_facturacion_id": data.get("datos_facturacion_id"),
        "numero_factura": numero_factura,
        "serie": serie,
        "fecha_emision": fecha_emision,
        "fecha_vencimiento": data.get("fecha_vencimiento")
        or fecha_emision + timedelta(days=settings.DEFAULT_DIAS_VENCIMIENTO),
        "periodo_facturacion_inicio": data.get("periodo_facturacion_inicio"),
        "periodo_facturacion_fin": data.get("periodo_facturacion_fin"),
        "concepto": data["concepto"],
        "descripcion_detallada": data.get("descripcion_detallada"),
        "tipo_iva": tipo_iva,
        "tipo_irpf": tipo_irpf,
        "programacion_id": data.get("programacion_id"),
        "template_id": data.get("template_id"),
        "es_recurrente": bool(data.get("template_id")),
        **importes,
    }
    fields.update(estado_fields(data.get("estado") or EstadoFactura.PENDIENTE.value, data.get("fecha_pago")))

    invoice = await invoice_queries.create_invoice(db, fields)

    audit_logger.create("factura", invoice.id, {
        "numero_factura": invoice.numero_factura,
        "total_factura": invoice.total_factura,
    })

    return invoice


def recalculate_amounts(invoice: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Si cambian la base o algún tipo, añade las cuotas y el total nuevos.

    Vale para facturas y para plantillas de serie (cualquier objeto con
    base_imponible, tipo_iva y tipo_irpf).
    """
    if not any(k in changes for k in ("base_imponible", "tipo_iva", "tipo_irpf")):
        return changes

    base = changes.get("base_imponible", invoice.base_imponible)
    tipo_iva = changes.get("tipo_iva", invoice.tipo_iva)
    tipo_irpf = changes.get("tipo_irpf", invoice.tipo_irpf)
    return {**changes, **calcular_importes(base, tipo_iva, tipo_irpf)}


def invoice_info_messages(invoice: FacturaEmitida) -> list:
    """Mensajes informativos tras emitir una factura."""
    info = [f"Factura {invoice.numero_factura} generada correctamente"]
    if invoice.cuota_iva > 0:
        info.append(
            f"IVA repercutido: {invoice.cuota_iva:.2f}€ (ingresarás a AEAT en Modelo 303)"
        )
    if invoice.cuota_irpf > 0:
        info.append(
            f"IRPF retenido: {invoice.cuota_irpf:.2f}€ (recuperable en tu Renta anual)"
        )
    info.append(f"Total a cobrar: {invoice.total_factura:.2f}€")
    return info
