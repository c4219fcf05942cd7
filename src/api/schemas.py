"""
API Schemas

Schemas Pydantic de entrada de la API REST y helpers de respuesta.
Proporciona validación y documentación automática para OpenAPI/Swagger.

Los schemas de actualización tienen todos los campos opcionales: los
routers usan `model_dump(exclude_unset=True)` para aplicar solo lo que
llega en el cuerpo.

Uso:
    from src.api.schemas import InvoiceCreate, envelope
"""

from typing import Optional, List, Dict, Any
from datetime import date, datetime

from pydantic import BaseModel, Field, ConfigDict

from config.constants import (
    CategoriaDocumento,
    EstadoDocumento,
    EstadoFactura,
    Frecuencia,
    Periodicidad,
    TipoDia,
    TipoDiaGeneracion,
)


# ============================================================================
# BASE SCHEMAS
# ============================================================================

class BaseSchema(BaseModel):
    """Schema base con configuración común."""
    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        json_schema_extra={"example": {}}
    )


def envelope(
    data: Any = None,
    info: Optional[List[str]] = None,
    warnings: Optional[List[str]] = None,
    alerts: Optional[List[Dict[str, Any]]] = None,
    meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Respuesta estándar de la API.

    Las claves info, warnings, alerts y meta solo aparecen si traen algo.
    """
    response: Dict[str, Any] = {"success": True, "data": data}
    if info:
        response["info"] = info
    if warnings:
        response["warnings"] = warnings
    if alerts:
        response["alerts"] = alerts
    if meta:
        response["meta"] = meta
    return response


# ============================================================================
# ERROR SCHEMAS
# ============================================================================

class ErrorResponse(BaseSchema):
    """Respuesta de error estándar."""
    success: bool = Field(False, description="Siempre false")
    error: str = Field(..., description="Tipo de error")
    message: str = Field(..., description="Mensaje para el usuario")
    category: Optional[str] = Field(None, description="Categoría del error")
    correlation_id: Optional[str] = Field(None, description="ID para soporte")
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Momento del error"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "VALIDATION",
                "message": "Trimestre debe estar entre 1 y 4",
                "category": "VALIDATION",
                "correlation_id": "5f0c2a8e-...",
                "timestamp": "2026-01-15T10:30:00Z",
            }
        }
    )


# ============================================================================
# SETTINGS SCHEMAS
# ============================================================================

class CompanySettingsUpdate(BaseSchema):
    """Datos de empresa del usuario."""
    razon_social: Optional[str] = Field(None, max_length=255)
    direccion: Optional[str] = Field(None, max_length=500)
    codigo_postal: Optional[str] = Field(None, max_length=10)
    ciudad: Optional[str] = Field(None, max_length=100)
    provincia: Optional[str] = Field(None, max_length=100)
    telefono: Optional[str] = Field(None, max_length=20)
    email_facturacion: Optional[str] = Field(None, max_length=255)
    iban: Optional[str] = Field(None, max_length=34)
    notas_factura: Optional[str] = None


class PreferencesUpdate(BaseSchema):
    """Modelos visibles, situación fiscal y datos de Seguridad Social."""
    mostrar_modelo_303: Optional[bool] = None
    mostrar_modelo_130: Optional[bool] = None
    mostrar_modelo_131: Optional[bool] = None
    mostrar_modelo_100: Optional[bool] = None
    mostrar_modelo_115: Optional[bool] = None
    mostrar_modelo_180: Optional[bool] = None
    mostrar_modelo_390: Optional[bool] = None
    mostrar_modelo_349: Optional[bool] = None
    mostrar_modelo_111: Optional[bool] = None
    mostrar_modelo_190: Optional[bool] = None
    mostrar_modelo_123: Optional[bool] = None
    mostrar_modelo_347: Optional[bool] = None
    mostrar_sii: Optional[bool] = None
    mostrar_vies_roi: Optional[bool] = None
    mostrar_redeme: Optional[bool] = None
    tiene_empleados: Optional[bool] = None
    tiene_operaciones_ue: Optional[bool] = None
    usa_modulos: Optional[bool] = None
    regimen_fiscal: Optional[str] = Field(None, max_length=50)
    es_trade: Optional[bool] = None
    tiene_local_alquilado: Optional[bool] = None
    tiene_tarifa_plana_ss: Optional[bool] = None
    base_cotizacion: Optional[float] = Field(None, description="Mayor que 0 o null")
    tipo_iva_predeterminado: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf_actual: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf_estimado: Optional[float] = Field(None, ge=0, le=100)
    timezone: Optional[str] = Field(None, max_length=50)
    idioma: Optional[str] = Field(None, max_length=5)
    fecha_alta_autonomo: Optional[date] = None
    fecha_alta_aeat: Optional[date] = None


# ============================================================================
# CLIENT SCHEMAS
# ============================================================================

class ClientCreate(BaseSchema):
    """Datos para crear un cliente."""
    nombre: str = Field(..., min_length=1, max_length=255, description="Razón social")
    cif: str = Field(..., min_length=1, max_length=20, description="NIF, CIF o NIE")
    direccion: Optional[str] = Field(None, max_length=500)
    codigo_postal: Optional[str] = Field(None, max_length=10)
    ciudad: Optional[str] = Field(None, max_length=100)
    provincia: Optional[str] = Field(None, max_length=100)
    pais: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    telefono: Optional[str] = Field(None, max_length=20)
    persona_contacto: Optional[str] = Field(None, max_length=255)
    es_cliente_principal: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "nombre": "Acme Consulting SL",
                "cif": "B12345674",
                "ciudad": "Madrid",
                "es_cliente_principal": True,
            }
        }
    )


class ClientUpdate(BaseSchema):
    nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    cif: Optional[str] = Field(None, max_length=20)
    direccion: Optional[str] = Field(None, max_length=500)
    codigo_postal: Optional[str] = Field(None, max_length=10)
    ciudad: Optional[str] = Field(None, max_length=100)
    provincia: Optional[str] = Field(None, max_length=100)
    pais: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    telefono: Optional[str] = Field(None, max_length=20)
    persona_contacto: Optional[str] = Field(None, max_length=255)
    es_cliente_principal: Optional[bool] = None
    activo: Optional[bool] = None


# ============================================================================
# BILLING CONFIG SCHEMAS
# ============================================================================

class BillingConfigCreate(BaseSchema):
    """Perfil de facturación (datos del emisor)."""
    razon_social: str = Field(..., max_length=255)
    nif: str = Field(..., max_length=20)
    direccion: str = Field(..., max_length=500)
    ciudad: str = Field(..., max_length=100)
    iban: str = Field(..., max_length=34)
    codigo_postal: Optional[str] = Field(None, max_length=10)
    provincia: Optional[str] = Field(None, max_length=100)
    telefono: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
    color_primario: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    notas_factura: Optional[str] = None
    activo: bool = False
    es_principal: bool = False


class BillingConfigUpdate(BaseSchema):
    razon_social: Optional[str] = Field(None, max_length=255)
    nif: Optional[str] = Field(None, max_length=20)
    direccion: Optional[str] = Field(None, max_length=500)
    ciudad: Optional[str] = Field(None, max_length=100)
    iban: Optional[str] = Field(None, max_length=34)
    codigo_postal: Optional[str] = Field(None, max_length=10)
    provincia: Optional[str] = Field(None, max_length=100)
    telefono: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
    color_primario: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    notas_factura: Optional[str] = None


# ============================================================================
# INVOICE SCHEMAS
# ============================================================================

class InvoiceCreate(BaseSchema):
    """Datos para emitir una factura."""
    cliente_id: int = Field(..., gt=0)
    fecha_emision: date
    concepto: str = Field(..., min_length=1, max_length=500)
    base_imponible: float = Field(..., ge=0)
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    serie: Optional[str] = Field(None, max_length=10)
    fecha_vencimiento: Optional[date] = None
    periodo_facturacion_inicio: Optional[date] = None
    periodo_facturacion_fin: Optional[date] = None
    descripcion_detallada: Optional[str] = None
    datos_facturacion_id: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cliente_id": 1,
                "fecha_emision": "2026-01-31",
                "concepto": "Desarrollo web enero",
                "base_imponible": 1000.0,
                "tipo_iva": 21,
                "tipo_irpf": 7,
            }
        }
    )


class InvoiceUpdate(BaseSchema):
    cliente_id: Optional[int] = None
    fecha_emision: Optional[date] = None
    fecha_vencimiento: Optional[date] = None
    periodo_facturacion_inicio: Optional[date] = None
    periodo_facturacion_fin: Optional[date] = None
    concepto: Optional[str] = Field(None, min_length=1, max_length=500)
    descripcion_detallada: Optional[str] = None
    base_imponible: Optional[float] = Field(None, ge=0)
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    estado: Optional[EstadoFactura] = None
    fecha_pago: Optional[date] = None


class InvoiceSeriesUpdate(InvoiceUpdate):
    """Edición de una factura de serie, opcionalmente para toda la serie."""
    apply_to_all: bool = False


class MarkPaidRequest(BaseSchema):
    fecha_pago: Optional[date] = None


class ScheduleFields(BaseSchema):
    """Configuración de fechas de una programación."""
    periodicidad: Periodicidad
    tipo_dia: TipoDia
    fecha_inicio: date
    dia_especifico: Optional[int] = Field(None, ge=1, le=31)
    fecha_fin: Optional[date] = None
    target_end_year: Optional[int] = None
    nombre: Optional[str] = Field(None, max_length=255)


class ScheduledInvoiceCreate(ScheduleFields):
    """Serie de facturas programadas."""
    cliente_id: int = Field(..., gt=0)
    concepto: str = Field(..., min_length=1, max_length=500)
    base_imponible: float = Field(..., ge=0)
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    descripcion_detallada: Optional[str] = None
    datos_facturacion_id: Optional[int] = None


# ============================================================================
# EXPENSE SCHEMAS
# ============================================================================

class ExpenseCreate(BaseSchema):
    """Factura recibida de un proveedor."""
    concepto: str = Field(..., min_length=1, max_length=500)
    fecha_emision: date
    proveedor_nombre: str = Field(..., min_length=1, max_length=255)
    base_imponible: float = Field(..., ge=0)
    proveedor_cif: Optional[str] = Field(None, max_length=20)
    descripcion: Optional[str] = None
    categoria: Optional[str] = Field(None, max_length=100)
    numero_factura: Optional[str] = Field(None, max_length=50)
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    porcentaje_deducible: Optional[float] = Field(None, ge=0, le=100)
    es_deducible: Optional[bool] = None
    motivo_no_deducible: Optional[str] = None
    notas_riesgo: Optional[str] = None
    pagado: bool = False
    fecha_pago: Optional[date] = None


class ExpenseUpdate(BaseSchema):
    concepto: Optional[str] = Field(None, min_length=1, max_length=500)
    fecha_emision: Optional[date] = None
    proveedor_nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    proveedor_cif: Optional[str] = Field(None, max_length=20)
    base_imponible: Optional[float] = Field(None, ge=0)
    descripcion: Optional[str] = None
    categoria: Optional[str] = Field(None, max_length=100)
    numero_factura: Optional[str] = Field(None, max_length=50)
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    porcentaje_deducible: Optional[float] = Field(None, ge=0, le=100)
    es_deducible: Optional[bool] = None
    motivo_no_deducible: Optional[str] = None
    notas_riesgo: Optional[str] = None
    pagado: Optional[bool] = None
    fecha_pago: Optional[date] = None


class ExpenseSeriesUpdate(ExpenseUpdate):
    apply_to_all: bool = False


class ScheduledExpenseCreate(ScheduleFields):
    """Serie de gastos programados."""
    concepto: str = Field(..., min_length=1, max_length=500)
    proveedor_nombre: str = Field(..., min_length=1, max_length=255)
    base_imponible: float = Field(..., ge=0)
    proveedor_cif: Optional[str] = Field(None, max_length=20)
    descripcion: Optional[str] = None
    categoria: Optional[str] = Field(None, max_length=100)
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    es_deducible: Optional[bool] = None
    porcentaje_deducible: Optional[float] = Field(None, ge=0, le=100)


# ============================================================================
# PROGRAMACION SCHEMAS
# ============================================================================

class ProgramacionPreview(BaseSchema):
    """Configuración a previsualizar. Los tres primeros campos son obligatorios."""
    periodicidad: Optional[str] = None
    tipo_dia: Optional[str] = None
    fecha_inicio: Optional[date] = None
    dia_especifico: Optional[int] = Field(None, ge=1, le=31)
    fecha_fin: Optional[date] = None
    target_end_year: Optional[int] = None


class ProgramacionRegenerate(BaseSchema):
    """Nueva configuración y datos base de una serie."""
    periodicidad: Optional[str] = None
    tipo_dia: Optional[str] = None
    fecha_inicio: Optional[date] = None
    dia_especifico: Optional[int] = Field(None, ge=1, le=31)
    fecha_fin: Optional[date] = None
    target_end_year: Optional[int] = None
    datos_base: Optional[Dict[str, Any]] = None


class ProgramacionNombre(BaseSchema):
    nombre: Optional[str] = Field(None, max_length=255)


# ============================================================================
# RECURRING TEMPLATE SCHEMAS
# ============================================================================

class TemplateCreate(BaseSchema):
    """Plantilla de factura recurrente."""
    nombre_plantilla: str = Field(..., min_length=1, max_length=255)
    cliente_id: int = Field(..., gt=0)
    concepto: str = Field(..., min_length=1, max_length=500)
    base_imponible: float = Field(..., ge=0)
    frecuencia: Frecuencia
    tipo_dia_generacion: TipoDiaGeneracion
    fecha_inicio: date
    descripcion: Optional[str] = None
    serie: Optional[str] = Field(None, max_length=10)
    descripcion_detallada: Optional[str] = None
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    dias_vencimiento: Optional[int] = Field(None, ge=0)
    incluir_periodo_facturacion: bool = True
    duracion_periodo_dias: Optional[int] = Field(None, gt=0)
    dia_generacion: Optional[int] = Field(None, ge=1, le=31)
    intervalo_dias: Optional[int] = Field(None, gt=0)
    fecha_fin: Optional[date] = None
    generar_pdf_automatico: bool = False
    enviar_email_automatico: bool = False


class TemplateUpdate(BaseSchema):
    nombre_plantilla: Optional[str] = Field(None, min_length=1, max_length=255)
    cliente_id: Optional[int] = None
    concepto: Optional[str] = Field(None, min_length=1, max_length=500)
    base_imponible: Optional[float] = Field(None, ge=0)
    frecuencia: Optional[Frecuencia] = None
    tipo_dia_generacion: Optional[TipoDiaGeneracion] = None
    fecha_inicio: Optional[date] = None
    descripcion: Optional[str] = None
    serie: Optional[str] = Field(None, max_length=10)
    descripcion_detallada: Optional[str] = None
    tipo_iva: Optional[float] = Field(None, ge=0, le=100)
    tipo_irpf: Optional[float] = Field(None, ge=0, le=100)
    dias_vencimiento: Optional[int] = Field(None, ge=0)
    incluir_periodo_facturacion: Optional[bool] = None
    duracion_periodo_dias: Optional[int] = Field(None, gt=0)
    dia_generacion: Optional[int] = Field(None, ge=1, le=31)
    intervalo_dias: Optional[int] = Field(None, gt=0)
    fecha_fin: Optional[date] = None
    activo: Optional[bool] = None
    generar_pdf_automatico: Optional[bool] = None
    enviar_email_automatico: Optional[bool] = None


class TemplatePause(BaseSchema):
    motivo_pausa: Optional[str] = None


# ============================================================================
# DOCUMENT SCHEMAS
# ============================================================================

class DocumentCreate(BaseSchema):
    """Metadatos de un documento. El fichero no pasa por la API."""
    nombre: str = Field(..., min_length=1, max_length=255)
    categoria: CategoriaDocumento
    descripcion: Optional[str] = None
    tipo_documento: Optional[str] = Field(None, max_length=100)
    archivo_nombre_original: Optional[str] = Field(None, max_length=255)
    archivo_tipo_mime: Optional[str] = Field(None, max_length=100)
    archivo_tamanio_bytes: Optional[int] = Field(None, ge=0)
    archivo_hash_sha256: Optional[str] = Field(None, pattern=r"^[0-9a-fA-F]{64}$")
    fecha_documento: Optional[date] = None
    fecha_vencimiento: Optional[date] = None
    notas: Optional[str] = None
    etiquetas: List[str] = Field(default_factory=list)


class DocumentUpdate(BaseSchema):
    nombre: Optional[str] = Field(None, min_length=1, max_length=255)
    categoria: Optional[CategoriaDocumento] = None
    descripcion: Optional[str] = None
    tipo_documento: Optional[str] = Field(None, max_length=100)
    fecha_documento: Optional[date] = None
    fecha_vencimiento: Optional[date] = None
    notas: Optional[str] = None
    etiquetas: Optional[List[str]] = None
    estado: Optional[EstadoDocumento] = None
    visible: Optional[bool] = None


# ============================================================================
# HEALTH SCHEMAS
# ============================================================================

class ComponentHealthSchema(BaseSchema):
    status: str = Field(..., description="up o down")
    latency_ms: float
    message: Optional[str] = None
    dialect: Optional[str] = None


class HealthResponse(BaseSchema):
    """Respuesta del health check completo."""
    status: str = Field(..., description="healthy o unhealthy")
    timestamp: str
    version: str
    environment: str
    uptime_seconds: float
    components: Dict[str, ComponentHealthSchema] = Field(default_factory=dict)
    features: Dict[str, bool] = Field(default_factory=dict)
    errors: Dict[str, int] = Field(default_factory=dict, description="Conteo por CATEGORIA:SEVERIDAD")


__all__ = [
    "BaseSchema",
    "envelope",
    "ErrorResponse",
    "CompanySettingsUpdate",
    "PreferencesUpdate",
    "ClientCreate",
    "ClientUpdate",
    "BillingConfigCreate",
    "BillingConfigUpdate",
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceSeriesUpdate",
    "MarkPaidRequest",
    "ScheduleFields",
    "ScheduledInvoiceCreate",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ExpenseSeriesUpdate",
    "ScheduledExpenseCreate",
    "ProgramacionPreview",
    "ProgramacionRegenerate",
    "ProgramacionNombre",
    "TemplateCreate",
    "TemplateUpdate",
    "TemplatePause",
    "DocumentCreate",
    "DocumentUpdate",
    "HealthResponse",
]
