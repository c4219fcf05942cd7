"""
Modelos de Base de Datos

Define las tablas de la base de datos usando SQLAlchemy.
Todos los datos de negocio pertenecen a un usuario (user_id) y llevan
timestamps automáticos.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Text,
    ForeignKey, Float, Index, CheckConstraint, BigInteger
)
from sqlalchemy.types import TypeDecorator, VARCHAR
from sqlalchemy.orm import relationship
from datetime import date, datetime
from typing import Any, Dict
import json

from src.database.connection import Base
from src.database.mixins import TimestampMixin, UserScopedMixin
from config.constants import (
    EstadoFactura,
    EstadoGasto,
    EstadoDocumento,
    NivelRiesgo,
)


class JSONType(TypeDecorator):
    """Tipo JSON compatible con SQLite y PostgreSQL"""
    impl = VARCHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            from sqlalchemy.dialects.postgresql import JSONB
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(VARCHAR(10000))

    def process_bind_param(self, value, dialect):
        if value is not None:
            if dialect.name != 'postgresql':
                return json.dumps(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            if isinstance(value, str):
                return json.loads(value)
        return value


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def model_to_dict(instance) -> Dict[str, Any]:
    """Columnas de un modelo como dict serializable a JSON."""
    return {
        column.name: _serialize(getattr(instance, column.key))
        for column in instance.__table__.columns
    }


class User(Base, TimestampMixin):
    """
    Usuario de miGestor (autónomo o pequeña empresa).

    Guarda la identidad fiscal, las preferencias de modelos visibles y los
    datos de empresa que aparecen en las facturas cuando no hay un perfil
    de facturación activo.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Identidad
    email = Column(String(255), unique=True, index=True, nullable=False)
    nombre_completo = Column(String(255), nullable=False)
    nif = Column(String(20), nullable=True)
    regimen_fiscal = Column(String(50), default="estimacion_directa_simplificada", nullable=False)
    fecha_alta_autonomo = Column(Date, nullable=True)
    fecha_alta_aeat = Column(Date, nullable=True)
    epigrafe_iae = Column(String(20), nullable=True)

    # TRADE
    es_trade = Column(Boolean, default=False, nullable=False)
    porcentaje_dependencia = Column(Float, default=0.0, nullable=False)
    tiene_local_alquilado = Column(Boolean, default=False, nullable=False)

    # Tipos por defecto
    tipo_iva_predeterminado = Column(Float, default=21.0, nullable=False)
    tipo_irpf_actual = Column(Float, default=7.0, nullable=False)
    tipo_irpf_estimado = Column(Float, nullable=True)

    # Seguridad Social
    tiene_tarifa_plana_ss = Column(Boolean, default=False, nullable=False)
    base_cotizacion = Column(Float, nullable=True)

    # Localización
    timezone = Column(String(50), default="Europe/Madrid", nullable=False)
    idioma = Column(String(5), default="es", nullable=False)

    # Situación
    tiene_empleados = Column(Boolean, default=False, nullable=False)
    tiene_operaciones_ue = Column(Boolean, default=False, nullable=False)
    usa_modulos = Column(Boolean, default=False, nullable=False)

    # Modelos visibles
    mostrar_modelo_303 = Column(Boolean, default=True, nullable=False)
    mostrar_modelo_130 = Column(Boolean, default=True, nullable=False)
    mostrar_modelo_131 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_100 = Column(Boolean, default=True, nullable=False)
    mostrar_modelo_115 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_180 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_390 = Column(Boolean, default=True, nullable=False)
    mostrar_modelo_349 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_111 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_190 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_123 = Column(Boolean, default=False, nullable=False)
    mostrar_modelo_347 = Column(Boolean, default=False, nullable=False)
    mostrar_sii = Column(Boolean, default=False, nullable=False)
    mostrar_vies_roi = Column(Boolean, default=False, nullable=False)
    mostrar_redeme = Column(Boolean, default=False, nullable=False)

    # Datos de empresa
    razon_social = Column(String(255), nullable=True)
    direccion = Column(String(500), nullable=True)
    codigo_postal = Column(String(10), nullable=True)
    ciudad = Column(String(100), nullable=True)
    provincia = Column(String(100), nullable=True)
    telefono = Column(String(20), nullable=True)
    email_facturacion = Column(String(255), nullable=True)
    iban = Column(String(34), nullable=True)
    notas_factura = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "base_cotizacion IS NULL OR base_cotizacion > 0",
            name="ck_users_base_cotizacion_positiva"
        ),
    )

    def __repr__(self):
        return f"<User {self.email}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)


class Cliente(Base, TimestampMixin, UserScopedMixin):
    """Cliente al que se emiten facturas."""
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True, index=True)

    nombre = Column(String(255), nullable=False)
    cif = Column(String(20), nullable=False)
    direccion = Column(String(500), nullable=True)
    codigo_postal = Column(String(10), nullable=True)
    ciudad = Column(String(100), nullable=True)
    provincia = Column(String(100), nullable=True)
    pais = Column(String(100), default="España", nullable=False)
    email = Column(String(255), nullable=True)
    telefono = Column(String(20), nullable=True)
    persona_contacto = Column(String(255), nullable=True)

    es_cliente_principal = Column(Boolean, default=False, nullable=False)
    porcentaje_facturacion = Column(Float, default=0.0, nullable=False)
    activo = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index(
            'ux_clientes_user_cif_activo', 'user_id', 'cif', unique=True,
            postgresql_where=activo.is_(True), sqlite_where=activo.is_(True)
        ),
        Index(
            'ux_clientes_user_principal', 'user_id', unique=True,
            postgresql_where=es_cliente_principal.is_(True),
            sqlite_where=es_cliente_principal.is_(True)
        ),
        Index('ix_clientes_user_activo', 'user_id', 'activo'),
    )

    def __repr__(self):
        return f"<Cliente {self.cif}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)


class DatosFacturacion(Base, TimestampMixin, UserScopedMixin):
    """
    Perfil de facturación (datos del emisor).

    Un usuario puede tener varios, pero solo uno activo y uno principal.
    """
    __tablename__ = "datos_facturacion"

    id = Column(Integer, primary_key=True, index=True)

    razon_social = Column(String(255), nullable=False)
    nif = Column(String(20), nullable=False)
    direccion = Column(String(500), nullable=False)
    codigo_postal = Column(String(10), nullable=True)
    ciudad = Column(String(100), nullable=False)
    provincia = Column(String(100), nullable=True)
    telefono = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    iban = Column(String(34), nullable=False)
    logo_url = Column(String(500), nullable=True)
    color_primario = Column(String(7), nullable=True)
    notas_factura = Column(Text, nullable=True)

    activo = Column(Boolean, default=False, nullable=False)
    es_principal = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index(
            'ux_datos_facturacion_user_activo', 'user_id', unique=True,
            postgresql_where=activo.is_(True), sqlite_where=activo.is_(True)
        ),
        Index(
            'ux_datos_facturacion_user_principal', 'user_id', unique=True,
            postgresql_where=es_principal.is_(True), sqlite_where=es_principal.is_(True)
        ),
    )

    def __repr__(self):
        return f"<DatosFacturacion {self.nif}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)


class Programacion(Base, TimestampMixin, UserScopedMixin):
    """
    Serie de ingresos o gastos generados de golpe.

    `datos_base` guarda el concepto e importes comunes a todos los registros
    para poder regenerar o extender la serie más adelante.
    """
    __tablename__ = "programaciones"

    id = Column(Integer, primary_key=True, index=True)

    tipo = Column(String(10), nullable=False)  # INGRESO, GASTO
    nombre = Column(String(255), nullable=True)
    periodicidad = Column(String(20), nullable=False)
    tipo_dia = Column(String(30), nullable=False)
    dia_especifico = Column(Integer, nullable=True)
    fecha_inicio = Column(Date, nullable=False)
    fecha_fin = Column(Date, nullable=True)

    datos_base = Column(JSONType(), default=dict, nullable=False)
    ultimo_ano_generado = Column(Integer, nullable=True)
    total_generados = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index('ix_programaciones_user_tipo', 'user_id', 'tipo'),
        CheckConstraint("tipo IN ('INGRESO', 'GASTO')", name="ck_programaciones_tipo"),
        CheckConstraint(
            "dia_especifico IS NULL OR (dia_especifico >= 1 AND dia_especifico <= 31)",
            name="ck_programaciones_dia_especifico"
        ),
    )

    def __repr__(self):
        return f"<Programacion {self.id} {self.tipo} {self.periodicidad}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)


class FacturaEmitida(Base, TimestampMixin, UserScopedMixin):
    """Factura emitida a un cliente."""
    __tablename__ = "facturas_emitidas"

    id = Column(Integer, primary_key=True, index=True)

    cliente_id = Column(
        Integer,
        ForeignKey("clientes.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    datos_facturacion_id = Column(
        Integer,
        ForeignKey("datos_facturacion.id", ondelete="SET NULL"),
        nullable=True
    )

    numero_factura = Column(String(30), nullable=False)
    serie = Column(String(10), default="A", nullable=False)

    fecha_emision = Column(Date, nullable=False, index=True)
    fecha_vencimiento = Column(Date, nullable=True)
    periodo_facturacion_inicio = Column(Date, nullable=True)
    periodo_facturacion_fin = Column(Date, nullable=True)

    concepto = Column(String(500), nullable=False)
    descripcion_detallada = Column(Text, nullable=True)

    base_imponible = Column(Float, nullable=False)
    tipo_iva = Column(Float, default=21.0, nullable=False)
    cuota_iva = Column(Float, default=0.0, nullable=False)
    tipo_irpf = Column(Float, default=7.0, nullable=False)
    cuota_irpf = Column(Float, default=0.0, nullable=False)
    total_factura = Column(Float, nullable=False)

    estado = Column(String(20), default=EstadoFactura.PENDIENTE.value, nullable=False)
    pagada = Column(Boolean, default=False, nullable=False)
    fecha_pago = Column(Date, nullable=True)

    programacion_id = Column(
        Integer,
        ForeignKey("programaciones.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    template_id = Column(
        Integer,
        ForeignKey("recurring_invoice_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    es_recurrente = Column(Boolean, default=False, nullable=False)

    cliente = relationship("Cliente", lazy="selectin")

    __table_args__ = (
        Index('ux_facturas_user_numero', 'user_id', 'numero_factura', unique=True),
        Index('ix_facturas_user_fecha', 'user_id', 'fecha_emision'),
        Index('ix_facturas_user_estado', 'user_id', 'estado'),
        CheckConstraint("base_imponible >= 0", name="ck_facturas_base_min"),
        CheckConstraint("tipo_iva >= 0 AND tipo_iva <= 100", name="ck_facturas_tipo_iva"),
        CheckConstraint("tipo_irpf >= 0 AND tipo_irpf <= 100", name="ck_facturas_tipo_irpf"),
        CheckConstraint(
            "estado IN ('PENDIENTE', 'PAGADA', 'VENCIDA', 'CANCELADA')",
            name="ck_facturas_estado"
        ),
    )

    def __repr__(self):
        return f"<FacturaEmitida {self.numero_factura}>"

    def to_dict(self) -> dict:
        data = model_to_dict(self)
        cliente = self.__dict__.get("cliente")
        if cliente is not None:
            data["cliente_nombre"] = cliente.nombre
            data["cliente_cif"] = cliente.cif
        return data


class Gasto(Base, TimestampMixin, UserScopedMixin):
    """Gasto (factura recibida de un proveedor)."""
    __tablename__ = "gastos"

    id = Column(Integer, primary_key=True, index=True)

    concepto = Column(String(500), nullable=False)
    descripcion = Column(Text, nullable=True)
    categoria = Column(String(100), nullable=True)
    fecha_emision = Column(Date, nullable=False, index=True)
    numero_factura = Column(String(50), nullable=True)
    proveedor_nombre = Column(String(255), nullable=False)
    proveedor_cif = Column(String(20), nullable=True)

    base_imponible = Column(Float, nullable=False)
    tipo_iva = Column(Float, default=21.0, nullable=False)
    cuota_iva = Column(Float, default=0.0, nullable=False)
    tipo_irpf = Column(Float, default=0.0, nullable=False)
    cuota_irpf = Column(Float, default=0.0, nullable=False)
    total_factura = Column(Float, nullable=False)

    porcentaje_deducible = Column(Float, default=100.0, nullable=False)
    es_deducible = Column(Boolean, default=True, nullable=False)
    motivo_no_deducible = Column(Text, nullable=True)
    es_gasto_independencia = Column(Boolean, default=False, nullable=False)
    nivel_riesgo = Column(String(10), default=NivelRiesgo.BAJO.value, nullable=False)
    notas_riesgo = Column(Text, nullable=True)

    estado = Column(String(20), default=EstadoGasto.PENDIENTE.value, nullable=False)
    pagado = Column(Boolean, default=False, nullable=False)
    fecha_pago = Column(Date, nullable=True)

    programacion_id = Column(
        Integer,
        ForeignKey("programaciones.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    __table_args__ = (
        Index('ix_gastos_user_fecha', 'user_id', 'fecha_emision'),
        Index('ix_gastos_user_categoria', 'user_id', 'categoria'),
        CheckConstraint("base_imponible >= 0", name="ck_gastos_base_min"),
        CheckConstraint(
            "porcentaje_deducible >= 0 AND porcentaje_deducible <= 100",
            name="ck_gastos_porcentaje_deducible"
        ),
    )

    def __repr__(self):
        return f"<Gasto {self.id} {self.concepto}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)


class RecurringInvoiceTemplate(Base, TimestampMixin, UserScopedMixin):
    """
    Plantilla de factura recurrente.

    `proxima_generacion` marca la siguiente fecha en la que el generador
    creará una factura a partir de la plantilla.
    """
    __tablename__ = "recurring_invoice_templates"

    id = Column(Integer, primary_key=True, index=True)

    nombre_plantilla = Column(String(255), nullable=False)
    descripcion = Column(Text, nullable=True)
    cliente_id = Column(
        Integer,
        ForeignKey("clientes.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Datos de la factura
    serie = Column(String(10), default="A", nullable=False)
    concepto = Column(String(500), nullable=False)
    descripcion_detallada = Column(Text, nullable=True)
    base_imponible = Column(Float, nullable=False)
    tipo_iva = Column(Float, default=21.0, nullable=False)
    tipo_irpf = Column(Float, default=7.0, nullable=False)

    dias_vencimiento = Column(Integer, default=30, nullable=False)
    incluir_periodo_facturacion = Column(Boolean, default=True, nullable=False)
    duracion_periodo_dias = Column(Integer, nullable=True)

    # Recurrencia
    frecuencia = Column(String(20), nullable=False)
    tipo_dia_generacion = Column(String(30), nullable=False)
    dia_generacion = Column(Integer, nullable=True)
    intervalo_dias = Column(Integer, nullable=True)

    proxima_generacion = Column(Date, nullable=False, index=True)
    ultima_generacion = Column(Date, nullable=True)
    fecha_inicio = Column(Date, nullable=False)
    fecha_fin = Column(Date, nullable=True)

    # Estado
    activo = Column(Boolean, default=True, nullable=False)
    pausado = Column(Boolean, default=False, nullable=False)
    motivo_pausa = Column(Text, nullable=True)
    generar_pdf_automatico = Column(Boolean, default=False, nullable=False)
    enviar_email_automatico = Column(Boolean, default=False, nullable=False)

    # Estadísticas
    total_facturas_generadas = Column(Integer, default=0, nullable=False)
    ultima_factura_generada_id = Column(Integer, nullable=True)

    cliente = relationship("Cliente", lazy="selectin")

    __table_args__ = (
        Index('ix_templates_pendientes', 'activo', 'pausado', 'proxima_generacion'),
        CheckConstraint(
            "frecuencia IN ('MENSUAL', 'TRIMESTRAL', 'ANUAL', 'PERSONALIZADO')",
            name="ck_templates_frecuencia"
        ),
        CheckConstraint(
            "dia_generacion IS NULL OR (dia_generacion >= 1 AND dia_generacion <= 31)",
            name="ck_templates_dia_generacion"
        ),
        CheckConstraint(
            "intervalo_dias IS NULL OR intervalo_dias > 0",
            name="ck_templates_intervalo_dias"
        ),
    )

    def __repr__(self):
        return f"<RecurringInvoiceTemplate {self.nombre_plantilla}>"

    def to_dict(self) -> dict:
        data = model_to_dict(self)
        cliente = self.__dict__.get("cliente")
        if cliente is not None:
            data["cliente_nombre"] = cliente.nombre
        return data


class RecurringInvoiceHistory(Base):
    """Registro de cada intento de generación de una plantilla."""
    __tablename__ = "recurring_invoice_history"

    id = Column(Integer, primary_key=True, index=True)

    template_id = Column(
        Integer,
        ForeignKey("recurring_invoice_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    invoice_id = Column(
        Integer,
        ForeignKey("facturas_emitidas.id", ondelete="SET NULL"),
        nullable=True
    )

    fecha_generacion = Column(DateTime, default=datetime.utcnow, nullable=False)
    fecha_programada = Column(Date, nullable=False)
    exitoso = Column(Boolean, default=True, nullable=False)
    error_mensaje = Column(Text, nullable=True)
    error_stack = Column(Text, nullable=True)

    numero_factura = Column(String(30), nullable=True)
    total_factura = Column(Float, nullable=True)

    __table_args__ = (
        Index('ix_history_template_fecha', 'template_id', 'fecha_programada'),
    )

    def __repr__(self):
        return f"<RecurringInvoiceHistory {self.template_id} {self.fecha_programada}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)


class Documento(Base, TimestampMixin, UserScopedMixin):
    """Metadatos de un documento (el fichero no se almacena aquí)."""
    __tablename__ = "documentos"

    id = Column(Integer, primary_key=True, index=True)

    nombre = Column(String(255), nullable=False)
    descripcion = Column(Text, nullable=True)
    categoria = Column(String(30), nullable=False)
    tipo_documento = Column(String(100), nullable=True)

    archivo_nombre_original = Column(String(255), nullable=True)
    archivo_tipo_mime = Column(String(100), nullable=True)
    archivo_tamanio_bytes = Column(BigInteger, nullable=True)
    archivo_hash_sha256 = Column(String(64), nullable=True)

    fecha_subida = Column(DateTime, default=datetime.utcnow, nullable=False)
    fecha_documento = Column(Date, nullable=True)
    fecha_vencimiento = Column(Date, nullable=True)
    fecha_recordatorio = Column(Date, nullable=True)

    version = Column(Integer, default=1, nullable=False)
    estado = Column(String(20), default=EstadoDocumento.ACTIVO.value, nullable=False)
    visible = Column(Boolean, default=True, nullable=False)
    notas = Column(Text, nullable=True)
    etiquetas = Column(JSONType(), default=list, nullable=False)

    __table_args__ = (
        Index('ix_documentos_user_categoria', 'user_id', 'categoria'),
        Index('ix_documentos_user_hash', 'user_id', 'archivo_hash_sha256'),
        Index('ix_documentos_user_vencimiento', 'user_id', 'fecha_vencimiento'),
        CheckConstraint(
            "categoria IN ('FACTURA_GASTO', 'FACTURA_INGRESO', 'CONTRATO', 'OTRO')",
            name="ck_documentos_categoria"
        ),
    )

    def __repr__(self):
        return f"<Documento {self.nombre}>"

    def to_dict(self) -> dict:
        return model_to_dict(self)
