"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.Text().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _user_fk():
    return sa.Column(
        'user_id', sa.Integer(),
        sa.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False
    )


def _scoped_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_id', table, ['id'])
    op.create_index(f'ix_{table}_user_id', table, ['user_id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])


def upgrade() -> None:
    """Create miGestor schema."""

    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('nombre_completo', sa.String(255), nullable=False),
        sa.Column('nif', sa.String(20), nullable=True),
        sa.Column('regimen_fiscal', sa.String(50), nullable=False,
                  server_default='estimacion_directa_simplificada'),
        sa.Column('fecha_alta_autonomo', sa.Date(), nullable=True),
        sa.Column('fecha_alta_aeat', sa.Date(), nullable=True),
        sa.Column('epigrafe_iae', sa.String(20), nullable=True),
        sa.Column('es_trade', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('porcentaje_dependencia', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tiene_local_alquilado', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tipo_iva_predeterminado', sa.Float(), nullable=False, server_default='21'),
        sa.Column('tipo_irpf_actual', sa.Float(), nullable=False, server_default='7'),
        sa.Column('tipo_irpf_estimado', sa.Float(), nullable=True),
        sa.Column('tiene_tarifa_plana_ss', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('base_cotizacion', sa.Float(), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='Europe/Madrid'),
        sa.Column('idioma', sa.String(5), nullable=False, server_default='es'),
        sa.Column('tiene_empleados', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tiene_operaciones_ue', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('usa_modulos', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_303', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('mostrar_modelo_130', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('mostrar_modelo_131', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_100', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('mostrar_modelo_115', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_180', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_390', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('mostrar_modelo_349', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_111', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_190', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_123', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_modelo_347', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_sii', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_vies_roi', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mostrar_redeme', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('razon_social', sa.String(255), nullable=True),
        sa.Column('direccion', sa.String(500), nullable=True),
        sa.Column('codigo_postal', sa.String(10), nullable=True),
        sa.Column('ciudad', sa.String(100), nullable=True),
        sa.Column('provincia', sa.String(100), nullable=True),
        sa.Column('telefono', sa.String(20), nullable=True),
        sa.Column('email_facturacion', sa.String(255), nullable=True),
        sa.Column('iban', sa.String(34), nullable=True),
        sa.Column('notas_factura', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'base_cotizacion IS NULL OR base_cotizacion > 0',
            name='ck_users_base_cotizacion_positiva'
        ),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    # Clientes
    op.create_table(
        'clientes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('nombre', sa.String(255), nullable=False),
        sa.Column('cif', sa.String(20), nullable=False),
        sa.Column('direccion', sa.String(500), nullable=True),
        sa.Column('codigo_postal', sa.String(10), nullable=True),
        sa.Column('ciudad', sa.String(100), nullable=True),
        sa.Column('provincia', sa.String(100), nullable=True),
        sa.Column('pais', sa.String(100), nullable=False, server_default='España'),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('telefono', sa.String(20), nullable=True),
        sa.Column('persona_contacto', sa.String(255), nullable=True),
        sa.Column('es_cliente_principal', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('porcentaje_facturacion', sa.Float(), nullable=False, server_default='0'),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    _scoped_indexes('clientes')
    op.create_index(
        'ux_clientes_user_cif_activo', 'clientes', ['user_id', 'cif'], unique=True,
        postgresql_where=sa.text('activo'), sqlite_where=sa.text('activo')
    )
    op.create_index(
        'ux_clientes_user_principal', 'clientes', ['user_id'], unique=True,
        postgresql_where=sa.text('es_cliente_principal'),
        sqlite_where=sa.text('es_cliente_principal')
    )
    op.create_index('ix_clientes_user_activo', 'clientes', ['user_id', 'activo'])

    # Perfiles de facturación
    op.create_table(
        'datos_facturacion',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('razon_social', sa.String(255), nullable=False),
        sa.Column('nif', sa.String(20), nullable=False),
        sa.Column('direccion', sa.String(500), nullable=False),
        sa.Column('codigo_postal', sa.String(10), nullable=True),
        sa.Column('ciudad', sa.String(100), nullable=False),
        sa.Column('provincia', sa.String(100), nullable=True),
        sa.Column('telefono', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('iban', sa.String(34), nullable=False),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('color_primario', sa.String(7), nullable=True),
        sa.Column('notas_factura', sa.Text(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('es_principal', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    _scoped_indexes('datos_facturacion')
    op.create_index(
        'ux_datos_facturacion_user_activo', 'datos_facturacion', ['user_id'], unique=True,
        postgresql_where=sa.text('activo'), sqlite_where=sa.text('activo')
    )
    op.create_index(
        'ux_datos_facturacion_user_principal', 'datos_facturacion', ['user_id'], unique=True,
        postgresql_where=sa.text('es_principal'), sqlite_where=sa.text('es_principal')
    )

    # Programaciones
    op.create_table(
        'programaciones',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('tipo', sa.String(10), nullable=False),
        sa.Column('nombre', sa.String(255), nullable=True),
        sa.Column('periodicidad', sa.String(20), nullable=False),
        sa.Column('tipo_dia', sa.String(30), nullable=False),
        sa.Column('dia_especifico', sa.Integer(), nullable=True),
        sa.Column('fecha_inicio', sa.Date(), nullable=False),
        sa.Column('fecha_fin', sa.Date(), nullable=True),
        sa.Column('datos_base', JSON_TYPE, nullable=False),
        sa.Column('ultimo_ano_generado', sa.Integer(), nullable=True),
        sa.Column('total_generados', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint("tipo IN ('INGRESO', 'GASTO')", name='ck_programaciones_tipo'),
        sa.CheckConstraint(
            'dia_especifico IS NULL OR (dia_especifico >= 1 AND dia_especifico <= 31)',
            name='ck_programaciones_dia_especifico'
        ),
    )
    _scoped_indexes('programaciones')
    op.create_index('ix_programaciones_user_tipo', 'programaciones', ['user_id', 'tipo'])

    # Plantillas recurrentes
    op.create_table(
        'recurring_invoice_templates',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('nombre_plantilla', sa.String(255), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('cliente_id', sa.Integer(),
                  sa.ForeignKey('clientes.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('serie', sa.String(10), nullable=False, server_default='A'),
        sa.Column('concepto', sa.String(500), nullable=False),
        sa.Column('descripcion_detallada', sa.Text(), nullable=True),
        sa.Column('base_imponible', sa.Float(), nullable=False),
        sa.Column('tipo_iva', sa.Float(), nullable=False, server_default='21'),
        sa.Column('tipo_irpf', sa.Float(), nullable=False, server_default='7'),
        sa.Column('dias_vencimiento', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('incluir_periodo_facturacion', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('duracion_periodo_dias', sa.Integer(), nullable=True),
        sa.Column('frecuencia', sa.String(20), nullable=False),
        sa.Column('tipo_dia_generacion', sa.String(30), nullable=False),
        sa.Column('dia_generacion', sa.Integer(), nullable=True),
        sa.Column('intervalo_dias', sa.Integer(), nullable=True),
        sa.Column('proxima_generacion', sa.Date(), nullable=False),
        sa.Column('ultima_generacion', sa.Date(), nullable=True),
        sa.Column('fecha_inicio', sa.Date(), nullable=False),
        sa.Column('fecha_fin', sa.Date(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('pausado', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('motivo_pausa', sa.Text(), nullable=True),
        sa.Column('generar_pdf_automatico', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('enviar_email_automatico', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_facturas_generadas', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ultima_factura_generada_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "frecuencia IN ('MENSUAL', 'TRIMESTRAL', 'ANUAL', 'PERSONALIZADO')",
            name='ck_templates_frecuencia'
        ),
        sa.CheckConstraint(
            'dia_generacion IS NULL OR (dia_generacion >= 1 AND dia_generacion <= 31)',
            name='ck_templates_dia_generacion'
        ),
        sa.CheckConstraint(
            'intervalo_dias IS NULL OR intervalo_dias > 0',
            name='ck_templates_intervalo_dias'
        ),
    )
    _scoped_indexes('recurring_invoice_templates')
    op.create_index(
        'ix_recurring_invoice_templates_cliente_id', 'recurring_invoice_templates', ['cliente_id']
    )
    op.create_index(
        'ix_recurring_invoice_templates_proxima_generacion',
        'recurring_invoice_templates', ['proxima_generacion']
    )
    op.create_index(
        'ix_templates_pendientes', 'recurring_invoice_templates',
        ['activo', 'pausado', 'proxima_generacion']
    )

    # Facturas emitidas
    op.create_table(
        'facturas_emitidas',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('cliente_id', sa.Integer(),
                  sa.ForeignKey('clientes.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('datos_facturacion_id', sa.Integer(),
                  sa.ForeignKey('datos_facturacion.id', ondelete='SET NULL'), nullable=True),
        sa.Column('numero_factura', sa.String(30), nullable=False),
        sa.Column('serie', sa.String(10), nullable=False, server_default='A'),
        sa.Column('fecha_emision', sa.Date(), nullable=False),
        sa.Column('fecha_vencimiento', sa.Date(), nullable=True),
        sa.Column('periodo_facturacion_inicio', sa.Date(), nullable=True),
        sa.Column('periodo_facturacion_fin', sa.Date(), nullable=True),
        sa.Column('concepto', sa.String(500), nullable=False),
        sa.Column('descripcion_detallada', sa.Text(), nullable=True),
        sa.Column('base_imponible', sa.Float(), nullable=False),
        sa.Column('tipo_iva', sa.Float(), nullable=False, server_default='21'),
        sa.Column('cuota_iva', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tipo_irpf', sa.Float(), nullable=False, server_default='7'),
        sa.Column('cuota_irpf', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_factura', sa.Float(), nullable=False),
        sa.Column('estado', sa.String(20), nullable=False, server_default='PENDIENTE'),
        sa.Column('pagada', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fecha_pago', sa.Date(), nullable=True),
        sa.Column('programacion_id', sa.Integer(),
                  sa.ForeignKey('programaciones.id', ondelete='SET NULL'), nullable=True),
        sa.Column('template_id', sa.Integer(),
                  sa.ForeignKey('recurring_invoice_templates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('es_recurrente', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint('base_imponible >= 0', name='ck_facturas_base_min'),
        sa.CheckConstraint('tipo_iva >= 0 AND tipo_iva <= 100', name='ck_facturas_tipo_iva'),
        sa.CheckConstraint('tipo_irpf >= 0 AND tipo_irpf <= 100', name='ck_facturas_tipo_irpf'),
        sa.CheckConstraint(
            "estado IN ('PENDIENTE', 'PAGADA', 'VENCIDA', 'CANCELADA')",
            name='ck_facturas_estado'
        ),
    )
    _scoped_indexes('facturas_emitidas')
    op.create_index('ix_facturas_emitidas_cliente_id', 'facturas_emitidas', ['cliente_id'])
    op.create_index('ix_facturas_emitidas_fecha_emision', 'facturas_emitidas', ['fecha_emision'])
    op.create_index('ix_facturas_emitidas_programacion_id', 'facturas_emitidas', ['programacion_id'])
    op.create_index('ix_facturas_emitidas_template_id', 'facturas_emitidas', ['template_id'])
    op.create_index('ux_facturas_user_numero', 'facturas_emitidas', ['user_id', 'numero_factura'], unique=True)
    op.create_index('ix_facturas_user_fecha', 'facturas_emitidas', ['user_id', 'fecha_emision'])
    op.create_index('ix_facturas_user_estado', 'facturas_emitidas', ['user_id', 'estado'])

    # Gastos
    op.create_table(
        'gastos',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('concepto', sa.String(500), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('categoria', sa.String(100), nullable=True),
        sa.Column('fecha_emision', sa.Date(), nullable=False),
        sa.Column('numero_factura', sa.String(50), nullable=True),
        sa.Column('proveedor_nombre', sa.String(255), nullable=False),
        sa.Column('proveedor_cif', sa.String(20), nullable=True),
        sa.Column('base_imponible', sa.Float(), nullable=False),
        sa.Column('tipo_iva', sa.Float(), nullable=False, server_default='21'),
        sa.Column('cuota_iva', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tipo_irpf', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cuota_irpf', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_factura', sa.Float(), nullable=False),
        sa.Column('porcentaje_deducible', sa.Float(), nullable=False, server_default='100'),
        sa.Column('es_deducible', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('motivo_no_deducible', sa.Text(), nullable=True),
        sa.Column('es_gasto_independencia', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('nivel_riesgo', sa.String(10), nullable=False, server_default='BAJO'),
        sa.Column('notas_riesgo', sa.Text(), nullable=True),
        sa.Column('estado', sa.String(20), nullable=False, server_default='PENDIENTE'),
        sa.Column('pagado', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fecha_pago', sa.Date(), nullable=True),
        sa.Column('programacion_id', sa.Integer(),
                  sa.ForeignKey('programaciones.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('base_imponible >= 0', name='ck_gastos_base_min'),
        sa.CheckConstraint(
            'porcentaje_deducible >= 0 AND porcentaje_deducible <= 100',
            name='ck_gastos_porcentaje_deducible'
        ),
    )
    _scoped_indexes('gastos')
    op.create_index('ix_gastos_fecha_emision', 'gastos', ['fecha_emision'])
    op.create_index('ix_gastos_programacion_id', 'gastos', ['programacion_id'])
    op.create_index('ix_gastos_user_fecha', 'gastos', ['user_id', 'fecha_emision'])
    op.create_index('ix_gastos_user_categoria', 'gastos', ['user_id', 'categoria'])

    # Historial de recurrentes
    op.create_table(
        'recurring_invoice_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('template_id', sa.Integer(),
                  sa.ForeignKey('recurring_invoice_templates.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_id', sa.Integer(),
                  sa.ForeignKey('facturas_emitidas.id', ondelete='SET NULL'), nullable=True),
        sa.Column('fecha_generacion', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('fecha_programada', sa.Date(), nullable=False),
        sa.Column('exitoso', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('error_mensaje', sa.Text(), nullable=True),
        sa.Column('error_stack', sa.Text(), nullable=True),
        sa.Column('numero_factura', sa.String(30), nullable=True),
        sa.Column('total_factura', sa.Float(), nullable=True),
    )
    op.create_index('ix_recurring_invoice_history_id', 'recurring_invoice_history', ['id'])
    op.create_index('ix_recurring_invoice_history_template_id', 'recurring_invoice_history', ['template_id'])
    op.create_index(
        'ix_history_template_fecha', 'recurring_invoice_history', ['template_id', 'fecha_programada']
    )

    # Documentos
    op.create_table(
        'documentos',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column('nombre', sa.String(255), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('categoria', sa.String(30), nullable=False),
        sa.Column('tipo_documento', sa.String(100), nullable=True),
        sa.Column('archivo_nombre_original', sa.String(255), nullable=True),
        sa.Column('archivo_tipo_mime', sa.String(100), nullable=True),
        sa.Column('archivo_tamanio_bytes', sa.BigInteger(), nullable=True),
        sa.Column('archivo_hash_sha256', sa.String(64), nullable=True),
        sa.Column('fecha_subida', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('fecha_documento', sa.Date(), nullable=True),
        sa.Column('fecha_vencimiento', sa.Date(), nullable=True),
        sa.Column('fecha_recordatorio', sa.Date(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('estado', sa.String(20), nullable=False, server_default='ACTIVO'),
        sa.Column('visible', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notas', sa.Text(), nullable=True),
        sa.Column('etiquetas', JSON_TYPE, nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "categoria IN ('FACTURA_GASTO', 'FACTURA_INGRESO', 'CONTRATO', 'OTRO')",
            name='ck_documentos_categoria'
        ),
    )
    _scoped_indexes('documentos')
    op.create_index('ix_documentos_user_categoria', 'documentos', ['user_id', 'categoria'])
    op.create_index('ix_documentos_user_hash', 'documentos', ['user_id', 'archivo_hash_sha256'])
    op.create_index('ix_documentos_user_vencimiento', 'documentos', ['user_id', 'fecha_vencimiento'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('documentos')
    op.drop_table('recurring_invoice_history')
    op.drop_table('gastos')
    op.drop_table('facturas_emitidas')
    op.drop_table('recurring_invoice_templates')
    op.drop_table('programaciones')
    op.drop_table('datos_facturacion')
    op.drop_table('clientes')
    op.drop_table('users')
