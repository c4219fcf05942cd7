"""
Factories para facturas emitidas, gastos y plantillas recurrentes

Las cuotas y el total se calculan a partir de la base y los tipos, igual
que hace el servicio al emitir.
"""

from datetime import date, timedelta

import factory
from factory import Faker, LazyAttribute, Sequence

from config.constants import EstadoFactura, EstadoGasto, Frecuencia, NivelRiesgo, TipoDiaGeneracion
from src.database.models import FacturaEmitida, Gasto, RecurringInvoiceTemplate
from src.utils.tax_calculations import calcular_cuota_irpf, calcular_cuota_iva, calcular_total_factura
from tests.factories.base import BaseFactory, DictFactory, FAKER_LOCALE


class FacturaEmitidaFactory(BaseFactory):
    """
    Factory para facturas emitidas. Requiere user_id y cliente_id.

    Ejemplos:
        factura = FacturaEmitidaFactory(user_id=u.id, cliente_id=c.id)
        pagada = FacturaEmitidaFactory(user_id=u.id, cliente_id=c.id, pagada_trait=True)
    """

    class Meta:
        model = FacturaEmitida

    user_id = None
    cliente_id = None
    numero_factura = Sequence(lambda n: f"2026-{n + 1:03d}")
    serie = "A"
    fecha_emision = date(2026, 1, 15)
    fecha_vencimiento = LazyAttribute(lambda o: o.fecha_emision + timedelta(days=30))
    concepto = Faker("catch_phrase", locale=FAKER_LOCALE)

    base_imponible = 1000.0
    tipo_iva = 21.0
    tipo_irpf = 7.0
    cuota_iva = LazyAttribute(lambda o: calcular_cuota_iva(o.base_imponible, o.tipo_iva))
    cuota_irpf = LazyAttribute(lambda o: calcular_cuota_irpf(o.base_imponible, o.tipo_irpf))
    total_factura = LazyAttribute(
        lambda o: calcular_total_factura(o.base_imponible, o.cuota_iva, o.cuota_irpf)
    )

    estado = EstadoFactura.PENDIENTE.value
    pagada = False

    class Params:
        pagada_trait = factory.Trait(
            pagada=True,
            estado=EstadoFactura.PAGADA.value,
            fecha_pago=LazyAttribute(lambda o: o.fecha_emision),
        )
        cancelada = factory.Trait(estado=EstadoFactura.CANCELADA.value)


class GastoFactory(BaseFactory):
    """Factory para gastos. Requiere user_id."""

    class Meta:
        model = Gasto

    user_id = None
    concepto = "Material de oficina"
    categoria = "Material de oficina"
    fecha_emision = date(2026, 1, 20)
    proveedor_nombre = Faker("company", locale=FAKER_LOCALE)

    base_imponible = 100.0
    tipo_iva = 21.0
    tipo_irpf = 0.0
    cuota_iva = LazyAttribute(lambda o: calcular_cuota_iva(o.base_imponible, o.tipo_iva))
    cuota_irpf = LazyAttribute(lambda o: calcular_cuota_irpf(o.base_imponible, o.tipo_irpf))
    total_factura = LazyAttribute(
        lambda o: calcular_total_factura(o.base_imponible, o.cuota_iva, o.cuota_irpf)
    )

    porcentaje_deducible = 100.0
    es_deducible = True
    nivel_riesgo = NivelRiesgo.BAJO.value
    estado = EstadoGasto.PENDIENTE.value
    pagado = False

    class Params:
        alquiler = factory.Trait(
            concepto="Alquiler local",
            categoria="Alquiler",
            proveedor_nombre="Inmobiliaria Centro SL",
            proveedor_cif="B28000001",
            base_imponible=800.0,
            tipo_irpf=19.0,
        )


class TemplateFactory(BaseFactory):
    """Plantilla recurrente mensual. Requiere user_id y cliente_id."""

    class Meta:
        model = RecurringInvoiceTemplate

    user_id = None
    cliente_id = None
    nombre_plantilla = Sequence(lambda n: f"Plantilla {n}")
    serie = "A"
    concepto = "Mantenimiento mensual"
    base_imponible = 500.0
    tipo_iva = 21.0
    tipo_irpf = 7.0
    dias_vencimiento = 30
    incluir_periodo_facturacion = True

    frecuencia = Frecuencia.MENSUAL.value
    tipo_dia_generacion = TipoDiaGeneracion.DIA_ESPECIFICO.value
    dia_generacion = 1
    intervalo_dias = None

    fecha_inicio = date(2026, 1, 1)
    proxima_generacion = LazyAttribute(lambda o: o.fecha_inicio)
    fecha_fin = None

    activo = True
    pausado = False
    total_facturas_generadas = 0


class ExpensePayloadFactory(DictFactory):
    """Cuerpo de POST /expenses."""

    concepto = "Licencia software"
    fecha_emision = "2026-02-10"
    proveedor_nombre = Faker("company", locale=FAKER_LOCALE)
    base_imponible = 50.0
    tipo_iva = 21.0
