"""
Tests para los modelos fiscales calculados sobre la base de datos.

Escenario común (2026):
    - 1T: factura de 1.000 € (21% IVA, 7% IRPF) y gasto de 100 €
    - 2T: factura de 2.000 €
    - Una factura cancelada de 5.000 € que no debe computar
"""

from datetime import date

import pytest

from src.services import expense_service, tax_service
from src.utils.errors import ValidationError
from tests.factories import FacturaEmitidaFactory, GastoFactory, UserFactory, persist


@pytest.fixture
async def actividad(db, user, cliente):
    await persist(
        db,
        FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, fecha_emision=date(2026, 1, 15)),
        FacturaEmitidaFactory(
            user_id=user.id, cliente_id=cliente.id,
            fecha_emision=date(2026, 4, 15), base_imponible=2000.0,
        ),
        FacturaEmitidaFactory(
            user_id=user.id, cliente_id=cliente.id,
            fecha_emision=date(2026, 2, 10), base_imponible=5000.0, cancelada=True,
        ),
        GastoFactory(user_id=user.id),
    )


@pytest.fixture
async def alquiler(db, user):
    return await persist(db, GastoFactory(user_id=user.id, alquiler=True, fecha_emision=date(2026, 2, 1)))


class TestValidatePeriodo:

    def test_trimestre_invalido(self):
        with pytest.raises(ValidationError, match="Trimestre debe estar entre 1 y 4"):
            tax_service.validate_periodo(2026, 5)

    def test_ano_invalido(self):
        with pytest.raises(ValidationError, match="Año inválido"):
            tax_service.validate_periodo(1999)

    def test_valido(self):
        tax_service.validate_periodo(2026, 4)


class TestModelo303:
    """Tests para el IVA trimestral."""

    async def test_primer_trimestre(self, db, user, actividad):
        modelo = await tax_service.modelo_303(db, user.id, 2026, 1)

        assert modelo["modelo"] == "303"
        assert modelo["periodo"] == "1T 2026 (01/01/2026 - 31/03/2026)"
        assert modelo["fecha_limite_presentacion"] == "2026-04-20"
        assert modelo["desglose_iva_repercutido"]["tipo_21"] == {"base": 1000.0, "cuota": 210.0}
        assert modelo["base_imponible_total"] == 1000
        assert modelo["iva_repercutido"] == 210
        assert modelo["iva_soportado"] == 21
        assert modelo["resultado_iva"] == 189
        assert modelo["accion"] == "A INGRESAR"
        assert modelo["casillas_aeat"]["casilla_27"] == 210
        assert modelo["instrucciones"]

    async def test_trimestre_sin_actividad(self, db, user, actividad):
        modelo = await tax_service.modelo_303(db, user.id, 2026, 3)
        assert modelo["accion"] == "SIN ACTIVIDAD"

    async def test_cuarto_trimestre_se_presenta_en_enero(self, db, user):
        modelo = await tax_service.modelo_303(db, user.id, 2026, 4)
        assert modelo["fecha_limite_presentacion"] == "2027-01-30"


class TestModelo130:
    """Tests para el pago fraccionado de IRPF acumulado."""

    async def test_primer_trimestre(self, db, user, actividad):
        modelo = await tax_service.modelo_130(db, user.id, 2026, 1)

        assert modelo["casilla_03_rendimiento_neto"] == 900
        assert modelo["casilla_04_pago_20_pct"] == 180
        assert modelo["retenciones_practicadas"] == 70
        assert modelo["resultado"] == 110
        assert modelo["fecha_limite_presentacion"] == "2026-04-20"

    async def test_segundo_trimestre_descuenta_pagos(self, db, user, actividad):
        modelo = await tax_service.modelo_130(db, user.id, 2026, 2)

        assert modelo["ingresos_computables"] == 3000
        assert modelo["pagos_anteriores"] == 110
        assert modelo["retenciones_practicadas"] == 210
        assert modelo["resultado"] == 260
        assert modelo["casillas_aeat"]["casilla_05"] == 110


class TestModelosRetenciones:
    """Tests para los modelos 115, 111 y 180."""

    async def test_modelo115(self, db, user, alquiler):
        modelo = await tax_service.modelo_115(db, user.id, 2026, 1)

        assert modelo["casilla_01"] == 1
        assert modelo["casilla_02"] == 800
        assert modelo["casilla_03"] == 152
        assert modelo["perceptores"][0]["nif"] == "B28000001"
        assert modelo["fecha_limite_presentacion"] == "2026-04-20"

    async def test_modelo115_agrupa_por_arrendador(self, db, user, alquiler):
        await persist(db, GastoFactory(user_id=user.id, alquiler=True, fecha_emision=date(2026, 3, 1)))
        modelo = await tax_service.modelo_115(db, user.id, 2026, 1)
        assert modelo["casilla_01"] == 1
        assert modelo["casilla_03"] == 304

    async def test_modelo111_excluye_alquileres(self, db, user, alquiler):
        await persist(db, GastoFactory(
            user_id=user.id,
            concepto="Diseño de logotipo",
            categoria="Servicios profesionales",
            proveedor_cif="12345678Z",
            base_imponible=400.0,
            tipo_irpf=15.0,
            fecha_emision=date(2026, 2, 20),
        ))

        modelo = await tax_service.modelo_111(db, user.id, 2026, 1)

        assert modelo["total_perceptores"] == 1
        assert modelo["casilla_28"] == 60

    async def test_modelo111_vacio(self, db, user):
        modelo = await tax_service.modelo_111(db, user.id, 2026, 2)
        assert modelo["accion"] == "SIN ACTIVIDAD"

    async def test_modelo180(self, db, user, alquiler):
        modelo = await tax_service.modelo_180(db, user.id, 2026)

        assert modelo["cuadra_con_115s"]
        assert modelo["fecha_limite_presentacion"] == "2027-01-31"


class TestModelo390:

    async def test_resumen_anual_iva(self, db, user, actividad):
        modelo = await tax_service.modelo_390(db, user.id, 2026)

        assert modelo["total_iva_repercutido"] == 630
        assert modelo["resultado_anual"] == 609
        assert modelo["total_base_soportada"] == 100
        assert modelo["cuadra_con_303s"]
        assert modelo["fecha_limite_presentacion"] == "2027-01-30"


class TestResumenAnual:

    async def test_totales(self, db, user, cliente, actividad):
        resumen = await tax_service.resumen_anual(db, user, 2026)

        assert resumen["ingresos"] == 3000
        assert resumen["gastos"] == 100
        assert resumen["rendimiento_neto"] == 2900
        assert resumen["num_facturas"] == 2
        assert resumen["trimestres"][0]["ingresos"] == 1000
        assert resumen["trimestres"][1]["irpf_retenido"] == 140
        assert resumen["trade"]["porcentaje_dependencia"] == 100
        assert resumen["trade"]["cliente_principal_id"] == cliente.id
        assert resumen["irpf"]["tipo_retencion_actual"] == 7

    async def test_ano_vacio(self, db, user):
        resumen = await tax_service.resumen_anual(db, user, 2025)
        assert resumen["ingresos"] == 0
        assert resumen["trade"]["cliente_principal_id"] is None


class TestCalendarioFiscal:
    """Tests para el calendario de obligaciones."""

    async def test_modelos_por_defecto(self, db, user):
        calendario = tax_service.calendario_fiscal(user, 2026, today=date(2026, 5, 1))

        # 303 y 130 trimestrales, 390 y Renta
        assert len(calendario) == 10
        primero = calendario[0]
        assert primero["modelo"] == "130"
        assert primero["fin"] == "2026-04-20"
        assert primero["fecha_recordatorio"] == "2026-04-15"
        assert primero["estado"] == "VENCIDO"
        assert calendario[-1]["modelo"] == "100"
        assert calendario[-1]["fin"] == "2027-06-30"
        assert calendario[-1]["estado"] == "PENDIENTE"

    async def test_con_local_alquilado(self, db):
        user = await persist(db, UserFactory(con_alquiler=True))
        calendario = tax_service.calendario_fiscal(user, 2026, today=date(2026, 1, 1))
        modelos = [o["modelo"] for o in calendario]
        assert modelos.count("115") == 4
        assert "180" in modelos

    def test_ano_invalido(self):
        with pytest.raises(ValidationError):
            tax_service.calendario_fiscal(UserFactory.build(), 3000)


class TestIndependencia:
    """Tests para la comprobación mensual de gastos de independencia."""

    async def _gasto(self, db, user, concepto, **kwargs):
        data = {
            "concepto": concepto,
            "fecha_emision": date(2026, 2, 5),
            "proveedor_nombre": "Proveedor",
            "base_imponible": 50.0,
        }
        data.update(kwargs)
        return await expense_service.create_expense(db, user.id, data)

    async def test_mes_completo(self, db, user):
        await self._gasto(db, user, "Alquiler local febrero", base_imponible=800.0)
        await self._gasto(db, user, "Electricidad febrero", categoria="Suministros")
        await self._gasto(db, user, "Internet oficina", categoria="Suministros")

        result = await expense_service.check_independence(db, user.id, 2026, 2)

        assert result["cumple_requisitos"]
        assert result["alertas_generadas"] == []
        assert result["gastos_registrados"][0]["importe"] == 800

    async def test_falta_internet(self, db, user):
        await self._gasto(db, user, "Alquiler local febrero")
        await self._gasto(db, user, "Electricidad febrero", categoria="Suministros")

        result = await expense_service.check_independence(db, user.id, 2026, 2)

        assert not result["cumple_requisitos"]
        assert len(result["alertas_generadas"]) == 1
        assert "Internet de 2/2026" in result["alertas_generadas"][0]["mensaje"]
        assert result["gastos_registrados"][2]["warning"] == "Falta factura de internet"

    async def test_otro_mes_no_cuenta(self, db, user):
        await self._gasto(db, user, "Alquiler local febrero")
        result = await expense_service.check_independence(db, user.id, 2026, 3)
        assert result["alertas_generadas"][0]["mensaje"].startswith("Falta registrar Alquiler")

    async def test_mes_invalido(self, db, user):
        with pytest.raises(ValidationError, match="Mes inválido"):
            await expense_service.check_independence(db, user.id, 2026, 13)
