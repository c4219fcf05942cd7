"""
Tests para el panel y el flujo de caja.

Escenario común (2026), autónomo con tarifa plana (cuota 88,56 €):
    - Factura de 1.000 € del 15/01, cobrada el 01/02 (total 1.140 €)
    - Factura de 2.000 € del 10/02, pendiente (total 2.280 €, vence el 12/03)
    - Gasto de 100 € del 20/01, sin pagar (total 121 €)
"""

from datetime import date

import pytest

from src.services import dashboard_service
from src.utils.errors import ValidationError
from src.utils.tax_calculations import round_to_cents
from tests.factories import ClienteFactory, FacturaEmitidaFactory, GastoFactory, UserFactory, persist

HOY = date(2026, 2, 15)
CUOTA_TARIFA_PLANA = 88.56


@pytest.fixture
async def autonomo(db):
    return await persist(db, UserFactory(tiene_tarifa_plana_ss=True, fecha_alta_aeat=date(2025, 1, 1)))


@pytest.fixture
async def movimientos(db, autonomo):
    cliente = await persist(db, ClienteFactory(user_id=autonomo.id))
    return await persist(
        db,
        FacturaEmitidaFactory(
            user_id=autonomo.id, cliente_id=cliente.id,
            fecha_emision=date(2026, 1, 15), pagada_trait=True, fecha_pago=date(2026, 2, 1),
        ),
        FacturaEmitidaFactory(
            user_id=autonomo.id, cliente_id=cliente.id,
            fecha_emision=date(2026, 2, 10), base_imponible=2000.0,
        ),
        GastoFactory(user_id=autonomo.id, fecha_emision=date(2026, 1, 20)),
    )


def _dia(flujo, fecha):
    return next(d for d in flujo["flujo_diario"] if d["fecha"] == fecha)


class TestProximoPlazo:

    def test_sigue_abierto_el_trimestre_anterior(self):
        assert dashboard_service.proximo_plazo(date(2026, 1, 10)) == (4, 2025, date(2026, 1, 20))

    def test_plazo_del_trimestre_en_curso(self):
        assert dashboard_service.proximo_plazo(date(2026, 4, 25)) == (2, 2026, date(2026, 7, 20))


class TestResumen:
    """Tests para el resumen del panel."""

    async def test_balance_real(self, db, autonomo, movimientos):
        resumen = await dashboard_service.resumen(db, autonomo, saldo_bancario=10000, today=HOY)
        balance = resumen["balance_real"]

        assert balance["saldo_bancario"] == 10000
        assert balance["iva_pendiente_pagar"] == 609
        assert balance["seguridad_social_pendiente"] == CUOTA_TARIFA_PLANA
        assert balance["irpf_brecha"] >= 0
        assert balance["balance_real"] == round_to_cents(
            10000 - 609 - balance["irpf_brecha"] - CUOTA_TARIFA_PLANA
        )
        assert balance["advertencia"].startswith("Tu balance real es")

    async def test_ano_y_mes(self, db, autonomo, movimientos):
        resumen = await dashboard_service.resumen(db, autonomo, today=HOY)

        assert resumen["ano_actual"]["ingresos"] == 3000
        assert resumen["ano_actual"]["gastos_deducibles"] == 100
        assert resumen["ano_actual"]["gastos_totales"] == 121
        assert resumen["ano_actual"]["beneficio_neto"] == 2900
        assert resumen["mes_actual"] == {
            "mes": 2,
            "ingresos": 2000,
            "gastos": 0,
            "beneficio": 2000,
            "num_facturas": 1,
            "num_gastos": 0,
        }

    async def test_proximo_trimestre(self, db, autonomo, movimientos):
        proximo = (await dashboard_service.resumen(db, autonomo, today=HOY))["proximo_trimestre"]

        assert proximo["trimestre"] == 1
        assert proximo["fecha_limite"] == "2026-04-20"
        assert proximo["dias_restantes"] == 64
        assert proximo["urgente"] is False
        assert proximo["iva_a_presentar"] == 609
        assert proximo["irpf_a_presentar"] == 580

    async def test_facturas_pendientes(self, db, autonomo, movimientos):
        pendientes = (await dashboard_service.resumen(db, autonomo, today=HOY))["facturas_pendientes"]

        assert pendientes["cantidad"] == 1
        assert pendientes["total"] == 2280
        assert pendientes["facturas"][0]["dias_vencimiento"] == 25
        assert pendientes["facturas"][0]["fecha_vencimiento"] == "2026-03-12"

    async def test_sin_obligaciones_balance_al_dia(self, db):
        user = await persist(db, UserFactory(tiene_tarifa_plana_ss=True))
        resumen = await dashboard_service.resumen(db, user, saldo_bancario=500, today=HOY)

        assert resumen["balance_real"]["balance_real"] == round_to_cents(500 - CUOTA_TARIFA_PLANA)
        assert resumen["trade"] is None

    async def test_trade_con_un_solo_cliente(self, db):
        user = await persist(db, UserFactory(trade=True))
        cliente = await persist(db, ClienteFactory(user_id=user.id))
        await persist(db, FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id))

        trade = (await dashboard_service.resumen(db, user, today=HOY))["trade"]

        assert trade["cliente_principal"] == cliente.nombre
        assert trade["porcentaje_dependencia"] == 100
        assert trade["dependencia"] == "100.00%"
        assert trade["cumple_requisitos"] is True
        assert trade["riesgo_score"] == 90
        assert trade["nivel_riesgo"] == "CRÍTICO"
        assert trade["gastos_independencia_mes_actual"] == {
            "alquiler": False, "electricidad": False, "internet": False,
        }


class TestGraficoIngresosGastos:

    async def test_doce_meses(self, db, autonomo, movimientos):
        cliente_id = movimientos[0].cliente_id
        await persist(db, FacturaEmitidaFactory(
            user_id=autonomo.id, cliente_id=cliente_id,
            fecha_emision=date(2026, 3, 5), base_imponible=5000.0, cancelada=True,
        ))

        grafico = await dashboard_service.grafico_ingresos_gastos(db, autonomo.id, 2026)

        assert grafico["labels"][0] == "Ene"
        assert grafico["labels"][11] == "Dic"
        assert grafico["ingresos"][:3] == [1000, 2000, 0]
        assert grafico["gastos"][:3] == [100, 0, 0]
        assert grafico["beneficio_neto"][:3] == [900, 2000, 0]
        assert len(grafico["ingresos"]) == 12

    async def test_ano_fuera_de_rango(self, db, autonomo):
        with pytest.raises(ValidationError, match="Año inválido"):
            await dashboard_service.grafico_ingresos_gastos(db, autonomo.id, 2019)


class TestFlujoDiario:
    """Tests para el flujo de caja día a día."""

    async def test_reales_y_potenciales(self, db, autonomo, movimientos):
        flujo = await dashboard_service.flujo_diario(
            db, autonomo, date(2026, 1, 1), date(2026, 4, 30), today=HOY
        )

        assert len(flujo["flujo_diario"]) == 120
        assert _dia(flujo, "2026-02-01")["ingresos_reales"] == 1140
        assert _dia(flujo, "2026-02-10")["ingresos_potenciales"] == 2280
        assert _dia(flujo, "2026-01-20")["gastos_potenciales"] == 121
        assert _dia(flujo, "2026-01-15")["ingresos"] == 0

    async def test_obligaciones_fiscales(self, db, autonomo, movimientos):
        flujo = await dashboard_service.flujo_diario(
            db, autonomo, date(2026, 1, 1), date(2026, 4, 30), today=HOY
        )

        assert flujo["cuota_autonomos_mensual"] == CUOTA_TARIFA_PLANA
        # Cuota el último día laborable: 31/01 y 28/02 de 2026 caen en sábado
        for fecha in ("2026-01-30", "2026-02-27", "2026-03-31", "2026-04-30"):
            assert _dia(flujo, fecha)["fiscal"] == CUOTA_TARIFA_PLANA

        plazo = _dia(flujo, "2026-04-20")
        assert plazo["fiscal"] == 609 + 580
        assert [t["concepto"] for t in plazo["transacciones"]] == [
            "Modelo 303 - 1T 2026", "Modelo 130 - 1T 2026",
        ]
        # El 4T de 2025 no tuvo actividad
        assert _dia(flujo, "2026-01-20")["fiscal"] == 0

    async def test_saldos(self, db, autonomo, movimientos):
        flujo = await dashboard_service.flujo_diario(
            db, autonomo, date(2026, 1, 1), date(2026, 4, 30), saldo_inicial=1000, today=HOY
        )
        fiscal = 609 + 580 + 4 * CUOTA_TARIFA_PLANA

        ultimo = flujo["flujo_diario"][-1]
        assert flujo["saldo_final"] == ultimo["saldo"]
        assert ultimo["saldo"] == round_to_cents(1000 + 1140 + 2280 - 121 - fiscal)
        assert ultimo["saldo_real"] == round_to_cents(1000 + 1140 - fiscal)

    async def test_sin_alta_aeat_no_hay_pagos_fiscales(self, db, user, cliente):
        await persist(db, FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id))

        flujo = await dashboard_service.flujo_diario(db, user, date(2026, 1, 1), date(2026, 4, 30), today=HOY)

        assert flujo["cuota_autonomos_mensual"] is None
        assert all(d["fiscal"] == 0 for d in flujo["flujo_diario"])

    async def test_modelos_ocultos_no_cuentan(self, db, movimientos, autonomo):
        autonomo.mostrar_modelo_130 = False

        flujo = await dashboard_service.flujo_diario(
            db, autonomo, date(2026, 4, 1), date(2026, 4, 30), today=HOY
        )

        assert _dia(flujo, "2026-04-20")["fiscal"] == 609

    async def test_periodo_invertido(self, db, user):
        with pytest.raises(ValidationError, match="anterior a la de inicio"):
            await dashboard_service.flujo_diario(db, user, date(2026, 2, 1), date(2026, 1, 1))

    async def test_periodo_demasiado_largo(self, db, user):
        with pytest.raises(ValidationError, match="731"):
            await dashboard_service.flujo_diario(db, user, date(2025, 1, 1), date(2027, 3, 1))


class TestHistorialFlujoCaja:

    async def test_agrupa_por_mes(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(
                user_id=user.id, cliente_id=cliente.id,
                fecha_emision=date(2026, 1, 15), pagada_trait=True, fecha_pago=date(2026, 2, 1),
            ),
            GastoFactory(user_id=user.id, fecha_emision=date(2026, 1, 20)),
        )

        historial = await dashboard_service.historial_flujo_caja(db, user, 2026, today=HOY)

        assert [m["label"] for m in historial] == list(dashboard_service.MESES)
        assert historial[0]["gastos"] == 121
        assert historial[0]["saldo"] == -121
        assert historial[1]["ingresos"] == 1140
        assert historial[11]["saldo"] == 1140 - 121
        assert historial[11]["saldo_real"] == 1140


class TestDatosModelo:
    """Tests para los datos de presentación de un modelo."""

    async def test_modelo_trimestral(self, db, autonomo, movimientos):
        datos = await dashboard_service.datos_modelo(db, autonomo, "303", 1, 2026)

        assert datos["url_presentacion"].endswith("G414.shtml")
        assert datos["datos_identificativos"]["nif"] == autonomo.nif
        assert datos["trimestre"] == 1
        assert datos["datos_modelo"]["modelo"] == "303"
        assert datos["datos_modelo"]["resultado_iva"] == 609

    async def test_trimestre_por_defecto(self, db, autonomo):
        datos = await dashboard_service.datos_modelo(db, autonomo, "130", today=HOY)

        assert datos["ano"] == 2026
        assert datos["trimestre"] == 1

    async def test_renta(self, db, autonomo, movimientos):
        datos = await dashboard_service.datos_modelo(db, autonomo, "renta", year=2026)

        assert datos["modelo"] == "RENTA"
        assert datos["trimestre"] is None
        assert datos["datos_modelo"]["rendimiento_neto"] == 2900

    async def test_modelo_desconocido(self, db, autonomo):
        with pytest.raises(ValidationError, match="Modelo no soportado"):
            await dashboard_service.datos_modelo(db, autonomo, "999")
