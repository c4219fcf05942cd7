"""
Tests para la calculadora de fechas de facturas recurrentes.
"""

from datetime import date

import pytest

from config.constants import Frecuencia, TipoDiaGeneracion
from src.utils.date_calculator import (
    add_months,
    calcular_periodo_facturacion,
    calcular_proxima_generacion,
    calcular_proxima_generacion_inicial,
    generate_all_scheduled_dates,
    get_first_business_day,
    get_generation_day,
    get_last_business_day,
    parse_sql_date,
)


# ============================================================================
# ARITMÉTICA DE CALENDARIO
# ============================================================================

class TestAddMonths:
    """Tests para la suma de meses sin desbordamiento."""

    def test_fin_de_enero_a_febrero_bisiesto(self):
        """31 de enero más un mes es el 29 de febrero en año bisiesto."""
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_fin_de_enero_a_febrero_no_bisiesto(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)

    def test_cruce_de_ano(self):
        assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)

    def test_meses_negativos(self):
        assert add_months(date(2026, 1, 10), -1) == date(2025, 12, 10)


class TestBusinessDays:
    """Tests para primer y último día lectivo."""

    def test_primer_lectivo_cuando_el_1_es_sabado(self):
        # 1 de febrero de 2025 es sábado
        assert get_first_business_day(2025, 2) == date(2025, 2, 3)

    def test_ultimo_lectivo_cuando_el_ultimo_es_domingo(self):
        # 31 de agosto de 2025 es domingo
        assert get_last_business_day(2025, 8) == date(2025, 8, 29)


# ============================================================================
# DÍA DE GENERACIÓN
# ============================================================================

class TestGetGenerationDay:
    """Tests para la regla de día de generación."""

    def test_dia_especifico_se_recorta_al_fin_de_mes(self):
        assert get_generation_day(2026, 4, TipoDiaGeneracion.DIA_ESPECIFICO, 31) == date(2026, 4, 30)

    def test_dia_especifico_sin_dia(self):
        """DIA_ESPECIFICO sin día es un error."""
        with pytest.raises(ValueError):
            get_generation_day(2026, 4, TipoDiaGeneracion.DIA_ESPECIFICO)

    def test_ultimo_dia_natural(self):
        assert get_generation_day(2026, 2, "ULTIMO_DIA_NATURAL") == date(2026, 2, 28)

    def test_tipo_desconocido(self):
        with pytest.raises(ValueError, match="Tipo de día de generación no válido"):
            get_generation_day(2026, 2, "CADA_LUNES")


# ============================================================================
# PRÓXIMA GENERACIÓN
# ============================================================================

class TestCalcularProximaGeneracion:
    """Tests para el cálculo de la siguiente fecha."""

    def test_mensual_dia_31(self):
        """Mensual el día 31 desde enero cae el último de febrero."""
        proxima = calcular_proxima_generacion(
            Frecuencia.MENSUAL, date(2024, 1, 31), TipoDiaGeneracion.DIA_ESPECIFICO, 31
        )
        assert proxima == date(2024, 2, 29)

    def test_mensual_recupera_el_dia_tras_febrero(self):
        proxima = calcular_proxima_generacion(
            Frecuencia.MENSUAL, date(2024, 2, 29), TipoDiaGeneracion.DIA_ESPECIFICO, 31
        )
        assert proxima == date(2024, 3, 31)

    def test_trimestral_primer_dia_natural(self):
        proxima = calcular_proxima_generacion(
            "TRIMESTRAL", date(2026, 1, 1), "PRIMER_DIA_NATURAL"
        )
        assert proxima == date(2026, 4, 1)

    def test_anual(self):
        proxima = calcular_proxima_generacion(
            Frecuencia.ANUAL, date(2026, 3, 15), TipoDiaGeneracion.DIA_ESPECIFICO, 15
        )
        assert proxima == date(2027, 3, 15)

    def test_personalizado_suma_dias(self):
        proxima = calcular_proxima_generacion(
            Frecuencia.PERSONALIZADO, date(2026, 1, 1), TipoDiaGeneracion.DIA_ESPECIFICO, 5, 45
        )
        assert proxima == date(2026, 2, 15)

    def test_personalizado_sin_intervalo(self):
        with pytest.raises(ValueError, match="intervalo_dias"):
            calcular_proxima_generacion(
                Frecuencia.PERSONALIZADO, date(2026, 1, 1), TipoDiaGeneracion.PRIMER_DIA_NATURAL
            )

    def test_frecuencia_desconocida(self):
        with pytest.raises(ValueError, match="Frecuencia no válida"):
            calcular_proxima_generacion("SEMANAL", date(2026, 1, 1), "PRIMER_DIA_NATURAL")


class TestCalcularProximaGeneracionInicial:
    """Tests para la primera fecha de una plantilla nueva."""

    def test_inicio_futuro_devuelve_la_siguiente_ocurrencia(self):
        proxima = calcular_proxima_generacion_inicial(
            Frecuencia.MENSUAL, date(2026, 5, 1), TipoDiaGeneracion.PRIMER_DIA_NATURAL,
            hoy=date(2026, 4, 10),
        )
        assert proxima == date(2026, 6, 1)

    def test_inicio_pasado_avanza_hasta_hoy(self):
        """Una fecha de inicio pasada avanza hasta la primera fecha >= hoy."""
        proxima = calcular_proxima_generacion_inicial(
            Frecuencia.MENSUAL, date(2026, 1, 15), TipoDiaGeneracion.DIA_ESPECIFICO, 15,
            hoy=date(2026, 4, 10),
        )
        assert proxima == date(2026, 4, 15)

    def test_inicio_pasado_coincide_con_hoy(self):
        proxima = calcular_proxima_generacion_inicial(
            Frecuencia.MENSUAL, date(2026, 1, 10), TipoDiaGeneracion.DIA_ESPECIFICO, 10,
            hoy=date(2026, 4, 10),
        )
        assert proxima == date(2026, 4, 10)


# ============================================================================
# PERIODO DE FACTURACIÓN
# ============================================================================

class TestCalcularPeriodoFacturacion:
    """Tests para el periodo que cubre cada factura."""

    def test_mensual_factura_el_mes_anterior(self):
        assert calcular_periodo_facturacion(Frecuencia.MENSUAL, date(2026, 3, 1)) == (
            date(2026, 2, 1), date(2026, 2, 28)
        )

    def test_trimestral_factura_el_trimestre_anterior(self):
        assert calcular_periodo_facturacion(Frecuencia.TRIMESTRAL, date(2026, 4, 1)) == (
            date(2026, 1, 1), date(2026, 3, 31)
        )

    def test_anual_cruza_el_ano(self):
        assert calcular_periodo_facturacion(Frecuencia.ANUAL, date(2026, 1, 5)) == (
            date(2025, 1, 1), date(2025, 12, 31)
        )

    def test_duracion_personalizada(self):
        assert calcular_periodo_facturacion(Frecuencia.MENSUAL, date(2026, 3, 20), 10) == (
            date(2026, 3, 1), date(2026, 3, 10)
        )

    def test_personalizado_factura_el_mes_en_curso(self):
        assert calcular_periodo_facturacion(Frecuencia.PERSONALIZADO, date(2026, 3, 20)) == (
            date(2026, 3, 1), date(2026, 3, 31)
        )


# ============================================================================
# ENUMERACIÓN
# ============================================================================

class TestGenerateAllScheduledDates:
    """Tests para la enumeración de fechas (backfill)."""

    def test_incluye_inicio_y_fin(self):
        fechas = generate_all_scheduled_dates(
            Frecuencia.MENSUAL, date(2026, 1, 1), date(2026, 4, 1),
            TipoDiaGeneracion.PRIMER_DIA_NATURAL,
        )
        assert fechas == [date(2026, 1, 1), date(2026, 2, 1), date(2026, 3, 1), date(2026, 4, 1)]

    def test_rango_vacio(self):
        fechas = generate_all_scheduled_dates(
            Frecuencia.MENSUAL, date(2026, 5, 1), date(2026, 4, 1),
            TipoDiaGeneracion.PRIMER_DIA_NATURAL,
        )
        assert fechas == []


class TestParseSqlDate:

    def test_acepta_iso_con_hora(self):
        assert parse_sql_date("2026-03-01T10:00:00") == date(2026, 3, 1)

    def test_acepta_date(self):
        assert parse_sql_date(date(2026, 3, 1)) == date(2026, 3, 1)
