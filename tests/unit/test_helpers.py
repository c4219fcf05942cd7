"""
Tests para las utilidades fiscales y de formato.
"""

from datetime import date

import pytest

from src.utils.helpers import (
    calcular_fecha_recordatorio,
    calcular_nivel_riesgo_gasto,
    detectar_categoria_gasto,
    es_gasto_independencia,
    extraer_secuencia,
    formatear_fecha,
    formatear_moneda,
    formatear_porcentaje,
    generar_casillas_modelo115,
    generar_casillas_modelo130_acumulado,
    generar_casillas_modelo303,
    generar_mensaje_alerta_trade,
    generar_numero_factura,
    generar_slug,
    obtener_fecha_limite_modelo,
    obtener_periodo_trimestre,
    obtener_rango_fechas_presentacion,
    obtener_rango_fechas_renta,
    obtener_trimestre,
    obtener_ultimo_dia_laborable,
    sanitizar_nombre_archivo,
)


class TestNumeracion:
    """Tests para la numeración de facturas."""

    def test_siguiente_numero(self):
        assert generar_numero_factura(2026, 4) == "2026-005"

    def test_primer_numero(self):
        assert generar_numero_factura(2026, 0) == "2026-001"

    def test_serie_secundaria(self):
        assert generar_numero_factura(2026, 4, "B") == "B2026-005"

    def test_mas_de_999(self):
        assert generar_numero_factura(2026, 999) == "2026-1000"

    @pytest.mark.parametrize("numero,esperado", [
        ("2026-012", 12),
        ("B2026-007", 7),
        ("sin-numero", 0),
        (None, 0),
    ])
    def test_extraer_secuencia(self, numero, esperado):
        assert extraer_secuencia(numero) == esperado


class TestTrimestres:
    """Tests para trimestres y plazos."""

    def test_obtener_trimestre(self):
        assert obtener_trimestre(date(2026, 3, 31)) == 1
        assert obtener_trimestre(date(2026, 10, 1)) == 4

    def test_periodo_trimestre(self):
        assert obtener_periodo_trimestre(1, 2024) == (date(2024, 1, 1), date(2024, 3, 31))
        assert obtener_periodo_trimestre(2, 2026) == (date(2026, 4, 1), date(2026, 6, 30))

    def test_fecha_limite_cuarto_trimestre(self):
        assert obtener_fecha_limite_modelo(4, 2026) == date(2027, 1, 20)

    def test_recordatorio(self):
        assert calcular_fecha_recordatorio(date(2026, 4, 20)) == date(2026, 4, 15)

    def test_plazo_303_cuarto_trimestre(self):
        assert obtener_rango_fechas_presentacion(4, 2026) == {
            "fecha_inicio": "2027-01-01",
            "fecha_limite": "2027-01-30",
        }

    def test_plazo_retenciones_cuarto_trimestre(self):
        assert obtener_rango_fechas_presentacion(4, 2026, "115")["fecha_limite"] == "2027-01-20"

    def test_plazo_primer_trimestre(self):
        assert obtener_rango_fechas_presentacion(1, 2026)["fecha_limite"] == "2026-04-20"

    def test_campana_renta(self):
        assert obtener_rango_fechas_renta(2026)["fecha_limite"] == "2027-06-30"

    def test_ultimo_dia_laborable(self):
        # 31 de mayo de 2026 es domingo
        assert obtener_ultimo_dia_laborable(2026, 5) == date(2026, 5, 29)


class TestCasillas:
    """Tests para las casillas AEAT a partir de totales."""

    def test_modelo303_a_ingresar(self):
        casillas = generar_casillas_modelo303(1000, 210, 100, 21)
        assert casillas["casilla_07"] == 1000
        assert casillas["casilla_27"] == 210
        assert casillas["casilla_29"] == 21
        assert casillas["casilla_46"] == 189
        assert casillas["casilla_71"] == 189
        assert casillas["casilla_72"] == 0

    def test_modelo303_a_compensar(self):
        casillas = generar_casillas_modelo303(100, 21, 1000, 210)
        assert casillas["casilla_71"] == 0
        assert casillas["casilla_72"] == 189

    def test_modelo130_acumulado(self):
        casillas = generar_casillas_modelo130_acumulado(10000, 4000, 600, 300)
        assert casillas["casilla_03"] == 6000
        assert casillas["casilla_04"] == 1200
        assert casillas["casilla_07"] == 300

    def test_modelo130_sin_rendimiento(self):
        casillas = generar_casillas_modelo130_acumulado(1000, 4000)
        assert casillas["casilla_04"] == 0

    def test_modelo115(self):
        casillas = generar_casillas_modelo115(1, 800)
        assert casillas["casilla_03"] == 152
        assert casillas["casilla_05"] == 152


class TestGastos:
    """Tests para la clasificación de gastos."""

    @pytest.mark.parametrize("concepto,categoria", [
        ("Alquiler local marzo", "Alquiler"),
        ("Factura Iberdrola enero", "Suministros"),
        ("Fibra Movistar", "Suministros"),
        ("Curso de Python", "Formación"),
        ("Licencia IDE", "Software"),
        ("Material de oficina", "Otros"),
        ("", "Otros"),
    ])
    def test_detectar_categoria(self, concepto, categoria):
        assert detectar_categoria_gasto(concepto) == categoria

    def test_independencia_alquiler(self):
        assert es_gasto_independencia("Alquiler", "Local")

    def test_independencia_suministros(self):
        assert es_gasto_independencia("Suministros", "Electricidad marzo")
        assert es_gasto_independencia("Suministros", "Internet oficina")

    def test_no_independencia(self):
        assert not es_gasto_independencia("Software", "Licencia")

    def test_riesgo_manutencion_fin_de_semana(self):
        # 17 de enero de 2026 es sábado
        assert calcular_nivel_riesgo_gasto("Manutención", date(2026, 1, 17), 20) == "ALTO"

    def test_riesgo_manutencion_laborable_cara(self):
        assert calcular_nivel_riesgo_gasto("Manutención", date(2026, 1, 20), 60) == "MEDIO"

    def test_riesgo_gasto_alto(self):
        assert calcular_nivel_riesgo_gasto("Equipamiento", date(2026, 1, 20), 1500) == "MEDIO"
        assert calcular_nivel_riesgo_gasto("Alquiler", date(2026, 1, 20), 1500) == "BAJO"

    def test_alerta_dependencia(self):
        alerta = generar_mensaje_alerta_trade("EXCESO_DEPENDENCIA", {"porcentaje": 90})
        assert "90%" in alerta["descripcion"]

    def test_alerta_desconocida(self):
        assert generar_mensaje_alerta_trade("OTRA")["titulo"] == "Alerta de cumplimiento"


class TestFormato:

    @pytest.mark.parametrize("importe,esperado", [
        (1234.56, "1234,56 €"),
        (12345.67, "12.345,67 €"),
        (1234567.8, "1.234.567,80 €"),
        (-5, "-5,00 €"),
    ])
    def test_formatear_moneda(self, importe, esperado):
        assert formatear_moneda(importe) == esperado

    def test_formatear_porcentaje(self):
        assert formatear_porcentaje(82.5) == "82.50%"
        assert formatear_porcentaje(82.456, decimales=1) == "82.5%"

    def test_formatear_fecha(self):
        assert formatear_fecha(date(2026, 3, 1)) == "01/03/2026"
        assert formatear_fecha(date(2026, 3, 1), "%Y-%m") == "2026-03"

    def test_slug(self):
        assert generar_slug("Factura Énero 2024") == "factura-enero-2024"

    def test_nombre_archivo(self):
        assert sanitizar_nombre_archivo("Factura 2024/01.pdf") == "factura_2024_01.pdf"
