"""
Tests para la calculadora de fechas de programaciones.
"""

from datetime import date

from config.constants import Periodicidad, TipoDia
from src.utils.schedule_calculator import (
    ScheduleConfig,
    calculate_extension_dates,
    calculate_scheduled_dates,
    get_frequency_description,
    get_schedule_description,
    get_target_date_for_month,
    is_business_day,
    validate_schedule_config,
)


class TestBusinessDays:
    """Verifica que los festivos nacionales no son laborales."""

    def test_festivo_entre_semana(self):
        # 12 de octubre de 2026 es lunes
        assert not is_business_day(date(2026, 10, 12))

    def test_dia_normal(self):
        assert is_business_day(date(2026, 10, 13))

    def test_primer_laboral_salta_festivo_y_fin_de_semana(self):
        # 1 de mayo de 2026 es viernes y festivo
        assert get_target_date_for_month(2026, 5, TipoDia.PRIMER_DIA_LABORAL) == date(2026, 5, 4)

    def test_ultimo_laboral_retrocede_desde_domingo(self):
        # 31 de mayo de 2026 es domingo
        assert get_target_date_for_month(2026, 5, TipoDia.ULTIMO_DIA_LABORAL) == date(2026, 5, 29)

    def test_dia_especifico_recortado(self):
        assert get_target_date_for_month(2026, 2, TipoDia.DIA_ESPECIFICO, 30) == date(2026, 2, 28)


class TestCalculateScheduledDates:
    """Tests para la generación de fechas de una serie."""

    def test_ultimo_dia_mensual(self):
        config = ScheduleConfig(
            periodicidad=Periodicidad.MENSUAL,
            tipo_dia=TipoDia.ULTIMO_DIA,
            fecha_inicio=date(2026, 1, 15),
            fecha_fin=date(2026, 4, 30),
        )
        assert calculate_scheduled_dates(config) == [
            date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)
        ]

    def test_descarta_fechas_anteriores_al_inicio(self):
        """El día 10 de enero es anterior a un inicio el 15: la serie empieza en febrero."""
        config = ScheduleConfig(
            periodicidad="MENSUAL",
            tipo_dia="DIA_ESPECIFICO",
            dia_especifico=10,
            fecha_inicio=date(2026, 1, 15),
            fecha_fin=date(2026, 3, 31),
        )
        assert calculate_scheduled_dates(config) == [date(2026, 2, 10), date(2026, 3, 10)]

    def test_semestral(self):
        config = ScheduleConfig(
            periodicidad=Periodicidad.SEMESTRAL,
            tipo_dia=TipoDia.PRIMER_DIA,
            fecha_inicio=date(2026, 1, 1),
            fecha_fin=date(2027, 12, 31),
        )
        assert calculate_scheduled_dates(config) == [
            date(2026, 1, 1), date(2026, 7, 1), date(2027, 1, 1), date(2027, 7, 1)
        ]

    def test_fin_por_ano_objetivo(self):
        config = ScheduleConfig(
            periodicidad=Periodicidad.ANUAL,
            tipo_dia=TipoDia.PRIMER_DIA,
            fecha_inicio=date(2026, 1, 1),
            target_end_year=2028,
        )
        assert len(calculate_scheduled_dates(config)) == 3

    def test_limite_de_registros(self):
        config = ScheduleConfig(
            periodicidad=Periodicidad.MENSUAL,
            tipo_dia=TipoDia.PRIMER_DIA,
            fecha_inicio=date(2026, 1, 1),
            fecha_fin=date(2040, 12, 31),
        )
        assert len(calculate_scheduled_dates(config, max_records=5)) == 5


class TestCalculateExtensionDates:
    """Tests para extender una serie a un año nuevo."""

    def test_trimestral_ano_completo(self):
        fechas = calculate_extension_dates(Periodicidad.TRIMESTRAL, TipoDia.PRIMER_DIA, 2027)
        assert fechas == [date(2027, 1, 1), date(2027, 4, 1), date(2027, 7, 1), date(2027, 10, 1)]

    def test_serie_terminada_antes_del_ano(self):
        fechas = calculate_extension_dates(
            Periodicidad.MENSUAL, TipoDia.PRIMER_DIA, 2027, fecha_fin=date(2026, 12, 31)
        )
        assert fechas == []

    def test_respeta_la_fecha_fin(self):
        fechas = calculate_extension_dates(
            Periodicidad.MENSUAL, TipoDia.PRIMER_DIA, 2027, fecha_fin=date(2027, 3, 15)
        )
        assert fechas == [date(2027, 1, 1), date(2027, 2, 1), date(2027, 3, 1)]


class TestValidateScheduleConfig:
    """Tests para la validación previa a generar registros."""

    def _config(self, **kwargs):
        defaults = dict(
            periodicidad=Periodicidad.MENSUAL,
            tipo_dia=TipoDia.PRIMER_DIA,
            fecha_inicio=date(2026, 1, 1),
            fecha_fin=date(2026, 12, 31),
        )
        defaults.update(kwargs)
        return ScheduleConfig(**defaults)

    def test_configuracion_valida(self):
        assert validate_schedule_config(self._config())

    def test_sin_fecha_inicio(self):
        result = validate_schedule_config(self._config(fecha_inicio=None))
        assert result.error == "La fecha de inicio es requerida"

    def test_fin_anterior_al_inicio(self):
        result = validate_schedule_config(self._config(fecha_fin=date(2025, 12, 31)))
        assert not result
        assert "posterior" in result.error

    def test_dia_especifico_sin_dia(self):
        result = validate_schedule_config(self._config(tipo_dia=TipoDia.DIA_ESPECIFICO))
        assert result.error == "El día específico debe ser un número entre 1 y 31"

    def test_demasiados_registros(self):
        result = validate_schedule_config(
            self._config(fecha_fin=date(2036, 12, 31)), max_records=12
        )
        assert not result
        assert "más de 12" in result.error

    def test_sin_registros(self):
        result = validate_schedule_config(
            self._config(
                tipo_dia=TipoDia.DIA_ESPECIFICO,
                dia_especifico=20,
                fecha_inicio=date(2026, 1, 21),
                fecha_fin=date(2026, 1, 31),
            )
        )
        assert result.error == "No se generaría ningún registro con esta configuración"


class TestLabels:

    def test_descripcion(self):
        assert get_schedule_description(
            Periodicidad.TRIMESTRAL, TipoDia.ULTIMO_DIA_LABORAL
        ) == "último día laboral de cada trimestre"

    def test_descripcion_dia_especifico(self):
        assert get_schedule_description("MENSUAL", "DIA_ESPECIFICO", 5) == "día 5 de cada mes"

    def test_frecuencia_personalizada(self):
        assert get_frequency_description("PERSONALIZADO", 15) == "Cada 15 días"
