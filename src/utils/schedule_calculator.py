"""
Calculadora de fechas para programaciones

Una programación (serie) genera de golpe todos los ingresos o gastos de un
rango de fechas: cada mes, trimestre, semestre o año, en el día que marque
su `tipo_dia`. A diferencia de la calculadora de facturas recurrentes, los
días laborales excluyen también los festivos nacionales de fecha fija.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Union

from config.constants import (
    FESTIVOS_NACIONALES,
    MAX_REGISTROS_PROGRAMACION,
    Periodicidad,
    TipoDia,
)
from src.utils.date_calculator import days_in_month
from src.utils.validators import ValidationResult

MESES_POR_PERIODICIDAD = {
    Periodicidad.MENSUAL: 1,
    Periodicidad.TRIMESTRAL: 3,
    Periodicidad.SEMESTRAL: 6,
    Periodicidad.ANUAL: 12,
}

PERIODICIDAD_LABELS = {
    Periodicidad.MENSUAL: "Mensual",
    Periodicidad.TRIMESTRAL: "Trimestral",
    Periodicidad.SEMESTRAL: "Semestral",
    Periodicidad.ANUAL: "Anual",
}

PERIODICIDAD_DESCRIPCION = {
    Periodicidad.MENSUAL: "cada mes",
    Periodicidad.TRIMESTRAL: "cada trimestre",
    Periodicidad.SEMESTRAL: "cada semestre",
    Periodicidad.ANUAL: "cada año",
}


@dataclass
class ScheduleConfig:
    """Configuración de una serie de fechas."""
    periodicidad: Periodicidad
    tipo_dia: TipoDia
    fecha_inicio: Optional[date]
    dia_especifico: Optional[int] = None
    fecha_fin: Optional[date] = None
    target_end_year: Optional[int] = None

    def __post_init__(self):
        self.periodicidad = Periodicidad(self.periodicidad)
        self.tipo_dia = TipoDia(self.tipo_dia)

    def resolve_fecha_fin(self, hoy: Optional[date] = None) -> date:
        """Fin explícito, o 31/12 del año objetivo, o 31/12 del año en curso."""
        if self.fecha_fin:
            return self.fecha_fin
        if self.target_end_year:
            return date(self.target_end_year, 12, 31)
        return date((hoy or date.today()).year, 12, 31)


# ============================================================================
# DÍAS LABORALES
# ============================================================================

def is_weekend(fecha: date) -> bool:
    return fecha.weekday() >= 5


def is_holiday(fecha: date) -> bool:
    return (fecha.month, fecha.day) in FESTIVOS_NACIONALES


def is_business_day(fecha: date) -> bool:
    return not is_weekend(fecha) and not is_holiday(fecha)


def get_target_date_for_month(
    year: int,
    month: int,
    tipo_dia: Union[TipoDia, str],
    dia_especifico: Optional[int] = None
) -> date:
    """Fecha concreta de un mes según el tipo de día."""
    tipo = TipoDia(tipo_dia)
    ultimo = days_in_month(year, month)

    if tipo == TipoDia.PRIMER_DIA:
        return date(year, month, 1)

    if tipo == TipoDia.ULTIMO_DIA:
        return date(year, month, ultimo)

    if tipo == TipoDia.PRIMER_DIA_LABORAL:
        fecha = date(year, month, 1)
        while not is_business_day(fecha):
            fecha += timedelta(days=1)
        return fecha

    if tipo == TipoDia.ULTIMO_DIA_LABORAL:
        fecha = date(year, month, ultimo)
        while not is_business_day(fecha):
            fecha -= timedelta(days=1)
        return fecha

    if not dia_especifico or dia_especifico < 1 or dia_especifico > 31:
        raise ValueError("dia_especifico debe ser un número entre 1 y 31")
    return date(year, month, min(dia_especifico, ultimo))


# ============================================================================
# CÁLCULO DE FECHAS
# ============================================================================

def calculate_scheduled_dates(
    config: ScheduleConfig,
    max_records: int = MAX_REGISTROS_PROGRAMACION,
    hoy: Optional[date] = None
) -> List[date]:
    """
    Todas las fechas de la serie dentro de [fecha_inicio, fecha_fin].

    Se recorre desde el mes de inicio saltando 1/3/6/12 meses. Se corta
    al superar el fin o al alcanzar `max_records`.
    """
    inicio = config.fecha_inicio
    fin = config.resolve_fecha_fin(hoy)
    paso = MESES_POR_PERIODICIDAD[config.periodicidad]

    fechas: List[date] = []
    year, month = inicio.year, inicio.month

    while len(fechas) < max_records:
        objetivo = get_target_date_for_month(year, month, config.tipo_dia, config.dia_especifico)

        if objetivo > fin:
            break
        if objetivo >= inicio:
            fechas.append(objetivo)

        month += paso
        while month > 12:
            month -= 12
            year += 1

    return fechas


def calculate_extension_dates(
    periodicidad: Union[Periodicidad, str],
    tipo_dia: Union[TipoDia, str],
    target_year: int,
    dia_especifico: Optional[int] = None,
    fecha_fin: Optional[date] = None
) -> List[date]:
    """
    Fechas de un año concreto para extender una serie existente.

    Si la serie termina antes de ese año, no hay fechas.
    """
    inicio_ano = date(target_year, 1, 1)
    fin_ano = date(target_year, 12, 31)

    if fecha_fin and fecha_fin < inicio_ano:
        return []

    config = ScheduleConfig(
        periodicidad=periodicidad,
        tipo_dia=tipo_dia,
        dia_especifico=dia_especifico,
        fecha_inicio=inicio_ano,
        fecha_fin=min(fecha_fin, fin_ano) if fecha_fin else fin_ano,
    )
    return calculate_scheduled_dates(config)


def count_scheduled_dates(config: ScheduleConfig, max_records: int = MAX_REGISTROS_PROGRAMACION) -> int:
    return len(calculate_scheduled_dates(config, max_records=max_records))


def validate_schedule_config(
    config: ScheduleConfig,
    max_records: int = MAX_REGISTROS_PROGRAMACION
) -> ValidationResult:
    """
    Valida una configuración antes de generar registros.

    Se cuenta con un registro de margen sobre el máximo para poder
    distinguir "justo en el límite" de "demasiados".
    """
    if not config.fecha_inicio:
        return ValidationResult(valid=False, error="La fecha de inicio es requerida")

    if config.fecha_fin and config.fecha_fin < config.fecha_inicio:
        return ValidationResult(
            valid=False, error="La fecha de fin debe ser posterior a la fecha de inicio"
        )

    if config.tipo_dia == TipoDia.DIA_ESPECIFICO:
        if not config.dia_especifico or config.dia_especifico < 1 or config.dia_especifico > 31:
            return ValidationResult(
                valid=False, error="El día específico debe ser un número entre 1 y 31"
            )

    total = count_scheduled_dates(config, max_records=max_records + 1)
    if total > max_records:
        return ValidationResult(
            valid=False,
            error=(
                f"Se generarían demasiados registros (más de {max_records}). "
                "Por favor, limita el rango de fechas."
            ),
        )

    if total == 0:
        return ValidationResult(
            valid=False, error="No se generaría ningún registro con esta configuración"
        )

    return ValidationResult(valid=True)


# ============================================================================
# ETIQUETAS
# ============================================================================

def get_periodicidad_label(periodicidad: Union[Periodicidad, str]) -> str:
    return PERIODICIDAD_LABELS[Periodicidad(periodicidad)]


def get_tipo_dia_label(tipo_dia: Union[TipoDia, str], dia_especifico: Optional[int] = None) -> str:
    tipo = TipoDia(tipo_dia)
    labels = {
        TipoDia.ULTIMO_DIA_LABORAL: "Último día laboral",
        TipoDia.PRIMER_DIA_LABORAL: "Primer día laboral",
        TipoDia.ULTIMO_DIA: "Último día",
        TipoDia.PRIMER_DIA: "Primer día",
    }
    if tipo == TipoDia.DIA_ESPECIFICO:
        return f"Día {dia_especifico or '?'}"
    return labels[tipo]


def get_schedule_description(
    periodicidad: Union[Periodicidad, str],
    tipo_dia: Union[TipoDia, str],
    dia_especifico: Optional[int] = None
) -> str:
    """Ejemplo: 'último día laboral de cada trimestre'."""
    periodo = PERIODICIDAD_DESCRIPCION[Periodicidad(periodicidad)]
    return f"{get_tipo_dia_label(tipo_dia, dia_especifico).lower()} de {periodo}"


def get_frequency_label(frecuencia: str) -> str:
    labels = {
        "MENSUAL": "Mensual",
        "TRIMESTRAL": "Trimestral",
        "SEMESTRAL": "Semestral",
        "ANUAL": "Anual",
        "PERSONALIZADO": "Personalizado",
    }
    return labels.get(str(getattr(frecuencia, "value", frecuencia)), str(frecuencia))


def get_frequency_description(frecuencia: str, intervalo_dias: Optional[int] = None) -> str:
    valor = str(getattr(frecuencia, "value", frecuencia))
    if valor == "PERSONALIZADO":
        return f"Cada {intervalo_dias} días" if intervalo_dias else "Personalizado"
    return {
        "MENSUAL": "Cada mes",
        "TRIMESTRAL": "Cada 3 meses",
        "SEMESTRAL": "Cada 6 meses",
        "ANUAL": "Una vez al año",
    }.get(valor, valor)
