"""
Calculadora de fechas para facturas recurrentes

Dada una frecuencia (MENSUAL, TRIMESTRAL, ANUAL, PERSONALIZADO), una regla
de día de generación y una fecha base, calcula la siguiente fecha de
emisión, el periodo facturado y todas las fechas entre dos límites (para
detectar huecos y hacer backfill).

Aquí "lectivo" significa lunes a viernes; no se tienen en cuenta festivos.

Uso:
    from src.utils.date_calculator import calcular_proxima_generacion

    proxima = calcular_proxima_generacion(
        Frecuencia.MENSUAL, date(2024, 1, 31), TipoDiaGeneracion.DIA_ESPECIFICO, 31
    )  # date(2024, 2, 29)
"""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple, Union

from config.constants import Frecuencia, TipoDiaGeneracion, SQL_DATE_FORMAT

MESES_POR_FRECUENCIA = {
    Frecuencia.MENSUAL: 1,
    Frecuencia.TRIMESTRAL: 3,
    Frecuencia.ANUAL: 12,
}

# Límite de iteraciones al avanzar desde fechas muy antiguas
MAX_ITERACIONES = 10_000


# ============================================================================
# ARITMÉTICA DE CALENDARIO
# ============================================================================

def days_in_month(year: int, month: int) -> int:
    """Número de días del mes (month 1-12)."""
    return calendar.monthrange(year, month)[1]


def add_months(fecha: date, months: int) -> date:
    """
    Suma meses sin desbordar: el día se recorta al último del mes destino.

    31/01 + 1 mes = 28/02 (o 29/02), nunca 02/03 ni 03/03.
    """
    total = fecha.year * 12 + (fecha.month - 1) + months
    year, month = divmod(total, 12)
    month += 1
    return date(year, month, min(fecha.day, days_in_month(year, month)))


def start_of_month(fecha: date) -> date:
    return fecha.replace(day=1)


def end_of_month(fecha: date) -> date:
    return fecha.replace(day=days_in_month(fecha.year, fecha.month))


def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def is_last_day_of_month(fecha: date) -> bool:
    return fecha.day == days_in_month(fecha.year, fecha.month)


def is_business_day(fecha: date) -> bool:
    """Lunes a viernes."""
    return fecha.weekday() < 5


def get_first_business_day(year: int, month: int) -> date:
    fecha = date(year, month, 1)
    while not is_business_day(fecha):
        fecha += timedelta(days=1)
    return fecha


def get_last_business_day(year: int, month: int) -> date:
    fecha = date(year, month, days_in_month(year, month))
    while not is_business_day(fecha):
        fecha -= timedelta(days=1)
    return fecha


# ============================================================================
# DÍA DE GENERACIÓN
# ============================================================================

def _as_enum(value, enum_cls, error_message: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"{error_message}: {value}")


def get_generation_day(
    year: int,
    month: int,
    tipo_dia: Union[TipoDiaGeneracion, str],
    dia_especifico: Optional[int] = None
) -> date:
    """
    Obtiene el día de generación dentro de un mes.

    Args:
        year: Año
        month: Mes (1-12)
        tipo_dia: Regla de día de generación
        dia_especifico: Día 1-31, solo para DIA_ESPECIFICO

    Returns:
        Fecha calculada

    Raises:
        ValueError: Si la regla no existe o falta el día específico
    """
    tipo = _as_enum(tipo_dia, TipoDiaGeneracion, "Tipo de día de generación no válido")

    if tipo == TipoDiaGeneracion.DIA_ESPECIFICO:
        if not dia_especifico or dia_especifico < 1 or dia_especifico > 31:
            raise ValueError(
                "dia_generacion requerido y debe estar entre 1-31 para tipo DIA_ESPECIFICO"
            )
        return date(year, month, min(dia_especifico, days_in_month(year, month)))

    if tipo == TipoDiaGeneracion.PRIMER_DIA_NATURAL:
        return date(year, month, 1)

    if tipo == TipoDiaGeneracion.PRIMER_DIA_LECTIVO:
        return get_first_business_day(year, month)

    if tipo == TipoDiaGeneracion.ULTIMO_DIA_NATURAL:
        return date(year, month, days_in_month(year, month))

    return get_last_business_day(year, month)


# ============================================================================
# PRÓXIMA GENERACIÓN
# ============================================================================

def calcular_proxima_generacion(
    frecuencia: Union[Frecuencia, str],
    fecha_base: date,
    tipo_dia_generacion: Union[TipoDiaGeneracion, str],
    dia_generacion: Optional[int] = None,
    intervalo_dias: Optional[int] = None
) -> date:
    """
    Calcula la siguiente fecha de generación a partir de una fecha base.

    Para MENSUAL/TRIMESTRAL/ANUAL se avanza 1/3/12 meses y se aplica la
    regla de día en el mes destino. PERSONALIZADO suma `intervalo_dias`
    días e ignora la regla de día.

    Raises:
        ValueError: Frecuencia desconocida o intervalo ausente en PERSONALIZADO
    """
    freq = _as_enum(frecuencia, Frecuencia, "Frecuencia no válida")

    if freq == Frecuencia.PERSONALIZADO:
        if not intervalo_dias or intervalo_dias <= 0:
            raise ValueError("intervalo_dias requerido para frecuencia PERSONALIZADO")
        return fecha_base + timedelta(days=intervalo_dias)

    # El día 1 evita que el recorte de add_months cambie el mes destino
    target = add_months(fecha_base.replace(day=1), MESES_POR_FRECUENCIA[freq])

    return get_generation_day(target.year, target.month, tipo_dia_generacion, dia_generacion)


def calcular_proxima_generacion_inicial(
    frecuencia: Union[Frecuencia, str],
    fecha_inicio: date,
    tipo_dia_generacion: Union[TipoDiaGeneracion, str],
    dia_generacion: Optional[int] = None,
    intervalo_dias: Optional[int] = None,
    hoy: Optional[date] = None
) -> date:
    """
    Primera fecha de generación al crear una plantilla.

    Si la fecha de inicio es hoy o futura, devuelve la siguiente ocurrencia
    tras ella. Si es pasada, avanza hasta la primera ocurrencia que no
    sea anterior a hoy.
    """
    hoy = hoy or date.today()

    if fecha_inicio >= hoy:
        return calcular_proxima_generacion(
            frecuencia, fecha_inicio, tipo_dia_generacion, dia_generacion, intervalo_dias
        )

    proxima = fecha_inicio
    for _ in range(MAX_ITERACIONES):
        if proxima >= hoy:
            break
        proxima = calcular_proxima_generacion(
            frecuencia, proxima, tipo_dia_generacion, dia_generacion, intervalo_dias
        )

    return proxima


# ============================================================================
# PERIODO DE FACTURACIÓN
# ============================================================================

def calcular_periodo_facturacion(
    frecuencia: Union[Frecuencia, str],
    fecha_emision: date,
    duracion_dias: Optional[int] = None
) -> Tuple[date, date]:
    """
    Periodo que cubre una factura emitida en `fecha_emision`.

    Con duración personalizada el periodo empieza el día 1 del mes de
    emisión. Si no, se factura el periodo anterior completo según la
    frecuencia (mes, trimestre o año); PERSONALIZADO factura el mes en curso.

    Returns:
        Tupla (inicio, fin), ambos inclusive
    """
    if duracion_dias and duracion_dias > 0:
        inicio = start_of_month(fecha_emision)
        return inicio, inicio + timedelta(days=duracion_dias - 1)

    try:
        freq = Frecuencia(frecuencia)
    except ValueError:
        freq = None

    if freq in MESES_POR_FRECUENCIA:
        meses = MESES_POR_FRECUENCIA[freq]
        inicio = add_months(start_of_month(fecha_emision), -meses)
        fin = end_of_month(add_months(inicio, meses - 1))
        return inicio, fin

    return start_of_month(fecha_emision), end_of_month(fecha_emision)


# ============================================================================
# ENUMERACIÓN (BACKFILL)
# ============================================================================

def generate_all_scheduled_dates(
    frecuencia: Union[Frecuencia, str],
    fecha_inicio: date,
    fecha_fin: date,
    tipo_dia_generacion: Union[TipoDiaGeneracion, str],
    dia_generacion: Optional[int] = None,
    intervalo_dias: Optional[int] = None
) -> List[date]:
    """
    Todas las fechas programadas entre inicio y fin (ambos inclusive).

    No descarta fechas pasadas: sirve para detectar facturas que faltan
    en una plantilla. La primera fecha es siempre `fecha_inicio`.
    """
    fechas: List[date] = []
    actual = fecha_inicio

    while actual <= fecha_fin and len(fechas) < MAX_ITERACIONES:
        fechas.append(actual)
        actual = calcular_proxima_generacion(
            frecuencia, actual, tipo_dia_generacion, dia_generacion, intervalo_dias
        )

    return fechas


# ============================================================================
# FORMATO
# ============================================================================

def format_date_for_sql(fecha: date) -> str:
    """YYYY-MM-DD."""
    return fecha.strftime(SQL_DATE_FORMAT)


def parse_sql_date(value: Union[str, date, datetime]) -> date:
    """Acepta 'YYYY-MM-DD', ISO con hora, date o datetime."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], SQL_DATE_FORMAT).date()
