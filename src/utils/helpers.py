"""
Utilidades fiscales y de formato

- Numeración de facturas
- Trimestres, plazos de presentación y recordatorios
- Casillas AEAT a partir de totales ya agregados
- Clasificación de gastos y alertas TRADE
- Formato de moneda, porcentajes, slugs y nombres de archivo
"""

import re
import unicodedata
from datetime import date, timedelta
from typing import Any, Dict, Optional, Tuple

from config.constants import DATE_FORMAT, NivelRiesgo, SQL_DATE_FORMAT
from src.utils.date_calculator import days_in_month
from src.utils.tax_calculations import TIPO_PAGO_FRACCIONADO, TIPO_RETENCION_ALQUILER, round_to_cents


# ============================================================================
# NUMERACIÓN Y FECHAS
# ============================================================================

def generar_numero_factura(year: int, last_number: int, serie: Optional[str] = None) -> str:
    """
    Siguiente número de factura: YYYY-NNN (2024-001).

    Con una serie distinta de la principal se antepone la serie: B2024-001.
    """
    numero = f"{year}-{last_number + 1:03d}"
    return f"{serie}{numero}" if serie else numero


def extraer_secuencia(numero_factura: str) -> int:
    """Parte numérica final de un número de factura ('2024-012' -> 12)."""
    match = re.search(r'(\d+)$', numero_factura or "")
    return int(match.group(1)) if match else 0


def formatear_fecha(fecha: date, formato: str = DATE_FORMAT) -> str:
    return fecha.strftime(formato)


def obtener_trimestre(fecha: date) -> int:
    return (fecha.month - 1) // 3 + 1


def obtener_periodo_trimestre(trimestre: int, year: int) -> Tuple[date, date]:
    """Primer y último día del trimestre."""
    mes_inicio = (trimestre - 1) * 3 + 1
    mes_fin = mes_inicio + 2
    return date(year, mes_inicio, 1), date(year, mes_fin, days_in_month(year, mes_fin))


def obtener_fecha_limite_modelo(trimestre: int, year: int) -> date:
    """Día 20 del mes siguiente al trimestre (enero del año siguiente para el 4T)."""
    limites = {
        1: date(year, 4, 20),
        2: date(year, 7, 20),
        3: date(year, 10, 20),
        4: date(year + 1, 1, 20),
    }
    return limites[trimestre]


def calcular_fecha_recordatorio(fecha_limite: date, dias: int = 5) -> date:
    return fecha_limite - timedelta(days=dias)


def obtener_ultimo_dia_laborable(year: int, month: int) -> date:
    """Último lunes-viernes del mes."""
    fecha = date(year, month, days_in_month(year, month))
    while fecha.weekday() >= 5:
        fecha -= timedelta(days=1)
    return fecha


# Mes de presentación, día límite general y día límite de retenciones (111/115)
RANGOS_TRIMESTRE = {
    1: (4, 20, 20),
    2: (7, 20, 20),
    3: (10, 21, 21),
    4: (1, 30, 20),
}


def obtener_rango_fechas_presentacion(
    trimestre: int,
    year: int,
    modelo: Optional[str] = None
) -> Dict[str, str]:
    """
    Plazo de presentación de un modelo trimestral.

    El 4T se presenta en enero del año siguiente: hasta el 30 para 303/130
    y hasta el 20 para los modelos de retenciones (111, 115).

    Returns:
        {"fecha_inicio": "YYYY-MM-DD", "fecha_limite": "YYYY-MM-DD"}
    """
    mes, dia_normal, dia_retenciones = RANGOS_TRIMESTRE[trimestre]
    year_final = year + 1 if trimestre == 4 else year
    dia_limite = dia_retenciones if modelo in ("111", "115") else dia_normal

    return {
        "fecha_inicio": date(year_final, mes, 1).strftime(SQL_DATE_FORMAT),
        "fecha_limite": date(year_final, mes, dia_limite).strftime(SQL_DATE_FORMAT),
    }


def obtener_rango_fechas_renta(year: int) -> Dict[str, str]:
    """Campaña de la Renta: 11 de abril a 30 de junio del año siguiente."""
    return {
        "fecha_inicio": date(year + 1, 4, 11).strftime(SQL_DATE_FORMAT),
        "fecha_limite": date(year + 1, 6, 30).strftime(SQL_DATE_FORMAT),
    }


def obtener_rango_fechas_390(year: int) -> Dict[str, str]:
    return {
        "fecha_inicio": date(year + 1, 1, 1).strftime(SQL_DATE_FORMAT),
        "fecha_limite": date(year + 1, 1, 30).strftime(SQL_DATE_FORMAT),
    }


def obtener_rango_fechas_180(year: int) -> Dict[str, str]:
    return {
        "fecha_inicio": date(year + 1, 1, 1).strftime(SQL_DATE_FORMAT),
        "fecha_limite": date(year + 1, 1, 31).strftime(SQL_DATE_FORMAT),
    }


# ============================================================================
# CASILLAS AEAT
# ============================================================================

def generar_casillas_modelo303_completo(
    desglose_repercutido: Dict[str, float],
    base_soportada: float,
    cuota_soportada: float,
    compensaciones_anteriores: float = 0
) -> Dict[str, float]:
    """
    Casillas del 303 para operaciones interiores.

    `desglose_repercutido` admite claves base_4, cuota_4, base_10,
    cuota_10, base_21 y cuota_21; las ausentes cuentan como 0.
    """
    d = {k: desglose_repercutido.get(k) or 0 for k in (
        "base_4", "cuota_4", "base_10", "cuota_10", "base_21", "cuota_21"
    )}

    devengado = round_to_cents(d["cuota_4"] + d["cuota_10"] + d["cuota_21"])
    deducible = round_to_cents(cuota_soportada)
    resultado_general = round_to_cents(devengado - deducible)
    resultado_final = round_to_cents(resultado_general - compensaciones_anteriores)

    return {
        "casilla_01": round_to_cents(d["base_4"]),
        "casilla_02": 4,
        "casilla_03": round_to_cents(d["cuota_4"]),
        "casilla_04": round_to_cents(d["base_10"]),
        "casilla_05": 10,
        "casilla_06": round_to_cents(d["cuota_10"]),
        "casilla_07": round_to_cents(d["base_21"]),
        "casilla_08": 21,
        "casilla_09": round_to_cents(d["cuota_21"]),
        "casilla_27": devengado,
        "casilla_28": round_to_cents(base_soportada),
        "casilla_29": deducible,
        "casilla_45": deducible,
        "casilla_46": resultado_general,
        "casilla_69": resultado_final,
        "casilla_71": resultado_final if resultado_final > 0 else 0,
        "casilla_72": abs(resultado_final) if resultado_final < 0 else 0,
    }


def generar_casillas_modelo303(
    base_imponible_21: float,
    cuota_iva_21: float,
    base_soportado: float,
    cuota_soportado: float
) -> Dict[str, float]:
    """Casillas del 303 asumiendo todo el IVA repercutido al 21%."""
    return generar_casillas_modelo303_completo(
        {"base_21": base_imponible_21, "cuota_21": cuota_iva_21},
        base_soportado,
        cuota_soportado,
    )


def generar_casillas_modelo130_acumulado(
    ingresos_acumulados: float,
    gastos_acumulados: float,
    pagos_anteriores: float = 0,
    retenciones_acumuladas: float = 0
) -> Dict[str, float]:
    rendimiento = round_to_cents(ingresos_acumulados - gastos_acumulados)
    pago = round_to_cents(rendimiento * TIPO_PAGO_FRACCIONADO) if rendimiento > 0 else 0
    previos = max(0, pagos_anteriores)
    resultado = round_to_cents(pago - previos - retenciones_acumuladas)

    return {
        "casilla_01": round_to_cents(ingresos_acumulados),
        "casilla_02": round_to_cents(gastos_acumulados),
        "casilla_03": rendimiento,
        "casilla_04": pago,
        "casilla_05": round_to_cents(previos),
        "casilla_06": round_to_cents(retenciones_acumuladas),
        "casilla_07": resultado,
    }


def generar_casillas_modelo115(
    num_perceptores: int,
    base_alquiler: float,
    a_deducir: float = 0
) -> Dict[str, float]:
    retenciones = round_to_cents(base_alquiler * TIPO_RETENCION_ALQUILER)
    return {
        "casilla_01": num_perceptores,
        "casilla_02": round_to_cents(base_alquiler),
        "casilla_03": retenciones,
        "casilla_04": round_to_cents(a_deducir),
        "casilla_05": round_to_cents(retenciones - a_deducir),
    }


# ============================================================================
# GASTOS Y TRADE
# ============================================================================

REGLAS_CATEGORIA = (
    ("Alquiler", ("alquiler", "arrendamiento", "renta")),
    ("Suministros", ("electricidad", "luz", "endesa", "iberdrola")),
    ("Suministros", ("internet", "telefon", "fibra", "movistar", "vodafone")),
    ("Manutención", ("comida", "restaurante")),
    ("Formación", ("formaci", "curso")),
    ("Software", ("software", "licencia")),
    ("Equipamiento", ("ordenador", "laptop")),
)


def detectar_categoria_gasto(concepto: str) -> str:
    """Categoría por palabras clave del concepto; 'Otros' si no encaja."""
    texto = (concepto or "").lower()
    for categoria, palabras in REGLAS_CATEGORIA:
        if any(p in texto for p in palabras):
            return categoria
    return "Otros"


def es_gasto_independencia(categoria: str, concepto: str) -> bool:
    """Alquiler o suministros esenciales (luz, internet, agua) a nombre propio."""
    cat = (categoria or "").lower()
    texto = (concepto or "").lower()

    if "alquiler" in cat or "alquiler" in texto or "arrendamiento" in texto:
        return True

    if "suministro" in cat and any(p in texto for p in ("electricidad", "luz", "internet", "agua")):
        return True

    return False


def calcular_nivel_riesgo_gasto(categoria: str, fecha: date, importe: float) -> str:
    """
    Manutención en fin de semana es riesgo ALTO; en laborable por encima
    de 50 € es MEDIO. Cualquier gasto de más de 1.000 € que no sea
    alquiler es MEDIO.
    """
    if categoria == "Manutención":
        if fecha.weekday() >= 5:
            return NivelRiesgo.ALTO.value
        if importe > 50:
            return NivelRiesgo.MEDIO.value

    if importe > 1000 and categoria != "Alquiler":
        return NivelRiesgo.MEDIO.value

    return NivelRiesgo.BAJO.value


def generar_mensaje_alerta_trade(tipo: str, detalles: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    detalles = detalles or {}

    if tipo == "FALTA_GASTO_INDEPENDENCIA":
        return {
            "titulo": "Falta gasto de independencia",
            "descripcion": (
                f"No has registrado {detalles.get('tipo_gasto')} de "
                f"{detalles.get('mes')}/{detalles.get('ano')} a tu nombre."
            ),
            "recomendacion": (
                "Como autónomo TRADE con local alquilado, debes demostrar independencia "
                "del cliente. Sube la factura a tu nombre lo antes posible."
            ),
        }

    if tipo == "EXCESO_DEPENDENCIA":
        return {
            "titulo": "Exceso de dependencia de cliente",
            "descripcion": (
                f"Tu dependencia del cliente principal es del {detalles.get('porcentaje')}%, "
                "superando el límite del 75% para TRADE."
            ),
            "recomendacion": (
                "Considera buscar un segundo cliente para diversificar ingresos "
                "y reducir el riesgo fiscal."
            ),
        }

    if tipo == "GASTO_ALTO_RIESGO":
        return {
            "titulo": "Gasto de riesgo detectado",
            "descripcion": detalles.get("descripcion", ""),
            "recomendacion": (
                "Asegúrate de tener justificación adecuada y documentación "
                "adicional para este gasto."
            ),
        }

    return {
        "titulo": "Alerta de cumplimiento",
        "descripcion": "Se ha detectado una situación que requiere tu atención.",
        "recomendacion": "Revisa los detalles y toma las acciones necesarias.",
    }


# ============================================================================
# FORMATO
# ============================================================================

def formatear_moneda(importe: float) -> str:
    """
    Formato es-ES: '1234,56 €', '12.345,67 €'.

    Como en el locale español, los miles solo se agrupan a partir de
    cinco cifras enteras.
    """
    negativo = importe < 0
    entero, decimales = f"{abs(round_to_cents(importe)):.2f}".split(".")
    if len(entero) > 4:
        entero = f"{int(entero):,}".replace(",", ".")
    return f"{'-' if negativo else ''}{entero},{decimales} €"


def formatear_porcentaje(valor: float, decimales: int = 2) -> str:
    return f"{valor:.{decimales}f}%"


def sanitizar_nombre_archivo(nombre: str) -> str:
    limpio = re.sub(r'[^a-zA-Z0-9.-]', '_', nombre)
    limpio = re.sub(r'_+', '_', limpio)
    return limpio.lower()


def generar_slug(texto: str) -> str:
    """'Factura Énero 2024' -> 'factura-enero-2024'."""
    normalizado = unicodedata.normalize("NFD", texto.lower())
    sin_acentos = "".join(c for c in normalizado if unicodedata.category(c) != "Mn")
    slug = re.sub(r'[^\w\s-]', '', sin_acentos)
    slug = re.sub(r'\s+', '-', slug.strip())
    return re.sub(r'-+', '-', slug)
