"""
Cálculos fiscales españoles

IVA, IRPF, modelos AEAT (303, 130, 111, 115, 180, 390),
dependencia TRADE y cuota de autónomos.

Todos los importes se redondean a céntimos con redondeo comercial
(medio hacia arriba), no con el redondeo bancario de round().
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from config.constants import AccionModelo, NivelRiesgo, TipoPerceptor, TOLERANCIA_CUADRE

TIPO_RETENCION_ALQUILER = 0.19
TIPO_PAGO_FRACCIONADO = 0.20
UMBRAL_TRADE = 75.0


def round_to_cents(value: float) -> float:
    """Redondea a 2 decimales (medio hacia arriba)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _accion(resultado: float, negativo: AccionModelo = AccionModelo.A_COMPENSAR) -> str:
    if resultado > 0:
        return AccionModelo.A_INGRESAR.value
    if resultado < 0:
        return negativo.value
    return AccionModelo.SIN_ACTIVIDAD.value


# ============================================================================
# IVA / IRPF BÁSICO
# ============================================================================

def calcular_cuota_iva(base_imponible: float, tipo_iva: float) -> float:
    return round_to_cents(base_imponible * tipo_iva / 100)


def calcular_cuota_irpf(base_imponible: float, tipo_irpf: float) -> float:
    return round_to_cents(base_imponible * tipo_irpf / 100)


def calcular_total_factura(base_imponible: float, cuota_iva: float, cuota_irpf: float) -> float:
    """Total = Base + IVA - IRPF."""
    return round_to_cents(base_imponible + cuota_iva - cuota_irpf)


def calcular_total_gasto(base_imponible: float, cuota_iva: float, cuota_irpf: float = 0) -> float:
    """Igual que una factura; el IRPF solo aplica en alquileres y profesionales."""
    return round_to_cents(base_imponible + cuota_iva - cuota_irpf)


def calcular_importes(base_imponible: float, tipo_iva: float, tipo_irpf: float = 0) -> Dict[str, float]:
    """Cuotas y total de una factura o gasto."""
    cuota_iva = calcular_cuota_iva(base_imponible, tipo_iva)
    cuota_irpf = calcular_cuota_irpf(base_imponible, tipo_irpf)
    return {
        "base_imponible": round_to_cents(base_imponible),
        "cuota_iva": cuota_iva,
        "cuota_irpf": cuota_irpf,
        "total_factura": calcular_total_factura(base_imponible, cuota_iva, cuota_irpf),
    }


# ============================================================================
# MODELO 303 - IVA TRIMESTRAL
# ============================================================================

@dataclass
class DesgloseIVARepercutido:
    """IVA devengado por tipo impositivo (casillas 01-09)."""
    base_4: float = 0.0
    cuota_4: float = 0.0
    base_10: float = 0.0
    cuota_10: float = 0.0
    base_21: float = 0.0
    cuota_21: float = 0.0

    @property
    def base_total(self) -> float:
        return round_to_cents(self.base_4 + self.base_10 + self.base_21)

    @property
    def cuota_total(self) -> float:
        return round_to_cents(self.cuota_4 + self.cuota_10 + self.cuota_21)


@dataclass
class DesgloseIVASoportado:
    """IVA deducible, con intracomunitarias, inversión del sujeto pasivo y rectificaciones."""
    base_deducible: float = 0.0
    cuota_deducible: float = 0.0
    base_intracomunitaria: float = 0.0
    cuota_intracomunitaria: float = 0.0
    base_inversion_sp: float = 0.0
    cuota_inversion_sp: float = 0.0
    base_rectificaciones: float = 0.0
    cuota_rectificaciones: float = 0.0

    @property
    def base_total(self) -> float:
        return round_to_cents(
            self.base_deducible + self.base_intracomunitaria
            + self.base_inversion_sp + self.base_rectificaciones
        )

    @property
    def cuota_total(self) -> float:
        return round_to_cents(
            self.cuota_deducible + self.cuota_intracomunitaria
            + self.cuota_inversion_sp + self.cuota_rectificaciones
        )


def calcular_modelo303_completo(
    repercutido: DesgloseIVARepercutido,
    soportado: DesgloseIVASoportado,
    compensaciones_anteriores: float = 0,
    regularizacion_art80: float = 0
) -> Dict[str, Any]:
    """
    Modelo 303 con todas las casillas del régimen general.

    Las adquisiciones intracomunitarias y la inversión del sujeto pasivo
    se autorrepercuten: suman en devengado (27) y en deducible (45).

    Returns:
        Diccionario con desgloses, totales, resultado, acción y casillas
    """
    total_devengado = round_to_cents(
        repercutido.cuota_total
        + soportado.cuota_intracomunitaria
        + soportado.cuota_inversion_sp
    )
    total_deducible = round_to_cents(soportado.cuota_total)
    resultado_general = round_to_cents(total_devengado - total_deducible)
    resultado_final = round_to_cents(
        resultado_general - compensaciones_anteriores + regularizacion_art80
    )

    casillas = {
        "casilla_01": round_to_cents(repercutido.base_4),
        "casilla_02": 4,
        "casilla_03": round_to_cents(repercutido.cuota_4),
        "casilla_04": round_to_cents(repercutido.base_10),
        "casilla_05": 10,
        "casilla_06": round_to_cents(repercutido.cuota_10),
        "casilla_07": round_to_cents(repercutido.base_21),
        "casilla_08": 21,
        "casilla_09": round_to_cents(repercutido.cuota_21),
        "casilla_10": round_to_cents(soportado.base_intracomunitaria),
        "casilla_11": round_to_cents(soportado.cuota_intracomunitaria),
        "casilla_12": round_to_cents(soportado.base_inversion_sp),
        "casilla_13": round_to_cents(soportado.cuota_inversion_sp),
        "casilla_14": round_to_cents(soportado.base_rectificaciones),
        "casilla_15": round_to_cents(soportado.cuota_rectificaciones),
        "casilla_27": total_devengado,
        "casilla_28": round_to_cents(soportado.base_deducible),
        "casilla_29": round_to_cents(soportado.cuota_deducible),
        # Bienes de inversión e importaciones no se registran
        "casilla_30": 0,
        "casilla_31": 0,
        "casilla_32": 0,
        "casilla_33": 0,
        "casilla_34": 0,
        "casilla_35": 0,
        "casilla_36": round_to_cents(soportado.base_intracomunitaria),
        "casilla_37": round_to_cents(soportado.cuota_intracomunitaria),
        "casilla_38": round_to_cents(soportado.base_rectificaciones),
        "casilla_39": round_to_cents(soportado.cuota_rectificaciones),
        "casilla_40": 0,
        "casilla_41": 0,
        "casilla_42": 0,
        "casilla_45": total_deducible,
        "casilla_46": resultado_general,
        "casilla_64": 0,
        "casilla_65": resultado_general,
        "casilla_66": round_to_cents(compensaciones_anteriores),
        "casilla_67": round_to_cents(regularizacion_art80),
        "casilla_69": resultado_final,
        "casilla_71": resultado_final if resultado_final > 0 else 0,
        "casilla_72": abs(resultado_final) if resultado_final < 0 else 0,
    }

    return {
        "desglose_repercutido": {
            **repercutido.__dict__,
            "base_total": repercutido.base_total,
            "cuota_total": repercutido.cuota_total,
        },
        "desglose_soportado": {
            **soportado.__dict__,
            "base_total": soportado.base_total,
            "cuota_total": soportado.cuota_total,
        },
        "iva_repercutido": repercutido.cuota_total,
        "iva_soportado": soportado.cuota_total,
        "resultado": resultado_final,
        "accion": _accion(resultado_final),
        "casillas": casillas,
    }


def calcular_modelo303(iva_repercutido: float, iva_soportado: float) -> Dict[str, Any]:
    """Versión resumida: solo totales de cuotas."""
    resultado = round_to_cents(iva_repercutido - iva_soportado)
    return {
        "iva_repercutido": round_to_cents(iva_repercutido),
        "iva_soportado": round_to_cents(iva_soportado),
        "resultado": resultado,
        "accion": _accion(resultado),
    }


# ============================================================================
# MODELO 130 - PAGO FRACCIONADO IRPF
# ============================================================================

def calcular_modelo130_acumulado(
    ingresos_acumulados: float,
    gastos_acumulados: float,
    retenciones_acumuladas: float = 0,
    pagos_anteriores: float = 0,
    trimestre: int = 1,
    ano: Optional[int] = None,
    tipo: float = TIPO_PAGO_FRACCIONADO
) -> Dict[str, Any]:
    """
    Modelo 130 con datos acumulados desde el 1 de enero.

    Casilla 03 = 01 - 02; 04 = 20% de 03 si es positiva; 05 son los pagos
    positivos de trimestres anteriores; 07 = 04 - 05 - 06.
    """
    rendimiento_neto = round_to_cents(ingresos_acumulados - gastos_acumulados)
    pago = round_to_cents(rendimiento_neto * tipo) if rendimiento_neto > 0 else 0
    pagos_previos = max(0, pagos_anteriores)
    retenciones = round_to_cents(retenciones_acumuladas)
    resultado = round_to_cents(pago - pagos_previos - retenciones)

    ingresos = round_to_cents(ingresos_acumulados)
    gastos = round_to_cents(gastos_acumulados)

    return {
        "casilla_01_ingresos_acumulados": ingresos,
        "casilla_02_gastos_acumulados": gastos,
        "casilla_03_rendimiento_neto": rendimiento_neto,
        "casilla_04_pago_20_pct": pago,
        "casilla_05_pagos_anteriores": pagos_previos,
        "casilla_06_retenciones_acumuladas": retenciones,
        "casilla_07_resultado": resultado,
        "actividades": [{"ingresos": ingresos, "gastos": gastos}],
        "ingresos_computables": ingresos,
        "gastos_deducibles": gastos,
        "rendimiento_neto": rendimiento_neto,
        "pago_fraccionado": pago,
        "retenciones_practicadas": retenciones,
        "pagos_anteriores": pagos_previos,
        "resultado": resultado,
        "accion": _accion(resultado),
        "trimestre": trimestre,
        "ano": ano or date.today().year,
        "es_acumulado": True,
    }


def calcular_modelo130(
    ingresos_computables: float,
    gastos_deducibles: float,
    retenciones_practicadas: float = 0
) -> Dict[str, Any]:
    """Modelo 130 de un solo trimestre, sin acumulados."""
    rendimiento_neto = round_to_cents(ingresos_computables - gastos_deducibles)
    pago = round_to_cents(rendimiento_neto * TIPO_PAGO_FRACCIONADO) if rendimiento_neto > 0 else 0
    resultado = round_to_cents(pago - retenciones_practicadas)

    return {
        "ingresos_computables": round_to_cents(ingresos_computables),
        "gastos_deducibles": round_to_cents(gastos_deducibles),
        "rendimiento_neto": rendimiento_neto,
        "pago_fraccionado": pago,
        "retenciones_practicadas": round_to_cents(retenciones_practicadas),
        "resultado": resultado,
        "accion": _accion(resultado),
    }


# ============================================================================
# MODELO 111 - RETENCIONES TRABAJO Y PROFESIONALES
# ============================================================================

@dataclass
class Perceptor111:
    nombre: str
    nif: str
    tipo: str
    base_retenciones: float
    tipo_retencion: float
    retencion_aplicada: float


def calcular_modelo111(perceptores: List[Perceptor111], a_deducir: float = 0) -> Dict[str, Any]:
    """
    Agrupa perceptores en trabajo (01-03), profesionales (04-06) y
    premios (07-09). Otros tipos cuentan en el total de perceptores
    pero no en las casillas.
    """
    def _grupo(tipo: TipoPerceptor):
        grupo = [p for p in perceptores if p.tipo == tipo.value]
        return (
            len(grupo),
            round_to_cents(sum(p.base_retenciones for p in grupo)),
            round_to_cents(sum(p.retencion_aplicada for p in grupo)),
        )

    c01, c02, c03 = _grupo(TipoPerceptor.TRABAJADOR)
    c04, c05, c06 = _grupo(TipoPerceptor.PROFESIONAL)
    c07, c08, c09 = _grupo(TipoPerceptor.PREMIO)

    total_retenciones = round_to_cents(c03 + c06 + c09)
    resultado = round_to_cents(total_retenciones - a_deducir)

    return {
        "casilla_01": c01, "casilla_02": c02, "casilla_03": c03,
        "casilla_04": c04, "casilla_05": c05, "casilla_06": c06,
        "casilla_07": c07, "casilla_08": c08, "casilla_09": c09,
        "casilla_10": 0, "casilla_11": 0, "casilla_12": 0,
        "casilla_13": 0, "casilla_14": 0, "casilla_15": 0,
        "casilla_28": total_retenciones,
        "casilla_29": round_to_cents(a_deducir),
        "casilla_30": resultado,
        "perceptores": [p.__dict__ for p in perceptores],
        "total_perceptores": len(perceptores),
        "total_base": round_to_cents(c02 + c05 + c08),
        "total_retenciones": total_retenciones,
        "resultado": resultado,
        "accion": _accion(resultado, negativo=AccionModelo.SIN_ACTIVIDAD),
    }


# ============================================================================
# MODELO 115 / 180 - RETENCIONES ALQUILERES
# ============================================================================

@dataclass
class Perceptor115:
    nombre: str
    nif: str
    base_alquiler: float
    retencion: float
    direccion_inmueble: str = ""


@dataclass
class Perceptor180(Perceptor115):
    provincia: str = ""
    referencia_catastral: Optional[str] = None
    rentas_anuales: float = 0.0
    retenciones_anuales: float = 0.0


def calcular_retencion_alquiler(base_alquiler: float) -> float:
    return round_to_cents(base_alquiler * TIPO_RETENCION_ALQUILER)


def calcular_modelo115(
    perceptores: List[Perceptor115],
    a_deducir: float = 0,
    trimestre: Optional[int] = None,
    ano: Optional[int] = None
) -> Dict[str, Any]:
    base_total = round_to_cents(sum(p.base_alquiler for p in perceptores))
    retenciones = round_to_cents(sum(p.retencion for p in perceptores))
    resultado = round_to_cents(retenciones - a_deducir)

    return {
        "casilla_01": len(perceptores),
        "casilla_02": base_total,
        "casilla_03": retenciones,
        "casilla_04": round_to_cents(a_deducir),
        "casilla_05": resultado,
        "perceptores": [p.__dict__ for p in perceptores],
        "total_base": base_total,
        "total_retenciones": retenciones,
        "resultado": resultado,
        "accion": _accion(resultado, negativo=AccionModelo.SIN_ACTIVIDAD),
        "trimestre": trimestre,
        "ano": ano,
    }


def calcular_modelo180(
    perceptores: List[Perceptor180],
    modelos115: List[Dict[str, Any]],
    ano: int
) -> Dict[str, Any]:
    """Resumen anual de retenciones de alquiler, cuadrado contra los 115."""
    base_total = round_to_cents(sum(p.rentas_anuales for p in perceptores))
    retenciones_total = round_to_cents(sum(p.retenciones_anuales for p in perceptores))
    suma_115 = round_to_cents(sum(m["total_retenciones"] for m in modelos115))
    diferencia = round_to_cents(abs(retenciones_total - suma_115))

    return {
        "ano": ano,
        "num_perceptores": len(perceptores),
        "base_total_anual": base_total,
        "retenciones_total_anual": retenciones_total,
        "perceptores": [p.__dict__ for p in perceptores],
        "desglose_trimestral": [
            {
                "trimestre": m.get("trimestre") or 0,
                "base": m["total_base"],
                "retenciones": m["total_retenciones"],
            }
            for m in modelos115
        ],
        "cuadra_con_115s": diferencia < TOLERANCIA_CUADRE,
        "diferencia": diferencia,
    }


# ============================================================================
# MODELO 390 - RESUMEN ANUAL IVA
# ============================================================================

def calcular_modelo390(
    modelos303: List[Dict[str, Any]],
    ano: int,
    desglose_por_tipo: Optional[Dict[str, Dict[str, float]]] = None
) -> Dict[str, Any]:
    """
    Resumen anual a partir de los cuatro 303.

    Sin desglose por tipo se asume todo al 21% (base = cuota / 0,21).
    """
    total_repercutido = round_to_cents(sum(m["iva_repercutido"] for m in modelos303))
    total_soportado = round_to_cents(sum(m["iva_soportado"] for m in modelos303))
    resultado_anual = round_to_cents(total_repercutido - total_soportado)
    suma_303s = round_to_cents(sum(m["resultado"] for m in modelos303))

    desglose = desglose_por_tipo or {
        "tipo_4": {"base": 0, "cuota": 0},
        "tipo_10": {"base": 0, "cuota": 0},
        "tipo_21": {"base": round_to_cents(total_repercutido / 0.21), "cuota": total_repercutido},
    }

    return {
        "ano": ano,
        "total_base_repercutida": round_to_cents(
            desglose["tipo_4"]["base"] + desglose["tipo_10"]["base"] + desglose["tipo_21"]["base"]
        ),
        "total_iva_repercutido": total_repercutido,
        "total_base_soportada": 0,
        "total_iva_soportado": total_soportado,
        "resultado_anual": resultado_anual,
        "desglose_por_tipo": desglose,
        "desglose_trimestral": [
            {
                "trimestre": m["trimestre"],
                "iva_repercutido": m["iva_repercutido"],
                "iva_soportado": m["iva_soportado"],
                "resultado": m["resultado"],
            }
            for m in modelos303
        ],
        "cuadra_con_303s": abs(resultado_anual - suma_303s) < TOLERANCIA_CUADRE,
        "suma_303s": suma_303s,
    }


# ============================================================================
# IRPF ANUAL Y BALANCE
# ============================================================================

TRAMOS_IRPF = (
    (12450, 19),
    (20200, 24),
    (35200, 30),
    (60000, 37),
    (300000, 45),
)


def estimar_tramo_irpf(rendimiento_neto_anual: float) -> int:
    """Tipo marginal estatal+autonómico aproximado."""
    for limite, tipo in TRAMOS_IRPF:
        if rendimiento_neto_anual <= limite:
            return tipo
    return 47


def calcular_brecha_irpf(rendimiento_neto_anual: float, tipo_retenido_actual: float) -> float:
    """Lo que faltará pagar en la Renta con el tipo de retención actual."""
    tipo_estimado = estimar_tramo_irpf(rendimiento_neto_anual)
    retenido = round_to_cents(rendimiento_neto_anual * tipo_retenido_actual / 100)
    estimado = round_to_cents(rendimiento_neto_anual * tipo_estimado / 100)
    return round_to_cents(estimado - retenido)


def calcular_balance_real(
    saldo_bancario: float,
    iva_pendiente_pagar: float,
    irpf_brecha: float,
    seguridad_social_pendiente: float = 0
) -> Dict[str, float]:
    balance = round_to_cents(
        saldo_bancario - iva_pendiente_pagar - irpf_brecha - seguridad_social_pendiente
    )
    return {
        "saldo_bancario": round_to_cents(saldo_bancario),
        "iva_pendiente_pagar": round_to_cents(iva_pendiente_pagar),
        "irpf_brecha": round_to_cents(irpf_brecha),
        "seguridad_social_pendiente": round_to_cents(seguridad_social_pendiente),
        "balance_real": balance,
        "diferencia": round_to_cents(saldo_bancario - balance),
    }


# ============================================================================
# TRADE
# ============================================================================

def calcular_porcentaje_dependencia(facturacion_cliente_principal: float, facturacion_total: float) -> float:
    if facturacion_total == 0:
        return 0
    return round_to_cents(facturacion_cliente_principal / facturacion_total * 100)


def cumple_requisitos_trade(porcentaje_dependencia: float) -> bool:
    return porcentaje_dependencia >= UMBRAL_TRADE


@dataclass
class TradeRiskScore:
    score: int
    nivel: str
    factores: List[Dict[str, Any]] = field(default_factory=list)


def calcular_riesgo_trade(
    porcentaje_dependencia: float,
    tiene_gastos_independencia: bool,
    gastos_alto_riesgo: int = 0
) -> TradeRiskScore:
    """
    Puntuación de riesgo de que Hacienda cuestione la independencia.

    Dependencia >= 75%: +40; >= 85%: +20 más; sin gastos de
    independencia: +30; cada gasto de alto riesgo: +5.
    """
    score = 0
    factores = []

    if porcentaje_dependencia >= 75:
        score += 40
        factores.append({
            "factor": "Dependencia > 75%",
            "puntos": 40,
            "descripcion": f"Dependencia del {porcentaje_dependencia:.1f}% de un solo cliente",
        })

    if porcentaje_dependencia >= 85:
        score += 20
        factores.append({
            "factor": "Dependencia muy alta (>85%)",
            "puntos": 20,
            "descripcion": "Dependencia crítica de un solo cliente",
        })

    if not tiene_gastos_independencia:
        score += 30
        factores.append({
            "factor": "Sin gastos de independencia",
            "puntos": 30,
            "descripcion": "Faltan gastos obligatorios a tu nombre (alquiler, luz, internet)",
        })

    if gastos_alto_riesgo > 0:
        puntos = gastos_alto_riesgo * 5
        score += puntos
        factores.append({
            "factor": "Gastos de alto riesgo",
            "puntos": puntos,
            "descripcion": f"{gastos_alto_riesgo} gasto(s) cuestionable(s) detectado(s)",
        })

    if score < 25:
        nivel = NivelRiesgo.BAJO
    elif score < 50:
        nivel = NivelRiesgo.MEDIO
    elif score < 75:
        nivel = NivelRiesgo.ALTO
    else:
        nivel = NivelRiesgo.CRITICO

    return TradeRiskScore(score=score, nivel=nivel.value, factores=factores)


# ============================================================================
# CUOTA DE AUTÓNOMOS
# ============================================================================

@dataclass(frozen=True)
class TramoCotizacion:
    tramo: int
    rendimientos_desde: float
    rendimientos_hasta: float
    base_minima: float
    base_maxima: float
    es_tabla_reducida: bool


TRAMOS_COTIZACION_2026 = (
    TramoCotizacion(1, 0, 670, 653.59, 718.94, True),
    TramoCotizacion(2, 670.01, 900, 718.95, 900.00, True),
    TramoCotizacion(3, 900.01, 1166.70, 849.67, 1166.70, True),
    TramoCotizacion(4, 1166.71, 1300, 960.50, 1300.00, True),
    TramoCotizacion(5, 1300.01, 1500, 970.40, 1500.00, True),
    TramoCotizacion(6, 1500.01, 1700, 970.40, 1700.00, True),
    TramoCotizacion(7, 1700.01, 1850, 1161.90, 1850.00, False),
    TramoCotizacion(8, 1850.01, 2030, 1227.30, 2030.00, False),
    TramoCotizacion(9, 2030.01, 2330, 1293.60, 2330.00, False),
    TramoCotizacion(10, 2330.01, 2760, 1383.30, 2760.00, False),
    TramoCotizacion(11, 2760.01, 3190, 1466.70, 3190.00, False),
    TramoCotizacion(12, 3190.01, 3620, 1549.00, 3620.00, False),
    TramoCotizacion(13, 3620.01, 4050, 1641.30, 4050.00, False),
    TramoCotizacion(14, 4050.01, 6000, 1775.30, 5101.20, False),
    TramoCotizacion(15, 6000.01, float("inf"), 1976.40, 5101.20, False),
)

# Contingencias comunes 28,3 + AT/EP 1,3 + cese 0,9 + FP 0,1 + MEI 0,9
TIPO_COTIZACION_TOTAL_2026 = 0.315
TIPO_MEI_2026 = 0.009
TARIFA_PLANA_2026 = 80.00
BASE_MINIMA_GENERAL_2026 = 950.98


def obtener_tramo_por_rendimientos(rendimiento_neto_mensual: float) -> TramoCotizacion:
    for tramo in TRAMOS_COTIZACION_2026:
        if tramo.rendimientos_desde <= rendimiento_neto_mensual <= tramo.rendimientos_hasta:
            return tramo
    return TRAMOS_COTIZACION_2026[-1]


def calcular_cuota_por_base(base_cotizacion: float) -> float:
    return round_to_cents(base_cotizacion * TIPO_COTIZACION_TOTAL_2026)


def calcular_cuota_autonomos(
    rendimiento_neto_mensual: float,
    tiene_tarifa_plana: bool = False,
    base_cotizacion_elegida: Optional[float] = None
) -> float:
    """
    Cuota mensual de autónomos.

    Con tarifa plana se pagan 80 € más el MEI sobre la base, que no está
    bonificado. Sin base elegida se usa la mínima de la tabla general.
    """
    base = base_cotizacion_elegida if base_cotizacion_elegida and base_cotizacion_elegida > 0 \
        else BASE_MINIMA_GENERAL_2026

    if tiene_tarifa_plana:
        return round_to_cents(TARIFA_PLANA_2026 + round_to_cents(base * TIPO_MEI_2026))

    return calcular_cuota_por_base(base)
