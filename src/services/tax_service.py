"""
Servicio Fiscal

Agrega facturas y gastos del usuario y los pasa por las calculadoras de
modelos AEAT (303, 130, 115, 111, 180, 390). También construye el
resumen anual y el calendario fiscal según los modelos que el usuario
tiene visibles.

Las facturas CANCELADA no cuentan; de los gastos solo los deducibles.
"""

from collections import OrderedDict
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.constants import SQL_DATE_FORMAT, TipoPerceptor
from src.database.models import Gasto, User
from src.database.queries import expense_queries, invoice_queries
from src.utils.errors import ValidationError
from src.utils.helpers import (
    calcular_fecha_recordatorio,
    formatear_fecha,
    generar_casillas_modelo130_acumulado,
    generar_casillas_modelo303_completo,
    obtener_periodo_trimestre,
    obtener_rango_fechas_180,
    obtener_rango_fechas_390,
    obtener_rango_fechas_presentacion,
    obtener_rango_fechas_renta,
)
from src.utils.logger import get_logger
from src.utils.tax_calculations import (
    Perceptor111,
    Perceptor115,
    Perceptor180,
    calcular_brecha_irpf,
    calcular_cuota_autonomos,
    calcular_modelo111,
    calcular_modelo115,
    calcular_modelo130_acumulado,
    calcular_modelo180,
    calcular_modelo303,
    calcular_modelo390,
    calcular_porcentaje_dependencia,
    cumple_requisitos_trade,
    estimar_tramo_irpf,
    round_to_cents,
)

logger = get_logger(__name__)

TIPOS_DESGLOSE = (4, 10, 21)


def validate_periodo(year: int, trimestre: Optional[int] = None) -> None:
    if trimestre is not None and (trimestre < 1 or trimestre > 4):
        raise ValidationError("Trimestre debe estar entre 1 y 4", field="trimestre")
    if year < 2000 or year > 2100:
        raise ValidationError("Año inválido", field="year")


def fecha_limite_303(trimestre: int, year: int) -> str:
    """Día 20 del mes siguiente; el 4T hasta el 30 de enero."""
    if trimestre == 4:
        return date(year + 1, 1, 30).strftime(SQL_DATE_FORMAT)
    return date(year, trimestre * 3 + 1, 20).strftime(SQL_DATE_FORMAT)


def _periodo_label(trimestre: int, year: int, inicio: date, fin: date) -> str:
    return f"{trimestre}T {year} ({formatear_fecha(inicio)} - {formatear_fecha(fin)})"


def _desglose(por_tipo: Dict[float, Dict[str, float]]) -> Dict[str, Dict[str, float]]:
    """Bases y cuotas de los tipos 4, 10 y 21 (tipo_4, tipo_10, tipo_21)."""
    desglose = {}
    for tipo in TIPOS_DESGLOSE:
        valores = por_tipo.get(float(tipo), {"base": 0.0, "cuota": 0.0})
        desglose[f"tipo_{tipo}"] = {
            "base": round_to_cents(valores["base"]),
            "cuota": round_to_cents(valores["cuota"]),
        }
    return desglose


# ============================================================================
# MODELO 303
# ============================================================================

def _instrucciones_303(casillas: Dict[str, float], accion: str) -> List[str]:
    instrucciones = [
        "Accede a la Sede Electrónica de AEAT",
        "Modelo 303 > Declaración trimestral IVA",
    ]
    for base, tipo, cuota in (("01", "02", "03"), ("04", "05", "06"), ("07", "08", "09")):
        if casillas[f"casilla_{base}"] > 0:
            instrucciones.append(
                f"Casilla {base}: {casillas[f'casilla_{base}']:.2f}€ (base al {casillas[f'casilla_{tipo}']}%) "
                f"→ Casilla {cuota}: {casillas[f'casilla_{cuota}']:.2f}€"
            )
    instrucciones.extend([
        f"Casilla 27: Total IVA devengado → {casillas['casilla_27']:.2f}€",
        f"Casilla 28: Base IVA soportado → {casillas['casilla_28']:.2f}€",
        f"Casilla 29: Cuota IVA soportado → {casillas['casilla_29']:.2f}€",
        f"Casilla 45: Total a deducir → {casillas['casilla_45']:.2f}€",
        f"Casilla 46: Resultado régimen general → {casillas['casilla_46']:.2f}€",
        f"Casilla 69: Resultado final ({accion}) → {abs(casillas['casilla_69']):.2f}€",
    ])
    return instrucciones


async def _iva_trimestre(db: AsyncSession, user_id: int, inicio: date, fin: date) -> Dict[str, Any]:
    repercutido = await invoice_queries.sum_invoices_by_tipo_iva(db, user_id, inicio, fin)
    soportado = await expense_queries.sum_deductible_by_tipo_iva(db, user_id, inicio, fin)
    return {
        "repercutido": repercutido,
        "soportado": soportado,
        "base_repercutida": round_to_cents(sum(v["base"] for v in repercutido.values())),
        "iva_repercutido": round_to_cents(sum(v["cuota"] for v in repercutido.values())),
        "base_soportada": round_to_cents(sum(v["base"] for v in soportado.values())),
        "iva_soportado": round_to_cents(sum(v["cuota"] for v in soportado.values())),
    }


async def modelo_303(db: AsyncSession, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
    """
    Modelo 303 (IVA trimestral).

    Returns:
        Desgloses por tipo, totales, resultado, acción, casillas AEAT e
        instrucciones paso a paso para presentarlo
    """
    validate_periodo(year, trimestre)
    inicio, fin = obtener_periodo_trimestre(trimestre, year)
    iva = await _iva_trimestre(db, user_id, inicio, fin)

    desglose_repercutido = _desglose(iva["repercutido"])
    desglose_soportado = _desglose(iva["soportado"])
    resultado = calcular_modelo303(iva["iva_repercutido"], iva["iva_soportado"])

    casillas = generar_casillas_modelo303_completo(
        {
            f"{campo}_{tipo}": desglose_repercutido[f"tipo_{tipo}"][campo]
            for tipo in TIPOS_DESGLOSE
            for campo in ("base", "cuota")
        },
        iva["base_soportada"],
        iva["iva_soportado"],
    )

    return {
        "modelo": "303",
        "trimestre": trimestre,
        "ano": year,
        "periodo": _periodo_label(trimestre, year, inicio, fin),
        "fecha_limite_presentacion": fecha_limite_303(trimestre, year),
        "desglose_iva_repercutido": desglose_repercutido,
        "desglose_iva_soportado": desglose_soportado,
        "base_imponible_total": iva["base_repercutida"],
        "iva_repercutido": resultado["iva_repercutido"],
        "iva_soportado": resultado["iva_soportado"],
        "resultado_iva": resultado["resultado"],
        "accion": resultado["accion"],
        "casillas_aeat": casillas,
        "instrucciones": _instrucciones_303(casillas, resultado["accion"]),
    }


# ============================================================================
# MODELO 130
# ============================================================================

async def modelo_130(db: AsyncSession, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
    """
    Modelo 130 (pago fraccionado IRPF) con acumulados desde el 1 de enero.

    Los pagos anteriores (casilla 05) son la suma de los resultados
    positivos de los trimestres previos, recalculados con los datos
    actuales.
    """
    validate_periodo(year, trimestre)
    inicio_ano = date(year, 1, 1)

    pagos_anteriores = 0.0
    modelo: Dict[str, Any] = {}
    for t in range(1, trimestre + 1):
        _, fin = obtener_periodo_trimestre(t, year)
        ingresos = await invoice_queries.sum_invoices(db, user_id, inicio_ano, fin)
        gastos = await expense_queries.sum_deductible_expenses(db, user_id, inicio_ano, fin)

        modelo = calcular_modelo130_acumulado(
            ingresos["base"], gastos["base"], ingresos["irpf"], pagos_anteriores, t, year
        )
        if t < trimestre:
            pagos_anteriores = round_to_cents(pagos_anteriores + max(0, modelo["resultado"]))

    inicio, fin = obtener_periodo_trimestre(trimestre, year)
    rango = obtener_rango_fechas_presentacion(trimestre, year, "130")

    return {
        "modelo": "130",
        "periodo": _periodo_label(trimestre, year, inicio, fin),
        "fecha_limite_presentacion": rango["fecha_limite"],
        **modelo,
        "casillas_aeat": generar_casillas_modelo130_acumulado(
            modelo["ingresos_computables"],
            modelo["gastos_deducibles"],
            modelo["pagos_anteriores"],
            modelo["retenciones_practicadas"],
        ),
    }


# ============================================================================
# MODELOS DE RETENCIONES (115, 111, 180)
# ============================================================================

def _agrupar_por_proveedor(gastos: List[Gasto]) -> "OrderedDict[str, Dict[str, Any]]":
    grupos: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for gasto in gastos:
        clave = gasto.proveedor_cif or gasto.proveedor_nombre
        grupo = grupos.setdefault(clave, {
            "nombre": gasto.proveedor_nombre,
            "nif": gasto.proveedor_cif or "",
            "base": 0.0,
            "retencion": 0.0,
            "tipo": gasto.tipo_irpf,
            "descripcion": gasto.descripcion or "",
        })
        grupo["base"] = round_to_cents(grupo["base"] + gasto.base_imponible)
        grupo["retencion"] = round_to_cents(grupo["retencion"] + gasto.cuota_irpf)
    return grupos


async def _perceptores_115(db: AsyncSession, user_id: int, inicio: date, fin: date) -> List[Perceptor115]:
    gastos = await expense_queries.get_rent_expenses(db, user_id, inicio, fin)
    return [
        Perceptor115(
            nombre=g["nombre"],
            nif=g["nif"],
            base_alquiler=g["base"],
            retencion=g["retencion"],
            direccion_inmueble=g["descripcion"],
        )
        for g in _agrupar_por_proveedor(gastos).values()
    ]


async def modelo_115(db: AsyncSession, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
    """Modelo 115 (retenciones de alquileres), agrupado por arrendador."""
    validate_periodo(year, trimestre)
    inicio, fin = obtener_periodo_trimestre(trimestre, year)
    perceptores = await _perceptores_115(db, user_id, inicio, fin)

    return {
        "modelo": "115",
        "periodo": _periodo_label(trimestre, year, inicio, fin),
        "fecha_limite_presentacion": obtener_rango_fechas_presentacion(trimestre, year, "115")["fecha_limite"],
        **calcular_modelo115(perceptores, trimestre=trimestre, ano=year),
    }


async def modelo_111(db: AsyncSession, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
    """
    Modelo 111 (retenciones a profesionales).

    Los gastos con IRPF que no son alquileres cuentan como facturas de
    profesionales.
    """
    validate_periodo(year, trimestre)
    inicio, fin = obtener_periodo_trimestre(trimestre, year)
    gastos = await expense_queries.get_withholding_expenses(db, user_id, inicio, fin)

    perceptores = [
        Perceptor111(
            nombre=g["nombre"],
            nif=g["nif"],
            tipo=TipoPerceptor.PROFESIONAL.value,
            base_retenciones=g["base"],
            tipo_retencion=g["tipo"],
            retencion_aplicada=g["retencion"],
        )
        for g in _agrupar_por_proveedor(gastos).values()
    ]

    return {
        "modelo": "111",
        "trimestre": trimestre,
        "ano": year,
        "periodo": _periodo_label(trimestre, year, inicio, fin),
        "fecha_limite_presentacion": obtener_rango_fechas_presentacion(trimestre, year, "111")["fecha_limite"],
        **calcular_modelo111(perceptores),
    }


async def modelo_180(db: AsyncSession, user_id: int, year: int) -> Dict[str, Any]:
    """Resumen anual de retenciones de alquileres, cuadrado con los cuatro 115."""
    validate_periodo(year)

    modelos115 = []
    for trimestre in range(1, 5):
        inicio, fin = obtener_periodo_trimestre(trimestre, year)
        perceptores = await _perceptores_115(db, user_id, inicio, fin)
        modelos115.append(calcular_modelo115(perceptores, trimestre=trimestre, ano=year))

    gastos = await expense_queries.get_rent_expenses(db, user_id, date(year, 1, 1), date(year, 12, 31))
    perceptores180 = [
        Perceptor180(
            nombre=g["nombre"],
            nif=g["nif"],
            base_alquiler=g["base"],
            retencion=g["retencion"],
            direccion_inmueble=g["descripcion"],
            rentas_anuales=g["base"],
            retenciones_anuales=g["retencion"],
        )
        for g in _agrupar_por_proveedor(gastos).values()
    ]

    return {
        "modelo": "180",
        "fecha_limite_presentacion": obtener_rango_fechas_180(year)["fecha_limite"],
        **calcular_modelo180(perceptores180, modelos115, year),
    }


# ============================================================================
# MODELO 390
# ============================================================================

async def modelo_390(db: AsyncSession, user_id: int, year: int) -> Dict[str, Any]:
    """Resumen anual de IVA, cuadrado con los cuatro 303."""
    validate_periodo(year)

    modelos303 = []
    for trimestre in range(1, 5):
        inicio, fin = obtener_periodo_trimestre(trimestre, year)
        iva = await _iva_trimestre(db, user_id, inicio, fin)
        modelos303.append({
            "trimestre": trimestre,
            **calcular_modelo303(iva["iva_repercutido"], iva["iva_soportado"]),
        })

    anual = await invoice_queries.sum_invoices_by_tipo_iva(
        db, user_id, date(year, 1, 1), date(year, 12, 31)
    )
    soportado = await expense_queries.sum_deductible_expenses(
        db, user_id, date(year, 1, 1), date(year, 12, 31)
    )

    modelo = calcular_modelo390(modelos303, year, _desglose(anual))
    modelo["total_base_soportada"] = round_to_cents(soportado["base"])

    return {
        "modelo": "390",
        "fecha_limite_presentacion": obtener_rango_fechas_390(year)["fecha_limite"],
        **modelo,
    }


# ============================================================================
# RESUMEN ANUAL
# ============================================================================

async def resumen_anual(db: AsyncSession, user: User, year: int) -> Dict[str, Any]:
    """
    Visión global del año: ingresos, gastos, IVA e IRPF por trimestre,
    dependencia del cliente principal y estimaciones de Renta y cuota de
    autónomos.
    """
    validate_periodo(year)
    inicio_ano, fin_ano = date(year, 1, 1), date(year, 12, 31)

    ingresos = await invoice_queries.sum_invoices(db, user.id, inicio_ano, fin_ano)
    gastos = await expense_queries.sum_deductible_expenses(db, user.id, inicio_ano, fin_ano)
    rendimiento = round_to_cents(ingresos["base"] - gastos["base"])

    trimestres = []
    for trimestre in range(1, 5):
        inicio, fin = obtener_periodo_trimestre(trimestre, year)
        ing = await invoice_queries.sum_invoices(db, user.id, inicio, fin)
        gas = await expense_queries.sum_deductible_expenses(db, user.id, inicio, fin)
        trimestres.append({
            "trimestre": trimestre,
            "ingresos": round_to_cents(ing["base"]),
            "gastos": round_to_cents(gas["base"]),
            "iva_repercutido": round_to_cents(ing["iva"]),
            "iva_soportado": round_to_cents(gas["iva"]),
            "resultado_iva": round_to_cents(ing["iva"] - gas["iva"]),
            "irpf_retenido": round_to_cents(ing["irpf"]),
        })

    por_cliente = await invoice_queries.sum_invoices_by_client(db, user.id, inicio_ano, fin_ano)
    principal = por_cliente[0]["base"] if por_cliente else 0.0
    dependencia = calcular_porcentaje_dependencia(principal, ingresos["base"])

    return {
        "ano": year,
        "ingresos": round_to_cents(ingresos["base"]),
        "gastos": round_to_cents(gastos["base"]),
        "rendimiento_neto": rendimiento,
        "num_facturas": ingresos["num_facturas"],
        "num_gastos": gastos["num_gastos"],
        "iva_repercutido": round_to_cents(ingresos["iva"]),
        "iva_soportado": round_to_cents(gastos["iva"]),
        "resultado_iva": round_to_cents(ingresos["iva"] - gastos["iva"]),
        "irpf_retenido": round_to_cents(ingresos["irpf"]),
        "trimestres": trimestres,
        "trade": {
            "es_trade": user.es_trade,
            "porcentaje_dependencia": dependencia,
            "cumple_requisitos": cumple_requisitos_trade(dependencia),
            "cliente_principal_id": por_cliente[0]["cliente_id"] if por_cliente else None,
        },
        "irpf": {
            "tramo_estimado": estimar_tramo_irpf(rendimiento),
            "tipo_retencion_actual": user.tipo_irpf_actual,
            "brecha_estimada": calcular_brecha_irpf(rendimiento, user.tipo_irpf_actual),
        },
        "cuota_autonomos_mensual": calcular_cuota_autonomos(
            rendimiento / 12, user.tiene_tarifa_plana_ss, user.base_cotizacion
        ),
    }


# ============================================================================
# CALENDARIO FISCAL
# ============================================================================

MODELOS_TRIMESTRALES = (
    ("303", "mostrar_modelo_303", "IVA trimestral"),
    ("130", "mostrar_modelo_130", "Pago fraccionado IRPF"),
    ("115", "mostrar_modelo_115", "Retenciones alquileres"),
    ("111", "mostrar_modelo_111", "Retenciones profesionales"),
)


def _obligacion(
    modelo: str,
    descripcion: str,
    periodo: str,
    rango: Dict[str, str],
    today: date
) -> Dict[str, Any]:
    fin = date.fromisoformat(rango["fecha_limite"])
    return {
        "modelo": modelo,
        "descripcion": descripcion,
        "periodo": periodo,
        "inicio": rango["fecha_inicio"],
        "fin": rango["fecha_limite"],
        "fecha_recordatorio": calcular_fecha_recordatorio(fin).strftime(SQL_DATE_FORMAT),
        "estado": "VENCIDO" if today > fin else "PENDIENTE",
    }


def calendario_fiscal(user: User, year: int, today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Obligaciones del ejercicio `year` que el usuario tiene activadas.

    Los trimestrales se presentan en el mes siguiente a cada trimestre
    (el 4T en enero del año siguiente), igual que 390, 180 y la Renta.

    Returns:
        Lista ordenada por fecha de fin de plazo
    """
    validate_periodo(year)
    today = today or date.today()
    obligaciones = []

    for modelo, flag, descripcion in MODELOS_TRIMESTRALES:
        if not getattr(user, flag, False):
            continue
        for trimestre in range(1, 5):
            obligaciones.append(_obligacion(
                modelo,
                descripcion,
                f"{trimestre}T {year}",
                obtener_rango_fechas_presentacion(trimestre, year, modelo),
                today,
            ))

    if user.mostrar_modelo_390:
        obligaciones.append(_obligacion(
            "390", "Resumen anual IVA", str(year), obtener_rango_fechas_390(year), today
        ))
    if user.mostrar_modelo_180:
        obligaciones.append(_obligacion(
            "180", "Resumen anual retenciones alquileres", str(year), obtener_rango_fechas_180(year), today
        ))
    if user.mostrar_modelo_100:
        obligaciones.append(_obligacion(
            "100", "Declaración de la Renta", str(year), obtener_rango_fechas_renta(year), today
        ))

    obligaciones.sort(key=lambda o: (o["fin"], o["modelo"]))
    return obligaciones
