"""
Servicio del Panel

Resumen del panel principal (balance real, año y mes en curso, próximo
plazo trimestral, facturas pendientes de cobro y estado TRADE), gráfico
mensual de ingresos y gastos, datos para presentar un modelo en la sede
de la AEAT y flujo de caja diario.

No hay cuentas bancarias conectadas: el saldo bancario lo indica el
usuario en cada consulta.
"""

from collections import defaultdict
from datetime import date, timedelta
from itertools import groupby
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from config.constants import ANO_MAX, ANO_MIN, FLUJO_CAJA_MAX_DIAS, SQL_DATE_FORMAT, NivelRiesgo
from src.database.models import FacturaEmitida, User
from src.database.queries import client_queries, expense_queries, invoice_queries
from src.services import expense_service, tax_service
from src.utils.date_calculator import add_months, days_in_month
from src.utils.errors import ValidationError
from src.utils.helpers import (
    formatear_moneda,
    formatear_porcentaje,
    obtener_fecha_limite_modelo,
    obtener_periodo_trimestre,
    obtener_trimestre,
    obtener_ultimo_dia_laborable,
)
from src.utils.logger import get_logger
from src.utils.tax_calculations import (
    TIPO_PAGO_FRACCIONADO,
    calcular_balance_real,
    calcular_brecha_irpf,
    calcular_cuota_autonomos,
    calcular_porcentaje_dependencia,
    calcular_riesgo_trade,
    cumple_requisitos_trade,
    estimar_tramo_irpf,
    round_to_cents,
)

logger = get_logger(__name__)

MESES = ("Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic")

DIAS_URGENTE = 7
MAX_FACTURAS_PENDIENTES = 10

URL_SEDE_AEAT = "https://sede.agenciatributaria.gob.es"
_PROCEDIMIENTO = URL_SEDE_AEAT + "/Sede/procedimientoini/{}.shtml"

# modelo -> (url de presentación, descripción)
MODELOS_AEAT = {
    "303": (_PROCEDIMIENTO.format("G414"), "Modelo 303 - Autoliquidación IVA (trimestral)"),
    "130": (_PROCEDIMIENTO.format("G601"), "Modelo 130 - Pago fraccionado IRPF (trimestral)"),
    "115": (_PROCEDIMIENTO.format("GH02"), "Modelo 115 - Retenciones alquileres (trimestral)"),
    "111": (_PROCEDIMIENTO.format("GH01"), "Modelo 111 - Retenciones trabajadores y profesionales (trimestral)"),
    "180": (_PROCEDIMIENTO.format("GH03"), "Modelo 180 - Resumen anual de retenciones sobre alquileres"),
    "390": (_PROCEDIMIENTO.format("G412"), "Modelo 390 - Resumen anual IVA"),
    "RENTA": (URL_SEDE_AEAT, "Declaración de la Renta (anual)"),
}

MODELOS_TRIMESTRALES = {
    "303": tax_service.modelo_303,
    "130": tax_service.modelo_130,
    "115": tax_service.modelo_115,
    "111": tax_service.modelo_111,
}

MODELOS_ANUALES = {
    "180": tax_service.modelo_180,
    "390": tax_service.modelo_390,
}


def _validar_ano(year: int) -> None:
    if year < ANO_MIN or year > ANO_MAX:
        raise ValidationError(f"Año inválido: debe estar entre {ANO_MIN} y {ANO_MAX}", field="year")


def _fecha(fecha: Optional[date]) -> Optional[str]:
    return fecha.strftime(SQL_DATE_FORMAT) if fecha else None


def _nombre_cliente(factura: FacturaEmitida) -> Optional[str]:
    if "cliente" in inspect(factura).unloaded or factura.cliente is None:
        return None
    return factura.cliente.nombre


async def _totales(db: AsyncSession, user_id: int, inicio: date, fin: date) -> Tuple[Dict, Dict]:
    ingresos = await invoice_queries.sum_invoices(db, user_id, inicio, fin)
    gastos = await expense_queries.sum_deductible_expenses(db, user_id, inicio, fin)
    return ingresos, gastos


async def cuota_autonomos_anual(db: AsyncSession, user: User, year: int) -> float:
    """Cuota mensual de autónomos con el rendimiento neto del año."""
    ingresos, gastos = await _totales(db, user.id, date(year, 1, 1), date(year, 12, 31))
    rendimiento = ingresos["base"] - gastos["base"]
    return calcular_cuota_autonomos(rendimiento / 12, user.tiene_tarifa_plana_ss, user.base_cotizacion)


async def resultado_trimestre(db: AsyncSession, user_id: int, trimestre: int, year: int) -> Dict[str, float]:
    """
    IVA a ingresar y pago fraccionado estimado (20% del rendimiento) de
    un trimestre suelto, sin acumulados.
    """
    inicio, fin = obtener_periodo_trimestre(trimestre, year)
    ingresos, gastos = await _totales(db, user_id, inicio, fin)
    return {
        "iva": round_to_cents(ingresos["iva"] - gastos["iva"]),
        "pago_fraccionado": max(
            0.0, round_to_cents((ingresos["base"] - gastos["base"]) * TIPO_PAGO_FRACCIONADO)
        ),
    }


def proximo_plazo(today: date) -> Tuple[int, int, date]:
    """
    Trimestre cuyo plazo de presentación es el siguiente a `today`.

    Hasta el día 20 del primer mes de un trimestre sigue abierto el plazo
    del trimestre anterior.
    """
    trimestre = obtener_trimestre(today)
    anterior = (trimestre - 1, today.year) if trimestre > 1 else (4, today.year - 1)
    limite = obtener_fecha_limite_modelo(*anterior)
    if today <= limite:
        return anterior[0], anterior[1], limite
    return trimestre, today.year, obtener_fecha_limite_modelo(trimestre, today.year)


# ============================================================================
# RESUMEN
# ============================================================================

def _factura_pendiente(factura: FacturaEmitida, today: date) -> Dict[str, Any]:
    vencimiento = factura.fecha_vencimiento
    return {
        "id": factura.id,
        "numero": factura.numero_factura,
        "cliente": _nombre_cliente(factura),
        "cliente_id": factura.cliente_id,
        "estado": factura.estado,
        "fecha_emision": _fecha(factura.fecha_emision),
        "fecha_vencimiento": _fecha(vencimiento),
        "total": round_to_cents(factura.total_factura),
        "dias_vencimiento": (vencimiento - today).days if vencimiento else None,
    }


async def _estado_trade(
    db: AsyncSession,
    user: User,
    year: int,
    month: int,
    ingresos_ano: float
) -> Dict[str, Any]:
    inicio, fin = date(year, 1, 1), date(year, 12, 31)
    por_cliente = await invoice_queries.sum_invoices_by_client(db, user.id, inicio, fin)
    principal = por_cliente[0] if por_cliente else None
    dependencia = calcular_porcentaje_dependencia(principal["base"] if principal else 0, ingresos_ano)

    independencia = await expense_service.check_independence(db, user.id, year, month)
    alto_riesgo = await expense_queries.get_expense_totals(
        db, user.id, fecha_desde=inicio, fecha_hasta=fin, nivel_riesgo=NivelRiesgo.ALTO.value
    )
    riesgo = calcular_riesgo_trade(dependencia, independencia["cumple_requisitos"], alto_riesgo["total"])

    cliente = None
    if principal and principal["cliente_id"]:
        cliente = await client_queries.get_client_by_id(db, principal["cliente_id"], user.id)

    return {
        "cliente_principal": cliente.nombre if cliente else None,
        "porcentaje_dependencia": dependencia,
        "dependencia": formatear_porcentaje(dependencia),
        "cumple_requisitos": cumple_requisitos_trade(dependencia),
        "nivel_riesgo": riesgo.nivel,
        "riesgo_score": riesgo.score,
        "factores": riesgo.factores,
        "gastos_independencia_mes_actual": {
            r["tipo"].lower(): r["presente"] for r in independencia["gastos_registrados"]
        },
    }


async def resumen(
    db: AsyncSession,
    user: User,
    saldo_bancario: float = 0.0,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Resumen del panel para el año en curso.

    El balance real descuenta del saldo bancario el IVA pendiente del
    año, la brecha de IRPF que quedará por pagar en la Renta y la cuota
    de autónomos del mes.
    """
    today = today or date.today()
    year, month = today.year, today.month

    ingresos, gastos = await _totales(db, user.id, date(year, 1, 1), date(year, 12, 31))
    beneficio = round_to_cents(ingresos["base"] - gastos["base"])
    resultado_iva = round_to_cents(ingresos["iva"] - gastos["iva"])
    brecha = calcular_brecha_irpf(beneficio, user.tipo_irpf_actual)
    cuota_ss = calcular_cuota_autonomos(beneficio / 12, user.tiene_tarifa_plana_ss, user.base_cotizacion)

    balance = calcular_balance_real(saldo_bancario, max(resultado_iva, 0), max(brecha, 0), cuota_ss)
    if balance["diferencia"] > 0:
        balance["advertencia"] = (
            f"Tu balance real es {formatear_moneda(balance['diferencia'])} menor que tu saldo "
            "bancario por obligaciones fiscales pendientes"
        )
    else:
        balance["advertencia"] = "Tu balance está al día"

    ingresos_mes, gastos_mes = await _totales(
        db, user.id, date(year, month, 1), date(year, month, days_in_month(year, month))
    )

    trimestre, ano_plazo, limite = proximo_plazo(today)
    a_presentar = await resultado_trimestre(db, user.id, trimestre, ano_plazo)
    dias_restantes = (limite - today).days

    pendientes = await invoice_queries.get_pending_invoices(db, user.id)

    return {
        "balance_real": balance,
        "ano_actual": {
            "ano": year,
            "ingresos": round_to_cents(ingresos["base"]),
            "gastos_deducibles": round_to_cents(gastos["base"]),
            "gastos_totales": round_to_cents(gastos["total_factura"]),
            "beneficio_neto": beneficio,
            "iva_repercutido": round_to_cents(ingresos["iva"]),
            "iva_soportado": round_to_cents(gastos["iva"]),
            "resultado_iva": resultado_iva,
            "irpf_retenido": round_to_cents(ingresos["irpf"]),
            "tipo_irpf_estimado": estimar_tramo_irpf(beneficio),
            "irpf_brecha": brecha,
        },
        "mes_actual": {
            "mes": month,
            "ingresos": round_to_cents(ingresos_mes["base"]),
            "gastos": round_to_cents(gastos_mes["base"]),
            "beneficio": round_to_cents(ingresos_mes["base"] - gastos_mes["base"]),
            "num_facturas": ingresos_mes["num_facturas"],
            "num_gastos": gastos_mes["num_gastos"],
        },
        "proximo_trimestre": {
            "trimestre": trimestre,
            "ano": ano_plazo,
            "fecha_limite": _fecha(limite),
            "dias_restantes": dias_restantes,
            "urgente": dias_restantes <= DIAS_URGENTE,
            "iva_a_presentar": a_presentar["iva"],
            "irpf_a_presentar": a_presentar["pago_fraccionado"],
        },
        "facturas_pendientes": {
            "total": round_to_cents(sum(f.total_factura for f in pendientes)),
            "cantidad": len(pendientes),
            "facturas": [_factura_pendiente(f, today) for f in pendientes[:MAX_FACTURAS_PENDIENTES]],
        },
        "trade": await _estado_trade(db, user, year, month, ingresos["base"]) if user.es_trade else None,
    }


async def grafico_ingresos_gastos(db: AsyncSession, user_id: int, year: int) -> Dict[str, Any]:
    """Ingresos, gastos deducibles y beneficio de cada mes (base imponible)."""
    _validar_ano(year)
    ingresos = await invoice_queries.sum_invoices_by_month(db, user_id, year)
    gastos = await expense_queries.sum_deductible_expenses_by_month(db, user_id, year)

    meses = range(1, 13)
    return {
        "ano": year,
        "labels": list(MESES),
        "ingresos": [round_to_cents(ingresos.get(m, 0.0)) for m in meses],
        "gastos": [round_to_cents(gastos.get(m, 0.0)) for m in meses],
        "beneficio_neto": [round_to_cents(ingresos.get(m, 0.0) - gastos.get(m, 0.0)) for m in meses],
    }


# ============================================================================
# DATOS PARA PRESENTAR UN MODELO
# ============================================================================

async def datos_modelo(
    db: AsyncSession,
    user: User,
    modelo: str,
    trimestre: Optional[int] = None,
    year: Optional[int] = None,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Enlace de presentación, datos identificativos y el modelo calculado.

    Sin trimestre ni año se usa el trimestre y el año de `today`.

    Raises:
        ValidationError: Si el modelo no está soportado
    """
    modelo = modelo.upper()
    if modelo not in MODELOS_AEAT:
        raise ValidationError(
            f"Modelo no soportado: {modelo}. Disponibles: {', '.join(MODELOS_AEAT)}", field="modelo"
        )

    today = today or date.today()
    year = year or today.year
    url, descripcion = MODELOS_AEAT[modelo]

    if modelo in MODELOS_TRIMESTRALES:
        trimestre = trimestre or obtener_trimestre(today)
        datos = await MODELOS_TRIMESTRALES[modelo](db, user.id, year, trimestre)
    elif modelo in MODELOS_ANUALES:
        trimestre = None
        datos = await MODELOS_ANUALES[modelo](db, user.id, year)
    else:
        trimestre = None
        datos = await tax_service.resumen_anual(db, user, year)

    return {
        "modelo": modelo,
        "descripcion": descripcion,
        "url_presentacion": url,
        "ano": year,
        "trimestre": trimestre,
        "datos_identificativos": {
            "nombre_completo": user.nombre_completo,
            "nif": user.nif,
        },
        "datos_modelo": datos,
    }


# ============================================================================
# FLUJO DE CAJA
# ============================================================================

async def _obligaciones_fiscales(
    db: AsyncSession,
    user: User,
    inicio: date,
    fin: date,
    cuota_ss: float
) -> List[Tuple[date, str, float]]:
    """
    Pagos a Hacienda y a la Seguridad Social que caen en el periodo.

    Solo desde el alta en la AEAT: 303 y 130 el día 20 del mes siguiente
    a cada trimestre y la cuota de autónomos el último día laborable de
    cada mes.
    """
    alta = user.fecha_alta_aeat
    obligaciones = []

    # El 4T de un año se paga en enero del siguiente
    for year in range(inicio.year - 1, fin.year + 1):
        for trimestre in range(1, 5):
            limite = obtener_fecha_limite_modelo(trimestre, year)
            _, fin_trimestre = obtener_periodo_trimestre(trimestre, year)
            if fin_trimestre < alta or not inicio <= limite <= fin:
                continue

            resultado = await resultado_trimestre(db, user.id, trimestre, year)
            if user.mostrar_modelo_303 and resultado["iva"] > 0:
                obligaciones.append((limite, f"Modelo 303 - {trimestre}T {year}", resultado["iva"]))
            if user.mostrar_modelo_130 and resultado["pago_fraccionado"] > 0:
                obligaciones.append(
                    (limite, f"Modelo 130 - {trimestre}T {year}", resultado["pago_fraccionado"])
                )

    mes = date(inicio.year, inicio.month, 1)
    while mes <= fin:
        cargo = obtener_ultimo_dia_laborable(mes.year, mes.month)
        if cargo >= alta and inicio <= cargo <= fin:
            obligaciones.append((cargo, "Seguridad Social", cuota_ss))
        mes = add_months(mes, 1)

    return obligaciones


def _suma(movimientos: List[Dict[str, Any]], tipo: str, subtipo: Optional[str] = None) -> float:
    return round_to_cents(sum(
        abs(m["importe"]) for m in movimientos
        if m["tipo"] == tipo and (subtipo is None or m.get("subtipo") == subtipo)
    ))


async def flujo_diario(
    db: AsyncSession,
    user: User,
    inicio: date,
    fin: date,
    saldo_inicial: float = 0.0,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Movimientos previstos día a día entre `inicio` y `fin` (ambos incluidos).

    Lo cobrado y pagado cuenta como real en su fecha de pago; lo
    pendiente cuenta como potencial en su fecha de emisión. Los pagos
    fiscales son reales. `saldo` suma todo y `saldo_real` solo lo real.

    Raises:
        ValidationError: Si el periodo está invertido o es demasiado largo
    """
    if fin < inicio:
        raise ValidationError("La fecha de fin no puede ser anterior a la de inicio", field="end")
    if (fin - inicio).days + 1 > FLUJO_CAJA_MAX_DIAS:
        raise ValidationError(f"El periodo no puede superar {FLUJO_CAJA_MAX_DIAS} días", field="end")

    today = today or date.today()
    movimientos: Dict[date, List[Dict[str, Any]]] = defaultdict(list)

    for factura in await invoice_queries.get_invoices_for_cashflow(db, user.id, inicio, fin):
        partes = [factura.numero_factura, _nombre_cliente(factura)]
        movimientos[factura.fecha_pago if factura.pagada else factura.fecha_emision].append({
            "tipo": "ingreso",
            "subtipo": "real" if factura.pagada else "potencial",
            "concepto": " - ".join(p for p in partes if p) or factura.concepto,
            "importe": round_to_cents(factura.total_factura),
            "estado": factura.estado,
        })

    for gasto in await expense_queries.get_expenses_for_cashflow(db, user.id, inicio, fin):
        movimientos[gasto.fecha_pago if gasto.pagado else gasto.fecha_emision].append({
            "tipo": "gasto",
            "subtipo": "real" if gasto.pagado else "potencial",
            "concepto": gasto.concepto or gasto.proveedor_nombre,
            "importe": -round_to_cents(gasto.total_factura),
        })

    cuota_ss = None
    if user.fecha_alta_aeat:
        cuota_ss = await cuota_autonomos_anual(db, user, today.year)
        for fecha, concepto, importe in await _obligaciones_fiscales(db, user, inicio, fin, cuota_ss):
            movimientos[fecha].append({"tipo": "fiscal", "concepto": concepto, "importe": -importe})

    saldo = saldo_real = round_to_cents(saldo_inicial)
    flujo = []
    dia = inicio
    while dia <= fin:
        del_dia = movimientos.get(dia, [])
        ingresos_reales = _suma(del_dia, "ingreso", "real")
        ingresos_potenciales = _suma(del_dia, "ingreso", "potencial")
        gastos_reales = _suma(del_dia, "gasto", "real")
        gastos_potenciales = _suma(del_dia, "gasto", "potencial")
        fiscal = _suma(del_dia, "fiscal")

        movimiento_real = round_to_cents(ingresos_reales - gastos_reales - fiscal)
        movimiento_potencial = round_to_cents(ingresos_potenciales - gastos_potenciales)
        saldo = round_to_cents(saldo + movimiento_real + movimiento_potencial)
        saldo_real = round_to_cents(saldo_real + movimiento_real)

        flujo.append({
            "fecha": _fecha(dia),
            "ingresos": round_to_cents(ingresos_reales + ingresos_potenciales),
            "ingresos_reales": ingresos_reales,
            "ingresos_potenciales": ingresos_potenciales,
            "gastos": round_to_cents(gastos_reales + gastos_potenciales),
            "gastos_reales": gastos_reales,
            "gastos_potenciales": gastos_potenciales,
            "fiscal": fiscal,
            "movimiento": round_to_cents(movimiento_real + movimiento_potencial),
            "movimiento_real": movimiento_real,
            "movimiento_potencial": movimiento_potencial,
            "saldo": saldo,
            "saldo_real": saldo_real,
            "transacciones": del_dia,
        })
        dia += timedelta(days=1)

    logger.debug(f"Flujo de caja {inicio} - {fin}: {len(flujo)} días, saldo final {saldo}")

    return {
        "periodo": {"inicio": _fecha(inicio), "fin": _fecha(fin)},
        "saldo_inicial": round_to_cents(saldo_inicial),
        "saldo_final": saldo,
        "cuota_autonomos_mensual": cuota_ss,
        "flujo_diario": flujo,
    }


async def historial_flujo_caja(
    db: AsyncSession,
    user: User,
    year: int,
    today: Optional[date] = None
) -> List[Dict[str, Any]]:
    """Flujo de caja del año agregado por mes, con el saldo al cierre de cada mes."""
    _validar_ano(year)
    flujo = await flujo_diario(db, user, date(year, 1, 1), date(year, 12, 31), today=today)

    historial = []
    for clave, dias in groupby(flujo["flujo_diario"], key=lambda d: d["fecha"][:7]):
        dias = list(dias)
        historial.append({
            "mes": clave,
            "label": MESES[int(clave[5:]) - 1],
            "ingresos": round_to_cents(sum(d["ingresos"] for d in dias)),
            "gastos": round_to_cents(sum(d["gastos"] for d in dias)),
            "fiscal": round_to_cents(sum(d["fiscal"] for d in dias)),
            "movimiento": round_to_cents(sum(d["movimiento"] for d in dias)),
            "saldo": dias[-1]["saldo"],
            "saldo_real": dias[-1]["saldo_real"],
        })
    return historial
