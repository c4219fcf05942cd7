"""
Servicio de Gastos

Calcula los campos derivados de un gasto (cuotas, total, categoría,
gasto de independencia y nivel de riesgo) y genera las alertas que se
devuelven al usuario al registrarlo. Incluye la comprobación mensual
de gastos de independencia de un TRADE.
"""

import calendar
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from config.constants import ANO_MAX, ANO_MIN, GASTOS_INDEPENDENCIA_REQUERIDOS, NivelRiesgo
from src.database.models import Gasto
from src.database.queries import expense_queries
from src.utils.errors import ValidationError
from src.utils.helpers import (
    calcular_nivel_riesgo_gasto,
    detectar_categoria_gasto,
    es_gasto_independencia,
)
from src.utils.logger import get_logger, audit_logger
from src.utils.tax_calculations import (
    calcular_cuota_irpf,
    calcular_cuota_iva,
    calcular_total_gasto,
    round_to_cents,
)
from src.utils.validators import TaxIdValidator

logger = get_logger(__name__)

DEFAULT_TIPO_IRPF_GASTO = 0.0


def amount_fields(base_imponible: float, tipo_iva: float, tipo_irpf: float) -> Dict[str, float]:
    cuota_iva = calcular_cuota_iva(base_imponible, tipo_iva)
    cuota_irpf = calcular_cuota_irpf(base_imponible, tipo_irpf)
    return {
        "base_imponible": round_to_cents(base_imponible),
        "cuota_iva": cuota_iva,
        "cuota_irpf": cuota_irpf,
        "total_factura": calcular_total_gasto(base_imponible, cuota_iva, cuota_irpf),
    }


def build_expense_fields(user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Campos completos de un gasto nuevo.

    Raises:
        ValidationError: Si el NIF/CIF del proveedor no es válido
    """
    proveedor_cif = data.get("proveedor_cif")
    if proveedor_cif:
        result = TaxIdValidator.validate_nif_cif(proveedor_cif)
        if not result:
            raise ValidationError("NIF/CIF del proveedor inválido", field="proveedor_cif")
        proveedor_cif = result.sanitized

    fecha: date = data["fecha_emision"]
    concepto = data["concepto"]
    base = data["base_imponible"]
    tipo_iva = data.get("tipo_iva")
    tipo_irpf = data.get("tipo_irpf")
    tipo_iva = settings.DEFAULT_TIPO_IVA if tipo_iva is None else tipo_iva
    tipo_irpf = DEFAULT_TIPO_IRPF_GASTO if tipo_irpf is None else tipo_irpf

    categoria = data.get("categoria") or detectar_categoria_gasto(concepto)
    es_deducible = data.get("es_deducible")

    return {
        "user_id": user_id,
        "concepto": concepto,
        "descripcion": data.get("descripcion"),
        "categoria": categoria,
        "fecha_emision": fecha,
        "numero_factura": data.get("numero_factura"),
        "proveedor_nombre": data["proveedor_nombre"],
        "proveedor_cif": proveedor_cif,
        "tipo_iva": tipo_iva,
        "tipo_irpf": tipo_irpf,
        "porcentaje_deducible": data.get("porcentaje_deducible") or 100.0,
        "es_deducible": True if es_deducible is None else es_deducible,
        "motivo_no_deducible": data.get("motivo_no_deducible"),
        "es_gasto_independencia": es_gasto_independencia(categoria, concepto),
        "nivel_riesgo": calcular_nivel_riesgo_gasto(categoria, fecha, base),
        "notas_riesgo": data.get("notas_riesgo"),
        "pagado": bool(data.get("pagado")),
        "fecha_pago": data.get("fecha_pago"),
        "programacion_id": data.get("programacion_id"),
        **amount_fields(base, tipo_iva, tipo_irpf),
    }


async def create_expense(db: AsyncSession, user_id: int, data: Dict[str, Any]) -> Gasto:
    """Crea un gasto con todos sus campos derivados."""
    expense = await expense_queries.create_expense(db, build_expense_fields(user_id, data))

    audit_logger.create("gasto", expense.id, {
        "concepto": expense.concepto,
        "total_factura": expense.total_factura,
    })
    return expense


def recalculate_expense(expense: Gasto, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aplica los recálculos de una edición: importes si cambian base o
    tipos, e independencia y riesgo si cambian categoría, concepto,
    fecha o base.
    """
    result = dict(changes)

    if "proveedor_cif" in result and result["proveedor_cif"]:
        check = TaxIdValidator.validate_nif_cif(result["proveedor_cif"])
        if not check:
            raise ValidationError("NIF/CIF del proveedor inválido", field="proveedor_cif")
        result["proveedor_cif"] = check.sanitized

    if any(k in result for k in ("base_imponible", "tipo_iva", "tipo_irpf")):
        result.update(amount_fields(
            result.get("base_imponible", expense.base_imponible),
            result.get("tipo_iva", expense.tipo_iva),
            result.get("tipo_irpf", expense.tipo_irpf),
        ))

    if any(k in result for k in ("categoria", "concepto", "fecha_emision", "base_imponible")):
        categoria = result.get("categoria", expense.categoria)
        concepto = result.get("concepto", expense.concepto)
        result["es_gasto_independencia"] = es_gasto_independencia(categoria, concepto)
        result["nivel_riesgo"] = calcular_nivel_riesgo_gasto(
            categoria,
            result.get("fecha_emision", expense.fecha_emision),
            result.get("base_imponible", expense.base_imponible),
        )

    return result


def expense_alerts(expense: Gasto) -> List[Dict[str, str]]:
    alerts = []
    if expense.es_gasto_independencia:
        alerts.append({
            "type": "success",
            "message": "Gasto de independencia registrado (importante para TRADE)",
        })
    if expense.nivel_riesgo == NivelRiesgo.ALTO.value:
        alerts.append({
            "type": "warning",
            "message": (
                "Este gasto tiene nivel de riesgo ALTO. "
                "Asegúrate de tener justificación adecuada."
            ),
        })
    return alerts


def expense_info_messages(expense: Gasto) -> List[str]:
    info = [f"IVA deducible: {expense.cuota_iva:.2f}€"]
    if expense.cuota_irpf > 0:
        info.append(f"IRPF recuperable: {expense.cuota_irpf:.2f}€")
    return info


def _registro_independencia(tipo: str, gasto: Optional[Gasto]) -> Dict[str, Any]:
    return {
        "tipo": tipo,
        "presente": gasto is not None,
        "importe": gasto.base_imponible if gasto else 0,
        "a_nombre_propio": True,
        "warning": None if gasto else f"Falta factura de {tipo.lower()}",
    }


async def check_independence(db: AsyncSession, user_id: int, year: int, month: int) -> Dict[str, Any]:
    """
    Comprueba si el mes tiene registrados los gastos de independencia que
    un TRADE debe tener a su nombre: alquiler, electricidad e internet.

    Raises:
        ValidationError: Si el mes o el año no son válidos
    """
    if month < 1 or month > 12:
        raise ValidationError("Mes inválido", field="month")
    if year < ANO_MIN or year > ANO_MAX:
        raise ValidationError("Año inválido", field="year")

    gastos = await expense_queries.get_independence_expenses(
        db, user_id, year, month, calendar.monthrange(year, month)[1]
    )

    def buscar(condicion) -> Optional[Gasto]:
        return next((g for g in gastos if condicion(g)), None)

    registrados = [
        _registro_independencia("Alquiler", buscar(lambda g: g.categoria == "Alquiler")),
        _registro_independencia("Electricidad", buscar(lambda g: "electric" in g.concepto.lower())),
        _registro_independencia("Internet", buscar(lambda g: "internet" in g.concepto.lower())),
    ]

    return {
        "mes": month,
        "ano": year,
        "gastos_independencia_requeridos": list(GASTOS_INDEPENDENCIA_REQUERIDOS),
        "gastos_registrados": registrados,
        "cumple_requisitos": all(r["presente"] for r in registrados),
        "alertas_generadas": [
            {
                "severidad": "WARNING",
                "mensaje": f"Falta registrar {r['tipo']} de {month}/{year} a tu nombre",
            }
            for r in registrados if not r["presente"]
        ],
    }
