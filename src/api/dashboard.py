"""
Dashboard API

Panel principal, gráfico de ingresos y gastos, datos para presentar
modelos y flujo de caja diario.
"""

from datetime import date
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Query

from config.constants import NivelRiesgo
from src.api.dependencies import get_user_id, load_user
from src.api.schemas import envelope
from src.utils.errors import GestorError
from src.utils.logger import get_logger

logger = get_logger(__name__)

MSG_TRADE_RIESGO = "Riesgo {nivel} de que Hacienda cuestione tu condición de TRADE ({dependencia} de dependencia)."


# ============================================================================
# SERVICE
# ============================================================================

class DashboardAPIService:
    """Servicio para API del panel y el flujo de caja."""

    async def summary(self, user_id: int, saldo_bancario: float = 0.0) -> Dict[str, Any]:
        """Resumen del panel; avisa si el riesgo TRADE es alto."""
        try:
            from src.database.connection import get_async_db
            from src.services import dashboard_service

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                resumen = await dashboard_service.resumen(db, user, saldo_bancario)

                warnings = None
                trade = resumen["trade"]
                if trade and trade["nivel_riesgo"] in (NivelRiesgo.ALTO.value, NivelRiesgo.CRITICO.value):
                    warnings = [MSG_TRADE_RIESGO.format(
                        nivel=trade["nivel_riesgo"], dependencia=trade["dependencia"]
                    )]

                return envelope(resumen, warnings=warnings)

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error calculando resumen del panel: {e}")
            raise

    async def cash_flow_history(self, user_id: int, year: int) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import dashboard_service

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                historial = await dashboard_service.historial_flujo_caja(db, user, year)
                return envelope(historial, meta={"ano": year, "meses": len(historial)})

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error calculando historial de caja {year}: {e}")
            raise

    async def chart_ingresos_gastos(self, user_id: int, year: int) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import dashboard_service

            async with get_async_db() as db:
                await load_user(db, user_id)
                return envelope(await dashboard_service.grafico_ingresos_gastos(db, user_id, year))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error calculando gráfico {year}: {e}")
            raise

    async def modelo_data(
        self,
        user_id: int,
        modelo: str,
        trimestre: Optional[int] = None,
        year: Optional[int] = None
    ) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import dashboard_service

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                return envelope(await dashboard_service.datos_modelo(db, user, modelo, trimestre, year))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error preparando datos del modelo {modelo}: {e}")
            raise

    async def daily_cash_flow(
        self,
        user_id: int,
        start: date,
        end: date,
        saldo_inicial: float = 0.0
    ) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import dashboard_service

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                return envelope(await dashboard_service.flujo_diario(db, user, start, end, saldo_inicial))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error calculando flujo de caja {start} - {end}: {e}")
            raise


# Instancia global
dashboard_api_service = DashboardAPIService()


# ============================================================================
# FASTAPI ROUTERS
# ============================================================================

dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])
cashflow_router = APIRouter(prefix="/cashflow", tags=["dashboard"])


@dashboard_router.get("/summary")
async def dashboard_summary(
    saldo_bancario: float = Query(default=0.0),
    user_id: int = Depends(get_user_id)
):
    """Balance real, año y mes en curso, próximo plazo y facturas pendientes."""
    return await dashboard_api_service.summary(user_id, saldo_bancario)


@dashboard_router.get("/cash-flow-history")
async def cash_flow_history(
    year: Optional[int] = Query(default=None),
    user_id: int = Depends(get_user_id)
):
    return await dashboard_api_service.cash_flow_history(user_id, year or date.today().year)


@dashboard_router.get("/charts/ingresos-gastos")
async def chart_ingresos_gastos(
    year: Optional[int] = Query(default=None),
    user_id: int = Depends(get_user_id)
):
    """Doce meses de ingresos, gastos y beneficio."""
    return await dashboard_api_service.chart_ingresos_gastos(user_id, year or date.today().year)


@dashboard_router.get("/modelo-data/{modelo}")
async def modelo_data(
    modelo: str,
    trimestre: Optional[int] = Query(default=None),
    year: Optional[int] = Query(default=None),
    user_id: int = Depends(get_user_id)
):
    """Enlace a la sede AEAT y datos del modelo ya calculados."""
    return await dashboard_api_service.modelo_data(user_id, modelo, trimestre, year)


@cashflow_router.get("/daily")
async def daily_cash_flow(
    start: date = Query(...),
    end: date = Query(...),
    saldo_inicial: float = Query(default=0.0),
    user_id: int = Depends(get_user_id)
):
    """Movimientos día a día con saldo acumulado."""
    return await dashboard_api_service.daily_cash_flow(user_id, start, end, saldo_inicial)
