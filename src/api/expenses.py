"""
Expenses API

Endpoints para gestión de gastos via API REST.
"""

from datetime import date
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_user_id, load_user, paginacion, periodo_fechas
from src.api.schemas import (
    ExpenseCreate,
    ExpenseSeriesUpdate,
    ExpenseUpdate,
    MarkPaidRequest,
    ScheduledExpenseCreate,
    envelope,
)
from src.utils.errors import GestorError, NotFoundError, ValidationError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADO = "Gasto no encontrado"


# ============================================================================
# SERVICE
# ============================================================================

class ExpenseAPIService:
    """Servicio para API de gastos."""

    async def _get_or_404(self, db, user_id: int, expense_id: int):
        from src.database.queries import get_expense_by_id

        expense = await get_expense_by_id(db, expense_id, user_id)
        if not expense:
            raise NotFoundError(MSG_NO_ENCONTRADO, entity_type="gasto")
        return expense

    async def list_expenses(
        self,
        user_id: int,
        year: Optional[int] = None,
        trimestre: Optional[int] = None,
        categoria: Optional[str] = None,
        es_deducible: Optional[bool] = None,
        nivel_riesgo: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import get_expenses, get_expense_totals

            desde, hasta = periodo_fechas(year, trimestre)
            filtros = {
                "fecha_desde": desde,
                "fecha_hasta": hasta,
                "categoria": categoria,
                "es_deducible": es_deducible,
                "nivel_riesgo": nivel_riesgo,
            }

            async with get_async_db() as db:
                expenses = await get_expenses(db, user_id, **paginacion(page, limit), **filtros)
                totals = await get_expense_totals(db, user_id, **filtros)

                return envelope(
                    [model_to_dict(g) for g in expenses],
                    meta={"page": page, "limit": limit, **totals},
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error listando gastos: {e}")
            raise

    async def get_expense(self, user_id: int, expense_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict

        async with get_async_db() as db:
            return envelope(model_to_dict(await self._get_or_404(db, user_id, expense_id)))

    async def create_expense(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Registra un gasto con categoría, independencia y riesgo calculados."""
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.services import expense_service

            async with get_async_db() as db:
                await load_user(db, user_id)
                expense = await expense_service.create_expense(db, user_id, data)
                return envelope(
                    model_to_dict(expense),
                    info=expense_service.expense_info_messages(expense),
                    alerts=expense_service.expense_alerts(expense),
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando gasto: {e}")
            raise

    async def update_expense(self, user_id: int, expense_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import update_expense
            from src.services.expense_service import recalculate_expense, expense_alerts

            if not changes:
                raise ValidationError("No hay campos para actualizar")

            async with get_async_db() as db:
                expense = await self._get_or_404(db, user_id, expense_id)
                await update_expense(db, expense, recalculate_expense(expense, changes))
                audit_logger.update("gasto", expense_id, new_values={"campos": sorted(changes)})

                return envelope(model_to_dict(expense), alerts=expense_alerts(expense))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando gasto {expense_id}: {e}")
            raise

    async def mark_paid(self, user_id: int, expense_id: int, fecha_pago: Optional[date] = None) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import update_expense

        async with get_async_db() as db:
            expense = await self._get_or_404(db, user_id, expense_id)
            await update_expense(db, expense, {"pagado": True, "fecha_pago": fecha_pago or date.today()})
            audit_logger.log("mark_paid", "gasto", expense_id, user_id=user_id)

            return envelope(model_to_dict(expense), info=["Gasto marcado como pagado"])

    async def delete_expense(self, user_id: int, expense_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.queries import delete_expense

        async with get_async_db() as db:
            expense = await self._get_or_404(db, user_id, expense_id)
            concepto = expense.concepto
            await delete_expense(db, expense)
            audit_logger.delete("gasto", expense_id)

            return envelope({"id": expense_id}, info=[f'Gasto "{concepto}" eliminado'])

    async def independence_check(self, user_id: int, year: int, month: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.services.expense_service import check_independence

        async with get_async_db() as db:
            return envelope(await check_independence(db, user_id, year, month))

    # =========================================================================
    # SERIES
    # =========================================================================

    async def create_scheduled(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Crea una programación de gastos con todos sus registros."""
        try:
            from config.constants import TipoProgramacion
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.services import series_service

            async with get_async_db() as db:
                await load_user(db, user_id)
                result = await series_service.create_scheduled(
                    db, user_id, TipoProgramacion.GASTO.value, data
                )
                gastos = result["records"]
                iva_total = sum(g.cuota_iva for g in gastos if g.es_deducible)

                return envelope(
                    {
                        "programacion": model_to_dict(result["programacion"]),
                        "gastos": [
                            {
                                "id": g.id,
                                "fecha_emision": g.fecha_emision.isoformat(),
                                "total_factura": g.total_factura,
                            }
                            for g in gastos
                        ],
                    },
                    info=[
                        f"Se han generado {len(gastos)} gastos programados",
                        f"IVA deducible total: {iva_total:.2f}€",
                    ],
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando gastos programados: {e}")
            raise

    async def get_programacion(self, user_id: int, expense_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import get_programacion_by_id, expense_queries

        async with get_async_db() as db:
            expense = await self._get_or_404(db, user_id, expense_id)
            if not expense.programacion_id:
                return envelope(None)

            programacion = await get_programacion_by_id(db, expense.programacion_id, user_id)
            if not programacion:
                return envelope(None)

            total = await expense_queries.count_expenses_by_programacion(db, programacion.id)
            return envelope({**model_to_dict(programacion), "total_gastos": total})

    async def delete_with_series(self, user_id: int, expense_id: int, delete_all: bool) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import series_service

            async with get_async_db() as db:
                expense = await self._get_or_404(db, user_id, expense_id)
                en_serie = bool(expense.programacion_id)

                result = await series_service.delete_expense_with_series(db, user_id, expense, delete_all)

                if delete_all and en_serie:
                    info = f"Se han eliminado {result['deleted_count']} gastos de la serie"
                else:
                    info = f'Gasto "{result["concepto"]}" eliminado'
                return envelope(result, info=[info])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando gasto {expense_id} con serie: {e}")
            raise

    async def update_with_series(self, user_id: int, expense_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.services import series_service

            apply_to_all = bool(changes.pop("apply_to_all", False))

            async with get_async_db() as db:
                expense = await self._get_or_404(db, user_id, expense_id)
                en_serie = bool(expense.programacion_id)

                result = await series_service.update_expense_with_series(
                    db, user_id, expense, changes, apply_to_all
                )

                info = None
                if apply_to_all and en_serie:
                    info = [f"Se han actualizado {result['updated_count']} gastos de la serie"]
                return envelope(
                    {
                        "updated_count": result["updated_count"],
                        "expenses": [model_to_dict(g) for g in result["expenses"]],
                    },
                    info=info,
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando gasto {expense_id} con serie: {e}")
            raise

    async def delete_by_year(self, user_id: int, year: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.services import series_service

        async with get_async_db() as db:
            result = await series_service.delete_expenses_by_year(db, user_id, year)
            total = result["total_deleted"]
            info = [f"Se han eliminado {total} gastos del año {year}"] if total else [result.get("message")]
            return envelope(result, info=info)


# Instancia global
expense_api_service = ExpenseAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

expenses_router = APIRouter(prefix="/expenses", tags=["expenses"])


@expenses_router.get("")
async def list_expenses(
    year: Optional[int] = Query(default=None),
    trimestre: Optional[int] = Query(default=None),
    categoria: Optional[str] = Query(default=None),
    es_deducible: Optional[bool] = Query(default=None),
    nivel_riesgo: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    user_id: int = Depends(get_user_id)
):
    """Lista gastos del usuario."""
    return await expense_api_service.list_expenses(
        user_id, year, trimestre, categoria, es_deducible, nivel_riesgo, page, limit
    )


@expenses_router.get("/independence-check/{year}/{month}")
async def independence_check(year: int, month: int, user_id: int = Depends(get_user_id)):
    """Gastos de independencia del mes (TRADE)."""
    return await expense_api_service.independence_check(user_id, year, month)


@expenses_router.post("", status_code=201)
async def create_expense(body: ExpenseCreate, user_id: int = Depends(get_user_id)):
    return await expense_api_service.create_expense(user_id, body.model_dump(exclude_unset=True))


@expenses_router.post("/scheduled", status_code=201)
async def create_scheduled(body: ScheduledExpenseCreate, user_id: int = Depends(get_user_id)):
    """Crea una serie de gastos programados."""
    return await expense_api_service.create_scheduled(user_id, body.model_dump(exclude_unset=True))


@expenses_router.delete("/by-year/{year}")
async def delete_by_year(year: int, user_id: int = Depends(get_user_id)):
    return await expense_api_service.delete_by_year(user_id, year)


@expenses_router.get("/{expense_id}")
async def get_expense(expense_id: int, user_id: int = Depends(get_user_id)):
    return await expense_api_service.get_expense(user_id, expense_id)


@expenses_router.patch("/{expense_id}")
async def update_expense(expense_id: int, body: ExpenseUpdate, user_id: int = Depends(get_user_id)):
    return await expense_api_service.update_expense(user_id, expense_id, body.model_dump(exclude_unset=True))


@expenses_router.delete("/{expense_id}")
async def delete_expense(expense_id: int, user_id: int = Depends(get_user_id)):
    return await expense_api_service.delete_expense(user_id, expense_id)


@expenses_router.patch("/{expense_id}/mark-paid")
async def mark_paid(
    expense_id: int,
    body: Optional[MarkPaidRequest] = None,
    user_id: int = Depends(get_user_id)
):
    return await expense_api_service.mark_paid(user_id, expense_id, body.fecha_pago if body else None)


@expenses_router.get("/{expense_id}/programacion")
async def get_expense_programacion(expense_id: int, user_id: int = Depends(get_user_id)):
    return await expense_api_service.get_programacion(user_id, expense_id)


@expenses_router.delete("/{expense_id}/with-series")
async def delete_with_series(
    expense_id: int,
    delete_all: bool = Query(default=False),
    user_id: int = Depends(get_user_id)
):
    """Borra el gasto o, con delete_all, toda su serie."""
    return await expense_api_service.delete_with_series(user_id, expense_id, delete_all)


@expenses_router.patch("/{expense_id}/with-series")
async def update_with_series(
    expense_id: int,
    body: ExpenseSeriesUpdate,
    user_id: int = Depends(get_user_id)
):
    return await expense_api_service.update_with_series(
        user_id, expense_id, body.model_dump(exclude_unset=True)
    )
