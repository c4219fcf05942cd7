"""
Tax API

Modelos AEAT calculados a partir de las facturas y gastos del usuario,
resumen anual y calendario fiscal.
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends

from src.api.dependencies import get_user_id, load_user
from src.api.schemas import envelope
from src.utils.errors import GestorError
from src.utils.logger import get_logger

logger = get_logger(__name__)

MSG_TRADE = (
    "Tu cliente principal no alcanza el 75% de tus ingresos este año. "
    "Revisa si sigues cumpliendo los requisitos de autónomo TRADE."
)


# ============================================================================
# SERVICE
# ============================================================================

class TaxAPIService:
    """Servicio para API de modelos tributarios."""

    async def _trimestral(self, calcular, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import tax_service

            tax_service.validate_periodo(year, trimestre)

            async with get_async_db() as db:
                return envelope(await calcular(db, user_id, year, trimestre))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error calculando {calcular.__name__} {trimestre}T {year}: {e}")
            raise

    async def _anual(self, calcular, user_id: int, year: int) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import tax_service

            tax_service.validate_periodo(year)

            async with get_async_db() as db:
                return envelope(await calcular(db, user_id, year))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error calculando {calcular.__name__} {year}: {e}")
            raise

    async def modelo_303(self, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
        from src.services import tax_service
        return await self._trimestral(tax_service.modelo_303, user_id, year, trimestre)

    async def modelo_130(self, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
        from src.services import tax_service
        return await self._trimestral(tax_service.modelo_130, user_id, year, trimestre)

    async def modelo_115(self, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
        from src.services import tax_service
        return await self._trimestral(tax_service.modelo_115, user_id, year, trimestre)

    async def modelo_111(self, user_id: int, year: int, trimestre: int) -> Dict[str, Any]:
        from src.services import tax_service
        return await self._trimestral(tax_service.modelo_111, user_id, year, trimestre)

    async def modelo_180(self, user_id: int, year: int) -> Dict[str, Any]:
        from src.services import tax_service
        return await self._anual(tax_service.modelo_180, user_id, year)

    async def modelo_390(self, user_id: int, year: int) -> Dict[str, Any]:
        from src.services import tax_service
        return await self._anual(tax_service.modelo_390, user_id, year)

    async def summary(self, user_id: int, year: int) -> Dict[str, Any]:
        """Resumen anual; avisa si un TRADE pierde la dependencia mínima."""
        from src.database.connection import get_async_db
        from src.services import tax_service

        tax_service.validate_periodo(year)

        async with get_async_db() as db:
            user = await load_user(db, user_id)
            resumen = await tax_service.resumen_anual(db, user, year)

            trade = resumen["trade"]
            warnings = None
            if trade["es_trade"] and resumen["ingresos"] > 0 and not trade["cumple_requisitos"]:
                warnings = [MSG_TRADE]

            return envelope(resumen, warnings=warnings)

    async def calendar(self, user_id: int, year: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.services import tax_service

        tax_service.validate_periodo(year)

        async with get_async_db() as db:
            user = await load_user(db, user_id)
            obligaciones = tax_service.calendario_fiscal(user, year)
            return envelope(obligaciones, meta={"ano": year, "total": len(obligaciones)})


# Instancia global
tax_api_service = TaxAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

tax_router = APIRouter(prefix="/tax", tags=["tax"])


@tax_router.get("/modelo-303/{year}/{quarter}")
async def modelo_303(year: int, quarter: int, user_id: int = Depends(get_user_id)):
    """IVA trimestral."""
    return await tax_api_service.modelo_303(user_id, year, quarter)


@tax_router.get("/modelo-130/{year}/{quarter}")
async def modelo_130(year: int, quarter: int, user_id: int = Depends(get_user_id)):
    """Pago fraccionado de IRPF con acumulados del año."""
    return await tax_api_service.modelo_130(user_id, year, quarter)


@tax_router.get("/modelo-115/{year}/{quarter}")
async def modelo_115(year: int, quarter: int, user_id: int = Depends(get_user_id)):
    """Retenciones de alquileres."""
    return await tax_api_service.modelo_115(user_id, year, quarter)


@tax_router.get("/modelo-111/{year}/{quarter}")
async def modelo_111(year: int, quarter: int, user_id: int = Depends(get_user_id)):
    """Retenciones a profesionales."""
    return await tax_api_service.modelo_111(user_id, year, quarter)


@tax_router.get("/modelo-180/{year}")
async def modelo_180(year: int, user_id: int = Depends(get_user_id)):
    return await tax_api_service.modelo_180(user_id, year)


@tax_router.get("/modelo-390/{year}")
async def modelo_390(year: int, user_id: int = Depends(get_user_id)):
    return await tax_api_service.modelo_390(user_id, year)


@tax_router.get("/summary/{year}")
async def annual_summary(year: int, user_id: int = Depends(get_user_id)):
    return await tax_api_service.summary(user_id, year)


@tax_router.get("/calendar/{year}")
async def fiscal_calendar(year: int, user_id: int = Depends(get_user_id)):
    return await tax_api_service.calendar(user_id, year)
