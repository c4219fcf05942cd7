"""
Invoices API

Endpoints para gestión de facturas emitidas via API REST: CRUD, cobro,
numeración, series programadas y borrado por año.
"""

from datetime import date
from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import inspect

from src.api.dependencies import get_user_id, load_user, paginacion, periodo_fechas
from src.api.schemas import (
    InvoiceCreate,
    InvoiceSeriesUpdate,
    InvoiceUpdate,
    MarkPaidRequest,
    ScheduledInvoiceCreate,
    envelope,
)
from src.utils.errors import BusinessError, GestorError, NotFoundError, ValidationError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADA = "Factura no encontrada"
MSG_CLIENTE = "Cliente no encontrado o inactivo"


def invoice_to_dict(invoice) -> Dict[str, Any]:
    """Factura serializada, con el nombre del cliente si ya está cargado."""
    from src.database.models import model_to_dict

    data = model_to_dict(invoice)
    if "cliente" not in inspect(invoice).unloaded and invoice.cliente is not None:
        data["cliente_nombre"] = invoice.cliente.nombre
    return data


# ============================================================================
# SERVICE
# ============================================================================

class InvoiceAPIService:
    """Servicio para API de facturas."""

    async def _get_or_404(self, db, user_id: int, invoice_id: int):
        from src.database.queries import get_invoice_by_id

        invoice = await get_invoice_by_id(db, invoice_id, user_id)
        if not invoice:
            raise NotFoundError(MSG_NO_ENCONTRADA, entity_type="factura")
        return invoice

    async def list_invoices(
        self,
        user_id: int,
        year: Optional[int] = None,
        trimestre: Optional[int] = None,
        estado: Optional[str] = None,
        cliente_id: Optional[int] = None,
        page: int = 1,
        limit: int = 50
    ) -> Dict[str, Any]:
        """Lista facturas con totales del filtro completo en `meta`."""
        try:
            from src.database.connection import get_async_db
            from src.database.queries import get_invoices, get_invoice_totals

            desde, hasta = periodo_fechas(year, trimestre)
            filtros = {
                "fecha_desde": desde,
                "fecha_hasta": hasta,
                "estado": estado,
                "cliente_id": cliente_id,
            }

            async with get_async_db() as db:
                invoices = await get_invoices(db, user_id, **filtros, **paginacion(page, limit))
                totals = await get_invoice_totals(db, user_id, **filtros)

                return envelope(
                    [invoice_to_dict(inv) for inv in invoices],
                    meta={"page": page, "limit": limit, **totals},
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error listando facturas: {e}")
            raise

    async def get_invoice(self, user_id: int, invoice_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db

        async with get_async_db() as db:
            return envelope(invoice_to_dict(await self._get_or_404(db, user_id, invoice_id)))

    async def next_number(self, user_id: int, serie: Optional[str], year: Optional[int]) -> Dict[str, Any]:
        """Número que recibiría la próxima factura (sin reservarlo)."""
        from config.settings import settings
        from src.database.connection import get_async_db
        from src.services.invoice_service import preview_next_number

        serie = serie or settings.DEFAULT_INVOICE_SERIE
        year = year or date.today().year

        async with get_async_db() as db:
            numero = await preview_next_number(db, user_id, year, serie)
            return envelope({"next_number": numero, "serie": serie, "year": year})

    async def create_invoice(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Emite una factura.

        El cliente debe estar activo y el emisor (perfil indicado, perfil
        activo o datos de empresa) tener todos los datos obligatorios.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.queries import get_active_client
            from src.services import invoice_service

            async with get_async_db() as db:
                user = await load_user(db, user_id)

                if not await get_active_client(db, data["cliente_id"], user_id):
                    raise NotFoundError(MSG_CLIENTE, entity_type="cliente")

                emisor = await invoice_service.resolve_emisor(db, user, data.get("datos_facturacion_id"))
                emisor.validate()
                data["datos_facturacion_id"] = emisor.datos_facturacion_id

                invoice = await invoice_service.create_invoice(db, user_id, data)
                return envelope(
                    invoice_to_dict(invoice),
                    info=invoice_service.invoice_info_messages(invoice),
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando factura: {e}")
            raise

    async def update_invoice(self, user_id: int, invoice_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Edita una factura recalculando importes si cambian base o tipos."""
        try:
            from src.database.connection import get_async_db
            from src.database.queries import get_active_client, update_invoice
            from src.services import invoice_service

            if not changes:
                raise ValidationError("No hay campos para actualizar")

            async with get_async_db() as db:
                invoice = await self._get_or_404(db, user_id, invoice_id)

                if changes.get("cliente_id") and not await get_active_client(db, changes["cliente_id"], user_id):
                    raise NotFoundError(MSG_CLIENTE, entity_type="cliente")

                fields = invoice_service.recalculate_amounts(invoice, changes)
                fields.update(invoice_service.estado_fields(fields.get("estado"), fields.get("fecha_pago")))

                await update_invoice(db, invoice, fields)
                audit_logger.update("factura", invoice_id, new_values={"campos": sorted(changes)})
                return envelope(invoice_to_dict(invoice))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando factura {invoice_id}: {e}")
            raise

    async def mark_paid(self, user_id: int, invoice_id: int, fecha_pago: Optional[date] = None) -> Dict[str, Any]:
        from config.constants import EstadoFactura
        from src.database.connection import get_async_db
        from src.database.queries import update_invoice
        from src.services.invoice_service import estado_fields

        async with get_async_db() as db:
            invoice = await self._get_or_404(db, user_id, invoice_id)
            await update_invoice(db, invoice, estado_fields(EstadoFactura.PAGADA.value, fecha_pago))
            audit_logger.log("mark_paid", "factura", invoice_id, user_id=user_id)

            return envelope(invoice_to_dict(invoice), info=["Factura marcada como pagada"])

    async def delete_invoice(self, user_id: int, invoice_id: int) -> Dict[str, Any]:
        """Borra una factura no pagada."""
        try:
            from config.constants import EstadoFactura
            from src.database.connection import get_async_db
            from src.database.queries import delete_invoice

            async with get_async_db() as db:
                invoice = await self._get_or_404(db, user_id, invoice_id)
                if invoice.estado == EstadoFactura.PAGADA.value:
                    raise BusinessError("No se puede eliminar una factura pagada")

                numero = invoice.numero_factura
                await delete_invoice(db, invoice)
                audit_logger.delete("factura", invoice_id, {"numero_factura": numero})

                return envelope(
                    {"id": invoice_id, "numero_factura": numero},
                    info=[f"Factura {numero} eliminada"],
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando factura {invoice_id}: {e}")
            raise

    # =========================================================================
    # SERIES
    # =========================================================================

    async def create_scheduled(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Crea una programación de ingresos con todas sus facturas."""
        try:
            from config.constants import TipoProgramacion
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.services import invoice_service, series_service

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                emisor = await invoice_service.resolve_emisor(db, user, data.get("datos_facturacion_id"))
                emisor.validate()
                data["datos_facturacion_id"] = emisor.datos_facturacion_id

                result = await series_service.create_scheduled(
                    db, user_id, TipoProgramacion.INGRESO.value, data
                )
                facturas = result["records"]

                return envelope(
                    {
                        "programacion": model_to_dict(result["programacion"]),
                        "facturas": [
                            {
                                "id": f.id,
                                "numero_factura": f.numero_factura,
                                "fecha_emision": f.fecha_emision.isoformat(),
                                "total_factura": f.total_factura,
                            }
                            for f in facturas
                        ],
                    },
                    info=[f"Se han generado {len(facturas)} facturas programadas"],
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando facturas programadas: {e}")
            raise

    async def extend_year(self, user_id: int, year: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.services import series_service

        async with get_async_db() as db:
            result = await series_service.extend_year(db, user_id, year)
            total = result["total_created"]
            info = [f"Se han generado {total} facturas para el año {year}"] if total else [result.get("message")]
            return envelope(result, info=info)

    async def get_programacion(self, user_id: int, invoice_id: int) -> Dict[str, Any]:
        """Programación a la que pertenece la factura (data null si es suelta)."""
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import get_programacion_by_id, invoice_queries

        async with get_async_db() as db:
            invoice = await self._get_or_404(db, user_id, invoice_id)
            if not invoice.programacion_id:
                return envelope(None)

            programacion = await get_programacion_by_id(db, invoice.programacion_id, user_id)
            if not programacion:
                return envelope(None)

            total = await invoice_queries.count_invoices_by_programacion(db, programacion.id)
            return envelope({**model_to_dict(programacion), "total_facturas": total})

    async def delete_with_series(self, user_id: int, invoice_id: int, delete_all: bool) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import series_service

            async with get_async_db() as db:
                invoice = await self._get_or_404(db, user_id, invoice_id)
                en_serie = bool(invoice.programacion_id)

                result = await series_service.delete_invoice_with_series(db, user_id, invoice, delete_all)

                if delete_all and en_serie:
                    info = f"Se han eliminado {result['deleted_count']} facturas de la serie"
                else:
                    info = f"Factura {result['deleted_invoices'][0]} eliminada"
                return envelope(result, info=[info])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando factura {invoice_id} con serie: {e}")
            raise

    async def update_with_series(self, user_id: int, invoice_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.services import series_service

            apply_to_all = bool(changes.pop("apply_to_all", False))

            async with get_async_db() as db:
                invoice = await self._get_or_404(db, user_id, invoice_id)
                en_serie = bool(invoice.programacion_id)

                result = await series_service.update_invoice_with_series(
                    db, user_id, invoice, changes, apply_to_all
                )

                data = {
                    "updated_count": result["updated_count"],
                    "invoices": [invoice_to_dict(i) for i in result["invoices"]],
                }
                info = None
                if apply_to_all and en_serie:
                    info = [f"Se han actualizado {result['updated_count']} facturas de la serie"]
                return envelope(data, info=info)

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando factura {invoice_id} con serie: {e}")
            raise

    async def delete_by_year(self, user_id: int, year: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.services import series_service

        async with get_async_db() as db:
            result = await series_service.delete_invoices_by_year(db, user_id, year)
            total = result["total_deleted"]
            info = [f"Se han eliminado {total} facturas del año {year}"] if total else [result.get("message")]
            return envelope(result, info=info)


# Instancia global
invoice_api_service = InvoiceAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

invoices_router = APIRouter(prefix="/invoices", tags=["invoices"])


@invoices_router.get("")
async def list_invoices(
    year: Optional[int] = Query(default=None),
    trimestre: Optional[int] = Query(default=None),
    estado: Optional[str] = Query(default=None),
    cliente_id: Optional[int] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    user_id: int = Depends(get_user_id)
):
    """Lista facturas del usuario."""
    return await invoice_api_service.list_invoices(
        user_id, year, trimestre, estado, cliente_id, page, limit
    )


@invoices_router.get("/next-number")
async def next_number(
    serie: Optional[str] = Query(default=None),
    year: Optional[int] = Query(default=None),
    user_id: int = Depends(get_user_id)
):
    """Siguiente número de factura."""
    return await invoice_api_service.next_number(user_id, serie, year)


@invoices_router.post("", status_code=201)
async def create_invoice(body: InvoiceCreate, user_id: int = Depends(get_user_id)):
    """Emite una factura."""
    return await invoice_api_service.create_invoice(user_id, body.model_dump(exclude_unset=True))


@invoices_router.post("/scheduled", status_code=201)
async def create_scheduled(body: ScheduledInvoiceCreate, user_id: int = Depends(get_user_id)):
    """Crea una serie de facturas programadas."""
    return await invoice_api_service.create_scheduled(user_id, body.model_dump(exclude_unset=True))


@invoices_router.post("/extend-year/{year}")
async def extend_year(year: int, user_id: int = Depends(get_user_id)):
    """Extiende las series de ingresos al año indicado."""
    return await invoice_api_service.extend_year(user_id, year)


@invoices_router.delete("/by-year/{year}")
async def delete_by_year(year: int, user_id: int = Depends(get_user_id)):
    """Borra todas las facturas de un año."""
    return await invoice_api_service.delete_by_year(user_id, year)


@invoices_router.get("/{invoice_id}")
async def get_invoice(invoice_id: int, user_id: int = Depends(get_user_id)):
    return await invoice_api_service.get_invoice(user_id, invoice_id)


@invoices_router.patch("/{invoice_id}")
async def update_invoice(invoice_id: int, body: InvoiceUpdate, user_id: int = Depends(get_user_id)):
    return await invoice_api_service.update_invoice(user_id, invoice_id, body.model_dump(exclude_unset=True))


@invoices_router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: int, user_id: int = Depends(get_user_id)):
    return await invoice_api_service.delete_invoice(user_id, invoice_id)


@invoices_router.patch("/{invoice_id}/mark-paid")
async def mark_paid(
    invoice_id: int,
    body: Optional[MarkPaidRequest] = None,
    user_id: int = Depends(get_user_id)
):
    """Marca la factura como cobrada."""
    return await invoice_api_service.mark_paid(user_id, invoice_id, body.fecha_pago if body else None)


@invoices_router.get("/{invoice_id}/programacion")
async def get_invoice_programacion(invoice_id: int, user_id: int = Depends(get_user_id)):
    return await invoice_api_service.get_programacion(user_id, invoice_id)


@invoices_router.delete("/{invoice_id}/with-series")
async def delete_with_series(
    invoice_id: int,
    delete_all: bool = Query(default=False),
    user_id: int = Depends(get_user_id)
):
    """Borra la factura o, con delete_all, las no pagadas de su serie."""
    return await invoice_api_service.delete_with_series(user_id, invoice_id, delete_all)


@invoices_router.patch("/{invoice_id}/with-series")
async def update_with_series(
    invoice_id: int,
    body: InvoiceSeriesUpdate,
    user_id: int = Depends(get_user_id)
):
    """Edita la factura o, con apply_to_all, toda su serie."""
    return await invoice_api_service.update_with_series(
        user_id, invoice_id, body.model_dump(exclude_unset=True)
    )
