"""
Clients API

Endpoints para gestión de clientes via API REST.
"""

from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_user_id, load_user
from src.api.schemas import ClientCreate, ClientUpdate, envelope
from src.utils.errors import ConflictError, GestorError, NotFoundError, ValidationError, BusinessError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADO = "Cliente no encontrado"
MSG_DUPLICADO = "Ya existe un cliente con este CIF"
MSG_PRINCIPAL = "Ya tienes un cliente principal. Desmarca el actual primero."
MSG_TRADE = (
    "Este cliente representa tu facturación principal. Como autónomo TRADE, "
    "asegúrate de mantener gastos de independencia (alquiler, luz, internet) a tu nombre."
)


def _validate_cif(cif: str) -> str:
    from src.utils.validators import TaxIdValidator

    result = TaxIdValidator.validate_nif_cif(cif)
    if not result:
        raise ValidationError(result.error, field="cif")
    return result.sanitized


# ============================================================================
# SERVICE
# ============================================================================

class ClientAPIService:
    """Servicio para API de clientes."""

    async def list_clients(self, user_id: int, activo: Optional[bool] = None) -> Dict[str, Any]:
        """Lista clientes del usuario."""
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import get_clients

            async with get_async_db() as db:
                clientes = await get_clients(db, user_id, activo=activo)
                return envelope([model_to_dict(c) for c in clientes])

        except Exception as e:
            logger.error(f"Error listando clientes: {e}")
            raise

    async def get_client(self, user_id: int, client_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import get_client_by_id

        async with get_async_db() as db:
            cliente = await get_client_by_id(db, client_id, user_id)
            if not cliente:
                raise NotFoundError(MSG_NO_ENCONTRADO, entity_type="cliente")
            return envelope(model_to_dict(cliente))

    async def create_client(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un cliente.

        Si existe un cliente inactivo con el mismo CIF se reactiva con los
        datos nuevos en lugar de crear otro.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import client_queries

            data["cif"] = _validate_cif(data["cif"])
            if not data.get("pais"):
                data.pop("pais", None)

            async with get_async_db() as db:
                user = await load_user(db, user_id)

                if await client_queries.get_client_by_cif(db, data["cif"], user_id, activo=True):
                    raise ConflictError(MSG_DUPLICADO)

                inactivo = await client_queries.get_client_by_cif(db, data["cif"], user_id, activo=False)

                if data.get("es_cliente_principal"):
                    principal = await client_queries.get_principal_client(
                        db, user_id, exclude_id=inactivo.id if inactivo else None
                    )
                    if principal:
                        raise ConflictError(MSG_PRINCIPAL)

                if inactivo:
                    cliente = await client_queries.update_client(db, inactivo, {**data, "activo": True})
                    audit_logger.log("reactivate", "cliente", cliente.id, user_id=user_id)
                else:
                    cliente = await client_queries.create_client(db, {**data, "user_id": user_id})
                    audit_logger.create("cliente", cliente.id, {"cif": cliente.cif})

                warnings = [MSG_TRADE] if user.es_trade and cliente.es_cliente_principal else None
                return envelope(model_to_dict(cliente), warnings=warnings)

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando cliente: {e}")
            raise

    async def update_client(self, user_id: int, client_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import client_queries

            if not changes:
                raise ValidationError("No hay campos para actualizar")

            if changes.get("cif"):
                changes["cif"] = _validate_cif(changes["cif"])

            async with get_async_db() as db:
                cliente = await client_queries.get_client_by_id(db, client_id, user_id)
                if not cliente:
                    raise NotFoundError(MSG_NO_ENCONTRADO, entity_type="cliente")

                if changes.get("cif") and await client_queries.get_client_by_cif(
                    db, changes["cif"], user_id, activo=True, exclude_id=client_id
                ):
                    raise ConflictError(MSG_DUPLICADO)

                if changes.get("es_cliente_principal") and await client_queries.get_principal_client(
                    db, user_id, exclude_id=client_id
                ):
                    raise ConflictError(MSG_PRINCIPAL)

                await client_queries.update_client(db, cliente, changes)
                audit_logger.update("cliente", client_id, new_values=changes)
                return envelope(model_to_dict(cliente))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando cliente {client_id}: {e}")
            raise

    async def delete_client(self, user_id: int, client_id: int) -> Dict[str, Any]:
        """
        Borra un cliente sin facturas ni plantillas recurrentes. Si tiene
        alguna solo se desactiva, y uno ya inactivo no se puede borrar.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.queries import client_queries

            async with get_async_db() as db:
                cliente = await client_queries.get_client_by_id(db, client_id, user_id)
                if not cliente:
                    raise NotFoundError(MSG_NO_ENCONTRADO, entity_type="cliente")

                facturas = await client_queries.count_client_invoices(db, client_id, user_id)
                plantillas = await client_queries.count_client_templates(db, client_id, user_id)
                motivo = "facturas" if facturas else "plantillas recurrentes"

                if (facturas or plantillas) and not cliente.activo:
                    raise BusinessError(
                        f"No se puede eliminar este cliente porque tiene {motivo} asociadas. "
                        "Puedes crear un nuevo cliente con el mismo CIF y se reactivará automáticamente."
                    )

                if facturas or plantillas:
                    await client_queries.update_client(db, cliente, {
                        "activo": False,
                        "es_cliente_principal": False,
                    })
                    audit_logger.log("deactivate", "cliente", client_id, user_id=user_id)
                    return envelope(
                        {"id": client_id},
                        info=[f"Cliente desactivado (tiene {motivo} asociadas). No se eliminó permanentemente."],
                    )

                await client_queries.delete_client(db, cliente)
                audit_logger.delete("cliente", client_id)
                return envelope({"id": client_id})

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando cliente {client_id}: {e}")
            raise


# Instancia global
client_api_service = ClientAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

clients_router = APIRouter(prefix="/clients", tags=["clients"])


@clients_router.get("")
async def list_clients(
    activo: Optional[bool] = Query(default=None),
    user_id: int = Depends(get_user_id)
):
    """Lista clientes, el principal primero."""
    return await client_api_service.list_clients(user_id, activo)


@clients_router.get("/{client_id}")
async def get_client(client_id: int, user_id: int = Depends(get_user_id)):
    return await client_api_service.get_client(user_id, client_id)


@clients_router.post("", status_code=201)
async def create_client(body: ClientCreate, user_id: int = Depends(get_user_id)):
    """Crea o reactiva un cliente."""
    return await client_api_service.create_client(user_id, body.model_dump(exclude_unset=True))


@clients_router.patch("/{client_id}")
async def update_client(client_id: int, body: ClientUpdate, user_id: int = Depends(get_user_id)):
    return await client_api_service.update_client(user_id, client_id, body.model_dump(exclude_unset=True))


@clients_router.delete("/{client_id}")
async def delete_client(client_id: int, user_id: int = Depends(get_user_id)):
    """Elimina o desactiva un cliente."""
    return await client_api_service.delete_client(user_id, client_id)
