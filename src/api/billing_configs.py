"""
Billing Configs API

Perfiles de facturación (datos del emisor). Como mucho uno activo, que es
el que se usa al emitir, y uno principal.
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends

from src.api.dependencies import get_user_id, load_user
from src.api.schemas import BillingConfigCreate, BillingConfigUpdate, envelope
from src.utils.errors import GestorError, NotFoundError, ValidationError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADA = "Configuración de facturación no encontrada"

CAMPOS_EMISOR = ("razon_social", "nif", "direccion", "ciudad", "iban")


def _validate(data: Dict[str, Any]) -> Dict[str, Any]:
    """Valida los datos del emisor y normaliza NIF e IBAN."""
    from src.utils.validators import BillingDataValidator, normalizar_identificador

    result = BillingDataValidator.validate(*(data.get(c) for c in CAMPOS_EMISOR))
    if not result:
        raise ValidationError(result.error)

    return {
        **data,
        "nif": normalizar_identificador(data["nif"]),
        "iban": normalizar_identificador(data["iban"]),
    }


# ============================================================================
# SERVICE
# ============================================================================

class BillingConfigAPIService:
    """Servicio para API de perfiles de facturación."""

    async def _get_or_404(self, db, user_id: int, config_id: int):
        from src.database.queries import get_billing_config_by_id

        config = await get_billing_config_by_id(db, config_id, user_id)
        if not config:
            raise NotFoundError(MSG_NO_ENCONTRADA, entity_type="datos_facturacion")
        return config

    async def list_configs(self, user_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import get_billing_configs

        async with get_async_db() as db:
            configs = await get_billing_configs(db, user_id)
            return envelope([model_to_dict(c) for c in configs])

    async def get_active(self, user_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import get_active_billing_config

        async with get_async_db() as db:
            config = await get_active_billing_config(db, user_id)
            if not config:
                raise NotFoundError("No hay configuración de facturación activa")
            return envelope(model_to_dict(config))

    async def get_config(self, user_id: int, config_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict

        async with get_async_db() as db:
            return envelope(model_to_dict(await self._get_or_404(db, user_id, config_id)))

    async def create_config(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un perfil.

        El primero del usuario queda activo y principal. Para los demás,
        marcarlos como activo o principal desmarca el anterior.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import billing_queries

            data = _validate(data)

            async with get_async_db() as db:
                await load_user(db, user_id)
                info = []
                if await billing_queries.count_billing_configs(db, user_id) == 0:
                    data["activo"] = True
                    data["es_principal"] = True
                    info.append("Primera configuración creada, activada y marcada como principal")
                else:
                    if data.get("activo"):
                        await billing_queries.deactivate_all_billing_configs(db, user_id)
                    if data.get("es_principal"):
                        await billing_queries.clear_principal_billing_config(db, user_id)
                        info.append("Configuración creada y marcada como principal")

                config = await billing_queries.create_billing_config(db, {**data, "user_id": user_id})
                audit_logger.create("datos_facturacion", config.id, {"nif": config.nif})

                return envelope(model_to_dict(config), info=info)

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando configuración de facturación: {e}")
            raise

    async def update_config(self, user_id: int, config_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import update_billing_config

            if not changes:
                raise ValidationError("No hay campos para actualizar")

            async with get_async_db() as db:
                config = await self._get_or_404(db, user_id, config_id)

                merged = _validate({**{c: getattr(config, c) for c in CAMPOS_EMISOR}, **changes})
                fields = {k: merged[k] for k in changes}

                await update_billing_config(db, config, fields)
                audit_logger.update("datos_facturacion", config_id, new_values=fields)
                return envelope(model_to_dict(config))

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando configuración {config_id}: {e}")
            raise

    async def toggle_active(self, user_id: int, config_id: int) -> Dict[str, Any]:
        """Activa el perfil (desactivando el resto) o lo desactiva si ya lo estaba."""
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import billing_queries

        async with get_async_db() as db:
            config = await self._get_or_404(db, user_id, config_id)

            if config.activo:
                await billing_queries.update_billing_config(db, config, {"activo": False})
                info = "Configuración desactivada"
            else:
                await billing_queries.deactivate_all_billing_configs(db, user_id)
                await billing_queries.update_billing_config(db, config, {"activo": True})
                info = "Configuración activada"

            return envelope(model_to_dict(config), info=[info])

    async def set_principal(self, user_id: int, config_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import billing_queries

        async with get_async_db() as db:
            config = await self._get_or_404(db, user_id, config_id)

            await billing_queries.clear_principal_billing_config(db, user_id)
            await billing_queries.update_billing_config(db, config, {"es_principal": True})

            return envelope(model_to_dict(config), info=["Configuración marcada como principal"])

    async def delete_config(self, user_id: int, config_id: int) -> Dict[str, Any]:
        """Borra un perfil; si era el principal se promueve otro."""
        try:
            from src.database.connection import get_async_db
            from src.database.queries import billing_queries

            async with get_async_db() as db:
                config = await self._get_or_404(db, user_id, config_id)
                era_principal = config.es_principal

                await billing_queries.delete_billing_config(db, config)
                audit_logger.delete("datos_facturacion", config_id)

                info = []
                if era_principal:
                    siguiente = await billing_queries.get_most_recent_billing_config(db, user_id)
                    if siguiente:
                        await billing_queries.update_billing_config(db, siguiente, {"es_principal": True})
                        info.append("Se ha marcado otra configuración como principal automáticamente.")

                return envelope({"id": config_id}, info=info)

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando configuración {config_id}: {e}")
            raise


# Instancia global
billing_api_service = BillingConfigAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

billing_router = APIRouter(prefix="/billing/configs", tags=["billing"])


@billing_router.get("")
async def list_configs(user_id: int = Depends(get_user_id)):
    """Perfiles del usuario, el principal primero."""
    return await billing_api_service.list_configs(user_id)


@billing_router.get("/active")
async def get_active_config(user_id: int = Depends(get_user_id)):
    return await billing_api_service.get_active(user_id)


@billing_router.get("/{config_id}")
async def get_config(config_id: int, user_id: int = Depends(get_user_id)):
    return await billing_api_service.get_config(user_id, config_id)


@billing_router.post("", status_code=201)
async def create_config(body: BillingConfigCreate, user_id: int = Depends(get_user_id)):
    return await billing_api_service.create_config(user_id, body.model_dump())


@billing_router.patch("/{config_id}")
async def update_config(config_id: int, body: BillingConfigUpdate, user_id: int = Depends(get_user_id)):
    return await billing_api_service.update_config(user_id, config_id, body.model_dump(exclude_unset=True))


@billing_router.patch("/{config_id}/activate")
async def toggle_active(config_id: int, user_id: int = Depends(get_user_id)):
    """Activa o desactiva el perfil."""
    return await billing_api_service.toggle_active(user_id, config_id)


@billing_router.patch("/{config_id}/principal")
async def set_principal(config_id: int, user_id: int = Depends(get_user_id)):
    return await billing_api_service.set_principal(user_id, config_id)


@billing_router.delete("/{config_id}")
async def delete_config(config_id: int, user_id: int = Depends(get_user_id)):
    return await billing_api_service.delete_config(user_id, config_id)
