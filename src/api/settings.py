"""
Settings API

Datos de empresa y preferencias fiscales del usuario.
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends

from src.api.dependencies import get_user_id, load_user
from src.api.schemas import CompanySettingsUpdate, PreferencesUpdate, envelope
from src.utils.errors import GestorError, ValidationError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

CAMPOS_EMPRESA = (
    "nombre_completo", "nif", "email", "razon_social", "direccion", "codigo_postal",
    "ciudad", "provincia", "telefono", "email_facturacion", "iban", "notas_factura",
)

CAMPOS_PREFERENCIAS = (
    "mostrar_modelo_303", "mostrar_modelo_130", "mostrar_modelo_131", "mostrar_modelo_100",
    "mostrar_modelo_115", "mostrar_modelo_180", "mostrar_modelo_390", "mostrar_modelo_349",
    "mostrar_modelo_111", "mostrar_modelo_190", "mostrar_modelo_123", "mostrar_modelo_347",
    "mostrar_sii", "mostrar_vies_roi", "mostrar_redeme",
    "tiene_empleados", "tiene_operaciones_ue", "usa_modulos",
    "regimen_fiscal", "es_trade", "porcentaje_dependencia", "tiene_local_alquilado",
    "tipo_iva_predeterminado", "tipo_irpf_actual", "tipo_irpf_estimado",
    "tiene_tarifa_plana_ss", "base_cotizacion",
    "timezone", "idioma", "fecha_alta_autonomo", "fecha_alta_aeat",
)


def _pick(user, campos: tuple) -> Dict[str, Any]:
    data = {}
    for campo in campos:
        value = getattr(user, campo)
        data[campo] = value.isoformat() if hasattr(value, "isoformat") else value
    return data


# ============================================================================
# SERVICE
# ============================================================================

class SettingsAPIService:
    """Servicio para API de configuración."""

    async def get_company(self, user_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db

        async with get_async_db() as db:
            user = await load_user(db, user_id)
            return envelope(_pick(user, CAMPOS_EMPRESA))

    async def update_company(self, user_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Actualiza datos de empresa validando el IBAN."""
        try:
            from src.database.connection import get_async_db
            from src.database.queries import update_user_fields
            from src.utils.validators import BankValidator

            if not changes:
                raise ValidationError("No se proporcionaron datos para actualizar")

            if changes.get("iban"):
                result = BankValidator.validate_iban(changes["iban"])
                if not result:
                    raise ValidationError(result.error, field="iban")
                changes["iban"] = result.sanitized

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                await update_user_fields(db, user, changes)
                audit_logger.update("empresa", user_id, new_values={"campos": sorted(changes)})

                return envelope(
                    _pick(user, CAMPOS_EMPRESA),
                    info=["Configuración de empresa actualizada correctamente"],
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando empresa: {e}")
            raise

    async def get_preferences(self, user_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db

        async with get_async_db() as db:
            user = await load_user(db, user_id)
            return envelope(_pick(user, CAMPOS_PREFERENCIAS))

    async def update_preferences(self, user_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Actualiza preferencias.

        Los modelos 130 y 131 son excluyentes: activar uno desactiva el
        otro.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.queries import update_user_fields

            if not changes:
                raise ValidationError("No hay preferencias para actualizar")

            if changes.get("mostrar_modelo_131"):
                changes["mostrar_modelo_130"] = False
            elif changes.get("mostrar_modelo_130"):
                changes["mostrar_modelo_131"] = False

            base = changes.get("base_cotizacion")
            if base is not None and base <= 0:
                raise ValidationError(
                    "La base de cotización debe ser mayor que 0",
                    field="base_cotizacion",
                )

            async with get_async_db() as db:
                user = await load_user(db, user_id)
                await update_user_fields(db, user, changes)
                audit_logger.update("preferencias", user_id, new_values={"campos": sorted(changes)})

                return envelope(
                    _pick(user, CAMPOS_PREFERENCIAS),
                    info=["Preferencias actualizadas correctamente"],
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando preferencias: {e}")
            raise


# Instancia global
settings_api_service = SettingsAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

settings_router = APIRouter(prefix="/settings", tags=["settings"])


@settings_router.get("/company")
async def get_company(user_id: int = Depends(get_user_id)):
    """Datos de empresa del usuario."""
    return await settings_api_service.get_company(user_id)


@settings_router.patch("/company")
async def update_company(body: CompanySettingsUpdate, user_id: int = Depends(get_user_id)):
    return await settings_api_service.update_company(user_id, body.model_dump(exclude_unset=True))


@settings_router.get("/preferences")
async def get_preferences(user_id: int = Depends(get_user_id)):
    """Modelos visibles y situación fiscal."""
    return await settings_api_service.get_preferences(user_id)


@settings_router.patch("/preferences")
async def update_preferences(body: PreferencesUpdate, user_id: int = Depends(get_user_id)):
    return await settings_api_service.update_preferences(user_id, body.model_dump(exclude_unset=True))
