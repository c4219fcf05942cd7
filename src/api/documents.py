"""
Documents API

Metadatos de documentos (facturas, contratos y otros). El fichero en sí no
pasa por aquí: solo su nombre, tipo, tamaño y hash SHA-256.
"""

from datetime import date, timedelta
from typing import Dict, Any, List, Optional

from fastapi import APIRouter, Depends, Query

from config.constants import CategoriaDocumento, EstadoDocumento
from src.api.dependencies import get_user_id, load_user, paginacion
from src.api.schemas import DocumentCreate, DocumentUpdate, envelope
from src.utils.errors import GestorError, NotFoundError, ValidationError
from src.utils.logger import get_logger, audit_logger

logger = get_logger(__name__)

MSG_NO_ENCONTRADO = "Documento no encontrado"

ETIQUETAS_AUTOMATICAS = {
    CategoriaDocumento.FACTURA_GASTO.value: ["Facturas", "Gasto"],
    CategoriaDocumento.FACTURA_INGRESO.value: ["Facturas", "Ingreso"],
    CategoriaDocumento.CONTRATO.value: ["Contrato"],
}


def etiquetas_con_automaticas(categoria: str, etiquetas: Optional[List[str]]) -> List[str]:
    """Etiquetas de la categoría seguidas de las del usuario, sin repetir."""
    resultado: List[str] = []
    for etiqueta in ETIQUETAS_AUTOMATICAS.get(categoria, []) + list(etiquetas or []):
        etiqueta = etiqueta.strip()
        if etiqueta and etiqueta not in resultado:
            resultado.append(etiqueta)
    return resultado


def fecha_recordatorio(fecha_vencimiento: Optional[date]) -> Optional[date]:
    from config.settings import settings

    if not fecha_vencimiento:
        return None
    return fecha_vencimiento - timedelta(days=settings.DOCUMENT_REMINDER_DAYS)


def aviso_vencimiento(fecha_vencimiento: Optional[date], today: Optional[date] = None) -> Optional[str]:
    from config.settings import settings

    if not fecha_vencimiento:
        return None

    dias = (fecha_vencimiento - (today or date.today())).days
    if dias <= 0:
        return "¡Atención! Este documento ya está vencido."
    if dias <= settings.DOCUMENT_EXPIRY_WINDOW_DAYS:
        return f"Este documento vence en {dias} días. Se te recordará automáticamente."
    return None


# ============================================================================
# SERVICE
# ============================================================================

class DocumentAPIService:
    """Servicio para API de documentos."""

    async def _get_or_404(self, db, user_id: int, document_id: int):
        from src.database.queries import get_document_by_id

        document = await get_document_by_id(db, document_id, user_id)
        if not document:
            raise NotFoundError(MSG_NO_ENCONTRADO, entity_type="documento")
        return document

    async def list_documents(
        self,
        user_id: int,
        categoria: Optional[str] = None,
        estado: Optional[str] = None,
        vencimiento_proximo: bool = False,
        page: int = 1,
        limit: int = 50
    ) -> Dict[str, Any]:
        try:
            from config.settings import settings
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import get_documents

            async with get_async_db() as db:
                documents = await get_documents(
                    db,
                    user_id,
                    categoria=categoria,
                    estado=estado,
                    vencimiento_proximo=vencimiento_proximo,
                    window_days=settings.DOCUMENT_EXPIRY_WINDOW_DAYS,
                    **paginacion(page, limit),
                )
                return envelope(
                    [model_to_dict(d) for d in documents],
                    meta={"page": page, "limit": limit},
                )

        except Exception as e:
            logger.error(f"Error listando documentos: {e}")
            raise

    async def get_stats(self, user_id: int) -> Dict[str, Any]:
        from config.settings import settings
        from src.database.connection import get_async_db
        from src.database.queries import document_queries

        async with get_async_db() as db:
            stats = await document_queries.get_document_stats(
                db, user_id, window_days=settings.DOCUMENT_EXPIRY_WINDOW_DAYS
            )
            return envelope(stats)

    async def get_document(self, user_id: int, document_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict

        async with get_async_db() as db:
            return envelope(model_to_dict(await self._get_or_404(db, user_id, document_id)))

    async def create_document(self, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Registra un documento.

        Un documento no eliminado con el mismo hash se considera duplicado.
        """
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import document_queries

            if data.get("archivo_hash_sha256"):
                data["archivo_hash_sha256"] = data["archivo_hash_sha256"].lower()

            data["etiquetas"] = etiquetas_con_automaticas(data["categoria"], data.get("etiquetas"))
            data["fecha_recordatorio"] = fecha_recordatorio(data.get("fecha_vencimiento"))

            async with get_async_db() as db:
                await load_user(db, user_id)
                if data.get("archivo_hash_sha256"):
                    duplicado = await document_queries.get_document_by_hash(
                        db, user_id, data["archivo_hash_sha256"]
                    )
                    if duplicado:
                        raise ValidationError(
                            f'Ya existe un documento idéntico: "{duplicado.nombre}"',
                            data={"duplicate_id": duplicado.id},
                        )

                document = await document_queries.create_document(db, {**data, "user_id": user_id})
                audit_logger.create("documento", document.id, {"categoria": document.categoria})

                aviso = aviso_vencimiento(document.fecha_vencimiento)
                return envelope(
                    model_to_dict(document),
                    info=["Documento subido correctamente"],
                    warnings=[aviso] if aviso else None,
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error creando documento: {e}")
            raise

    async def update_document(self, user_id: int, document_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            from src.database.connection import get_async_db
            from src.database.models import model_to_dict
            from src.database.queries import update_document

            if not changes:
                raise ValidationError("No hay campos para actualizar")

            async with get_async_db() as db:
                document = await self._get_or_404(db, user_id, document_id)

                if "etiquetas" in changes or "categoria" in changes:
                    changes["etiquetas"] = etiquetas_con_automaticas(
                        changes.get("categoria") or document.categoria,
                        changes.get("etiquetas", document.etiquetas),
                    )
                if "fecha_vencimiento" in changes:
                    changes["fecha_recordatorio"] = fecha_recordatorio(changes["fecha_vencimiento"])

                await update_document(db, document, changes)
                audit_logger.update("documento", document_id, new_values=changes)

                aviso = aviso_vencimiento(document.fecha_vencimiento) if "fecha_vencimiento" in changes else None
                return envelope(
                    model_to_dict(document),
                    info=["Documento actualizado correctamente"],
                    warnings=[aviso] if aviso else None,
                )

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error actualizando documento {document_id}: {e}")
            raise

    async def archive_document(self, user_id: int, document_id: int) -> Dict[str, Any]:
        from src.database.connection import get_async_db
        from src.database.models import model_to_dict
        from src.database.queries import update_document

        async with get_async_db() as db:
            document = await self._get_or_404(db, user_id, document_id)
            await update_document(db, document, {"estado": EstadoDocumento.ARCHIVADO.value})
            audit_logger.log("archive", "documento", document_id, user_id=user_id)
            return envelope(model_to_dict(document), info=["Documento archivado correctamente"])

    async def delete_document(self, user_id: int, document_id: int, permanent: bool = False) -> Dict[str, Any]:
        """Marca el documento como ELIMINADO o, con `permanent`, borra la fila."""
        try:
            from src.database.connection import get_async_db
            from src.database.queries import document_queries

            async with get_async_db() as db:
                document = await self._get_or_404(db, user_id, document_id)

                if permanent:
                    await document_queries.delete_document(db, document)
                else:
                    await document_queries.update_document(db, document, {
                        "estado": EstadoDocumento.ELIMINADO.value,
                        "visible": False,
                    })
                audit_logger.delete("documento", document_id, {"permanent": permanent})

                return envelope({"id": document_id}, info=["Documento eliminado correctamente"])

        except GestorError:
            raise
        except Exception as e:
            logger.error(f"Error eliminando documento {document_id}: {e}")
            raise


# Instancia global
document_api_service = DocumentAPIService()


# ============================================================================
# FASTAPI ROUTER
# ============================================================================

documents_router = APIRouter(prefix="/documents", tags=["documents"])


@documents_router.get("")
async def list_documents(
    categoria: Optional[CategoriaDocumento] = Query(default=None),
    estado: Optional[EstadoDocumento] = Query(default=None),
    vencimiento_proximo: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: int = Depends(get_user_id)
):
    """Documentos del usuario; sin filtro de estado se omiten los eliminados."""
    return await document_api_service.list_documents(
        user_id,
        categoria.value if categoria else None,
        estado.value if estado else None,
        vencimiento_proximo,
        page,
        limit,
    )


@documents_router.get("/stats")
async def document_stats(user_id: int = Depends(get_user_id)):
    return await document_api_service.get_stats(user_id)


@documents_router.post("", status_code=201)
async def create_document(body: DocumentCreate, user_id: int = Depends(get_user_id)):
    return await document_api_service.create_document(user_id, body.model_dump(exclude_unset=True))


@documents_router.get("/{document_id}")
async def get_document(document_id: int, user_id: int = Depends(get_user_id)):
    return await document_api_service.get_document(user_id, document_id)


@documents_router.patch("/{document_id}")
async def update_document(document_id: int, body: DocumentUpdate, user_id: int = Depends(get_user_id)):
    return await document_api_service.update_document(
        user_id, document_id, body.model_dump(exclude_unset=True)
    )


@documents_router.patch("/{document_id}/archive")
async def archive_document(document_id: int, user_id: int = Depends(get_user_id)):
    return await document_api_service.archive_document(user_id, document_id)


@documents_router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    permanent: bool = Query(default=False),
    user_id: int = Depends(get_user_id)
):
    return await document_api_service.delete_document(user_id, document_id, permanent)
