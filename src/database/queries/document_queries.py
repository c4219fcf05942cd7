"""
Queries de Documento

Metadatos de documentos, detección de duplicados por hash y estadísticas.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from typing import Optional, List, Dict, Any
from datetime import date, timedelta

from src.database.models import Documento
from src.database.queries.base import BaseQuery
from src.utils.logger import get_logger
from config.constants import EstadoDocumento

logger = get_logger(__name__)


class DocumentoQuery(BaseQuery[Documento]):
    model = Documento


documento_query = DocumentoQuery()


async def get_documents(
    db: AsyncSession,
    user_id: int,
    categoria: Optional[str] = None,
    estado: Optional[str] = None,
    vencimiento_proximo: bool = False,
    today: Optional[date] = None,
    window_days: int = 30,
    limit: int = 50,
    offset: int = 0
) -> List[Documento]:
    """
    Lista documentos del usuario.

    Por defecto excluye los ELIMINADO. Con `vencimiento_proximo` devuelve
    solo los que vencen en los próximos `window_days` días.
    """
    conditions = [Documento.user_id == user_id]
    if categoria:
        conditions.append(Documento.categoria == categoria)
    if estado:
        conditions.append(Documento.estado == estado)
    else:
        conditions.append(Documento.estado != EstadoDocumento.ELIMINADO.value)
    if vencimiento_proximo:
        today = today or date.today()
        conditions.append(
            Documento.fecha_vencimiento.between(today, today + timedelta(days=window_days))
        )

    order = Documento.fecha_vencimiento.asc() if vencimiento_proximo else Documento.fecha_subida.desc()
    result = await db.execute(
        select(Documento)
        .where(and_(*conditions))
        .order_by(order, Documento.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_document_by_id(db: AsyncSession, document_id: int, user_id: int) -> Optional[Documento]:
    return await documento_query.get_by_id(db, document_id, user_id)


async def get_document_by_hash(
    db: AsyncSession,
    user_id: int,
    archivo_hash: str
) -> Optional[Documento]:
    """Documento no eliminado con el mismo hash SHA-256."""
    result = await db.execute(
        select(Documento).where(
            and_(
                Documento.user_id == user_id,
                Documento.archivo_hash_sha256 == archivo_hash,
                Documento.estado != EstadoDocumento.ELIMINADO.value
            )
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def create_document(db: AsyncSession, data: dict) -> Documento:
    return await documento_query.create(db, data)


async def update_document(db: AsyncSession, document: Documento, fields: dict) -> Documento:
    return await documento_query.update(db, document, fields)


async def delete_document(db: AsyncSession, document: Documento) -> None:
    await documento_query.delete(db, document)


async def get_document_stats(
    db: AsyncSession,
    user_id: int,
    today: Optional[date] = None,
    window_days: int = 30
) -> Dict[str, Any]:
    """
    Estadísticas de documentos del usuario.

    Returns:
        Dict con total, por_categoria, por_estado, tamanio_total_bytes,
        proximos_vencimientos y vencidos
    """
    today = today or date.today()
    not_deleted = Documento.estado != EstadoDocumento.ELIMINADO.value

    por_categoria = await db.execute(
        select(Documento.categoria, func.count(Documento.id))
        .where(and_(Documento.user_id == user_id, not_deleted))
        .group_by(Documento.categoria)
    )
    por_estado = await db.execute(
        select(Documento.estado, func.count(Documento.id))
        .where(Documento.user_id == user_id)
        .group_by(Documento.estado)
    )
    tamanio = await db.execute(
        select(func.coalesce(func.sum(Documento.archivo_tamanio_bytes), 0))
        .where(and_(Documento.user_id == user_id, not_deleted))
    )
    proximos = await db.execute(
        select(func.count(Documento.id)).where(
            and_(
                Documento.user_id == user_id,
                not_deleted,
                Documento.fecha_vencimiento.between(today, today + timedelta(days=window_days))
            )
        )
    )
    vencidos = await db.execute(
        select(func.count(Documento.id)).where(
            and_(
                Documento.user_id == user_id,
                not_deleted,
                Documento.fecha_vencimiento < today
            )
        )
    )

    categorias = dict(por_categoria.all())
    return {
        "total": sum(categorias.values()),
        "por_categoria": categorias,
        "por_estado": dict(por_estado.all()),
        "tamanio_total_bytes": int(tamanio.scalar() or 0),
        "proximos_vencimientos": proximos.scalar() or 0,
        "vencidos": vencidos.scalar() or 0,
    }
