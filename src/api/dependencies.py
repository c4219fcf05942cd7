"""
Dependencias comunes de los routers.

La autenticación real queda fuera de la API: el usuario llega ya
identificado en la cabecera X-User-ID.
"""

from datetime import date
from typing import Dict, Optional, Tuple

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from config.constants import ANO_MAX, ANO_MIN
from src.database.models import User
from src.database.queries.user_queries import get_user_by_id
from src.utils.errors import AuthenticationError, ValidationError
from src.utils.logger import bind_context


async def get_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> int:
    """Extrae el ID de usuario de la cabecera."""
    if not x_user_id or not x_user_id.strip().isdigit():
        raise AuthenticationError("Usuario no autenticado")

    user_id = int(x_user_id.strip())
    bind_context(user_id=str(user_id))
    return user_id


async def load_user(db: AsyncSession, user_id: int) -> User:
    """Usuario de la petición; un ID desconocido cuenta como no autenticado."""
    user = await get_user_by_id(db, user_id)
    if not user:
        raise AuthenticationError("Usuario no autenticado")
    return user


def periodo_fechas(
    year: Optional[int] = None,
    trimestre: Optional[int] = None
) -> Tuple[Optional[date], Optional[date]]:
    """
    Rango de fechas de los filtros year/trimestre de los listados.

    Un trimestre sin año se refiere al año en curso.
    """
    from src.utils.helpers import obtener_periodo_trimestre

    if year is not None and (year < ANO_MIN or year > ANO_MAX):
        raise ValidationError(f"Año inválido: debe estar entre {ANO_MIN} y {ANO_MAX}", field="year")
    if trimestre is not None:
        if trimestre < 1 or trimestre > 4:
            raise ValidationError("Trimestre debe estar entre 1 y 4", field="trimestre")
        return obtener_periodo_trimestre(trimestre, year or date.today().year)
    if year is not None:
        return date(year, 1, 1), date(year, 12, 31)
    return None, None


def paginacion(page: int, limit: int) -> Dict[str, int]:
    return {"limit": limit, "offset": (page - 1) * limit}
