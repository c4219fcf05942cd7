"""
Health checks

/health          estado de la base de datos, versión y errores contados
/health/live     el proceso responde
/health/ready    la base de datos acepta consultas
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Response
from sqlalchemy import text

from config.settings import settings
from src.api.schemas import HealthResponse
from src.utils.errors import error_registry
from src.utils.logger import get_logger

logger = get_logger(__name__)

_STARTED_AT = time.monotonic()


def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"


@dataclass
class ComponentHealth:
    """Resultado de comprobar una dependencia."""
    status: str  # up | down
    latency_ms: float
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_up(self) -> bool:
        return self.status == "up"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status, "latency_ms": round(self.latency_ms, 2)}
        if self.message:
            data["message"] = self.message
        data.update(self.details)
        return data


async def check_database() -> ComponentHealth:
    """SELECT 1 contra la base de datos configurada."""
    from src.database.connection import get_async_db

    start = time.monotonic()
    try:
        async with get_async_db() as session:
            await session.execute(text("SELECT 1"))
            dialect = session.bind.dialect.name if session.bind else None
    except Exception as e:
        logger.error(f"Base de datos no disponible: {e}")
        return ComponentHealth("down", (time.monotonic() - start) * 1000, message=str(e))

    details = {"dialect": dialect} if dialect else {}
    return ComponentHealth("up", (time.monotonic() - start) * 1000, details=details)


health_router = APIRouter(prefix="/health", tags=["health"])


@health_router.get(
    "",
    summary="Estado general",
    response_model=HealthResponse,
    responses={503: {"description": "La base de datos no responde"}},
)
async def health_check(response: Response):
    database = await check_database()
    if not database.is_up:
        response.status_code = 503

    return {
        "status": "healthy" if database.is_up else "unhealthy",
        "timestamp": _now(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT.value,
        "uptime_seconds": round(time.monotonic() - _STARTED_AT, 2),
        "components": {"database": database.to_dict()},
        "features": {
            "recurring_invoices": settings.FEATURE_RECURRING_INVOICES,
            "audit_log": settings.FEATURE_AUDIT_LOG,
        },
        "errors": error_registry.get_counts(),
    }


@health_router.get("/live", summary="Liveness")
async def liveness_check():
    """No toca la base de datos."""
    return {"status": "alive", "timestamp": _now()}


@health_router.get(
    "/ready",
    summary="Readiness",
    responses={503: {"description": "Aplicación no lista"}},
)
async def readiness_check(response: Response):
    database = await check_database()
    if database.is_up:
        return {"status": "ready", "timestamp": _now()}

    response.status_code = 503
    return {"status": "not_ready", "timestamp": _now(), "reason": database.message}
