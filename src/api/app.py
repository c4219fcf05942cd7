"""
FastAPI Application

Aplicación principal de la API REST.
Incluye todos los routers, middleware y manejadores de error.
"""

import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config.settings import settings
from src.api.schemas import ErrorResponse
from src.utils.errors import ErrorCategory, GestorError, error_registry
from src.utils.logger import (
    bind_context,
    clear_context,
    get_correlation_id,
    get_logger,
    new_correlation_id,
)

logger = get_logger(__name__)

API_PREFIX = "/api/v1"

ERROR_RESPONSES = {
    code: {"model": ErrorResponse, "description": description}
    for code, description in (
        (400, "Datos inválidos o regla de negocio incumplida"),
        (401, "Falta X-User-ID o el usuario no existe"),
        (404, "No encontrado"),
        (409, "Duplicado"),
    )
}


HTTP_CATEGORIES = {
    400: ErrorCategory.VALIDATION.value,
    401: ErrorCategory.AUTHENTICATION.value,
    403: ErrorCategory.AUTHORIZATION.value,
    404: ErrorCategory.NOT_FOUND.value,
    405: ErrorCategory.VALIDATION.value,
    409: ErrorCategory.CONFLICT.value,
}


def _correlation_id(request: Request) -> str:
    """
    ID de la petición. Las excepciones no capturadas llegan después de que
    el middleware limpie el contexto, por eso se guarda también en
    request.state.
    """
    return (
        getattr(request.state, "correlation_id", None)
        or get_correlation_id()
        or new_correlation_id()
    )


def _error_body(error: str, message: str, **extra) -> dict:
    return {
        "success": False,
        "error": error,
        "message": message,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        **extra,
    }


def create_app() -> FastAPI:
    """
    Crea y configura la aplicación FastAPI.

    Returns:
        Aplicación FastAPI
    """
    app = FastAPI(
        title="miGestor API",
        description="""
## API REST de miGestor

Facturación y fiscalidad para autónomos en España.

### Características
- **Facturas y gastos**: emisión, numeración y series programadas
- **Recurrentes**: plantillas con generación diaria y backfill
- **Fiscal**: modelos 303, 130, 115, 111, 180 y 390, calendario fiscal

### Identificación
Usa la cabecera `X-User-ID` para identificar al usuario.
        """,
        version=settings.VERSION,
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url="/redoc" if not settings.is_production() else None,
        openapi_tags=[
            {"name": "health", "description": "Health checks y estado del sistema"},
            {"name": "settings", "description": "Datos de empresa y preferencias"},
            {"name": "clients", "description": "Gestión de clientes"},
            {"name": "billing", "description": "Perfiles de facturación"},
            {"name": "invoices", "description": "Facturas emitidas"},
            {"name": "expenses", "description": "Gastos"},
            {"name": "programaciones", "description": "Series de ingresos y gastos"},
            {"name": "recurring-templates", "description": "Facturas recurrentes"},
            {"name": "documents", "description": "Metadatos de documentos"},
            {"name": "tax", "description": "Modelos AEAT y calendario fiscal"},
            {"name": "dashboard", "description": "Panel, gráficos y flujo de caja"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # MIDDLEWARE
    # =========================================================================

    @app.middleware("http")
    async def add_request_context(request: Request, call_next):
        """Propaga X-Correlation-ID y anota la duración de cada petición."""
        correlation_id = request.headers.get("X-Correlation-ID") or new_correlation_id()
        bind_context(correlation_id=correlation_id)
        request.state.correlation_id = correlation_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Correlation-ID"] = correlation_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
            logger.info(
                f"{request.method} {request.url.path} {response.status_code}",
                extra={"extra_data": {"duration_ms": round(elapsed_ms, 2)}},
            )
            return response
        finally:
            clear_context()

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.exception_handler(GestorError)
    async def gestor_exception_handler(request: Request, exc: GestorError):
        """Errores de dominio con su código HTTP."""
        error_registry.record(exc)
        if exc.status_code >= 500:
            logger.error(f"{exc.category.value}: {exc.message}", exc_info=exc.original_error)
        else:
            logger.warning(f"{request.method} {request.url.path}: {exc.message}")

        content = _error_body(
            exc.category.value,
            exc.get_user_message(),
            category=exc.category.value,
            correlation_id=exc.correlation_id,
        )
        if exc.data:
            content["data"] = exc.data
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(
                "HTTP_ERROR",
                str(exc.detail),
                category=HTTP_CATEGORIES.get(exc.status_code, "HTTP_ERROR"),
                correlation_id=_correlation_id(request),
                status_code=exc.status_code,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Errores de validación de pydantic."""
        return JSONResponse(
            status_code=422,
            content=_error_body(
                ErrorCategory.VALIDATION.value,
                "Los datos enviados no son válidos.",
                category=ErrorCategory.VALIDATION.value,
                correlation_id=_correlation_id(request),
                details=[
                    {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
                    for e in exc.errors()
                ],
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Excepciones no capturadas. El detalle solo va al log; el cliente
        recibe un mensaje fijo y el correlation_id para soporte.
        """
        correlation_id = _correlation_id(request)
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={"extra_data": {"correlation_id": correlation_id}},
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                ErrorCategory.INTERNAL.value,
                "Error interno",
                category=ErrorCategory.INTERNAL.value,
                correlation_id=correlation_id,
            ),
            headers={"X-Correlation-ID": correlation_id},
        )

    # =========================================================================
    # ROUTERS
    # =========================================================================

    from src.api.health import health_router
    from src.api.settings import settings_router
    from src.api.clients import clients_router
    from src.api.billing_configs import billing_router
    from src.api.invoices import invoices_router
    from src.api.expenses import expenses_router
    from src.api.programaciones import programaciones_router
    from src.api.recurring_templates import templates_router
    from src.api.documents import documents_router
    from src.api.tax import tax_router
    from src.api.dashboard import cashflow_router, dashboard_router

    app.include_router(health_router)
    for router in (
        settings_router,
        clients_router,
        billing_router,
        invoices_router,
        expenses_router,
        programaciones_router,
        templates_router,
        documents_router,
        tax_router,
        dashboard_router,
        cashflow_router,
    ):
        app.include_router(router, prefix=API_PREFIX, responses=ERROR_RESPONSES)

    # =========================================================================
    # ROOT ENDPOINT
    # =========================================================================

    @app.get("/")
    async def root():
        """Endpoint raíz."""
        return {
            "name": "miGestor API",
            "version": settings.VERSION,
            "status": "running",
            "docs": "/docs" if not settings.is_production() else None
        }

    @app.get(API_PREFIX)
    async def api_info():
        """Información de la API."""
        return {
            "version": settings.API_VERSION,
            "endpoints": {
                "health": "/health",
                "settings": f"{API_PREFIX}/settings",
                "clients": f"{API_PREFIX}/clients",
                "billing": f"{API_PREFIX}/billing/configs",
                "invoices": f"{API_PREFIX}/invoices",
                "expenses": f"{API_PREFIX}/expenses",
                "programaciones": f"{API_PREFIX}/programaciones",
                "recurring_templates": f"{API_PREFIX}/recurring-templates",
                "documents": f"{API_PREFIX}/documents",
                "tax": f"{API_PREFIX}/tax",
                "dashboard": f"{API_PREFIX}/dashboard",
                "cashflow": f"{API_PREFIX}/cashflow",
            }
        }

    # =========================================================================
    # STARTUP/SHUTDOWN
    # =========================================================================

    @app.on_event("startup")
    async def startup():
        """Inicialización al arrancar."""
        logger.info("API iniciando...")
        from src.database import connection
        if connection.async_engine is None:
            connection.init_async_db()
        logger.info("API lista")

    @app.on_event("shutdown")
    async def shutdown():
        """Limpieza al cerrar."""
        logger.info("API cerrando...")
        from src.database.connection import close_async_db
        await close_async_db()
        logger.info("API cerrada")

    return app


# Crear instancia de la aplicación
app = create_app()


def run_api(host: str = "0.0.0.0", port: int = 8000):
    """
    Ejecuta el servidor de la API.

    Args:
        host: Host para escuchar
        port: Puerto para escuchar
    """
    import uvicorn

    from src.utils.logger import configure_from_settings
    configure_from_settings()

    logger.info(f"Iniciando API en http://{host}:{port}")
    uvicorn.run(
        "src.api.app:app",
        host=host,
        port=port,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run_api()
