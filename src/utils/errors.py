"""
Sistema Centralizado de Manejo de Errores

Proporciona:
- Jerarquía de errores categorizados (GestorError y derivados)
- Mensajes en español pensados para mostrarse al usuario
- Correlation IDs para soporte
- Mapeo de categoría a código HTTP para la API
- Decorador handle_errors y contadores en memoria por categoría
"""

import asyncio
import logging
import uuid
from collections import Counter, deque
from dataclasses import asdict, dataclass
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.utils.logger import get_logger, get_correlation_id, correlation_scope

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DATABASE = "DATABASE"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    BUSINESS = "BUSINESS"
    INTERNAL = "INTERNAL"


class ErrorSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Texto genérico cuando el mensaje interno no debe llegar al usuario
USER_MESSAGES = {
    ErrorCategory.VALIDATION: "Los datos enviados no son válidos.",
    ErrorCategory.NOT_FOUND: "El recurso solicitado no existe.",
    ErrorCategory.CONFLICT: "La operación entra en conflicto con datos existentes.",
    ErrorCategory.DATABASE: "No se pudo guardar la información. Inténtalo de nuevo en unos minutos.",
    ErrorCategory.AUTHENTICATION: "No se pudo identificar al usuario.",
    ErrorCategory.AUTHORIZATION: "No tienes permiso para realizar esta acción.",
    ErrorCategory.BUSINESS: "No se puede completar esta operación.",
    ErrorCategory.INTERNAL: "Se ha producido un error inesperado.",
}

HTTP_STATUS = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.BUSINESS: 400,
    ErrorCategory.AUTHENTICATION: 401,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.DATABASE: 500,
    ErrorCategory.INTERNAL: 500,
}


@dataclass
class ErrorContext:
    """Dónde ocurrió el error: operación, entidad y usuario."""
    user_id: Optional[str] = None
    operation: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


# ============================================================================
# JERARQUÍA
# ============================================================================

class GestorError(Exception):
    """
    Excepción base de miGestor.

    Cada subclase fija su categoría y severidad como atributos de clase.
    Si `expose_message` es True, `message` es lo que recibe el cliente de
    la API (en español y sin detalles internos); si no, se usa el texto
    genérico de USER_MESSAGES y el detalle queda en el log.
    """

    category: ErrorCategory = ErrorCategory.INTERNAL
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    expose_message: bool = False

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        user_message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category
        if severity is not None:
            self.severity = severity
        if user_message is None:
            user_message = message if self.expose_message else USER_MESSAGES[self.category]
        self.user_message = user_message
        self.context = context or ErrorContext()
        self.original_error = original_error
        self.data = data
        self.correlation_id = get_correlation_id() or uuid.uuid4().hex

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.category, 500)

    def get_user_message(self, include_reference: bool = True) -> str:
        """Mensaje para el cliente; los errores graves llevan la referencia para soporte."""
        if include_reference and self.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            return f"{self.user_message} (Referencia: {self.correlation_id[:8]})"
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        """Representación para los logs estructurados."""
        return {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "context": asdict(self.context),
            "original_error": repr(self.original_error) if self.original_error else None,
        }


class ValidationError(GestorError):
    """Datos de entrada inválidos (400)."""
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW
    expose_message = True

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        self.field = field
        super().__init__(message, **kwargs)


class BusinessError(GestorError):
    """Regla de negocio incumplida (400)."""
    category = ErrorCategory.BUSINESS
    severity = ErrorSeverity.LOW
    expose_message = True


class NotFoundError(GestorError):
    """No existe o pertenece a otro usuario (404)."""
    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW
    expose_message = True

    def __init__(self, message: str, entity_type: Optional[str] = None, **kwargs):
        self.entity_type = entity_type
        super().__init__(message, **kwargs)


class ConflictError(GestorError):
    """Duplicado o violación de unicidad (409)."""
    category = ErrorCategory.CONFLICT
    severity = ErrorSeverity.LOW
    expose_message = True


class AuthenticationError(GestorError):
    """Falta X-User-ID o no corresponde a ningún usuario (401)."""
    category = ErrorCategory.AUTHENTICATION
    expose_message = True


class AuthorizationError(GestorError):
    category = ErrorCategory.AUTHORIZATION
    severity = ErrorSeverity.LOW
    expose_message = True


class DatabaseError(GestorError):
    """Fallo de persistencia (500). El detalle nunca llega al cliente."""
    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.HIGH


# ============================================================================
# DECORADOR PARA SERVICIOS
# ============================================================================

def _as_gestor_error(exc: Exception, operation: str) -> GestorError:
    if isinstance(exc, GestorError):
        return exc
    if isinstance(exc, SQLAlchemyError):
        return wrap_database_error(exc, operation=operation)
    return GestorError(
        message=f"Fallo no controlado en {operation}: {exc}",
        category=ErrorCategory.INTERNAL,
        severity=ErrorSeverity.HIGH,
        original_error=exc,
        context=ErrorContext(operation=operation),
    )


def handle_errors(
    log_level: int = logging.ERROR,
    reraise: bool = True,
    default_return: Any = None
) -> Callable:
    """
    Normaliza los errores de una función de servicio (sync o async).

    Un GestorError se registra como WARNING y sigue su camino. Cualquier
    otra excepción se convierte (DatabaseError/ConflictError si es de
    SQLAlchemy, INTERNAL en otro caso), se registra con traceback a
    `log_level` y se relanza encadenada a la original.

    Con reraise=False no se propaga nada y se devuelve `default_return`.
    Todos los errores acaban contados en `error_registry`.
    """
    def decorator(func: Callable) -> Callable:
        operation = func.__name__

        def _failed(exc: Exception) -> Any:
            error = _as_gestor_error(exc, operation)
            expected = error is exc
            logger.log(
                logging.WARNING if expected else log_level,
                f"[{error.correlation_id[:8]}] {operation} -> {error.category.value}: {error.message}",
                extra={"extra_data": {**error.to_dict(), "operation": operation}},
                exc_info=None if expected else exc,
            )
            error_registry.record(error)
            if not reraise:
                return default_return
            if expected:
                raise error
            raise error from exc

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                with correlation_scope():
                    try:
                        return await func(*args, **kwargs)
                    except Exception as exc:
                        return _failed(exc)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            with correlation_scope():
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    return _failed(exc)
        return sync_wrapper

    return decorator


def wrap_database_error(
    error: Exception,
    operation: Optional[str] = None,
    entity_type: Optional[str] = None
) -> GestorError:
    """SQLAlchemy -> GestorError: unicidad como ConflictError, lo demás DatabaseError."""
    context = ErrorContext(operation=operation, entity_type=entity_type)
    if isinstance(error, IntegrityError):
        return ConflictError(
            message="El registro entra en conflicto con otro ya existente",
            original_error=error,
            context=context,
        )
    return DatabaseError(
        message=f"Error de base de datos: {error}",
        original_error=error,
        context=context,
    )


# ============================================================================
# CONTADORES
# ============================================================================

class ErrorRegistry:
    """
    Contadores en memoria de los errores del proceso.

    /health expone los conteos por `CATEGORIA:SEVERIDAD`.
    """

    def __init__(self, max_recent: int = 100):
        self._counts: Counter = Counter()
        self._recent: deque = deque(maxlen=max_recent)

    def record(self, error: GestorError) -> None:
        self._counts[f"{error.category.value}:{error.severity.value}"] += 1
        self._recent.append({
            "correlation_id": error.correlation_id,
            "category": error.category.value,
            "message": error.message[:100],
        })

    def get_counts(self) -> Dict[str, int]:
        return dict(self._counts)

    def get_recent(self, limit: int = 10) -> list:
        """Últimos errores, del más antiguo al más reciente."""
        return list(self._recent)[-limit:]

    def reset(self) -> None:
        self._counts.clear()
        self._recent.clear()


error_registry = ErrorRegistry()


__all__ = [
    "ErrorCategory",
    "ErrorSeverity",
    "HTTP_STATUS",
    "USER_MESSAGES",
    "ErrorContext",
    "GestorError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "DatabaseError",
    "AuthenticationError",
    "AuthorizationError",
    "BusinessError",
    "handle_errors",
    "wrap_database_error",
    "ErrorRegistry",
    "error_registry",
]
