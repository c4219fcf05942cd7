"""
Utilidades comunes de miGestor.

Re-exporta lo que usan servicios y API: logging y auditoría, la jerarquía
de errores, los validadores fiscales y el redondeo de importes.
"""

from src.utils.logger import (
    get_logger,
    setup_logging,
    bind_context,
    clear_context,
    new_correlation_id,
    get_correlation_id,
    correlation_scope,
    audit_logger,
    log_exception,
)

from src.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    GestorError,
    ValidationError,
    NotFoundError,
    ConflictError,
    DatabaseError,
    AuthenticationError,
    BusinessError,
    handle_errors,
    error_registry,
)

from src.utils.validators import (
    ValidationResult,
    get_validation_service,
    validar_cif_o_nif,
    validar_iban,
    validar_email,
)

from src.utils.tax_calculations import round_to_cents, calcular_importes

__all__ = [
    "get_logger",
    "setup_logging",
    "bind_context",
    "clear_context",
    "new_correlation_id",
    "get_correlation_id",
    "correlation_scope",
    "audit_logger",
    "log_exception",
    "ErrorCategory",
    "ErrorSeverity",
    "GestorError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "DatabaseError",
    "AuthenticationError",
    "BusinessError",
    "handle_errors",
    "error_registry",
    "ValidationResult",
    "get_validation_service",
    "validar_cif_o_nif",
    "validar_iban",
    "validar_email",
]
