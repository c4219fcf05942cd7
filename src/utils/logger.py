"""
Logging estructurado de miGestor

Salida por consola (coloreada en desarrollo, JSON en producción) y tres
ficheros rotados en LOG_DIR:

    app.log     todo desde DEBUG
    errors.log  solo ERROR y CRITICAL
    audit.log   trazas de auditoría fiscal (loggers audit.*)

Cada línea lleva el correlation_id y el user_id de la petición en curso.
"""

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

_CONSOLE_PATTERN = '%(asctime)s %(levelname)-8s [%(cid)s|u=%(uid)s] %(name)s: %(message)s'

_configured = False


class ConsoleFormatter(logging.Formatter):
    """Formato legible con el nivel coloreado."""

    PALETTE = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[1;31m',
    }

    def format(self, record: logging.LogRecord) -> str:
        # Copia: los handlers de fichero comparten el mismo record
        shown = logging.makeLogRecord(record.__dict__)
        shown.cid = (correlation_id_var.get() or '--------')[:8]
        shown.uid = user_id_var.get() or '-'
        color = self.PALETTE.get(record.levelname)
        if color:
            shown.levelname = f"{color}{record.levelname}\033[0m"
        return super().format(shown)


class JSONFormatter(logging.Formatter):
    """Una línea JSON por registro."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        cid = correlation_id_var.get()
        if cid:
            payload["correlation_id"] = cid
        uid = user_id_var.get()
        if uid:
            payload["user_id"] = uid

        if record.exc_info and record.exc_info[0]:
            payload["exc"] = {
                "type": record.exc_info[0].__name__,
                "detail": str(record.exc_info[1]),
            }

        extra = getattr(record, 'extra_data', None)
        if extra:
            payload["data"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


def _rotating(path: Path, level: int, max_bytes: int, backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(
    environment: str = "development",
    log_level: str = "INFO",
    log_dir: str = "logs",
    log_format: str = "console",
    max_size_mb: int = 50,
    backup_count: int = 10,
) -> None:
    """
    Instala los handlers en el root logger. Solo la primera llamada tiene efecto.

    Args:
        environment: development, staging o production
        log_level: nivel mínimo para la consola
        log_dir: carpeta de los ficheros de log
        log_format: "json" o "console" para stdout
        max_size_mb: tamaño de rotación por fichero
        backup_count: ficheros rotados que se conservan
    """
    global _configured
    if _configured:
        return

    folder = Path(log_dir)
    folder.mkdir(parents=True, exist_ok=True)
    max_bytes = max_size_mb * 1024 * 1024

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    if log_format == "json" or environment == "production":
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(ConsoleFormatter(_CONSOLE_PATTERN, datefmt='%H:%M:%S'))

    # Los registros de auditoría se guardan más tiempo que el resto
    audit = _rotating(folder / "audit.log", logging.INFO, max_bytes * 2, backup_count * 3)
    audit.addFilter(lambda record: record.name.startswith('audit.'))

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers = [
        console,
        _rotating(folder / "app.log", logging.DEBUG, max_bytes, backup_count),
        _rotating(folder / "errors.log", logging.ERROR, max_bytes, backup_count),
        audit,
    ]

    # Con DATABASE_ECHO SQLAlchemy ya escribe sus propias sentencias
    logging.getLogger("sqlalchemy.engine").propagate = False

    _configured = True
    root.info(f"Logging listo ({environment}, {log_level}, {log_format}) en {folder}")


def configure_from_settings() -> None:
    """Aplica setup_logging con los valores LOG_* de config.settings."""
    from config.settings import settings

    setup_logging(
        environment=settings.ENVIRONMENT.value,
        log_level=settings.LOG_LEVEL,
        log_dir=settings.LOG_DIR,
        log_format=settings.LOG_FORMAT,
        max_size_mb=settings.LOG_MAX_SIZE_MB,
        backup_count=settings.LOG_BACKUP_COUNT,
    )


def get_logger(name: str) -> logging.Logger:
    """Logger del módulo, configurando el sistema la primera vez."""
    if not _configured:
        try:
            configure_from_settings()
        except Exception:
            # Sin settings válidos se loguea igualmente con los valores por defecto
            setup_logging()
    return logging.getLogger(name)


# ============================================================================
# CONTEXTO DE PETICIÓN
# ============================================================================

def bind_context(correlation_id: str = None, user_id: Any = None) -> None:
    """Fija correlation_id y/o user_id para los logs siguientes."""
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if user_id is not None:
        user_id_var.set(str(user_id))


def clear_context() -> None:
    correlation_id_var.set(None)
    user_id_var.set(None)


def new_correlation_id() -> str:
    """Genera un correlation_id nuevo, lo fija y lo devuelve."""
    cid = uuid.uuid4().hex
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


@contextmanager
def correlation_scope(correlation_id: str = None) -> Iterator[str]:
    """
    Asegura un correlation_id durante el bloque y restaura el anterior al salir.

    Si ya hay uno activo y no se pasa otro, se reutiliza.
    """
    cid = correlation_id or correlation_id_var.get() or uuid.uuid4().hex
    token = correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)


# ============================================================================
# AUDITORÍA
# ============================================================================

class AuditLogger:
    """
    Trazas de auditoría de operaciones con trascendencia fiscal.

    Escribe en el logger audit.<name>, que solo acaba en audit.log y en
    consola. Se desactiva con FEATURE_AUDIT_LOG=false.
    """

    def __init__(self, name: str = "gestor"):
        self.logger = logging.getLogger(f"audit.{name}")

    @property
    def enabled(self) -> bool:
        from config.settings import settings
        return settings.FEATURE_AUDIT_LOG

    def log(
        self,
        action: str,
        entity_type: str = None,
        entity_id: Any = None,
        user_id: Any = None,
        details: Dict[str, Any] = None,
        old_values: Dict[str, Any] = None,
        new_values: Dict[str, Any] = None,
        status: str = "success"
    ) -> None:
        """
        Registra una acción sobre una entidad.

        Args:
            action: create, update, delete, mark_paid, backfill...
            entity_type: factura, gasto, cliente, plantilla...
            entity_id: ID de la entidad
            user_id: usuario; si falta se toma del contexto de la petición
            details: datos libres de la operación
            old_values: valores previos en una modificación
            new_values: valores nuevos
            status: success, failure o error
        """
        if not self.enabled:
            return

        record: Dict[str, Any] = {"action": action, "status": status}
        owner = user_id if user_id is not None else user_id_var.get()
        if owner is not None:
            record["user_id"] = str(owner)
        if entity_type:
            record["entity_type"] = entity_type
        if entity_id is not None:
            record["entity_id"] = str(entity_id)
        for key, value in (("details", details), ("old_values", old_values), ("new_values", new_values)):
            if value:
                record[key] = value

        target = f"{entity_type}#{entity_id}" if entity_id is not None else (entity_type or "-")
        self.logger.info(f"{action} {target}", extra={"extra_data": record})

    def create(self, entity_type: str, entity_id: Any, new_values: Dict[str, Any] = None) -> None:
        self.log("create", entity_type, entity_id, new_values=new_values)

    def update(
        self,
        entity_type: str,
        entity_id: Any,
        old_values: Dict[str, Any] = None,
        new_values: Dict[str, Any] = None
    ) -> None:
        self.log("update", entity_type, entity_id, old_values=old_values, new_values=new_values)

    def delete(self, entity_type: str, entity_id: Any, details: Dict[str, Any] = None) -> None:
        self.log("delete", entity_type, entity_id, details=details)

    def bulk(self, action: str, entity_type: str, count: int, details: Dict[str, Any] = None) -> None:
        """Operación sobre varios registros: series, borrado por año, backfill."""
        self.log(action, entity_type, details={"count": count, **(details or {})})


audit_logger = AuditLogger()


def log_exception(logger: logging.Logger, message: str, exc: Exception) -> None:
    """ERROR con traceback y el tipo de excepción en los datos estructurados."""
    logger.error(
        f"{message}: {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={"extra_data": {"exception_type": type(exc).__name__}},
    )
