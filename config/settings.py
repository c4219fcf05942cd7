"""
Configuración de miGestor

Se lee de variables de entorno o del fichero .env. Lo que no se define
toma el valor del perfil del entorno (config.environments) y, en último
término, el valor por defecto declarado aquí.

Uso:
    from config.settings import settings

    settings.DEFAULT_TIPO_IVA
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from config.environments import Environment, get_profile


class Settings(BaseSettings):
    """Parámetros del backend."""

    # Entorno
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    DEBUG: bool = False

    VERSION: str = "1.0.0"
    API_VERSION: str = "v1"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Base de datos
    DATABASE_URL: str = "sqlite+aiosqlite:///migestor.db"
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800  # segundos

    # Facturación
    DEFAULT_INVOICE_SERIE: str = "A"
    DEFAULT_DIAS_VENCIMIENTO: int = 30
    DEFAULT_TIPO_IVA: float = 21.0
    DEFAULT_TIPO_IRPF: float = 7.0
    MAX_SCHEDULED_RECORDS: int = 120

    # Documentos
    DOCUMENT_EXPIRY_WINDOW_DAYS: int = 30
    DOCUMENT_REMINDER_DAYS: int = 5

    # Feature flags
    FEATURE_RECURRING_INVOICES: bool = True
    FEATURE_AUDIT_LOG: bool = True
    FEATURE_POSTGRES_ADVISORY_LOCKS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json | console
    LOG_DIR: str = "logs"
    LOG_MAX_SIZE_MB: int = 50
    LOG_BACKUP_COUNT: int = 10

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str, info) -> str:
        """En producción solo PostgreSQL."""
        if info.data.get("ENVIRONMENT") == Environment.PRODUCTION and "sqlite" in v.lower():
            raise ValueError("SQLite no está permitido en producción. Use PostgreSQL.")
        return v

    @field_validator("MAX_SCHEDULED_RECORDS", "DOCUMENT_REMINDER_DAYS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Debe ser mayor que 0")
        return v

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        for name, value in get_profile(self.ENVIRONMENT).defaults().items():
            if name not in self.model_fields_set:
                setattr(self, name, value)
        return self

    def get_async_database_url(self) -> str:
        """URL con driver async (asyncpg / aiosqlite)."""
        url = self.DATABASE_URL
        for plain, driver in (("postgresql://", "postgresql+asyncpg://"), ("sqlite:///", "sqlite+aiosqlite:///")):
            if url.startswith(plain):
                return driver + url[len(plain):]
        return url

    def get_sync_database_url(self) -> str:
        """URL sin driver async, para las migraciones offline de alembic."""
        return self.DATABASE_URL.replace("+asyncpg", "").replace("+aiosqlite", "")

    def get_cors_origins(self) -> list:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
