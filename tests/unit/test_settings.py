"""
Tests de configuración y perfiles de entorno.
"""

import pytest
from pydantic import ValidationError

from config.environments import Environment
from config.settings import Settings


class TestPerfiles:
    """Tests para la aplicación del perfil de entorno."""

    def test_produccion_rellena_pool(self):
        config = Settings(ENVIRONMENT="production", DATABASE_URL="postgresql://u:p@db/migestor")
        assert config.ENVIRONMENT == Environment.PRODUCTION
        assert config.DATABASE_POOL_SIZE == 30
        assert config.DATABASE_MAX_OVERFLOW == 20

    def test_valor_explicito_gana(self):
        config = Settings(
            ENVIRONMENT="production",
            DATABASE_URL="postgresql://u:p@db/migestor",
            DATABASE_POOL_SIZE=7,
        )
        assert config.DATABASE_POOL_SIZE == 7

    def test_desarrollo_activa_debug(self):
        assert Settings(ENVIRONMENT="development").DEBUG is True

    def test_sqlite_prohibido_en_produccion(self):
        with pytest.raises(ValidationError):
            Settings(ENVIRONMENT="production", DATABASE_URL="sqlite:///migestor.db")

    def test_registros_programados_positivos(self):
        with pytest.raises(ValidationError):
            Settings(MAX_SCHEDULED_RECORDS=0)


class TestURLs:

    def test_url_async(self):
        assert Settings(DATABASE_URL="postgresql://u:p@db/x").get_async_database_url() == (
            "postgresql+asyncpg://u:p@db/x"
        )
        assert Settings(DATABASE_URL="sqlite:///data/x.db").get_async_database_url() == (
            "sqlite+aiosqlite:///data/x.db"
        )

    def test_url_sync(self):
        config = Settings(DATABASE_URL="postgresql+asyncpg://u:p@db/x")
        assert config.get_sync_database_url() == "postgresql://u:p@db/x"

    def test_cors(self):
        config = Settings(CORS_ORIGINS="http://a.test, http://b.test,")
        assert config.get_cors_origins() == ["http://a.test", "http://b.test"]
