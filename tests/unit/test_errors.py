"""
Tests para el sistema de manejo de errores.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from src.utils.errors import (
    AuthenticationError,
    BusinessError,
    ConflictError,
    DatabaseError,
    ErrorCategory,
    GestorError,
    NotFoundError,
    ValidationError,
    error_registry,
    handle_errors,
    wrap_database_error,
)


@pytest.fixture(autouse=True)
def reset_registry():
    error_registry.reset()
    yield
    error_registry.reset()


class TestExceptions:
    """Verifica categorías y códigos HTTP de cada excepción."""

    def test_validation_error(self):
        error = ValidationError("El IBAN es obligatorio", field="iban", data={"campo": "iban"})
        assert error.status_code == 400
        assert error.field == "iban"
        assert error.data == {"campo": "iban"}
        assert error.get_user_message() == "El IBAN es obligatorio"

    def test_not_found(self):
        error = NotFoundError("Cliente no encontrado", entity_type="cliente")
        assert error.status_code == 404
        assert error.entity_type == "cliente"

    def test_conflict(self):
        assert ConflictError("Número duplicado").status_code == 409

    def test_authentication(self):
        assert AuthenticationError("Usuario no autenticado").status_code == 401

    def test_business(self):
        error = BusinessError("La plantilla está pausada")
        assert error.status_code == 400
        assert error.category == ErrorCategory.BUSINESS

    def test_database_incluye_referencia(self):
        error = DatabaseError("fallo de conexión")
        assert error.status_code == 500
        assert "Referencia:" in error.get_user_message()
        assert "fallo de conexión" not in error.get_user_message()

    def test_to_dict(self):
        error = NotFoundError("Factura no encontrada")
        data = error.to_dict()
        assert data["category"] == "NOT_FOUND"
        assert data["correlation_id"] == error.correlation_id


class TestWrapDatabaseError:

    def test_integrity_es_conflicto(self):
        error = wrap_database_error(IntegrityError("INSERT", {}, Exception("UNIQUE")))
        assert isinstance(error, ConflictError)

    def test_otros_son_database(self):
        error = wrap_database_error(OperationalError("SELECT", {}, Exception("locked")))
        assert isinstance(error, DatabaseError)


class TestHandleErrors:
    """Tests para el decorador handle_errors."""

    async def test_relanza_gestor_error(self):
        @handle_errors()
        async def operacion():
            raise NotFoundError("Plantilla no encontrada")

        with pytest.raises(NotFoundError):
            await operacion()
        assert error_registry.get_counts() == {"NOT_FOUND:LOW": 1}

    async def test_envuelve_excepciones_inesperadas(self):
        @handle_errors()
        async def operacion():
            raise ValueError("boom")

        with pytest.raises(GestorError) as exc_info:
            await operacion()
        assert exc_info.value.category == ErrorCategory.INTERNAL
        assert isinstance(exc_info.value.__cause__, ValueError)

    async def test_sin_relanzar_devuelve_default(self):
        @handle_errors(reraise=False, default_return=[])
        async def operacion():
            raise ValueError("boom")

        assert await operacion() == []

    def test_funciones_sync(self):
        @handle_errors()
        def operacion():
            raise IntegrityError("INSERT", {}, Exception("UNIQUE"))

        with pytest.raises(ConflictError):
            operacion()

    def test_resultado_normal(self):
        @handle_errors()
        def operacion():
            return 42

        assert operacion() == 42

    def test_registro_de_recientes(self):
        @handle_errors(reraise=False)
        def operacion():
            raise BusinessError("Regla incumplida")

        operacion()
        assert error_registry.get_recent()[0]["message"] == "Regla incumplida"
