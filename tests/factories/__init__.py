"""
Factories para Tests

Factories de factory-boy para crear objetos de prueba de forma limpia y
reutilizable. Construyen instancias sin sesión; `persist` las guarda.

Uso:
    from tests.factories import UserFactory, ClienteFactory, persist

    user = await persist(db, UserFactory())
    cliente = await persist(db, ClienteFactory(user_id=user.id, principal=True))

    payload = ClientePayloadFactory()
"""

from tests.factories.base import persist, generate_nif, generate_cif, VALID_IBAN
from tests.factories.user import UserFactory
from tests.factories.client import (
    ClienteFactory,
    DatosFacturacionFactory,
    ClientePayloadFactory,
    BillingPayloadFactory,
)
from tests.factories.invoice import (
    FacturaEmitidaFactory,
    GastoFactory,
    TemplateFactory,
    ExpensePayloadFactory,
)
from tests.factories.document import DocumentoFactory, DocumentPayloadFactory

__all__ = [
    # Helpers
    "persist",
    "generate_nif",
    "generate_cif",
    "VALID_IBAN",

    # User factories
    "UserFactory",

    # Client factories
    "ClienteFactory",
    "DatosFacturacionFactory",
    "ClientePayloadFactory",
    "BillingPayloadFactory",

    # Invoice factories
    "FacturaEmitidaFactory",
    "GastoFactory",
    "TemplateFactory",
    "ExpensePayloadFactory",

    # Document factories
    "DocumentoFactory",
    "DocumentPayloadFactory",
]
