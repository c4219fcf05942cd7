"""
Factories para Cliente y DatosFacturacion
"""

import factory
from factory import Faker, Sequence

from src.database.models import Cliente, DatosFacturacion
from tests.factories.base import BaseFactory, DictFactory, FAKER_LOCALE, VALID_IBAN, generate_cif, generate_nif


class ClienteFactory(BaseFactory):
    """
    Factory para crear clientes. Requiere user_id.

    Ejemplos:
        cliente = ClienteFactory(user_id=user.id)
        principal = ClienteFactory(user_id=user.id, principal=True)
    """

    class Meta:
        model = Cliente

    user_id = None
    nombre = Faker("company", locale=FAKER_LOCALE)
    cif = Sequence(lambda n: generate_cif(1000000 + n))
    ciudad = Faker("city", locale=FAKER_LOCALE)
    pais = "España"
    email = Faker("company_email", locale=FAKER_LOCALE)
    es_cliente_principal = False
    activo = True

    class Params:
        principal = factory.Trait(es_cliente_principal=True)
        inactivo = factory.Trait(activo=False)


class DatosFacturacionFactory(BaseFactory):
    """Perfil de facturación válido. Requiere user_id."""

    class Meta:
        model = DatosFacturacion

    user_id = None
    razon_social = Faker("company", locale=FAKER_LOCALE)
    nif = Sequence(lambda n: generate_nif(30000000 + n))
    direccion = Faker("street_address", locale=FAKER_LOCALE)
    ciudad = "Valencia"
    codigo_postal = "46001"
    iban = VALID_IBAN
    activo = False
    es_principal = False

    class Params:
        activa = factory.Trait(activo=True, es_principal=True)


class ClientePayloadFactory(DictFactory):
    """Cuerpo de POST /clients."""

    nombre = Faker("company", locale=FAKER_LOCALE)
    cif = Sequence(lambda n: generate_cif(5000000 + n))
    ciudad = Faker("city", locale=FAKER_LOCALE)


class BillingPayloadFactory(DictFactory):
    """Cuerpo de POST /billing/configs."""

    razon_social = Faker("company", locale=FAKER_LOCALE)
    nif = Sequence(lambda n: generate_nif(40000000 + n))
    direccion = Faker("street_address", locale=FAKER_LOCALE)
    ciudad = "Sevilla"
    iban = VALID_IBAN
