"""
Factory para User

Autónomos con datos fiscales realistas.
"""

import factory
from factory import Faker, Sequence

from src.database.models import User
from tests.factories.base import BaseFactory, FAKER_LOCALE, VALID_IBAN, generate_nif


class UserFactory(BaseFactory):
    """
    Factory para crear usuarios.

    Ejemplos:
        user = UserFactory()
        trade = UserFactory(trade=True)
        con_empresa = UserFactory(con_empresa=True)
    """

    class Meta:
        model = User

    email = Sequence(lambda n: f"autonomo{n}@example.com")
    nombre_completo = Faker("name", locale=FAKER_LOCALE)
    nif = Sequence(lambda n: generate_nif(20000000 + n))

    es_trade = False
    tipo_iva_predeterminado = 21.0
    tipo_irpf_actual = 7.0
    tiene_tarifa_plana_ss = False
    base_cotizacion = None

    mostrar_modelo_303 = True
    mostrar_modelo_130 = True
    mostrar_modelo_131 = False
    mostrar_modelo_100 = True
    mostrar_modelo_115 = False
    mostrar_modelo_180 = False
    mostrar_modelo_390 = True
    mostrar_modelo_111 = False

    class Params:
        trade = factory.Trait(es_trade=True)

        con_empresa = factory.Trait(
            razon_social=Faker("company", locale=FAKER_LOCALE),
            direccion=Faker("street_address", locale=FAKER_LOCALE),
            ciudad="Madrid",
            codigo_postal="28001",
            iban=VALID_IBAN,
        )

        con_alquiler = factory.Trait(
            tiene_local_alquilado=True,
            mostrar_modelo_115=True,
            mostrar_modelo_180=True,
        )
