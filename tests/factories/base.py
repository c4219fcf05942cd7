"""
Base Factory Configuration

Configuración base para las factories. Las sesiones de la aplicación son
async, así que las factories solo construyen instancias y `persist` las
guarda con la sesión del test.
"""

import random

import factory
from sqlalchemy.ext.asyncio import AsyncSession

from src.utils.validators import LETRAS_NIF

FAKER_LOCALE = "es_ES"


class BaseFactory(factory.Factory):
    """
    Factory base para modelos SQLAlchemy.

    Uso:
        user = await persist(db, UserFactory())
        cliente = await persist(db, ClienteFactory(user_id=user.id))
    """

    class Meta:
        abstract = True


class DictFactory(factory.DictFactory):
    """
    Factory base para crear diccionarios de payload.

    Útil para cuerpos de peticiones a la API.
    """

    class Meta:
        abstract = True


async def persist(db: AsyncSession, *instances):
    """Guarda las instancias (flush) y devuelve la primera o la lista."""
    db.add_all(instances)
    await db.flush()
    for instance in instances:
        await db.refresh(instance)
    return instances[0] if len(instances) == 1 else list(instances)


# ============================================================================
# HELPER FUNCTIONS PARA DATOS ESPAÑOLES
# ============================================================================

def generate_nif(numero: int = None) -> str:
    """Genera un NIF con letra de control correcta."""
    numero = numero if numero is not None else random.randint(10000000, 99999999)
    return f"{numero:08d}{LETRAS_NIF[numero % 23]}"


def generate_cif(n: int) -> str:
    """Genera un CIF de sociedad limitada con formato válido."""
    return f"B{n % 10000000:07d}{n % 10}"


VALID_IBAN = "ES9121000418450200051332"
