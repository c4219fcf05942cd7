"""
Perfiles por entorno.

Cada perfil aporta valores por defecto que Settings aplica solo a los
campos que no vienen de variables de entorno ni del .env.
"""

from enum import Enum
from typing import Any, Dict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class BaseProfile:
    DEBUG = False
    LOG_LEVEL = "INFO"
    LOG_FORMAT = "json"
    DATABASE_POOL_SIZE = 5
    DATABASE_MAX_OVERFLOW = 10

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        return {name: getattr(cls, name) for name in dir(cls) if name.isupper()}


class DevelopmentProfile(BaseProfile):
    DEBUG = True
    LOG_LEVEL = "DEBUG"
    LOG_FORMAT = "console"


class StagingProfile(BaseProfile):
    DATABASE_POOL_SIZE = 15
    DATABASE_MAX_OVERFLOW = 15


class ProductionProfile(BaseProfile):
    """
    Pool dimensionado para el cierre de trimestre, cuando muchos usuarios
    calculan sus modelos a la vez.
    """
    LOG_LEVEL = "WARNING"
    DATABASE_POOL_SIZE = 30
    DATABASE_MAX_OVERFLOW = 20


PROFILES = {
    Environment.DEVELOPMENT: DevelopmentProfile,
    Environment.STAGING: StagingProfile,
    Environment.PRODUCTION: ProductionProfile,
}


def get_profile(env: Environment) -> type:
    return PROFILES.get(env, DevelopmentProfile)
