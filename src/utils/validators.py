"""
Validadores de Entrada

Módulo centralizado para validación de datos fiscales y de contacto.

Características:
- NIF, NIE y CIF con dígito de control
- IBAN español con módulo 97
- Importes y tipos impositivos
- Mensajes de error en español listos para la API
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from config.constants import (
    TIPOS_IVA,
    TIPO_IRPF_MAX,
    IMPORTE_MAX,
    NOMBRE_MIN_LENGTH,
    NOMBRE_MAX_LENGTH,
    TELEFONO_MIN_LENGTH,
    TELEFONO_MAX_LENGTH,
    EMAIL_MAX_LENGTH,
    CODIGO_POSTAL_LENGTH,
)
from src.utils.logger import get_logger

logger = get_logger(__name__)

LETRAS_NIF = "TRWAGMYFPDXBNJZSQVHLCKE"
PREFIJOS_NIE = {"X": "0", "Y": "1", "Z": "2"}

NIF_REGEX = re.compile(r'^[0-9]{8}[A-Z]$')
NIE_REGEX = re.compile(r'^[XYZ][0-9]{7}[A-Z]$')
CIF_REGEX = re.compile(r'^[ABCDEFGHJNPQRSUVW][0-9]{7}[0-9A-J]$')
IBAN_ES_REGEX = re.compile(r'^ES\d{22}$')
EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

MSG_CIF_NIF_CLIENTE = "CIF/NIF inválido. Formato CIF: B12345678, Formato NIF: 12345678Z"
MSG_NIF_FACTURACION = "NIF/CIF inválido. Formato correcto: 12345678A (NIF) o B12345678 (CIF)"
MSG_IBAN = "IBAN inválido. Debe ser un IBAN español válido (ES + 22 dígitos)"


# ============================================================================
# TIPOS DE RESULTADO
# ============================================================================

@dataclass
class ValidationResult:
    """
    Resultado de una validación.

    Attributes:
        valid: True si la validación pasó
        error: Mensaje de error (vacío si es válido)
        sanitized: Valor normalizado (opcional)
    """
    valid: bool
    error: str = ""
    sanitized: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


# ============================================================================
# NORMALIZACIÓN
# ============================================================================

def normalizar_identificador(valor: Optional[str]) -> str:
    """Quita espacios y guiones y pasa a mayúsculas (NIF, CIF, IBAN)."""
    if not valor:
        return ""
    return re.sub(r'[\s-]', '', valor).upper()


# ============================================================================
# VALIDADORES BASE
# ============================================================================

class BaseValidator:
    """Clase base para validadores."""

    @staticmethod
    def _ok(value: str = None) -> ValidationResult:
        """Retorna resultado válido."""
        return ValidationResult(valid=True, sanitized=value)

    @staticmethod
    def _error(message: str) -> ValidationResult:
        """Retorna resultado con error."""
        return ValidationResult(valid=False, error=message)


# ============================================================================
# VALIDADOR DE IDENTIFICACIÓN FISCAL
# ============================================================================

class TaxIdValidator(BaseValidator):
    """
    Validador de identificadores fiscales españoles.

    - NIF: 8 dígitos + letra de control (módulo 23)
    - NIE: X/Y/Z + 7 dígitos + letra (X=0, Y=1, Z=2)
    - CIF: letra de tipo de entidad + 7 dígitos + control
    """

    @staticmethod
    def is_nif(nif: str) -> bool:
        if not NIF_REGEX.match(nif):
            return False
        return LETRAS_NIF[int(nif[:8]) % 23] == nif[8]

    @staticmethod
    def is_nie(nie: str) -> bool:
        if not NIE_REGEX.match(nie):
            return False
        numero = PREFIJOS_NIE[nie[0]] + nie[1:8]
        return LETRAS_NIF[int(numero) % 23] == nie[8]

    @staticmethod
    def is_cif(cif: str) -> bool:
        return bool(CIF_REGEX.match(cif))

    @classmethod
    def validate_nif_cif(cls, valor: str, message: str = MSG_CIF_NIF_CLIENTE) -> ValidationResult:
        """
        Valida un identificador que puede ser NIF, NIE o CIF.

        Args:
            valor: Identificador tal como lo introduce el usuario
            message: Mensaje de error a devolver si no es válido

        Returns:
            ValidationResult con el identificador normalizado
        """
        sanitized = normalizar_identificador(valor)
        if not sanitized:
            return cls._error(message)

        if cls.is_nif(sanitized) or cls.is_nie(sanitized) or cls.is_cif(sanitized):
            return cls._ok(sanitized)

        return cls._error(message)


# ============================================================================
# VALIDADOR BANCARIO
# ============================================================================

class BankValidator(BaseValidator):
    """Validador de cuentas bancarias."""

    @staticmethod
    def iban_checksum_ok(iban: str) -> bool:
        """Comprueba el módulo 97 de un IBAN ya normalizado."""
        reordenado = iban[4:] + iban[:4]
        numerico = "".join(
            str(ord(c) - 55) if c.isalpha() else c for c in reordenado
        )
        resto = 0
        for digito in numerico:
            resto = (resto * 10 + int(digito)) % 97
        return resto == 1

    @classmethod
    def validate_iban(cls, iban: str) -> ValidationResult:
        """
        Valida un IBAN español (ES + 22 dígitos).

        Args:
            iban: IBAN con o sin espacios

        Returns:
            ValidationResult con el IBAN normalizado
        """
        sanitized = normalizar_identificador(iban)

        if not IBAN_ES_REGEX.match(sanitized):
            return cls._error(MSG_IBAN)

        if not cls.iban_checksum_ok(sanitized):
            return cls._error(MSG_IBAN)

        return cls._ok(sanitized)


# ============================================================================
# VALIDADOR DE CONTACTO
# ============================================================================

class ContactValidator(BaseValidator):
    """
    Validador para datos de contacto.

    Todos los campos son opcionales: vacío es válido.
    """

    @classmethod
    def validate_telefono(
        cls,
        telefono: str,
        min_length: int = TELEFONO_MIN_LENGTH,
        max_length: int = TELEFONO_MAX_LENGTH
    ) -> ValidationResult:
        if not telefono:
            return cls._ok("")

        digits_only = re.sub(r'\D', '', telefono)

        if len(digits_only) < min_length:
            return cls._error(f"Mínimo {min_length} dígitos")

        if len(digits_only) > max_length:
            return cls._error(f"Máximo {max_length} dígitos")

        sanitized = re.sub(r'[^\d+\-() ]', '', telefono.strip())

        return cls._ok(sanitized)

    @classmethod
    def validate_email(
        cls,
        email: str,
        max_length: int = EMAIL_MAX_LENGTH
    ) -> ValidationResult:
        if not email:
            return cls._ok("")

        sanitized = email.strip().lower()

        if len(sanitized) > max_length:
            return cls._error(f"Máximo {max_length} caracteres")

        if not EMAIL_REGEX.match(sanitized):
            return cls._error("Formato de email inválido")

        return cls._ok(sanitized)

    @classmethod
    def validate_codigo_postal(cls, codigo_postal: str) -> ValidationResult:
        if not codigo_postal:
            return cls._ok("")

        sanitized = codigo_postal.strip()
        if not sanitized.isdigit() or len(sanitized) != CODIGO_POSTAL_LENGTH:
            return cls._error(f"El código postal debe tener {CODIGO_POSTAL_LENGTH} dígitos")

        return cls._ok(sanitized)

    @classmethod
    def validate_nombre(
        cls,
        nombre: str,
        min_length: int = NOMBRE_MIN_LENGTH,
        max_length: int = NOMBRE_MAX_LENGTH
    ) -> ValidationResult:
        """Nombre o razón social (obligatorio)."""
        sanitized = re.sub(r'\s+', ' ', (nombre or "").strip())

        if len(sanitized) < min_length:
            return cls._error(f"Mínimo {min_length} caracteres")

        if len(sanitized) > max_length:
            return cls._error(f"Máximo {max_length} caracteres")

        return cls._ok(sanitized)


# ============================================================================
# VALIDADOR DE IMPORTES
# ============================================================================

class AmountValidator(BaseValidator):
    """Validador de importes y tipos impositivos."""

    @classmethod
    def validate_base_imponible(cls, base: float, max_value: float = IMPORTE_MAX) -> ValidationResult:
        if base is None:
            return cls._error("La base imponible es obligatoria")
        if base < 0:
            return cls._error("La base imponible no puede ser negativa")
        if base > max_value:
            return cls._error("La base imponible excede el máximo permitido")
        return cls._ok(str(base))

    @classmethod
    def validate_tipo_iva(cls, tipo_iva: float) -> ValidationResult:
        if tipo_iva not in TIPOS_IVA:
            permitidos = ", ".join(f"{t}%" for t in TIPOS_IVA)
            return cls._error(f"Tipo de IVA no válido. Permitidos: {permitidos}")
        return cls._ok(str(tipo_iva))

    @classmethod
    def validate_tipo_irpf(cls, tipo_irpf: float) -> ValidationResult:
        if tipo_irpf < 0 or tipo_irpf > TIPO_IRPF_MAX:
            return cls._error(f"El tipo de IRPF debe estar entre 0 y {TIPO_IRPF_MAX}")
        return cls._ok(str(tipo_irpf))


# ============================================================================
# VALIDADOR DE DATOS DE FACTURACIÓN
# ============================================================================

class BillingDataValidator(BaseValidator):
    """
    Comprueba que los datos del emisor permiten emitir facturas.

    El orden de las comprobaciones determina el mensaje devuelto.
    """

    @classmethod
    def validate(
        cls,
        razon_social: Optional[str],
        nif: Optional[str],
        direccion: Optional[str],
        ciudad: Optional[str],
        iban: Optional[str],
    ) -> ValidationResult:
        if not razon_social or not razon_social.strip():
            return cls._error("El nombre o razón social es obligatorio")

        if not nif or not nif.strip():
            return cls._error("El NIF/CIF es obligatorio")

        nif_result = TaxIdValidator.validate_nif_cif(nif, MSG_NIF_FACTURACION)
        if not nif_result:
            return nif_result

        if not direccion or not direccion.strip():
            return cls._error("La dirección es obligatoria para generar facturas")

        if not ciudad or not ciudad.strip():
            return cls._error("La ciudad es obligatoria para generar facturas")

        if not iban or not iban.strip():
            return cls._error("El IBAN es obligatorio para generar facturas")

        return BankValidator.validate_iban(iban)


# ============================================================================
# SERVICIO UNIFICADO
# ============================================================================

class ValidationService:
    """Punto de entrada único para las validaciones."""

    def __init__(self):
        self.tax_id = TaxIdValidator
        self.bank = BankValidator
        self.contact = ContactValidator
        self.amount = AmountValidator
        self.billing = BillingDataValidator

    def validate_nif_cif(self, valor: str) -> ValidationResult:
        return self.tax_id.validate_nif_cif(valor)

    def validate_iban(self, iban: str) -> ValidationResult:
        return self.bank.validate_iban(iban)

    def validate_email(self, email: str) -> ValidationResult:
        return self.contact.validate_email(email)

    def validate_importe(self, base: float) -> ValidationResult:
        return self.amount.validate_base_imponible(base)


@lru_cache(maxsize=1)
def get_validation_service() -> ValidationService:
    """Obtiene la instancia compartida del servicio de validación."""
    return ValidationService()


# ============================================================================
# FUNCIONES DE CONVENIENCIA
# ============================================================================

def validar_nif(nif: str) -> bool:
    """NIF de persona física (8 dígitos + letra)."""
    return TaxIdValidator.is_nif(normalizar_identificador(nif))


def validar_nie(nie: str) -> bool:
    """NIE de extranjero (X/Y/Z + 7 dígitos + letra)."""
    return TaxIdValidator.is_nie(normalizar_identificador(nie))


def validar_cif(cif: str) -> bool:
    """CIF de persona jurídica."""
    return TaxIdValidator.is_cif(normalizar_identificador(cif))


def validar_cif_o_nif(identificador: str) -> bool:
    """Acepta CIF, NIF o NIE."""
    return bool(TaxIdValidator.validate_nif_cif(identificador))


def validar_iban(iban: str) -> bool:
    """IBAN español con dígitos de control correctos."""
    return bool(BankValidator.validate_iban(iban))


def validar_email(email: str) -> Tuple[bool, str]:
    """
    Valida email (función de conveniencia).

    Returns:
        Tupla (es_válido, mensaje_error)
    """
    result = ContactValidator.validate_email(email)
    return result.valid, result.error
