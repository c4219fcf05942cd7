"""
Constantes del sistema

Define valores que no cambian durante la ejecución.
"""

from enum import Enum


class EstadoFactura(str, Enum):
    """Estados posibles de una factura emitida"""
    PENDIENTE = "PENDIENTE"
    PAGADA = "PAGADA"
    VENCIDA = "VENCIDA"
    CANCELADA = "CANCELADA"


class EstadoGasto(str, Enum):
    """Estados de revisión de un gasto"""
    PENDIENTE = "PENDIENTE"
    VALIDADO = "VALIDADO"
    RECHAZADO = "RECHAZADO"


class NivelRiesgo(str, Enum):
    """Nivel de riesgo fiscal de un gasto o de la situación TRADE"""
    BAJO = "BAJO"
    MEDIO = "MEDIO"
    ALTO = "ALTO"
    CRITICO = "CRÍTICO"


class Frecuencia(str, Enum):
    """Frecuencia de las plantillas de facturas recurrentes"""
    MENSUAL = "MENSUAL"
    TRIMESTRAL = "TRIMESTRAL"
    ANUAL = "ANUAL"
    PERSONALIZADO = "PERSONALIZADO"


class TipoDiaGeneracion(str, Enum):
    """Día del mes en que se genera una factura recurrente"""
    DIA_ESPECIFICO = "DIA_ESPECIFICO"
    PRIMER_DIA_NATURAL = "PRIMER_DIA_NATURAL"
    PRIMER_DIA_LECTIVO = "PRIMER_DIA_LECTIVO"
    ULTIMO_DIA_NATURAL = "ULTIMO_DIA_NATURAL"
    ULTIMO_DIA_LECTIVO = "ULTIMO_DIA_LECTIVO"


class Periodicidad(str, Enum):
    """Periodicidad de una programación (serie de ingresos o gastos)"""
    MENSUAL = "MENSUAL"
    TRIMESTRAL = "TRIMESTRAL"
    SEMESTRAL = "SEMESTRAL"
    ANUAL = "ANUAL"


class TipoDia(str, Enum):
    """Día del periodo usado por una programación"""
    ULTIMO_DIA_LABORAL = "ULTIMO_DIA_LABORAL"
    PRIMER_DIA_LABORAL = "PRIMER_DIA_LABORAL"
    ULTIMO_DIA = "ULTIMO_DIA"
    PRIMER_DIA = "PRIMER_DIA"
    DIA_ESPECIFICO = "DIA_ESPECIFICO"


class TipoProgramacion(str, Enum):
    """Tipo de registros que genera una programación"""
    INGRESO = "INGRESO"
    GASTO = "GASTO"


class CategoriaDocumento(str, Enum):
    """Categorías de documentos"""
    FACTURA_GASTO = "FACTURA_GASTO"
    FACTURA_INGRESO = "FACTURA_INGRESO"
    CONTRATO = "CONTRATO"
    OTRO = "OTRO"


class EstadoDocumento(str, Enum):
    """Estados de un documento"""
    ACTIVO = "ACTIVO"
    ARCHIVADO = "ARCHIVADO"
    ELIMINADO = "ELIMINADO"


class AccionModelo(str, Enum):
    """Resultado de un modelo tributario"""
    A_INGRESAR = "A INGRESAR"
    A_COMPENSAR = "A COMPENSAR"
    A_DEVOLVER = "A DEVOLVER"
    SIN_ACTIVIDAD = "SIN ACTIVIDAD"
    INFORMATIVO = "INFORMATIVO"


class TipoPerceptor(str, Enum):
    """Tipo de perceptor en el Modelo 111"""
    TRABAJADOR = "TRABAJADOR"
    PROFESIONAL = "PROFESIONAL"
    PREMIO = "PREMIO"


# ============================================================================
# VALIDACIONES
# ============================================================================

# Tipos impositivos admitidos
TIPOS_IVA = (0, 4, 10, 21)
TIPO_IRPF_MAX = 47

# Redondeo y tolerancias
TOLERANCIA_CUADRE = 0.02

# Importes
IMPORTE_MAX = 9_999_999_999

# Nombres y textos
NOMBRE_MIN_LENGTH = 2
NOMBRE_MAX_LENGTH = 255

# Contacto
TELEFONO_MIN_LENGTH = 9
TELEFONO_MAX_LENGTH = 15
EMAIL_MAX_LENGTH = 254
CODIGO_POSTAL_LENGTH = 5

# Programaciones
MAX_REGISTROS_PROGRAMACION = 120

# Años admitidos en operaciones masivas
ANO_MIN = 2020
ANO_MAX = 2100

# Flujo de caja diario: como mucho dos años por consulta
FLUJO_CAJA_MAX_DIAS = 731

# ============================================================================
# DATOS FISCALES
# ============================================================================

# Festivos nacionales de fecha fija (mes, día)
FESTIVOS_NACIONALES = (
    (1, 1),    # Año Nuevo
    (1, 6),    # Reyes
    (5, 1),    # Día del Trabajo
    (8, 15),   # Asunción
    (10, 12),  # Fiesta Nacional
    (11, 1),   # Todos los Santos
    (12, 6),   # Constitución
    (12, 8),   # Inmaculada
    (12, 25),  # Navidad
)

GASTOS_INDEPENDENCIA_REQUERIDOS = ("Alquiler local", "Electricidad", "Internet")

# ============================================================================
# FORMATOS
# ============================================================================

DATE_FORMAT = "%d/%m/%Y"
SQL_DATE_FORMAT = "%Y-%m-%d"
