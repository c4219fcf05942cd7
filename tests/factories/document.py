"""
Factory para Documento
"""

import hashlib

from factory import LazyAttribute, Sequence

from config.constants import CategoriaDocumento, EstadoDocumento
from src.database.models import Documento
from tests.factories.base import BaseFactory, DictFactory


class DocumentoFactory(BaseFactory):
    """Metadatos de un documento. Requiere user_id."""

    class Meta:
        model = Documento

    user_id = None
    nombre = Sequence(lambda n: f"Contrato {n}")
    categoria = CategoriaDocumento.CONTRATO.value
    archivo_nombre_original = LazyAttribute(lambda o: f"{o.nombre.lower().replace(' ', '_')}.pdf")
    archivo_tipo_mime = "application/pdf"
    archivo_tamanio_bytes = 20480
    archivo_hash_sha256 = LazyAttribute(lambda o: hashlib.sha256(o.nombre.encode()).hexdigest())
    estado = EstadoDocumento.ACTIVO.value
    visible = True
    etiquetas = LazyAttribute(lambda o: ["Contrato"])


class DocumentPayloadFactory(DictFactory):
    """Cuerpo de POST /documents."""

    nombre = Sequence(lambda n: f"Factura proveedor {n}")
    categoria = CategoriaDocumento.FACTURA_GASTO.value
    archivo_nombre_original = "factura.pdf"
    archivo_tipo_mime = "application/pdf"
    archivo_tamanio_bytes = 1024
    archivo_hash_sha256 = Sequence(lambda n: hashlib.sha256(f"doc-{n}".encode()).hexdigest())
