"""
Tests de la API de documentos.
"""

from datetime import date, timedelta

from tests.factories import DocumentPayloadFactory, DocumentoFactory

API = "/api/v1"


class TestCrearDocumento:
    """Tests para POST /documents."""

    def test_etiquetas_automaticas(self, client, headers):
        payload = DocumentPayloadFactory(etiquetas=["Proveedor", "Facturas"])

        response = client.post(f"{API}/documents", json=payload, headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["data"]["etiquetas"] == ["Facturas", "Gasto", "Proveedor"]
        assert body["info"] == ["Documento subido correctamente"]
        assert "warnings" not in body

    def test_hash_se_guarda_en_minusculas(self, client, headers):
        payload = DocumentPayloadFactory()
        payload["archivo_hash_sha256"] = payload["archivo_hash_sha256"].upper()

        data = client.post(f"{API}/documents", json=payload, headers=headers).json()["data"]

        assert data["archivo_hash_sha256"] == payload["archivo_hash_sha256"].lower()

    def test_duplicado(self, client, headers):
        payload = DocumentPayloadFactory()
        original = client.post(f"{API}/documents", json=payload, headers=headers).json()["data"]

        response = client.post(f"{API}/documents", json=payload, headers=headers)

        assert response.status_code == 400
        assert response.json()["data"] == {"duplicate_id": original["id"]}

    def test_hash_mal_formado(self, client, headers):
        response = client.post(
            f"{API}/documents", json=DocumentPayloadFactory(archivo_hash_sha256="abc"), headers=headers
        )
        assert response.status_code == 422

    def test_aviso_de_vencimiento(self, client, headers):
        vence = date.today() + timedelta(days=10)
        payload = DocumentPayloadFactory(categoria="CONTRATO", fecha_vencimiento=vence.isoformat())

        body = client.post(f"{API}/documents", json=payload, headers=headers).json()

        assert body["warnings"] == ["Este documento vence en 10 días. Se te recordará automáticamente."]
        assert body["data"]["fecha_recordatorio"] == (vence - timedelta(days=5)).isoformat()

    def test_ya_vencido(self, client, headers):
        vencido = (date.today() - timedelta(days=1)).isoformat()
        body = client.post(
            f"{API}/documents",
            json=DocumentPayloadFactory(fecha_vencimiento=vencido),
            headers=headers,
        ).json()
        assert body["warnings"] == ["¡Atención! Este documento ya está vencido."]


class TestOperacionesDocumento:

    def test_listado_y_estadisticas(self, client, api_db, user_id, headers):
        api_db.add(
            DocumentoFactory(user_id=user_id),
            DocumentoFactory(user_id=user_id, archivo_tamanio_bytes=1000),
        )

        listado = client.get(f"{API}/documents", headers=headers).json()
        assert len(listado["data"]) == 2
        assert listado["meta"] == {"page": 1, "limit": 50}

        stats = client.get(f"{API}/documents/stats", headers=headers).json()["data"]
        assert stats["total"] == 2
        assert stats["por_categoria"] == {"CONTRATO": 2}
        assert stats["tamanio_total_bytes"] == 21480

    def test_archivar(self, client, api_db, user_id, headers):
        documento = api_db.add(DocumentoFactory(user_id=user_id))

        body = client.patch(f"{API}/documents/{documento.id}/archive", headers=headers).json()

        assert body["data"]["estado"] == "ARCHIVADO"
        assert body["info"] == ["Documento archivado correctamente"]

    def test_borrado_logico(self, client, api_db, user_id, headers):
        documento = api_db.add(DocumentoFactory(user_id=user_id))

        body = client.delete(f"{API}/documents/{documento.id}", headers=headers).json()

        assert body["info"] == ["Documento eliminado correctamente"]
        assert client.get(f"{API}/documents", headers=headers).json()["data"] == []
        data = client.get(f"{API}/documents/{documento.id}", headers=headers).json()["data"]
        assert data["estado"] == "ELIMINADO"
        assert data["visible"] is False

    def test_borrado_permanente(self, client, api_db, user_id, headers):
        documento = api_db.add(DocumentoFactory(user_id=user_id))

        client.delete(f"{API}/documents/{documento.id}", params={"permanent": True}, headers=headers)

        assert client.get(f"{API}/documents/{documento.id}", headers=headers).status_code == 404

    def test_editar_categoria_recalcula_etiquetas(self, client, api_db, user_id, headers):
        documento = api_db.add(DocumentoFactory(user_id=user_id))

        data = client.patch(
            f"{API}/documents/{documento.id}",
            json={"categoria": "FACTURA_INGRESO"},
            headers=headers,
        ).json()["data"]

        assert data["etiquetas"][:2] == ["Facturas", "Ingreso"]
