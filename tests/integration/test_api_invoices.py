"""
Tests de la API de facturas emitidas y series de ingresos.
"""

import pytest

from tests.factories import ClienteFactory, FacturaEmitidaFactory

API = "/api/v1"


@pytest.fixture
def emisor_id(api_db) -> int:
    """Usuario con datos de empresa completos para poder emitir."""
    return api_db.create_user(con_empresa=True)


@pytest.fixture
def emisor_headers(emisor_id) -> dict:
    return {"X-User-ID": str(emisor_id)}


@pytest.fixture
def cliente_id(api_db, emisor_id) -> int:
    return api_db.add(ClienteFactory(user_id=emisor_id)).id


def factura_payload(cliente_id, **kwargs):
    payload = {
        "cliente_id": cliente_id,
        "fecha_emision": "2026-02-10",
        "concepto": "Desarrollo web",
        "base_imponible": 1000,
    }
    payload.update(kwargs)
    return payload


def serie_payload(cliente_id, **kwargs):
    payload = {
        "periodicidad": "MENSUAL",
        "tipo_dia": "DIA_ESPECIFICO",
        "dia_especifico": 5,
        "fecha_inicio": "2026-01-01",
        "fecha_fin": "2026-03-31",
        "cliente_id": cliente_id,
        "concepto": "Mantenimiento web",
        "base_imponible": 500,
    }
    payload.update(kwargs)
    return payload


class TestCrearFactura:
    """Tests para POST /invoices."""

    def test_emite_con_datos_de_empresa(self, client, emisor_headers, cliente_id):
        response = client.post(f"{API}/invoices", json=factura_payload(cliente_id), headers=emisor_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["data"]["numero_factura"] == "2026-001"
        assert body["data"]["total_factura"] == 1140
        assert body["data"]["fecha_vencimiento"] == "2026-03-12"
        assert body["info"][0] == "Factura 2026-001 generada correctamente"

    def test_numeracion_consecutiva(self, client, emisor_headers, cliente_id):
        client.post(f"{API}/invoices", json=factura_payload(cliente_id), headers=emisor_headers)
        response = client.post(f"{API}/invoices", json=factura_payload(cliente_id), headers=emisor_headers)
        assert response.json()["data"]["numero_factura"] == "2026-002"

    def test_emisor_incompleto(self, client, api_db, user_id, headers):
        cliente = api_db.add(ClienteFactory(user_id=user_id))
        response = client.post(f"{API}/invoices", json=factura_payload(cliente.id), headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION"

    def test_cliente_inactivo(self, client, api_db, emisor_id, emisor_headers):
        inactivo = api_db.add(ClienteFactory(user_id=emisor_id, inactivo=True))
        response = client.post(f"{API}/invoices", json=factura_payload(inactivo.id), headers=emisor_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Cliente no encontrado o inactivo"

    def test_base_negativa(self, client, emisor_headers, cliente_id):
        response = client.post(
            f"{API}/invoices", json=factura_payload(cliente_id, base_imponible=-5), headers=emisor_headers
        )
        assert response.status_code == 422


class TestOperacionesFactura:

    def test_siguiente_numero(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        api_db.add(FacturaEmitidaFactory(
            user_id=emisor_id, cliente_id=cliente_id, numero_factura="2026-007"
        ))

        data = client.get(
            f"{API}/invoices/next-number", params={"year": 2026}, headers=emisor_headers
        ).json()["data"]

        assert data["next_number"] == "2026-008"
        assert data["year"] == 2026

    def test_listado_con_meta(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        api_db.add(FacturaEmitidaFactory(user_id=emisor_id, cliente_id=cliente_id))

        body = client.get(f"{API}/invoices", params={"year": 2026}, headers=emisor_headers).json()

        assert len(body["data"]) == 1
        assert body["meta"]["page"] == 1
        assert body["meta"]["limit"] == 50

    def test_marcar_pagada(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        factura = api_db.add(FacturaEmitidaFactory(user_id=emisor_id, cliente_id=cliente_id))

        response = client.patch(
            f"{API}/invoices/{factura.id}/mark-paid",
            json={"fecha_pago": "2026-02-01"},
            headers=emisor_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pagada"] is True
        assert data["estado"] == "PAGADA"
        assert data["fecha_pago"] == "2026-02-01"

    def test_no_borra_pagadas(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        factura = api_db.add(FacturaEmitidaFactory(
            user_id=emisor_id, cliente_id=cliente_id, pagada_trait=True
        ))
        response = client.delete(f"{API}/invoices/{factura.id}", headers=emisor_headers)
        assert response.status_code == 400

    def test_borra_pendiente(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        factura = api_db.add(FacturaEmitidaFactory(user_id=emisor_id, cliente_id=cliente_id))

        response = client.delete(f"{API}/invoices/{factura.id}", headers=emisor_headers)

        assert response.status_code == 200
        assert client.get(f"{API}/invoices/{factura.id}", headers=emisor_headers).status_code == 404

    def test_editar_recalcula_importes(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        factura = api_db.add(FacturaEmitidaFactory(user_id=emisor_id, cliente_id=cliente_id))

        data = client.patch(
            f"{API}/invoices/{factura.id}", json={"base_imponible": 2000}, headers=emisor_headers
        ).json()["data"]

        assert data["cuota_iva"] == 420
        assert data["total_factura"] == 2280

    def test_factura_sin_serie(self, client, api_db, emisor_id, emisor_headers, cliente_id):
        factura = api_db.add(FacturaEmitidaFactory(user_id=emisor_id, cliente_id=cliente_id))
        body = client.get(f"{API}/invoices/{factura.id}/programacion", headers=emisor_headers).json()
        assert body["data"] is None


class TestSeriesDeIngresos:
    """Tests para las facturas programadas."""

    def test_crear_serie(self, client, emisor_headers, cliente_id):
        response = client.post(
            f"{API}/invoices/scheduled", json=serie_payload(cliente_id), headers=emisor_headers
        )

        assert response.status_code == 201
        body = response.json()
        facturas = body["data"]["facturas"]
        assert [f["fecha_emision"] for f in facturas] == ["2026-01-05", "2026-02-05", "2026-03-05"]
        assert body["data"]["programacion"]["tipo"] == "INGRESO"
        assert body["info"] == ["Se han generado 3 facturas programadas"]

    def test_programacion_de_una_factura(self, client, emisor_headers, cliente_id):
        facturas = client.post(
            f"{API}/invoices/scheduled", json=serie_payload(cliente_id), headers=emisor_headers
        ).json()["data"]["facturas"]

        data = client.get(
            f"{API}/invoices/{facturas[0]['id']}/programacion", headers=emisor_headers
        ).json()["data"]

        assert data["total_facturas"] == 3

    def test_borrar_toda_la_serie(self, client, emisor_headers, cliente_id):
        facturas = client.post(
            f"{API}/invoices/scheduled", json=serie_payload(cliente_id), headers=emisor_headers
        ).json()["data"]["facturas"]

        response = client.delete(
            f"{API}/invoices/{facturas[0]['id']}/with-series",
            params={"delete_all": True},
            headers=emisor_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["deleted_count"] == 3

    def test_editar_toda_la_serie(self, client, emisor_headers, cliente_id):
        facturas = client.post(
            f"{API}/invoices/scheduled", json=serie_payload(cliente_id), headers=emisor_headers
        ).json()["data"]["facturas"]

        data = client.patch(
            f"{API}/invoices/{facturas[1]['id']}/with-series",
            json={"base_imponible": 1000, "apply_to_all": True},
            headers=emisor_headers,
        ).json()["data"]

        assert data["updated_count"] == 3
        assert {f["total_factura"] for f in data["invoices"]} == {1140}

    def test_borrar_por_ano(self, client, emisor_headers, cliente_id):
        client.post(f"{API}/invoices/scheduled", json=serie_payload(cliente_id), headers=emisor_headers)

        body = client.delete(f"{API}/invoices/by-year/2026", headers=emisor_headers).json()

        assert body["data"]["total_deleted"] == 3
        assert body["info"] == ["Se han eliminado 3 facturas del año 2026"]

    def test_extender_ano(self, client, emisor_headers, cliente_id):
        client.post(
            f"{API}/invoices/scheduled",
            json=serie_payload(cliente_id, fecha_fin=None, target_end_year=2026),
            headers=emisor_headers,
        )

        response = client.post(f"{API}/invoices/extend-year/2027", headers=emisor_headers)

        assert response.status_code == 200
        assert response.json()["data"]["total_created"] == 12
