"""
Tests de la API de gastos.
"""

from tests.factories import ExpensePayloadFactory, GastoFactory

API = "/api/v1"


def serie_gastos_payload(**kwargs):
    payload = {
        "periodicidad": "TRIMESTRAL",
        "tipo_dia": "ULTIMO_DIA",
        "fecha_inicio": "2026-01-01",
        "target_end_year": 2026,
        "concepto": "Asesoría fiscal",
        "proveedor_nombre": "Asesores del Sur SL",
        "proveedor_cif": "B12345678",
        "base_imponible": 150,
    }
    payload.update(kwargs)
    return payload


class TestCrearGasto:
    """Tests para POST /expenses."""

    def test_calcula_importes(self, client, headers):
        response = client.post(f"{API}/expenses", json=ExpensePayloadFactory(), headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["data"]["cuota_iva"] == 10.5
        assert body["data"]["total_factura"] == 60.5
        assert body["data"]["nivel_riesgo"] == "BAJO"
        assert body["info"] == ["IVA deducible: 10.50€"]
        assert "alerts" not in body

    def test_alquiler_es_de_independencia(self, client, headers):
        response = client.post(
            f"{API}/expenses",
            json=ExpensePayloadFactory(concepto="Alquiler local", base_imponible=800, tipo_irpf=19),
            headers=headers,
        )

        body = response.json()
        assert body["data"]["es_gasto_independencia"] is True
        assert body["alerts"][0]["type"] == "success"
        assert body["info"][1] == "IRPF recuperable: 152.00€"

    def test_comida_en_fin_de_semana_es_riesgo_alto(self, client, headers):
        response = client.post(
            f"{API}/expenses",
            json=ExpensePayloadFactory(
                concepto="Comida con cliente", categoria="Manutención", fecha_emision="2026-02-14"
            ),
            headers=headers,
        )

        body = response.json()
        assert body["data"]["nivel_riesgo"] == "ALTO"
        assert body["alerts"][-1]["type"] == "warning"

    def test_proveedor_invalido(self, client, headers):
        response = client.post(
            f"{API}/expenses", json=ExpensePayloadFactory(proveedor_cif="123"), headers=headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "NIF/CIF del proveedor inválido"


class TestOperacionesGasto:

    def test_listado_filtrado_por_trimestre(self, client, api_db, user_id, headers):
        api_db.add(GastoFactory(user_id=user_id))
        body = client.get(
            f"{API}/expenses", params={"year": 2026, "trimestre": 2}, headers=headers
        ).json()
        assert body["data"] == []
        assert body["meta"]["page"] == 1

    def test_marcar_pagado(self, client, api_db, user_id, headers):
        gasto = api_db.add(GastoFactory(user_id=user_id))

        body = client.patch(f"{API}/expenses/{gasto.id}/mark-paid", headers=headers).json()

        assert body["data"]["pagado"] is True
        assert body["data"]["fecha_pago"] is not None
        assert body["info"] == ["Gasto marcado como pagado"]

    def test_editar_recalcula(self, client, api_db, user_id, headers):
        gasto = api_db.add(GastoFactory(user_id=user_id))

        data = client.patch(
            f"{API}/expenses/{gasto.id}", json={"base_imponible": 200}, headers=headers
        ).json()["data"]

        assert data["cuota_iva"] == 42
        assert data["total_factura"] == 242

    def test_borrar(self, client, api_db, user_id, headers):
        gasto = api_db.add(GastoFactory(user_id=user_id, concepto="Papel"))

        body = client.delete(f"{API}/expenses/{gasto.id}", headers=headers).json()

        assert body["info"] == ['Gasto "Papel" eliminado']
        assert client.get(f"{API}/expenses/{gasto.id}", headers=headers).status_code == 404

    def test_comprobacion_de_independencia(self, client, headers):
        body = client.get(f"{API}/expenses/independence-check/2026/2", headers=headers).json()
        assert body["data"]["cumple_requisitos"] is False
        assert len(body["data"]["alertas_generadas"]) == 3

    def test_mes_invalido(self, client, headers):
        response = client.get(f"{API}/expenses/independence-check/2026/13", headers=headers)
        assert response.status_code == 400


class TestSeriesDeGastos:

    def test_crear_serie(self, client, headers):
        response = client.post(f"{API}/expenses/scheduled", json=serie_gastos_payload(), headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert len(body["data"]["gastos"]) == 4
        assert body["info"][0] == "Se han generado 4 gastos programados"
        assert body["info"][1] == "IVA deducible total: 126.00€"

    def test_borrar_serie_completa(self, client, headers):
        gastos = client.post(
            f"{API}/expenses/scheduled", json=serie_gastos_payload(), headers=headers
        ).json()["data"]["gastos"]

        body = client.delete(
            f"{API}/expenses/{gastos[0]['id']}/with-series",
            params={"delete_all": True},
            headers=headers,
        ).json()

        assert body["data"]["deleted_count"] == 4
        assert body["info"] == ["Se han eliminado 4 gastos de la serie"]

    def test_borrar_por_ano(self, client, headers):
        client.post(f"{API}/expenses/scheduled", json=serie_gastos_payload(), headers=headers)

        body = client.delete(f"{API}/expenses/by-year/2026", headers=headers).json()

        assert body["data"]["total_deleted"] == 4
