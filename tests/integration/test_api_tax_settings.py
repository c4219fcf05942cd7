"""
Tests de la API de modelos fiscales y configuración.
"""

from datetime import date

from tests.factories import ClienteFactory, FacturaEmitidaFactory, GastoFactory, VALID_IBAN

API = "/api/v1"


class TestTaxAPI:
    """Tests para /tax."""

    def _actividad(self, api_db, user_id):
        cliente = api_db.add(ClienteFactory(user_id=user_id))
        api_db.add(
            FacturaEmitidaFactory(user_id=user_id, cliente_id=cliente.id),
            GastoFactory(user_id=user_id),
        )
        return cliente

    def test_modelo_303(self, client, api_db, user_id, headers):
        self._actividad(api_db, user_id)

        data = client.get(f"{API}/tax/modelo-303/2026/1", headers=headers).json()["data"]

        assert data["iva_repercutido"] == 210
        assert data["iva_soportado"] == 21
        assert data["resultado_iva"] == 189
        assert data["accion"] == "A INGRESAR"

    def test_modelo_130(self, client, api_db, user_id, headers):
        self._actividad(api_db, user_id)
        data = client.get(f"{API}/tax/modelo-130/2026/1", headers=headers).json()["data"]
        assert data["resultado"] == 110

    def test_modelos_de_retenciones(self, client, api_db, user_id, headers):
        api_db.add(GastoFactory(user_id=user_id, alquiler=True, fecha_emision=date(2026, 2, 1)))

        modelo_115 = client.get(f"{API}/tax/modelo-115/2026/1", headers=headers).json()["data"]
        modelo_111 = client.get(f"{API}/tax/modelo-111/2026/1", headers=headers).json()["data"]
        modelo_180 = client.get(f"{API}/tax/modelo-180/2026", headers=headers).json()["data"]

        assert modelo_115["casilla_03"] == 152
        assert modelo_111["accion"] == "SIN ACTIVIDAD"
        assert modelo_180["cuadra_con_115s"]

    def test_modelo_390(self, client, api_db, user_id, headers):
        self._actividad(api_db, user_id)
        data = client.get(f"{API}/tax/modelo-390/2026", headers=headers).json()["data"]
        assert data["total_iva_repercutido"] == 210

    def test_trimestre_invalido(self, client, headers):
        response = client.get(f"{API}/tax/modelo-303/2026/5", headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Trimestre debe estar entre 1 y 4"

    def test_resumen_anual(self, client, api_db, user_id, headers):
        self._actividad(api_db, user_id)

        body = client.get(f"{API}/tax/summary/2026", headers=headers).json()

        assert body["data"]["ingresos"] == 1000
        assert body["data"]["rendimiento_neto"] == 900
        assert "warnings" not in body

    def test_resumen_avisa_al_trade_sin_dependencia(self, client, api_db):
        user_id = api_db.create_user(trade=True)
        uno = api_db.add(ClienteFactory(user_id=user_id))
        otro = api_db.add(ClienteFactory(user_id=user_id))
        api_db.add(
            FacturaEmitidaFactory(user_id=user_id, cliente_id=uno.id),
            FacturaEmitidaFactory(user_id=user_id, cliente_id=otro.id),
        )

        body = client.get(f"{API}/tax/summary/2026", headers={"X-User-ID": str(user_id)}).json()

        assert body["data"]["trade"]["porcentaje_dependencia"] == 50
        assert "75%" in body["warnings"][0]

    def test_calendario(self, client, headers):
        body = client.get(f"{API}/tax/calendar/2026", headers=headers).json()

        assert body["meta"] == {"ano": 2026, "total": 10}
        assert {o["modelo"] for o in body["data"]} == {"303", "130", "390", "100"}

    def test_calendario_con_alquiler(self, client, api_db):
        user_id = api_db.create_user(con_alquiler=True)
        body = client.get(f"{API}/tax/calendar/2026", headers={"X-User-ID": str(user_id)}).json()
        assert body["meta"]["total"] == 15


class TestSettingsAPI:
    """Tests para /settings."""

    def test_datos_de_empresa(self, client, headers):
        data = client.get(f"{API}/settings/company", headers=headers).json()["data"]
        assert "razon_social" in data
        assert data["iban"] is None

    def test_actualizar_empresa(self, client, headers):
        body = client.patch(
            f"{API}/settings/company",
            json={"razon_social": "Estudio Norte SL", "iban": "es91 2100 0418 4502 0005 1332"},
            headers=headers,
        ).json()

        assert body["data"]["razon_social"] == "Estudio Norte SL"
        assert body["data"]["iban"] == VALID_IBAN
        assert body["info"] == ["Configuración de empresa actualizada correctamente"]

    def test_iban_invalido(self, client, headers):
        response = client.patch(
            f"{API}/settings/company", json={"iban": "ES0000000000000000000000"}, headers=headers
        )
        assert response.status_code == 400

    def test_empresa_sin_cambios(self, client, headers):
        response = client.patch(f"{API}/settings/company", json={}, headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "No se proporcionaron datos para actualizar"

    def test_modelos_130_y_131_excluyentes(self, client, headers):
        data = client.patch(
            f"{API}/settings/preferences", json={"mostrar_modelo_131": True}, headers=headers
        ).json()["data"]

        assert data["mostrar_modelo_131"] is True
        assert data["mostrar_modelo_130"] is False

    def test_base_de_cotizacion(self, client, headers):
        response = client.patch(
            f"{API}/settings/preferences", json={"base_cotizacion": 0}, headers=headers
        )
        assert response.status_code == 400

    def test_preferencias_sin_cambios(self, client, headers):
        response = client.patch(f"{API}/settings/preferences", json={}, headers=headers)
        assert response.json()["message"] == "No hay preferencias para actualizar"

    def test_preferencias_actualizadas(self, client, headers):
        body = client.patch(
            f"{API}/settings/preferences",
            json={"tiene_local_alquilado": True, "tipo_irpf_actual": 15},
            headers=headers,
        ).json()

        assert body["info"] == ["Preferencias actualizadas correctamente"]
        assert body["data"]["tipo_irpf_actual"] == 15
