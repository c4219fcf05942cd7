"""
Tests de integración para las queries async.
"""

from datetime import date

import pytest
from sqlalchemy import text

from src.database.queries import (
    billing_queries,
    client_queries,
    document_queries,
    expense_queries,
    invoice_queries,
    recurring_queries,
)
from src.utils.errors import ConflictError
from tests.factories import (
    ClienteFactory,
    DatosFacturacionFactory,
    DocumentoFactory,
    FacturaEmitidaFactory,
    GastoFactory,
    TemplateFactory,
    UserFactory,
    persist,
)


class TestClientQueries:
    """Tests para las queries de clientes."""

    async def test_principal_primero(self, db, user):
        await persist(
            db,
            ClienteFactory(user_id=user.id, nombre="Zeta SL"),
            ClienteFactory(user_id=user.id, nombre="Alfa SL"),
            ClienteFactory(user_id=user.id, nombre="Omega SL", principal=True),
        )
        clientes = await client_queries.get_clients(db, user.id)
        assert [c.nombre for c in clientes] == ["Omega SL", "Alfa SL", "Zeta SL"]

    async def test_filtro_activo(self, db, user):
        await persist(
            db,
            ClienteFactory(user_id=user.id),
            ClienteFactory(user_id=user.id, inactivo=True),
        )
        assert len(await client_queries.get_clients(db, user.id, activo=True)) == 1
        assert len(await client_queries.get_clients(db, user.id)) == 2

    async def test_aislamiento_por_usuario(self, db, user, cliente):
        otro = await persist(db, UserFactory())
        assert await client_queries.get_client_by_id(db, cliente.id, otro.id) is None
        assert await client_queries.get_client_by_id(db, cliente.id, user.id) is not None

    async def test_buscar_por_cif_excluyendo(self, db, user, cliente):
        encontrado = await client_queries.get_client_by_cif(db, cliente.cif, user.id)
        assert encontrado.id == cliente.id
        assert await client_queries.get_client_by_cif(
            db, cliente.cif, user.id, exclude_id=cliente.id
        ) is None

    async def test_cliente_inactivo_no_es_activo(self, db, user):
        inactivo = await persist(db, ClienteFactory(user_id=user.id, inactivo=True))
        assert await client_queries.get_active_client(db, inactivo.id, user.id) is None

    async def test_desmarcar_principal(self, db, user):
        principal = await persist(db, ClienteFactory(user_id=user.id, principal=True))
        await client_queries.clear_principal_client(db, user.id)
        await db.refresh(principal)
        assert principal.es_cliente_principal is False

    async def test_contar_facturas(self, db, user, cliente):
        await persist(db, FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id))
        assert await client_queries.count_client_invoices(db, cliente.id, user.id) == 1

    async def test_contar_plantillas(self, db, user, cliente):
        await persist(db, TemplateFactory(user_id=user.id, cliente_id=cliente.id))
        assert await client_queries.count_client_templates(db, cliente.id, user.id) == 1

    async def test_claves_foraneas_activas(self, db):
        assert (await db.execute(text("PRAGMA foreign_keys"))).scalar() == 1

    async def test_borrar_con_plantilla_falla(self, db, user, cliente):
        """La plantilla referencia al cliente con ON DELETE RESTRICT."""
        await persist(db, TemplateFactory(user_id=user.id, cliente_id=cliente.id))

        with pytest.raises(ConflictError):
            await client_queries.delete_client(db, cliente)


class TestBillingQueries:
    """Tests para los perfiles de facturación."""

    async def test_perfil_activo(self, db, user):
        await persist(
            db,
            DatosFacturacionFactory(user_id=user.id),
            DatosFacturacionFactory(user_id=user.id, activa=True, razon_social="Activa SL"),
        )
        activo = await billing_queries.get_active_billing_config(db, user.id)
        assert activo.razon_social == "Activa SL"

    async def test_desactivar_todos(self, db, user):
        config = await persist(db, DatosFacturacionFactory(user_id=user.id, activa=True))
        await billing_queries.deactivate_all_billing_configs(db, user.id)
        await db.refresh(config)
        assert config.activo is False

    async def test_borrar_desvincula_facturas(self, db, user, cliente):
        config = await persist(db, DatosFacturacionFactory(user_id=user.id, activa=True))
        factura = await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, datos_facturacion_id=config.id),
        )
        await billing_queries.delete_billing_config(db, config)
        await db.refresh(factura)
        assert factura.datos_facturacion_id is None
        assert await billing_queries.count_billing_configs(db, user.id) == 0


class TestInvoiceQueries:
    """Tests para las queries de facturas."""

    async def test_secuencia_numerica(self, db, user, cliente):
        """'2026-1000' va después de '2026-999' aunque el texto ordene al revés."""
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, numero_factura="2026-999"),
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, numero_factura="2026-1000"),
        )
        assert await invoice_queries.get_last_invoice_sequence(db, user.id, 2026) == 1000

    async def test_secuencia_comparte_series(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, numero_factura="2026-003"),
            FacturaEmitidaFactory(
                user_id=user.id, cliente_id=cliente.id, numero_factura="B2026-007", serie="B"
            ),
        )
        assert await invoice_queries.get_last_invoice_sequence(db, user.id, 2026) == 7

    async def test_secuencia_ano_vacio(self, db, user):
        assert await invoice_queries.get_last_invoice_sequence(db, user.id, 2030) == 0

    async def test_filtros_y_orden(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, fecha_emision=date(2026, 1, 10)),
            FacturaEmitidaFactory(
                user_id=user.id, cliente_id=cliente.id, fecha_emision=date(2026, 3, 10), pagada_trait=True
            ),
        )
        facturas = await invoice_queries.get_invoices(db, user.id)
        assert facturas[0].fecha_emision == date(2026, 3, 10)

        pagadas = await invoice_queries.get_invoices(db, user.id, pagada=True)
        assert len(pagadas) == 1

        primer_trimestre = await invoice_queries.get_invoices(
            db, user.id, fecha_desde=date(2026, 1, 1), fecha_hasta=date(2026, 1, 31)
        )
        assert len(primer_trimestre) == 1

    async def test_totales(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id),
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id),
        )
        totales = await invoice_queries.get_invoice_totals(db, user.id)
        assert totales == {
            "total": 2,
            "total_facturado": 2000,
            "total_iva_repercutido": 420,
            "total_irpf_retenido": 140,
        }

    async def test_agregados_excluyen_canceladas(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id),
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, cancelada=True),
        )
        suma = await invoice_queries.sum_invoices(db, user.id, date(2026, 1, 1), date(2026, 3, 31))
        assert suma["num_facturas"] == 1
        assert suma["base"] == 1000

    async def test_suma_por_tipo_iva(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id),
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, tipo_iva=10.0),
        )
        por_tipo = await invoice_queries.sum_invoices_by_tipo_iva(
            db, user.id, date(2026, 1, 1), date(2026, 3, 31)
        )
        assert por_tipo[21.0] == {"base": 1000, "cuota": 210}
        assert por_tipo[10.0] == {"base": 1000, "cuota": 100}

    async def test_borrar_por_ano(self, db, user, cliente):
        await persist(
            db,
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id),
            FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, fecha_emision=date(2025, 6, 1)),
        )
        assert await invoice_queries.delete_invoices_in_year(db, user.id, 2026) == 1
        assert await invoice_queries.count_invoices_in_year(db, user.id, 2025) == 1


class TestExpenseQueries:
    """Tests para las queries de gastos."""

    async def test_totales_solo_deducibles_en_iva(self, db, user):
        await persist(
            db,
            GastoFactory(user_id=user.id),
            GastoFactory(user_id=user.id, es_deducible=False),
        )
        totales = await expense_queries.get_expense_totals(db, user.id)
        assert totales["total"] == 2
        assert totales["suma_base_imponible"] == 200
        assert totales["suma_iva_deducible"] == 21

    async def test_filtro_categoria(self, db, user):
        await persist(
            db,
            GastoFactory(user_id=user.id),
            GastoFactory(user_id=user.id, alquiler=True),
        )
        gastos = await expense_queries.get_expenses(db, user.id, categoria="Alquiler")
        assert len(gastos) == 1
        assert gastos[0].base_imponible == 800

    async def test_gastos_independencia_del_mes(self, db, user):
        await persist(
            db,
            GastoFactory(user_id=user.id, es_gasto_independencia=True),
            GastoFactory(user_id=user.id, es_gasto_independencia=True, fecha_emision=date(2026, 2, 5)),
        )
        gastos = await expense_queries.get_independence_expenses(db, user.id, 2026, 1, 31)
        assert len(gastos) == 1


class TestRecurringQueries:
    """Tests para plantillas recurrentes y su historial."""

    async def test_plantillas_pendientes(self, db, user, cliente):
        pendiente, futura, pausada, terminada = await persist(
            db,
            TemplateFactory(user_id=user.id, cliente_id=cliente.id),
            TemplateFactory(
                user_id=user.id, cliente_id=cliente.id, fecha_inicio=date(2026, 6, 1)
            ),
            TemplateFactory(user_id=user.id, cliente_id=cliente.id, pausado=True),
            TemplateFactory(
                user_id=user.id, cliente_id=cliente.id, fecha_fin=date(2026, 1, 31)
            ),
        )
        due = await recurring_queries.get_due_templates(db, date(2026, 3, 1), user_id=user.id)
        assert [t.id for t in due] == [pendiente.id]

    async def test_fechas_generadas_solo_exitosas(self, db, user, cliente):
        template = await persist(db, TemplateFactory(user_id=user.id, cliente_id=cliente.id))
        await recurring_queries.add_history(db, {
            "template_id": template.id, "fecha_programada": date(2026, 1, 1), "exitoso": True,
        })
        await recurring_queries.add_history(db, {
            "template_id": template.id, "fecha_programada": date(2026, 2, 1), "exitoso": False,
            "error_mensaje": "Cliente inactivo",
        })
        assert await recurring_queries.get_generated_dates(db, template.id) == {date(2026, 1, 1)}

    async def test_borrar_conserva_facturas(self, db, user, cliente):
        template = await persist(db, TemplateFactory(user_id=user.id, cliente_id=cliente.id))
        factura = await persist(
            db, FacturaEmitidaFactory(user_id=user.id, cliente_id=cliente.id, template_id=template.id)
        )
        await recurring_queries.add_history(db, {
            "template_id": template.id, "invoice_id": factura.id,
            "fecha_programada": date(2026, 1, 1), "exitoso": True,
        })

        await recurring_queries.delete_template(db, template)
        await db.refresh(factura)

        assert factura.template_id is None
        assert await recurring_queries.get_history(db, template.id) == []


class TestDocumentQueries:
    """Tests para documentos."""

    async def test_excluye_eliminados_por_defecto(self, db, user):
        await persist(
            db,
            DocumentoFactory(user_id=user.id),
            DocumentoFactory(user_id=user.id, estado="ELIMINADO", visible=False),
        )
        assert len(await document_queries.get_documents(db, user.id)) == 1
        assert len(await document_queries.get_documents(db, user.id, estado="ELIMINADO")) == 1

    async def test_vencimiento_proximo(self, db, user):
        await persist(
            db,
            DocumentoFactory(user_id=user.id, fecha_vencimiento=date(2026, 3, 20)),
            DocumentoFactory(user_id=user.id, fecha_vencimiento=date(2026, 6, 1)),
        )
        documentos = await document_queries.get_documents(
            db, user.id, vencimiento_proximo=True, today=date(2026, 3, 1)
        )
        assert len(documentos) == 1

    async def test_duplicado_por_hash(self, db, user):
        doc = await persist(db, DocumentoFactory(user_id=user.id))
        encontrado = await document_queries.get_document_by_hash(db, user.id, doc.archivo_hash_sha256)
        assert encontrado.id == doc.id

    async def test_estadisticas(self, db, user):
        await persist(
            db,
            DocumentoFactory(user_id=user.id, fecha_vencimiento=date(2026, 2, 1)),
            DocumentoFactory(user_id=user.id, categoria="FACTURA_GASTO", fecha_vencimiento=date(2026, 3, 10)),
        )
        stats = await document_queries.get_document_stats(db, user.id, today=date(2026, 3, 1))
        assert stats["total"] == 2
        assert stats["por_categoria"] == {"CONTRATO": 1, "FACTURA_GASTO": 1}
        assert stats["vencidos"] == 1
        assert stats["proximos_vencimientos"] == 1
        assert stats["tamanio_total_bytes"] == 40960


@pytest.mark.parametrize("year,expected", [(2026, 1), (2027, 0)])
async def test_count_expenses_in_year(db, user, year, expected):
    await persist(db, GastoFactory(user_id=user.id))
    assert await expense_queries.count_expenses_in_year(db, user.id, year) == expected
