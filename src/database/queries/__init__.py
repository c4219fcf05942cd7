"""
Queries de Base de Datos

Módulo que exporta las funciones de consulta async a la base de datos.
Las operaciones en bloque de series y años se usan desde los submódulos
(`invoice_queries`, `expense_queries`), que comparten nombres.
"""

# Clase base para queries
from src.database.queries.base import BaseQuery

# Queries de usuario
from src.database.queries.user_queries import (
    get_user_by_id,
    get_user_by_email,
    create_user,
    update_user_fields,
)

# Queries de cliente
from src.database.queries.client_queries import (
    get_clients,
    get_client_by_id,
    get_active_client,
    get_client_by_cif,
    get_principal_client,
    count_client_invoices,
    count_client_templates,
    create_client,
    update_client,
    delete_client,
)

# Queries de datos de facturación
from src.database.queries.billing_queries import (
    get_billing_configs,
    get_billing_config_by_id,
    get_active_billing_config,
    count_billing_configs,
    create_billing_config,
    update_billing_config,
    delete_billing_config,
)

# Queries de factura
from src.database.queries.invoice_queries import (
    get_invoices,
    get_invoice_totals,
    get_invoice_by_id,
    get_last_invoice_sequence,
    create_invoice,
    update_invoice,
    delete_invoice,
)

# Queries de gasto
from src.database.queries.expense_queries import (
    get_expenses,
    get_expense_totals,
    get_expense_by_id,
    create_expense,
    update_expense,
    delete_expense,
)

# Queries de programación
from src.database.queries.programacion_queries import (
    get_programaciones,
    get_programacion_by_id,
    create_programacion,
    update_programacion,
    delete_programacion,
)

# Queries de facturas recurrentes
from src.database.queries.recurring_queries import (
    get_templates,
    get_template_by_id,
    get_due_templates,
    create_template,
    update_template,
    delete_template,
    get_history,
)

# Queries de documento
from src.database.queries.document_queries import (
    get_documents,
    get_document_by_id,
    get_document_by_hash,
    get_document_stats,
    create_document,
    update_document,
    delete_document,
)

__all__ = [
    # Base
    'BaseQuery',
    # User
    'get_user_by_id',
    'get_user_by_email',
    'create_user',
    'update_user_fields',
    # Cliente
    'get_clients',
    'get_client_by_id',
    'get_active_client',
    'get_client_by_cif',
    'get_principal_client',
    'count_client_invoices',
    'create_client',
    'update_client',
    'delete_client',
    # Datos de facturación
    'get_billing_configs',
    'get_billing_config_by_id',
    'get_active_billing_config',
    'count_billing_configs',
    'create_billing_config',
    'update_billing_config',
    'delete_billing_config',
    # Factura
    'get_invoices',
    'get_invoice_totals',
    'get_invoice_by_id',
    'get_last_invoice_sequence',
    'create_invoice',
    'update_invoice',
    'delete_invoice',
    # Gasto
    'get_expenses',
    'get_expense_totals',
    'get_expense_by_id',
    'create_expense',
    'update_expense',
    'delete_expense',
    # Programación
    'get_programaciones',
    'get_programacion_by_id',
    'create_programacion',
    'update_programacion',
    'delete_programacion',
    # Recurrentes
    'get_templates',
    'get_template_by_id',
    'get_due_templates',
    'create_template',
    'update_template',
    'delete_template',
    'get_history',
    # Documento
    'get_documents',
    'get_document_by_id',
    'get_document_by_hash',
    'get_document_stats',
    'create_document',
    'update_document',
    'delete_document',
]
