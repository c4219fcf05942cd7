"""
API Module

Endpoints HTTP de miGestor.

Endpoints:
- Health: /health, /health/live, /health/ready
- Settings: /api/v1/settings
- Clients: /api/v1/clients
- Billing: /api/v1/billing/configs
- Invoices: /api/v1/invoices
- Expenses: /api/v1/expenses
- Programaciones: /api/v1/programaciones
- Recurring templates: /api/v1/recurring-templates
- Documents: /api/v1/documents
- Tax: /api/v1/tax
- Dashboard: /api/v1/dashboard, /api/v1/cashflow

Documentación:
- Swagger UI: /docs
- ReDoc: /redoc
- OpenAPI JSON: /openapi.json
"""

# Health
from src.api.health import health_router, check_database

# Facturación
from src.api.invoices import invoices_router, invoice_api_service, InvoiceAPIService
from src.api.expenses import expenses_router, expense_api_service, ExpenseAPIService
from src.api.recurring_templates import templates_router, template_api_service, RecurringTemplateAPIService

# Fiscal
from src.api.tax import tax_router, tax_api_service, TaxAPIService
from src.api.dashboard import dashboard_router, cashflow_router, dashboard_api_service, DashboardAPIService

# App
from src.api.app import app, create_app, run_api

# Schemas (documentados)
from src.api.schemas import (
    BaseSchema,
    envelope,
    ErrorResponse,
    InvoiceCreate,
    InvoiceUpdate,
    ExpenseCreate,
    ExpenseUpdate,
    TemplateCreate,
    DocumentCreate,
    HealthResponse,
)

__all__ = [
    # Health
    "health_router",
    "check_database",
    # Facturación
    "invoices_router",
    "invoice_api_service",
    "InvoiceAPIService",
    "expenses_router",
    "expense_api_service",
    "ExpenseAPIService",
    "templates_router",
    "template_api_service",
    "RecurringTemplateAPIService",
    # Fiscal
    "tax_router",
    "tax_api_service",
    "TaxAPIService",
    "dashboard_router",
    "cashflow_router",
    "dashboard_api_service",
    "DashboardAPIService",
    # App
    "app",
    "create_app",
    "run_api",
    # Schemas
    "BaseSchema",
    "envelope",
    "ErrorResponse",
    "InvoiceCreate",
    "InvoiceUpdate",
    "ExpenseCreate",
    "ExpenseUpdate",
    "TemplateCreate",
    "DocumentCreate",
    "HealthResponse",
]
