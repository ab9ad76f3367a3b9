# Overview: Permission definitions and default role grants.
# Each permission is defined as: (code, name, description)

from .models.auth import ROLE_ADMIN, ROLE_OPERATOR, ROLE_AGENT


PERMISSION_DEFINITIONS = [
    ("VIEW_ORDERS", "View Orders", "List and read daily orders"),
    ("EDIT_ORDERS", "Edit Orders", "Create, update and delete orders on open days"),
    ("VALIDATE_ORDERS", "Validate Orders", "Mark orders as validated for invoicing"),
    ("EXPORT_DOCUMENTS", "Export Documents", "Export invoice and receipt files"),
    ("CLOSE_DAY", "Close Day", "Export the production sheet, closing the day"),
    ("OVERRIDE_CLOSED_DAY", "Override Closed Day", "Edit orders of a closed day"),
    ("REOPEN_DAY", "Reopen Day", "Unlock a closed production day"),
    ("MANAGE_PRODUCT_GROUPS", "Manage Product Groups", "Create, edit and delete product groups"),
    ("GENERATE_INVOICES", "Generate Invoices", "Generate local invoice records"),
    ("MANAGE_BILLING", "Manage Billing", "Change invoice series and numbering"),
    ("VIEW_CATALOG", "View Catalog", "Read products, prices and clients"),
]

ALL_PERMISSION_CODES = frozenset(code for code, _, _ in PERMISSION_DEFINITIONS)

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: ALL_PERMISSION_CODES,
    ROLE_OPERATOR: ALL_PERMISSION_CODES - {"OVERRIDE_CLOSED_DAY", "REOPEN_DAY", "MANAGE_BILLING"},
    ROLE_AGENT: frozenset({"VIEW_ORDERS", "EDIT_ORDERS", "VIEW_CATALOG"}),
}


def validate_permission_code(code: str) -> bool:
    return code in ALL_PERMISSION_CODES
