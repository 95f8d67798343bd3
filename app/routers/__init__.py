# app/routers/__init__.py

from .auth.auth_router import router as auth_router

from .masters.supplier_router import router as supplier_router
from .masters.product_router import router as product_router

from .inventory.inventory_router import router as inventory_router
from .inventory.invoice_scan_router import router as invoice_scan_router

from .purchasing.quotation_router import router as quotation_router

from .support.audit_log_router import router as audit_log_router


__all__ = [
"auth_router",

"supplier_router",
"product_router",

"inventory_router",
"invoice_scan_router",

"quotation_router",

"audit_log_router",
]
