# Inventory
from app.models.inventory.stock_movement_models import StockMovement
from app.models.inventory.inventory_category_models import InventoryCategory
from app.models.inventory.document_snapshot_models import DocumentSnapshot

# Masters
from app.models.masters.product_models import Product
from app.models.masters.supplier_models import Supplier

# Users and audit
from app.models.users.user_models import User
from app.models.support.audit_log_models import AuditLog

# Purchasing
from app.models.purchasing.quotation_models import Quotation, QuotationItem, QuotationHistory
