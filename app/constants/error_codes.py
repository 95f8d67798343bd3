# app/constants/error_codes.py

from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # ---------------- SUPPLIERS ----------------
    SUPPLIER_NOT_FOUND = "SUPPLIER_NOT_FOUND"
    SUPPLIER_NAME_EXISTS = "SUPPLIER_NAME_EXISTS"
    SUPPLIER_VERSION_CONFLICT = "SUPPLIER_VERSION_CONFLICT"

    # ---------------- PRODUCTS ----------------
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    PRODUCT_NAME_EXISTS = "PRODUCT_NAME_EXISTS"
    PRODUCT_VERSION_CONFLICT = "PRODUCT_VERSION_CONFLICT"

    # ---------------- INVENTORY ----------------
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_STOCK_MOVEMENT = "INVALID_STOCK_MOVEMENT"
    INVENTORY_BACKUP_INVALID = "INVENTORY_BACKUP_INVALID"

    # ---------------- QUOTATIONS ----------------
    QUOTATION_NOT_FOUND = "QUOTATION_NOT_FOUND"
    QUOTATION_DUPLICATE_DRAFT = "QUOTATION_DUPLICATE_DRAFT"
    QUOTATION_INVALID_STATE = "QUOTATION_INVALID_STATE"
    QUOTATION_INVALID_TRANSITION = "QUOTATION_INVALID_TRANSITION"

    # ---------------- INVOICE SCANNER ----------------
    INVOICE_SCAN_FAILED = "INVOICE_SCAN_FAILED"
