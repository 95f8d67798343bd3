# app/constants/activity_codes.py

from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- AUTH ----------------
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"

    # ---------------- SUPPLIERS ----------------
    CREATE_SUPPLIER = "CREATE_SUPPLIER"
    UPDATE_SUPPLIER = "UPDATE_SUPPLIER"
    DEACTIVATE_SUPPLIER = "DEACTIVATE_SUPPLIER"

    # ---------------- PRODUCTS ----------------
    CREATE_PRODUCT = "CREATE_PRODUCT"
    UPDATE_PRODUCT = "UPDATE_PRODUCT"
    DEACTIVATE_PRODUCT = "DEACTIVATE_PRODUCT"

    # ---------------- INVENTORY ----------------
    STOCK_MOVEMENT = "STOCK_MOVEMENT"
    IMPORT_INVENTORY = "IMPORT_INVENTORY"
    UPDATE_CATEGORIES = "UPDATE_CATEGORIES"

    # ---------------- QUOTATIONS ----------------
    CREATE = "CREATE"
    STATUS_CHANGE = "STATUS_CHANGE"
    EMAIL_SENT = "EMAIL_SENT"
    AI_RESPONSE_PROCESSED = "AI_RESPONSE_PROCESSED"
    AI_RESPONSE_FAILED = "AI_RESPONSE_FAILED"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    ORDER_SHIPPED = "ORDER_SHIPPED"
    ORDER_RECEIVED = "ORDER_RECEIVED"
    ORDER_COMPLETED = "ORDER_COMPLETED"
    FOLLOW_UP = "FOLLOW_UP"
    CANCEL = "CANCEL"
    EXPIRE = "EXPIRE"
