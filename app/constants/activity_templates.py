from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- AUTH ----------------
    ActivityCode.LOGIN:
        "{actor_role} ({actor_email}) logged in",

    ActivityCode.LOGOUT:
        "{actor_role} ({actor_email}) logged out",

    # ---------------- SUPPLIERS ----------------
    ActivityCode.CREATE_SUPPLIER:
        "{actor_role} ({actor_email}) created supplier {target_name}",

    ActivityCode.UPDATE_SUPPLIER:
        "{actor_role} ({actor_email}) updated supplier {target_name}: {changes}",

    ActivityCode.DEACTIVATE_SUPPLIER:
        "{actor_role} ({actor_email}) deactivated supplier {target_name}",

    # ---------------- PRODUCTS ----------------
    ActivityCode.CREATE_PRODUCT:
        "{actor_role} ({actor_email}) created product {target_name}",

    ActivityCode.UPDATE_PRODUCT:
        "{actor_role} ({actor_email}) updated product {target_name}: {changes}",

    ActivityCode.DEACTIVATE_PRODUCT:
        "{actor_role} ({actor_email}) deactivated product {target_name}",

    # ---------------- INVENTORY ----------------
    ActivityCode.STOCK_MOVEMENT:
        "{actor_role} ({actor_email}) recorded {movement_type} of {quantity} "
        "for product {target_name} (stock now {stock_after})",

    ActivityCode.IMPORT_INVENTORY:
        "{actor_role} ({actor_email}) restored inventory backup "
        "({items_count} items, {categories_count} categories)",

    ActivityCode.UPDATE_CATEGORIES:
        "{actor_role} ({actor_email}) updated inventory categories: {changes}",

    # ---------------- QUOTATIONS ----------------
    ActivityCode.CREATE:
        "{actor_role} ({actor_email}) created quotation {target_name} for {supplier_name}",

    ActivityCode.STATUS_CHANGE:
        "{actor_role} ({actor_email}) moved quotation {target_name} "
        "from {old_status} to {new_status}",

    ActivityCode.EMAIL_SENT:
        "{actor_role} ({actor_email}) sent quotation request {target_name} to {supplier_name}",

    ActivityCode.AI_RESPONSE_PROCESSED:
        "Supplier reply for quotation {target_name} processed; quoted total {quoted_total}",

    ActivityCode.AI_RESPONSE_FAILED:
        "Supplier reply for quotation {target_name} needs manual review: {changes}",

    ActivityCode.ORDER_CONFIRMED:
        "{actor_role} ({actor_email}) confirmed order {target_name}",

    ActivityCode.ORDER_SHIPPED:
        "{actor_role} ({actor_email}) marked order {target_name} as shipped",

    ActivityCode.ORDER_RECEIVED:
        "{actor_role} ({actor_email}) received order {target_name}",

    ActivityCode.ORDER_COMPLETED:
        "Order {target_name} completed with {supplier_name}; total {total_value}",

    ActivityCode.FOLLOW_UP:
        "{actor_role} ({actor_email}) followed up on quotation {target_name}: {changes}",

    ActivityCode.CANCEL:
        "{actor_role} ({actor_email}) cancelled quotation {target_name}: {changes}",

    ActivityCode.EXPIRE:
        "{actor_role} ({actor_email}) expired quotation {target_name}: {changes}",
}
