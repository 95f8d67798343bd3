# app/models/enums/quotation_status.py
import enum

class QuotationStatus(str, enum.Enum):
    draft = "draft"          # created, not yet sent
    pending = "pending"      # request email sent
    awaiting = "awaiting"    # follow-up sent or reply needs manual review
    quoted = "quoted"        # supplier prices recorded
    ordered = "ordered"      # order confirmed to supplier
    shipped = "shipped"      # supplier dispatched goods
    received = "received"    # goods checked in
    cancelled = "cancelled"
    expired = "expired"


TERMINAL_STATUSES = frozenset({
    QuotationStatus.received,
    QuotationStatus.cancelled,
    QuotationStatus.expired,
})
