from datetime import datetime

from sqlalchemy import select, func

from app.models.purchasing.quotation_models import Quotation
from app.models.enums.quotation_status import QuotationStatus

# Only quotations still waiting on the supplier can go stale.
EXPIRABLE_STATUSES = (QuotationStatus.pending, QuotationStatus.awaiting)


def _stale_quotations_stmt(cutoff: datetime, extra_where=None):
    where_clause = [
        Quotation.status.in_(EXPIRABLE_STATUSES),
        func.coalesce(Quotation.updated_at, Quotation.created_at) < cutoff,
    ]

    if extra_where is not None:
        where_clause.extend(extra_where)

    return (
        select(Quotation)
        .where(*where_clause)
        .order_by(Quotation.id)
        .with_for_update()
    )
