from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import QUOTATION_EXPIRY_DAYS
from app.constants.activity_codes import ActivityCode
from app.models.enums.quotation_status import QuotationStatus
from app.services.purchasing.quotation_expiry_core import _stale_quotations_stmt
from app.services.purchasing.quotation_service import apply_transition


async def auto_expire_quotations(db: AsyncSession, now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=QUOTATION_EXPIRY_DAYS)

    result = await db.execute(_stale_quotations_stmt(cutoff))
    stale = result.scalars().all()

    if not stale:
        return 0

    for q in stale:
        await apply_transition(
            db,
            q,
            QuotationStatus.expired,
            None,  # system action
            metadata={
                "reason": f"No supplier reply in {QUOTATION_EXPIRY_DAYS} days",
                "expired_at": now,
            },
            action=ActivityCode.EXPIRE,
        )

    await db.commit()
    return len(stale)
