from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.db import AsyncSessionLocal
from app.services.purchasing.auto_quotation_service import auto_create_quotations
from app.services.purchasing.quotation_expiry_service import auto_expire_quotations
from app.utils.logger import get_logger

logger = get_logger(__name__)

scheduler = AsyncIOScheduler()


@scheduler.scheduled_job("cron", minute=5)  # hourly at :05
async def expire_quotations_job():
    async with AsyncSessionLocal() as db:
        expired = await auto_expire_quotations(db)
    if expired:
        logger.info("Expired %s stale quotations", expired)


@scheduler.scheduled_job("cron", minute=20)
async def auto_quotations_job():
    async with AsyncSessionLocal() as db:
        drafted = await auto_create_quotations(db)
    if drafted:
        logger.info("Drafted %s low stock quotations", drafted)
