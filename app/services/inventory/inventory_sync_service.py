import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import INVENTORY_SYNC_DEBOUNCE_SECONDS
from app.models.inventory.document_snapshot_models import DocumentSnapshot
from app.services.inventory.inventory_backup_service import export_inventory_backup
from app.utils.logger import get_logger

logger = get_logger(__name__)

SETTINGS_COLLECTION = "settings"
INVENTORY_DOCUMENT = "inventory_v2"
LEGACY_INVENTORY_DOCUMENT = "inventory"


async def _get_document(db: AsyncSession, collection: str, document_id: str) -> Optional[DocumentSnapshot]:
    return (
        await db.execute(
            select(DocumentSnapshot).where(
                DocumentSnapshot.collection == collection,
                DocumentSnapshot.document_id == document_id,
            )
        )
    ).scalar_one_or_none()


async def put_document(db: AsyncSession, collection: str, document_id: str, payload: dict) -> None:
    """Whole-document write. Last write wins."""
    doc = await _get_document(db, collection, document_id)
    if doc is None:
        db.add(DocumentSnapshot(collection=collection, document_id=document_id, payload=payload))
    else:
        doc.payload = payload
    await db.commit()


async def sync_inventory(db: AsyncSession) -> bool:
    """Mirror the current inventory to ``settings/inventory_v2``. False on failure."""
    try:
        backup = await export_inventory_backup(db)
        await put_document(
            db,
            SETTINGS_COLLECTION,
            INVENTORY_DOCUMENT,
            {
                "items": backup["items"],
                "categories": backup["categories"],
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        return True
    except SQLAlchemyError:
        logger.exception("Error syncing inventory")
        await db.rollback()
        return False


async def get_inventory_snapshot(db: AsyncSession) -> Optional[dict]:
    """Mirrored inventory, falling back to the legacy document. None when absent."""
    try:
        doc = await _get_document(db, SETTINGS_COLLECTION, INVENTORY_DOCUMENT)
        if doc is not None:
            return {"source": INVENTORY_DOCUMENT, **doc.payload}

        legacy = await _get_document(db, SETTINGS_COLLECTION, LEGACY_INVENTORY_DOCUMENT)
        if legacy is not None:
            return {
                "source": LEGACY_INVENTORY_DOCUMENT,
                "items": legacy.payload.get("items") or [],
                "categories": None,
            }
        return None
    except SQLAlchemyError:
        logger.exception("Error getting inventory snapshot")
        return None


class InventorySyncDebouncer:
    """Coalesces bursts of inventory edits into one mirror write.

    Every ``schedule()`` restarts the timer; the sync runs ``delay`` seconds
    after the last call, in its own session.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        delay: float = INVENTORY_SYNC_DEBOUNCE_SECONDS,
        sync: Callable[[AsyncSession], Awaitable[bool]] = sync_inventory,
    ):
        self.session_factory = session_factory
        self.delay = delay
        self._sync = sync
        self._task: Optional[asyncio.Task] = None
        self.status = "synced"
        self.last_synced_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(self.delay))

    async def _run(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self.status = "syncing"
        try:
            async with self.session_factory() as db:
                ok = await self._sync(db)
        except Exception as exc:
            logger.exception("Debounced inventory sync crashed")
            self.status = "error"
            self.last_error = str(exc) or exc.__class__.__name__
            return
        if ok:
            self.status = "synced"
            self.last_synced_at = datetime.now(timezone.utc)
            self.last_error = None
        else:
            self.status = "error"
            self.last_error = "Inventory sync failed"

    async def flush(self) -> None:
        """Run a pending sync now instead of waiting for the timer."""
        if not self.pending:
            return
        self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(0))
        await self._task

    async def close(self) -> None:
        if self.pending:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "last_error": self.last_error,
        }
