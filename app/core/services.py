# app/core/services.py

from dataclasses import dataclass

from fastapi import Request

from app.core.config import INVENTORY_SYNC_DEBOUNCE_SECONDS
from app.core.db import AsyncSessionLocal
from app.services.ai.gemini_client import GeminiClient
from app.services.inventory.inventory_sync_service import InventorySyncDebouncer
from app.services.purchasing.price_negotiator_service import PriceNegotiator


@dataclass
class ServiceContainer:
    gemini: GeminiClient
    negotiator: PriceNegotiator
    inventory_sync: InventorySyncDebouncer


def build_services(gemini: GeminiClient | None = None) -> ServiceContainer:
    gemini = gemini or GeminiClient()
    return ServiceContainer(
        gemini=gemini,
        negotiator=PriceNegotiator(gemini),
        inventory_sync=InventorySyncDebouncer(
            AsyncSessionLocal,
            delay=INVENTORY_SYNC_DEBOUNCE_SECONDS,
        ),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
