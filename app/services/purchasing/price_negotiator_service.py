import math
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DEFAULT_SENDER_NAME, PRICE_HISTORY_CACHE_TTL_SECONDS
from app.core.exceptions import GeminiError
from app.models.enums.quotation_status import QuotationStatus
from app.models.purchasing.quotation_models import Quotation, QuotationItem
from app.schemas.purchasing.quotation_schemas import (
    NegotiationAnalysis,
    NegotiationRecommendation,
    PriceAnomaly,
    SavingsPotential,
)
from app.services.ai.gemini_client import GeminiClient
from app.utils.decimal_utils import round_half_up
from app.utils.logger import get_logger

logger = get_logger(__name__)

PRICE_INCREASE_WARNING = 0.05
PRICE_INCREASE_ALERT = 0.15
MIN_HISTORY_FOR_ANALYSIS = 3
HISTORY_DAYS = 182  # ~6 months
HISTORY_QUOTATION_LIMIT = 50
RECOMMENDATION_SAVINGS_THRESHOLD = 100

HISTORY_STATUSES = (
    QuotationStatus.ordered,
    QuotationStatus.shipped,
    QuotationStatus.received,
)

NEGOTIATION_PROMPT = """
You are a purchasing negotiation specialist for an artisan pizzeria.

CURRENT QUOTATION:
- Supplier: {supplier_name}
- Quoted total: {quoted_total}
- Items: {items}

PRICE ANOMALIES DETECTED:
{anomalies}

TASK:
1. Suggest a negotiation strategy
2. Write a professional, cordial email asking for better terms
3. List specific arguments based on the price history

ANSWER IN JSON:
{{
    "strategy": "recommended strategy in 1-2 sentences",
    "arguments": ["argument 1", "argument 2", "argument 3"],
    "targetDiscount": 5,
    "emailSubject": "email subject",
    "emailDraft": "negotiation email body",
    "confidence": 75,
    "riskLevel": "low|medium|high"
}}
"""


def _stats(prices: list[float]) -> tuple[float, float]:
    mean = sum(prices) / len(prices)
    variance = sum((p - mean) ** 2 for p in prices) / len(prices)
    return mean, math.sqrt(variance)


def _prices(history: dict, product_id) -> Optional[list[float]]:
    points = history.get(product_id) or []
    if len(points) < MIN_HISTORY_FOR_ANALYSIS:
        return None
    return [p["price"] for p in points]


def _item_price(item: dict) -> float:
    return float(item.get("unit_price") or 0)


def _item_quantity(item: dict) -> float:
    return float(item.get("quantity") or 1)


def detect_price_anomalies(items: Iterable[dict], history: dict) -> list[PriceAnomaly]:
    """Line items priced more than 5% above their historical mean, biggest savings first."""
    anomalies = []
    for item in items:
        current = _item_price(item)
        prices = _prices(history, item["product_id"])
        if not current or prices is None:
            continue

        average, std_dev = _stats(prices)
        if average <= 0:
            continue
        deviation = (current - average) / average
        if deviation <= PRICE_INCREASE_WARNING:
            continue

        z_score = (current - average) / std_dev if std_dev > 0 else 0.0
        anomalies.append(PriceAnomaly(
            product_id=item["product_id"],
            product_name=item.get("product_name") or "",
            current_price=current,
            historical_average=round_half_up(average, 2),
            deviation=round_half_up(deviation * 100, 1),
            z_score=round_half_up(z_score, 2),
            severity="high" if deviation > PRICE_INCREASE_ALERT else "medium",
            potential_savings=(current - average) * _item_quantity(item),
            last_lowest_price=min(prices),
            last_highest_price=max(prices),
            data_points=len(prices),
        ))

    return sorted(anomalies, key=lambda a: a.potential_savings, reverse=True)


def calculate_savings_potential(items: list[dict], history: dict) -> SavingsPotential:
    total_current = 0.0
    total_low = 0.0
    total_avg = 0.0
    analyzed = 0

    for item in items:
        quantity = _item_quantity(item)
        total_current += _item_price(item) * quantity

        prices = _prices(history, item["product_id"])
        if prices is None:
            continue
        average, _ = _stats(prices)
        total_low += min(prices) * quantity
        total_avg += average * quantity
        analyzed += 1

    from_average = max(0.0, round_half_up(total_current - total_avg, 2))
    return SavingsPotential(
        total_current=round_half_up(total_current, 2),
        total_historical_avg=round_half_up(total_avg, 2),
        total_historical_low=round_half_up(total_low, 2),
        potential_from_average=from_average,
        potential_from_best=max(0.0, round_half_up(total_current - total_low, 2)),
        total_potential=from_average,
        items_analyzed=analyzed,
        total_items=len(items),
        percentage_above_average=(
            round_half_up((total_current - total_avg) / total_avg * 100, 1)
            if total_avg > 0 else 0.0
        ),
    )


def calculate_negotiation_score(anomalies: list[PriceAnomaly], savings: SavingsPotential) -> int:
    """Negotiation opportunity on a 0-100 scale."""
    score = min(50.0, savings.percentage_above_average * 5)

    for a in anomalies:
        score += 15 if a.severity == "high" else 8

    if savings.total_potential > 500:
        score += 15
    elif savings.total_potential > 200:
        score += 10
    elif savings.total_potential > 50:
        score += 5

    return max(0, min(100, int(round_half_up(score, 0))))


def fallback_recommendations(
    anomalies: list[PriceAnomaly],
    sender_name: str = DEFAULT_SENDER_NAME,
) -> NegotiationRecommendation:
    has_high = any(a.severity == "high" for a in anomalies)

    body = [
        "Dear partner,",
        "",
        "Thank you for your quotation.",
        "",
        "We would like to ask for a review of the quoted prices, considering our "
        "purchase history and the possibility of increasing our order volume.",
    ]
    if anomalies:
        names = ", ".join(a.product_name for a in anomalies)
        body += [
            "",
            "Some items are above the prices we have paid before. Could you "
            f"review in particular: {names}?",
        ]
    body += ["", "We look forward to your reply to close the order.", "", "Best regards,", sender_name]

    return NegotiationRecommendation(
        strategy=(
            "Ask for an urgent price review: values are well above purchase history"
            if has_high
            else "Negotiate a progressive volume or loyalty discount"
        ),
        arguments=[
            "Consistent purchase history with your company",
            "Possibility of higher volumes with better terms",
            f"{len(anomalies)} item(s) priced above the historical average"
            if anomalies else "Good commercial relationship",
        ],
        target_discount=10 if has_high else 5,
        email_subject="Price Review Request - Recent Quotation",
        email_draft="\n".join(body),
        confidence=60,
        risk_level="low" if has_high else "medium",
        source="fallback",
        generated_at=datetime.now(timezone.utc),
    )


def quotation_items(q: Quotation) -> list[dict]:
    return [
        {
            "product_id": i.product_id,
            "product_name": i.product_name,
            "quantity": float(i.quantity),
            "unit_price": float(i.effective_unit_price),
        }
        for i in q.items
    ]


class PriceNegotiator:
    """Price-history backed negotiation advice for a supplier quotation.

    Historical prices are cached per supplier and product set for
    ``cache_ttl`` seconds. ``clock`` is injectable for tests.
    """

    def __init__(
        self,
        client: GeminiClient,
        cache_ttl: float = PRICE_HISTORY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.cache_ttl = cache_ttl
        self.clock = clock
        self._cache: dict[tuple, tuple[float, dict]] = {}

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Price history cache cleared")

    async def get_historical_prices(
        self,
        db: AsyncSession,
        supplier_id: int,
        product_ids: Iterable[int],
        exclude_quotation_id: Optional[int] = None,
    ) -> dict[int, list[dict]]:
        product_ids = sorted(set(product_ids))
        key = (supplier_id, tuple(product_ids), exclude_quotation_id)

        cached = self._cache.get(key)
        if cached and self.clock() - cached[0] < self.cache_ttl:
            return cached[1]

        since = datetime.now(timezone.utc) - timedelta(days=HISTORY_DAYS)

        recent = (
            select(Quotation.id)
            .where(
                Quotation.supplier_id == supplier_id,
                Quotation.status.in_(HISTORY_STATUSES),
                Quotation.created_at >= since,
            )
            .order_by(Quotation.created_at.desc(), Quotation.id.desc())
            .limit(HISTORY_QUOTATION_LIMIT)
        )
        if exclude_quotation_id is not None:
            recent = recent.where(Quotation.id != exclude_quotation_id)

        stmt = (
            select(QuotationItem, Quotation.created_at)
            .join(Quotation, Quotation.id == QuotationItem.quotation_id)
            .where(
                QuotationItem.quotation_id.in_(recent.scalar_subquery()),
                QuotationItem.product_id.in_(product_ids),
            )
            .order_by(Quotation.created_at.desc())
        )

        try:
            rows = (await db.execute(stmt)).all()
        except SQLAlchemyError:
            logger.exception("Failed to load price history", extra={"supplier_id": supplier_id})
            return {}

        history: dict[int, list[dict]] = {}
        for item, created_at in rows:
            price = float(item.effective_unit_price)
            if price <= 0:
                continue
            history.setdefault(item.product_id, []).append({
                "price": price,
                "date": created_at,
                "quotation_id": item.quotation_id,
            })

        now = self.clock()
        for stale in [k for k, (at, _) in self._cache.items() if now - at >= self.cache_ttl]:
            del self._cache[stale]
        self._cache[key] = (now, history)
        logger.info("Loaded price history", extra={"supplier_id": supplier_id, "products": len(history)})
        return history

    async def generate_recommendations(
        self,
        q: Quotation,
        anomalies: list[PriceAnomaly],
    ) -> NegotiationRecommendation:
        if not self.client.is_ready:
            return fallback_recommendations(anomalies)

        items_txt = ", ".join(
            f"{i.product_name}: {float(i.effective_unit_price):.2f}" for i in q.items
        )
        anomalies_txt = "\n".join(
            f"- {a.product_name}: {a.current_price:.2f} ({a.deviation}% above the "
            f"historical average of {a.historical_average:.2f})"
            for a in anomalies
        ) or "No significant anomaly detected."

        prompt = NEGOTIATION_PROMPT.format(
            supplier_name=q.supplier_name,
            quoted_total=q.quoted_total or 0,
            items=items_txt,
            anomalies=anomalies_txt,
        )

        try:
            data = await self.client.generate_json(prompt)
            return NegotiationRecommendation(
                strategy=str(data.get("strategy") or ""),
                arguments=[str(a) for a in data.get("arguments") or []],
                target_discount=float(data.get("targetDiscount") or 0),
                email_subject=str(data.get("emailSubject") or ""),
                email_draft=str(data.get("emailDraft") or ""),
                confidence=float(data.get("confidence") or 0),
                risk_level=str(data.get("riskLevel") or "medium"),
                source="gemini",
                generated_at=datetime.now(timezone.utc),
            )
        except (GeminiError, TypeError, ValueError) as exc:
            logger.warning("Negotiation recommendation fell back to template: %s", exc)
            return fallback_recommendations(anomalies)

    async def analyze_quotation(self, db: AsyncSession, q: Quotation) -> NegotiationAnalysis:
        items = quotation_items(q)
        history = await self.get_historical_prices(
            db, q.supplier_id, [i["product_id"] for i in items], exclude_quotation_id=q.id
        )

        anomalies = detect_price_anomalies(items, history)
        savings = calculate_savings_potential(items, history)

        recommendations = None
        if savings.total_potential > RECOMMENDATION_SAVINGS_THRESHOLD or anomalies:
            recommendations = await self.generate_recommendations(q, anomalies)

        return NegotiationAnalysis(
            quotation_id=q.id,
            supplier_id=q.supplier_id,
            anomalies=anomalies,
            savings_potential=savings,
            overall_score=calculate_negotiation_score(anomalies, savings),
            recommendations=recommendations,
            analyzed_at=datetime.now(timezone.utc),
        )
