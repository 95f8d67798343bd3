import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count

import pytest
import respx
from sqlalchemy.exc import SQLAlchemyError

from app.models.enums.quotation_status import QuotationStatus
from app.models.purchasing.quotation_models import Quotation, QuotationItem
from app.services.purchasing.price_negotiator_service import (
    PriceNegotiator,
    calculate_negotiation_score,
    calculate_savings_potential,
    detect_price_anomalies,
    fallback_recommendations,
)

from tests.conftest import GEMINI_TEXT_URL, gemini_reply

_numbers = count(1)


def history(*prices):
    return [{"price": p, "date": None, "quotation_id": i} for i, p in enumerate(prices)]


def item(product_id=1, price=12.0, quantity=10, name="Farinha 00"):
    return {"product_id": product_id, "product_name": name, "quantity": quantity, "unit_price": price}


async def add_quotation(db, supplier, lines, status=QuotationStatus.received, days_ago=10):
    """Insert a past quotation; ``lines`` is a list of (product, quoted price)."""
    q = Quotation(
        quotation_number=f"QT-H{next(_numbers):05d}",
        status=status,
        supplier_id=supplier.id,
        supplier_name=supplier.name,
        item_signature="history",
        created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
    )
    q.items = [
        QuotationItem(
            product_id=p.id,
            product_name=p.name,
            quantity=Decimal("10"),
            unit=p.unit,
            estimated_unit_price=Decimal("0"),
            quoted_unit_price=Decimal(str(price)),
        )
        for p, price in lines
    ]
    db.add(q)
    await db.commit()
    return q


# =====================================================
# PURE HEURISTICS
# =====================================================
def test_anomaly_above_fifteen_percent_is_high():
    [anomaly] = detect_price_anomalies([item()], {1: history(10, 10, 11)})

    assert anomaly.deviation == 16.1
    assert anomaly.severity == "high"
    assert anomaly.historical_average == 10.33
    assert anomaly.z_score == 3.54
    assert anomaly.potential_savings == pytest.approx(16.667, abs=1e-3)
    assert (anomaly.last_lowest_price, anomaly.last_highest_price) == (10, 11)
    assert anomaly.data_points == 3


def test_anomaly_thresholds():
    prices = {1: history(10, 10, 10)}

    assert detect_price_anomalies([item(price=10.5)], prices) == []
    [medium] = detect_price_anomalies([item(price=10.6)], prices)
    assert medium.severity == "medium"
    assert medium.deviation == 6.0
    # flat history has no spread
    assert medium.z_score == 0.0


def test_anomalies_need_three_data_points():
    assert detect_price_anomalies([item()], {1: history(10, 11)}) == []
    assert detect_price_anomalies([item()], {}) == []
    assert detect_price_anomalies([item(price=0)], {1: history(10, 10, 10)}) == []


def test_anomalies_sorted_by_potential_savings():
    items = [item(1, price=12, quantity=1), item(2, price=12, quantity=50, name="Mozzarella")]
    prices = {1: history(10, 10, 10), 2: history(10, 10, 10)}

    assert [a.product_id for a in detect_price_anomalies(items, prices)] == [2, 1]


def test_savings_potential():
    items = [item(1, price=12, quantity=10), item(2, price=3, quantity=5)]
    savings = calculate_savings_potential(items, {1: history(10, 10, 11)})

    assert savings.total_current == 135.0
    assert savings.total_historical_avg == 103.33
    assert savings.total_historical_low == 100.0
    # lines without history still count towards the current total
    assert savings.potential_from_average == 31.67
    assert savings.potential_from_best == 35.0
    assert savings.total_potential == 31.67
    assert savings.percentage_above_average == 30.6
    assert (savings.items_analyzed, savings.total_items) == (1, 2)


def test_savings_never_negative():
    savings = calculate_savings_potential([item(price=8)], {1: history(10, 10, 10)})

    assert savings.potential_from_average == 0.0
    assert savings.potential_from_best == 0.0
    assert savings.percentage_above_average == -20.0


def test_negotiation_score():
    items = [item()]
    prices = {1: history(10, 10, 11)}
    anomalies = detect_price_anomalies(items, prices)

    # 16.1% above average caps at 50, plus 15 for the high anomaly
    assert calculate_negotiation_score(anomalies, calculate_savings_potential(items, prices)) == 65


def test_negotiation_score_bonus_and_clamp():
    items = [item(p, price=20, quantity=100, name=f"P{p}") for p in range(1, 5)]
    prices = {p: history(10, 10, 10) for p in range(1, 5)}
    anomalies = detect_price_anomalies(items, prices)
    savings = calculate_savings_potential(items, prices)

    assert savings.total_potential == 4000.0
    assert calculate_negotiation_score(anomalies, savings) == 100
    assert calculate_negotiation_score([], calculate_savings_potential([item(price=5)], prices)) == 0


def test_fallback_recommendations():
    high = detect_price_anomalies([item()], {1: history(10, 10, 11)})
    rec = fallback_recommendations(high, sender_name="Padoca Kitchen")

    assert rec.target_discount == 10
    assert rec.risk_level == "low"
    assert rec.confidence == 60
    assert rec.source == "fallback"
    assert "Farinha 00" in rec.email_draft
    assert rec.email_draft.endswith("Padoca Kitchen")

    calm = fallback_recommendations([])
    assert calm.target_discount == 5
    assert calm.risk_level == "medium"
    assert calm.arguments[-1] == "Good commercial relationship"


# =====================================================
# PRICE HISTORY + ANALYSIS
# =====================================================
async def test_history_only_uses_recent_confirmed_orders(db, supplier, products, offline_gemini):
    flour, cheese = products
    await add_quotation(db, supplier, [(flour, 10), (cheese, 2)])
    await add_quotation(db, supplier, [(flour, 11)], status=QuotationStatus.ordered)
    await add_quotation(db, supplier, [(flour, 1)], status=QuotationStatus.cancelled)
    await add_quotation(db, supplier, [(flour, 1)], days_ago=200)
    excluded = await add_quotation(db, supplier, [(flour, 99)], status=QuotationStatus.shipped)

    negotiator = PriceNegotiator(offline_gemini)
    prices = await negotiator.get_historical_prices(
        db, supplier.id, [flour.id], exclude_quotation_id=excluded.id
    )

    assert list(prices) == [flour.id]
    assert sorted(p["price"] for p in prices[flour.id]) == [10.0, 11.0]


async def test_history_is_cached_until_ttl(db, supplier, products, offline_gemini):
    flour, _ = products
    now = [0.0]
    negotiator = PriceNegotiator(offline_gemini, cache_ttl=600, clock=lambda: now[0])

    await add_quotation(db, supplier, [(flour, 10)])
    first = await negotiator.get_historical_prices(db, supplier.id, [flour.id])
    await add_quotation(db, supplier, [(flour, 12)])

    now[0] = 599
    assert await negotiator.get_historical_prices(db, supplier.id, [flour.id]) is first

    now[0] = 601
    fresh = await negotiator.get_historical_prices(db, supplier.id, [flour.id])
    assert len(fresh[flour.id]) == 2

    negotiator.clear_cache()
    assert negotiator._cache == {}


async def test_expired_history_is_evicted_on_next_load(db, supplier, products, offline_gemini):
    flour, cheese = products
    now = [0.0]
    negotiator = PriceNegotiator(offline_gemini, cache_ttl=600, clock=lambda: now[0])

    await negotiator.get_historical_prices(db, supplier.id, [flour.id])
    now[0] = 300
    await negotiator.get_historical_prices(db, supplier.id, [cheese.id])
    assert len(negotiator._cache) == 2

    now[0] = 700
    await negotiator.get_historical_prices(db, supplier.id, [flour.id, cheese.id])

    assert set(negotiator._cache) == {
        (supplier.id, (cheese.id,), None),
        (supplier.id, tuple(sorted([flour.id, cheese.id])), None),
    }


async def test_history_query_failure_returns_empty(db, supplier, products, offline_gemini, monkeypatch):
    async def broken(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(db, "execute", broken)

    assert await PriceNegotiator(offline_gemini).get_historical_prices(db, supplier.id, [1]) == {}


async def test_analyze_quotation_with_fallback_advice(db, supplier, products, offline_gemini):
    flour, _ = products
    for price in (10, 10, 11):
        await add_quotation(db, supplier, [(flour, price)])
    current = await add_quotation(db, supplier, [(flour, 12)], status=QuotationStatus.quoted, days_ago=0)

    analysis = await PriceNegotiator(offline_gemini).analyze_quotation(db, current)

    assert analysis.quotation_id == current.id
    assert [a.product_id for a in analysis.anomalies] == [flour.id]
    assert analysis.anomalies[0].severity == "high"
    assert analysis.savings_potential.potential_from_average == 16.67
    assert analysis.overall_score == 65
    assert analysis.recommendations.source == "fallback"


async def test_analyze_quotation_without_history_has_no_advice(db, supplier, products, offline_gemini):
    flour, _ = products
    current = await add_quotation(db, supplier, [(flour, 4)], status=QuotationStatus.quoted)

    analysis = await PriceNegotiator(offline_gemini).analyze_quotation(db, current)

    assert analysis.anomalies == []
    assert analysis.savings_potential.items_analyzed == 0
    assert analysis.overall_score == 0
    assert analysis.recommendations is None


@respx.mock
async def test_recommendations_from_model(db, supplier, products, gemini):
    flour, _ = products
    current = await add_quotation(db, supplier, [(flour, 12)], status=QuotationStatus.quoted)
    anomalies = detect_price_anomalies([item(flour.id)], {flour.id: history(10, 10, 11)})
    route = respx.post(GEMINI_TEXT_URL).respond(200, json=gemini_reply(json.dumps({
        "strategy": "Anchor on last quarter prices",
        "arguments": ["Three orders at 10.33 on average"],
        "targetDiscount": 7,
        "emailSubject": "Price review",
        "emailDraft": "Dear partner...",
        "confidence": 80,
        "riskLevel": "low",
    })))

    rec = await PriceNegotiator(gemini).generate_recommendations(current, anomalies)

    assert rec.source == "gemini"
    assert rec.target_discount == 7
    assert rec.arguments == ["Three orders at 10.33 on average"]
    assert "16.1% above" in json.loads(route.calls.last.request.content)["contents"][0]["parts"][0]["text"]


@respx.mock
async def test_recommendations_fall_back_on_bad_model_output(db, supplier, products, gemini):
    flour, _ = products
    current = await add_quotation(db, supplier, [(flour, 12)], status=QuotationStatus.quoted)
    respx.post(GEMINI_TEXT_URL).respond(200, json=gemini_reply('{"targetDiscount": "a lot"}'))

    rec = await PriceNegotiator(gemini).generate_recommendations(current, [])

    assert rec.source == "fallback"
