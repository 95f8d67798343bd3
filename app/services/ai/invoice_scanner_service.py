import re
from datetime import datetime, timezone
from typing import Optional

from rapidfuzz import fuzz, process

from app.core.exceptions import GeminiError
from app.services.ai.gemini_client import GeminiClient, extract_json
from app.utils.logger import get_logger

logger = get_logger(__name__)

FUZZY_MATCH_THRESHOLD = 60
MATCHED_CONFIDENCE = 0.9
MAX_SUGGESTIONS = 3

INVOICE_EXTRACTION_PROMPT = """You are an expert in reading supplier invoices and till receipts.
Analyse this invoice image and extract EVERY listed item.

For each item extract:
- rawName: the name exactly as printed
- quantity: number of units (1 when not stated)
- unit: unit of measure (kg, g, L, ml, un, cx, pct)
- unitPrice: price per unit
- totalPrice: line total

Also extract the document metadata:
- vendor: name of the establishment
- taxId: company tax id if visible
- date: purchase date (YYYY-MM-DD)
- invoiceNumber: document number

CRITICAL:
- Be precise with numeric values
- Normalise units (kilograms -> kg, litres -> L)
- Use null for unreadable fields
- Return ONLY valid JSON, no markdown

Answer ONLY in this JSON format:
{
    "success": true,
    "metadata": {
        "vendor": "vendor name",
        "taxId": "00.000.000/0000-00",
        "date": "2024-01-15",
        "invoiceNumber": "123456",
        "totalValue": 150.00
    },
    "items": [
        {
            "rawName": "FARINHA TRIGO 25KG",
            "quantity": 1,
            "unit": "un",
            "unitPrice": 89.90,
            "totalPrice": 89.90,
            "confidence": 0.95
        }
    ],
    "overallConfidence": 0.92
}"""

SEMANTIC_MATCH_PROMPT = """You map product names from invoices to an existing inventory.

Invoice product: "{raw_name}"

Existing inventory products:
{candidates}

Task: decide whether the invoice product corresponds to one of the existing products.

Consider:
- name variations (Coca-Cola = Soda Can Coke)
- common abbreviations (FAR TRI 25K = Wheat Flour 25kg)
- different spellings
- sizes or quantities inside the name

Answer ONLY with JSON:
{{
    "matchFound": true/false,
    "matchedIndex": number or null,
    "confidence": 0.0 to 1.0,
    "canonicalName": "suggested canonical name",
    "reasoning": "short explanation"
}}"""

_DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+;base64,")

ABBREVIATIONS = {
    "FAR": "Farinha",
    "TRI": "Trigo",
    "ACU": "Açúcar",
    "REF": "Refrigerante",
    "AZ": "Azeitona",
    "MOZ": "Mozzarella",
    "MUSS": "Mussarela",
    "TOM": "Tomate",
    "MOL": "Molho",
}
_ABBREV_RE = re.compile(
    r"\b(" + "|".join(ABBREVIATIONS) + r")\b", re.IGNORECASE
)


def normalize_product_name(raw_name: Optional[str]) -> str:
    if not raw_name:
        return ""
    expanded = _ABBREV_RE.sub(lambda m: ABBREVIATIONS[m.group(1).upper()], raw_name)
    expanded = re.sub(r"\s+", " ", expanded).strip()
    return " ".join(word[:1].upper() + word[1:].lower() for word in expanded.split(" "))


# =========================
# SCAN
# =========================
async def scan_invoice(client: GeminiClient, image_base64: str, mime_type: str = "image/jpeg") -> dict:
    """Extract invoice metadata and items from a photo. Raises ``GeminiError``."""
    clean = _DATA_URI_RE.sub("", image_base64.strip())

    text = await client.generate_content(
        INVOICE_EXTRACTION_PROMPT,
        image_base64=clean,
        mime_type=mime_type,
        temperature=0.1,
        max_output_tokens=4096,
    )
    data = extract_json(text)
    data.setdefault("items", [])
    data["aiMetadata"] = {
        "model": client.vision_model,
        "analyzedAt": datetime.now(timezone.utc).isoformat(),
    }
    return data


# =========================
# PRODUCT MATCHING
# =========================
def _no_match(raw_name: str, suggestions: list[dict]) -> dict:
    return {
        "matchFound": False,
        "matchedProduct": None,
        "confidence": 0.0,
        "canonicalName": normalize_product_name(raw_name),
        "reasoning": None,
        "suggestions": suggestions,
    }


def find_similar_products(raw_name: str, products: list[dict], limit: int = MAX_SUGGESTIONS) -> list[dict]:
    choices = {i: p["name"] for i, p in enumerate(products)}
    results = process.extract(
        raw_name,
        choices,
        scorer=fuzz.token_set_ratio,
        processor=lambda s: s.lower(),
        limit=limit,
    )
    return [
        {**products[idx], "matchScore": round(score / 100, 2)}
        for _, score, idx in results
        if score > 20
    ]


def fuzzy_match_product(raw_name: str, products: list[dict]) -> dict:
    similar = find_similar_products(raw_name, products)
    top = similar[0] if similar else None

    if top and top["matchScore"] * 100 >= FUZZY_MATCH_THRESHOLD:
        return {
            "matchFound": True,
            "matchedProduct": top,
            "confidence": top["matchScore"],
            "canonicalName": top["name"],
            "reasoning": "Fuzzy match based on token similarity",
            "suggestions": similar[1:],
        }
    return _no_match(raw_name, similar)


async def match_product(client: GeminiClient, raw_name: str, products: list[dict]) -> dict:
    """Semantic match through the model, fuzzy match when the model is unavailable."""
    if not products:
        return _no_match(raw_name, [])
    if not client.is_ready:
        return fuzzy_match_product(raw_name, products)

    candidates = "\n".join(
        f'{i}. "{p["name"]}" ({p.get("unit") or "un"})' for i, p in enumerate(products)
    )
    prompt = SEMANTIC_MATCH_PROMPT.format(raw_name=raw_name, candidates=candidates)

    try:
        parsed = await client.generate_json(prompt, temperature=0.1, max_output_tokens=512)
    except GeminiError as exc:
        logger.info("Semantic match fell back to fuzzy matching: %s", exc)
        return fuzzy_match_product(raw_name, products)

    try:
        confidence = float(parsed.get("confidence") or 0)
    except (TypeError, ValueError):
        logger.info("Semantic match fell back to fuzzy matching: bad confidence %r", parsed.get("confidence"))
        return fuzzy_match_product(raw_name, products)

    index = parsed.get("matchedIndex")
    matched = products[index] if isinstance(index, int) and 0 <= index < len(products) else None
    found = bool(parsed.get("matchFound")) and matched is not None

    return {
        "matchFound": found,
        "matchedProduct": matched if found else None,
        "confidence": confidence,
        "canonicalName": parsed.get("canonicalName") or normalize_product_name(raw_name),
        "reasoning": parsed.get("reasoning"),
        "suggestions": [] if found else find_similar_products(raw_name, products),
    }


async def process_invoice_items(client: GeminiClient, scanned_items: list[dict], products: list[dict]) -> list[dict]:
    processed = []
    for item in scanned_items:
        raw_name = item.get("rawName") or ""
        result = await match_product(client, raw_name, products)
        if result["matchFound"]:
            status = "matched" if result["confidence"] >= MATCHED_CONFIDENCE else "review"
        else:
            status = "new"
        processed.append({
            **item,
            "matchResult": result,
            "status": status,
            "canonicalName": result["canonicalName"] or normalize_product_name(raw_name),
        })
    return processed


# =========================
# VALIDATION
# =========================
def validate_extraction(invoice_data: dict) -> dict:
    errors: list[dict] = []
    warnings: list[dict] = []

    overall = invoice_data.get("overallConfidence")
    if overall is not None and overall < 0.7:
        warnings.append({
            "code": "LOW_CONFIDENCE",
            "message": "Overall extraction confidence is below 70%",
        })

    items = invoice_data.get("items") or []
    if not items:
        errors.append({"code": "NO_ITEMS", "message": "No items were extracted from the invoice"})

    for index, item in enumerate(items, start=1):
        name = item.get("rawName")
        if not name:
            errors.append({"code": "MISSING_NAME", "message": f"Item {index}: name not identified"})

        unit_price = item.get("unitPrice")
        if unit_price and unit_price > 10000:
            warnings.append({
                "code": "HIGH_PRICE",
                "message": f"{name}: unit price is very high ({unit_price})",
            })

        quantity = item.get("quantity")
        if quantity and quantity > 1000:
            warnings.append({
                "code": "HIGH_QUANTITY",
                "message": f"{name}: quantity is very high ({quantity})",
            })

        confidence = item.get("confidence")
        if confidence and confidence < 0.5:
            warnings.append({
                "code": "LOW_ITEM_CONFIDENCE",
                "message": f"{name}: low extraction confidence",
            })

    return {
        "valid": not errors,
        "errors": errors,
        "warnings": warnings,
        "canProceed": not errors,
    }
