from datetime import date
from typing import Optional

from app.core.exceptions import GeminiError
from app.schemas.ai.ai_schemas import SupplierAnalysis
from app.services.ai.gemini_client import GeminiClient, extract_json
from app.utils.logger import get_logger

logger = get_logger(__name__)

ANALYSIS_PROMPT = """
You are an assistant specialised in reading commercial emails from suppliers.
Analyse the supplier reply and extract ALL information as JSON.

IMPORTANT: identify problems such as
- unavailable or out-of-stock items
- delivery delays
- partial quantities
- changed prices

Supplier email:
\"\"\"
{email_body}
\"\"\"

Items expected in the quotation: {item_names}

Extract the following as valid JSON:
{{
    "hasQuote": boolean,
    "items": [
        {{
            "name": "item name",
            "unitPrice": number or null,
            "availableQuantity": number or null,
            "requestedQuantity": number or null,
            "unit": "unit of measure",
            "available": boolean,
            "partialAvailability": boolean,
            "unavailableReason": string or null,
            "alternativeOffered": string or null
        }}
    ],
    "deliveryDate": "YYYY-MM-DD" or null,
    "deliveryDays": number or null,
    "hasDelay": boolean,
    "delayReason": string or null,
    "paymentTerms": string or null,
    "totalQuote": number or null,
    "supplierNotes": string or null,
    "hasProblems": boolean,
    "problemSummary": string or null,
    "sentiment": "positive" | "neutral" | "negative",
    "urgency": "low" | "medium" | "high",
    "needsFollowUp": boolean,
    "followUpReason": string or null,
    "suggestedAction": "confirm" | "negotiate" | "cancel" | "wait"
}}

Answer ONLY with the JSON, no explanations or markdown.
"""

_NUMBER_FIELDS = ("unitPrice", "availableQuantity", "requestedQuantity")
_BOOL_FIELDS = ("available", "partialAvailability")


def _to_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("R$", "").strip()
    if "," in text and text.rfind(".") > text.rfind(","):
        text = text.replace(",", "")
    elif "," in text:
        # pt-BR: "1.234,56"
        text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return None


def _to_date(value) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _coerce(data: dict) -> dict:
    items = data.get("items")
    if not isinstance(items, list):
        raise GeminiError("Model response has no 'items' list")

    clean_items = []
    for raw in items:
        if not isinstance(raw, dict) or not raw.get("name"):
            continue
        item = dict(raw)
        item["name"] = str(raw["name"]).strip()
        for key in _NUMBER_FIELDS:
            item[key] = _to_number(raw.get(key))
        for key in _BOOL_FIELDS:
            if key in raw:
                item[key] = bool(raw[key])
        clean_items.append(item)

    data["items"] = clean_items
    data["deliveryDate"] = _to_date(data.get("deliveryDate"))
    days = _to_number(data.get("deliveryDays"))
    data["deliveryDays"] = int(days) if days is not None else None
    data["totalQuote"] = _to_number(data.get("totalQuote"))
    return data


async def analyze_supplier_response(
    client: GeminiClient,
    email_body: str,
    expected_item_names: list[str],
) -> SupplierAnalysis:
    """Extract per-item prices and delivery terms from a supplier reply.

    Never raises for model problems: any failure comes back as
    ``success=False`` with the error message.
    """
    prompt = ANALYSIS_PROMPT.format(
        email_body=email_body,
        item_names=", ".join(expected_item_names) or "not specified",
    )

    try:
        text = await client.generate_content(prompt)
        data = _coerce(extract_json(text))
    except GeminiError as exc:
        logger.warning("Supplier response analysis failed: %s", exc)
        return SupplierAnalysis(
            success=False,
            error=str(exc),
            data={
                "hasQuote": False,
                "items": [],
                "needsFollowUp": True,
                "followUpReason": "The reply could not be processed automatically",
            },
            raw_response=email_body,
        )

    return SupplierAnalysis(success=True, data=data, raw_response=email_body)


def match_quoted_item(item_name: str, quoted_items: list[dict]) -> Optional[dict]:
    """First returned item whose name contains, or is contained in, ``item_name``.

    Case-insensitive; candidates are tried in the order the model returned them.
    """
    needle = (item_name or "").lower().strip()
    if not needle:
        return None
    for quoted in quoted_items:
        name = (quoted.get("name") or "").lower().strip()
        if not name:
            continue
        if name in needle or needle in name:
            return quoted
    return None
