import re
from datetime import date
from typing import Iterable, Optional

from app.core.config import DEFAULT_SENDER_NAME
from app.core.exceptions import GeminiError
from app.schemas.ai.ai_schemas import EmailDraft
from app.services.ai.gemini_client import GeminiClient
from app.utils.logger import get_logger

logger = get_logger(__name__)

_SUBJECT_RE = re.compile(r"SUBJECT:\s*(.+)", re.IGNORECASE)
_BODY_RE = re.compile(r"BODY:\s*([\s\S]*)", re.IGNORECASE)


def _today() -> str:
    return date.today().strftime("%d/%m/%Y")


def _format_quantity(value) -> str:
    return f"{float(value):g}"


def _request_lines(items: Iterable[dict]) -> str:
    return "\n".join(
        f"- {i['name']}: {_format_quantity(i['quantity'])} {i.get('unit') or 'units'}"
        for i in items
    )


def _order_lines(items: Iterable[dict]) -> str:
    lines = []
    for i in items:
        price = i.get("unit_price")
        price_txt = f"{float(price):.2f}" if price is not None else "N/A"
        lines.append(
            f"- {i['name']}: {_format_quantity(i['quantity'])} "
            f"{i.get('unit') or 'units'} @ {price_txt}"
        )
    return "\n".join(lines)


# =========================
# QUOTATION REQUEST
# =========================
async def generate_quotation_email(
    client: GeminiClient,
    *,
    supplier_name: str,
    items: list[dict],
    sender_name: str = DEFAULT_SENDER_NAME,
) -> EmailDraft:
    item_lines = _request_lines(items)
    default_subject = f"Quotation Request - {_today()}"

    prompt = f"""
You are a professional purchasing assistant for a pizzeria. Write a formal
email asking the supplier for a quotation on the items below.

Supplier: {supplier_name}
Items:
{item_lines}

Requirements:
1. Professional but friendly tone
2. Ask for the unit price and the delivery lead time
3. Mention that we expect an answer within 48 hours
4. Sign as "{sender_name}"

Answer ONLY with the email, no explanations.
Format:
SUBJECT: [subject line]
BODY:
[email body]
"""

    template = EmailDraft(
        subject=default_subject,
        body=(
            f"Dear {supplier_name},\n\n"
            f"We kindly request a quotation for the following items:\n{item_lines}\n\n"
            f"We look forward to your reply.\n\n"
            f"Best regards,\n{sender_name}"
        ),
        source="template",
    )

    try:
        result = await client.generate_content(prompt)
    except GeminiError as exc:
        logger.warning("Quotation email fell back to template: %s", exc)
        return template

    subject = _SUBJECT_RE.search(result)
    body = _BODY_RE.search(result)
    body = body.group(1).strip() if body else result.strip()
    if not body:
        logger.warning("Quotation email fell back to template: empty model answer")
        return template

    return EmailDraft(
        subject=subject.group(1).strip() if subject else default_subject,
        body=body,
        source="gemini",
    )


# =========================
# ORDER CONFIRMATION
# =========================
async def generate_confirmation_email(
    client: GeminiClient,
    *,
    supplier_name: str,
    ordered_items: list[dict],
    delivery_date: Optional[date] = None,
    sender_name: str = DEFAULT_SENDER_NAME,
) -> EmailDraft:
    subject = f"Order Confirmation - {_today()}"
    delivery_txt = delivery_date.strftime("%d/%m/%Y") if delivery_date else "to be confirmed"

    prompt = f"""
Write a short order confirmation email.

Supplier: {supplier_name}
Confirmed items:
{_order_lines(ordered_items)}
Delivery date: {delivery_txt}

The email must:
1. Thank the supplier for the quotation
2. Confirm the order
3. Restate the delivery date
4. Be brief and professional

Answer only with the email body, without a subject.
"""

    try:
        body = (await client.generate_content(prompt)).strip()
        source = "gemini"
    except GeminiError as exc:
        logger.warning("Confirmation email fell back to template: %s", exc)
        body = ""
        source = "template"

    if not body:
        body = (
            f"Dear {supplier_name},\n\n"
            f"We confirm the order as per your quotation.\n"
            f"Expected delivery: {delivery_txt}.\n\n"
            f"Best regards,\n{sender_name}"
        )
        source = "template"

    return EmailDraft(subject=subject, body=body, source=source)


# =========================
# FOLLOW-UP
# =========================
async def generate_follow_up_email(
    client: GeminiClient,
    *,
    supplier_name: str,
    reason: str,
    original_delivery_date: Optional[date] = None,
    sender_name: str = DEFAULT_SENDER_NAME,
) -> EmailDraft:
    subject = "Re: Order Follow-up"
    original_txt = (
        original_delivery_date.strftime("%d/%m/%Y")
        if original_delivery_date else "not specified"
    )

    prompt = f"""
Write a short follow-up email.

Supplier: {supplier_name}
Situation: {reason}
Originally promised date: {original_txt}

The email must:
1. Be polite but firm
2. Ask for a new date or a clarification
3. Keep a professional tone

Answer only with the email body.
"""

    try:
        body = (await client.generate_content(prompt)).strip()
    except GeminiError as exc:
        logger.warning("Follow-up email fell back to template: %s", exc)
        body = ""

    if not body:
        return EmailDraft(
            subject=subject,
            body=(
                f"Dear {supplier_name},\n\n"
                f"We would appreciate an update on our request ({reason}).\n\n"
                f"Looking forward to your reply.\n\n{sender_name}"
            ),
            source="template",
        )
    return EmailDraft(subject=subject, body=body, source="gemini")


# =========================
# THANK YOU (on receipt)
# =========================
async def generate_thank_you_email(
    client: GeminiClient,
    *,
    supplier_name: str,
    quotation_number: str,
    sender_name: str = DEFAULT_SENDER_NAME,
) -> EmailDraft:
    subject = f"Delivery Received - {quotation_number}"

    prompt = f"""
Write a brief thank-you email to the supplier {supplier_name} confirming that
order {quotation_number} was received in good condition. Sign as "{sender_name}".
Answer only with the email body.
"""

    try:
        body = (await client.generate_content(prompt)).strip()
    except GeminiError as exc:
        logger.warning("Thank-you email fell back to template: %s", exc)
        body = ""

    if not body:
        return EmailDraft(
            subject=subject,
            body=(
                f"Dear {supplier_name},\n\n"
                f"We confirm that order {quotation_number} was received. "
                f"Thank you for the partnership.\n\n"
                f"Best regards,\n{sender_name}"
            ),
            source="template",
        )
    return EmailDraft(subject=subject, body=body, source="gemini")
