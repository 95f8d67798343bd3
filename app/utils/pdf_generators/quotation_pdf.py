from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.core.config import DEFAULT_SENDER_NAME
from app.models.purchasing.quotation_models import Quotation


def _money(value) -> str:
    return f"R$ {float(value or 0):.2f}"


def build_quotation_pdf(quotation: Quotation) -> bytes:
    """
    Purchase request PDF: supplier block, requested items with
    estimated and quoted prices, totals and delivery terms.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=30,
        title=f"Purchase request {quotation.quotation_number}",
    )
    styles = getSampleStyleSheet()
    elements = []

    # -------------------------------
    # Header
    # -------------------------------
    elements.append(Paragraph(f"<b>{DEFAULT_SENDER_NAME}</b>", styles["Title"]))
    elements.append(Paragraph("Purchase Request", styles["Normal"]))
    elements.append(Spacer(1, 12))

    elements.append(Paragraph(f"<b>Quotation #: </b>{quotation.quotation_number}", styles["Heading2"]))
    elements.append(Paragraph(f"Status: {quotation.status.value}", styles["Normal"]))
    if quotation.created_at:
        elements.append(Paragraph(f"Issue Date: {quotation.created_at.strftime('%d/%m/%Y')}", styles["Normal"]))
    elements.append(Spacer(1, 10))

    # -------------------------------
    # Supplier
    # -------------------------------
    elements.append(Paragraph("<b>Supplier</b>", styles["Heading3"]))
    elements.append(Paragraph(f"Name: {escape(quotation.supplier_name)}", styles["Normal"]))
    elements.append(Paragraph(f"Email: {quotation.supplier_email or '-'}", styles["Normal"]))
    elements.append(Spacer(1, 12))

    # -------------------------------
    # Items
    # -------------------------------
    data = [["#", "Product", "Qty", "Unit", "Estimated", "Quoted", "Line Total"]]
    for i, item in enumerate(quotation.items, start=1):
        data.append([
            i,
            item.product_name,
            f"{float(item.quantity):g}",
            item.unit,
            _money(item.estimated_unit_price),
            _money(item.quoted_unit_price) if item.quoted_unit_price is not None else "-",
            _money(item.quantity * item.effective_unit_price),
        ])

    data.append(["", "", "", "", "", "Estimated", _money(quotation.estimated_total)])
    if quotation.quoted_total is not None:
        data.append(["", "", "", "", "", "Quoted", _money(quotation.quoted_total)])

    table = Table(data, colWidths=[25, 170, 45, 40, 75, 75, 80])
    table.setStyle(
        TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
        ])
    )
    elements.append(table)
    elements.append(Spacer(1, 20))

    # -------------------------------
    # Terms
    # -------------------------------
    terms = []
    if quotation.delivery_date:
        terms.append(f"Delivery date: {quotation.delivery_date.strftime('%d/%m/%Y')}")
    if quotation.delivery_days is not None:
        terms.append(f"Delivery in {quotation.delivery_days} day(s)")
    if quotation.payment_terms:
        terms.append(f"Payment terms: {escape(quotation.payment_terms)}")
    if terms:
        elements.append(Paragraph("<b>Terms</b>", styles["Heading3"]))
        for line in terms:
            elements.append(Paragraph(line, styles["Normal"]))
        elements.append(Spacer(1, 12))

    if quotation.notes:
        elements.append(Paragraph("<b>Notes:</b>", styles["Heading3"]))
        elements.append(Paragraph(escape(quotation.notes), styles["Normal"]))
        elements.append(Spacer(1, 12))

    doc.build(elements)
    return buffer.getvalue()
