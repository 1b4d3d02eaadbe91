import logging
from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from shop_core.records import format_date
from utils.billing import to_decimal
from utils.enrichment import full_name, vehicle_identifier

logger = logging.getLogger(__name__)


def _address_line(address):
    if not address:
        return 'N/A'
    parts = [address.get('street'), address.get('postal_code'), address.get('city'), address.get('country')]
    return ', '.join(p for p in parts if p)


def _draw_headers(c, headers, columns, y, margin, width):
    c.setFont("Helvetica-Bold", 11)
    for i, head in enumerate(headers):
        c.drawString(columns[i], y, head)
    y -= 15
    c.line(margin, y, width - margin, y)
    c.setFont("Helvetica", 10)
    return y


def generate_invoice_pdf(invoice, client=None, vehicle=None, shop_name='', shop_phone='', currency='€'):
    """Render a stored invoice as PDF bytes."""
    logger.info("Rendering PDF for invoice %s", invoice.get('invoice_number'))

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    margin = 56.69  # ~2cm
    y = height - margin

    # --- Shop Info (Top Left) ---
    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin, y, shop_name or 'Workshop')
    if shop_phone:
        c.setFont("Helvetica", 9)
        c.drawString(margin, y - 15, f"Tel: {shop_phone}")

    y = height - 150

    # --- Document Title ---
    c.setFont("Helvetica-Bold", 18)
    c.drawRightString(width - margin, y, "INVOICE")
    c.setFont("Helvetica", 10)
    c.drawRightString(width - margin, y - 15, f"No: {invoice.get('invoice_number', 'N/A')}")
    y -= 50

    # --- Client & Vehicle ---
    c.setFont("Helvetica-Bold", 11)
    c.drawString(margin, y, "Client:")
    c.drawString(width / 2 + 10, y, "Vehicle:")
    y -= 15

    document = (client or {}).get('identity_document') or {}
    c.setFont("Helvetica", 10)
    c.drawString(margin, y, f"Name: {full_name(client)}")
    c.drawString(margin, y - 12, f"{document.get('type', 'ID')}: {document.get('number') or 'N/A'}")
    c.drawString(margin, y - 24, f"Address: {_address_line((client or {}).get('fiscal_address'))}")

    c.drawString(width / 2 + 10, y, vehicle_identifier(vehicle))
    c.drawString(width / 2 + 10, y - 12, f"VIN: {(vehicle or {}).get('vin') or 'N/A'}")
    c.drawString(width / 2 + 10, y - 24, f"Date: {format_date(invoice.get('date'))}")
    y -= 60

    # --- Table ---
    headers = ["Description", "Qty", "Unit Price", "Total"]
    col_widths = [0.5, 0.15, 0.15, 0.2]
    columns = [
        margin,
        margin + width * col_widths[0],
        margin + width * sum(col_widths[:2]),
        margin + width * sum(col_widths[:3])
    ]
    y = _draw_headers(c, headers, columns, y, margin, width)

    services = invoice.get('services') or []
    if not services:
        c.drawString(margin, y - 20, "No items listed.")
        y -= 40

    for item in services:
        desc = str(item.get('description', '') or '')
        max_chars = 60
        desc_lines = [desc[i:i + max_chars] for i in range(0, len(desc), max_chars)] or [""]

        for line in desc_lines:
            if y < 100:
                c.showPage()
                y = _draw_headers(c, headers, columns, height - margin, margin, width)
            c.drawString(columns[0], y - 15, line)
            y -= 15

        c.drawString(columns[1], y, f"{to_decimal(item.get('quantity')):g}")
        c.drawString(columns[2], y, f"{to_decimal(item.get('unit_price')):.2f}{currency}")
        c.drawString(columns[3], y, f"{to_decimal(item.get('total')):.2f}{currency}")
        y -= 10

    # --- Totals (as stored) ---
    y -= 30
    if y < 100:
        c.showPage()
        y = height - margin

    c.setFont("Helvetica-Bold", 11)
    for label, key in (("Subtotal:", 'subtotal_amount'), ("VAT (21%):", 'vat_amount'), ("Total:", 'total_amount')):
        c.drawRightString(width - margin - 80, y, label)
        c.drawRightString(width - margin, y, f"{to_decimal(invoice.get(key)):.2f}{currency}")
        y -= 15

    if invoice.get('notes'):
        y -= 20
        c.setFont("Helvetica", 9)
        c.drawString(margin, y, f"Notes: {invoice['notes'][:100]}")

    c.save()
    buffer.seek(0)
    return buffer.getvalue()
