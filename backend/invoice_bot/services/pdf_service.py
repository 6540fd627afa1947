"""
PDF Invoice Generation Service

Two renderers behind one interface:
- LocalPdfRenderer: builds the document in-process with reportlab
- HttpPdfRenderer: POSTs the JSON payload to an external renderer
  (PDF_SERVICE_URL). Success is a raw PDF body, failure a JSON error body.

The payload is flat and invoice-shaped (see schemas/pdf.py); renderers know
nothing about the database.
"""
import asyncio
import base64
import logging
from io import BytesIO
from pathlib import Path
from xml.sax.saxutils import escape

import httpx
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from invoice_bot.core.config import settings
from invoice_bot.core.exceptions import PdfRenderError
from invoice_bot.models.invoice import Invoice
from invoice_bot.schemas.pdf import PdfLineItem, PdfRenderRequest

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

TERMS_AND_CONDITIONS = [
    "1. Goods once sold will not be taken back.",
    "2. Warranty is provided by the manufacturer as stated per item.",
    "3. Please keep this invoice for warranty claims.",
]


def format_amount(amount: float) -> str:
    """Two decimals, thousands separators."""
    return f"{amount:,.2f}"


def format_money(amount: float) -> str:
    """Chat display: currency symbol + amount. The PDF uses format_amount (core fonts lack the symbol)."""
    return f"{settings.CURRENCY_SYMBOL} {format_amount(amount)}"


def invoice_filename(invoice_number: str) -> str:
    return f"{invoice_number}.pdf"


# ==============================================================================
# PAYLOAD
# ==============================================================================

def build_pdf_request(invoice: Invoice) -> PdfRenderRequest:
    """Flatten a stored invoice into the renderer payload."""
    items = []
    for sl_no, item in enumerate(invoice.items or [], 1):
        name = item["product_name"]
        if item.get("color"):
            name = f"{name} ({item['color']})"
        items.append(
            PdfLineItem(
                sl_no=sl_no,
                item_name=name,
                quantity=item["quantity"],
                rate=item["unit_price"],
                discount_row=item.get("discount_percent", 0.0),
                amount=item["amount"],
            )
        )

    return PdfRenderRequest(
        invoice_number=invoice.invoice_number,
        date=invoice.date.strftime("%d-%m-%Y"),
        customer_name=invoice.customer_name,
        customer_address=invoice.customer_address,
        customer_phone=invoice.customer_phone,
        items=items,
        net_total=invoice.subtotal,
        discount_net=invoice.discount_net,
        delivery_charge=invoice.delivery_charge,
        grand_total=invoice.total,
    )


def encode_pdf_base64(pdf_bytes: bytes) -> str:
    """Text-safe form of a PDF for JSON channels."""
    return base64.b64encode(pdf_bytes).decode("ascii")


def store_pdf(invoice_number: str, pdf_bytes: bytes, directory: str | None = None) -> str:
    """Write the PDF under PDF_STORAGE_DIR and return its path."""
    target_dir = Path(directory or settings.PDF_STORAGE_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / invoice_filename(invoice_number)
    path.write_bytes(pdf_bytes)
    return str(path)


# ==============================================================================
# REPORTLAB DOCUMENT
# ==============================================================================

def render_invoice_pdf(request: PdfRenderRequest) -> bytes:
    """
    Build the invoice document.

    Args:
        request: renderer payload

    Returns:
        PDF bytes
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.5*inch, bottomMargin=0.5*inch)

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=28,
        textColor=colors.black,
        spaceAfter=12
    )

    heading_style = ParagraphStyle(
        'InvoiceHeading',
        parent=styles['Heading2'],
        fontSize=12,
        textColor=colors.HexColor('#1f2937'),
        spaceAfter=4
    )

    normal_style = ParagraphStyle(
        'InvoiceNormal',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#374151')
    )

    right_style = ParagraphStyle('InvoiceRight', parent=normal_style, alignment=TA_RIGHT)

    elements.append(Paragraph("Invoice", title_style))
    elements.append(Paragraph(f"<b>Invoice No :</b> {request.invoice_number}", normal_style))
    elements.append(Paragraph(f"<b>Date :</b> {request.date}", normal_style))
    elements.append(Spacer(1, 0.3*inch))

    # Bill to / Biller
    billing_data = [
        [
            Paragraph("<b>Bill to</b>", heading_style),
            Paragraph("<b>Biller</b>", heading_style),
        ],
        [
            Paragraph(
                f"<b>{escape(request.customer_name)}</b><br/>{escape(request.customer_address)}<br/>"
                f"{escape(request.customer_phone)}",
                normal_style,
            ),
            Paragraph(f"<b>{escape(settings.COMPANY_NAME)}</b><br/>{escape(settings.COMPANY_ADDRESS)}", normal_style),
        ],
    ]
    billing_table = Table(billing_data, colWidths=[3.5*inch, 3*inch])
    billing_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements.append(billing_table)
    elements.append(Spacer(1, 0.3*inch))

    # Line items
    items_data = [[
        Paragraph("<b>Sl No.</b>", normal_style),
        Paragraph("<b>Item Name</b>", normal_style),
        Paragraph("<b>Quantity</b>", normal_style),
        Paragraph("<b>Rate</b>", normal_style),
        Paragraph("<b>Discount</b>", normal_style),
        Paragraph("<b>Amount</b>", normal_style),
    ]]
    for item in request.items:
        items_data.append([
            Paragraph(str(item.sl_no), normal_style),
            Paragraph(escape(item.item_name), normal_style),
            Paragraph(str(item.quantity), right_style),
            Paragraph(format_amount(item.rate), right_style),
            Paragraph(f"{item.discount_row:.2f}", right_style),
            Paragraph(format_amount(item.amount), right_style),
        ])

    items_table = Table(items_data, colWidths=[0.6*inch, 2.4*inch, 0.8*inch, 1.1*inch, 0.8*inch, 1.2*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#1f2937')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # Totals
    total_data = [
        ['', Paragraph("Net Total :", right_style), Paragraph(format_amount(request.net_total), right_style)],
        ['', Paragraph("Discount :", right_style), Paragraph(format_amount(request.discount_net), right_style)],
        ['', Paragraph("Delivery Charge :", right_style), Paragraph(format_amount(request.delivery_charge), right_style)],
        ['', Paragraph("<b>Grand Total :</b>", right_style),
         Paragraph(f"<b>{format_amount(request.grand_total)}</b>", right_style)],
    ]
    total_table = Table(total_data, colWidths=[3.4*inch, 1.5*inch, 2*inch])
    total_table.setStyle(TableStyle([
        ('LINEABOVE', (1, 3), (-1, 3), 1, colors.black),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    elements.append(total_table)
    elements.append(Spacer(1, 0.4*inch))

    elements.append(Paragraph("<b>Terms &amp; Conditions :</b>", heading_style))
    for term in TERMS_AND_CONDITIONS:
        elements.append(Paragraph(escape(term), normal_style))

    footer_style = ParagraphStyle(
        'Footer',
        parent=styles['Normal'],
        fontSize=8,
        textColor=colors.grey,
        alignment=TA_CENTER
    )
    elements.append(Spacer(1, 0.5*inch))
    elements.append(Paragraph("Thank you for your business!", footer_style))

    doc.build(elements)
    return buffer.getvalue()


# ==============================================================================
# RENDERERS
# ==============================================================================

class PdfRenderer:
    """Turns a renderer payload into PDF bytes. Raises PdfRenderError on failure."""

    async def render(self, request: PdfRenderRequest) -> bytes:
        raise NotImplementedError


class LocalPdfRenderer(PdfRenderer):
    async def render(self, request: PdfRenderRequest) -> bytes:
        try:
            # reportlab is synchronous; keep it off the event loop
            return await asyncio.to_thread(render_invoice_pdf, request)
        except Exception as e:
            logger.error(f"[PDF] Local render failed for {request.invoice_number}: {e}", exc_info=True)
            raise PdfRenderError(f"Local PDF render failed: {e}") from e


class HttpPdfRenderer(PdfRenderer):
    def __init__(self, url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def render(self, request: PdfRenderRequest) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=request.to_wire())
        except httpx.HTTPError as e:
            logger.error(f"[PDF] Renderer unreachable at {self.url}: {e}")
            raise PdfRenderError(f"PDF renderer unreachable: {e}") from e

        content_type = response.headers.get("content-type", "")
        if response.is_success and content_type.startswith(PDF_CONTENT_TYPE):
            return response.content

        detail = response.text
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("error") or body.get("detail") or detail
        logger.error(
            f"[PDF] Renderer error for {request.invoice_number}: "
            f"status={response.status_code} detail={detail}"
        )
        raise PdfRenderError(f"PDF renderer error: {detail}", status_code=response.status_code)


def get_pdf_renderer() -> PdfRenderer:
    if settings.PDF_SERVICE_URL:
        return HttpPdfRenderer(settings.PDF_SERVICE_URL, timeout=settings.PDF_SERVICE_TIMEOUT_SECONDS)
    return LocalPdfRenderer()
