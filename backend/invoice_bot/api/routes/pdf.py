"""
PDF renderer service.

Same contract HttpPdfRenderer speaks: JSON payload in, raw PDF out on
success, JSON {"error": ...} body on failure.
"""
import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from invoice_bot.schemas.pdf import PdfRenderRequest
from invoice_bot.services.pdf_service import PDF_CONTENT_TYPE, invoice_filename, render_invoice_pdf

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("invoiceNumber", "customerName", "items")


@router.post("/generate-invoice-pdf")
async def generate_invoice_pdf(request: Request):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    if not isinstance(body, dict) or any(not body.get(name) for name in REQUIRED_FIELDS):
        return JSONResponse(status_code=400, content={"error": "Missing required fields"})

    try:
        payload = PdfRenderRequest.model_validate(body)
    except ValidationError as e:
        logger.info(f"[PDF] Invalid render request: {e.error_count()} errors")
        return JSONResponse(status_code=400, content={"error": "Invalid invoice data"})

    try:
        pdf_bytes = await asyncio.to_thread(render_invoice_pdf, payload)
    except Exception as e:
        logger.error(f"[PDF] Render failed for {payload.invoice_number}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to generate PDF"})

    logger.info(f"[PDF] Rendered {payload.invoice_number} ({len(pdf_bytes)} bytes)")
    return Response(
        content=pdf_bytes,
        media_type=PDF_CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{invoice_filename(payload.invoice_number)}"'
        },
    )
