"""Records: read-only invoice lookups."""
import logging
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from invoice_bot.api.deps import get_db, get_renderer
from invoice_bot.core.exceptions import BusinessError, PdfRenderError
from invoice_bot.schemas.records import InvoicePdfBase64, InvoiceRecord
from invoice_bot.services.invoice_service import get_invoice_by_number, list_recent_invoices
from invoice_bot.services.pdf_service import (
    PDF_CONTENT_TYPE,
    PdfRenderer,
    build_pdf_request,
    encode_pdf_base64,
    invoice_filename,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/invoices", response_model=List[InvoiceRecord])
def list_invoices(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Most recent invoices, newest first."""
    return list_recent_invoices(db, limit=limit)


@router.get("/invoices/{invoice_number}", response_model=InvoiceRecord)
def get_invoice(invoice_number: str, db: Session = Depends(get_db)):
    invoice = get_invoice_by_number(db, invoice_number)
    if not invoice:
        raise BusinessError.not_found("Invoice", reason=invoice_number)
    return invoice


@router.get("/invoices/{invoice_number}/pdf")
async def get_invoice_pdf(
    invoice_number: str,
    encoding: str = Query("binary", pattern="^(binary|base64)$"),
    db: Session = Depends(get_db),
    renderer: PdfRenderer = Depends(get_renderer),
):
    """
    The invoice document: the stored file when there is one, a fresh render otherwise.

    ?encoding=base64 returns JSON for channels that cannot carry binary.
    """
    invoice = get_invoice_by_number(db, invoice_number)
    if not invoice:
        raise BusinessError.not_found("Invoice", reason=invoice_number)

    pdf_bytes = None
    if invoice.pdf_url and Path(invoice.pdf_url).is_file():
        pdf_bytes = Path(invoice.pdf_url).read_bytes()
    else:
        try:
            pdf_bytes = await renderer.render(build_pdf_request(invoice))
        except PdfRenderError as e:
            raise BusinessError.server_error(e)

    filename = invoice_filename(invoice.invoice_number)
    if encoding == "base64":
        return InvoicePdfBase64(
            invoice_number=invoice.invoice_number,
            filename=filename,
            data=encode_pdf_base64(pdf_bytes),
        )
    return Response(
        content=pdf_bytes,
        media_type=PDF_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
