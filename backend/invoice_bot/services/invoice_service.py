"""
Invoice numbering and persistence.

Invoice numbers look like YYYYMMNNN (NNN restarts at 001 every calendar
month). They are printed on legal documents, so two invoices must never share
a number and the sequence must not skip under normal operation.

Numbering algorithm (one database transaction):
1. yearMonth from the invoice date
2. UPDATE invoice_counters SET counter = counter + 1 WHERE year_month = ?
   The row lock (SQLite: the RESERVED lock) taken by this statement is held
   until commit, so concurrent callers queue behind each other.
3. No row updated -> first invoice of the month: INSERT counter = 1.
   A concurrent INSERT wins the unique key -> rollback, start over at 2.
4. Read the counter back inside the same transaction: that is our sequence.
5. Defensive check that no invoice already carries the number. On collision
   the counter bump is committed (the number is burned) and a retryable
   InvoiceNumberCollisionError is raised, so the next attempt moves on.
6. Optional claim (finalize deletes the conversation at its loaded version),
   then insert the invoice with item prices copied by value, commit. Both
   land together or not at all.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_bot.core.exceptions import (
    InvoiceNumberCollisionError,
    InvoicePersistenceError,
    StaleConversationError,
)
from invoice_bot.db.base import utc_now
from invoice_bot.models.invoice import Invoice, InvoiceCounter
from invoice_bot.schemas.draft import CustomerInfo
from invoice_bot.services.pricing import Totals

logger = logging.getLogger(__name__)

# Attempts when the first-of-month INSERT races another caller
MAX_NUMBERING_ATTEMPTS = 3


def year_month_of(moment: datetime) -> str:
    return f"{moment.year}{moment.month:02d}"


def format_invoice_number(year_month: str, sequence: int) -> str:
    """"202601" + 7 -> "202601007"."""
    return f"{year_month}{sequence:03d}"


def build_invoice_items(totals: Totals) -> List[dict]:
    """Snapshot line items. Prices are copied, never referenced."""
    return [
        {
            "product_id": line.product.id,
            "product_name": line.product.name,
            "color": line.product.color,
            "warranty": line.product.warranty,
            "quantity": line.quantity,
            "unit_price": float(line.product.selling_price),
            "discount_percent": float(line.discount_percent),
            "amount": float(line.net_amount),
        }
        for line in totals.lines
    ]


def _claim_sequence(db: Session, year_month: str) -> int:
    """
    Increment-and-read the month counter. Leaves the transaction open.

    Raises:
        IntegrityError: another caller created the month's counter first
    """
    result = db.execute(
        update(InvoiceCounter)
        .where(InvoiceCounter.year_month == year_month)
        .values(counter=InvoiceCounter.counter + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.add(InvoiceCounter(year_month=year_month, counter=1))
        db.flush()
        logger.info(f"[InvoiceNumber] New counter for {year_month}")

    return db.execute(
        select(InvoiceCounter.counter).where(InvoiceCounter.year_month == year_month)
    ).scalar_one()


def create_invoice(
    db: Session,
    customer: CustomerInfo,
    totals: Totals,
    now: Optional[datetime] = None,
    claim: Optional[Callable[[Session], None]] = None,
) -> Invoice:
    """
    Assign the next invoice number for the month and persist the invoice.

    claim runs inside the invoice transaction right before the INSERT; if it
    raises StaleConversationError nothing is written.

    Raises:
        InvoiceNumberCollisionError: number already used (retryable)
        InvoicePersistenceError: database failure (retryable)
        StaleConversationError: claim lost to another writer
    """
    now = now or utc_now()
    year_month = year_month_of(now)
    items = build_invoice_items(totals)

    for attempt in range(1, MAX_NUMBERING_ATTEMPTS + 1):
        try:
            sequence = _claim_sequence(db, year_month)
        except IntegrityError:
            db.rollback()
            logger.warning(
                f"[InvoiceNumber] Counter for {year_month} created concurrently, "
                f"retrying (attempt {attempt}/{MAX_NUMBERING_ATTEMPTS})"
            )
            continue
        except SQLAlchemyError as e:
            db.rollback()
            raise InvoicePersistenceError(f"Could not claim invoice number: {e}") from e

        invoice_number = format_invoice_number(year_month, sequence)

        existing = db.execute(
            select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        ).first()
        if existing:
            # Counter and invoices are out of sync; burn the number
            db.commit()
            logger.error(f"[InvoiceNumber] Collision on {invoice_number}, counter advanced")
            raise InvoiceNumberCollisionError(invoice_number)

        if claim is not None:
            try:
                claim(db)
            except StaleConversationError:
                # Counter bump is rolled back with it, no number is burned
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                raise InvoicePersistenceError(f"Could not claim conversation: {e}") from e

        invoice = Invoice(
            invoice_number=invoice_number,
            date=now,
            customer_name=customer.name,
            customer_address=customer.address,
            customer_phone=customer.phone,
            items=items,
            subtotal=totals.subtotal,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            discount_net=totals.discount_net,
            delivery_charge=totals.delivery_charge,
            total=totals.grand_total,
        )
        db.add(invoice)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"[InvoiceNumber] Unique violation storing {invoice_number}: {e}")
            raise InvoiceNumberCollisionError(invoice_number) from e
        except SQLAlchemyError as e:
            db.rollback()
            raise InvoicePersistenceError(f"Could not store invoice {invoice_number}: {e}") from e

        db.refresh(invoice)
        logger.info(
            f"[Invoice] Created {invoice.invoice_number} for '{invoice.customer_name}' "
            f"items={len(items)} total={invoice.total:.2f}"
        )
        return invoice

    raise InvoicePersistenceError(
        f"Could not create counter for {year_month} after {MAX_NUMBERING_ATTEMPTS} attempts"
    )


def get_invoice_by_number(db: Session, invoice_number: str) -> Optional[Invoice]:
    return db.execute(
        select(Invoice).where(Invoice.invoice_number == invoice_number)
    ).scalar_one_or_none()


def list_recent_invoices(db: Session, limit: int = 10) -> List[Invoice]:
    """Newest first."""
    return list(
        db.execute(
            select(Invoice).order_by(Invoice.date.desc(), Invoice.id.desc()).limit(limit)
        ).scalars()
    )


def attach_pdf_reference(db: Session, invoice_id: int, pdf_url: str) -> None:
    """The only mutation an invoice accepts after creation."""
    db.execute(
        update(Invoice)
        .where(Invoice.id == invoice_id)
        .values(pdf_url=pdf_url)
        .execution_options(synchronize_session=False)
    )
    db.commit()
