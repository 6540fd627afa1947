"""Tests for invoice numbering and persistence."""
import threading
from datetime import datetime

import pytest

from invoice_bot.core.exceptions import InvoiceNumberCollisionError, StaleConversationError
from invoice_bot.models.invoice import Invoice, InvoiceCounter
from invoice_bot.schemas.draft import CustomerInfo, ProductSnapshot, QuantityLine
from invoice_bot.services.invoice_service import (
    attach_pdf_reference,
    create_invoice,
    format_invoice_number,
    get_invoice_by_number,
    list_recent_invoices,
    year_month_of,
)
from invoice_bot.services.pricing import compute_totals

JANUARY = datetime(2026, 1, 15, 10, 30)
FEBRUARY = datetime(2026, 2, 1, 0, 5)


@pytest.fixture
def customer():
    return CustomerInfo(name="Rahul Ahmed", address="Dhanmondi Road 27, Dhaka 1209", phone="01712345678")


@pytest.fixture
def totals():
    found = [
        ProductSnapshot(id=1, name="iPhone 15 Pro", color="Space Black", warranty="1 Year", selling_price=129900),
        ProductSnapshot(id=2, name="AirPods Pro (2nd Gen)", color="White", warranty="1 Year", selling_price=24900),
    ]
    quantities = [QuantityLine(product_index=0, quantity=1), QuantityLine(product_index=1, quantity=2)]
    return compute_totals(found, quantities, delivery_charge=60, discount_net=0)


def test_number_format():
    assert year_month_of(JANUARY) == "202601"
    assert format_invoice_number("202601", 7) == "202601007"
    assert format_invoice_number("202601", 1234) == "2026011234"


def test_sequential_numbers_within_month(db, customer, totals):
    numbers = [create_invoice(db, customer, totals, now=JANUARY).invoice_number for _ in range(3)]

    assert numbers == ["202601001", "202601002", "202601003"]


def test_counter_restarts_each_month(db, customer, totals):
    create_invoice(db, customer, totals, now=JANUARY)
    create_invoice(db, customer, totals, now=JANUARY)

    assert create_invoice(db, customer, totals, now=FEBRUARY).invoice_number == "202602001"
    assert create_invoice(db, customer, totals, now=JANUARY).invoice_number == "202601003"


def test_invoice_snapshot(db, customer, totals):
    invoice = create_invoice(db, customer, totals, now=JANUARY)

    assert invoice.total == 179760
    assert invoice.subtotal == 179700
    assert invoice.delivery_charge == 60
    assert invoice.customer_phone == "01712345678"
    assert invoice.items[1] == {
        "product_id": 2,
        "product_name": "AirPods Pro (2nd Gen)",
        "color": "White",
        "warranty": "1 Year",
        "quantity": 2,
        "unit_price": 24900.0,
        "discount_percent": 0.0,
        "amount": 49800.0,
    }


def test_collision_burns_the_number(db, customer, totals):
    db.add(Invoice(invoice_number="202601001", date=JANUARY, customer_name="x", customer_address="x",
                   customer_phone="x", items=[], subtotal=0, total=0))
    db.commit()

    with pytest.raises(InvoiceNumberCollisionError) as exc_info:
        create_invoice(db, customer, totals, now=JANUARY)
    assert exc_info.value.retryable
    assert db.query(InvoiceCounter).filter_by(year_month="202601").one().counter == 1

    assert create_invoice(db, customer, totals, now=JANUARY).invoice_number == "202601002"


def test_lost_claim_writes_nothing(db, customer, totals):
    create_invoice(db, customer, totals, now=JANUARY)

    def lost_claim(session):
        raise StaleConversationError(1001, 3)

    with pytest.raises(StaleConversationError):
        create_invoice(db, customer, totals, now=JANUARY, claim=lost_claim)

    assert db.query(Invoice).count() == 1
    assert db.query(InvoiceCounter).filter_by(year_month="202601").one().counter == 1
    assert create_invoice(db, customer, totals, now=JANUARY).invoice_number == "202601002"


def test_claim_runs_inside_the_invoice_transaction(db, customer, totals):
    seen = []

    def claim(session):
        seen.append(session.in_transaction())

    invoice = create_invoice(db, customer, totals, now=JANUARY, claim=claim)

    assert seen == [True]
    assert invoice.invoice_number == "202601001"


def test_concurrent_finalizes_get_unique_contiguous_numbers(file_session_factory, customer, totals):
    workers = 8
    numbers = []
    errors = []
    lock = threading.Lock()
    start = threading.Barrier(workers)

    def finalize():
        session = file_session_factory()
        try:
            start.wait()
            invoice = create_invoice(session, customer, totals, now=JANUARY)
            with lock:
                numbers.append(invoice.invoice_number)
        except Exception as e:  # surfaced by the assertion below
            with lock:
                errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=finalize) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    assert sorted(numbers) == [format_invoice_number("202601", n) for n in range(1, workers + 1)]


def test_lookups_and_pdf_reference(db, customer, totals):
    first = create_invoice(db, customer, totals, now=JANUARY)
    second = create_invoice(db, customer, totals, now=FEBRUARY)

    assert get_invoice_by_number(db, "202601001").id == first.id
    assert get_invoice_by_number(db, "209901001") is None
    assert [i.invoice_number for i in list_recent_invoices(db, limit=5)] == [
        second.invoice_number, first.invoice_number,
    ]

    attach_pdf_reference(db, first.id, "/tmp/202601001.pdf")
    db.expire_all()
    assert get_invoice_by_number(db, "202601001").pdf_url == "/tmp/202601001.pdf"
