"""
Invoice + per-month counter.

Invoice rows are immutable once created except for pdf_url.
Items are stored as a JSON snapshot: prices are copied at creation time and
never follow later catalog changes.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Text
from sqlalchemy.types import JSON

from invoice_bot.db.base import Base, utc_now


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(16), unique=True, nullable=False, index=True)  # YYYYMMNNN
    date = Column(DateTime, nullable=False, default=utc_now, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_address = Column(Text, nullable=False)
    customer_phone = Column(String(32), nullable=False)
    # [{product_id, product_name, color, warranty, quantity, unit_price, discount_percent, amount}]
    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Float, nullable=False)
    tax_rate = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Float, nullable=False, default=0.0)
    discount_net = Column(Float, nullable=False, default=0.0)
    delivery_charge = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)
    pdf_url = Column(String(512), nullable=True)

    def __repr__(self):
        return f"<Invoice {self.invoice_number} total={self.total}>"


class InvoiceCounter(Base):
    """Last issued sequence number for one calendar month ("202601")."""
    __tablename__ = "invoice_counters"

    id = Column(Integer, primary_key=True, index=True)
    year_month = Column(String(6), unique=True, nullable=False, index=True)
    counter = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<InvoiceCounter {self.year_month}={self.counter}>"
