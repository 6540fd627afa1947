from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class InvoiceItemRecord(BaseModel):
    product_id: int
    product_name: str
    color: str = ""
    warranty: str = ""
    quantity: int
    unit_price: float
    discount_percent: float = 0.0
    amount: float


class InvoiceRecord(BaseModel):
    id: int
    invoice_number: str
    date: datetime
    customer_name: str
    customer_address: str
    customer_phone: str
    items: List[InvoiceItemRecord]
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_net: float
    delivery_charge: float
    total: float
    pdf_url: Optional[str] = None

    class Config:
        from_attributes = True


class InvoicePdfBase64(BaseModel):
    invoice_number: str
    filename: str
    content_type: str = "application/pdf"
    data: str  # base64
