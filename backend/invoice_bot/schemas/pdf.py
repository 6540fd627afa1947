"""Wire format of the PDF renderer. Field names are the renderer's JSON contract."""
from pydantic import BaseModel, Field
from typing import List


class PdfLineItem(BaseModel):
    sl_no: int = Field(alias="slNo")
    item_name: str = Field(alias="itemName")
    quantity: int
    rate: float
    discount_row: float = Field(0.0, alias="discountRow")
    amount: float

    class Config:
        populate_by_name = True


class PdfRenderRequest(BaseModel):
    invoice_number: str = Field(alias="invoiceNumber")
    date: str  # DD-MM-YYYY
    customer_name: str = Field(alias="customerName")
    customer_address: str = Field("", alias="customerAddress")
    customer_phone: str = Field("", alias="customerPhone")
    items: List[PdfLineItem]
    net_total: float = Field(alias="netTotal")
    discount_net: float = Field(0.0, alias="discountNet")
    delivery_charge: float = Field(0.0, alias="deliveryCharge")
    grand_total: float = Field(alias="grandTotal")

    class Config:
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
