"""
Invoice draft carried in ConversationState.data.

One model with optional fields. Each stage declares what it needs through
InvoiceDraft.require(); nothing downstream assumes a field exists because of
the stage name alone.
"""
from pydantic import BaseModel
from typing import List, Optional

from invoice_bot.core.exceptions import InvalidDraftError


class CustomerInfo(BaseModel):
    name: str
    address: str
    phone: str  # normalized 01XXXXXXXXX


class ProductSnapshot(BaseModel):
    """Copy of a catalog row taken at search time."""
    id: int
    name: str
    color: str = ""
    warranty: str = ""
    selling_price: float

    class Config:
        from_attributes = True


class QuantityLine(BaseModel):
    product_index: int  # 0-based into found_products
    quantity: int
    discount_percent: float = 0.0


class InvoiceDraft(BaseModel):
    customer_info: Optional[CustomerInfo] = None
    found_products: Optional[List[ProductSnapshot]] = None
    quantities: Optional[List[QuantityLine]] = None
    delivery_charge: Optional[float] = None
    discount_net: Optional[float] = None
    subtotal: Optional[float] = None
    total: Optional[float] = None

    def require(self, *fields: str) -> "InvoiceDraft":
        """Raise InvalidDraftError naming every field that is absent or empty."""
        missing = [f for f in fields if getattr(self, f) is None or getattr(self, f) == []]
        if missing:
            raise InvalidDraftError(missing)
        return self

    def evolve(self, **changes) -> "InvoiceDraft":
        """Full copy with some fields replaced. The state store always receives a whole draft."""
        return self.model_copy(update=changes, deep=True)

    @classmethod
    def load(cls, data: Optional[dict]) -> "InvoiceDraft":
        return cls.model_validate(data or {})

    def dump(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
