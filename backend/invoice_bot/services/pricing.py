"""
Pricing engine.

Pure and deterministic: totals are always derived from scratch from the draft
(found products, quantity lines, delivery charge, flat discount). A price edit
never patches an earlier total.

    gross      = selling_price * quantity
    row_disc   = gross * discount_percent / 100
    net        = gross - row_disc
    subtotal   = sum(net)
    tax        = subtotal * tax_rate
    grand      = subtotal + tax + delivery_charge - discount_net

No rounding happens here; two decimals are a display concern. A grand total
below zero (flat discount larger than the invoice) is returned as is.
"""
from dataclasses import dataclass, field
from typing import List, Sequence

from invoice_bot.core.exceptions import StaleProductIndexError
from invoice_bot.schemas.draft import ProductSnapshot, QuantityLine


@dataclass(frozen=True)
class LineTotal:
    product: ProductSnapshot
    quantity: int
    discount_percent: float
    gross_amount: float
    row_discount: float
    net_amount: float


@dataclass(frozen=True)
class Totals:
    lines: List[LineTotal] = field(default_factory=list)
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    delivery_charge: float = 0.0
    discount_net: float = 0.0
    grand_total: float = 0.0


def compute_line(product: ProductSnapshot, line: QuantityLine) -> LineTotal:
    gross = product.selling_price * line.quantity
    row_discount = gross * line.discount_percent / 100
    return LineTotal(
        product=product,
        quantity=line.quantity,
        discount_percent=line.discount_percent,
        gross_amount=gross,
        row_discount=row_discount,
        net_amount=gross - row_discount,
    )


def compute_totals(
    found_products: Sequence[ProductSnapshot],
    quantities: Sequence[QuantityLine],
    delivery_charge: float = 0.0,
    discount_net: float = 0.0,
    tax_rate: float = 0.0,
) -> Totals:
    """
    Compute line and invoice totals.

    Raises:
        StaleProductIndexError: a quantity line points outside found_products
    """
    lines = []
    for line in quantities:
        if not 0 <= line.product_index < len(found_products):
            raise StaleProductIndexError(line.product_index, len(found_products))
        lines.append(compute_line(found_products[line.product_index], line))

    subtotal = sum(item.net_amount for item in lines)
    tax_amount = subtotal * tax_rate
    grand_total = subtotal + tax_amount + delivery_charge - discount_net

    return Totals(
        lines=lines,
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        delivery_charge=delivery_charge,
        discount_net=discount_net,
        grand_total=grand_total,
    )


def reprice_product(
    found_products: Sequence[ProductSnapshot], product_index: int, new_price: float
) -> List[ProductSnapshot]:
    """
    Return a new product list with one price replaced.

    The input list and its snapshots are left untouched.
    """
    if not 0 <= product_index < len(found_products):
        raise StaleProductIndexError(product_index, len(found_products))
    repriced = [product.model_copy() for product in found_products]
    repriced[product_index] = repriced[product_index].model_copy(update={"selling_price": new_price})
    return repriced
