"""Tests for the pricing engine."""
import pytest

from invoice_bot.core.exceptions import StaleProductIndexError
from invoice_bot.schemas.draft import ProductSnapshot, QuantityLine
from invoice_bot.services.pricing import compute_totals, reprice_product


@pytest.fixture
def found():
    return [
        ProductSnapshot(id=1, name="iPhone 15 Pro", color="Space Black", warranty="1 Year", selling_price=129900),
        ProductSnapshot(id=2, name="AirPods Pro (2nd Gen)", color="White", warranty="1 Year", selling_price=24900),
    ]


def test_reference_invoice_total(found):
    quantities = [QuantityLine(product_index=0, quantity=1), QuantityLine(product_index=1, quantity=2)]

    totals = compute_totals(found, quantities, delivery_charge=60, discount_net=0)

    assert totals.subtotal == 179700
    assert totals.grand_total == 179760
    assert [line.net_amount for line in totals.lines] == [129900, 49800]


def test_same_inputs_same_totals(found):
    quantities = [QuantityLine(product_index=1, quantity=3, discount_percent=5)]

    first = compute_totals(found, quantities, delivery_charge=120, discount_net=100, tax_rate=0.05)
    second = compute_totals(found, quantities, delivery_charge=120, discount_net=100, tax_rate=0.05)

    assert first == second


def test_row_discount_and_tax(found):
    quantities = [QuantityLine(product_index=1, quantity=2, discount_percent=10)]

    totals = compute_totals(found, quantities, delivery_charge=60, discount_net=500, tax_rate=0.05)

    line = totals.lines[0]
    assert line.gross_amount == 49800
    assert line.row_discount == pytest.approx(4980)
    assert totals.subtotal == pytest.approx(44820)
    assert totals.tax_amount == pytest.approx(2241)
    assert totals.grand_total == pytest.approx(44820 + 2241 + 60 - 500)


def test_discount_larger_than_invoice_goes_negative(found):
    totals = compute_totals(found, [QuantityLine(product_index=1, quantity=1)], discount_net=30000)

    assert totals.grand_total == -5100


def test_stale_index_raises(found):
    with pytest.raises(StaleProductIndexError) as exc_info:
        compute_totals(found, [QuantityLine(product_index=5, quantity=1)])

    assert exc_info.value.product_count == 2


def test_reprice_returns_new_list(found):
    repriced = reprice_product(found, 0, 125000)

    assert repriced[0].selling_price == 125000
    assert found[0].selling_price == 129900
    assert repriced[1] == found[1]
    assert repriced is not found


def test_reprice_stale_index(found):
    with pytest.raises(StaleProductIndexError):
        reprice_product(found, 2, 100)
