"""Tests for catalog search and upsert."""
from invoice_bot.models.product import Product
from invoice_bot.services.catalog import search_many, search_products, upsert_product


def test_search_is_case_insensitive_substring(db, products):
    found = search_products(db, "iphone")

    assert [p.name for p in found] == ["iPhone 15 Pro"]
    assert found[0].selling_price == 129900


def test_search_matches_category_and_color_in_storage_order(db, products):
    assert [p.name for p in search_products(db, "smartphones")] == [
        "iPhone 15 Pro", "Samsung Galaxy S24 Ultra",
    ]
    assert [p.name for p in search_products(db, "midnight")] == ["MacBook Air M3"]


def test_like_wildcards_are_literal(db, products):
    assert search_products(db, "%") == []
    assert search_products(db, "_") == []


def test_search_many_keeps_duplicates(db, products):
    found = search_many(db, ["iPhone", "iphone 15"])

    assert [p.id for p in found] == [products[0].id, products[0].id]


def test_upsert_updates_by_name(db, products):
    product, created = upsert_product(db, name="IPHONE 15 PRO", selling_price=119900, color="Natural")

    assert created is False
    assert product.id == products[0].id
    assert db.query(Product).count() == len(products)
    assert search_products(db, "iphone")[0].selling_price == 119900
