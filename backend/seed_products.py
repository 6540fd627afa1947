"""Seed the product catalog with sample gadgets.

Usage:
    python seed_products.py                 # built-in sample catalog
    python seed_products.py products.json   # list of {name, color, warranty, category, selling_price}
"""
import json
import sys
from pathlib import Path

from invoice_bot.db.init_db import init_db
from invoice_bot.db.session import SessionLocal
from invoice_bot.services.catalog import upsert_product

SAMPLE_PRODUCTS = [
    {"name": "iPhone 15 Pro", "color": "Space Black", "warranty": "1 Year",
     "category": "Smartphones", "selling_price": 129900},
    {"name": "AirPods Pro (2nd Gen)", "color": "White", "warranty": "1 Year",
     "category": "Audio", "selling_price": 24900},
    {"name": "Samsung Galaxy S24 Ultra", "color": "Titanium Black", "warranty": "1 Year",
     "category": "Smartphones", "selling_price": 145000},
    {"name": "MacBook Air M3", "color": "Midnight", "warranty": "1 Year",
     "category": "Laptops", "selling_price": 175000},
    {"name": "iPad Pro 12.9", "color": "Space Gray", "warranty": "1 Year",
     "category": "Tablets", "selling_price": 95000},
]


def seed_products(products=None):
    init_db()
    db = SessionLocal()
    created_count = 0
    try:
        for item in products or SAMPLE_PRODUCTS:
            product, created = upsert_product(
                db,
                name=item["name"],
                selling_price=float(item["selling_price"]),
                color=item.get("color", ""),
                warranty=item.get("warranty", ""),
                category=item.get("category", ""),
                auto_commit=False,
            )
            created_count += int(created)
            print(f"{'✅ Added' if created else '🔄 Updated'}: {product.name} ({product.selling_price:,.0f})")
        db.commit()
        print(f"\n✅ Catalog seeded: {created_count} new, {len(products or SAMPLE_PRODUCTS) - created_count} updated")
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding catalog: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    data = None
    if len(sys.argv) > 1:
        data = json.loads(Path(sys.argv[1]).read_text(encoding="utf-8"))
    seed_products(data)
