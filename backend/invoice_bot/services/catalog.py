"""
Product catalog access.

Search: one free-text query -> snapshots of every product whose name,
category or color contains the query (case-insensitive), in storage order.
No ranking, no pagination, no deduplication across queries.

Upsert: used by the seed script and catalog imports. The product name is the
natural key (case-insensitive); last write wins.
"""
import logging
from typing import Iterable, List

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invoice_bot.core.exceptions import CatalogError
from invoice_bot.db.base import utc_now
from invoice_bot.models.product import Product
from invoice_bot.schemas.draft import ProductSnapshot

logger = logging.getLogger(__name__)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_products(db: Session, query: str) -> List[ProductSnapshot]:
    """
    Substring search on name, category and color.

    Raises:
        CatalogError: the catalog could not be read
    """
    query = (query or "").strip()
    statement = select(Product).order_by(Product.id)
    if query:
        pattern = f"%{_escape_like(query.lower())}%"
        statement = statement.where(
            or_(
                func.lower(Product.name).like(pattern, escape="\\"),
                func.lower(Product.category).like(pattern, escape="\\"),
                func.lower(Product.color).like(pattern, escape="\\"),
            )
        )
    try:
        rows = db.execute(statement).scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"[Catalog] Search failed for {query!r}: {e}")
        raise CatalogError(f"Product search failed for {query!r}") from e

    logger.info(f"[Catalog] {query!r} -> {len(rows)} products")
    return [ProductSnapshot.model_validate(row) for row in rows]


def search_many(db: Session, queries: Iterable[str]) -> List[ProductSnapshot]:
    """One search per query, results concatenated in query order."""
    results: List[ProductSnapshot] = []
    for query in queries:
        results.extend(search_products(db, query))
    return results


def upsert_product(
    db: Session,
    name: str,
    selling_price: float,
    color: str = "",
    warranty: str = "",
    category: str = "",
    auto_commit: bool = True,
) -> tuple:
    """
    Insert or update a product by case-insensitive name.

    Returns (product, created).
    """
    name = name.strip()
    if not name:
        raise ValueError("Product name cannot be empty")
    if selling_price < 0:
        raise ValueError(f"Invalid price for {name!r}: {selling_price}")

    product = db.execute(
        select(Product).where(func.lower(Product.name) == name.lower())
    ).scalars().first()

    created = product is None
    if created:
        product = Product(name=name)
        db.add(product)

    product.color = color.strip()
    product.warranty = warranty.strip()
    product.category = category.strip()
    product.selling_price = float(selling_price)
    product.last_updated = utc_now()

    if auto_commit:
        db.commit()
        db.refresh(product)
    else:
        db.flush()
    return product, created
