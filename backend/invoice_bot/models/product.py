"""
Product catalog entry.

Written by the catalog sync/seed path only. Conversations read snapshots of
these rows; a price edited inside a conversation never touches this table.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime

from invoice_bot.db.base import Base, utc_now


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)  # natural key, case-insensitive
    color = Column(String(128), nullable=False, default="")
    warranty = Column(String(128), nullable=False, default="")
    category = Column(String(128), nullable=False, default="")
    selling_price = Column(Float, nullable=False, default=0.0)
    last_updated = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Product id={self.id} name={self.name!r} price={self.selling_price}>"
