"""Shared pytest fixtures.

Provides:
- Database fixtures (in-memory SQLite, file-based SQLite for concurrency tests)
- Seeded product catalog
- Fake PDF renderer and a ready-to-use orchestrator
"""
from collections.abc import Generator
from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from invoice_bot.agent.orchestrator import ConversationOrchestrator
from invoice_bot.core.exceptions import PdfRenderError
from invoice_bot.db.init_db import init_db
from invoice_bot.db.session import build_engine
from invoice_bot.schemas.pdf import PdfRenderRequest
from invoice_bot.services.catalog import upsert_product
from invoice_bot.services.pdf_service import PdfRenderer

OPERATOR_ID = 424242
STRANGER_ID = 777

FAKE_PDF = b"%PDF-1.4\n% fake invoice\n%%EOF\n"

SAMPLE_PRODUCTS = [
    ("iPhone 15 Pro", "Space Black", "1 Year", "Smartphones", 129900),
    ("AirPods Pro (2nd Gen)", "White", "1 Year", "Audio", 24900),
    ("Samsung Galaxy S24 Ultra", "Titanium Black", "1 Year", "Smartphones", 145000),
    ("MacBook Air M3", "Midnight", "1 Year", "Laptops", 175000),
]


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-based SQLite with the production pool policy, for multi-threaded tests."""
    engine = build_engine(f"sqlite:///{tmp_path / 'invoices.db'}")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def file_products(file_session_factory):
    """The sample catalog seeded into the file-based database."""
    session = file_session_factory()
    try:
        for name, color, warranty, category, price in SAMPLE_PRODUCTS:
            upsert_product(
                session, name=name, selling_price=price, color=color, warranty=warranty, category=category
            )
    finally:
        session.close()


@pytest.fixture
def products(db):
    """Seed the sample catalog. Returns the Product rows in insertion order."""
    rows = []
    for name, color, warranty, category, price in SAMPLE_PRODUCTS:
        product, _ = upsert_product(
            db, name=name, selling_price=price, color=color, warranty=warranty, category=category
        )
        rows.append(product)
    return rows


# ============================================================================
# Renderer / Orchestrator
# ============================================================================


class FakeRenderer(PdfRenderer):
    """Records requests; returns FAKE_PDF or fails on demand."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: List[PdfRenderRequest] = []

    async def render(self, request: PdfRenderRequest) -> bytes:
        self.requests.append(request)
        if self.fail:
            raise PdfRenderError("renderer down", status_code=503)
        return FAKE_PDF


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def orchestrator(session_factory, renderer, tmp_path):
    return ConversationOrchestrator(
        session_factory=session_factory,
        renderer=renderer,
        authorized_user_id=OPERATOR_ID,
        tax_rate=0.0,
        delivery_inside=60.0,
        delivery_outside=120.0,
        pdf_storage_dir=str(tmp_path / "pdfs"),
    )
