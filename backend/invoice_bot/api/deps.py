"""FastAPI dependencies: DB session, orchestrator, PDF renderer, Telegram bot."""
from typing import Generator, Optional

from sqlalchemy.orm import Session
from telegram import Bot

from invoice_bot.agent.orchestrator import ConversationOrchestrator, get_orchestrator
from invoice_bot.db.session import SessionLocal
from invoice_bot.services.pdf_service import PdfRenderer, get_pdf_renderer
from invoice_bot.telegram.bot import get_webhook_bot


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_conversation_orchestrator() -> ConversationOrchestrator:
    return get_orchestrator()


def get_renderer() -> PdfRenderer:
    return get_pdf_renderer()


def get_bot() -> Optional[Bot]:
    return get_webhook_bot()
