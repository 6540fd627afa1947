"""Create all tables. Run on app startup."""
import logging

from invoice_bot.db.base import Base
from invoice_bot.db.session import engine
from invoice_bot.models import product, invoice, conversation_state  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
    logger.info(f"[DB] Tables ready: {', '.join(sorted(Base.metadata.tables))}")
