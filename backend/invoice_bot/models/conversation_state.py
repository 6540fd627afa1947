"""
Conversation State Model: one invoice dialogue per Telegram user.

Every webhook call reads and writes this row; no dialogue state is kept in
process memory, so restarts and multiple workers see the same conversation.
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime
from sqlalchemy.types import JSON

from invoice_bot.db.base import Base, utc_now


class ConversationState(Base):
    """
    Persists FSM conversation state per Telegram user.

    Schema:
        user_id: Telegram user identifier (unique)
        stage: Current FSM stage (e.g., "awaiting_products")
        data: JSON blob with the invoice draft collected so far
        version: Bumped on every write, used for conditional updates
        created_at / updated_at: updated_at drives the 24h cleanup sweep

    Lifecycle:
        1. Created on first message or /start, /new
        2. Replaced on every stage transition
        3. Deleted on /cancel, on finalized invoice, or by the cleanup sweep
    """
    __tablename__ = "conversation_states"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(BigInteger, unique=True, nullable=False, index=True)
    stage = Column(String(64), nullable=False)
    data = Column(JSON, nullable=True, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    def __repr__(self):
        return f"<ConversationState user_id={self.user_id} stage={self.stage} v{self.version}>"
