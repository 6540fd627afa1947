"""
Telegram update handlers.

Thin adapter: pull (sender id, text) out of the update, hand it to the
orchestrator, send back whatever replies it produced. No conversation logic
lives here.
"""
import logging
from typing import List, Optional

from telegram import Message, Update
from telegram.ext import ContextTypes

from invoice_bot.agent.orchestrator import ConversationOrchestrator, Reply, get_orchestrator

logger = logging.getLogger(__name__)


async def reply_to_message(message: Message, replies: List[Reply]) -> None:
    """Send replies in order as answers to the incoming message."""
    for reply in replies:
        if reply.is_document:
            await message.reply_document(
                document=reply.document,
                filename=reply.filename,
                caption=reply.caption,
            )
        else:
            await message.reply_text(reply.text)


async def handle_message(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    orchestrator: Optional[ConversationOrchestrator] = None,
) -> None:
    """Every text message, commands included; the orchestrator recognizes commands itself."""
    if not update.message or not update.message.text or not update.effective_user:
        return

    user_id = update.effective_user.id
    logger.info(f"[Telegram] Message from user_id={user_id}")

    orchestrator = orchestrator or get_orchestrator()
    replies = await orchestrator.handle_message(user_id, update.message.text)
    await reply_to_message(update.message, replies)
