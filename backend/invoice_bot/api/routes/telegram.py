"""
Telegram webhook.

Telegram retries any update that does not get a 2xx, so everything that is
not an authentication failure is acknowledged with {"ok": true}, malformed
envelopes included (they are logged and dropped).
"""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from telegram import Bot

from invoice_bot.agent.orchestrator import ConversationOrchestrator
from invoice_bot.api.deps import get_bot, get_conversation_orchestrator
from invoice_bot.core.audit import AuditLog
from invoice_bot.core.config import settings
from invoice_bot.core.exceptions import BusinessError
from invoice_bot.telegram.bot import send_replies

logger = logging.getLogger(__name__)

router = APIRouter()

ACK = {"ok": True}


def extract_text_message(update: dict) -> Optional[tuple]:
    """
    (user_id, chat_id, text) from a Telegram update, or None.

    Only plain text messages are handled; edits, photos, callbacks are ignored.
    """
    message = update.get("message")
    if not isinstance(message, dict):
        return None
    sender = message.get("from") or {}
    chat = message.get("chat") or {}
    text = message.get("text")
    user_id = sender.get("id")
    if not isinstance(text, str) or not isinstance(user_id, int):
        return None
    chat_id = chat.get("id") if isinstance(chat.get("id"), int) else user_id
    return user_id, chat_id, text


@router.post("/telegram-webhook")
async def telegram_webhook(
    request: Request,
    secret_token: Optional[str] = Header(None, alias="X-Telegram-Bot-Api-Secret-Token"),
    orchestrator: ConversationOrchestrator = Depends(get_conversation_orchestrator),
    bot: Optional[Bot] = Depends(get_bot),
):
    if settings.TELEGRAM_WEBHOOK_SECRET and not secrets.compare_digest(
        secret_token or "", settings.TELEGRAM_WEBHOOK_SECRET
    ):
        client_ip = request.client.host if request.client else ""
        AuditLog.log_webhook_rejected(ip_address=client_ip, details="bad secret token")
        raise BusinessError.unauthorized("telegram webhook secret mismatch")

    try:
        update = await request.json()
    except ValueError as e:
        logger.warning(f"[Webhook] Unparseable body: {e}")
        return ACK

    parsed = extract_text_message(update) if isinstance(update, dict) else None
    if parsed is None:
        logger.info("[Webhook] Ignoring non-text update")
        return ACK

    user_id, chat_id, text = parsed
    replies = await orchestrator.handle_message(user_id, text)
    await send_replies(chat_id, replies, bot=bot)
    return ACK
