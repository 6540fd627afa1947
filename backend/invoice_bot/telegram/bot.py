"""
python-telegram-bot wiring.

Two delivery modes (TELEGRAM_MODE):
- "polling": an Application polls Telegram from a background thread with its
  own event loop; updates go through telegram/handlers.py.
- "webhook": Telegram POSTs updates to /telegram-webhook; replies are sent
  with a shared Bot initialized in the FastAPI lifespan.
"""
import asyncio
import logging
import threading
from typing import List, Optional

from telegram import Bot, error
from telegram.ext import Application, MessageHandler, filters

from invoice_bot.agent.orchestrator import Reply
from invoice_bot.core.config import settings
from invoice_bot.telegram.handlers import handle_message

logger = logging.getLogger(__name__)

_bot_app: Optional[Application] = None
_bot_loop: Optional[asyncio.AbstractEventLoop] = None
_webhook_bot: Optional[Bot] = None


def build_application(token: str) -> Application:
    app = Application.builder().token(token).build()
    app.add_handler(MessageHandler(filters.TEXT, handle_message))
    return app


# ==============================================================================
# POLLING MODE
# ==============================================================================

async def _start_polling_with_retry(app, max_retries=3, initial_backoff=2):
    for attempt in range(max_retries):
        try:
            logger.info(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[Telegram] Polling started")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[Telegram] Conflict detected: {e}. Retrying in {backoff}s")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[Telegram] Failed after {max_retries} retries. Bot disabled. Error: {e}")
                return False
        except error.TelegramError as e:
            logger.error(f"[Telegram] Unexpected error starting polling: {e}")
            return False
    return False


async def _shutdown_application(app: Application):
    if app.updater and app.updater.running:
        await app.updater.stop()
    if app.running:
        await app.stop()
    await app.shutdown()


def _run_bot():
    global _bot_app, _bot_loop
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _bot_loop = loop

    try:
        _bot_app = build_application(settings.TELEGRAM_BOT_TOKEN)
        loop.run_until_complete(_bot_app.initialize())
        loop.run_until_complete(_bot_app.start())

        if loop.run_until_complete(_start_polling_with_retry(_bot_app)):
            loop.run_forever()
    except Exception as e:
        logger.error(f"[Telegram] Bot error: {e}", exc_info=True)
    finally:
        if _bot_app:
            try:
                loop.run_until_complete(_shutdown_application(_bot_app))
            except Exception as e:
                logger.warning(f"[Telegram] Shutdown error: {e}")
        loop.close()
        _bot_app = None
        _bot_loop = None


def start_bot_background():
    if not settings.TELEGRAM_BOT_TOKEN:
        logger.warning("[Telegram] TELEGRAM_BOT_TOKEN not set, polling disabled")
        return
    t = threading.Thread(target=_run_bot, name="telegram-polling", daemon=True)
    t.start()


def stop_bot_background():
    """Stop polling. Called on FastAPI shutdown."""
    if _bot_loop and _bot_loop.is_running():
        _bot_loop.call_soon_threadsafe(_bot_loop.stop)


# ==============================================================================
# WEBHOOK MODE
# ==============================================================================

async def start_webhook_bot() -> Optional[Bot]:
    global _webhook_bot
    if not settings.TELEGRAM_BOT_TOKEN:
        logger.warning("[Telegram] TELEGRAM_BOT_TOKEN not set, replies will not be delivered")
        return None
    _webhook_bot = Bot(settings.TELEGRAM_BOT_TOKEN)
    await _webhook_bot.initialize()
    logger.info("[Telegram] Webhook bot initialized")
    return _webhook_bot


async def stop_webhook_bot():
    global _webhook_bot
    if _webhook_bot:
        await _webhook_bot.shutdown()
        _webhook_bot = None


def get_webhook_bot() -> Optional[Bot]:
    return _webhook_bot


async def send_replies(chat_id: int, replies: List[Reply], bot: Optional[Bot] = None) -> bool:
    """
    Deliver orchestrator replies to a chat.

    Returns:
        True if every reply was sent, False otherwise
    """
    bot = bot or _webhook_bot
    if not bot:
        logger.error("[Telegram] Bot not initialized, dropping replies")
        return False

    try:
        for reply in replies:
            if reply.is_document:
                await bot.send_document(
                    chat_id=chat_id,
                    document=reply.document,
                    filename=reply.filename,
                    caption=reply.caption,
                )
            else:
                await bot.send_message(chat_id=chat_id, text=reply.text)
        return True
    except error.TelegramError as e:
        logger.error(f"[Telegram] Failed to send reply to chat_id={chat_id}: {e}")
        return False
