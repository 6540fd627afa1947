"""Application configuration.

Environment variables override all defaults.
The bot answers exactly one operator: AUTHORIZED_USER_ID must be set, otherwise
every sender is rejected.
"""

import os
from pathlib import Path


# Load .env for local development (safe no-op if the file is absent)
from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    return int(raw) if raw.strip() else default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    return float(raw) if raw.strip() else default


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./invoices.db")

    # Telegram Bot (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    # Compared against X-Telegram-Bot-Api-Secret-Token on the webhook route
    TELEGRAM_WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")
    # "webhook" (FastAPI route) or "polling" (background Application)
    TELEGRAM_MODE: str = os.getenv("TELEGRAM_MODE", "webhook")

    # The single operator allowed to build invoices (0 = nobody)
    AUTHORIZED_USER_ID: int = _int_env("AUTHORIZED_USER_ID", 0)

    # PDF rendering: external renderer when set, in-process reportlab otherwise
    PDF_SERVICE_URL: str = os.getenv("PDF_SERVICE_URL", "")
    PDF_SERVICE_TIMEOUT_SECONDS: float = _float_env("PDF_SERVICE_TIMEOUT_SECONDS", 30.0)
    PDF_STORAGE_DIR: str = os.getenv("PDF_STORAGE_DIR", str(_BACKEND_DIR / "generated_invoices"))

    # Pricing
    TAX_RATE: float = _float_env("TAX_RATE", 0.0)
    DELIVERY_CHARGE_INSIDE: float = _float_env("DELIVERY_CHARGE_INSIDE", 60.0)
    DELIVERY_CHARGE_OUTSIDE: float = _float_env("DELIVERY_CHARGE_OUTSIDE", 120.0)
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "৳")

    # Company block printed on the PDF
    COMPANY_NAME: str = os.getenv("COMPANY_NAME", "Gadget House")
    COMPANY_ADDRESS: str = os.getenv("COMPANY_ADDRESS", "Dhaka, Bangladesh")

    # Conversation state hygiene
    STATE_MAX_AGE_HOURS: int = _int_env("STATE_MAX_AGE_HOURS", 24)
    STATE_CLEANUP_INTERVAL_SECONDS: int = _int_env("STATE_CLEANUP_INTERVAL_SECONDS", 6 * 3600)

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")


settings = Settings()
