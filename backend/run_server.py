"""Simple server runner that keeps uvicorn alive."""
import os
import signal
import sys

import uvicorn

from invoice_bot.core.logging_config import configure_logging


def handle_signal(sig, frame):
    print(f"\nReceived signal {sig}, shutting down gracefully...")
    sys.exit(0)


signal.signal(signal.SIGINT, handle_signal)
signal.signal(signal.SIGTERM, handle_signal)

if __name__ == "__main__":
    configure_logging()
    print("=" * 50)
    print("  Starting Invoice Bot Backend")
    print("=" * 50)
    uvicorn.run(
        "invoice_bot.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )
