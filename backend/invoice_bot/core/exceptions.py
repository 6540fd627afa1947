"""
Exception handling for the invoice bot.

Two layers:
- Domain exceptions raised by services and caught by the conversation
  orchestrator, which turns them into chat replies.
- HTTP helpers for the FastAPI routes: generic messages externally,
  detailed logging internally.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


# ==============================================================================
# DOMAIN EXCEPTIONS
# ==============================================================================

class InvoiceBotError(Exception):
    """Base class for every error raised by the invoice bot core."""


class InvalidDraftError(InvoiceBotError):
    """
    The draft is missing data a later stage depends on.

    Unrecoverable for the current conversation: the orchestrator clears
    state and asks the operator to start over.
    """

    def __init__(self, missing: list[str] | None = None, message: str = ""):
        self.missing = missing or []
        super().__init__(message or f"Draft is missing: {', '.join(self.missing)}")


class StaleProductIndexError(InvalidDraftError):
    """A quantity line points outside foundProducts."""

    def __init__(self, product_index: int, product_count: int):
        self.product_index = product_index
        self.product_count = product_count
        super().__init__(
            message=f"productIndex {product_index} out of range for {product_count} found products"
        )


class StaleConversationError(InvoiceBotError):
    """Conditional state write lost against a concurrent writer."""

    def __init__(self, user_id: int, expected_version: int):
        self.user_id = user_id
        self.expected_version = expected_version
        super().__init__(
            f"Conversation for user {user_id} changed since version {expected_version}"
        )


class InvoiceNumberCollisionError(InvoiceBotError):
    """Assigned invoice number already exists. Retryable: the next attempt gets a fresh number."""

    retryable = True

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice number {invoice_number} already exists")


class InvoicePersistenceError(InvoiceBotError):
    """Invoice could not be stored. Retryable."""

    retryable = True


class CatalogError(InvoiceBotError):
    """Product catalog lookup failed."""


class PdfRenderError(InvoiceBotError):
    """PDF renderer returned an error body or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# ==============================================================================
# HTTP HELPERS
# ==============================================================================

class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """Generic 404."""
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        Same response for a missing or a wrong webhook secret.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from caller.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=True
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )
