from invoice_bot.models.conversation_state import ConversationState
from invoice_bot.models.product import Product
from invoice_bot.models.invoice import Invoice, InvoiceCounter

__all__ = ["ConversationState", "Product", "Invoice", "InvoiceCounter"]
