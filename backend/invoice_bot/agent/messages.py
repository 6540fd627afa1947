"""Reply texts sent back to the operator."""
from typing import List

from invoice_bot.models.invoice import Invoice
from invoice_bot.schemas.draft import CustomerInfo, ProductSnapshot
from invoice_bot.services.pdf_service import format_money
from invoice_bot.services.pricing import Totals

SEPARATOR = "━━━━━━━━━━━━━━━━━━"

CUSTOMER_FORMATS = (
    "Format 1 (comma-separated):\n"
    "Customer Name, Address, Phone Number\n\n"
    "Format 2 (line-separated):\n"
    "Customer Name\n"
    "Address\n"
    "Phone Number"
)

WELCOME = (
    "👋 Welcome to the Invoice Generator Bot!\n\n"
    "Please provide customer information in one of these formats:\n\n"
    f"{CUSTOMER_FORMATS}\n\n"
    "Example: Rahul Ahmed, Dhanmondi Road 27, Dhaka 1209, 01712345678"
)

HELP = (
    "📖 Help\n\n"
    "/start or /new - Start a new invoice\n"
    "/cancel - Cancel current invoice\n"
    "/help - Show this help message\n\n"
    "Steps: customer → products → quantities → delivery → discount → confirm\n"
    "Phone number format: 01XXXXXXXXX (11 digits starting with 01)"
)

CANCELLED = "❌ Invoice cancelled. Type /start to create a new invoice."

UNAUTHORIZED = "⛔ Sorry, you are not authorized to use this bot."

START_OVER = (
    "⚠️ This invoice session is incomplete or expired.\n"
    "Please start over with /new."
)

INVALID_CUSTOMER_FORMAT = f"❌ Invalid format. Please use one of these formats:\n\n{CUSTOMER_FORMATS}"

INVALID_PHONE = (
    "❌ Invalid phone number. Please use Bangladesh format: "
    "01XXXXXXXXX (11 digits starting with 01)"
)

NO_PRODUCT_NAMES = "❌ Please provide at least one product name."
NO_PRODUCTS_FOUND = "❌ No products found. Please check spelling and try again."
SEARCH_FAILED = "❌ Error searching products. Please try again."

QUANTITY_FORMAT = (
    "Format: 1=2, 2=1 (product number = quantity)\n"
    "Row discount: 1=2, D5 (5% off product 1)\n"
    "Or just 'OK' for 1 unit each"
)

INVALID_QUANTITY = f"❌ Invalid format. Use:\n{QUANTITY_FORMAT}"
INVALID_QUANTITY_VALUE = "❌ Quantity must be at least 1."
INVALID_ROW_DISCOUNT = "❌ Row discount must be between 0 and 100 percent."

INVALID_DISCOUNT = "❌ Please send a discount amount of 0 or more (e.g. 500, or 0 for none)."

CONFIRM_HINT = (
    "Reply 'OK' to generate invoice\n"
    "Or edit price: '1 125000' (changes item 1 price to 125000)"
)

INVALID_CONFIRMATION = f"❌ Invalid input. {CONFIRM_HINT}"
INVALID_ITEM_NUMBER = "❌ Invalid item number. Please try again."

GENERATING = "⏳ Generating invoice..."
INVOICE_SAVE_FAILED = "❌ Error creating invoice. Please reply 'OK' to try again."
BUSY = "⏳ Another message is still being processed. Please send that again."
UNEXPECTED_ERROR = "❌ Something went wrong. Please try again."


def invalid_product_number(product_count: int) -> str:
    return f"❌ Invalid product number. Choose between 1 and {product_count}.\n{QUANTITY_FORMAT}"


def customer_saved(customer: CustomerInfo) -> str:
    return (
        "✅ Customer details saved!\n"
        f"👤 Name: {customer.name}\n"
        f"📍 Address: {customer.address}\n"
        f"📞 Phone: {customer.phone}\n\n"
        "Now send me the product names (one per line or comma-separated)"
    )


def found_products(products: List[ProductSnapshot]) -> str:
    message = "Found products:\n\n"
    for index, product in enumerate(products, 1):
        message += f"{index}. {product.name}\n"
        message += f"   Color: {product.color or '-'}\n"
        message += f"   Warranty: {product.warranty or '-'}\n"
        message += f"   Price: {format_money(product.selling_price)}\n\n"
    message += f"Reply with quantity for each:\n{QUANTITY_FORMAT}"
    return message


def delivery_prompt(inside_charge: float, outside_charge: float) -> str:
    return (
        "🚚 Select delivery charge:\n"
        f"1. Inside city - {format_money(inside_charge)}\n"
        f"2. Outside city - {format_money(outside_charge)}\n\n"
        "Reply 1 or 2"
    )


def invalid_delivery(inside_charge: float, outside_charge: float) -> str:
    return "❌ Invalid choice.\n" + delivery_prompt(inside_charge, outside_charge)


def discount_prompt(delivery_charge: float) -> str:
    return (
        f"✅ Delivery charge: {format_money(delivery_charge)}\n\n"
        "💸 Enter a flat discount amount (0 for no discount)"
    )


def lines_summary(totals: Totals) -> str:
    text = ""
    for index, line in enumerate(totals.lines, 1):
        discount = f" (-{line.discount_percent:g}%)" if line.discount_percent else ""
        text += f"{index}. {line.product.name} x{line.quantity}{discount} - {format_money(line.net_amount)}\n"
    return text


def quantities_summary(totals: Totals) -> str:
    return (
        f"📦 Items\n{SEPARATOR}\n"
        f"{lines_summary(totals)}"
        f"\nSubtotal: {format_money(totals.subtotal)}"
    )


def invoice_summary(totals: Totals, title: str = "📋 Invoice Summary") -> str:
    text = f"{title}\n{SEPARATOR}\n{lines_summary(totals)}\n"
    text += f"Subtotal: {format_money(totals.subtotal)}\n"
    if totals.tax_rate:
        text += f"VAT ({totals.tax_rate * 100:g}%): {format_money(totals.tax_amount)}\n"
    text += f"Delivery: {format_money(totals.delivery_charge)}\n"
    text += f"Discount: -{format_money(totals.discount_net)}\n"
    text += f"{SEPARATOR}\n"
    text += f"💰 Total: {format_money(totals.grand_total)}\n\n"
    text += CONFIRM_HINT
    return text


def price_updated(totals: Totals) -> str:
    return "✅ Price updated!\n\n" + invoice_summary(totals, title="📋 Updated Invoice Summary")


def invoice_caption(invoice: Invoice) -> str:
    return (
        "✅ Invoice generated successfully!\n"
        f"📄 Invoice Number: {invoice.invoice_number}\n"
        f"📅 Date: {invoice.date.strftime('%d-%m-%Y')}\n"
        f"💰 Total: {format_money(invoice.total)}"
    )


def pdf_failed(invoice: Invoice) -> str:
    return (
        f"⚠️ Invoice {invoice.invoice_number} was saved, but PDF generation failed.\n"
        "The invoice is stored; the document can be generated again later."
    )
