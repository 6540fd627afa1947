"""
Conversation stages and global commands.

The dialogue is linear; every stage loops on itself while input is invalid:

    (absent) --/start,/new--> AWAITING_CUSTOMER_INFO
    AWAITING_CUSTOMER_INFO --customer info--> AWAITING_PRODUCTS
    AWAITING_PRODUCTS --products found--> AWAITING_QUANTITY
    AWAITING_QUANTITY --quantities--> AWAITING_DELIVERY_CHARGE
    AWAITING_DELIVERY_CHARGE --tariff--> AWAITING_DISCOUNT
    AWAITING_DISCOUNT --amount--> AWAITING_CONFIRMATION
    AWAITING_CONFIRMATION --ok--> finalize --> (absent)
    AWAITING_CONFIRMATION --price edit--> AWAITING_CONFIRMATION
    any --/cancel--> (absent)
"""
from enum import Enum


class Stage(str, Enum):
    AWAITING_CUSTOMER_INFO = "awaiting_customer_info"
    AWAITING_PRODUCTS = "awaiting_products"
    AWAITING_QUANTITY = "awaiting_quantity"
    AWAITING_DELIVERY_CHARGE = "awaiting_delivery_charge"
    AWAITING_DISCOUNT = "awaiting_discount"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


# Draft fields each stage handler depends on
STAGE_REQUIREMENTS = {
    Stage.AWAITING_CUSTOMER_INFO: (),
    Stage.AWAITING_PRODUCTS: ("customer_info",),
    Stage.AWAITING_QUANTITY: ("customer_info", "found_products"),
    Stage.AWAITING_DELIVERY_CHARGE: ("customer_info", "found_products", "quantities"),
    Stage.AWAITING_DISCOUNT: ("customer_info", "found_products", "quantities", "delivery_charge"),
    Stage.AWAITING_CONFIRMATION: (
        "customer_info", "found_products", "quantities", "delivery_charge", "discount_net",
    ),
}


class Command:
    """Slash commands recognized before stage dispatch."""
    START = "/start"
    NEW = "/new"
    CANCEL = "/cancel"
    HELP = "/help"

    ALL = (START, NEW, CANCEL, HELP)


def parse_command(text: str) -> str | None:
    """
    Match a global command.

    Telegram appends the bot name in groups ("/start@invoice_bot"); that suffix
    is ignored. Anything else is not a command.
    """
    token = text.strip().split(maxsplit=1)[0] if text.strip() else ""
    token = token.split("@", 1)[0].lower()
    return token if token in Command.ALL else None
