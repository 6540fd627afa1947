"""
TEXT PARSERS

Purpose: Turn raw operator messages into structured draft values.
- Pure functions, no database access
- Return None (or an empty result) on input that cannot be understood;
  the orchestrator re-prompts instead of guessing

Customer info shapes:
    "Name, Address, Phone"
    "Name\\nAddress\\nPhone"

Phone location order inside the part after the name (do not reorder, the
behaviour for ambiguous input is a tested policy):
    1. dash-tolerant match anywhere ("017-1234-5678")
    2. plain digit match, also when glued to the address ("Road 201712345678")
    3. period fallback: text after the last "." is the phone
    4. last token fallback: final whitespace/comma token is the phone
"""
import math
import re
import logging
from typing import List, Optional

from invoice_bot.schemas.draft import CustomerInfo, QuantityLine

logger = logging.getLogger(__name__)


# Local mobile number with optional country prefix: 01XXXXXXXXX / +8801XXXXXXXXX
PHONE_PATTERN = r"(?:\+?88)?0?1\d{9}"
PHONE_RE = re.compile(PHONE_PATTERN)
PHONE_FULL_RE = re.compile(rf"^{PHONE_PATTERN}$")
LOCAL_PHONE_RE = re.compile(r"^01\d{9}$")

# Digit runs that may contain dashes, optionally starting with "+"
DASHED_NUMBER_RE = re.compile(r"\+?\d[\d\-]*\d")

ADDRESS_TRAILING_PUNCTUATION = " \t\n,.;:-"

QUANTITY_DIRECTIVE_RE = re.compile(
    r"(\d+)\s*=\s*(\d+)(?:\s*,\s*[dD]\s*(\d+(?:\.\d+)?)\s*%?)?"
)
PRICE_EDIT_RE = re.compile(r"^\s*(\d+)\s+(\d+)\s*$")

DELIVERY_INSIDE = "inside"
DELIVERY_OUTSIDE = "outside"


# ==============================================================================
# PHONE
# ==============================================================================

def normalize_phone(phone: str) -> str:
    """
    Strip whitespace, dashes and the country prefix.

    Examples:
        "+8801912345678" -> "01912345678"
        "017-1234-5678"  -> "01712345678"
    """
    digits = re.sub(r"[\s\-]", "", phone or "")
    if digits.startswith("+"):
        digits = digits[1:]
    if digits.startswith("88") and len(digits) > 11:
        digits = digits[2:]
    return digits


def validate_phone(phone: str) -> bool:
    """True for exactly 11 digits starting with 01 after normalization."""
    return bool(LOCAL_PHONE_RE.match(normalize_phone(phone)))


# ==============================================================================
# CUSTOMER INFO
# ==============================================================================

def _clean_address(text: str) -> str:
    return text.strip().rstrip(ADDRESS_TRAILING_PUNCTUATION).strip()


def _split_by_dashed_match(rest: str) -> Optional[tuple]:
    found = None
    for match in DASHED_NUMBER_RE.finditer(rest):
        if PHONE_FULL_RE.match(match.group(0).replace("-", "")):
            found = match  # keep the last one: the phone closes the message
    if not found:
        return None
    return rest[:found.start()], found.group(0)


def _split_by_digit_match(rest: str) -> Optional[tuple]:
    matches = list(PHONE_RE.finditer(rest))
    if not matches:
        return None
    last = matches[-1]
    return rest[:last.start()], last.group(0)


def _split_by_period(rest: str) -> Optional[tuple]:
    if "." not in rest:
        return None
    address, tail = rest.rsplit(".", 1)
    if not PHONE_FULL_RE.match(re.sub(r"[\s\-]", "", tail)):
        return None
    return address, tail


def _split_by_last_token(rest: str) -> Optional[tuple]:
    tokens = re.split(r"[\s,]+", rest.strip())
    if not tokens:
        return None
    last = tokens[-1]
    if not PHONE_FULL_RE.match(last.replace("-", "")):
        return None
    return rest[:rest.rfind(last)], last


_PHONE_STRATEGIES = (
    _split_by_dashed_match,
    _split_by_digit_match,
    _split_by_period,
    _split_by_last_token,
)


def split_address_and_phone(rest: str) -> Optional[tuple]:
    """
    Locate the phone number in "address + phone" text.

    Returns (address, normalized_phone) or None when no strategy finds a
    phone with a non-empty address in front of it.
    """
    for strategy in _PHONE_STRATEGIES:
        result = strategy(rest)
        if not result:
            continue
        address, phone = result
        address = _clean_address(address)
        if address:
            logger.debug(f"[CustomerParser] phone found by {strategy.__name__}")
            return address, normalize_phone(phone)
    return None


def parse_customer_info(text: str) -> Optional[CustomerInfo]:
    """
    Parse "Name, Address, Phone" or three-line "Name\\nAddress\\nPhone".

    Examples:
        "Rahul Ahmed, Dhanmondi Road 27, Dhaka 1209, 01712345678"
            -> name "Rahul Ahmed", address "Dhanmondi Road 27, Dhaka 1209"
        "Karim, House 5 Road 2.+8801912345678"
            -> address "House 5 Road 2", phone "01912345678"

    The phone is normalized but not validated here; validate_phone() decides.
    """
    text = (text or "").strip()
    if not text:
        return None

    # Comma shape: the first comma splits off the name
    if "," in text:
        name, rest = text.split(",", 1)
        name, rest = name.strip(), rest.strip()
        if name and rest and "\n" not in name:
            split = split_address_and_phone(rest)
            if split:
                address, phone = split
                return CustomerInfo(name=name, address=address, phone=phone)

            # "Name, Address, <something>": hand the last field to the phone
            # validator so the operator gets the phone-specific message
            fields = [f.strip() for f in rest.split(",")]
            if len(fields) >= 2 and all(fields):
                return CustomerInfo(
                    name=name,
                    address=", ".join(fields[:-1]),
                    phone=normalize_phone(fields[-1]),
                )

    # Line shape: first line name, last line phone, everything between address
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) >= 3:
        return CustomerInfo(
            name=lines[0].rstrip(","),
            address=_clean_address(", ".join(lines[1:-1])),
            phone=normalize_phone(lines[-1]),
        )

    return None


# ==============================================================================
# PRODUCTS / QUANTITIES / PRICES
# ==============================================================================

def tokenize_product_query(text: str) -> List[str]:
    """Split on comma or newline, trim, drop empties. Order is preserved."""
    return [token.strip() for token in re.split(r"[,\n]", text or "") if token.strip()]


def parse_quantity_directives(text: str, product_count: int) -> Optional[List[QuantityLine]]:
    """
    Parse quantity/discount directives.

    "ok"             -> one unit of every found product, no discount
    "1=2, 2=1"       -> product 1 x2, product 2 x1
    "1=1, D5"        -> product 1 x1 with 5% row discount

    Product numbers are 1-based on input and 0-based in the result. Returns
    None when nothing matches; partially malformed input keeps what matched.
    """
    cleaned = (text or "").strip()
    if cleaned.lower() == "ok":
        return [
            QuantityLine(product_index=index, quantity=1, discount_percent=0.0)
            for index in range(product_count)
        ]

    lines = []
    for match in QUANTITY_DIRECTIVE_RE.finditer(cleaned):
        position, quantity, discount = match.groups()
        lines.append(
            QuantityLine(
                product_index=int(position) - 1,
                quantity=int(quantity),
                discount_percent=float(discount) if discount else 0.0,
            )
        )

    if not lines:
        logger.info(f"[QuantityParser] No directive in {cleaned!r}")
        return None
    return lines


def parse_price_edit(text: str) -> Optional[tuple]:
    """
    "<item> <newPrice>" -> (0-based item index, new price).

    Range checking against the quantity list is the caller's job.
    """
    match = PRICE_EDIT_RE.match(text or "")
    if not match:
        return None
    item, price = match.groups()
    return int(item) - 1, float(price)


def parse_delivery_choice(text: str) -> Optional[str]:
    """
    "1" / "inside" -> DELIVERY_INSIDE, "2" / "outside" -> DELIVERY_OUTSIDE.

    Words match case-insensitively as substrings ("Inside Dhaka").
    """
    cleaned = (text or "").strip().lower()
    if cleaned == "1":
        return DELIVERY_INSIDE
    if cleaned == "2":
        return DELIVERY_OUTSIDE
    if DELIVERY_OUTSIDE in cleaned:
        return DELIVERY_OUTSIDE
    if DELIVERY_INSIDE in cleaned:
        return DELIVERY_INSIDE
    return None


def parse_flat_discount(text: str) -> Optional[float]:
    """Non-negative number, 0 means no discount. Anything else -> None."""
    cleaned = (text or "").strip().replace(",", "")
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value
