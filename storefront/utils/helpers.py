import logging
import math
import re
import time
from decimal import Decimal, ROUND_HALF_UP
from functools import wraps
from typing import Optional, List, Any

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

EMAIL_RE = re.compile(r"^[\w.%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_DIGITS = (7, 15)


def clean_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Collapse runs of whitespace in user-entered text

    Args:
        text: Raw text, e.g. a review comment
        max_length: Cut at the last word that fits and append an ellipsis

    Returns:
        str: Single-spaced text
    """
    words = (text or "").split()
    cleaned = " ".join(words)
    if not max_length or len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length].rsplit(" ", 1)[0].rstrip() + "..."


def normalize_query(query: Optional[str]) -> str:
    """Lower-case and trim a search query"""
    return (query or "").strip().lower()


def is_valid_email(email: str) -> bool:
    """Shop owner and partner contact emails"""
    return bool(email) and EMAIL_RE.match(email.strip()) is not None


def is_valid_phone(phone: str) -> bool:
    """
    Accept any formatting as long as the number carries 7 to 15 digits

    Spaces, dashes, brackets and a leading ``+`` are ignored.
    """
    digits = sum(ch.isdigit() for ch in phone or "")
    low, high = PHONE_DIGITS
    return low <= digits <= high


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round like a shop till: halves always go up (2.5 -> 3)

    Args:
        value: Number to round
        digits: Number of fraction digits to keep

    Returns:
        float: Rounded value
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _group_indian(integer_digits: str) -> str:
    # Last three digits, then groups of two: 1,23,45,678
    if len(integer_digits) <= 3:
        return integer_digits
    head, tail = integer_digits[:-3], integer_digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_price(price: Optional[float], currency: str = "INR") -> Optional[str]:
    """
    Format price for display

    Indian digit grouping is used for INR, western grouping otherwise.
    At most two fraction digits are shown and trailing zeros are dropped.

    Args:
        price: Price value
        currency: ISO currency code

    Returns:
        str: Formatted price string
    """
    if price is None:
        return None

    try:
        amount = round_half_up(float(price), 2)
    except (ValueError, TypeError):
        return None

    sign = "-" if amount < 0 else ""
    integer_part, _, fraction = f"{abs(amount):.2f}".partition(".")
    fraction = fraction.rstrip("0")

    if currency == "INR":
        grouped = _group_indian(integer_part)
    else:
        grouped = f"{int(integer_part):,}"

    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{sign}{symbol}{grouped}" + (f".{fraction}" if fraction else "")


def page_count(total: int, per_page: int) -> int:
    """Number of pages needed for total items"""
    if per_page <= 0:
        return 0
    return math.ceil(total / per_page)


def short_id(value: str, length: int = 8) -> str:
    """Leading characters of an id, as shown to customers"""
    return (value or "")[:length]


def retry_on_failure(retries: int = 3, delay: float = 1.0, exceptions=(Exception,)):
    """
    Re-run a flaky call with a linear back-off

    Args:
        retries: Extra attempts after the first one
        delay: Seconds to wait before the first retry, growing by the same step
        exceptions: Exception types that trigger a retry; anything else propagates
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt > retries:
                        logger.error(f"{func.__name__} gave up after {attempt} tries: {e}")
                        raise
                    logger.warning(f"{func.__name__} failed (try {attempt} of {retries + 1}), retrying: {e}")
                    time.sleep(delay * attempt)

        return wrapper

    return decorator


def truncate_list(items: List[Any], max_items: int = 10) -> List[Any]:
    """First ``max_items`` entries; short or empty lists come back unchanged"""
    if not items:
        return items
    return items[:max_items]


def merge_unique_lists(*lists) -> List[Any]:
    """Concatenate lists, keeping the first occurrence of each item; ``None`` entries are skipped"""
    result = []
    for items in lists:
        for item in items or []:
            if item not in result:
                result.append(item)
    return result
