"""
Money parsing and display.

User input is converted to cents through Decimal, so "0.29" is 29 cents and
never 28.999... Display formatting works on the integer directly.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "PHP": "₱",
    "KRW": "₩",
    "NGN": "₦",
}

_NON_NUMERIC = re.compile(r"[^0-9.,\-]")


def parse_to_cents(text: Optional[str]) -> Optional[int]:
    """
    Parse user input into cents, or None when it is not a number.

    "10.50", "$10.50" -> 1050
    "10,50"           -> 1050  (a lone comma is a decimal separator)
    "1,234.56"        -> 123456 (with a period present, commas group thousands)
    "1,234"           -> 123   (1.234, never read as one thousand)
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".", 1)

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None

    return int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def currency_symbol(currency: str = "USD") -> str:
    code = currency.upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_cents(cents: int, currency: str = "USD", hide_cents: bool = False) -> str:
    """
    1234567 -> "$12,345.67"; -500 with EUR -> "-€5.00".

    With hide_cents the amount is rounded half-up to whole units.
    """
    sign = "-" if cents < 0 else ""
    magnitude = abs(cents)
    symbol = currency_symbol(currency)

    if hide_cents:
        units = (magnitude + 50) // 100
        if units == 0:
            sign = ""
        return f"{sign}{symbol}{units:,}"

    units, fraction = divmod(magnitude, 100)
    return f"{sign}{symbol}{units:,}.{fraction:02d}"


def format_with_sign(cents: int, currency: str = "USD", hide_cents: bool = False) -> str:
    """Like format_cents, with a leading "+" on positive amounts."""
    text = format_cents(cents, currency, hide_cents)
    return f"+{text}" if cents > 0 else text
