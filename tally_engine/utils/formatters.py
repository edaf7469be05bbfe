"""
Formatters Module
Chat-friendly text helpers (*bold*, _italic_) and Indian number formatting
"""

import math
from typing import Union

SEP = "━━━━━━━━━━━━━━━"

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def inr(value: Union[int, float, None]) -> str:
    """Absolute value with Indian digit grouping and two decimals (12,34,567.00)"""
    amount = abs(float(value or 0))
    if math.isnan(amount) or math.isinf(amount):
        amount = 0.0
    whole, frac = f"{amount:.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{whole}.{frac}"


def vch_emoji(voucher_type: str) -> str:
    """Emoji marker for a voucher type"""
    t = (voucher_type or "").lower()
    if "sales" in t:
        return "🟢"
    if "purchase" in t:
        return "🟠"
    if "receipt" in t:
        return "🔵"
    if "payment" in t:
        return "🔴"
    if "journal" in t:
        return "📝"
    if "contra" in t:
        return "🔄"
    return "⚪"


def plural(count: int, singular: str, many: str) -> str:
    return singular if count == 1 else many


def _two_digit(n: int) -> str:
    if n < 20:
        return _ONES[n]
    return _TENS[n // 10] + (" " + _ONES[n % 10] if n % 10 else "")


def _three_digit(n: int) -> str:
    if n == 0:
        return ""
    if n < 100:
        return _two_digit(n)
    return _ONES[n // 100] + " Hundred" + (" " + _two_digit(n % 100) if n % 100 else "")


def amount_in_words(value: float) -> str:
    """
    Indian-system words for an amount.

    1,23,456.50 -> "One Lakh Twenty Three Thousand Four Hundred Fifty Six
    Rupees and Fifty Paise Only"
    """
    amount = abs(float(value or 0))
    rupees = int(amount)
    paise = int(round((amount - rupees) * 100))
    if paise == 100:
        rupees += 1
        paise = 0
    if rupees == 0 and paise == 0:
        return "Zero"

    crore = rupees // 10000000
    lakh = (rupees % 10000000) // 100000
    thousand = (rupees % 100000) // 1000
    rest = rupees % 1000

    parts = []
    if crore:
        parts.append(_three_digit(crore) + " Crore")
    if lakh:
        parts.append(_two_digit(lakh) + " Lakh")
    if thousand:
        parts.append(_two_digit(thousand) + " Thousand")
    if rest:
        parts.append(_three_digit(rest))
    words = " ".join(parts) or "Zero"

    if paise > 0:
        return f"{words} Rupees and {_two_digit(paise)} Paise Only"
    return f"{words} Rupees Only"
