"""
Balance Parser

Turns InstantData balance strings into numbers.

    "GH₵9.25"     -> 9.25
    "GH₵ 1,200.00" -> 1200.0
    "9.25"        -> 9.25
"""
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CURRENCY_SYMBOL = "GH₵"

# Probed in this order; the first present (truthy) field wins
BALANCE_FIELDS = ("remaining_balance", "balance", "current_balance", "accountBalance")

_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")


def parse_balance(text: Any) -> float:
    """
    Parse a currency-formatted balance.

    Strips the cedi symbol, whitespace and thousands separators, then reads
    the leading decimal number. Returns 0.0 for empty input, and 0.0 with a
    logged diagnostic when nothing numeric is left. Never raises.
    """
    if text is None or text == "":
        return 0.0

    if isinstance(text, bool):
        logger.error(f"[Balance Parser] Invalid balance format: {text!r}")
        return 0.0

    if isinstance(text, (int, float)):
        return float(text)

    cleaned = re.sub(r"\s", "", str(text).replace(CURRENCY_SYMBOL, "")).replace(",", "")
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        logger.error(f"[Balance Parser] Invalid balance format: {text!r}")
        return 0.0

    return float(match.group(0))


def extract_balance(response: Optional[Dict[str, Any]]) -> Optional[float]:
    """
    Pull the balance out of an InstantData response body.

    Args:
        response: Response dict (the order `data` envelope or the top level)

    Returns:
        Parsed balance, or None when no known balance field is present
    """
    if not response:
        return None

    for field in BALANCE_FIELDS:
        value = response.get(field)
        if value:
            return parse_balance(value)

    logger.error(f"[Balance Parser] No balance field found in response: {response}")
    return None


def is_balance_sufficient(current_balance: float, required_amount: float) -> bool:
    return current_balance >= required_amount
