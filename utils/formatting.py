"""
Formatting utilities.
"""

SYMBOLS = {
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
}


def format_currency(amount: int, currency: str = "USD") -> str:
    """
    Format an integer amount as currency.

    Args:
        amount: The amount in whole units (e.g., dollars, not cents).
        currency: Currency code (default USD).

    Returns:
        Formatted currency string.
    """
    symbol = SYMBOLS.get(currency, currency + " ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,}"


def format_signed_currency(amount: int, currency: str = "USD") -> str:
    """Format an adjustment with an explicit sign, e.g. +$10,000."""
    if amount < 0:
        return format_currency(amount, currency)
    return "+" + format_currency(amount, currency)
