"""Formatting utilities for currency and text display."""

from __future__ import annotations

from typing import Union


def escape_currency_for_markdown(text: str) -> str:
    """Escape dollar signs so Streamlit markdown does not treat them as LaTeX.

    Example:
        >>> escape_currency_for_markdown('$1,234.56')
        '\\\\$1,234.56'
    """
    return text.replace("$", "\\$")


def format_currency(amount: Union[float, int], currency: str = '$', decimals: int = 2) -> str:
    """Format a currency amount with thousands separators.

    Args:
        amount: The amount to format
        currency: Symbol placed before the number (empty for none)
        decimals: Digits after the decimal point

    Returns:
        Formatted currency string, e.g. "$1,234.56" or "-€20,000.00"

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-20000, '€', decimals=0)
        '-€20,000'
    """
    sign = '-' if amount < 0 else ''
    return f"{sign}{currency}{abs(amount):,.{decimals}f}"


def format_percent(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"


def format_hours(hours: float) -> str:
    return f"{hours:,.0f}" if float(hours).is_integer() else f"{hours:,.1f}"
