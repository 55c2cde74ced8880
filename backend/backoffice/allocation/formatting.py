"""Display helpers shared by the planner, the picker and their messages"""

import math
from typing import Any


def format_quantity(quantity: Any, unit: str = "") -> str:
    """5 -> '5.000 kg'"""
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        value = 0.0
    text = f"{value:.3f}"
    return f"{text} {unit}" if unit else text


def format_number(value: Any) -> str:
    """Compact rendering for messages: 5.0 -> '5', 2.50 -> '2.5', 0.1670 -> '0.167'"""
    try:
        number = round(float(value), 6)
    except (TypeError, ValueError):
        return str(value)
    if number == 0:
        return "0"
    text = f"{number:.6f}".rstrip("0").rstrip(".")
    return text


def format_currency(amount: Any) -> str:
    """Rupee amount with two decimals; anything that is not a number is ₹0.00"""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return "₹0.00"
    if math.isnan(amount) or math.isinf(amount):
        return "₹0.00"
    return f"₹{amount:.2f}"


def quantities_match(allocated: float, required: float, tolerance: float) -> bool:
    return abs(allocated - required) <= tolerance


def to_float(value: Any, default: float = 0.0) -> float:
    """Lenient float parse for JSON numbers that may arrive as strings"""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number
