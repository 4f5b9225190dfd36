from __future__ import annotations

from decimal import Decimal


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def int_to_decimal(value: int, precision: int = 18) -> Decimal:
    # Building from a string is exact; division would round to the context precision.
    return Decimal(f"{value}E-{precision}")
