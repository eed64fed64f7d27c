"""DTO utilities for service layer.

Provides standardized formatting functions for data transfer objects,
ensuring consistent JSON serialization of money values.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from .constants import DISPLAY_COST_QUANTUM


def to_decimal(value: Union[Decimal, float, int, str, None]) -> Optional[Decimal]:
    """
    Convert a numeric value to Decimal without binary float artifacts.

    Floats are routed through str() so 0.1 becomes Decimal("0.1"),
    not Decimal(0.1000000000000000055...).

    Returns:
        Decimal value, or None if value is None
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def cost_to_string(value: Union[Decimal, float, int, str, None]) -> str:
    """
    Convert a cost value to a 2-decimal string format.

    Args:
        value: Cost value (Decimal, float, int, str, or None)

    Returns:
        String formatted as "12.34" (2 decimal places).
        Returns "0.00" if value is None.

    Examples:
        >>> cost_to_string(Decimal("1.455"))
        '1.46'
        >>> cost_to_string(None)
        '0.00'
    """
    if value is None:
        return "0.00"

    rounded = to_decimal(value).quantize(DISPLAY_COST_QUANTUM, rounding=ROUND_HALF_UP)
    return str(rounded)


def decimal_to_json(value: Optional[Decimal]) -> Optional[str]:
    """Serialize a Decimal for JSON snapshots, preserving full precision."""
    if value is None:
        return None
    return str(value)
