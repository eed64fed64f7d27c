"""
Calculation Service - pure business figures derived from stored costs.

Provides:
- Profit margin of a product given its sale price and unit cost
- Simplified income statement result (revenue minus expenses)

All arithmetic is Decimal; inputs are converted with to_decimal so float
arguments do not introduce binary rounding artifacts.
"""

from decimal import Decimal
from typing import Optional, Union

from rocafe.utils.dto_utils import to_decimal

Number = Union[Decimal, float, int, str]


def calculate_profit_margin(sale_price: Number, cost: Number) -> Optional[Decimal]:
    """
    Calculate the profit margin as a fraction of the sale price.

    Args:
        sale_price: Price the product sells for
        cost: Unit cost of the product

    Returns:
        (sale_price - cost) / sale_price, or None unless both values are
        positive and the sale price exceeds the cost

    Examples:
        >>> calculate_profit_margin(Decimal("10.00"), Decimal("4.00"))
        Decimal('0.6')
        >>> calculate_profit_margin(Decimal("4.00"), Decimal("10.00")) is None
        True
    """
    sale = to_decimal(sale_price)
    unit_cost = to_decimal(cost)
    if sale is None or unit_cost is None:
        return None
    if sale <= 0 or unit_cost <= 0 or sale <= unit_cost:
        return None
    return (sale - unit_cost) / sale


def calculate_simplified_dre(total_revenue: Number, total_expenses: Number) -> Decimal:
    """
    Net result of a simplified income statement (DRE).

    Returns:
        total_revenue - total_expenses (negative for a loss)
    """
    return to_decimal(total_revenue) - to_decimal(total_expenses)
