"""
Enumerations shared by the product and recipe models.
"""

from enum import Enum


class ProductType(str, Enum):
    """
    How a product's unit cost is sourced.

    Values:
        RAW_MATERIAL: Bought in; unit cost is the purchase cost
        MANUFACTURED: Made in-house; unit cost is derived from its recipe
    """

    RAW_MATERIAL = "raw_material"
    MANUFACTURED = "manufactured"
