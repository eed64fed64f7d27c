"""
Product models.

A product is either a raw material (bought in at a purchase cost) or a
manufactured product (cost derived from its recipe). Both live in the
``products`` table and are mapped with single-table inheritance on the
``product_type`` discriminator, so each variant only carries the cost
fields that make sense for it:

- RawMaterial: purchase_cost (authoritative unit cost)
- ManufacturedProduct: manufacturing_cost (cache written by the cost engine)
  and the owning Recipe (1:1 through Recipe.product_id)
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Column, Index, String
from sqlalchemy.orm import relationship

from .base import BaseModel, ExactDecimal
from .enums import ProductType


class Product(BaseModel):
    """
    Base product model.

    Attributes:
        name: Unique product name
        product_type: Discriminator ("raw_material" or "manufactured")
        sale_price: Price the product is sold for (optional)
        is_active: Whether the product is in use
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False, unique=True)
    product_type = Column(String(20), nullable=False)
    sale_price = Column(ExactDecimal, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __mapper_args__ = {
        "polymorphic_on": product_type,
    }

    __table_args__ = (
        Index("idx_product_type", "product_type"),
        CheckConstraint(
            "sale_price IS NULL OR CAST(sale_price AS REAL) >= 0",
            name="ck_product_sale_price",
        ),
        CheckConstraint(
            "purchase_cost IS NULL OR CAST(purchase_cost AS REAL) >= 0",
            name="ck_product_purchase_cost",
        ),
        CheckConstraint(
            "manufacturing_cost IS NULL OR CAST(manufacturing_cost AS REAL) >= 0",
            name="ck_product_manufacturing_cost",
        ),
        CheckConstraint(
            "product_type = 'manufactured' OR manufacturing_cost IS NULL",
            name="ck_product_raw_material_has_no_manufacturing_cost",
        ),
        CheckConstraint(
            "product_type = 'raw_material' OR purchase_cost IS NULL",
            name="ck_product_manufactured_has_no_purchase_cost",
        ),
    )

    @property
    def unit_cost(self) -> Optional[Decimal]:
        """Current known unit cost, or None if not yet defined."""
        return None

    @property
    def profit_margin(self) -> Optional[Decimal]:
        """
        Profit margin as a fraction of the sale price.

        Returns:
            (sale_price - cost) / sale_price, or None if it can't be computed
        """
        from rocafe.services.calculation_service import calculate_profit_margin

        if self.sale_price is None or self.unit_cost is None:
            return None
        return calculate_profit_margin(self.sale_price, self.unit_cost)


class RawMaterial(Product):
    """
    Raw material bought from a supplier.

    Attributes:
        purchase_cost: Unit cost (>= 0). None means the cost is undefined,
            which the cost engine reports as an error.
    """

    purchase_cost = Column(ExactDecimal, nullable=True)

    __mapper_args__ = {
        "polymorphic_identity": ProductType.RAW_MATERIAL.value,
    }

    @property
    def unit_cost(self) -> Optional[Decimal]:
        return self.purchase_cost


class ManufacturedProduct(Product):
    """
    Product made in-house from a recipe.

    Attributes:
        manufacturing_cost: Cached recipe cost; written only by the cost engine
        recipe: The recipe that defines this product's cost (may be absent)
    """

    manufacturing_cost = Column(ExactDecimal, nullable=True)

    recipe = relationship(
        "Recipe",
        back_populates="product",
        uselist=False,
        lazy="select",
        passive_deletes=True,
    )

    __mapper_args__ = {
        "polymorphic_identity": ProductType.MANUFACTURED.value,
    }

    @property
    def recipe_id(self) -> Optional[int]:
        """ID of the owning recipe, or None if no recipe defined yet."""
        return self.recipe.id if self.recipe is not None else None

    @property
    def unit_cost(self) -> Optional[Decimal]:
        return self.manufacturing_cost
