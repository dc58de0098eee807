"""Pydantic schemas for product rankings."""

from decimal import Decimal
from enum import Enum

from pydantic import Field

from finadvisor.shared.schemas import CamelModel


class SortBy(str, Enum):
    """Metric products are ranked by."""

    REVENUE = "revenue"
    UNITS = "units"
    GROWTH = "growth"
    MARGIN = "margin"


class ProductMetrics(CamelModel):
    """Sales performance of one product over a window."""

    product_id: str = Field(..., description="Product id")
    category: str | None = Field(None, description="Product category (latest seen)")
    revenue: Decimal = Field(..., description="Revenue of completed events")
    units: int = Field(..., ge=0, description="Units sold")
    order_count: int = Field(..., ge=0, description="Completed events")
    margin: Decimal = Field(..., description="Margin of completed events")
    growth: float = Field(
        ...,
        description="Percent revenue change vs the previous equal-length window; "
        "0 when both are zero, 100 when the previous window is zero",
    )


class RankedProduct(ProductMetrics):
    """Product metrics with a 1-based rank."""

    rank: int = Field(..., ge=1, description="1-based position in the ranking")


class ProductRanking(CamelModel):
    """Result of the top_products and bottom_products tools."""

    sort_by: SortBy = Field(..., description="Ranking metric")
    ascending: bool = Field(..., description="True for bottom products")
    time_range: str = Field(..., description="week, month, quarter or year")
    category: str | None = Field(None, description="Category filter applied")
    products: list[RankedProduct] = Field(..., description="Ranked products")
