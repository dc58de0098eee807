"""Product performance metrics and rankings."""

from finadvisor.features.rankings.ranker import rank, summarize_products
from finadvisor.features.rankings.schemas import (
    ProductMetrics,
    ProductRanking,
    RankedProduct,
    SortBy,
)

__all__ = [
    "ProductMetrics",
    "ProductRanking",
    "RankedProduct",
    "SortBy",
    "rank",
    "summarize_products",
]
