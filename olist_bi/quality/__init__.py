"""Data quality validators package."""

from .validators import (
    DataQualityValidator,
    QualityCheckResult,
    CheckSeverity,
    validate_orders,
    validate_order_items,
    validate_products,
    validate_sellers,
    validate_reviews,
    validate_source_tables,
    validate_customer_rfm,
    validate_basket_pairs,
    validate_seller_score,
)

__all__ = [
    "DataQualityValidator",
    "QualityCheckResult",
    "CheckSeverity",
    "validate_orders",
    "validate_order_items",
    "validate_products",
    "validate_sellers",
    "validate_reviews",
    "validate_source_tables",
    "validate_customer_rfm",
    "validate_basket_pairs",
    "validate_seller_score",
]
