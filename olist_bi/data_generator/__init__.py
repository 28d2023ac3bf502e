"""Data generator package for creating sample Olist data."""

from .generator import OlistDataGenerator, OUTPUT_FILES
from .schemas import (
    Customer,
    Order,
    OrderItem,
    Product,
    Seller,
    Review,
    OrderStatus,
    ProductCategory,
    CustomerRFMRow,
    CohortRetentionRow,
    TopProductRow,
    BasketPairRow,
    SellerScoreRow,
)

__all__ = [
    "OlistDataGenerator",
    "OUTPUT_FILES",
    "Customer",
    "Order",
    "OrderItem",
    "Product",
    "Seller",
    "Review",
    "OrderStatus",
    "ProductCategory",
    "CustomerRFMRow",
    "CohortRetentionRow",
    "TopProductRow",
    "BasketPairRow",
    "SellerScoreRow",
]
