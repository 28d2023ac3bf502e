"""
Data schemas and models for the Olist BI pipeline.

This module defines the structure of the source tables and of the
published BI tables using Pydantic models. The generator builds its
records through the source models, and the result models describe one
row of each published table.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    """Order states used by the Olist marketplace."""
    CREATED = "created"
    APPROVED = "approved"
    INVOICED = "invoiced"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    UNAVAILABLE = "unavailable"
    CANCELED = "canceled"


class ProductCategory(str, Enum):
    """Most common product categories (Portuguese names, as in the source data)."""
    BED_BATH_TABLE = "cama_mesa_banho"
    HEALTH_BEAUTY = "beleza_saude"
    SPORTS_LEISURE = "esporte_lazer"
    FURNITURE_DECOR = "moveis_decoracao"
    COMPUTERS_ACCESSORIES = "informatica_acessorios"
    HOUSEWARES = "utilidades_domesticas"
    WATCHES_GIFTS = "relogios_presentes"
    TELEPHONY = "telefonia"
    GARDEN_TOOLS = "ferramentas_jardim"
    AUTO = "automotivo"
    TOYS = "brinquedos"
    COOL_STUFF = "cool_stuff"
    PERFUMERY = "perfumaria"
    BABY = "bebes"
    ELECTRONICS = "eletronicos"


# =============================================================================
# SOURCE DATA MODELS (shape of the Olist CSV exports)
# =============================================================================

class Customer(BaseModel):
    """
    Customer record.

    Olist issues a new customer_id for every order; customer_unique_id
    identifies the person across orders.
    """
    customer_id: str = Field(..., description="Per-order customer key")
    customer_unique_id: str = Field(..., description="Identifies the person across orders")
    customer_zip_code_prefix: str = Field(..., description="First five digits of the zip code")
    customer_city: str = Field(..., description="Customer's city")
    customer_state: str = Field(..., description="Two-letter Brazilian state code")


class Order(BaseModel):
    """Order record from the order management system."""
    order_id: str = Field(..., description="Unique identifier for the order")
    customer_id: str = Field(..., description="Reference to the per-order customer key")
    order_status: OrderStatus = Field(..., description="Current order status")
    order_purchase_timestamp: datetime = Field(..., description="When the order was placed")
    order_delivered_customer_date: Optional[datetime] = Field(
        None, description="When the customer received it; null until delivered"
    )


class OrderItem(BaseModel):
    """
    Order line item.

    Each unit is its own row; order_item_id numbers them within the order.
    """
    order_id: str = Field(..., description="Reference to the parent order")
    order_item_id: int = Field(..., ge=1, description="Sequence number within the order")
    product_id: str = Field(..., description="Reference to the product")
    seller_id: str = Field(..., description="Seller that fulfilled the item")
    price: Decimal = Field(..., ge=0, decimal_places=2, description="Item price")
    freight_value: Decimal = Field(..., ge=0, decimal_places=2, description="Freight charged for the item")


class Product(BaseModel):
    """Product record from the catalog."""
    product_id: str = Field(..., description="Unique identifier for the product")
    product_category_name: Optional[str] = Field(None, description="Category; missing for some products")


class Seller(BaseModel):
    """Marketplace seller."""
    seller_id: str = Field(..., description="Unique identifier for the seller")
    seller_city: str = Field(..., description="Seller's city")
    seller_state: str = Field(..., description="Two-letter Brazilian state code")


class Review(BaseModel):
    """Customer satisfaction review attached to an order."""
    review_id: str = Field(..., description="Unique identifier for the review")
    order_id: str = Field(..., description="Reviewed order")
    review_score: int = Field(..., ge=1, le=5, description="Score from 1 to 5")


# =============================================================================
# PUBLISHED TABLE MODELS (one row of each BI table)
# =============================================================================

class CustomerRFMRow(BaseModel):
    """CustomerRFM: one row per customer with an order in the window."""
    customer_unique_id: str
    recency_days: int = Field(..., ge=0)
    frequency: int = Field(..., ge=1)
    monetary: Decimal = Field(..., ge=0)
    r_score: int = Field(..., ge=1, le=5)
    f_score: int = Field(..., ge=1, le=5)
    m_score: int = Field(..., ge=1, le=5)
    rfm_cell: str = Field(..., pattern=r"^[1-5]{3}$")
    running_revenue: Decimal = Field(..., ge=0)


class CohortRetentionRow(BaseModel):
    """CohortRetention: one row per cohort month and months since first order."""
    cohort_month: date
    months_since_first: int = Field(..., ge=0)
    customers: int = Field(..., ge=1)
    retention_pct: float = Field(..., gt=0)


class TopProductRow(BaseModel):
    """TopProducts: one row per product in the top N by revenue."""
    product_id: str
    product_category_name: Optional[str]
    revenue: Decimal = Field(..., ge=0)
    items_sold: int = Field(..., ge=0)
    avg_price: Optional[float]


class BasketPairRow(BaseModel):
    """BasketPairs: one row per frequently co-purchased category pair."""
    cat_a: str
    cat_b: str
    orders_together: int = Field(..., ge=1)


class SellerScoreRow(BaseModel):
    """SellerScore: one row per reviewed seller."""
    seller_id: str
    items_shipped: int = Field(..., ge=1)
    gross_revenue: Decimal = Field(..., ge=0)
    avg_review: float = Field(..., ge=1, le=5)
    avg_delivery_days: Optional[float]
    revenue_percentile: Optional[float] = Field(None, ge=0, le=1)
    review_percentile: Optional[float] = Field(None, ge=0, le=1)
