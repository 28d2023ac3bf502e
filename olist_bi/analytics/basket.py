"""
Market-Basket Analysis (category pairs)

Counts how many orders contain products from both categories of a pair.
Each order contributes its distinct categories once; pairs are unordered
and stored with cat_a < cat_b, so (A, B) and (B, A) are the same row and
a category never pairs with itself.

The self-join is quadratic in categories per order, which stays small
(Olist orders rarely span more than a handful of categories).
"""

from itertools import combinations
from typing import Iterable, List, Tuple
from pyspark.sql import DataFrame
from pyspark.sql import functions as F
import logging

from ..config import AnalysisWindow
from ..provider import SourceTables

logger = logging.getLogger(__name__)

BASKET_COLUMNS = ["cat_a", "cat_b", "orders_together"]


def category_pairs(categories: Iterable[str]) -> List[Tuple[str, str]]:
    """
    Enumerate the pairs one order contributes.
    
    Args:
        categories: Category names of the order's items (duplicates and
            None allowed)
            
    Returns:
        Sorted list of (cat_a, cat_b) with cat_a < cat_b
    """
    distinct = sorted({c for c in categories if c is not None})
    return list(combinations(distinct, 2))


def build_basket_pairs(
    tables: SourceTables,
    window: AnalysisWindow,
    min_orders: int = 50
) -> DataFrame:
    """
    Build the BasketPairs table.
    
    Args:
        tables: Source snapshot
        window: Analysis window applied to the order
        min_orders: Pairs seen in fewer orders are dropped
        
    Returns:
        DataFrame with BASKET_COLUMNS, orders_together descending
    """
    logger.info(f"Building BasketPairs (min {min_orders} orders)...")
    
    orders_in_window = (tables.orders
                        .filter(window.contains(F.col("order_purchase_timestamp")))
                        .select("order_id"))
    
    order_categories = (tables.order_items
                        .join(tables.products, "product_id", "inner")
                        .join(orders_in_window, "order_id", "inner")
                        .filter(F.col("product_category_name").isNotNull())
                        .select("order_id", "product_category_name")
                        .distinct())
    
    left = order_categories.withColumnRenamed("product_category_name", "cat_a")
    right = order_categories.withColumnRenamed("product_category_name", "cat_b")
    
    pairs = (left
             .join(right, "order_id", "inner")
             .filter(F.col("cat_a") < F.col("cat_b")))
    
    return (pairs
            .groupBy("cat_a", "cat_b")
            .agg(F.count("*").alias("orders_together"))
            .filter(F.col("orders_together") >= min_orders)
            .select(*BASKET_COLUMNS)
            .orderBy(F.col("orders_together").desc(), "cat_a", "cat_b"))
