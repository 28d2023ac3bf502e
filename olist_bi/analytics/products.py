"""Top-N products by revenue within the analysis window."""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F
import logging

from ..config import AnalysisWindow
from ..provider import SourceTables, MONEY_TOTAL

logger = logging.getLogger(__name__)

TOP_PRODUCT_COLUMNS = [
    "product_id",
    "product_category_name",
    "revenue",
    "items_sold",
    "avg_price",
]


def build_top_products(tables: SourceTables, window: AnalysisWindow, top_n: int = 20) -> DataFrame:
    """
    Build the TopProducts table.
    
    Items are kept when their order falls in the window. The check is a
    semi-join, so an order appearing twice upstream cannot double-count
    its items.
    
    Args:
        tables: Source snapshot
        window: Analysis window applied to the parent order
        top_n: Number of products to keep
        
    Returns:
        DataFrame with TOP_PRODUCT_COLUMNS, revenue descending
    """
    logger.info(f"Building TopProducts (top {top_n})...")
    
    orders_in_window = (tables.orders
                        .filter(window.contains(F.col("order_purchase_timestamp")))
                        .select("order_id"))
    
    product_revenue = (tables.order_items
                       .join(orders_in_window, "order_id", "left_semi")
                       .join(tables.products, "product_id", "inner")
                       .groupBy("product_id", "product_category_name")
                       .agg(
                           F.sum("price").cast(MONEY_TOTAL).alias("revenue"),
                           F.sum("freight_value").cast(MONEY_TOTAL).alias("shipping"),
                           F.count("*").alias("items_sold")
                       ))
    
    ranking = [F.col("revenue").desc(), F.col("product_id")]
    
    return (product_revenue
            .orderBy(*ranking)
            .limit(top_n)
            .withColumn(
                "avg_price",
                F.when(F.col("items_sold") > 0,
                       F.col("revenue").cast("double") / F.col("items_sold"))
            )
            .select(*TOP_PRODUCT_COLUMNS)
            .orderBy(*ranking))
