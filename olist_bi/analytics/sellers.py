"""
Seller Performance Scorecard

Volume, revenue, review and delivery metrics per seller over the full
order history, plus percent ranks for revenue and review score.

Items are inner-joined to reviews: sellers whose items sit only on
unreviewed orders do not appear at all, and an order with several
reviews counts its items once per review. Both follow the established
report definition and are kept as-is until the business decides
otherwise.
"""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F
from pyspark.sql.window import Window
import logging

from ..provider import SourceTables, MONEY_TOTAL

logger = logging.getLogger(__name__)

SELLER_COLUMNS = [
    "seller_id",
    "items_shipped",
    "gross_revenue",
    "avg_review",
    "avg_delivery_days",
    "revenue_percentile",
    "review_percentile",
]


def percent_rank_desc(column: str):
    """
    Percent rank with the highest value at 0.0 and the lowest at 1.0.
    
    (rank - 1) / (n - 1) is undefined for a single seller, so the result
    is null when the population has one member.
    """
    population = F.count(F.lit(1)).over(Window.partitionBy())
    rank = F.percent_rank().over(Window.orderBy(F.col(column).desc()))
    return F.when(population > 1, rank)


def build_seller_scorecard(tables: SourceTables) -> DataFrame:
    """
    Build the SellerScore table.
    
    avg_delivery_days averages whole days from purchase to delivery;
    undelivered orders (null delivery date) are left out of the mean.
    
    Args:
        tables: Source snapshot
        
    Returns:
        DataFrame with SELLER_COLUMNS, gross_revenue descending
    """
    logger.info("Building SellerScore...")
    
    seller_items = (tables.order_items
                    .join(tables.sellers, "seller_id", "inner")
                    .join(tables.orders, "order_id", "inner")
                    .join(tables.reviews, "order_id", "inner"))
    
    seller_stats = (seller_items
                    .groupBy("seller_id")
                    .agg(
                        F.count("*").alias("items_shipped"),
                        F.sum(F.col("price") + F.col("freight_value"))
                         .cast(MONEY_TOTAL).alias("gross_revenue"),
                        F.avg(F.col("review_score").cast("double")).alias("avg_review"),
                        F.avg(F.datediff(
                            F.to_date("order_delivered_customer_date"),
                            F.to_date("order_purchase_timestamp")
                        ).cast("double")).alias("avg_delivery_days")
                    ))
    
    return (seller_stats
            .withColumn("revenue_percentile", percent_rank_desc("gross_revenue"))
            .withColumn("review_percentile", percent_rank_desc("avg_review"))
            .select(*SELLER_COLUMNS)
            .orderBy(F.col("gross_revenue").desc(), "seller_id"))
