"""
Customer RFM & CLV

Scores every customer with at least one order in the analysis window on:
- Recency: days between the last purchase and the window end
- Frequency: number of distinct orders
- Monetary: total spent (price + freight) across their items

Each metric is split into quintiles, 5 being the best bucket (most
recent, most frequent, highest spend). The three scores concatenated give
the RFM cell ("555" = champions, "155" = valuable but lapsed).

running_revenue is the cumulative monetary total with customers ordered
from highest to lowest spend, which is the Pareto / CLV curve BI tools
plot ("top 20% of customers bring 60% of revenue").
"""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F
from pyspark.sql.window import Window
import logging

from ..config import AnalysisWindow
from ..provider import SourceTables, MONEY_TOTAL

logger = logging.getLogger(__name__)

QUINTILES = 5

RFM_COLUMNS = [
    "customer_unique_id",
    "recency_days",
    "frequency",
    "monetary",
    "r_score",
    "f_score",
    "m_score",
    "rfm_cell",
    "running_revenue",
]


def quintile_score(best_first, tie_break: str = "customer_unique_id"):
    """
    Score 1-5 from rank-based quintiles, 5 for the best bucket.
    
    ntile puts the leftover rows in its first buckets; ordering best
    first and flipping the bucket number gives those rows to the top
    scores, so bucket sizes still differ by at most one and a lone
    customer scores 5.
    
    Args:
        best_first: Sort expression with the best value first
        tie_break: Column that makes the ordering total
        
    Returns:
        Integer column expression
    """
    window = Window.orderBy(best_first, F.col(tie_break))
    return (F.lit(QUINTILES + 1) - F.ntile(QUINTILES).over(window)).cast("int")


def build_customer_rfm(tables: SourceTables, window: AnalysisWindow) -> DataFrame:
    """
    Build the CustomerRFM table.
    
    Grain: one row per customer_unique_id with a qualifying order.
    
    Args:
        tables: Source snapshot
        window: Analysis window applied to order_purchase_timestamp
        
    Returns:
        DataFrame with RFM_COLUMNS, ordered by monetary descending
    """
    logger.info("Building CustomerRFM...")
    
    orders = tables.orders.filter(window.contains(F.col("order_purchase_timestamp")))
    
    customer_orders = (orders
                       .join(tables.order_items, "order_id", "inner")
                       .groupBy("customer_unique_id")
                       .agg(
                           F.max("order_purchase_timestamp").alias("last_purchase"),
                           F.countDistinct("order_id").alias("frequency"),
                           F.sum(F.col("price") + F.col("freight_value"))
                            .cast(MONEY_TOTAL).alias("monetary")
                       )
                       .withColumn(
                           "recency_days",
                           F.datediff(F.to_date(window.end_literal),
                                      F.to_date("last_purchase"))
                       ))
    
    spend_order = Window.orderBy(F.col("monetary").desc(), F.col("customer_unique_id"))
    
    scored = (customer_orders
              .withColumn("r_score", quintile_score(F.col("recency_days").asc()))
              .withColumn("f_score", quintile_score(F.col("frequency").desc()))
              .withColumn("m_score", quintile_score(F.col("monetary").desc()))
              .withColumn("rfm_cell", F.concat(
                  F.col("r_score").cast("string"),
                  F.col("f_score").cast("string"),
                  F.col("m_score").cast("string")
              ))
              .withColumn(
                  "running_revenue",
                  F.sum("monetary")
                   .over(spend_order.rowsBetween(Window.unboundedPreceding,
                                                 Window.currentRow))
                   .cast(MONEY_TOTAL)
              ))
    
    return (scored
            .select(*RFM_COLUMNS)
            .orderBy(F.col("monetary").desc(), F.col("customer_unique_id")))
