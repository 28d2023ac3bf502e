"""
Cohort Retention Matrix

Customers are grouped by the calendar month of their first ever order
(their cohort). For every later month we count how many of them ordered
again, relative to the size of the cohort in its first month.

Uses the full order history, not the analysis window: a window would cut
cohorts in half and make early months look like acquisitions.
"""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F
from pyspark.sql.window import Window
import logging

from ..provider import SourceTables

logger = logging.getLogger(__name__)

COHORT_COLUMNS = [
    "cohort_month",
    "months_since_first",
    "customers",
    "retention_pct",
]


def build_cohort_retention(tables: SourceTables) -> DataFrame:
    """
    Build the CohortRetention table.
    
    Grain: one row per (cohort_month, months_since_first).
    
    retention_pct is not clamped: a later month can have more distinct
    buyers than month 0 only through data issues, and that should stay
    visible in the output.
    
    Args:
        tables: Source snapshot
        
    Returns:
        DataFrame with COHORT_COLUMNS
    """
    logger.info("Building CohortRetention...")
    
    purchases = (tables.orders
                 .filter(F.col("customer_unique_id").isNotNull())
                 .withColumn("order_month", F.trunc("order_purchase_timestamp", "month"))
                 .withColumn(
                     "cohort_month",
                     F.min("order_month").over(Window.partitionBy("customer_unique_id"))
                 ))
    
    cohort_stats = (purchases
                    .withColumn(
                        "months_since_first",
                        F.months_between("order_month", "cohort_month").cast("int")
                    )
                    .groupBy("cohort_month", "months_since_first")
                    .agg(F.countDistinct("customer_unique_id").alias("customers")))
    
    cohort_size = F.first("customers").over(
        Window.partitionBy("cohort_month").orderBy("months_since_first")
    )
    
    return (cohort_stats
            .withColumn("retention_pct", F.lit(100.0) * F.col("customers") / cohort_size)
            .select(*COHORT_COLUMNS)
            .orderBy("cohort_month", "months_since_first"))
