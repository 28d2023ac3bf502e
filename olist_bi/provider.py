"""
Input Provider

Loads the five Olist source tables the analytics stages read from:
orders, order_items, products, sellers and reviews.

Tables are located in a base directory (local or S3). For each table the
provider tries, in order:
    <name>/            Parquet dataset directory
    <name>.parquet     Parquet file
    <name>.csv         CSV file with header
    olist_<...>.csv    the file name used by the public Kaggle dataset

The raw Kaggle orders file carries customer_id instead of
customer_unique_id; in that case the customers table is loaded as well
and used to resolve the unique id.

Every table is projected onto its input schema. Extra columns are
ignored, missing required columns raise MissingInputError.
"""

import os
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple
import logging

from pyspark.errors import AnalysisException
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import (
    StructType, StructField, StringType, TimestampType,
    DecimalType, IntegerType,
)

from .errors import MissingInputError
from .utils.spark_utils import read_table, cast_columns, missing_columns
from .utils.s3_utils import is_s3_path, split_s3_path, check_path_exists

logger = logging.getLogger(__name__)

MONEY = DecimalType(12, 2)
# Aggregated money columns
MONEY_TOTAL = DecimalType(22, 2)


# =============================================================================
# INPUT SCHEMAS (column names are the external contract)
# =============================================================================

ORDERS_SCHEMA = StructType([
    StructField("order_id", StringType(), False),
    StructField("customer_unique_id", StringType(), False),
    StructField("order_purchase_timestamp", TimestampType(), False),
    StructField("order_delivered_customer_date", TimestampType(), True),
])

ORDER_ITEMS_SCHEMA = StructType([
    StructField("order_id", StringType(), False),
    StructField("product_id", StringType(), False),
    StructField("seller_id", StringType(), False),
    StructField("price", MONEY, False),
    StructField("freight_value", MONEY, False),
])

PRODUCTS_SCHEMA = StructType([
    StructField("product_id", StringType(), False),
    StructField("product_category_name", StringType(), True),
])

SELLERS_SCHEMA = StructType([
    StructField("seller_id", StringType(), False),
])

REVIEWS_SCHEMA = StructType([
    StructField("order_id", StringType(), False),
    StructField("review_score", IntegerType(), False),
])

CUSTOMERS_SCHEMA = StructType([
    StructField("customer_id", StringType(), False),
    StructField("customer_unique_id", StringType(), False),
])

INPUT_SCHEMAS: Dict[str, StructType] = {
    "orders": ORDERS_SCHEMA,
    "order_items": ORDER_ITEMS_SCHEMA,
    "products": PRODUCTS_SCHEMA,
    "sellers": SELLERS_SCHEMA,
    "reviews": REVIEWS_SCHEMA,
}

KAGGLE_FILE_NAMES = {
    "orders": "olist_orders_dataset.csv",
    "order_items": "olist_order_items_dataset.csv",
    "products": "olist_products_dataset.csv",
    "sellers": "olist_sellers_dataset.csv",
    "reviews": "olist_order_reviews_dataset.csv",
    "customers": "olist_customers_dataset.csv",
}


@dataclass(frozen=True)
class SourceTables:
    """Read-only snapshot of the source tables shared by all stages."""
    orders: DataFrame
    order_items: DataFrame
    products: DataFrame
    sellers: DataFrame
    reviews: DataFrame

    @classmethod
    def from_frames(
        cls,
        orders: DataFrame,
        order_items: DataFrame,
        products: DataFrame,
        sellers: DataFrame,
        reviews: DataFrame,
        customers: Optional[DataFrame] = None
    ) -> "SourceTables":
        """
        Validate and type raw DataFrames.
        
        Args:
            orders, order_items, products, sellers, reviews: Raw frames
            customers: Customers frame, needed only when orders has
                customer_id instead of customer_unique_id
                
        Returns:
            SourceTables with every frame cast to its input schema
        """
        if ("customer_unique_id" not in orders.columns
                and "customer_id" in orders.columns):
            orders = _resolve_unique_customer(orders, customers)
        
        raw = {
            "orders": orders,
            "order_items": order_items,
            "products": products,
            "sellers": sellers,
            "reviews": reviews,
        }
        typed = {}
        for name, df in raw.items():
            schema = INPUT_SCHEMAS[name]
            missing = missing_columns(df, schema.fieldNames())
            if missing:
                raise MissingInputError(name, f"missing required columns {missing}")
            typed[name] = cast_columns(df, schema)
        
        return cls(**typed)

    def persist(self) -> "SourceTables":
        """Cache every table so that all stages read the same snapshot."""
        return SourceTables(**{
            f.name: getattr(self, f.name).cache() for f in fields(self)
        })

    def unpersist(self) -> None:
        for f in fields(self):
            getattr(self, f.name).unpersist()

    def row_counts(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name).count() for f in fields(self)}


def _resolve_unique_customer(orders: DataFrame, customers: Optional[DataFrame]) -> DataFrame:
    """Map customer_id to customer_unique_id through the customers table."""
    if customers is None:
        raise MissingInputError(
            "customers",
            "orders have customer_id but no customer_unique_id; "
            "the customers table is required to resolve it"
        )
    missing = missing_columns(customers, CUSTOMERS_SCHEMA.fieldNames())
    if missing:
        raise MissingInputError("customers", f"missing required columns {missing}")
    
    lookup = cast_columns(customers, CUSTOMERS_SCHEMA).dropDuplicates(["customer_id"])
    return orders.join(lookup, "customer_id", "left")


def _path_exists(path: str) -> bool:
    if is_s3_path(path):
        bucket, key = split_s3_path(path)
        # directory candidates must not match "<name>.csv" by prefix
        if path.endswith("/"):
            key += "/"
        return check_path_exists(bucket, key)
    return os.path.exists(path)


def find_table(base_path: str, name: str) -> Optional[Tuple[str, str]]:
    """
    Locate a table under base_path.
    
    Args:
        base_path: Directory (local or s3://) holding the tables
        name: Logical table name, e.g. "order_items"
        
    Returns:
        (path, format) of the first candidate that exists, or None
    """
    base = base_path.rstrip("/")
    candidates = [
        (f"{base}/{name}/", "parquet"),
        (f"{base}/{name}.parquet", "parquet"),
        (f"{base}/{name}.csv", "csv"),
    ]
    if name in KAGGLE_FILE_NAMES:
        candidates.append((f"{base}/{KAGGLE_FILE_NAMES[name]}", "csv"))
    
    for path, fmt in candidates:
        if _path_exists(path):
            return path, fmt
    return None


def _load(spark: SparkSession, base_path: str, name: str, required: bool = True) -> Optional[DataFrame]:
    located = find_table(base_path, name)
    if located is None:
        if required:
            raise MissingInputError(name, f"no table found under {base_path}")
        return None
    
    path, fmt = located
    try:
        df = read_table(spark, path, fmt)
    except AnalysisException as e:
        raise MissingInputError(name, f"unreadable at {path}: {e}") from e
    
    logger.info(f"Loaded {name} from {path} ({fmt})")
    return df


def load_source_tables(spark: SparkSession, base_path: str) -> SourceTables:
    """
    Load and type all source tables from a directory.
    
    Args:
        spark: SparkSession
        base_path: Directory (local or s3://) holding the tables
        
    Returns:
        SourceTables snapshot
        
    Raises:
        MissingInputError: a required table or column is absent
    """
    frames = {name: _load(spark, base_path, name) for name in INPUT_SCHEMAS}
    
    customers = None
    if "customer_unique_id" not in frames["orders"].columns:
        customers = _load(spark, base_path, "customers", required=False)
    
    return SourceTables.from_frames(customers=customers, **frames)
