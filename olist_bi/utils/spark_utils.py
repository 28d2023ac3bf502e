"""Utility functions for Spark operations."""

from pyspark.sql import SparkSession, DataFrame
from pyspark.sql import functions as F
from pyspark.sql.types import StructType
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)


def get_spark_session(
    app_name: str = "OlistBIAnalytics",
    master: Optional[str] = None,
    shuffle_partitions: int = 8
) -> SparkSession:
    """
    Get or create a Spark session.
    
    The session time zone is pinned to UTC so that day and month
    boundaries (recency, cohorts, delivery days) do not depend on the
    machine the job runs on.
    
    Args:
        app_name: Name for the Spark application
        master: Spark master URL, e.g. "local[*]" for local runs
        shuffle_partitions: Value for spark.sql.shuffle.partitions
        
    Returns:
        SparkSession instance
    """
    builder = SparkSession.builder.appName(app_name)
    if master:
        builder = builder.master(master)
    
    return (builder
            .config("spark.sql.session.timeZone", "UTC")
            .config("spark.sql.shuffle.partitions", str(shuffle_partitions))
            .config("spark.sql.parquet.compression.codec", "snappy")
            .getOrCreate())


def read_table(
    spark: SparkSession,
    path: str,
    fmt: str,
    header: bool = True
) -> DataFrame:
    """
    Read a CSV or Parquet table into a DataFrame.
    
    CSV is read with every column as string; typing is applied afterwards
    with cast_columns so that files with extra or reordered columns still
    load.
    
    Args:
        spark: SparkSession
        path: Path to the file or directory
        fmt: "csv" or "parquet"
        header: Whether CSV has header row
        
    Returns:
        DataFrame with the table's data
    """
    if fmt == "parquet":
        return spark.read.parquet(path)
    
    return (spark.read
            .option("header", str(header).lower())
            .option("multiLine", "true")
            .option("escape", '"')
            .csv(path))


def cast_columns(df: DataFrame, schema: StructType) -> DataFrame:
    """
    Project a DataFrame onto a schema, casting every field.
    
    Columns not in the schema are dropped.
    
    Args:
        df: Input DataFrame
        schema: Target schema; every field must exist in df
        
    Returns:
        DataFrame with exactly the schema's columns and types
    """
    return df.select([
        F.col(field.name).cast(field.dataType).alias(field.name)
        for field in schema.fields
    ])


def missing_columns(df: DataFrame, required: List[str]) -> List[str]:
    """Return the required column names that df does not have."""
    present = set(df.columns)
    return [c for c in required if c not in present]


def write_parquet(df: DataFrame, path: str, mode: str = "overwrite") -> None:
    """
    Write DataFrame to a single-file Parquet dataset.
    
    Results are small aggregates; one file keeps the output easy to pick
    up from BI tools.
    
    Args:
        df: DataFrame to write
        path: Output path (S3 or local)
        mode: Write mode (overwrite, append, etc.)
    """
    (df.coalesce(1)
     .write
     .mode(mode)
     .parquet(path))
    
    logger.info(f"Written parquet to {path}")
