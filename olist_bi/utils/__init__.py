"""Utility functions package."""

from .spark_utils import (
    get_spark_session,
    read_table,
    cast_columns,
    missing_columns,
    write_parquet,
)

from .s3_utils import (
    get_s3_client,
    is_s3_path,
    split_s3_path,
    list_s3_objects,
    delete_s3_prefix,
    check_path_exists,
)

__all__ = [
    # Spark utilities
    "get_spark_session",
    "read_table",
    "cast_columns",
    "missing_columns",
    "write_parquet",
    # S3 utilities
    "get_s3_client",
    "is_s3_path",
    "split_s3_path",
    "list_s3_objects",
    "delete_s3_prefix",
    "check_path_exists",
]
