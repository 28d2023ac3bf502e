"""
Pytest configuration and shared fixtures.

Fixtures are reusable test components that provide:
- A local Spark session
- Small Olist-shaped source tables
- Factories for building custom scenarios

Source rows are written as strings, the way they arrive from the CSV
exports, and typed by SourceTables.from_frames like real input.
"""

import sys
import pytest
from datetime import datetime
from pathlib import Path

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture(scope="session")
def spark():
    """
    Create a Spark session for testing.

    scope="session" means this fixture is created once per test session,
    not once per test. This is more efficient for Spark.
    """
    from pyspark.sql import SparkSession

    spark = (SparkSession.builder
             .appName("TestSession")
             .master("local[2]")
             .config("spark.sql.shuffle.partitions", "2")
             .config("spark.sql.session.timeZone", "UTC")
             .config("spark.driver.memory", "2g")
             .config("spark.ui.enabled", "false")
             .getOrCreate())

    yield spark

    # Cleanup after all tests
    spark.stop()


@pytest.fixture(scope="session")
def make_frame(spark):
    """Factory: DataFrame of string columns from a list of dicts."""
    from pyspark.sql.types import StructType, StructField, StringType

    def _make(rows, columns):
        schema = StructType([StructField(c, StringType(), True) for c in columns])
        data = [tuple(row.get(c) for c in columns) for row in rows]
        return spark.createDataFrame(data, schema)

    return _make


@pytest.fixture(scope="session")
def make_tables(make_frame):
    """
    Factory: SourceTables from lists of raw rows.

    Tables that are not given default to empty.
    """
    from olist_bi.provider import SourceTables, INPUT_SCHEMAS

    def _make(orders=(), order_items=(), products=(), sellers=(), reviews=()):
        raw = {
            "orders": orders,
            "order_items": order_items,
            "products": products,
            "sellers": sellers,
            "reviews": reviews,
        }
        frames = {
            name: make_frame(list(rows), INPUT_SCHEMAS[name].fieldNames())
            for name, rows in raw.items()
        }
        return SourceTables.from_frames(**frames)

    return _make


@pytest.fixture
def sample_orders_data():
    """Sample order data: four customers, one of them ordering twice."""
    return [
        {
            "order_id": "O1",
            "customer_unique_id": "C1",
            "order_purchase_timestamp": "2018-01-10 10:00:00",
            "order_delivered_customer_date": "2018-01-15 12:00:00",
        },
        {
            "order_id": "O2",
            "customer_unique_id": "C1",
            "order_purchase_timestamp": "2018-03-05 09:00:00",
            "order_delivered_customer_date": "2018-03-09 18:30:00",
        },
        {
            "order_id": "O3",
            "customer_unique_id": "C2",
            "order_purchase_timestamp": "2018-02-20 15:00:00",
            "order_delivered_customer_date": "2018-02-28 10:00:00",
        },
        {
            "order_id": "O4",
            "customer_unique_id": "C3",
            "order_purchase_timestamp": "2018-03-01 08:00:00",
            "order_delivered_customer_date": None,
        },
        {
            "order_id": "O5",
            "customer_unique_id": "C4",
            "order_purchase_timestamp": "2017-11-11 11:00:00",
            "order_delivered_customer_date": "2017-11-20 16:00:00",
        },
    ]


@pytest.fixture
def sample_order_items_data():
    """Sample order items data."""
    return [
        {"order_id": "O1", "product_id": "P1", "seller_id": "S1", "price": "50.00", "freight_value": "10.00"},
        {"order_id": "O1", "product_id": "P2", "seller_id": "S2", "price": "20.00", "freight_value": "5.00"},
        {"order_id": "O2", "product_id": "P1", "seller_id": "S1", "price": "50.00", "freight_value": "10.00"},
        {"order_id": "O3", "product_id": "P3", "seller_id": "S2", "price": "100.00", "freight_value": "15.00"},
        {"order_id": "O4", "product_id": "P2", "seller_id": "S1", "price": "20.00", "freight_value": "5.00"},
        {"order_id": "O5", "product_id": "P3", "seller_id": "S3", "price": "100.00", "freight_value": "20.00"},
    ]


@pytest.fixture
def sample_products_data():
    """Sample product data; P3 has no category."""
    return [
        {"product_id": "P1", "product_category_name": "cama_mesa_banho"},
        {"product_id": "P2", "product_category_name": "moveis_decoracao"},
        {"product_id": "P3", "product_category_name": None},
    ]


@pytest.fixture
def sample_sellers_data():
    """Sample seller data."""
    return [{"seller_id": "S1"}, {"seller_id": "S2"}, {"seller_id": "S3"}]


@pytest.fixture
def sample_reviews_data():
    """Sample reviews; O4 was never reviewed."""
    return [
        {"order_id": "O1", "review_score": "5"},
        {"order_id": "O2", "review_score": "4"},
        {"order_id": "O3", "review_score": "2"},
        {"order_id": "O5", "review_score": "3"},
    ]


@pytest.fixture
def source_tables(
    make_tables,
    sample_orders_data,
    sample_order_items_data,
    sample_products_data,
    sample_sellers_data,
    sample_reviews_data,
):
    """SourceTables built from the sample data."""
    return make_tables(
        orders=sample_orders_data,
        order_items=sample_order_items_data,
        products=sample_products_data,
        sellers=sample_sellers_data,
        reviews=sample_reviews_data,
    )


@pytest.fixture
def full_window():
    """Window covering every sample order, ending on the latest purchase."""
    from olist_bi.config import AnalysisWindow

    return AnalysisWindow(
        start=datetime(2016, 3, 5, 9, 0, 0),
        end=datetime(2018, 3, 5, 9, 0, 0),
    )


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary directory structure for inputs and outputs."""
    raw_dir = tmp_path / "raw"
    published_dir = tmp_path / "published"

    raw_dir.mkdir()

    return {
        "root": tmp_path,
        "raw": raw_dir,
        "published": published_dir,
    }
