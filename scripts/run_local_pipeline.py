"""
Local Pipeline Runner

Runs the BI analytics batch on a local (or S3) snapshot of the Olist
tables and publishes CustomerRFM, CohortRetention, TopProducts,
BasketPairs and SellerScore under the output path.

Usage:
    python scripts/run_local_pipeline.py --generate
    python scripts/run_local_pipeline.py --data-path data/raw --output data/published
    python scripts/run_local_pipeline.py --start-date 2017-01-01 --end-date 2018-08-31 --top-n 10

Every option can also be set through an OLIST_BI_* environment variable,
e.g. OLIST_BI_DATA_PATH or OLIST_BI_TOP_N.
"""

import os
import sys
import logging
import click
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from olist_bi.config import load_config
from olist_bi.errors import PipelineError
from olist_bi.pipeline import run_pipeline_from_path
from olist_bi.utils.spark_utils import get_spark_session

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"]


def generate_sample_data(data_path: str, orders: int) -> None:
    """Write a synthetic Olist dataset to data_path."""
    from olist_bi.data_generator import OlistDataGenerator

    print("\n" + "="*60)
    print("🏭 SAMPLE DATA")
    print("="*60)

    generator = OlistDataGenerator(
        num_customers=max(1, orders * 3 // 5),
        num_orders=orders,
    )
    generator.generate_all()
    generator.save_to_csv(data_path)


def print_summary(result) -> None:
    print("\n" + "="*60)
    print("📊 PUBLISHED TABLES")
    print("="*60)
    print(f"  Run:    {result.run_id}")
    print(f"  Window: {result.window.start} -> {result.window.end}")
    print("")
    for name, count in result.published.items():
        print(f"  ✅ {name:<16} {count:>8,} rows")
    if result.report.removed_versions:
        print(f"\n  🧹 Removed versions: {', '.join(result.report.removed_versions)}")


@click.command()
@click.option('--data-path', default='data/raw', envvar='OLIST_BI_DATA_PATH',
              help='Directory holding the source tables')
@click.option('--output', default='data/published', envvar='OLIST_BI_OUTPUT',
              help='Publish root (local directory or s3:// URI)')
@click.option('--start-date', type=click.DateTime(formats=DATE_FORMATS), default=None,
              envvar='OLIST_BI_START_DATE', help='Window start (default: end - 2 years)')
@click.option('--end-date', type=click.DateTime(formats=DATE_FORMATS), default=None,
              envvar='OLIST_BI_END_DATE', help='Window end (default: latest purchase)')
@click.option('--top-n', type=int, default=20, envvar='OLIST_BI_TOP_N',
              help='Products kept in TopProducts')
@click.option('--min-pair-orders', type=int, default=50, envvar='OLIST_BI_MIN_PAIR_ORDERS',
              help='Minimum orders for a basket pair')
@click.option('--parallel', is_flag=True, envvar='OLIST_BI_PARALLEL',
              help='Run the aggregation stages concurrently')
@click.option('--generate', is_flag=True, help='Generate sample data into --data-path first')
@click.option('--sample-orders', type=int, default=5000, help='Orders to generate with --generate')
@click.option('--master', default='local[*]', envvar='OLIST_BI_SPARK_MASTER',
              help='Spark master URL')
def main(data_path, output, start_date, end_date, top_n, min_pair_orders,
         parallel, generate, sample_orders, master):
    """
    Run the BI analytics pipeline.

    Examples:
        python scripts/run_local_pipeline.py --generate
        python scripts/run_local_pipeline.py --data-path s3://bucket/olist --output s3://bucket/bi
    """
    print("🚀 Olist BI Analytics - Local Runner")
    print(f"📁 Data path: {data_path if '://' in data_path else os.path.abspath(data_path)}")
    print(f"📦 Output:    {output if '://' in output else os.path.abspath(output)}")

    try:
        config = load_config(
            start_date=start_date,
            end_date=end_date,
            top_n=top_n,
            min_pair_orders=min_pair_orders,
            parallel=parallel,
        )
    except PipelineError as e:
        logger.error(str(e))
        sys.exit(1)

    if generate:
        generate_sample_data(data_path, sample_orders)

    spark = get_spark_session(master=master, shuffle_partitions=4)

    try:
        result = run_pipeline_from_path(spark, data_path, output, config)
    except PipelineError as e:
        logger.error(f"Run failed: {e}")
        print("\n❌ Pipeline failed, previously published tables are unchanged.")
        sys.exit(1)
    finally:
        spark.stop()

    print_summary(result)

    print("\n" + "="*60)
    print("🎉 Pipeline execution complete!")
    print("="*60)


if __name__ == "__main__":
    main()
