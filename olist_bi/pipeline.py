"""
BI Analytics Pipeline

One batch run:
1. Load the source snapshot and check its quality
2. Resolve the analysis window
3. Build the five result tables (independent stages, optionally in
   parallel)
4. Check the results and publish them together

Either all five tables are published or none is; any failure raises a
PipelineError subclass naming the cause, and the previously published
tables stay in place.
"""

import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional
import logging

from pyspark.sql import DataFrame, SparkSession

from .analytics import (
    build_customer_rfm,
    build_cohort_retention,
    build_top_products,
    build_basket_pairs,
    build_seller_scorecard,
)
from .config import PipelineConfig, AnalysisWindow, resolve_window
from .errors import StageError
from .provider import SourceTables, load_source_tables
from .publisher import Publisher, PublishReport, PUBLISHED_TABLES
from .quality import (
    validate_source_tables,
    validate_customer_rfm,
    validate_basket_pairs,
    validate_seller_score,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outcome of a successful run."""
    run_id: str
    window: AnalysisWindow
    report: PublishReport

    @property
    def published(self) -> Dict[str, int]:
        return self.report.row_counts


def new_run_id() -> str:
    """Sortable run identifier, e.g. 20180903T094900-1a2b3c4d."""
    now = datetime.now(timezone.utc)
    return f"{now:%Y%m%dT%H%M%S}-{uuid.uuid4().hex[:8]}"


def stage_builders(
    tables: SourceTables,
    window: AnalysisWindow,
    config: PipelineConfig
) -> Dict[str, Callable[[], DataFrame]]:
    """Map every published name to the function building its table."""
    return {
        "CustomerRFM": lambda: build_customer_rfm(tables, window),
        "CohortRetention": lambda: build_cohort_retention(tables),
        "TopProducts": lambda: build_top_products(tables, window, config.top_n),
        "BasketPairs": lambda: build_basket_pairs(tables, window, config.min_pair_orders),
        "SellerScore": lambda: build_seller_scorecard(tables),
    }


def run_stage(name: str, build: Callable[[], DataFrame]) -> DataFrame:
    """
    Build and materialize one stage.
    
    Spark evaluates lazily; counting the cached result makes stage
    failures surface here, attributed to the stage, instead of during
    publication.
    
    Raises:
        StageError: the stage could not be built
    """
    logger.info(f"Stage {name} started")
    df = None
    try:
        df = build().cache()
        count = df.count()
    except Exception as e:
        logger.error(f"Stage {name} failed: {e}")
        if df is not None:
            df.unpersist()
        raise StageError(name, e) from e
    
    logger.info(f"Stage {name} finished: {count} rows")
    return df


def compute_outputs(
    tables: SourceTables,
    window: AnalysisWindow,
    config: PipelineConfig,
    outputs: Optional[Dict[str, DataFrame]] = None
) -> Dict[str, DataFrame]:
    """
    Build all result tables and check their post-conditions.

    Args:
        tables: Source snapshot (read-only, shared by every stage)
        window: Resolved analysis window
        config: Run options
        outputs: Dict receiving each cached stage result as soon as it
            is built, so the caller can unpersist them even when a
            later stage or check fails

    Returns:
        Result DataFrames keyed by published name
    """
    builders = stage_builders(tables, window, config)
    outputs = {} if outputs is None else outputs

    if config.parallel:
        failures = []
        with ThreadPoolExecutor(max_workers=len(builders)) as executor:
            futures = {
                executor.submit(run_stage, name, build): name
                for name, build in builders.items()
            }
            # drain every future so no cached result is left untracked
            for future in as_completed(futures):
                try:
                    outputs[futures[future]] = future.result()
                except StageError as e:
                    failures.append(e)
        if failures:
            raise failures[0]
    else:
        for name, build in builders.items():
            outputs[name] = run_stage(name, build)
    
    checks = [
        validate_customer_rfm(outputs["CustomerRFM"]),
        validate_basket_pairs(outputs["BasketPairs"], config.min_pair_orders),
        validate_seller_score(outputs["SellerScore"]),
    ]
    for validator in checks:
        validator.log_results()
        validator.raise_for_errors()
    
    return {name: outputs[name] for name in PUBLISHED_TABLES}


def run_pipeline(
    spark: SparkSession,
    tables: SourceTables,
    output_path: str,
    config: Optional[PipelineConfig] = None,
    run_id: Optional[str] = None
) -> PipelineResult:
    """
    Run the whole batch on a source snapshot and publish the results.
    
    Args:
        spark: SparkSession
        tables: Source snapshot
        output_path: Publish root (local directory or s3:// URI)
        config: Run options; defaults apply when None
        run_id: Identifier for this run; generated when None
        
    Returns:
        PipelineResult with the resolved window and publish report
        
    Raises:
        PipelineError: any input, stage or publish failure
    """
    config = config or PipelineConfig()
    run_id = run_id or new_run_id()
    logger.info(f"Starting run {run_id}")
    
    snapshot = tables.persist()
    outputs: Dict[str, DataFrame] = {}
    try:
        for validator in validate_source_tables(snapshot):
            validator.log_results()
            validator.raise_for_errors()
        
        window = resolve_window(config, snapshot.orders)
        results = compute_outputs(snapshot, window, config, outputs)

        publisher = Publisher(
            spark,
            output_path,
            retain_versions=config.retain_versions,
            register_views=config.register_views,
        )
        report = publisher.publish(results, run_id, metadata={
            "window": window.as_dict(),
            "top_n": config.top_n,
            "min_pair_orders": config.min_pair_orders,
        })
    finally:
        for df in outputs.values():
            df.unpersist()
        snapshot.unpersist()
    
    logger.info(f"Run {run_id} published: {', '.join(report.published)}")
    return PipelineResult(run_id=run_id, window=window, report=report)


def run_pipeline_from_path(
    spark: SparkSession,
    data_path: str,
    output_path: str,
    config: Optional[PipelineConfig] = None
) -> PipelineResult:
    """Load the source tables from data_path, then run_pipeline."""
    tables = load_source_tables(spark, data_path)
    return run_pipeline(spark, tables, output_path, config)
