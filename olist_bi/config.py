"""
Run configuration for the BI analytics pipeline.

The pipeline takes two kinds of parameters:
- Options chosen by the caller (PipelineConfig), validated by pydantic
- The analysis window (AnalysisWindow), resolved once per run against
  the orders snapshot because its defaults depend on the data

Both are immutable and passed explicitly into every stage, so there is
no process-wide state between runs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_YEARS = 2

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SPARK_TIMESTAMP_PATTERN = "yyyy-MM-dd HH:mm:ss"


class PipelineConfig(BaseModel):
    """Options recognised by a pipeline run."""

    model_config = ConfigDict(frozen=True)

    start_date: Optional[datetime] = Field(
        None, description="Inclusive lower bound of the analysis window (default: end - 2 years)"
    )
    end_date: Optional[datetime] = Field(
        None, description="Inclusive upper bound (default: latest purchase timestamp, or now)"
    )
    top_n: int = Field(20, ge=1, description="Number of products kept in TopProducts")
    min_pair_orders: int = Field(50, ge=1, description="Minimum orders for a basket pair")
    parallel: bool = Field(False, description="Run the aggregation stages concurrently")
    retain_versions: int = Field(2, ge=1, description="Published versions kept per table")
    register_views: bool = Field(True, description="Register vw<Name> session views after publish")

    @model_validator(mode="after")
    def check_window_order(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError(
                f"start_date {self.start_date} is after end_date {self.end_date}"
            )
        return self


def load_config(**options) -> PipelineConfig:
    """Build a PipelineConfig, reporting invalid values as ConfigurationError."""
    try:
        return PipelineConfig(**options)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


@dataclass(frozen=True)
class AnalysisWindow:
    """Resolved, inclusive [start, end] purchase-timestamp window."""
    start: datetime
    end: datetime

    @property
    def start_literal(self):
        return timestamp_literal(self.start)

    @property
    def end_literal(self):
        return timestamp_literal(self.end)

    def contains(self, column):
        """Column expression: True when the timestamp column lies in the window."""
        return column.between(self.start_literal, self.end_literal)

    def as_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def timestamp_literal(moment: datetime):
    """
    Timestamp column for a naive datetime, read in the session time zone.

    F.lit(datetime) converts through the Python process's local zone,
    while the source timestamps are parsed in the session zone; going
    through a string keeps both on the same clock.
    """
    return F.lit(moment.strftime(TIMESTAMP_FORMAT)).cast("timestamp")


def subtract_years(moment: datetime, years: int) -> datetime:
    """Calendar year subtraction; Feb 29 clamps to Feb 28."""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, day=28)


def resolve_window(config: PipelineConfig, orders: DataFrame) -> AnalysisWindow:
    """
    Fill in the window defaults from the orders snapshot.
    
    end defaults to the latest order_purchase_timestamp, or the current
    time when there are no orders; start defaults to end minus two years.
    
    Args:
        config: Run options
        orders: Orders DataFrame with order_purchase_timestamp
        
    Returns:
        AnalysisWindow with both bounds set
    """
    end = config.end_date
    if end is None:
        latest = orders.agg(
            F.date_format(F.max("order_purchase_timestamp"), SPARK_TIMESTAMP_PATTERN)
        ).collect()[0][0]
        if latest is not None:
            end = datetime.strptime(latest, TIMESTAMP_FORMAT)
        else:
            end = datetime.now(timezone.utc).replace(tzinfo=None)
            logger.warning(f"No orders found, defaulting window end to {end}")
    
    start = config.start_date or subtract_years(end, DEFAULT_WINDOW_YEARS)
    
    if start > end:
        raise ConfigurationError(f"Window start {start} is after window end {end}")
    
    logger.info(f"Analysis window: {start} -> {end}")
    return AnalysisWindow(start=start, end=end)
