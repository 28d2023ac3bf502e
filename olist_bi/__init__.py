"""Olist BI analytics: RFM, cohorts, top products, basket pairs and seller scores."""

from .config import PipelineConfig, AnalysisWindow, load_config, resolve_window
from .errors import (
    PipelineError,
    ConfigurationError,
    MissingInputError,
    DataQualityError,
    StageError,
    PublishError,
)
from .pipeline import run_pipeline, run_pipeline_from_path, PipelineResult
from .provider import SourceTables, load_source_tables
from .publisher import Publisher, read_published, register_views, PUBLISHED_TABLES

__version__ = "0.1.0"

__all__ = [
    "PipelineConfig",
    "AnalysisWindow",
    "load_config",
    "resolve_window",
    "PipelineError",
    "ConfigurationError",
    "MissingInputError",
    "DataQualityError",
    "StageError",
    "PublishError",
    "run_pipeline",
    "run_pipeline_from_path",
    "PipelineResult",
    "SourceTables",
    "load_source_tables",
    "Publisher",
    "read_published",
    "register_views",
    "PUBLISHED_TABLES",
]
