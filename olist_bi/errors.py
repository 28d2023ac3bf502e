"""Exception hierarchy for the BI analytics pipeline.

Every failure that aborts a run derives from PipelineError, so callers
(the CLI, schedulers) can catch one type and report the cause. None of
these are retried: the job is deterministic, and rerunning after fixing
the input is the expected recovery path.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ConfigurationError(PipelineError):
    """Invalid analysis window or option values."""


class MissingInputError(PipelineError):
    """A required source table or column is absent or unreadable."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"Input '{table}': {message}")


class DataQualityError(PipelineError):
    """ERROR-severity quality checks failed on a source or result table."""

    def __init__(self, table: str, failures: List):
        self.table = table
        self.failures = failures
        names = ", ".join(f.check_name for f in failures)
        super().__init__(f"Quality checks failed for '{table}': {names}")


class StageError(PipelineError):
    """An aggregation stage failed while building its result table."""

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")


class PublishError(PipelineError):
    """Staging, committing or locking the published outputs failed."""
