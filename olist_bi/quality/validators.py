"""
Data Quality Validators

Checks run on the source tables before any aggregation, and on the
result tables before they are published. A run stops when an
ERROR-severity check fails, so a bad input never replaces the outputs
BI users are currently looking at.

Check types:
1. Null checks (keys and timestamps present)
2. Uniqueness (primary keys)
3. Range checks (prices, review scores, scores and percentiles)
4. Pattern checks (RFM cell codes)
5. Referential integrity (items and reviews point at known orders)
"""

from typing import List, Optional
from dataclasses import dataclass
from enum import Enum
from pyspark.sql import DataFrame
from pyspark.sql import functions as F
import logging

from ..errors import DataQualityError

logger = logging.getLogger(__name__)


class CheckSeverity(Enum):
    """Severity levels for data quality issues."""
    WARNING = "warning"   # Log but continue
    ERROR = "error"       # Fail the run
    INFO = "info"         # Informational only


@dataclass
class QualityCheckResult:
    """Result of a data quality check."""
    check_name: str
    passed: bool
    severity: CheckSeverity
    message: str
    failed_count: int = 0
    total_count: int = 0
    failed_percentage: float = 0.0
    
    def __str__(self):
        status = "✅ PASSED" if self.passed else "❌ FAILED"
        return (f"{status} [{self.severity.value.upper()}] {self.check_name}: "
                f"{self.message} ({self.failed_count}/{self.total_count} = "
                f"{self.failed_percentage:.2f}%)")


class DataQualityValidator:
    """
    Data quality validator for DataFrames.
    
    Usage:
        validator = DataQualityValidator(df, "orders")
        validator.check_not_null(["order_id"])
        validator.raise_for_errors()
    """
    
    def __init__(self, df: DataFrame, table_name: str = "unknown"):
        self.df = df
        self.table_name = table_name
        self.results: List[QualityCheckResult] = []
        self._total_count = None
    
    @property
    def total_count(self) -> int:
        """Lazily compute and cache total row count."""
        if self._total_count is None:
            self._total_count = self.df.count()
        return self._total_count
    
    def _record(
        self,
        check_name: str,
        failed_count: int,
        severity: CheckSeverity,
        message: str
    ) -> QualityCheckResult:
        result = QualityCheckResult(
            check_name=check_name,
            passed=failed_count == 0,
            severity=severity,
            message=message,
            failed_count=failed_count,
            total_count=self.total_count,
            failed_percentage=(failed_count / self.total_count * 100
                               if self.total_count > 0 else 0)
        )
        self.results.append(result)
        return result
    
    def check_not_null(
        self,
        columns: List[str],
        severity: CheckSeverity = CheckSeverity.ERROR
    ) -> List[QualityCheckResult]:
        """
        Check that specified columns have no null values.
        
        Args:
            columns: Column names to check
            severity: How to treat failures
            
        Returns:
            List of check results
        """
        results = []
        
        for col_name in columns:
            if col_name not in self.df.columns:
                result = QualityCheckResult(
                    check_name=f"not_null_{col_name}",
                    passed=False,
                    severity=CheckSeverity.ERROR,
                    message=f"Column '{col_name}' does not exist in DataFrame"
                )
                self.results.append(result)
                results.append(result)
                continue
            
            null_count = self.df.filter(F.col(col_name).isNull()).count()
            results.append(self._record(
                f"not_null_{col_name}", null_count, severity,
                f"Null check for '{col_name}'"
            ))
        
        return results
    
    def check_unique(
        self,
        columns: List[str],
        severity: CheckSeverity = CheckSeverity.ERROR
    ) -> QualityCheckResult:
        """
        Check that specified columns form a unique key.
        
        Args:
            columns: Columns that should be unique together
            severity: How to treat failures
            
        Returns:
            Check result
        """
        distinct_count = self.df.select(columns).distinct().count()
        return self._record(
            f"unique_{'+'.join(columns)}",
            self.total_count - distinct_count,
            severity,
            f"Uniqueness check for {columns}"
        )
    
    def check_range(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: CheckSeverity = CheckSeverity.ERROR
    ) -> QualityCheckResult:
        """
        Check that numeric column values fall within a range.
        
        Nulls are not counted as failures; use check_not_null for that.
        
        Args:
            column: Column to check
            min_value: Minimum allowed value (inclusive)
            max_value: Maximum allowed value (inclusive)
            severity: How to treat failures
            
        Returns:
            Check result
        """
        condition = F.lit(True)
        
        if min_value is not None:
            condition = condition & (F.col(column) >= min_value)
        if max_value is not None:
            condition = condition & (F.col(column) <= max_value)
        
        invalid_count = self.df.filter(F.col(column).isNotNull() & ~condition).count()
        
        return self._record(
            f"range_{column}", invalid_count, severity,
            f"Values in '{column}' must be in range [{min_value}, {max_value}]"
        )
    
    def check_pattern(
        self,
        column: str,
        pattern: str,
        severity: CheckSeverity = CheckSeverity.ERROR
    ) -> QualityCheckResult:
        """
        Check that string values fully match a regular expression.
        
        Args:
            column: Column to check
            pattern: Java regex, anchored by the caller
            severity: How to treat failures
            
        Returns:
            Check result
        """
        invalid_count = self.df.filter(~F.col(column).rlike(pattern)).count()
        return self._record(
            f"pattern_{column}", invalid_count, severity,
            f"Values in '{column}' must match {pattern}"
        )
    
    def check_condition(
        self,
        check_name: str,
        invalid_condition,
        message: str,
        severity: CheckSeverity = CheckSeverity.ERROR
    ) -> QualityCheckResult:
        """
        Check a row-level rule given as a Column expression.

        Args:
            check_name: Name reported for the check
            invalid_condition: Column that is True for violating rows
            message: Description of the rule
            severity: How to treat failures

        Returns:
            Check result
        """
        invalid_count = self.df.filter(invalid_condition).count()
        return self._record(check_name, invalid_count, severity, message)

    def check_referential_integrity(
        self,
        column: str,
        reference_df: DataFrame,
        reference_column: str,
        severity: CheckSeverity = CheckSeverity.ERROR
    ) -> QualityCheckResult:
        """
        Check that foreign key values exist in reference table.
        
        Args:
            column: Foreign key column in this DataFrame
            reference_df: Reference DataFrame
            reference_column: Primary key column in reference DataFrame
            severity: How to treat failures
            
        Returns:
            Check result
        """
        fk_values = self.df.select(column).distinct()
        pk_values = reference_df.select(F.col(reference_column).alias(column)).distinct()
        
        orphan_count = fk_values.join(pk_values, column, "left_anti").count()
        
        return self._record(
            f"ref_integrity_{column}", orphan_count, severity,
            f"Foreign key '{column}' must exist in reference table"
        )
    
    def errors(self) -> List[QualityCheckResult]:
        """Failed ERROR-severity results."""
        return [r for r in self.results
                if not r.passed and r.severity == CheckSeverity.ERROR]
    
    def all_passed(self, include_warnings: bool = False) -> bool:
        """
        Check if all quality checks passed.
        
        Args:
            include_warnings: If True, warnings count as failures
            
        Returns:
            True if all checks passed
        """
        for result in self.results:
            if not result.passed:
                if result.severity == CheckSeverity.ERROR:
                    return False
                if include_warnings and result.severity == CheckSeverity.WARNING:
                    return False
        return True
    
    def raise_for_errors(self) -> None:
        """Raise DataQualityError if any ERROR-severity check failed."""
        failures = self.errors()
        if failures:
            raise DataQualityError(self.table_name, failures)
    
    def get_summary(self) -> str:
        """Get a summary of all check results."""
        lines = [f"Data Quality Report for {self.table_name}"]
        lines.append("=" * 50)
        lines.append(f"Total rows: {self.total_count}")
        lines.append("")
        
        passed_count = sum(1 for r in self.results if r.passed)
        lines.append(f"Checks passed: {passed_count}/{len(self.results)}")
        lines.append("")
        
        for result in self.results:
            lines.append(str(result))
        
        return "\n".join(lines)
    
    def log_results(self):
        """Log all results using the logging module."""
        logger.info(f"Data Quality Results for {self.table_name}")
        
        for result in self.results:
            if result.passed:
                logger.info(str(result))
            elif result.severity == CheckSeverity.WARNING:
                logger.warning(str(result))
            else:
                logger.error(str(result))


# =============================================================================
# SOURCE TABLE SUITES
# =============================================================================

def validate_orders(df: DataFrame) -> DataQualityValidator:
    """Run standard validation suite for orders table."""
    validator = DataQualityValidator(df, "orders")
    
    validator.check_not_null(["order_id", "customer_unique_id", "order_purchase_timestamp"])
    validator.check_unique(["order_id"])
    
    return validator


def validate_order_items(df: DataFrame, orders_df: DataFrame) -> DataQualityValidator:
    """Run standard validation suite for order_items table."""
    validator = DataQualityValidator(df, "order_items")
    
    validator.check_not_null(["order_id", "product_id", "seller_id", "price", "freight_value"])
    validator.check_range("price", min_value=0)
    validator.check_range("freight_value", min_value=0)
    
    # Orphan items are ignored by every stage's joins
    validator.check_referential_integrity(
        "order_id", orders_df, "order_id", severity=CheckSeverity.WARNING
    )
    
    return validator


def validate_products(df: DataFrame) -> DataQualityValidator:
    """Run standard validation suite for products table."""
    validator = DataQualityValidator(df, "products")
    
    validator.check_not_null(["product_id"])
    validator.check_unique(["product_id"])
    validator.check_not_null(["product_category_name"], severity=CheckSeverity.INFO)
    
    return validator


def validate_sellers(df: DataFrame) -> DataQualityValidator:
    """Run standard validation suite for sellers table."""
    validator = DataQualityValidator(df, "sellers")
    
    validator.check_not_null(["seller_id"])
    validator.check_unique(["seller_id"])
    
    return validator


def validate_reviews(df: DataFrame, orders_df: DataFrame) -> DataQualityValidator:
    """Run standard validation suite for reviews table."""
    validator = DataQualityValidator(df, "reviews")
    
    validator.check_not_null(["order_id", "review_score"])
    validator.check_range("review_score", min_value=1, max_value=5)
    validator.check_referential_integrity(
        "order_id", orders_df, "order_id", severity=CheckSeverity.WARNING
    )
    
    return validator


def validate_source_tables(tables) -> List[DataQualityValidator]:
    """
    Run every source suite.
    
    Args:
        tables: SourceTables snapshot
        
    Returns:
        One validator per table, checks already executed
    """
    return [
        validate_orders(tables.orders),
        validate_order_items(tables.order_items, tables.orders),
        validate_products(tables.products),
        validate_sellers(tables.sellers),
        validate_reviews(tables.reviews, tables.orders),
    ]


# =============================================================================
# RESULT TABLE SUITES
# =============================================================================

def validate_customer_rfm(df: DataFrame) -> DataQualityValidator:
    """Post-conditions of the CustomerRFM table."""
    validator = DataQualityValidator(df, "CustomerRFM")
    
    validator.check_unique(["customer_unique_id"])
    for score in ("r_score", "f_score", "m_score"):
        validator.check_range(score, min_value=1, max_value=5)
    validator.check_pattern("rfm_cell", r"^[1-5]{3}$")
    
    return validator


def validate_basket_pairs(df: DataFrame, min_orders: int) -> DataQualityValidator:
    """Post-conditions of the BasketPairs table."""
    validator = DataQualityValidator(df, "BasketPairs")
    
    validator.check_range("orders_together", min_value=min_orders)
    validator.check_condition(
        "ordered_pair",
        F.col("cat_a") >= F.col("cat_b"),
        "cat_a must sort before cat_b"
    )
    
    return validator


def validate_seller_score(df: DataFrame) -> DataQualityValidator:
    """Post-conditions of the SellerScore table."""
    validator = DataQualityValidator(df, "SellerScore")
    
    validator.check_unique(["seller_id"])
    validator.check_range("revenue_percentile", min_value=0, max_value=1)
    validator.check_range("review_percentile", min_value=0, max_value=1)
    validator.check_range("avg_review", min_value=1, max_value=5)
    
    return validator
