"""
Data Validation Module

Rule-based data quality checks for the regions/stores/sales inputs and the
data-quality report of a pipeline run.

Integrity problems (orphan references, null dates, duplicate keys) are
counted and reported; they never stop the pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import polars as pl
import structlog

from store_analytics.ingestion.batch_loader import StoreDataset

if TYPE_CHECKING:
    from store_analytics.transformation.cleaners import CleaningResult

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    failed_rows: int = 0
    total_rows: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "severity": self.severity.value,
            "message": self.message,
            "failed_rows": self.failed_rows,
            "total_rows": self.total_rows,
        }


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100


class DataValidator:
    """
    Data validator with a chainable check suite.

    Example:
        validator = DataValidator("sales")
        validator.add_not_null_check("date", severity=ValidationSeverity.WARNING)
        result = validator.validate(sales_df)
    """

    def __init__(self, table: str = "table", strict_mode: bool = False):
        self.table = table
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def _missing_column(self, name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"{self.table}.not_null_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            null_count = df[column].null_count()
            passed = null_count == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                failed_rows=null_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        columns: List[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that the combination of ``columns`` is unique"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"{self.table}.unique_{'_'.join(columns)}"
            missing = [c for c in columns if c not in df.columns]
            if missing:
                return self._missing_column(name, missing[0], severity)

            duplicate_count = len(df) - df.select(columns).unique().height
            passed = duplicate_count == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"{columns} has {duplicate_count} duplicate rows" if not passed else f"{columns} values are unique",
                failed_rows=duplicate_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"{self.table}.range_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)
            if not conditions:
                return ValidationCheck(name=name, passed=True, severity=severity, message="No range specified")

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            passed = out_of_range == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                failed_rows=out_of_range,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_custom_check(
        self,
        name: str,
        check_func: Callable[[pl.DataFrame], int],
        message_on_fail: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """
        Add a check from a function returning the number of failing rows.

        A check that raises on a malformed frame is reported as failed.
        """
        def check(df: pl.DataFrame) -> ValidationCheck:
            full_name = f"{self.table}.{name}"
            try:
                failed = int(check_func(df))
            except (pl.exceptions.PolarsError, KeyError, ValueError) as e:
                return ValidationCheck(
                    name=full_name,
                    passed=False,
                    severity=severity,
                    message=f"Check failed with error: {e}",
                )
            return ValidationCheck(
                name=full_name,
                passed=failed == 0,
                severity=severity,
                message="Check passed" if failed == 0 else f"{message_on_fail} ({failed} rows)",
                failed_rows=failed,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Add check that every value of ``column`` exists in the reference table"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"{self.table}.ref_integrity_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            orphans = df.filter(
                ~pl.col(column).is_in(reference_df[reference_column].unique().to_list())
            ).height
            passed = orphans == 0
            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {orphans} orphan records" if not passed else "Referential integrity maintained",
                failed_rows=orphans,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )


# Pre-built validators for the input tables
def create_regions_validator() -> DataValidator:
    """Validator for the regions dimension"""
    return (
        DataValidator("regions")
        .add_not_null_check("region")
        .add_unique_check(["region"])
        .add_range_check("population", min_value=0, severity=ValidationSeverity.WARNING)
    )


def create_stores_validator(regions: pl.DataFrame) -> DataValidator:
    """Validator for the stores dimension"""
    return (
        DataValidator("stores")
        .add_not_null_check("store_id")
        .add_unique_check(["store_id"])
        .add_not_null_check("opening_date", severity=ValidationSeverity.WARNING)
        .add_referential_integrity_check("region", regions, "region")
    )


def create_sales_validator(stores: pl.DataFrame) -> DataValidator:
    """Validator for the daily sales fact table; every finding is a warning"""
    return (
        DataValidator("sales")
        .add_not_null_check("date", severity=ValidationSeverity.WARNING)
        .add_unique_check(["store_id", "date"], severity=ValidationSeverity.WARNING)
        .add_range_check("transactions", min_value=0, severity=ValidationSeverity.WARNING)
        .add_custom_check(
            "tx0_revpos",
            lambda df: df.filter((pl.col("transactions") == 0) & (pl.col("revenue") > 0)).height,
            "Positive revenue recorded without transactions",
        )
        .add_referential_integrity_check("store_id", stores, "store_id")
    )


def validate_dataset(dataset: StoreDataset) -> Dict[str, ValidationResult]:
    """Run the pre-built validators over every input table"""
    return {
        "regions": create_regions_validator().validate(dataset.regions),
        "stores": create_stores_validator(dataset.regions).validate(dataset.stores),
        "sales": create_sales_validator(dataset.stores).validate(dataset.sales),
    }


def build_quality_report(
    dataset: StoreDataset,
    cleaning: "CleaningResult",
    anomalies: pl.DataFrame,
) -> Dict[str, Any]:
    """
    Data-quality metrics of one pipeline run.

    Args:
        dataset: Raw input tables
        cleaning: Output of the sales cleaner
        anomalies: Enriched anomaly rows (excluded rows and returns days)
    """
    sales = dataset.sales
    stats = cleaning.stats

    known_regions = dataset.regions["region"].unique().to_list()
    stores_missing_region = dataset.stores.filter(~pl.col("region").is_in(known_regions)).height
    unknown_store_rows = sales.filter(
        ~pl.col("store_id").is_in(dataset.stores["store_id"].unique().to_list())
    ).height
    duplicate_key_groups = (
        sales.group_by(["store_id", "date"])
        .agg(pl.len().alias("rows"))
        .filter(pl.col("rows") > 1)
        .height
    )

    validation = validate_dataset(dataset)

    report = {
        "row_counts": {
            "regions": len(dataset.regions),
            "stores": len(dataset.stores),
            "sales": len(sales),
        },
        "integrity": {
            "orphan_sales_rows": stats.orphan_rows,
            "sales_with_unknown_store": unknown_store_rows,
            "stores_missing_region": stores_missing_region,
            "null_dates": sales["date"].null_count(),
            "duplicate_store_date_groups": duplicate_key_groups,
            "duplicates_removed": stats.duplicates_removed,
        },
        "cleaning": stats.to_dict(),
        "excluded_share": stats.excluded_rows / stats.joined_rows if stats.joined_rows else None,
        "date_span": {
            "min_date": sales["date"].min(),
            "max_date": sales["date"].max(),
        },
        "validation": {
            table: {
                "status": result.status.value,
                "checks": [check.to_dict() for check in result.checks],
            }
            for table, result in validation.items()
        },
        "anomalies": anomalies,
    }

    logger.info(
        "Data quality report built",
        orphans=stats.orphan_rows,
        null_dates=report["integrity"]["null_dates"],
        duplicate_groups=duplicate_key_groups,
        anomalies=len(anomalies),
    )
    return report
