"""
Batch Data Loader

Reads the three flat input relations of the reporting pipeline
(regions, stores, daily sales) from CSV, JSON or Parquet files.
Supports:
- Typed schemas with lenient date parsing (unparseable dates become null)
- Audit metadata per file (row counts, hash, duration)
- Loading a whole dataset directory in one call
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import polars as pl
import structlog
from pydantic import BaseModel

from store_analytics.config import get_settings

logger = structlog.get_logger(__name__)


REGIONS_SCHEMA: Dict[str, pl.DataType] = {
    "region": pl.Utf8,
    "population": pl.Int64,
    "avg_income": pl.Float64,
}

STORES_SCHEMA: Dict[str, pl.DataType] = {
    "store_id": pl.Int64,
    "city": pl.Utf8,
    "region": pl.Utf8,
    "opening_date": pl.Date,
}

SALES_SCHEMA: Dict[str, pl.DataType] = {
    "store_id": pl.Int64,
    "date": pl.Date,
    "revenue": pl.Float64,
    "transactions": pl.Int64,
}

TABLE_SCHEMAS: Dict[str, Dict[str, pl.DataType]] = {
    "regions": REGIONS_SCHEMA,
    "stores": STORES_SCHEMA,
    "sales": SALES_SCHEMA,
}


class DatasetLoadError(Exception):
    """Raised when an input table cannot be read or lacks required columns"""


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    JSON = "json"
    PARQUET = "parquet"


class LoadStatus(str, Enum):
    """Batch load status"""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BatchFileConfig:
    """Configuration for loading one input table"""
    file_path: Union[str, Path]
    file_format: FileFormat
    table: str
    delimiter: str = ","
    encoding: str = "utf8"
    date_format: str = "%Y-%m-%d"
    null_values: List[str] = field(default_factory=lambda: ["", "NULL", "null", "None", "NA", "N/A"])


class LoadResult(BaseModel):
    """Result of a batch load operation"""
    file_path: str
    table: str
    status: LoadStatus
    rows_loaded: int = 0
    error_message: Optional[str] = None
    load_duration_seconds: float = 0
    started_at: datetime
    completed_at: Optional[datetime] = None
    file_hash: Optional[str] = None


@dataclass(frozen=True)
class StoreDataset:
    """The three typed input relations of one pipeline run"""
    regions: pl.DataFrame
    stores: pl.DataFrame
    sales: pl.DataFrame

    @classmethod
    def from_frames(
        cls,
        regions: pl.DataFrame,
        stores: pl.DataFrame,
        sales: pl.DataFrame,
    ) -> "StoreDataset":
        """Build a dataset from in-memory frames, coercing them to the table schemas"""
        return cls(
            regions=coerce_schema(regions, REGIONS_SCHEMA, "regions"),
            stores=coerce_schema(stores, STORES_SCHEMA, "stores"),
            sales=coerce_schema(sales, SALES_SCHEMA, "sales"),
        )


def coerce_schema(
    df: pl.DataFrame,
    schema: Dict[str, pl.DataType],
    table: str,
    date_format: str = "%Y-%m-%d",
) -> pl.DataFrame:
    """
    Select and cast the schema columns of ``df`` in schema order.

    String dates are parsed leniently; values that do not parse become null
    and are later flagged by the cleaner instead of failing the load.
    """
    missing = [col for col in schema if col not in df.columns]
    if missing:
        raise DatasetLoadError(f"Table '{table}' is missing columns: {missing}")

    exprs = []
    for col, dtype in schema.items():
        current = df.schema[col]
        if dtype == pl.Date and current == pl.Utf8:
            exprs.append(
                pl.col(col).str.strip_chars().str.to_date(date_format, strict=False).alias(col)
            )
        elif dtype == pl.Date and current == pl.Datetime:
            exprs.append(pl.col(col).dt.date().alias(col))
        else:
            exprs.append(pl.col(col).cast(dtype, strict=False).alias(col))

    return df.select(exprs)


class BatchLoader:
    """
    Batch loader for the regions/stores/sales input tables.

    Example:
        loader = BatchLoader()
        dataset = loader.load_dataset("data/raw")
    """

    def __init__(self, file_format: Optional[FileFormat] = None):
        settings = get_settings()
        self.data_lake = settings.data_lake
        self.file_format = file_format or FileFormat(self.data_lake.default_format)
        self.results: List[LoadResult] = []

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of file for audit"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def _read_csv(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read CSV file; date columns are read as text and parsed afterwards"""
        schema = TABLE_SCHEMAS[config.table]
        overrides = {
            col: (pl.Utf8 if dtype == pl.Date else dtype)
            for col, dtype in schema.items()
        }
        return pl.read_csv(
            config.file_path,
            separator=config.delimiter,
            encoding=config.encoding,
            null_values=config.null_values,
            schema_overrides=overrides,
        )

    def _read_json(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read a JSON array of records"""
        return pl.read_json(config.file_path)

    def _read_parquet(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read Parquet file"""
        return pl.read_parquet(config.file_path)

    def read_file(self, config: BatchFileConfig) -> pl.DataFrame:
        """Read file based on format"""
        readers = {
            FileFormat.CSV: self._read_csv,
            FileFormat.JSON: self._read_json,
            FileFormat.PARQUET: self._read_parquet,
        }
        reader = readers.get(config.file_format)
        if not reader:
            raise DatasetLoadError(f"Unsupported format: {config.file_format}")
        return reader(config)

    def load_table(self, config: BatchFileConfig) -> Tuple[pl.DataFrame, LoadResult]:
        """
        Load one input table and coerce it to its schema.

        Raises:
            DatasetLoadError: the file is missing, unreadable or lacks columns
        """
        started_at = datetime.utcnow()
        file_path = Path(config.file_path)

        logger.info("Loading table", table=config.table, path=str(file_path))

        try:
            if not file_path.exists():
                raise DatasetLoadError(f"File not found: {file_path}")

            file_hash = self._compute_file_hash(file_path)
            df = coerce_schema(
                self.read_file(config),
                TABLE_SCHEMAS[config.table],
                config.table,
                date_format=config.date_format,
            )
        except (DatasetLoadError, pl.exceptions.PolarsError, OSError) as e:
            completed_at = datetime.utcnow()
            result = LoadResult(
                file_path=str(file_path),
                table=config.table,
                status=LoadStatus.FAILED,
                error_message=str(e),
                load_duration_seconds=(completed_at - started_at).total_seconds(),
                started_at=started_at,
                completed_at=completed_at,
            )
            self.results.append(result)
            logger.error(f"Failed to load {file_path}: {e}", table=config.table)
            if isinstance(e, DatasetLoadError):
                raise
            raise DatasetLoadError(f"Could not read {file_path}: {e}") from e

        completed_at = datetime.utcnow()
        result = LoadResult(
            file_path=str(file_path),
            table=config.table,
            status=LoadStatus.COMPLETED,
            rows_loaded=len(df),
            load_duration_seconds=(completed_at - started_at).total_seconds(),
            started_at=started_at,
            completed_at=completed_at,
            file_hash=file_hash,
        )
        self.results.append(result)

        logger.info(f"Loaded {len(df)} rows into {config.table}", duration=result.load_duration_seconds)
        return df, result

    def load_dataset(self, directory: Optional[Union[str, Path]] = None) -> StoreDataset:
        """
        Load regions, stores and sales from a directory.

        File names come from the data lake settings
        (``regions``, ``stores``, ``sales`` plus the format extension).
        """
        directory = Path(directory or self.data_lake.raw_path)
        stems = {
            "regions": self.data_lake.regions_file,
            "stores": self.data_lake.stores_file,
            "sales": self.data_lake.sales_file,
        }

        frames = {}
        for table, stem in stems.items():
            config = BatchFileConfig(
                file_path=directory / f"{stem}.{self.file_format.value}",
                file_format=self.file_format,
                table=table,
            )
            frames[table], _ = self.load_table(config)

        return StoreDataset(
            regions=frames["regions"],
            stores=frames["stores"],
            sales=frames["sales"],
        )
