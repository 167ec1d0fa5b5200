"""
CSV reader using Spark for import input.

Every column is read as a string so the groupers see the raw cell text,
and rows are collected back in file order.
"""

from pathlib import Path
from typing import Any

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F

from atomic_import.observability.logger import get_logger

logger = get_logger(__name__)

_ORDER_COLUMN = "_input_order"


def create_spark_session(app_name: str = "AtomicImport") -> SparkSession:
    """
    Create a local Spark session for reading input files.

    Args:
        app_name: Application name

    Returns:
        SparkSession
    """
    spark = SparkSession.builder \
        .appName(app_name) \
        .master("local[*]") \
        .config("spark.sql.adaptive.enabled", "true") \
        .config("spark.ui.enabled", "false") \
        .getOrCreate()

    return spark


class SparkCSVReader:
    """
    Reads CSV files into row dicts with Spark.
    """

    def __init__(self, spark: SparkSession):
        """
        Args:
            spark: Active Spark session
        """
        self.spark = spark

    def read_dataframe(self, file_path: str | Path, delimiter: str = ",") -> DataFrame:
        """
        Read a CSV file with a header row, all columns as strings.

        Column names are trimmed and lower-cased. Empty cells become None.
        """
        df = self.spark.read \
            .option("header", "true") \
            .option("inferSchema", "false") \
            .option("delimiter", delimiter) \
            .option("mode", "PERMISSIVE") \
            .option("multiLine", "true") \
            .option("escape", '"') \
            .csv(str(file_path))

        for column in df.columns:
            normalized = column.strip().lower()
            if normalized != column:
                df = df.withColumnRenamed(column, normalized)

        return df

    def read_rows(self, file_path: str | Path, delimiter: str = ",") -> list[dict[str, Any]]:
        """
        Read a CSV file into a list of row dicts in file order.

        Args:
            file_path: Path to the CSV file
            delimiter: Field delimiter

        Returns:
            One dict per data row, keyed by normalized column name
        """
        df = self.read_dataframe(file_path, delimiter)
        ordered = df.withColumn(_ORDER_COLUMN, F.monotonically_increasing_id()).orderBy(_ORDER_COLUMN)

        rows = [
            {k: v for k, v in row.asDict().items() if k != _ORDER_COLUMN}
            for row in ordered.collect()
        ]
        logger.info(f"Read {len(rows)} rows from {file_path}", extra={"file_path": str(file_path)})
        return rows
