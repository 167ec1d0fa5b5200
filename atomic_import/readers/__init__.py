"""
Input readers.
"""

from .csv_reader import SparkCSVReader, create_spark_session

__all__ = ["SparkCSVReader", "create_spark_session"]
