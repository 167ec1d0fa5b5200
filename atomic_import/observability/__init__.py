"""
Logging and metrics for the importer.
"""

from .logger import configure_logging, get_logger, log_operation, run_context

__all__ = ["configure_logging", "get_logger", "log_operation", "run_context"]
