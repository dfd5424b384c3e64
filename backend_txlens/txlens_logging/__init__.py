"""
Structured logging for Backend TxLens.

JSON logs with timestamp, level, logger and event_type.
Use get_logger(__name__) in every module.
"""

from backend_txlens.txlens_logging.logger import configure_structlog, get_logger

__all__ = ["configure_structlog", "get_logger"]
