"""
docspine.core - errors, logging, settings and the document store adapters.
"""

from docspine.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DataShapeError,
    DocSpineError,
    ErrorCategory,
    ErrorContext,
    QueryError,
    WriteError,
)
from docspine.core.logging import LogContext, configure_logging, get_logger
from docspine.core.protocols import DocumentCollection, DocumentCursor

__all__ = [
    # errors
    "DocSpineError",
    "ErrorCategory",
    "ErrorContext",
    "ConfigError",
    "QueryError",
    "WriteError",
    "DataShapeError",
    "DatabaseConnectionError",
    # logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # protocols
    "DocumentCollection",
    "DocumentCursor",
]
