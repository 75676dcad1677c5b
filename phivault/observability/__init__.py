# Observability module
from .logging_config import StructuredLogger, configure_logging, get_logger

__all__ = [
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
