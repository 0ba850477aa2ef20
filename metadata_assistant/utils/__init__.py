"""Utility functions for the Metadata Assistant."""

from .prompt_manager import PromptManager
from .error_handler import ErrorHandler, handle_error, create_error_response
from .logging_config import (
    setup_logging, get_logger, JSONFormatter, ErrorTrackingHandler, log_performance_metrics, log_error_with_context
)

__all__ = [
    "PromptManager",
    "ErrorHandler",
    "handle_error",
    "create_error_response",
    "setup_logging",
    "get_logger",
    "JSONFormatter",
    "ErrorTrackingHandler",
    "log_performance_metrics",
    "log_error_with_context",
]
