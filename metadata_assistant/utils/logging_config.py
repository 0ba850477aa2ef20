"""Logging configuration for the Metadata Assistant."""

import json
import logging
import logging.handlers
import re
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_PATTERN_SUBSTITUTIONS = [
    (re.compile(r"\b\d{4}-\d{4}-\d{4}-\d{3}[\dX]\b"), "<ORCID>"),
    (re.compile(r"https?://\S+"), "<URL>"),
    (re.compile(r"\bcall_[A-Za-z0-9]+\b"), "<CALL_ID>"),
    (re.compile(r"\b\d+\b"), "<NUMBER>"),
]


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ErrorTrackingHandler(logging.Handler):
    """Keeps counts and a short history of warnings and errors."""

    def __init__(self, max_recent_errors: int = 100):
        super().__init__()
        self.error_counts: Dict[str, int] = {}
        self.error_patterns: Dict[str, int] = {}
        self.recent_errors: List[Dict[str, Any]] = []
        self.max_recent_errors = max_recent_errors

    def emit(self, record: logging.LogRecord) -> None:
        """Process log record for error tracking."""
        if record.levelno < logging.WARNING:
            return

        self.error_counts[record.name] = self.error_counts.get(record.name, 0) + 1

        pattern = self._extract_pattern(record.getMessage())
        self.error_patterns[pattern] = self.error_patterns.get(pattern, 0) + 1

        error_info = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "pattern": pattern,
        }
        if record.exc_info and record.exc_info[0]:
            error_info["exception_type"] = record.exc_info[0].__name__

        self.recent_errors.append(error_info)
        if len(self.recent_errors) > self.max_recent_errors:
            self.recent_errors = self.recent_errors[-self.max_recent_errors:]

    def _extract_pattern(self, message: str) -> str:
        """Replace identifiers and numbers so similar messages group together."""
        for regex, placeholder in _PATTERN_SUBSTITUTIONS:
            message = regex.sub(placeholder, message)
        return message

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of tracked errors."""
        top_patterns = sorted(self.error_patterns.items(), key=lambda item: item[1], reverse=True)[:10]
        return {
            "total_errors_by_logger": dict(self.error_counts),
            "error_patterns": dict(top_patterns),
            "recent_error_count": len(self.recent_errors),
            "most_recent_errors": self.recent_errors[-5:],
        }


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False,
    enable_error_tracking: bool = True,
) -> Dict[str, Any]:
    """Configure the root logger.

    Args:
        log_level: Level name for the console and file handlers
        log_file: Optional path of a rotating log file
        enable_json_logging: Emit JSON lines instead of plain text
        enable_error_tracking: Attach an ErrorTrackingHandler

    Returns:
        Dictionary with the error tracker (or None) and handler count
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    # stderr keeps stdout free for the MCP stdio transport
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    if enable_json_logging:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(numeric_level)
        if enable_json_logging:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
            ))
        root_logger.addHandler(file_handler)

    error_tracker = None
    if enable_error_tracking:
        error_tracker = ErrorTrackingHandler()
        error_tracker.setLevel(logging.WARNING)
        root_logger.addHandler(error_tracker)

    logging.getLogger("metadata_assistant").setLevel(numeric_level)
    logging.getLogger("mcp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return {
        "error_tracker": error_tracker,
        "log_level": log_level,
        "handlers_count": len(root_logger.handlers),
    }


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_performance_metrics(logger: logging.Logger, operation: str, duration: float, **metrics: Any) -> None:
    """Log the duration of an operation along with arbitrary counters."""
    logger.info(
        f"{operation} took {duration:.3f}s",
        extra={"operation": operation, "duration_seconds": round(duration, 4), **metrics},
    )


def log_error_with_context(logger: logging.Logger, error: Exception, context: Dict[str, Any], operation: str) -> None:
    """Log an error with its traceback and the given context fields."""
    error_info = {
        "operation": operation,
        "error_type": type(error).__name__,
        "error_message": str(error),
        **context,
    }
    logger.error(f"Error in {operation}: {error}", extra=error_info, exc_info=error)
