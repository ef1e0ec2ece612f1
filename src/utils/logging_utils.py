"""
Logging Utility Functions
======================

Structured logging for the pipeline. Context values (module, operation, the
location being fetched, ...) are attached to every record emitted inside a
``LogContext`` block and rendered by ``ContextAwareFormatter``.

Classes:
    LogContext: Context manager for adding contextual information to logs.
    ContextAwareFormatter: Formatter that copies the active context onto records.

Functions:
    setup_logging: Configure console and optional file logging.
    setup_structured_logging: setup_logging with a request id in every line.
    with_log_context: Decorator to add logging context to functions.

Example:
    >>> from src.utils.logging_utils import setup_structured_logging, LogContext
    >>> setup_structured_logging(log_file="pipeline.log")
    >>> with LogContext(location_id="node/42"):
    ...     logging.info("Fetching isochrones")
"""

# Standard library imports
import logging
import os
import threading
import uuid
from functools import wraps
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
STRUCTURED_FORMAT = (
    "%(asctime)s - %(levelname)s - %(name)s - %(request_id)s - %(message)s"
)

# Fetch workers run on threads, so each thread keeps its own context stack.
_local = threading.local()


def get_log_context() -> dict:
    """Return the context active on the current thread."""
    return getattr(_local, "context", {})


class LogContext:
    """
    Context manager for adding structured context to logs.

    Example:
        with LogContext(module="aggregate", operation="fetch_all"):
            logging.info("Submitting requests")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self.old_context = None

    def __enter__(self):
        self.old_context = get_log_context()
        _local.context = {**self.old_context, **self.context}
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        _local.context = self.old_context


class ContextAwareFormatter(logging.Formatter):
    """
    Formatter that includes context information in log records.

    Context keys become record attributes (so they can be used in the format
    string) and are appended to the message as ``key=value`` pairs.
    """

    def format(self, record):
        context = get_log_context()
        for key, value in context.items():
            if not hasattr(record, key):
                setattr(record, key, value)

        if not hasattr(record, "request_id"):
            setattr(record, "request_id", "-")

        message = super().format(record)
        extras = [
            f"{key}={value}" for key, value in context.items() if key != "request_id"
        ]
        if extras:
            message = f"{message} [{', '.join(extras)}]"
        return message


def with_log_context(func=None, **context_kwargs):
    """
    Decorator to add context to all log messages within a function.

    Example:
        @with_log_context(module="osm", operation="query_points")
        def query_points(bbox):
            logging.info("Querying Overpass")  # Will include module="osm"
    """

    def decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            with LogContext(**context_kwargs):
                return f(*args, **kwargs)

        return wrapped

    if func is None:
        return decorator
    return decorator(func)


def get_request_id() -> str:
    """Generate a unique request ID for tracing one pipeline run."""
    return str(uuid.uuid4())


def clear_log_context():
    """Clear all context values on the current thread."""
    _local.context = {}


def setup_logging(
    log_file_name=None,
    logs_dir=None,
    level=logging.INFO,
    format_string=DEFAULT_FORMAT,
    request_id=None,
):
    """Set up logging configuration.

    Args:
        log_file_name: Name of the log file (console only when None)
        logs_dir: Path to logs directory (defaults to <project>/logs)
        level: Logging level (default: INFO)
        format_string: Format string for log messages
        request_id: Request ID stored in the base context when given
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = ContextAwareFormatter(format_string)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file_name:
        try:
            if not logs_dir:
                logs_dir = Path(__file__).resolve().parent.parent.parent / "logs"
            os.makedirs(logs_dir, exist_ok=True)

            log_file_path = Path(logs_dir) / log_file_name
            file_handler = logging.FileHandler(log_file_path)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            logging.info(f"Logging to file: {log_file_path}")
        except OSError as e:
            logging.error(f"Failed to setup file logging: {e}")

    _local.context = {"request_id": request_id} if request_id else {}
    logging.info("Logging system initialized")


def setup_structured_logging(
    log_file: Optional[str] = None,
    logs_dir: Optional[str] = None,
    level: int = logging.INFO,
    format_string: str = STRUCTURED_FORMAT,
    request_id: Optional[str] = None,
) -> str:
    """
    Configure structured logging with context awareness and request ID tracking.

    Returns:
        str: The request id attached to every line of this run
    """
    request_id = request_id or get_request_id()
    setup_logging(
        log_file_name=log_file,
        logs_dir=logs_dir,
        level=level,
        format_string=format_string,
        request_id=request_id,
    )
    return request_id
