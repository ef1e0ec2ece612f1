"""
Error Utility Functions
====================

This module contains the exception hierarchy used across the isochrone pipeline
together with helpers that map library exceptions onto it.

Classes:
    AppError: Base class for all custom exceptions.
    ConfigError: Invalid or missing configuration (profile, ranges, API key).
    DataAccessError: A data source (Overpass, geocoder, files) could not be read.
    MissingNameError: A point record has no usable name.
    MalformedGeometryError: A point record has no decodable (lon, lat) geometry.
    FetchError: The routing service failed for a single location.
    ServiceUnreachableError: The routing service host cannot be reached at all.
    GeoJSONError: GeoJSON conversion or validation failed.
    PipelineCancelledError: The run was cancelled before it finished.

Functions:
    handle_exception: Decorator to map exceptions in functions.
    ExceptionContext: Context manager for mapping exceptions in a block.

Example:
    >>> from src.utils.error_utils import handle_exception, DataAccessError
    >>> @handle_exception(custom_mapping={Exception: DataAccessError})
    >>> def query_points():
    ...     # Function that might raise exceptions
    ...     pass
"""

# Standard library imports
import functools
import logging
import traceback
from typing import Type, Callable, TypeVar


class AppError(Exception):
    """Base exception for all application errors"""

    pass


# Configuration-related exceptions
class ConfigError(AppError):
    """Invalid configuration value"""

    pass


class ConfigMissingError(ConfigError):
    """Required configuration (e.g. the ORS key) is missing"""

    pass


# Data-related exceptions
class DataError(AppError):
    """Base error related to data operations"""

    pass


class DataAccessError(DataError):
    """Error when reading from a data source (Overpass, geocoder, files)"""

    pass


class DataValidationError(DataError):
    """Error when data fails validation"""

    pass


class MissingNameError(DataValidationError):
    """A point record has no name; the record is dropped"""

    pass


class MalformedGeometryError(DataValidationError):
    """A point record's geometry does not decode to a finite (lon, lat)"""

    pass


class DataProcessingError(DataError):
    """Error when transforming or writing data"""

    pass


# API-related exceptions
class APIError(AppError):
    """Base error for API operations"""

    pass


class APIConnectionError(APIError):
    """Error when talking to an external API"""

    pass


class FetchError(APIConnectionError):
    """Isochrone request failed for one location"""

    def __init__(self, message: str, location: str = None):
        super().__init__(message)
        self.location = location


class ServiceUnreachableError(FetchError):
    """The routing service could not be reached at all"""

    pass


class GeoJSONError(AppError):
    """Base error for GeoJSON operations"""

    pass


class PipelineCancelledError(AppError):
    """The run was cancelled (Ctrl-C) before it finished"""

    pass


# Type variable for function return
T = TypeVar("T")


def handle_exception(
    func: Callable[..., T] = None,
    custom_mapping: dict[Type[Exception], Type[AppError]] = None,
) -> Callable[..., T]:
    """
    Decorator to standardize exception handling.

    Exceptions that are already an AppError are logged and re-raised untouched.
    Other exceptions are converted using the first entry of ``custom_mapping``
    whose key matches the exception (by ``isinstance``, in mapping order), or
    to a plain AppError.

    Args:
        func: The function to decorate
        custom_mapping: Optional dictionary mapping exceptions to app exceptions

    Returns:
        Decorated function with standardized exception handling
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> T:
            try:
                return fn(*args, **kwargs)
            except AppError as e:
                logging.error(f"{e.__class__.__name__}: {str(e)}")
                raise
            except Exception as e:
                error_cls = _lookup_mapping(e, custom_mapping)
                if error_cls is not None:
                    logging.error(f"Mapped error in {fn.__name__}: {str(e)}")
                    logging.debug(f"Exception details: {traceback.format_exc()}")
                    raise error_cls(str(e)) from e

                logging.error(f"Unexpected error in {fn.__name__}: {str(e)}")
                logging.debug(f"Exception details: {traceback.format_exc()}")
                raise AppError(f"Unexpected error: {str(e)}") from e

        return wrapper

    if func is None:
        return decorator
    return decorator(func)


def _lookup_mapping(exc, custom_mapping):
    """Find the app error class for ``exc``; exact type wins over subclasses."""
    if not custom_mapping:
        return None
    if type(exc) in custom_mapping:
        return custom_mapping[type(exc)]
    for exc_type, error_cls in custom_mapping.items():
        if isinstance(exc, exc_type):
            return error_cls
    return None


class ExceptionContext:
    """
    Context manager for standardized exception handling.

    Example:
        with ExceptionContext("Overpass query", error_cls=DataAccessError):
            # code that might raise exceptions
    """

    def __init__(self, operation_name: str, error_cls: Type[AppError] = AppError):
        self.operation_name = operation_name
        self.error_cls = error_cls

    def __enter__(self):
        return self

    def __exit__(self, _exc_type, exc_val, _exc_tb):
        if exc_val is None:
            return False

        if isinstance(exc_val, AppError):
            logging.error(
                f"{exc_val.__class__.__name__} in {self.operation_name}: {str(exc_val)}"
            )
            return False

        logging.error(f"Error in {self.operation_name}: {str(exc_val)}")
        logging.debug(f"Exception details: {traceback.format_exc()}")
        raise self.error_cls(
            f"Error in {self.operation_name}: {str(exc_val)}"
        ) from exc_val
