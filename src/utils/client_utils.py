"""
Client Utility Functions
=======================

Factories for the external service clients used by the pipeline. Credentials
and timeouts are always passed in by the caller.

Functions:
    get_ors_client: OpenRouteService client for isochrone requests.
    get_geolocator: Nominatim geocoder with a certifi SSL context.
    get_overpass_session: requests session for the Overpass API.

Example:
    >>> from src.utils.client_utils import get_ors_client
    >>> client = get_ors_client(api_key, timeout=30)
"""

# Standard library imports
import logging
import ssl

# Third-party imports
import certifi
import openrouteservice
import requests
from geopy.geocoders import Nominatim

# Local imports
from .logging_utils import with_log_context
from .error_utils import (
    handle_exception,
    ExceptionContext,
    ConfigError,
    ConfigMissingError,
    APIConnectionError,
)

USER_AGENT = "coffee_isochrone_maps"


@handle_exception(
    custom_mapping={
        ValueError: ConfigError,
        openrouteservice.exceptions.ApiError: APIConnectionError,
        Exception: APIConnectionError,
    }
)
@with_log_context(module="client_utils", operation="get_ors_client")
def get_ors_client(api_key: str, timeout: float = 60) -> openrouteservice.Client:
    """
    Get an OpenRouteService client for the given API key.

    Over-query-limit retries are disabled: a rate-limited location fails fast
    and is reported as a per-location failure.

    Args:
        api_key: ORS API key
        timeout: Per-request timeout in seconds

    Returns:
        openrouteservice.Client: Initialized ORS client

    Raises:
        ConfigMissingError: When the API key is empty
        ConfigError: When the timeout is not positive
    """
    if not api_key:
        logging.error("ORS API key was not provided")
        raise ConfigMissingError(
            "ORS API key not provided. Set ORS_API_KEY in the environment or .env file."
        )
    if timeout is None or timeout <= 0:
        raise ConfigError(f"Request timeout must be positive, got {timeout}")

    logging.info(f"Initializing OpenRouteService client (timeout={timeout}s)")
    with ExceptionContext("OpenRouteService client initialization", APIConnectionError):
        client = openrouteservice.Client(
            key=api_key, timeout=timeout, retry_over_query_limit=False
        )
    return client


@handle_exception(custom_mapping={ssl.SSLError: APIConnectionError})
@with_log_context(module="client_utils", operation="get_geolocator")
def get_geolocator(timeout: float = 10) -> Nominatim:
    """Initialize a Nominatim geolocator with a secure SSL context."""
    logging.info("Initializing geolocator")
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    return Nominatim(user_agent=USER_AGENT, ssl_context=ssl_context, timeout=timeout)


def get_overpass_session() -> requests.Session:
    """Create a requests session for Overpass queries."""
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session
